"""Progress events emitted by long-running pipeline operations."""

import logging
from collections.abc import Callable

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class Progress(BaseModel):
    """A single progress notification."""

    stage: str
    percentage: float
    message: str
    current_item: int | None = None
    total_items: int | None = None


ProgressCallback = Callable[[Progress], None]


def emit_progress(
    callback: ProgressCallback | None,
    stage: str,
    percentage: float,
    message: str,
    current_item: int | None = None,
    total_items: int | None = None,
) -> None:
    """Send a progress event to ``callback`` if one is registered.

    Emission is fire-and-forget: the callback's return value is ignored and
    a failing callback is logged without interrupting the operation.
    """
    if callback is None:
        return

    event = Progress(
        stage=stage,
        percentage=percentage,
        message=message,
        current_item=current_item,
        total_items=total_items,
    )
    try:
        callback(event)
    except Exception:
        logger.warning("Progress callback failed for stage %s", stage, exc_info=True)
