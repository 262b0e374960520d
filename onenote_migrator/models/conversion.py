"""Content conversion data models."""

from typing import Any, Literal

from pydantic import BaseModel, Field

from onenote_migrator.progress import ProgressCallback


class ConversionOptions(BaseModel):
    """Options for converting a page into a target document format.

    ``docx`` is a placeholder rich-document target: content passes through
    without the title heading the markdown target adds.
    """

    output_format: Literal["markdown", "docx"] = "markdown"
    preserve_formatting: bool = True
    include_images: bool = True
    image_output_path: str | None = None
    preserve_tables: bool = False
    preserve_code_blocks: bool = True
    handle_attachments: bool = False
    convert_tags: bool = False
    include_metadata: bool = False
    include_title: bool = True
    performance_mode: Literal["fast", "balanced", "thorough"] = "balanced"
    on_progress: ProgressCallback | None = None


class TableData(BaseModel):
    """A table recovered from page text."""

    headers: list[str]
    rows: list[list[str]] = Field(default_factory=list)
    caption: str | None = None


class AttachmentData(BaseModel):
    """An ``[ATTACHMENT:...]`` marker parsed into its fields."""

    name: str
    type: str = ""
    size: int = 0
    path: str = ""
    metadata: dict[str, str] = Field(default_factory=dict)


class TagData(BaseModel):
    """A ``[TAG:...]`` marker parsed into its fields."""

    name: str
    color: str | None = None
    category: str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)


class PerformanceInfo(BaseModel):
    """Timing of an advanced conversion."""

    processing_time: float
    items_processed: int


class ConversionResult(BaseModel):
    """Outcome of converting a single page."""

    success: bool
    content: str | None = None
    images: list[str] | None = None
    tables: list[TableData] | None = None
    attachments: list[AttachmentData] | None = None
    tags: list[TagData] | None = None
    metadata: dict[str, Any] | None = None
    error: str | None = None
    performance: PerformanceInfo | None = None


class ValidationReport(BaseModel):
    """Outcome of a validation pass."""

    is_valid: bool
    errors: list[str] = Field(default_factory=list)
