"""Error classification and fallback values.

Every component routes faults through ``ErrorClassifier`` before they
cross a component boundary. A fault is classified into a kind and a
recoverable flag; recoverable faults get a degraded fallback value, the
others become failed results carrying a human-readable message.
"""

import errno
import logging
import re
from datetime import datetime
from typing import Literal

import requests
from pydantic import BaseModel

from onenote_migrator.exceptions import OneNoteError
from onenote_migrator.models.extraction import ExtractionResult
from onenote_migrator.models.hierarchy import Hierarchy, Notebook, Page, Section

logger = logging.getLogger(__name__)

ErrorKind = Literal["file", "permission", "memory", "disk", "network", "parsing", "unknown"]
FallbackContext = Literal["extraction", "parsing", "content"]

# Checked first. Any match makes the fault non-recoverable.
NON_RECOVERABLE_PATTERNS: dict[str, ErrorKind] = {
    "file not found": "file",
    "no such file": "file",
    "permission denied": "permission",
    "access denied": "permission",
    "out of memory": "memory",
    "disk full": "disk",
    "no space left": "disk",
    "network error": "network",
    "timed out": "network",
    "timeout": "network",
    "connection refused": "network",
    "connection reset": "network",
}

RECOVERABLE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"invalid\b.*\bformat"),
    re.compile(r"corrupt"),
    re.compile(r"unsupported version"),
    re.compile(r"missing metadata"),
    re.compile(r"failed to parse|parsing failed|parse error"),
    re.compile(r"encoding"),
)

USER_MESSAGES: dict[str, str] = {
    "file": "File not found. Please check the file path and try again.",
    "permission": "Permission denied. Please check file permissions and try again.",
    "memory": "Insufficient memory. Please try with smaller files or free up memory.",
    "disk": "No space left on device. Free up disk space and try again.",
    "network": "Network error. Please check your connection and try again.",
    "parsing": "File format error. The file may be corrupted or in an unsupported format.",
}

FALLBACK_SECTION_NAME = "Corrupted Section (Fallback)"
FALLBACK_PAGE_TITLE = "Content could not be parsed"
RAW_CONTENT_TEXT = "Raw content extracted"
ENCODING_ERROR_TEXT = "Encoding error detected"


class Classification(BaseModel):
    """Kind and recoverability of a fault."""

    kind: ErrorKind
    recoverable: bool


class ErrorClassifier:
    """Maps faults to a taxonomy and to fallback values.

    Stateless; a single instance may be shared across components.
    """

    def classify(self, fault: BaseException) -> Classification:
        """Classify a fault by type first, then by its message.

        Args:
            fault: Any exception raised inside the pipeline.

        Returns:
            The fault's kind and whether a fallback value may replace it.
        """
        kind = self._kind_from_type(fault)
        message = self._normalize(fault)

        if kind is None:
            kind = self._kind_from_message(message)

        if isinstance(fault, OneNoteError):
            return Classification(kind=kind, recoverable=fault.recoverable)

        recoverable = kind == "parsing"
        return Classification(kind=kind, recoverable=recoverable)

    def is_recoverable(self, fault: BaseException) -> bool:
        return self.classify(fault).recoverable

    def user_message(self, fault: BaseException) -> str:
        """Return a human-readable message for ``fault``."""
        kind = self.classify(fault).kind
        if kind in USER_MESSAGES:
            return USER_MESSAGES[kind]
        return f"An error occurred: {fault}"

    def fallback_for(
        self, fault: BaseException, context: FallbackContext
    ) -> Hierarchy | Section | str | None:
        """Build the degraded value that replaces a recoverable fault.

        Args:
            fault: The fault being absorbed.
            context: ``extraction`` yields a one-notebook Hierarchy,
                ``parsing`` a placeholder Section, ``content`` the
                placeholder text alone.

        Returns:
            The fallback value, or None for non-recoverable faults.
        """
        if not self.is_recoverable(fault):
            return None

        if context == "content":
            return self._fallback_text(fault)
        if context == "parsing":
            return self._fallback_section(fault)
        return self._fallback_hierarchy(fault)

    def extraction_result(self, fault: BaseException) -> ExtractionResult:
        """Convert a fault raised during extraction into a result object."""
        fallback = self.fallback_for(fault, "extraction")
        if isinstance(fallback, Hierarchy):
            logger.warning("Recovered from extraction fault with fallback: %s", fault)
            return ExtractionResult(
                success=True,
                hierarchy=fallback,
                warnings=[f"Fallback content used: {fault}"],
            )

        logger.error("Extraction failed: %s", fault)
        return ExtractionResult.failed(self.user_message(fault))

    def _kind_from_type(self, fault: BaseException) -> ErrorKind | None:
        if isinstance(fault, FileNotFoundError):
            return "file"
        if isinstance(fault, PermissionError):
            return "permission"
        if isinstance(fault, MemoryError):
            return "memory"
        if isinstance(fault, OSError) and fault.errno == errno.ENOSPC:
            return "disk"
        if isinstance(fault, (TimeoutError, requests.ConnectionError, requests.Timeout)):
            return "network"
        if isinstance(fault, UnicodeError):
            return "parsing"
        return None

    def _kind_from_message(self, message: str) -> ErrorKind:
        for pattern, kind in NON_RECOVERABLE_PATTERNS.items():
            if pattern in message:
                return kind
        if any(pattern.search(message) for pattern in RECOVERABLE_PATTERNS):
            return "parsing"
        return "unknown"

    def _normalize(self, fault: BaseException) -> str:
        return " ".join(str(fault).lower().split())

    def _fallback_text(self, fault: BaseException) -> str:
        if "encoding" in self._normalize(fault) or isinstance(fault, UnicodeError):
            return ENCODING_ERROR_TEXT
        return RAW_CONTENT_TEXT

    def _fallback_section(self, fault: BaseException) -> Section:
        now = datetime.now()
        page = Page(
            title=FALLBACK_PAGE_TITLE,
            content=self._fallback_text(fault),
            created_at=now,
            modified_at=now,
            metadata={"fallback": True},
        )
        return Section(
            name=FALLBACK_SECTION_NAME,
            pages=[page],
            created_at=now,
            modified_at=now,
            metadata={"fallback": True, "reason": str(fault)},
        )

    def _fallback_hierarchy(self, fault: BaseException) -> Hierarchy:
        now = datetime.now()
        page = Page(
            title="Fallback Page",
            content=self._fallback_text(fault),
            created_at=now,
            modified_at=now,
        )
        section = Section(
            name="Fallback Section",
            pages=[page],
            created_at=now,
            modified_at=now,
        )
        metadata: dict[str, object] = {"fallback": True, "reason": str(fault)}
        if isinstance(fault, OneNoteError) and fault.file_path:
            metadata["file_path"] = fault.file_path
        notebook = Notebook(
            name="Fallback Notebook",
            sections=[section],
            created_at=now,
            modified_at=now,
            metadata=metadata,
        )
        return Hierarchy.from_notebooks([notebook])
