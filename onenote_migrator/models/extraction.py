"""Extraction and parsing data models."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

from onenote_migrator.models.hierarchy import Hierarchy

FileType = Literal["one", "onepkg"]


class ParsingOptions(BaseModel):
    """Options controlling how a section is parsed."""

    include_metadata: bool = True
    extract_images: bool = True
    preserve_formatting: bool = True
    fallback_on_error: bool = True


class ParsedContent(BaseModel):
    """Readable fragments recovered from raw section bytes.

    Intermediate value of the parser; consumed immediately to build pages.
    """

    title: str
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    images: list[str] = Field(default_factory=list)
    attachments: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)


class FileHeader(BaseModel):
    """Result of reading the fixed-size prefix of a OneNote file."""

    magic: str = ""
    version: int = 0
    file_type: FileType = "one"
    signature_matched: bool = False


class FileInfo(BaseModel):
    """Validation outcome for a single input file."""

    path: str
    type: FileType
    size: int
    is_valid: bool
    modified_at: datetime


class ExtractionResult(BaseModel):
    """Structured outcome of any extraction entry point.

    A result never carries both a hierarchy and an error.
    """

    success: bool
    hierarchy: Hierarchy | None = None
    error: str | None = None
    extracted_files: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _hierarchy_xor_error(self) -> ExtractionResult:
        if self.hierarchy is not None and self.error is not None:
            raise ValueError("ExtractionResult cannot carry both hierarchy and error")
        return self

    @classmethod
    def failed(cls, error: str) -> ExtractionResult:
        return cls(success=False, error=error)
