"""Data models for the OneNote migrator."""

from onenote_migrator.models.conversion import (
    AttachmentData,
    ConversionOptions,
    ConversionResult,
    PerformanceInfo,
    TableData,
    TagData,
    ValidationReport,
)
from onenote_migrator.models.extraction import (
    ExtractionResult,
    FileHeader,
    FileInfo,
    ParsedContent,
    ParsingOptions,
)
from onenote_migrator.models.hierarchy import Hierarchy, Notebook, Page, Section
from onenote_migrator.models.notion import (
    ImportMetadata,
    ImportOptions,
    ImportResult,
    MappedNode,
    MappingOptions,
    MappingResult,
    MigrationReport,
)

__all__ = [
    "AttachmentData",
    "ConversionOptions",
    "ConversionResult",
    "ExtractionResult",
    "FileHeader",
    "FileInfo",
    "Hierarchy",
    "ImportMetadata",
    "ImportOptions",
    "ImportResult",
    "MappedNode",
    "MappingOptions",
    "MappingResult",
    "MigrationReport",
    "Notebook",
    "Page",
    "ParsedContent",
    "ParsingOptions",
    "PerformanceInfo",
    "Section",
    "TableData",
    "TagData",
    "ValidationReport",
]
