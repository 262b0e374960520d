"""OneNote ingestion: file extraction and section parsing."""

from onenote_migrator.ingestion.extractor import ContentExtractor
from onenote_migrator.ingestion.parser import SectionParser

__all__ = ["ContentExtractor", "SectionParser"]
