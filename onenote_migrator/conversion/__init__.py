"""Page content conversion: basic and advanced pipelines."""

from onenote_migrator.conversion.advanced import AdvancedContentConverter
from onenote_migrator.conversion.converter import ContentConverter

__all__ = ["AdvancedContentConverter", "ContentConverter"]
