"""OneNote to Notion migration pipeline."""

__version__ = "0.1.0"
