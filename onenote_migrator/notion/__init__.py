"""Notion side of the migration: block building, mapping and API client."""

from onenote_migrator.notion.client import NotionClient
from onenote_migrator.notion.mapper import HierarchyMapper

__all__ = ["HierarchyMapper", "NotionClient"]
