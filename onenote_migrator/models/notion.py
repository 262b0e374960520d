"""Destination-side data models: mapped nodes and import results."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from onenote_migrator.progress import ProgressCallback

NodeKind = Literal["notebook", "section", "page"]


class MappedNode(BaseModel):
    """A Notion page descriptor derived from a notebook, section or page.

    ``destination_parent_id`` holds the source id of the parent node (or the
    configured workspace page for top-level nodes); the real Notion id of
    the parent is only known once it has been created.
    """

    source_id: str
    kind: NodeKind
    title: str
    destination_parent_id: str | None = None
    content: str = ""
    body_blocks: list[dict[str, Any]] = Field(default_factory=list)
    properties: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)
    children: list[MappedNode] = Field(default_factory=list)


class MappingOptions(BaseModel):
    """Options for mapping a notebook tree onto Notion pages."""

    parent_id: str | None = None
    max_depth: int = 10
    create_databases: bool = False
    on_progress: ProgressCallback | None = None


class MappingMetadata(BaseModel):
    total_notebooks: int = 0
    total_sections: int = 0
    total_pages: int = 0
    processing_time: float = 0.0


class MappingResult(BaseModel):
    """Outcome of mapping a notebook tree."""

    success: bool
    pages: list[MappedNode] = Field(default_factory=list)
    databases: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    metadata: MappingMetadata = Field(default_factory=MappingMetadata)


class ImportOptions(BaseModel):
    """Options for creating pages in Notion."""

    parent_id: str | None = None
    parent_is_database: bool = False
    on_progress: ProgressCallback | None = None


class ImportMetadata(BaseModel):
    processing_time: float = 0.0
    items_processed: int = 0
    retry_count: int = 0


class ImportResult(BaseModel):
    """Outcome of creating one Notion page (and, recursively, its children)."""

    success: bool
    source_id: str | None = None
    title: str | None = None
    page_id: str | None = None
    url: str | None = None
    children: list[ImportResult] = Field(default_factory=list)
    error: str | None = None
    metadata: ImportMetadata = Field(default_factory=ImportMetadata)


class MigrationReport(BaseModel):
    """Summary of replicating a hierarchy into Notion."""

    success: bool
    results: list[ImportResult] = Field(default_factory=list)
    pages_created: int = 0
    pages_failed: int = 0
    errors: list[str] = Field(default_factory=list)
    run_id: str | None = None
