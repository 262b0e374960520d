"""Notebook / section / page data models."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator


def new_id(prefix: str) -> str:
    """Generate a fresh identifier such as ``page-3f2a...``."""
    return f"{prefix}-{uuid4().hex[:12]}"


class Page(BaseModel):
    """A single OneNote page."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: new_id("page"))
    title: str
    content: str = ""
    created_at: datetime = Field(default_factory=datetime.now)
    modified_at: datetime = Field(default_factory=datetime.now)
    metadata: dict[str, Any] = Field(default_factory=dict)
    attachments: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)


class Section(BaseModel):
    """A OneNote section: an ordered group of pages."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: new_id("section"))
    name: str
    pages: list[Page] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)
    modified_at: datetime = Field(default_factory=datetime.now)
    metadata: dict[str, Any] = Field(default_factory=dict)


class Notebook(BaseModel):
    """A OneNote notebook: an ordered group of sections."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: new_id("notebook"))
    name: str
    sections: list[Section] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)
    modified_at: datetime = Field(default_factory=datetime.now)
    metadata: dict[str, Any] = Field(default_factory=dict)


class Hierarchy(BaseModel):
    """The full notebook tree plus aggregate counts.

    The counters are checked against the tree on construction, so a
    Hierarchy with stale totals cannot exist. Use ``from_notebooks`` to
    have them computed.
    """

    model_config = ConfigDict(frozen=True)

    notebooks: list[Notebook] = Field(default_factory=list)
    total_notebooks: int = 0
    total_sections: int = 0
    total_pages: int = 0

    @model_validator(mode="after")
    def _check_totals(self) -> Hierarchy:
        sections = sum(len(nb.sections) for nb in self.notebooks)
        pages = sum(len(s.pages) for nb in self.notebooks for s in nb.sections)
        actual = (len(self.notebooks), sections, pages)
        declared = (self.total_notebooks, self.total_sections, self.total_pages)
        if actual != declared:
            raise ValueError(
                f"Hierarchy totals {declared} do not match tree sizes {actual}"
            )
        return self

    @classmethod
    def from_notebooks(cls, notebooks: list[Notebook]) -> Hierarchy:
        return cls(
            notebooks=notebooks,
            total_notebooks=len(notebooks),
            total_sections=sum(len(nb.sections) for nb in notebooks),
            total_pages=sum(len(s.pages) for nb in notebooks for s in nb.sections),
        )

    @property
    def is_degraded(self) -> bool:
        """True when any notebook was produced by a fallback path."""
        return any(nb.metadata.get("fallback") for nb in self.notebooks)

    def iter_pages(self):
        """Yield ``(notebook, section, page)`` triples in tree order."""
        for notebook in self.notebooks:
            for section in notebook.sections:
                for page in section.pages:
                    yield notebook, section, page
