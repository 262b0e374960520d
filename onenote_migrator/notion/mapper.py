"""Maps the notebook hierarchy onto a tree of Notion page descriptors."""

import logging
import time

from onenote_migrator.models.conversion import ValidationReport
from onenote_migrator.models.hierarchy import Notebook, Page, Section
from onenote_migrator.models.notion import (
    MappedNode,
    MappingMetadata,
    MappingOptions,
    MappingResult,
)
from onenote_migrator.notion.blocks import content_to_blocks
from onenote_migrator.progress import emit_progress

logger = logging.getLogger(__name__)


class HierarchyMapper:
    """Builds one page descriptor per notebook, section and page.

    Notebooks become top-level pages under ``options.parent_id``, sections
    become their children and pages hang beneath their section, cut off at
    ``max_depth`` levels.
    """

    def map(
        self, notebooks: list[Notebook], options: MappingOptions | None = None
    ) -> MappingResult:
        """Map notebooks into a descriptor tree.

        Args:
            notebooks: Notebooks to map, in order.
            options: Mapping options; defaults to MappingOptions().

        Returns:
            A MappingResult whose ``pages`` are the notebook descriptors.
            Subtrees that fail validation are dropped and listed in
            ``errors``.
        """
        opts = options or MappingOptions()
        started = time.perf_counter()
        emit_progress(opts.on_progress, "mapping", 10, "Starting hierarchy mapping...")

        databases: list[str] = []
        if opts.create_databases:
            databases = [f"OneNote - {notebook.name}" for notebook in notebooks]
            emit_progress(opts.on_progress, "mapping", 20, "Database structure planned")

        nodes: list[MappedNode] = []
        for index, notebook in enumerate(notebooks):
            emit_progress(
                opts.on_progress,
                "mapping",
                30 + (index / len(notebooks)) * 60,
                f"Mapping notebook: {notebook.name}",
                current_item=index + 1,
                total_items=len(notebooks),
            )
            nodes.append(self.map_notebook(notebook, opts))

        emit_progress(opts.on_progress, "validation", 95, "Validating hierarchy...")
        errors: list[str] = []
        nodes = self._prune_invalid(nodes, None, set(), errors)
        for error in errors:
            logger.warning("Dropped subtree while mapping: %s", error)

        emit_progress(opts.on_progress, "complete", 100, "Hierarchy mapping completed")
        return MappingResult(
            success=True,
            pages=nodes,
            databases=databases,
            errors=errors,
            metadata=MappingMetadata(
                total_notebooks=len(notebooks),
                total_sections=sum(len(nb.sections) for nb in notebooks),
                total_pages=sum(len(s.pages) for nb in notebooks for s in nb.sections),
                processing_time=time.perf_counter() - started,
            ),
        )

    def map_notebook(self, notebook: Notebook, options: MappingOptions) -> MappedNode:
        content = f"Notebook: {notebook.name}"
        node = MappedNode(
            source_id=notebook.id,
            kind="notebook",
            title=notebook.name,
            destination_parent_id=options.parent_id,
            content=content,
            body_blocks=content_to_blocks(content),
            properties={
                "Type": "Notebook",
                "Created Date": notebook.created_at,
                "Last Modified": notebook.modified_at,
            },
            metadata=dict(notebook.metadata),
        )
        if options.max_depth > 1:
            node.children = [
                self.map_section(section, notebook.id, options, depth=2)
                for section in notebook.sections
            ]
        return node

    def map_section(
        self,
        section: Section,
        parent_id: str | None = None,
        options: MappingOptions | None = None,
        depth: int = 1,
    ) -> MappedNode:
        """Map a section and, depth permitting, its pages.

        Args:
            section: Section to map.
            parent_id: Source id of the enclosing notebook.
            options: Mapping options.
            depth: Tree level of the section descriptor.
        """
        opts = options or MappingOptions()
        content = f"Section: {section.name}"
        node = MappedNode(
            source_id=section.id,
            kind="section",
            title=section.name,
            destination_parent_id=parent_id,
            content=content,
            body_blocks=content_to_blocks(content),
            properties={
                "Type": "Section",
                "Created Date": section.created_at,
                "Last Modified": section.modified_at,
            },
            metadata=dict(section.metadata),
        )
        if opts.max_depth > depth:
            node.children = [self.map_page(page, section.id) for page in section.pages]
        return node

    def map_page(self, page: Page, parent_id: str | None = None) -> MappedNode:
        return MappedNode(
            source_id=page.id,
            kind="page",
            title=page.title,
            destination_parent_id=parent_id,
            content=page.content,
            body_blocks=content_to_blocks(page.content),
            properties={
                "Type": "Page",
                "Created Date": page.created_at,
                "Last Modified": page.modified_at,
                "Author": page.metadata.get("author", "Unknown"),
            },
            metadata={**page.metadata, "tags": list(page.tags)},
        )

    def validate_hierarchy(self, nodes: list[MappedNode]) -> ValidationReport:
        """Report circular references and misplaced children.

        A node whose id already appears on the path from the root is a
        circular reference; a child whose ``destination_parent_id`` is not
        its parent's id is misplaced.
        """
        errors: list[str] = []
        self._prune_invalid(nodes, None, set(), errors, prune=False)
        return ValidationReport(is_valid=not errors, errors=errors)

    def flatten_hierarchy(self, nodes: list[MappedNode]) -> list[MappedNode]:
        """Depth-first pre-order list of every descriptor.

        A descriptor reachable more than once is listed only the first time.
        """
        flat: list[MappedNode] = []
        seen: set[int] = set()

        def visit(items: list[MappedNode]) -> None:
            for node in items:
                if id(node) in seen:
                    continue
                seen.add(id(node))
                flat.append(node)
                visit(node.children)

        visit(nodes)
        return flat

    def _prune_invalid(
        self,
        nodes: list[MappedNode],
        parent: MappedNode | None,
        path: set[str],
        errors: list[str],
        prune: bool = True,
    ) -> list[MappedNode]:
        """Return ``nodes`` without the subtrees that fail validation.

        Children are only reassigned when ``prune`` is set.
        """
        kept: list[MappedNode] = []
        for node in nodes:
            if node.source_id in path:
                errors.append(f"Circular reference detected involving node {node.source_id}")
                continue
            if parent is not None and node.destination_parent_id != parent.source_id:
                errors.append(
                    f"Node {node.source_id} references parent "
                    f"{node.destination_parent_id} but is nested under {parent.source_id}"
                )
                continue

            path.add(node.source_id)
            children = self._prune_invalid(node.children, node, path, errors, prune)
            if prune:
                node.children = children
            path.discard(node.source_id)
            kept.append(node)
        return kept
