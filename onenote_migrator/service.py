"""High-level migration service: extraction, conversion, export and import."""

import logging
import re
import sqlite3
from collections.abc import Iterator
from datetime import datetime
from pathlib import Path

from onenote_migrator.classifier import ErrorClassifier
from onenote_migrator.config import AppConfig
from onenote_migrator.conversion.advanced import AdvancedContentConverter
from onenote_migrator.conversion.converter import ContentConverter
from onenote_migrator.exceptions import OneNoteMigratorError
from onenote_migrator.ingestion.extractor import SUPPORTED_EXTENSIONS, ContentExtractor
from onenote_migrator.models.conversion import ConversionOptions, ConversionResult
from onenote_migrator.models.extraction import ExtractionResult, FileInfo, ParsingOptions
from onenote_migrator.models.hierarchy import Hierarchy, Notebook, Page
from onenote_migrator.models.notion import (
    ImportOptions,
    ImportResult,
    MappingOptions,
    MappingResult,
    MigrationReport,
)
from onenote_migrator.notion.client import NotionClient
from onenote_migrator.notion.mapper import HierarchyMapper
from onenote_migrator.progress import ProgressCallback
from onenote_migrator.storage.database import initialize_database, record_import_run

logger = logging.getLogger(__name__)

UNSAFE_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def sanitize_filename(name: str, max_length: int = 120) -> str:
    """Make ``name`` safe to use as a file or directory name."""
    cleaned = UNSAFE_FILENAME_CHARS.sub("_", name).strip(" .")
    return cleaned[:max_length] or "untitled"


class OneNoteService:
    """Single entry point for every pipeline operation.

    Faults are routed through the error classifier; callers always get a
    result object back.

    Args:
        config: Application configuration.
        client: Notion client; built from ``config.notion`` by default.
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        extractor: ContentExtractor | None = None,
        client: NotionClient | None = None,
        classifier: ErrorClassifier | None = None,
    ) -> None:
        self.config = config or AppConfig()
        self.classifier = classifier or ErrorClassifier()
        self.extractor = extractor or ContentExtractor(
            self.config.parsing, classifier=self.classifier
        )
        self.converter = ContentConverter()
        self.advanced_converter = AdvancedContentConverter()
        self.mapper = HierarchyMapper()
        self.client = client or NotionClient(self.config.notion)

    def process_files(
        self, file_paths: list[str | Path], options: ParsingOptions | None = None
    ) -> ExtractionResult:
        """Extract a batch of OneNote files into one hierarchy."""
        try:
            result = self.extractor.extract_multiple(file_paths, options)
        except Exception as exc:
            logger.exception("Unexpected failure while extracting %d files", len(file_paths))
            return self.classifier.extraction_result(exc)

        if result.hierarchy is not None:
            logger.info(
                "Extracted %d notebooks, %d sections, %d pages",
                result.hierarchy.total_notebooks,
                result.hierarchy.total_sections,
                result.hierarchy.total_pages,
            )
        return result

    def validate_files(self, file_paths: list[str | Path]) -> list[FileInfo]:
        """Validate every file; missing files are reported as invalid."""
        infos: list[FileInfo] = []
        for file_path in file_paths:
            try:
                infos.append(self.extractor.validate(file_path))
            except OneNoteMigratorError as exc:
                logger.warning("Cannot validate %s: %s", file_path, exc)
                path = Path(file_path)
                infos.append(
                    FileInfo(
                        path=str(path),
                        type=SUPPORTED_EXTENSIONS.get(path.suffix.lower(), "one"),
                        size=0,
                        is_valid=False,
                        modified_at=datetime.now(),
                    )
                )
        return infos

    def conversion_options(self, **overrides: object) -> ConversionOptions:
        """ConversionOptions built from the configured defaults."""
        values = self.config.conversion.model_dump()
        values.update(overrides)
        return ConversionOptions(**values)

    def convert_page(
        self,
        page: Page,
        options: ConversionOptions | None = None,
        advanced: bool = False,
    ) -> ConversionResult:
        converter = self.advanced_converter if advanced else self.converter
        return converter.convert(page, options or self.conversion_options())

    def convert_hierarchy(
        self,
        hierarchy: Hierarchy,
        options: ConversionOptions | None = None,
        advanced: bool = False,
    ) -> dict[str, ConversionResult]:
        """Convert every page, keyed by page id."""
        results: dict[str, ConversionResult] = {}
        for _, _, page in hierarchy.iter_pages():
            result = self.convert_page(page, options, advanced)
            if not result.success:
                logger.warning("Conversion failed for page '%s': %s", page.title, result.error)
            results[page.id] = result
        return results

    def export_markdown(
        self,
        hierarchy: Hierarchy,
        output_dir: str | Path | None = None,
        options: ConversionOptions | None = None,
        advanced: bool = True,
    ) -> list[Path]:
        """Write one markdown file per page under notebook/section folders.

        Pages that fail conversion are written with their raw content.

        Returns:
            Paths of the written files in tree order.
        """
        root = Path(output_dir or self.config.export.output_directory)
        opts = options or self.conversion_options(output_format="markdown")
        written: list[Path] = []

        for notebook, section, page in hierarchy.iter_pages():
            folder = root / sanitize_filename(notebook.name) / sanitize_filename(section.name)
            folder.mkdir(parents=True, exist_ok=True)

            result = self.convert_page(page, opts, advanced)
            content = result.content if result.success and result.content else None
            if content is None:
                logger.warning("Exporting raw content for page '%s': %s", page.title, result.error)
                content = f"# {page.title}\n\n{page.content}"

            target = self._unique_path(folder / f"{sanitize_filename(page.title)}.md")
            target.write_text(content + "\n", encoding="utf-8")
            written.append(target)

        logger.info("Exported %d pages to %s", len(written), root)
        return written

    def map_hierarchy(
        self, hierarchy: Hierarchy, options: MappingOptions | None = None
    ) -> MappingResult:
        opts = options or MappingOptions(
            parent_id=self.config.notion.parent_page_id,
            max_depth=self.config.mapping.max_depth,
            create_databases=self.config.mapping.create_databases,
        )
        try:
            return self.mapper.map(hierarchy.notebooks, opts)
        except Exception as exc:
            logger.exception("Hierarchy mapping failed")
            return MappingResult(success=False, errors=[self.classifier.user_message(exc)])

    def migrate(
        self,
        hierarchy: Hierarchy,
        parent_id: str | None = None,
        on_progress: ProgressCallback | None = None,
        source_files: list[str] | None = None,
    ) -> MigrationReport:
        """Replicate a hierarchy into Notion.

        Pages are converted (without a title heading, Notion shows the page
        title itself), mapped, validated and created depth-first. The run is
        recorded in the import history.

        Args:
            hierarchy: Extracted notebook tree.
            parent_id: Notion page to create the tree under; defaults to
                the configured parent page.
            on_progress: Receives mapping and creation progress.
            source_files: Input files, recorded with the run.

        Returns:
            A MigrationReport; never raises.
        """
        parent = parent_id or self.config.notion.parent_page_id
        if not parent:
            return MigrationReport(success=False, errors=["No Notion parent page configured"])

        try:
            converted, errors = self._converted_hierarchy(hierarchy)
            mapping = self.mapper.map(
                converted.notebooks,
                MappingOptions(
                    parent_id=parent,
                    max_depth=self.config.mapping.max_depth,
                    create_databases=self.config.mapping.create_databases,
                    on_progress=on_progress,
                ),
            )
            errors.extend(mapping.errors)

            validation = self.mapper.validate_hierarchy(mapping.pages)
            errors.extend(validation.errors)

            results = self._create_pages(mapping, parent, on_progress)
        except Exception as exc:
            logger.exception("Migration failed")
            return MigrationReport(success=False, errors=[self.classifier.user_message(exc)])

        flat = list(self._walk(results))
        created = sum(1 for result in flat if result.success)
        failed = len(flat) - created
        errors.extend(
            f"{result.title}: {result.error}" for result in flat if not result.success
        )

        return MigrationReport(
            success=failed == 0,
            results=results,
            pages_created=created,
            pages_failed=failed,
            errors=errors,
            run_id=self._record(results, source_files, parent, errors),
        )

    def _converted_hierarchy(self, hierarchy: Hierarchy) -> tuple[Hierarchy, list[str]]:
        """Copy of ``hierarchy`` with page bodies converted to markdown."""
        options = self.conversion_options(output_format="markdown", include_title=False)
        errors: list[str] = []
        notebooks: list[Notebook] = []

        for notebook in hierarchy.notebooks:
            sections = []
            for section in notebook.sections:
                pages = []
                for page in section.pages:
                    result = self.convert_page(page, options, advanced=True)
                    if result.success and result.content is not None:
                        pages.append(page.model_copy(update={"content": result.content}))
                    else:
                        errors.append(f"Conversion failed for '{page.title}': {result.error}")
                        pages.append(page)
                sections.append(section.model_copy(update={"pages": pages}))
            notebooks.append(notebook.model_copy(update={"sections": sections}))

        return Hierarchy.from_notebooks(notebooks), errors

    def _create_pages(
        self,
        mapping: MappingResult,
        parent: str,
        on_progress: ProgressCallback | None,
    ) -> list[ImportResult]:
        if not mapping.databases:
            options = ImportOptions(parent_id=parent, on_progress=on_progress)
            return self.client.create_page_hierarchy(mapping.pages, options)

        # One database per notebook; the notebook page becomes a database row
        results: list[ImportResult] = []
        for node, title in zip(mapping.pages, mapping.databases):
            database_id = self.client.find_or_create_database(title, parent)
            options = ImportOptions(
                parent_id=database_id, parent_is_database=True, on_progress=on_progress
            )
            results.extend(self.client.create_page_hierarchy([node], options))
        return results

    def _record(
        self,
        results: list[ImportResult],
        source_files: list[str] | None,
        parent: str,
        errors: list[str],
    ) -> str | None:
        db_path = self.config.storage.sqlite_path
        try:
            initialize_database(db_path)
            return record_import_run(db_path, results, source_files, parent, errors)
        except (sqlite3.Error, OSError):
            logger.exception("Failed to record import run in %s", db_path)
            return None

    def _walk(self, results: list[ImportResult]) -> Iterator[ImportResult]:
        for result in results:
            yield result
            yield from self._walk(result.children)

    def _unique_path(self, path: Path) -> Path:
        candidate = path
        counter = 2
        while candidate.exists():
            candidate = path.with_name(f"{path.stem} ({counter}){path.suffix}")
            counter += 1
        return candidate
