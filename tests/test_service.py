"""Tests for the migration service."""

import sqlite3
from pathlib import Path
from unittest.mock import MagicMock

from onenote_migrator.classifier import USER_MESSAGES
from onenote_migrator.config import AppConfig
from onenote_migrator.ingestion.extractor import ContentExtractor
from onenote_migrator.models.hierarchy import Hierarchy
from onenote_migrator.models.notion import ImportResult
from onenote_migrator.notion.client import NotionClient
from onenote_migrator.service import OneNoteService, sanitize_filename


def make_config(tmp_path: Path, **notion: object) -> AppConfig:
    return AppConfig(
        notion={"token": "secret", "parent_page_id": "root", **notion},
        export={"output_directory": str(tmp_path / "exported")},
        storage={"sqlite_path": str(tmp_path / "db" / "imports.db")},
    )


class TestSanitizeFilename:
    def test_unsafe_characters_replaced(self) -> None:
        assert sanitize_filename('a/b:c*d?"e"') == "a_b_c_d__e_"

    def test_trailing_dots_and_empty(self) -> None:
        assert sanitize_filename(" notes. ") == "notes"
        assert sanitize_filename("...") == "untitled"

    def test_truncated(self) -> None:
        assert len(sanitize_filename("x" * 300)) == 120


class TestProcessFiles:
    def test_batch_with_corrupted_file(
        self, tmp_path: Path, sample_one: Path, corrupted_one: Path
    ) -> None:
        service = OneNoteService(make_config(tmp_path))

        result = service.process_files([sample_one, corrupted_one])

        assert result.success is True
        assert result.hierarchy is not None
        assert result.hierarchy.total_notebooks == 2
        assert result.hierarchy.is_degraded

    def test_encrypted_package_keeps_rest_of_batch(
        self, tmp_path: Path, sample_one: Path, locked_onepkg: Path
    ) -> None:
        service = OneNoteService(make_config(tmp_path))

        result = service.process_files([sample_one, locked_onepkg])

        assert result.success is True
        assert result.hierarchy is not None
        assert [nb.name for nb in result.hierarchy.notebooks] == ["sample", "locked"]
        assert result.hierarchy.notebooks[1].sections[0].name == "Good"
        assert any(w.startswith("Locked.one:") for w in result.warnings)

    def test_unexpected_failure_becomes_result(self, tmp_path: Path) -> None:
        extractor = MagicMock(spec=ContentExtractor)
        extractor.extract_multiple.side_effect = PermissionError("denied")
        service = OneNoteService(make_config(tmp_path), extractor=extractor)

        result = service.process_files(["a.one"])

        assert result.success is False
        assert result.error == USER_MESSAGES["permission"]

    def test_validate_files(self, tmp_path: Path, sample_one: Path) -> None:
        service = OneNoteService(make_config(tmp_path))

        infos = service.validate_files([sample_one, tmp_path / "missing.one"])

        assert [info.is_valid for info in infos] == [True, False]
        assert infos[1].size == 0


class TestConversion:
    def test_options_from_config(self, tmp_path: Path) -> None:
        service = OneNoteService(make_config(tmp_path))

        options = service.conversion_options(include_title=False)

        assert options.preserve_tables is True
        assert options.handle_attachments is True
        assert options.include_title is False

    def test_convert_hierarchy_keyed_by_page(
        self, tmp_path: Path, sample_hierarchy: Hierarchy
    ) -> None:
        service = OneNoteService(make_config(tmp_path))

        results = service.convert_hierarchy(sample_hierarchy)

        page_ids = [page.id for _, _, page in sample_hierarchy.iter_pages()]
        assert list(results) == page_ids
        assert all(result.success for result in results.values())


class TestExportMarkdown:
    def test_writes_files_per_page(self, tmp_path: Path, sample_one: Path) -> None:
        service = OneNoteService(make_config(tmp_path))
        hierarchy = service.process_files([sample_one]).hierarchy
        assert hierarchy is not None

        written = service.export_markdown(hierarchy)

        folder = tmp_path / "exported" / "sample" / "sample"
        assert written == [folder / "Meeting Notes.md", folder / "Action Items.md"]
        text = written[0].read_text(encoding="utf-8")
        assert text.startswith("# Meeting Notes\n\n")
        assert "![diagram.png](diagram.png)" in text
        assert "[TAG:" not in text

    def test_duplicate_titles_get_unique_names(
        self, tmp_path: Path, sample_hierarchy: Hierarchy
    ) -> None:
        service = OneNoteService(make_config(tmp_path))
        out = tmp_path / "out"

        service.export_markdown(sample_hierarchy, out)
        written = service.export_markdown(sample_hierarchy, out)

        assert written[0].name == "Goals (2).md"

    def test_failed_conversion_exports_raw_content(self, tmp_path: Path) -> None:
        broken = tmp_path / "broken.one"
        broken.write_text("**unbalanced bold")
        service = OneNoteService(make_config(tmp_path))
        hierarchy = service.process_files([broken]).hierarchy
        assert hierarchy is not None

        written = service.export_markdown(hierarchy)

        assert written[0].read_text(encoding="utf-8") == (
            "# **unbalanced bold\n\n**unbalanced bold\n"
        )


class TestMigrate:
    """Test replicating a hierarchy with a mocked Notion client."""

    def _client(self) -> MagicMock:
        client = MagicMock(spec=NotionClient)
        client.create_page_hierarchy.return_value = [
            ImportResult(
                success=True,
                source_id="nb",
                title="nb",
                page_id="p1",
                children=[ImportResult(success=False, title="sec", error="boom")],
            )
        ]
        return client

    def test_report_and_history(self, tmp_path: Path, sample_one: Path) -> None:
        client = self._client()
        service = OneNoteService(make_config(tmp_path), client=client)
        hierarchy = service.process_files([sample_one]).hierarchy
        assert hierarchy is not None

        report = service.migrate(hierarchy, source_files=[str(sample_one)])

        assert report.success is False
        assert report.pages_created == 1
        assert report.pages_failed == 1
        assert report.errors == ["sec: boom"]
        assert report.run_id is not None

        conn = sqlite3.connect(str(tmp_path / "db" / "imports.db"))
        count = conn.execute("SELECT COUNT(*) FROM imported_pages").fetchone()[0]
        conn.close()
        assert count == 2

    def test_pages_converted_without_title(self, tmp_path: Path, sample_one: Path) -> None:
        client = self._client()
        service = OneNoteService(make_config(tmp_path), client=client)
        hierarchy = service.process_files([sample_one]).hierarchy
        assert hierarchy is not None

        service.migrate(hierarchy)

        nodes, options = client.create_page_hierarchy.call_args.args
        assert options.parent_id == "root"
        assert options.parent_is_database is False
        page_node = nodes[0].children[0].children[0]
        assert page_node.content == (
            "Discussed the roadmap for Q3.\n![diagram.png](diagram.png)"
        )

    def test_databases_created_per_notebook(self, tmp_path: Path, sample_one: Path) -> None:
        client = self._client()
        client.find_or_create_database.return_value = "db-1"
        config = make_config(tmp_path)
        config.mapping.create_databases = True
        service = OneNoteService(config, client=client)
        hierarchy = service.process_files([sample_one]).hierarchy
        assert hierarchy is not None

        service.migrate(hierarchy)

        client.find_or_create_database.assert_called_once_with("OneNote - sample", "root")
        _, options = client.create_page_hierarchy.call_args.args
        assert options.parent_id == "db-1"
        assert options.parent_is_database is True

    def test_missing_parent(self, tmp_path: Path, sample_hierarchy: Hierarchy) -> None:
        client = self._client()
        config = make_config(tmp_path, parent_page_id=None)
        service = OneNoteService(config, client=client)

        report = service.migrate(sample_hierarchy)

        assert report.success is False
        assert report.errors == ["No Notion parent page configured"]
        client.create_page_hierarchy.assert_not_called()

    def test_unexpected_failure_reported(
        self, tmp_path: Path, sample_hierarchy: Hierarchy
    ) -> None:
        client = self._client()
        client.create_page_hierarchy.side_effect = RuntimeError("exploded")
        service = OneNoteService(make_config(tmp_path), client=client)

        report = service.migrate(sample_hierarchy)

        assert report.success is False
        assert report.errors == ["An error occurred: exploded"]
