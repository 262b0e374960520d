"""Tests for the import-history database."""

import json
import sqlite3
from pathlib import Path

from onenote_migrator.models.notion import ImportMetadata, ImportResult
from onenote_migrator.storage.database import (
    get_connection,
    initialize_database,
    record_import_run,
)


def _tables(db_path: Path) -> list[str]:
    conn = sqlite3.connect(str(db_path))
    cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name")
    tables = [row[0] for row in cursor.fetchall()]
    conn.close()
    return tables


class TestInitializeDatabase:
    def test_creates_tables(self, tmp_path: Path) -> None:
        db_path = tmp_path / "test.db"
        initialize_database(db_path)

        tables = _tables(db_path)
        assert "import_runs" in tables
        assert "imported_pages" in tables

    def test_idempotent(self, tmp_path: Path) -> None:
        db_path = tmp_path / "test.db"
        initialize_database(db_path)
        initialize_database(db_path)  # Should not raise

        assert "import_runs" in _tables(db_path)

    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        db_path = tmp_path / "nested" / "dir" / "test.db"
        initialize_database(db_path)
        assert db_path.exists()

    def test_import_runs_table_schema(self, tmp_path: Path) -> None:
        db_path = tmp_path / "test.db"
        initialize_database(db_path)

        conn = sqlite3.connect(str(db_path))
        cursor = conn.execute("PRAGMA table_info(import_runs)")
        columns = {row[1]: row[2] for row in cursor.fetchall()}
        conn.close()

        assert "id" in columns
        assert "source_files" in columns
        assert "pages_created" in columns
        assert "pages_failed" in columns
        assert "errors_json" in columns
        assert "status" in columns

    def test_imported_pages_table_schema(self, tmp_path: Path) -> None:
        db_path = tmp_path / "test.db"
        initialize_database(db_path)

        conn = sqlite3.connect(str(db_path))
        cursor = conn.execute("PRAGMA table_info(imported_pages)")
        columns = {row[1]: row[2] for row in cursor.fetchall()}
        conn.close()

        assert "run_id" in columns
        assert "source_id" in columns
        assert "notion_page_id" in columns
        assert "success" in columns
        assert "retry_count" in columns


class TestGetConnection:
    def test_returns_connection_with_row_factory(self, tmp_path: Path) -> None:
        db_path = tmp_path / "test.db"
        initialize_database(db_path)

        conn = get_connection(db_path)
        assert conn.row_factory == sqlite3.Row
        conn.close()

    def test_wal_mode_enabled(self, tmp_path: Path) -> None:
        db_path = tmp_path / "test.db"
        initialize_database(db_path)

        conn = get_connection(db_path)
        mode = conn.execute("PRAGMA journal_mode").fetchone()[0]
        conn.close()

        assert mode == "wal"


class TestRecordImportRun:
    def _results(self) -> list[ImportResult]:
        page = ImportResult(
            success=False,
            source_id="pg",
            title="Page",
            error="Notion API error 400: bad",
            metadata=ImportMetadata(retry_count=2),
        )
        return [
            ImportResult(
                success=True,
                source_id="nb",
                title="Notebook",
                page_id="nb-id",
                url="https://notion.so/nbid",
                children=[page],
            )
        ]

    def test_stores_run_and_nested_pages(self, tmp_path: Path) -> None:
        db_path = tmp_path / "test.db"
        initialize_database(db_path)

        run_id = record_import_run(
            db_path,
            self._results(),
            source_files=["a.one"],
            parent_id="root",
            errors=["Page: Notion API error 400: bad"],
        )

        conn = get_connection(db_path)
        run = conn.execute("SELECT * FROM import_runs WHERE id = ?", (run_id,)).fetchone()
        pages = conn.execute(
            "SELECT * FROM imported_pages WHERE run_id = ? ORDER BY id", (run_id,)
        ).fetchall()
        conn.close()

        assert run["pages_created"] == 1
        assert run["pages_failed"] == 1
        assert run["status"] == "partial"
        assert run["parent_id"] == "root"
        assert json.loads(run["source_files"]) == ["a.one"]
        assert json.loads(run["errors_json"]) == ["Page: Notion API error 400: bad"]
        assert [row["source_id"] for row in pages] == ["nb", "pg"]
        assert pages[0]["notion_page_id"] == "nb-id"
        assert pages[1]["success"] == 0
        assert pages[1]["retry_count"] == 2

    def test_all_successful_run_is_completed(self, tmp_path: Path) -> None:
        db_path = tmp_path / "test.db"
        initialize_database(db_path)

        run_id = record_import_run(
            db_path, [ImportResult(success=True, source_id="nb", page_id="x")]
        )

        conn = get_connection(db_path)
        run = conn.execute("SELECT * FROM import_runs WHERE id = ?", (run_id,)).fetchone()
        conn.close()

        assert run["status"] == "completed"
        assert json.loads(run["source_files"]) == []

    def test_each_run_gets_new_id(self, tmp_path: Path) -> None:
        db_path = tmp_path / "test.db"
        initialize_database(db_path)

        first = record_import_run(db_path, [])
        second = record_import_run(db_path, [])

        assert first != second
