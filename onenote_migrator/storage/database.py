"""SQLite import-history database: initialization and run recording."""

import json
import sqlite3
from collections.abc import Iterator
from datetime import datetime
from pathlib import Path
from uuid import uuid4

from onenote_migrator.models.notion import ImportResult


def get_connection(db_path: str | Path) -> sqlite3.Connection:
    """Create a connection to the SQLite database.

    Args:
        db_path: Path to the SQLite database file.

    Returns:
        A sqlite3 Connection with row_factory set to Row.
    """
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


def initialize_database(db_path: str | Path) -> None:
    """Create the database schema if it doesn't exist.

    Args:
        db_path: Path to the SQLite database file.
    """
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = get_connection(db_path)
    try:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS import_runs (
                id TEXT PRIMARY KEY,
                source_files TEXT NOT NULL,
                parent_id TEXT,
                pages_created INTEGER DEFAULT 0,
                pages_failed INTEGER DEFAULT 0,
                errors_json TEXT,
                status TEXT DEFAULT 'completed',
                started_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                finished_at TIMESTAMP
            );

            CREATE TABLE IF NOT EXISTS imported_pages (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                run_id TEXT NOT NULL REFERENCES import_runs(id) ON DELETE CASCADE,
                source_id TEXT,
                title TEXT,
                notion_page_id TEXT,
                url TEXT,
                success INTEGER NOT NULL,
                error TEXT,
                retry_count INTEGER DEFAULT 0,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );
            """
        )
        conn.commit()
    finally:
        conn.close()


def record_import_run(
    db_path: str | Path,
    results: list[ImportResult],
    source_files: list[str] | None = None,
    parent_id: str | None = None,
    errors: list[str] | None = None,
) -> str:
    """Store one migration run and every page result it produced.

    The history is an audit trail; it is never read back to skip pages on
    a later run.

    Args:
        db_path: Path to the SQLite database file.
        results: Top-level import results; children are stored too.
        source_files: Files the run was extracted from.
        parent_id: Notion page the hierarchy was created under.
        errors: Run-level error messages.

    Returns:
        The id of the new run.
    """
    run_id = uuid4().hex
    rows = list(_walk(results))
    created = sum(1 for result in rows if result.success)

    conn = get_connection(db_path)
    try:
        conn.execute(
            """
            INSERT INTO import_runs
                (id, source_files, parent_id, pages_created, pages_failed,
                 errors_json, status, finished_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                run_id,
                json.dumps(source_files or []),
                parent_id,
                created,
                len(rows) - created,
                json.dumps(errors or []),
                "completed" if created == len(rows) else "partial",
                datetime.now().isoformat(),
            ),
        )
        conn.executemany(
            """
            INSERT INTO imported_pages
                (run_id, source_id, title, notion_page_id, url, success, error, retry_count)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    run_id,
                    result.source_id,
                    result.title,
                    result.page_id,
                    result.url,
                    int(result.success),
                    result.error,
                    result.metadata.retry_count,
                )
                for result in rows
            ],
        )
        conn.commit()
    finally:
        conn.close()

    return run_id


def _walk(results: list[ImportResult]) -> Iterator[ImportResult]:
    for result in results:
        yield result
        yield from _walk(result.children)
