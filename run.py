"""Entry point for the OneNote migrator.

Usage: python run.py FILE [FILE ...]

Extracts the given .one/.onepkg files, exports them as markdown and, when a
Notion token and parent page are configured, migrates them into Notion.
"""

import logging
import sys
from pathlib import Path

from onenote_migrator.config import load_config
from onenote_migrator.service import OneNoteService
from onenote_migrator.storage.database import initialize_database


def main() -> int:
    """Initialize the application and run one migration."""
    config = load_config()

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.logging.file:
        Path(config.logging.file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(config.logging.file, encoding="utf-8"))
    logging.basicConfig(
        level=config.logging.level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )
    logger = logging.getLogger("onenote_migrator")

    # Ensure required directories exist
    Path(config.export.output_directory).mkdir(parents=True, exist_ok=True)
    initialize_database(config.storage.sqlite_path)

    files = sys.argv[1:]
    if not files:
        print(__doc__)
        return 2

    service = OneNoteService(config)
    extraction = service.process_files(files)
    for warning in extraction.warnings:
        logger.warning(warning)
    if not extraction.success or extraction.hierarchy is None:
        logger.error("Extraction failed: %s", extraction.error)
        return 1

    exported = service.export_markdown(extraction.hierarchy)
    logger.info("Wrote %d markdown files", len(exported))

    if not (config.notion.token and config.notion.parent_page_id):
        logger.info("Notion token or parent page not configured; skipping import")
        return 0

    report = service.migrate(extraction.hierarchy, source_files=files)
    logger.info(
        "Migration finished: %d pages created, %d failed (run %s)",
        report.pages_created,
        report.pages_failed,
        report.run_id,
    )
    for error in report.errors:
        logger.warning(error)
    return 0 if report.success else 1


if __name__ == "__main__":
    sys.exit(main())
