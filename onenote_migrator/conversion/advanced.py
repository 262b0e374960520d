"""Advanced page conversion: tables, attachments, tags and metadata."""

import logging
import re
import time

from onenote_migrator.conversion.converter import ContentConverter, split_fenced
from onenote_migrator.models.conversion import (
    AttachmentData,
    ConversionOptions,
    ConversionResult,
    PerformanceInfo,
    TableData,
    TagData,
)
from onenote_migrator.models.hierarchy import Page
from onenote_migrator.progress import emit_progress

logger = logging.getLogger(__name__)

TABLE_LINE = re.compile(r"^\s*\|.*\|\s*$")
TABLE_SEPARATOR_CELL = re.compile(r"^:?-{3,}:?$")
CAPTION_LINE = re.compile(r"^\s*Table\b[^:\n]*:\s*(?P<caption>.+?)\s*$")
ATTACHMENT_MARKER = re.compile(r"\[ATTACHMENT:([^\]]+)\]")
TAG_MARKER = re.compile(r"\[TAG:([^\]]+)\]")
CODE_FENCE = re.compile(r"```[ \t]*(\w+)?[ \t]*\n(.*?)```", re.DOTALL)
NESTED_LIST_ITEM = re.compile(r"^(?P<indent>[ \t]*)[-*+]\s+(?P<text>.+)$")

SPECIAL_CHARACTERS: dict[str, str] = {
    "\u201c": '"',
    "\u201d": '"',
    "\u2018": "'",
    "\u2019": "'",
    "\u2014": "--",
    "\u2013": "-",
    "\u2026": "...",
}


class AdvancedContentConverter(ContentConverter):
    """Extends the basic pipeline with structural element extraction.

    Tables, attachment markers and tag markers are pulled out of the body
    into the result, then stripped from the text so the output never holds
    both a raw marker and its rendered form. Extracted tables are appended
    back as markdown tables.

    ``performance_mode`` selects how much normalisation runs first:
    ``fast`` none, ``balanced`` special characters, ``thorough`` nested
    lists, table cell spacing and special characters.
    """

    def convert(self, page: Page, options: ConversionOptions | None = None) -> ConversionResult:
        opts = options or ConversionOptions()
        started = time.perf_counter()

        try:
            emit_progress(opts.on_progress, "parsing", 10, "Parsing content...")
            content = self.optimize_for_performance(page.content, opts)

            validation = self.validate_content(content)
            if not validation.is_valid:
                return ConversionResult(
                    success=False,
                    error=f"Content validation failed: {', '.join(validation.errors)}",
                )

            if opts.preserve_code_blocks:
                content = self.convert_code_blocks(content)

            tables: list[TableData] = []
            attachments: list[AttachmentData] = []
            tags: list[TagData] = []
            metadata = self._result_metadata(page, opts)

            if opts.preserve_tables:
                emit_progress(opts.on_progress, "table-processing", 20, "Processing tables...")
                tables = self.extract_tables(content)
            if opts.handle_attachments:
                emit_progress(
                    opts.on_progress, "attachment-processing", 40, "Processing attachments..."
                )
                attachments = self.extract_attachments(content)
            if opts.convert_tags:
                emit_progress(opts.on_progress, "tag-conversion", 50, "Converting tags...")
                tags = self.extract_tags(content)
            if opts.include_metadata:
                emit_progress(
                    opts.on_progress, "metadata-extraction", 60, "Extracting metadata..."
                )
                metadata.update(self.extract_page_metadata(page))

            emit_progress(opts.on_progress, "formatting", 70, "Formatting content...")
            content = self.clean_processed_content(content, opts)
            content = self.convert_text(content, opts)

            emit_progress(opts.on_progress, "image-processing", 80, "Processing images...")
            content, images = self.handle_images(content, content, opts)

            if tables:
                content = f"{content}\n\n{self.tables_to_markdown(tables)}".strip()

            content = self.format_final(page.title, content, opts)
            emit_progress(opts.on_progress, "complete", 100, "Conversion completed successfully")
        except Exception as exc:
            logger.exception("Advanced conversion failed for page %s", page.id)
            return ConversionResult(success=False, error=str(exc) or "Unknown error occurred")

        return ConversionResult(
            success=True,
            content=content,
            images=images or None,
            tables=tables or None,
            attachments=attachments or None,
            tags=tags or None,
            metadata=metadata,
            performance=PerformanceInfo(
                processing_time=time.perf_counter() - started,
                items_processed=len(tables) + len(attachments) + len(tags),
            ),
        )

    def extract_tables(self, content: str) -> list[TableData]:
        """Collect pipe tables, each paired with a preceding caption line.

        A caption is a ``Table ...: caption`` line directly above the first
        table row. Markdown separator rows are skipped and rows whose cell
        count differs from the header are dropped.
        """
        tables: list[TableData] = []

        for fenced, lines in split_fenced(content):
            if fenced:
                continue

            block: list[str] = []
            caption: str | None = None
            for index, line in enumerate(lines):
                if TABLE_LINE.match(line):
                    if not block and index > 0:
                        caption_match = CAPTION_LINE.match(lines[index - 1])
                        caption = caption_match.group("caption") if caption_match else None
                    block.append(line)
                    continue
                if block:
                    tables.extend(self._build_table(block, caption))
                    block, caption = [], None
            if block:
                tables.extend(self._build_table(block, caption))

        return tables

    def extract_attachments(self, content: str) -> list[AttachmentData]:
        """Parse ``[ATTACHMENT:name:size=..:type=..]`` markers."""
        attachments: list[AttachmentData] = []
        for match in ATTACHMENT_MARKER.finditer(content):
            name, fields = self._split_marker(match.group(1))
            extension = name.rsplit(".", 1)[-1].lower() if "." in name else ""
            size = fields.get("size", "0")
            attachments.append(
                AttachmentData(
                    name=name,
                    type=fields.get("type", extension),
                    size=int(size) if size.isdigit() else 0,
                    path=name,
                    metadata=fields,
                )
            )
        return attachments

    def extract_tags(self, content: str) -> list[TagData]:
        """Parse ``[TAG:name:color=..:category=..]`` markers."""
        tags: list[TagData] = []
        for match in TAG_MARKER.finditer(content):
            name, fields = self._split_marker(match.group(1))
            tags.append(
                TagData(
                    name=name,
                    color=fields.get("color"),
                    category=fields.get("category"),
                    metadata=fields,
                )
            )
        return tags

    def extract_page_metadata(self, page: Page) -> dict[str, object]:
        return {
            "id": page.id,
            "title": page.title,
            "created_at": page.created_at.isoformat(),
            "modified_at": page.modified_at.isoformat(),
            **page.metadata,
        }

    def tables_to_markdown(self, tables: list[TableData]) -> str:
        blocks: list[str] = []
        for table in tables:
            lines: list[str] = []
            if table.caption:
                lines.extend([f"## {table.caption}", ""])
            lines.append("| " + " | ".join(table.headers) + " |")
            lines.append("| " + " | ".join("---" for _ in table.headers) + " |")
            lines.extend("| " + " | ".join(row) + " |" for row in table.rows)
            blocks.append("\n".join(lines))
        return "\n\n".join(blocks)

    def convert_code_blocks(self, content: str) -> str:
        """Normalise fence openers to a bare language tag."""
        return CODE_FENCE.sub(
            lambda m: f"```{m.group(1) or ''}\n{m.group(2)}```", content
        )

    def clean_processed_content(self, content: str, options: ConversionOptions) -> str:
        """Strip extracted markers and tables from the body.

        Only element kinds enabled in ``options`` are stripped. Applying
        the cleaning twice gives the same text as applying it once.
        """
        lines: list[str] = []
        for fenced, run in split_fenced(content):
            if fenced:
                lines.extend(run)
                continue
            if options.preserve_tables:
                run = self._drop_tables(run)
            lines.extend(run)

        cleaned = "\n".join(lines)
        if options.handle_attachments:
            cleaned = ATTACHMENT_MARKER.sub(
                lambda m: f"[{self._split_marker(m.group(1))[0]}]", cleaned
            )
        if options.convert_tags:
            cleaned = TAG_MARKER.sub("", cleaned)

        cleaned = "\n".join(line.rstrip() for line in cleaned.split("\n"))
        cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
        return cleaned.strip()

    def optimize_for_performance(self, content: str, options: ConversionOptions) -> str:
        if options.performance_mode == "fast":
            return content
        if options.performance_mode == "thorough":
            content = self._normalize_nested_lists(content)
            content = self._normalize_table_cells(content)
        return self.normalize_special_characters(content)

    def normalize_special_characters(self, content: str) -> str:
        for char, replacement in SPECIAL_CHARACTERS.items():
            content = content.replace(char, replacement)
        return content

    def _build_table(self, lines: list[str], caption: str | None) -> list[TableData]:
        rows = [self._parse_row(line) for line in lines]
        rows = [row for row in rows if row and not self._is_separator(row)]
        if len(rows) < 2:
            return []

        headers = rows[0]
        body = [row for row in rows[1:] if len(row) == len(headers)]
        return [TableData(headers=headers, rows=body, caption=caption)]

    def _drop_tables(self, lines: list[str]) -> list[str]:
        """Remove table blocks (and their captions) that form a table."""
        kept: list[str] = []
        block: list[str] = []

        def flush() -> None:
            if block and self._build_table(block, None):
                if kept and CAPTION_LINE.match(kept[-1]):
                    kept.pop()
            else:
                kept.extend(block)
            block.clear()

        for line in lines:
            if TABLE_LINE.match(line):
                block.append(line)
                continue
            flush()
            kept.append(line)
        flush()
        return kept

    def _parse_row(self, line: str) -> list[str]:
        return [cell.strip() for cell in line.strip().strip("|").split("|")]

    def _is_separator(self, row: list[str]) -> bool:
        return all(TABLE_SEPARATOR_CELL.match(cell) for cell in row)

    def _split_marker(self, body: str) -> tuple[str, dict[str, str]]:
        name, *parts = body.split(":")
        fields: dict[str, str] = {}
        for part in parts:
            key, sep, value = part.partition("=")
            if sep:
                fields[key.strip()] = value.strip()
        return name.strip(), fields

    def _normalize_nested_lists(self, content: str) -> str:
        def rewrite(match: re.Match[str]) -> str:
            indent = match.group("indent").replace("\t", "  ")
            return f"{indent}- {match.group('text')}"

        return "\n".join(
            NESTED_LIST_ITEM.sub(rewrite, line)
            for line in content.split("\n")
        )

    def _normalize_table_cells(self, content: str) -> str:
        return "\n".join(
            "| " + " | ".join(self._parse_row(line)) + " |" if TABLE_LINE.match(line) else line
            for line in content.split("\n")
        )
