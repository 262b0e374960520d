"""Best-effort section parser for OneNote files.

This module does not decode the OneNote revision-store format. It recovers
human-readable fragments from a section's bytes (plain text, printable
ASCII runs and UTF-16LE runs), picks a title, scans for image, attachment
and tag references, and splits the text into pages on separator lines.
A real decoder can replace it behind ``SectionParser.parse_section``.
"""

import logging
import re
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

import chardet

from onenote_migrator.classifier import ErrorClassifier
from onenote_migrator.config import ParsingSettings
from onenote_migrator.exceptions import InvalidFormatError, OneNoteError, ParsingError
from onenote_migrator.models.extraction import ParsedContent, ParsingOptions
from onenote_migrator.models.hierarchy import Page, Section

logger = logging.getLogger(__name__)

# Share of non-printable characters above which content is treated as binary
BINARY_THRESHOLD = 0.3
# Legacy (non UTF-8) text is only attempted when control bytes are this rare
LEGACY_CONTROL_LIMIT = 0.05
MIN_ENCODING_CONFIDENCE = 0.7

TITLE_MAX_LENGTH = 100
TITLE_SCAN_LINES = 10
DEFAULT_TITLE = "Untitled Page"
DEFAULT_SECTION_NAME = "Untitled Section"

CONTROL_CHARS = re.compile(r"[\x00-\x08\x0e-\x1f\x7f]")
CONTROL_OR_HIGH = re.compile(r"[\x00-\x08\x0e-\x1f\x7f-\xff]")
URL_PATTERN = re.compile(r"https?://|www\.", re.IGNORECASE)

IMAGE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\[image:([^\]\r\n]+)\]", re.IGNORECASE),
    re.compile(r"!\[[^\]\r\n]*\]\(([^)\s]+)\)"),
    re.compile(r"[\w\-./\\]+\.(?:jpe?g|png|gif|bmp|tiff?|webp)\b", re.IGNORECASE),
)

ATTACHMENT_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\[ATTACHMENT:([^\]:\r\n]+)", re.IGNORECASE),
    re.compile(r"\[FILE:([^\]\r\n]+)\]", re.IGNORECASE),
    re.compile(r"[\w\-./\\]+\.(?:pdf|docx?|xlsx?|pptx?|txt|zip|rar)\b", re.IGNORECASE),
)

TAG_PATTERN = re.compile(r"\[TAG:([^\]:\r\n]+)", re.IGNORECASE)

# A line that starts a new page (header or "Page N:" marker) or ends one (rule)
PAGE_SEPARATOR = re.compile(
    r"^\s*(?:"
    r"(?P<header>\#{1,2})\s+(?P<header_title>\S.*?)\s*\#*"
    r"|(?P<marker>Page\s+\d+)\s*:\s*(?P<marker_title>.*?)"
    r"|(?P<rule>-{3,}|={3,}|\*{3,}|_{3,})"
    r")\s*$",
    re.IGNORECASE,
)


class SectionParser:
    """Turns raw section bytes into a Section with one or more pages.

    Recovery strategy (priority order):
    1. Decode as text (UTF-8, then chardet for legacy encodings); small
       non-binary text is trusted as is.
    2. Otherwise collect runs of printable characters of a minimum length.
    3. Title: first short line without URLs or "@", else a placeholder.
    4. Image / attachment / tag references scanned from the raw bytes.
    5. Pages split on headers, "Page N:" markers and horizontal rules.

    Args:
        settings: Parsing thresholds; defaults to ParsingSettings().
        classifier: Error classifier providing the fallback section.
    """

    def __init__(
        self,
        settings: ParsingSettings | None = None,
        classifier: ErrorClassifier | None = None,
    ) -> None:
        self._settings = settings or ParsingSettings()
        self._classifier = classifier or ErrorClassifier()
        run = self._settings.min_text_run
        self._ascii_run = re.compile(rf"[\x20-\x7e\t]{{{run},}}")
        self._utf16_run = re.compile(rb"(?:[\x20-\x7e]\x00){%d,}" % run)
        self._unicode_run = re.compile(rf"[^\x00-\x08\x0a-\x1f\x7f\ufffd]{{{run},}}")

    def parse_section(
        self,
        data: bytes,
        source_name: str | None = None,
        options: ParsingOptions | None = None,
        file_path: str | Path | None = None,
    ) -> Section:
        """Parse the bytes of one section.

        Args:
            data: Raw section bytes.
            source_name: Section name, usually the file stem.
            options: Parsing options; defaults to ParsingOptions().
            file_path: Source path, recorded in metadata and on faults.

        Returns:
            A Section with at least one page, or the fallback section when
            the input is corrupted and ``fallback_on_error`` is set.

        Raises:
            ParsingError: Recoverable fault and fallback disabled.
            InvalidFormatError: Corrupted input and fallback disabled.
        """
        opts = options or ParsingOptions()
        path_str = str(file_path) if file_path is not None else None

        try:
            parsed = self.parse_content(data, opts)
        except OneNoteError as exc:
            exc.file_path = exc.file_path or path_str
            exc.operation = exc.operation or "parse_section"
            return self._fallback_or_raise(exc, opts)

        now = datetime.now()
        section_metadata: dict[str, object] = {}
        if opts.include_metadata:
            section_metadata = {
                "file_type": "one",
                "file_size": len(data),
                "parsed_at": now.isoformat(),
            }
            if path_str:
                section_metadata["file_path"] = path_str

        pages = self._build_pages(parsed, section_metadata, opts, now)
        name = source_name or parsed.title or DEFAULT_SECTION_NAME

        return Section(
            name=name,
            pages=pages,
            created_at=now,
            modified_at=now,
            metadata=section_metadata,
        )

    def parse_content(
        self, data: bytes, options: ParsingOptions | None = None
    ) -> ParsedContent:
        """Recover title, text and references from raw bytes.

        Raises:
            ParsingError: The bytes are empty or cannot be decoded.
            InvalidFormatError: No readable text could be recovered.
        """
        opts = options or ParsingOptions()
        if not data.strip():
            raise ParsingError("Failed to parse section: no content")

        text = self._recover_text(data)
        if not text:
            raise InvalidFormatError("Corrupted data: no readable text recovered")

        if not opts.preserve_formatting:
            text = self._normalize_whitespace(text)

        scan_text = data[: self._settings.max_scan_bytes].decode("utf-8", errors="replace")
        images = self._scan_references(IMAGE_PATTERNS, scan_text) if opts.extract_images else []
        attachments = self._scan_references(ATTACHMENT_PATTERNS, scan_text)

        return ParsedContent(
            title=self.extract_title(text) or DEFAULT_TITLE,
            content=text,
            metadata={"file_size": len(data), "binary": self.is_binary(data)},
            images=images,
            attachments=attachments,
            tags=self._dedupe(m.group(1).strip() for m in TAG_PATTERN.finditer(scan_text)),
        )

    def is_binary(self, data: bytes) -> bool:
        """Return True when the non-printable share exceeds the threshold."""
        if not data:
            return False
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError:
            text = data.decode("latin-1")
            return len(CONTROL_OR_HIGH.findall(text)) / len(text) > BINARY_THRESHOLD
        return self._is_binary_text(text)

    def extract_title(self, text: str) -> str | None:
        """Return the first short, URL-free, "@"-free line of ``text``."""
        lines = [line.strip() for line in text.splitlines() if line.strip()]
        for line in lines[:TITLE_SCAN_LINES]:
            match = PAGE_SEPARATOR.match(line)
            if match and match.group("rule"):
                continue
            candidate = line.lstrip("#").strip()
            if (
                candidate
                and len(candidate) < TITLE_MAX_LENGTH
                and "@" not in candidate
                and not URL_PATTERN.search(candidate)
            ):
                return candidate
        return None

    def _recover_text(self, data: bytes) -> str:
        text = self._decode_text(data)
        if text is not None and not self._is_binary_text(text):
            if len(text) <= self._settings.direct_text_limit:
                return text.strip()
            runs = [m.group().strip() for m in self._unicode_run.finditer(text)]
            return "\n".join(run for run in runs if run)

        return "\n".join(self._binary_runs(data))

    def _decode_text(self, data: bytes) -> str | None:
        """Decode ``data`` as text, or return None when it looks binary.

        Tries UTF-8 first, then uses chardet for legacy encodings.
        """
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError:
            pass

        control_ratio = len(CONTROL_CHARS.findall(data.decode("latin-1"))) / len(data)
        if control_ratio > LEGACY_CONTROL_LIMIT:
            return None

        detected = chardet.detect(data)
        encoding = detected.get("encoding")
        confidence = detected.get("confidence") or 0
        if not encoding:
            return None

        if confidence < MIN_ENCODING_CONFIDENCE:
            logger.warning(
                "Low confidence encoding detection: %s (%.0f%%)",
                encoding,
                confidence * 100,
            )

        try:
            return data.decode(encoding)
        except (UnicodeDecodeError, LookupError) as exc:
            raise ParsingError(f"Invalid character encoding: {encoding}") from exc

    def _binary_runs(self, data: bytes) -> list[str]:
        """Collect printable ASCII and UTF-16LE runs ordered by offset."""
        found: list[tuple[int, str]] = []

        for match in self._ascii_run.finditer(data.decode("latin-1")):
            found.append((match.start(), match.group()))
        for match in self._utf16_run.finditer(data):
            found.append((match.start(), match.group().decode("utf-16-le")))

        found.sort(key=lambda item: item[0])
        runs = [run.strip() for _, run in found]
        return [run for run in runs if run and self._looks_like_text(run)]

    def _looks_like_text(self, run: str) -> bool:
        letters = sum(1 for c in run if c.isalpha() or c.isspace())
        return letters / len(run) >= 0.6

    def _is_binary_text(self, text: str) -> bool:
        if not text:
            return False
        non_printable = len(CONTROL_CHARS.findall(text)) + text.count("\ufffd")
        return non_printable / len(text) > BINARY_THRESHOLD

    def _normalize_whitespace(self, text: str) -> str:
        lines = [line.rstrip() for line in text.splitlines()]
        return re.sub(r"\n{3,}", "\n\n", "\n".join(lines)).strip()

    def _scan_references(
        self, patterns: tuple[re.Pattern[str], ...], text: str
    ) -> list[str]:
        found: list[str] = []
        for pattern in patterns:
            for match in pattern.finditer(text):
                found.append(match.group(1) if match.groups() else match.group())
        return self._dedupe(ref.strip() for ref in found)

    def _dedupe(self, items: Iterable[str]) -> list[str]:
        return list(dict.fromkeys(item for item in items if item))

    def _split_pages(self, text: str) -> list[tuple[str | None, str]]:
        """Split ``text`` on separator lines.

        Returns:
            ``(title_hint, body)`` pairs, or an empty list when the text
            contains no separator.
        """
        chunks: list[tuple[str | None, str]] = []
        title: str | None = None
        lines: list[str] = []
        separators = 0

        def flush() -> None:
            body = "\n".join(lines).strip()
            if title is not None or body:
                chunks.append((title, body))

        for line in text.splitlines():
            match = PAGE_SEPARATOR.match(line)
            if not match:
                lines.append(line)
                continue

            separators += 1
            flush()
            lines = []
            if match.group("rule"):
                title = None
            elif match.group("header"):
                title = match.group("header_title").strip()
            else:
                title = match.group("marker_title").strip() or match.group("marker")

        flush()
        return chunks if separators else []

    def _build_pages(
        self,
        parsed: ParsedContent,
        section_metadata: dict[str, object],
        options: ParsingOptions,
        timestamp: datetime,
    ) -> list[Page]:
        chunks = self._split_pages(parsed.content)
        if not chunks:
            chunks = [(parsed.title, parsed.content)]

        bodies = [body for _, body in chunks]
        image_owner = self._assign_references(parsed.images, bodies)
        attachment_owner = self._assign_references(parsed.attachments, bodies)

        pages: list[Page] = []
        for index, (title_hint, body) in enumerate(chunks):
            title = title_hint or self.extract_title(body) or f"{DEFAULT_TITLE} {index + 1}"
            metadata = {**section_metadata, "page_index": index}
            images = [ref for ref, owner in image_owner.items() if owner == index]
            if images:
                metadata["images"] = images

            pages.append(
                Page(
                    title=title,
                    content=body,
                    created_at=timestamp,
                    modified_at=timestamp,
                    metadata=metadata,
                    attachments=[
                        ref for ref, owner in attachment_owner.items() if owner == index
                    ],
                    tags=[tag for tag in parsed.tags if tag in body],
                )
            )

        return pages

    def _assign_references(self, refs: list[str], bodies: list[str]) -> dict[str, int]:
        """Map each reference to the first page whose body mentions it.

        References found only in the raw bytes belong to the first page.
        """
        owners: dict[str, int] = {}
        for ref in refs:
            owners[ref] = next(
                (index for index, body in enumerate(bodies) if ref in body), 0
            )
        return owners

    def _fallback_or_raise(self, fault: OneNoteError, options: ParsingOptions) -> Section:
        if options.fallback_on_error:
            fallback = self._classifier.fallback_for(fault, "parsing")
            if isinstance(fallback, Section):
                logger.warning(
                    "Using fallback section for %s: %s",
                    fault.file_path or "<bytes>",
                    fault,
                )
                return fallback
        raise fault
