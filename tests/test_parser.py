"""Tests for the section parser."""

import pytest

from onenote_migrator.classifier import FALLBACK_SECTION_NAME, RAW_CONTENT_TEXT
from onenote_migrator.exceptions import InvalidFormatError, ParsingError
from onenote_migrator.ingestion.parser import SectionParser
from onenote_migrator.models.extraction import ParsingOptions

STRICT = ParsingOptions(fallback_on_error=False)


class TestParseSection:
    """Test splitting recovered text into pages."""

    def test_page_markers_split_pages(self, sample_bytes: bytes) -> None:
        section = SectionParser().parse_section(sample_bytes, source_name="sample")

        assert section.name == "sample"
        assert [page.title for page in section.pages] == ["Meeting Notes", "Action Items"]
        assert section.pages[0].content.startswith("Discussed the roadmap")
        assert section.pages[1].content.endswith("See budget.xlsx for details.")

    def test_references_assigned_to_pages(self, sample_bytes: bytes) -> None:
        section = SectionParser().parse_section(sample_bytes, source_name="sample")
        first, second = section.pages

        assert first.metadata["images"] == ["diagram.png"]
        assert first.tags == ["Important"]
        assert second.attachments == ["budget.xlsx"]
        assert second.tags == []
        assert "images" not in second.metadata

    def test_page_metadata(self, sample_bytes: bytes) -> None:
        section = SectionParser().parse_section(
            sample_bytes, source_name="sample", file_path="/data/sample.one"
        )

        assert section.metadata["file_path"] == "/data/sample.one"
        assert section.metadata["file_type"] == "one"
        assert [page.metadata["page_index"] for page in section.pages] == [0, 1]

    def test_metadata_can_be_disabled(self) -> None:
        options = ParsingOptions(include_metadata=False)
        section = SectionParser().parse_section(b"Just one line of text", options=options)

        assert section.metadata == {}
        assert section.pages[0].metadata == {"page_index": 0}

    def test_headers_split_pages(self) -> None:
        data = b"# Intro\nWelcome text\n## Details\nMore details here"
        section = SectionParser().parse_section(data)

        assert [page.title for page in section.pages] == ["Intro", "Details"]
        assert section.pages[1].content == "More details here"

    def test_rules_split_pages(self) -> None:
        data = b"First part text\n---\nSecond part text"
        section = SectionParser().parse_section(data)

        assert [page.title for page in section.pages] == ["First part text", "Second part text"]

    def test_single_page_without_separators(self) -> None:
        section = SectionParser().parse_section(b"Shopping list\nEggs and bread")

        assert len(section.pages) == 1
        assert section.pages[0].title == "Shopping list"
        assert section.name == "Shopping list"

    def test_corrupted_bytes_use_fallback(self, corrupted_bytes: bytes) -> None:
        section = SectionParser().parse_section(corrupted_bytes, source_name="broken")

        assert section.name == FALLBACK_SECTION_NAME
        assert section.pages[0].content == RAW_CONTENT_TEXT
        assert section.metadata["fallback"] is True

    def test_corrupted_bytes_raise_without_fallback(self, corrupted_bytes: bytes) -> None:
        with pytest.raises(InvalidFormatError) as exc_info:
            SectionParser().parse_section(corrupted_bytes, options=STRICT, file_path="x.one")

        assert exc_info.value.file_path == "x.one"
        assert exc_info.value.operation == "parse_section"

    def test_empty_bytes_raise_without_fallback(self) -> None:
        with pytest.raises(ParsingError):
            SectionParser().parse_section(b"   ", options=STRICT)


class TestRecoverText:
    """Test recovering readable text from binary data."""

    def test_utf16_run_recovered(self) -> None:
        data = (
            b"\x00\x01\x02\x03" * 50
            + "Hello from UTF16 land".encode("utf-16-le")
            + b"\x00\x01" * 50
        )
        parsed = SectionParser().parse_content(data)

        assert parsed.content == "Hello from UTF16 land"
        assert parsed.title == "Hello from UTF16 land"
        assert parsed.metadata["binary"] is True

    def test_ascii_runs_recovered(self) -> None:
        data = b"\x00\x01\xff" * 40 + b"Readable sentence inside noise" + b"\x00\xfe" * 40
        parsed = SectionParser().parse_content(data)

        assert parsed.content == "Readable sentence inside noise"

    def test_legacy_encoding_decoded(self) -> None:
        line = "Notes sur la cuisine française et le café crème.\n"
        parsed = SectionParser().parse_content((line * 5).encode("latin-1"))

        assert "cuisine fran" in parsed.content

    def test_whitespace_normalized_without_formatting(self) -> None:
        options = ParsingOptions(preserve_formatting=False)
        parsed = SectionParser().parse_content(b"Title   \n\n\n\nBody", options)

        assert parsed.content == "Title\n\nBody"

    def test_images_skipped_when_disabled(self, sample_bytes: bytes) -> None:
        options = ParsingOptions(extract_images=False)
        parsed = SectionParser().parse_content(sample_bytes, options)

        assert parsed.images == []
        assert parsed.attachments == ["budget.xlsx"]


class TestHelpers:
    def test_is_binary(self) -> None:
        parser = SectionParser()
        assert parser.is_binary(b"hello world") is False
        assert parser.is_binary(bytes(range(0, 32)) * 10) is True
        assert parser.is_binary(b"") is False

    def test_extract_title_skips_urls_emails_and_rules(self) -> None:
        text = "https://example.com\nuser@example.com\n---\nReal Title\nbody"
        assert SectionParser().extract_title(text) == "Real Title"

    def test_extract_title_strips_header_marks(self) -> None:
        assert SectionParser().extract_title("## Weekly Review") == "Weekly Review"

    def test_extract_title_none_when_all_lines_rejected(self) -> None:
        assert SectionParser().extract_title("x" * 150) is None
