"""Tests for the basic content converter."""

from onenote_migrator.conversion.converter import ContentConverter, split_fenced
from onenote_migrator.models.conversion import ConversionOptions
from onenote_migrator.models.hierarchy import Page
from onenote_migrator.progress import Progress

BODY = "__bold__ text\n• item\nMain Header\nIMPORTANT NOTES\n[image:pic.png]"


class TestConvert:
    """Test the full conversion pipeline."""

    def test_markdown_conversion(self) -> None:
        page = Page(title="Notes", content=BODY)
        options = ConversionOptions(image_output_path="images/")

        result = ContentConverter().convert(page, options)

        assert result.success is True
        assert result.content == (
            "# Notes\n\n"
            "**bold** text\n"
            "- item\n"
            "# Main Header\n"
            "# IMPORTANT NOTES\n"
            "![pic.png](images/pic.png)"
        )
        assert result.images == ["images/pic.png"]
        assert result.metadata == {"format": "markdown", "page_id": page.id, "title": "Notes"}

    def test_docx_passes_content_through(self) -> None:
        page = Page(title="Notes", content="Plain text\n[image:pic.png]")
        options = ConversionOptions(output_format="docx")

        result = ContentConverter().convert(page, options)

        assert result.success is True
        assert result.content == "Plain text\n[Image: pic.png]"

    def test_images_excluded(self) -> None:
        page = Page(title="Notes", content="See [image:pic.png]")
        options = ConversionOptions(include_images=False, include_title=False)

        result = ContentConverter().convert(page, options)

        assert result.content == "See [image:pic.png]"
        assert result.images is None

    def test_empty_content_fails_validation(self) -> None:
        result = ContentConverter().convert(Page(title="Empty", content="   "))

        assert result.success is False
        assert result.error == "Content validation failed: Content cannot be empty"

    def test_unclosed_bold_fails_validation(self) -> None:
        result = ContentConverter().convert(Page(title="Bold", content="**bold text"))

        assert result.success is False
        assert "Unclosed bold formatting" in (result.error or "")

    def test_unclosed_italic_fails_validation(self) -> None:
        result = ContentConverter().convert(Page(title="Italic", content="*italic text"))

        assert result.success is False
        assert "Unclosed italic formatting" in (result.error or "")

    def test_progress_stages(self) -> None:
        events: list[Progress] = []
        options = ConversionOptions(on_progress=events.append)

        ContentConverter().convert(Page(title="P", content="text"), options)

        assert [e.stage for e in events] == [
            "validation",
            "conversion",
            "image-processing",
            "formatting",
            "complete",
        ]
        assert [e.percentage for e in events] == [10, 30, 60, 80, 100]

    def test_failing_progress_callback_does_not_abort(self) -> None:
        def broken(_: Progress) -> None:
            raise RuntimeError("listener crashed")

        options = ConversionOptions(on_progress=broken)
        result = ContentConverter().convert(Page(title="P", content="text"), options)

        assert result.success is True


class TestConvertText:
    def test_code_fences_untouched(self) -> None:
        content = "```\nRAW CAPS\n__kept__\n```\nLOUD LINE"
        converted = ContentConverter().convert_text(content, ConversionOptions())

        assert converted == "```\nRAW CAPS\n__kept__\n```\n# LOUD LINE"

    def test_formatting_disabled(self) -> None:
        options = ConversionOptions(preserve_formatting=False)
        assert ContentConverter().convert_text("__x__", options) == "__x__"

    def test_nested_bullets_keep_indent(self) -> None:
        converted = ContentConverter().convert_text("  ◦ child", ConversionOptions())
        assert converted == "  - child"


class TestSplitFenced:
    def test_runs_in_order(self) -> None:
        runs = split_fenced("a\n```py\ncode\n```\nb")

        assert runs == [
            (False, ["a"]),
            (True, ["```py", "code", "```"]),
            (False, ["b"]),
        ]

    def test_unclosed_fence_runs_to_end(self) -> None:
        assert split_fenced("```\ncode") == [(True, ["```", "code"])]
