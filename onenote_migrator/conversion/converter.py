"""Page content conversion to markdown (and a pass-through docx target)."""

import logging
import re

from onenote_migrator.models.conversion import (
    ConversionOptions,
    ConversionResult,
    ValidationReport,
)
from onenote_migrator.models.hierarchy import Page
from onenote_migrator.progress import emit_progress

logger = logging.getLogger(__name__)

FENCE = re.compile(r"^\s*```")
IMAGE_MARKER = re.compile(r"\[image:([^\]]+)\]", re.IGNORECASE)
UNDERSCORE_BOLD = re.compile(r"__(.+?)__")
BULLET = re.compile(r"^(\s*)[\u2022\u25e6\u25aa]\s*")
ALL_CAPS_LINE = re.compile(r"[A-Z][A-Z\s]+")

# Literal header lines promoted to markdown headings
HEADER_LINES: dict[str, str] = {
    "Main Header": "# Main Header",
    "Sub Header": "## Sub Header",
}


def split_fenced(content: str) -> list[tuple[bool, list[str]]]:
    """Split content into runs of lines inside and outside code fences.

    Returns:
        ``(fenced, lines)`` pairs in document order. Fence delimiter lines
        belong to the fenced run they open or close.
    """
    runs: list[tuple[bool, list[str]]] = []
    fenced = False
    current: list[str] = []

    for line in content.split("\n"):
        if FENCE.match(line):
            if fenced:
                current.append(line)
                runs.append((True, current))
                current = []
                fenced = False
                continue
            if current:
                runs.append((False, current))
            current = [line]
            fenced = True
            continue
        current.append(line)

    if current:
        runs.append((fenced, current))
    return runs


class ContentConverter:
    """Converts a page body into the requested output format.

    Pipeline: validation, text formatting, image handling and final
    wrapping. Each stage reports progress through ``options.on_progress``.
    """

    def convert(self, page: Page, options: ConversionOptions | None = None) -> ConversionResult:
        """Convert a single page.

        Args:
            page: The page to convert.
            options: Conversion options; defaults to ConversionOptions().

        Returns:
            A ConversionResult. Validation problems and unexpected faults
            are reported through ``error`` instead of being raised.
        """
        opts = options or ConversionOptions()
        try:
            emit_progress(opts.on_progress, "validation", 10, "Validating content...")
            validation = self.validate_content(page.content)
            if not validation.is_valid:
                return ConversionResult(
                    success=False,
                    error=f"Content validation failed: {', '.join(validation.errors)}",
                )

            emit_progress(opts.on_progress, "conversion", 30, "Converting text content...")
            content = self.convert_text(page.content, opts)

            emit_progress(opts.on_progress, "image-processing", 60, "Processing images...")
            content, images = self.handle_images(page.content, content, opts)

            emit_progress(opts.on_progress, "formatting", 80, "Applying final formatting...")
            content = self.format_final(page.title, content, opts)

            emit_progress(opts.on_progress, "complete", 100, "Conversion completed successfully")
        except Exception as exc:
            logger.exception("Failed to convert page %s", page.id)
            return ConversionResult(success=False, error=str(exc) or "Unknown error occurred")

        return ConversionResult(
            success=True,
            content=content,
            images=images or None,
            metadata=self._result_metadata(page, opts),
        )

    def validate_content(self, content: str) -> ValidationReport:
        """Reject empty content and unbalanced bold or italic markers."""
        errors: list[str] = []
        if not content or not content.strip():
            errors.append("Content cannot be empty")
        if content.count("**") % 2:
            errors.append("Unclosed bold formatting")
        if content.count("*") % 2:
            errors.append("Unclosed italic formatting")
        return ValidationReport(is_valid=not errors, errors=errors)

    def convert_text(self, content: str, options: ConversionOptions) -> str:
        """Normalise bold, list and header markup outside code fences."""
        if not content:
            return ""
        if not options.preserve_formatting:
            return content

        lines: list[str] = []
        for fenced, run in split_fenced(content):
            if fenced:
                lines.extend(run)
            else:
                lines.extend(self._format_line(line) for line in run)
        return "\n".join(lines)

    def extract_images(self, content: str, options: ConversionOptions) -> list[str]:
        """Return the image paths referenced by ``[image:...]`` markers."""
        return [
            self._image_path(match.group(1).strip(), options)
            for match in IMAGE_MARKER.finditer(content)
        ]

    def handle_images(
        self, original: str, converted: str, options: ConversionOptions
    ) -> tuple[str, list[str]]:
        """Rewrite image markers into the target syntax.

        Returns:
            The rewritten content and the referenced image paths.
        """
        if not options.include_images:
            return converted, []

        images = self.extract_images(original, options)

        def render(match: re.Match[str]) -> str:
            name = match.group(1).strip()
            if options.output_format == "markdown":
                return f"![{name}]({self._image_path(name, options)})"
            return f"[Image: {name}]"

        return IMAGE_MARKER.sub(render, converted), images

    def format_final(self, title: str, content: str, options: ConversionOptions) -> str:
        if options.output_format == "markdown" and options.include_title:
            return f"# {title}\n\n{content}"
        return content

    def _format_line(self, line: str) -> str:
        line = UNDERSCORE_BOLD.sub(r"**\1**", line)
        line = BULLET.sub(r"\1- ", line)

        stripped = line.strip()
        if stripped in HEADER_LINES:
            return HEADER_LINES[stripped]
        if ALL_CAPS_LINE.fullmatch(stripped):
            return f"# {stripped}"
        return line

    def _image_path(self, name: str, options: ConversionOptions) -> str:
        if options.image_output_path:
            return f"{options.image_output_path.rstrip('/')}/{name}"
        return name

    def _result_metadata(self, page: Page, options: ConversionOptions) -> dict[str, object]:
        return {
            "format": options.output_format,
            "page_id": page.id,
            "title": page.title,
        }
