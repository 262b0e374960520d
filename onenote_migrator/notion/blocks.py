"""Markdown-ish page text to Notion block payloads."""

import re
from datetime import date, datetime
from typing import Any

RICH_TEXT_MAX_CHARS = 2000

NUMBERED_ITEM = re.compile(r"^\d+[.)]\s+(.*)$")
DIVIDER = re.compile(r"^(?:-{3,}|\*{3,}|_{3,})$")
FENCE = re.compile(r"^```\s*(\w*)\s*$")

# Leading line markers mapped to block types, longest first
LINE_PREFIXES: tuple[tuple[str, str], ...] = (
    ("### ", "heading_3"),
    ("## ", "heading_2"),
    ("# ", "heading_1"),
    ("- ", "bulleted_list_item"),
    ("* ", "bulleted_list_item"),
    ("> ", "quote"),
)

# Values accepted by the API for code.language
CODE_LANGUAGES = frozenset(
    {
        "abap", "arduino", "bash", "basic", "c", "clojure", "coffeescript", "c++",
        "c#", "css", "dart", "diff", "docker", "elixir", "elm", "erlang", "flow",
        "fortran", "f#", "gherkin", "glsl", "go", "graphql", "groovy", "haskell",
        "html", "java", "javascript", "json", "julia", "kotlin", "latex", "less",
        "lisp", "livescript", "lua", "makefile", "markdown", "markup", "matlab",
        "mermaid", "nix", "objective-c", "ocaml", "pascal", "perl", "php",
        "plain text", "powershell", "prolog", "protobuf", "python", "r", "reason",
        "ruby", "rust", "sass", "scala", "scheme", "scss", "shell", "sql", "swift",
        "typescript", "vb.net", "verilog", "vhdl", "visual basic", "webassembly",
        "xml", "yaml", "java/c/c++/c#",
    }
)

CODE_LANGUAGE_ALIASES: dict[str, str] = {
    "py": "python",
    "python3": "python",
    "js": "javascript",
    "jsx": "javascript",
    "ts": "typescript",
    "tsx": "typescript",
    "sh": "shell",
    "zsh": "shell",
    "console": "shell",
    "yml": "yaml",
    "cpp": "c++",
    "cxx": "c++",
    "cs": "c#",
    "csharp": "c#",
    "fsharp": "f#",
    "rb": "ruby",
    "rs": "rust",
    "golang": "go",
    "kt": "kotlin",
    "md": "markdown",
    "ps1": "powershell",
    "tex": "latex",
    "objc": "objective-c",
    "dockerfile": "docker",
    "vb": "visual basic",
    "text": "plain text",
    "txt": "plain text",
}


def rich_text(text: str) -> list[dict[str, Any]]:
    """Split text into rich-text items no longer than the API limit."""
    if not text:
        return []
    return [
        {"type": "text", "text": {"content": text[i : i + RICH_TEXT_MAX_CHARS]}}
        for i in range(0, len(text), RICH_TEXT_MAX_CHARS)
    ]


def block(block_type: str, text: str) -> dict[str, Any]:
    return {
        "object": "block",
        "type": block_type,
        block_type: {"rich_text": rich_text(text)},
    }


def content_to_blocks(content: str) -> list[dict[str, Any]]:
    """Infer Notion blocks from leading line markers.

    Headings (``#`` to ``###``), bulleted (``-``/``*``) and numbered items,
    quotes and horizontal rules map to their block types; fenced code
    becomes a code block; every other non-empty line is a paragraph.

    Args:
        content: Page body, usually converted markdown.

    Returns:
        Block payloads in document order.
    """
    blocks: list[dict[str, Any]] = []
    code: list[str] | None = None
    language = ""

    for raw in content.split("\n"):
        line = raw.strip()

        fence = FENCE.match(line)
        if code is not None:
            if line == "```":
                blocks.append(code_block("\n".join(code), language))
                code = None
            else:
                code.append(raw)
            continue
        if fence:
            code, language = [], fence.group(1)
            continue

        if not line:
            continue
        if DIVIDER.match(line):
            blocks.append({"object": "block", "type": "divider", "divider": {}})
            continue

        numbered = NUMBERED_ITEM.match(line)
        if numbered:
            blocks.append(block("numbered_list_item", numbered.group(1)))
            continue

        for prefix, block_type in LINE_PREFIXES:
            if line.startswith(prefix):
                blocks.append(block(block_type, line[len(prefix) :]))
                break
        else:
            blocks.append(block("paragraph", line))

    if code is not None:
        blocks.append(code_block("\n".join(code), language))

    return blocks


def code_block(text: str, language: str = "") -> dict[str, Any]:
    return {
        "object": "block",
        "type": "code",
        "code": {"rich_text": rich_text(text), "language": code_language(language)},
    }


def code_language(tag: str) -> str:
    """Map a fence tag to a language the API accepts, else ``plain text``."""
    name = tag.strip().lower()
    name = CODE_LANGUAGE_ALIASES.get(name, name)
    return name if name in CODE_LANGUAGES else "plain text"


def title_property(title: str) -> dict[str, Any]:
    return {"title": rich_text(title[:RICH_TEXT_MAX_CHARS] or "Untitled")}


def convert_property_value(value: Any) -> dict[str, Any]:
    """Convert a Python value into a Notion database property value."""
    if isinstance(value, bool):
        return {"checkbox": value}
    if isinstance(value, (int, float)):
        return {"number": value}
    if isinstance(value, (datetime, date)):
        return {"date": {"start": value.isoformat()}}
    return {"rich_text": rich_text(str(value))}
