"""YAML front matter parser for content documents."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import frontmatter

from sitegen.services.datetime_service import resolve_document_date

if TYPE_CHECKING:
    from datetime import datetime

RECOGNIZED_FIELDS: frozenset[str] = frozenset(
    {
        "title",
        "subtitle",
        "description",
        "author",
        "date",
        "date-format",
        "draft",
    }
)

_FENCE_RE = re.compile(r"^(?P<indent> {0,3})(?P<fence>`{3,}|~{3,})(?P<info>.*)$")
_CELL_INFO_RE = re.compile(r"^\{\s*([A-Za-z0-9_+-]+)([^}]*)\}\s*$")
_MD_LINK_RE = re.compile(r'(?<!!)\[[^\]]*\]\(\s*<?([^)\s>]+)>?(?:\s+"[^"]*")?\s*\)')


@dataclass
class CodeBlock:
    """A fenced code block found in a document body."""

    language: str | None
    code: str
    is_cell: bool = False
    line: int = 1


@dataclass
class DocumentData:
    """Parsed content document."""

    file_path: str
    title: str | None
    content: str
    raw_content: str
    subtitle: str | None = None
    description: str | None = None
    author: str | None = None
    date: datetime | None = None
    date_format: str | None = None
    draft: bool = False
    code_blocks: list[CodeBlock] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)


def extract_title(content: str) -> str | None:
    """Extract the title from the first level-1 ``#`` heading outside code."""
    in_code = False
    for line in content.split("\n"):
        stripped = line.strip()
        if _FENCE_RE.match(line):
            in_code = not in_code
            continue
        if in_code:
            continue
        if stripped.startswith("# ") and not stripped.startswith("## "):
            return stripped.removeprefix("# ").strip() or None
    return None


def title_from_filename(file_path: str) -> str:
    """Derive a human title from a file name: ``browserStorage.qmd`` -> ``Browser Storage``."""
    name = file_path.rsplit("/", maxsplit=1)[-1]
    name = re.sub(r"\.(qmd|md)$", "", name)
    name = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", " ", name)
    return name.replace("-", " ").replace("_", " ").strip().title() or "Untitled"


def strip_leading_heading(content: str, title: str | None) -> str:
    """Remove the first ``# heading`` from content if it matches the title.

    Skips leading blank lines. If the first non-blank line is not a level-1
    heading or does not match *title*, the content is returned unchanged.
    """
    if not title:
        return content
    lines = content.split("\n")
    for i, line in enumerate(lines):
        stripped = line.strip()
        if not stripped:
            continue
        if stripped.startswith("# ") and not stripped.startswith("## "):
            if stripped.removeprefix("# ").strip() == title:
                return "\n".join(lines[i + 1 :])
        break
    return content


def extract_code_blocks(content: str) -> list[CodeBlock]:
    """Collect fenced code blocks.

    A block is closed by a fence of the same character that is at least as
    long as the opening one, so longer fences can wrap shorter ones.  An
    unterminated fence runs to the end of the document.
    """
    blocks: list[CodeBlock] = []
    lines = content.split("\n")
    opening: str | None = None
    language: str | None = None
    is_cell = False
    start = 0
    body: list[str] = []

    for number, line in enumerate(lines, start=1):
        match = _FENCE_RE.match(line)
        if opening is None:
            if match is None:
                continue
            opening = match.group("fence")
            language, is_cell = _parse_info_string(match.group("info"))
            start = number
            body = []
            continue
        if (
            match is not None
            and match.group("fence")[0] == opening[0]
            and len(match.group("fence")) >= len(opening)
            and not match.group("info").strip()
        ):
            blocks.append(
                CodeBlock(language=language, code="\n".join(body), is_cell=is_cell, line=start)
            )
            opening = None
            continue
        body.append(line)

    if opening is not None:
        blocks.append(
            CodeBlock(language=language, code="\n".join(body), is_cell=is_cell, line=start)
        )
    return blocks


def _parse_info_string(info: str) -> tuple[str | None, bool]:
    info = info.strip()
    if not info:
        return None, False
    cell = _CELL_INFO_RE.match(info)
    if cell:
        return cell.group(1), True
    if info.startswith("{"):
        # Attribute block such as {.js .numberLines}
        classes = re.findall(r"\.([A-Za-z0-9_+-]+)", info)
        return (classes[0] if classes else None), False
    return info.split()[0], False


def normalize_cell_fences(content: str) -> str:
    """Rewrite executable-cell fences (```` ```{js} ````) as plain code fences.

    Cells are shown, never run, so pandoc only needs to highlight them.
    """
    out: list[str] = []
    for line in content.split("\n"):
        match = _FENCE_RE.match(line)
        if match is not None:
            cell = _CELL_INFO_RE.match(match.group("info").strip())
            if cell:
                line = f"{match.group('indent')}{match.group('fence')}{cell.group(1)}"
        out.append(line)
    return "\n".join(out)


def _optional_text(value: object) -> str | None:
    if value is None:
        return None
    if isinstance(value, list):
        value = ", ".join(str(v) for v in value)
    text = str(value).strip()
    return text or None


def _author_text(value: object) -> str | None:
    # author may be a name, a list of names, or a list of {name: ...} mappings
    if isinstance(value, dict):
        return _optional_text(value.get("name"))
    if isinstance(value, list):
        names = [_author_text(item) for item in value]
        return _optional_text([n for n in names if n])
    return _optional_text(value)


def parse_document(
    raw_content: str,
    file_path: str = "",
    modified_at: datetime | None = None,
) -> DocumentData:
    """Parse a content file with optional YAML front matter into DocumentData.

    Raises ``yaml.YAMLError`` if the front matter block is malformed.
    """
    post = frontmatter.loads(raw_content)

    # Title: prefer front matter (non-empty), fall back to heading extraction.
    # Non-string values (e.g. title: 42) are coerced to string.
    fm_title = post.get("title")
    if fm_title is not None and not isinstance(fm_title, str):
        fm_title = str(fm_title)
    if fm_title and fm_title.strip():
        title: str | None = fm_title.strip()
    else:
        title = extract_title(post.content)

    content = strip_leading_heading(post.content, title)
    extra = {k: v for k, v in post.metadata.items() if k not in RECOGNIZED_FIELDS}

    return DocumentData(
        file_path=file_path,
        title=title,
        content=content,
        raw_content=raw_content,
        subtitle=_optional_text(post.get("subtitle")),
        description=_optional_text(post.get("description")),
        author=_author_text(post.get("author")),
        date=resolve_document_date(post.get("date"), modified_at=modified_at),
        date_format=_optional_text(post.get("date-format")),
        draft=bool(post.get("draft", False)),
        code_blocks=extract_code_blocks(content),
        extra=extra,
    )


def extract_links(content: str) -> list[str]:
    """Targets of inline markdown links (``[text](target)``) outside code blocks."""
    targets: list[str] = []
    in_code_block = False
    for line in content.split("\n"):
        if _FENCE_RE.match(line):
            in_code_block = not in_code_block
            continue
        if in_code_block:
            continue
        targets.extend(match.group(1) for match in _MD_LINK_RE.finditer(line))
    return targets


def generate_excerpt(content: str, max_length: int = 300) -> str:
    """Generate a plain-text excerpt for the search index.

    Drops headings, code blocks and images; strips link, emphasis and
    inline-code markup.
    """
    lines: list[str] = []
    in_code_block = False
    for line in content.split("\n"):
        stripped = line.strip()
        if _FENCE_RE.match(line):
            in_code_block = not in_code_block
            continue
        if in_code_block or not stripped:
            continue
        if stripped.startswith(("#", "![", ":::")):
            continue
        stripped = re.sub(r"\[([^\]]+)\]\([^)]+\)", r"\1", stripped)
        stripped = re.sub(r"[*_]{1,3}([^*_]+)[*_]{1,3}", r"\1", stripped)
        stripped = re.sub(r"`([^`]+)`", r"\1", stripped)
        lines.append(stripped)

    text = " ".join(lines)
    if len(text) > max_length:
        text = text[:max_length].rsplit(" ", maxsplit=1)[0] + "..."
    return text
