"""Table of contents extracted from rendered page HTML."""

from __future__ import annotations

import html
import re
from dataclasses import dataclass, field

_HEADING_RE = re.compile(r"<h([1-6])([^>]*)>(.*?)</h\1>", re.DOTALL)
_ID_RE = re.compile(r'\sid="([^"]*)"')
_ANCHOR_LINK_RE = re.compile(r'<a class="anchor-section"[^>]*>.*?</a>', re.DOTALL)
_TAG_RE = re.compile(r"<[^>]+>")


@dataclass
class TocEntry:
    level: int
    anchor: str
    text: str
    children: list[TocEntry] = field(default_factory=list)


def extract_toc(rendered: str, depth: int = 3) -> list[TocEntry]:
    """Collect headings of level ``<= depth`` into a nested outline.

    Headings without an id cannot be linked and are skipped.  A heading that
    jumps more than one level down is nested under the closest shallower one.
    """
    roots: list[TocEntry] = []
    stack: list[TocEntry] = []
    for match in _HEADING_RE.finditer(rendered):
        level = int(match.group(1))
        if level > depth:
            continue
        id_match = _ID_RE.search(match.group(2))
        if id_match is None:
            continue
        content = _ANCHOR_LINK_RE.sub("", match.group(3))
        text = html.unescape(_TAG_RE.sub("", content)).strip()
        entry = TocEntry(level=level, anchor=id_match.group(1), text=text)

        while stack and stack[-1].level >= level:
            stack.pop()
        if stack:
            stack[-1].children.append(entry)
        else:
            roots.append(entry)
        stack.append(entry)
    return roots


def render_toc(entries: list[TocEntry], title: str = "On this page") -> str:
    """Render the outline as nested lists inside a ``<nav>``; empty outlines render nothing."""
    if not entries:
        return ""

    def _list(items: list[TocEntry]) -> str:
        parts = ["<ul>"]
        for item in items:
            anchor = html.escape(item.anchor, quote=True)
            parts.append(f'<li><a href="#{anchor}">{html.escape(item.text)}</a>')
            if item.children:
                parts.append(_list(item.children))
            parts.append("</li>")
        parts.append("</ul>")
        return "".join(parts)

    return (
        f'<nav id="TOC" class="toc" role="doc-toc"><h2 id="toc-title">{html.escape(title)}</h2>'
        f"{_list(entries)}</nav>"
    )
