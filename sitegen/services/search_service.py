"""Client-side search index (search.json)."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING

from sitegen.filesystem.frontmatter import generate_excerpt, title_from_filename
from sitegen.services.navigation_service import output_path_for

if TYPE_CHECKING:
    from pathlib import Path

    from sitegen.filesystem.frontmatter import DocumentData
    from sitegen.services.navigation_service import NavTree

logger = logging.getLogger(__name__)

SEARCH_FILENAME = "search.json"
SEARCH_SCRIPT_FILENAME = "search.js"
EXCERPT_LENGTH = 500
MAX_RESULTS = 20

SEARCH_SCRIPT = """\
// Sidebar search over search.json: case-insensitive match on title, section and text.
(function () {
  const input = document.getElementById("site-search");
  const results = document.getElementById("site-search-results");
  if (!input || !results) return;
  const indexUrl = input.dataset.index;
  const base = indexUrl.slice(0, indexUrl.length - "%(index)s".length);
  let entries = null;

  fetch(indexUrl)
    .then((response) => response.json())
    .then((data) => { entries = data; search(); })
    .catch((err) => console.error("Failed to load search index:", err));

  function search() {
    const query = input.value.toLowerCase().trim();
    results.replaceChildren();
    if (!entries || query.length < 2) return;
    const matches = entries.filter((entry) =>
      [entry.title, entry.section, entry.text].some((field) =>
        field.toLowerCase().includes(query)
      )
    ).slice(0, %(limit)d);
    if (matches.length === 0) {
      const empty = document.createElement("li");
      empty.className = "search-empty";
      empty.textContent = "No results";
      results.append(empty);
      return;
    }
    for (const entry of matches) {
      const item = document.createElement("li");
      const link = document.createElement("a");
      link.href = base + entry.href;
      link.textContent = entry.title;
      item.append(link);
      if (entry.section && entry.section !== entry.title) {
        const section = document.createElement("span");
        section.className = "search-section";
        section.textContent = entry.section;
        item.append(" ", section);
      }
      results.append(item);
    }
  }

  input.addEventListener("input", search);
})();
""" % {"index": SEARCH_FILENAME, "limit": MAX_RESULTS}


@dataclass
class SearchEntry:
    href: str
    title: str
    section: str
    text: str


def build_search_index(tree: NavTree, documents: dict[str, DocumentData]) -> list[SearchEntry]:
    """One entry per navigation page in reading order, then one per other document."""
    entries: list[SearchEntry] = []
    listed: set[str] = set()
    for item in tree.page_items():
        document = documents.get(item.file_path)
        if document is None:
            continue
        listed.add(item.file_path)
        section = tree.section_for(item.file_path)
        entries.append(
            SearchEntry(
                href=item.href,
                title=item.title,
                section=section.title if section is not None else "",
                text=generate_excerpt(document.content, max_length=EXCERPT_LENGTH),
            )
        )
    for file_path, document in documents.items():
        if file_path in listed:
            continue
        entries.append(
            SearchEntry(
                href=output_path_for(file_path),
                title=document.title or title_from_filename(file_path),
                section="",
                text=generate_excerpt(document.content, max_length=EXCERPT_LENGTH),
            )
        )
    return entries


def write_search_index(output_dir: Path, entries: list[SearchEntry]) -> Path:
    path = output_dir / SEARCH_FILENAME
    path.write_text(
        json.dumps([asdict(e) for e in entries], indent=2, ensure_ascii=False),
        encoding="utf-8",
    )
    logger.info("Wrote search index with %d entries", len(entries))
    return path


def write_search_script(output_dir: Path) -> Path:
    """Write the script that drives the sidebar search box."""
    path = output_dir / SEARCH_SCRIPT_FILENAME
    path.write_text(SEARCH_SCRIPT, encoding="utf-8")
    return path
