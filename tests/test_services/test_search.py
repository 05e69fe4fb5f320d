"""Tests for the search index."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from sitegen.filesystem.content_manager import ContentManager
from sitegen.services.navigation_service import build_navigation
from sitegen.services.search_service import (
    SEARCH_FILENAME,
    SEARCH_SCRIPT_FILENAME,
    build_search_index,
    write_search_index,
    write_search_script,
)

if TYPE_CHECKING:
    from pathlib import Path


def test_entries_follow_reading_order(project_dir: Path) -> None:
    index = ContentManager(content_dir=project_dir).build_index()
    tree = build_navigation(index.config, index.documents)
    entries = build_search_index(tree, index.documents)

    assert [e.href for e in entries] == [
        "basic.html",
        "variables.html",
        "creational.html",
        "behavioral.html",
    ]
    assert entries[0].title == "Basics"
    assert entries[0].section == "Basics"
    assert entries[2].section == "Design Patterns"
    assert entries[0].text.startswith("JavaScript runs in the browser.")
    assert "console.log" not in entries[0].text


def test_write_search_index(project_dir: Path, tmp_path: Path) -> None:
    index = ContentManager(content_dir=project_dir).build_index()
    tree = build_navigation(index.config, index.documents)
    path = write_search_index(tmp_path, build_search_index(tree, index.documents))

    assert path == tmp_path / SEARCH_FILENAME
    data = json.loads(path.read_text())
    assert data[1] == {
        "href": "variables.html",
        "title": "Variables and Scoping",
        "section": "Variables and Scoping",
        "text": "Use let and const.",
    }


def test_documents_outside_navigation_follow(project_dir: Path) -> None:
    (project_dir / "notes").mkdir()
    (project_dir / "notes" / "extra.md").write_text("Loose notes.\n")
    index = ContentManager(content_dir=project_dir).build_index()
    tree = build_navigation(index.config, index.documents)
    entries = build_search_index(tree, index.documents)

    assert len(entries) == 5
    assert entries[-1].href == "notes/extra.html"
    assert entries[-1].title == "Extra"
    assert entries[-1].section == ""


def test_write_search_script(tmp_path: Path) -> None:
    path = write_search_script(tmp_path)

    assert path == tmp_path / SEARCH_SCRIPT_FILENAME
    script = path.read_text()
    assert "fetch(indexUrl)" in script
    assert SEARCH_FILENAME in script
    assert "innerHTML" not in script
