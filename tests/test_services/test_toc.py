"""Tests for table of contents extraction."""

from __future__ import annotations

from sitegen.pandoc.renderer import add_heading_anchors
from sitegen.services.toc_service import TocEntry, extract_toc, render_toc


class TestExtractToc:
    def test_nesting(self) -> None:
        rendered = (
            '<h2 id="values">Values</h2><p>x</p>'
            '<h3 id="numbers">Numbers</h3>'
            '<h2 id="types">Types</h2>'
        )
        toc = extract_toc(rendered)
        assert [e.anchor for e in toc] == ["values", "types"]
        assert toc[0].children == [TocEntry(level=3, anchor="numbers", text="Numbers")]

    def test_depth_limit(self) -> None:
        rendered = '<h2 id="a">A</h2><h3 id="b">B</h3><h4 id="c">C</h4>'
        toc = extract_toc(rendered, depth=2)
        assert len(toc) == 1
        assert toc[0].children == []

    def test_headings_without_id_are_skipped(self) -> None:
        assert extract_toc("<h2>No id</h2>") == []

    def test_level_jump_nests_under_nearest(self) -> None:
        toc = extract_toc('<h1 id="t">T</h1><h3 id="deep">Deep</h3>')
        assert toc[0].children[0].anchor == "deep"

    def test_anchor_links_and_markup_are_stripped(self) -> None:
        rendered = add_heading_anchors("<h2>Using <code>let</code> &amp; const</h2>")
        toc = extract_toc(rendered)
        assert toc[0].text == "Using let & const"
        assert toc[0].anchor == "using-let-const"


class TestRenderToc:
    def test_empty(self) -> None:
        assert render_toc([]) == ""

    def test_nested_lists(self) -> None:
        entries = [
            TocEntry(2, "a", "A", children=[TocEntry(3, "b", "B <tag>")]),
        ]
        out = render_toc(entries, title="Contents")
        assert out.startswith('<nav id="TOC"')
        assert '<h2 id="toc-title">Contents</h2>' in out
        assert '<li><a href="#a">A</a><ul><li><a href="#b">B &lt;tag&gt;</a></li></ul></li>' in out
