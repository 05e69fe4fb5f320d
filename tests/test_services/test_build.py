"""Tests for the site build pipeline."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from sitegen.config import Settings
from sitegen.exceptions import BuildError
from sitegen.filesystem.content_manager import ContentManager
from sitegen.filesystem.project_config import HtmlFormatConfig
from sitegen.pandoc.renderer import PandocRenderer
from sitegen.services.build_service import build_site, load_and_lint
from sitegen.services.navigation_service import build_navigation, pages_to_render
from tests.conftest import SAMPLE_CONFIG, SAMPLE_DOCUMENTS, FakeRenderer, write_project

if TYPE_CHECKING:
    from pathlib import Path


class TestBuildSite:
    async def test_writes_pages_in_reading_order(
        self, test_settings: Settings, fake_renderer: FakeRenderer
    ) -> None:
        result = await build_site(test_settings, renderer=fake_renderer)

        assert result.output_dir == test_settings.content_dir / "_site"
        assert result.pages_written == [
            "basic.html",
            "variables.html",
            "creational.html",
            "behavioral.html",
            "index.html",
        ]
        assert fake_renderer.calls == [
            "basic.qmd",
            "variables.qmd",
            "creational.qmd",
            "behavioral.qmd",
        ]
        assert result.warnings and "empty-section" in result.warnings[0]

    async def test_page_content(self, test_settings: Settings, fake_renderer: FakeRenderer) -> None:
        result = await build_site(test_settings, renderer=fake_renderer)
        page = (result.output_dir / "creational.html").read_text()

        assert "<title>Creational Patterns – JavaScript Crash Course</title>" in page
        assert 'id="TOC"' in page
        assert '<a href="#builder">Builder</a>' in page
        assert 'href="behavioral.html#observer"' in page
        assert 'aria-current="page"' in page
        assert "nav-page-next" in page

    async def test_redirect_index_and_assets(
        self, test_settings: Settings, fake_renderer: FakeRenderer
    ) -> None:
        result = await build_site(test_settings, renderer=fake_renderer)
        out = result.output_dir

        assert 'url=basic.html' in (out / "index.html").read_text()
        assert (out / "styles.css").read_text() == "body { color: black; }\n"
        search = json.loads((out / "search.json").read_text())
        assert [e["href"] for e in search][:2] == ["basic.html", "variables.html"]
        assert "site-search-results" in (out / "search.js").read_text()

    async def test_index_document_is_rendered(
        self, tmp_path: Path, fake_renderer: FakeRenderer
    ) -> None:
        documents = {**SAMPLE_DOCUMENTS, "index.qmd": "---\ntitle: Welcome\n---\nHello.\n"}
        root = write_project(tmp_path / "site", documents=documents)
        settings = Settings(_env_file=None, content_dir=root)

        result = await build_site(settings, renderer=fake_renderer)

        assert result.pages_written[-1] == "index.html"
        assert "http-equiv" not in (result.output_dir / "index.html").read_text()
        assert "Welcome" in (result.output_dir / "index.html").read_text()

    async def test_output_dir_override(
        self, project_dir: Path, tmp_path: Path, fake_renderer: FakeRenderer
    ) -> None:
        public = tmp_path / "public"
        settings = Settings(_env_file=None, content_dir=project_dir, output_dir=public)
        result = await build_site(settings, renderer=fake_renderer)
        assert (tmp_path / "public" / "basic.html").is_file()
        assert result.output_dir == tmp_path / "public"

    async def test_section_landing_page_is_rendered(
        self, tmp_path: Path, fake_renderer: FakeRenderer
    ) -> None:
        config = (
            "website:\n  sidebar:\n    contents:\n"
            "      - section: Patterns\n        href: patterns.qmd\n"
            "        contents:\n          - a.qmd\n"
        )
        documents = {"patterns.qmd": "# Pattern catalogue\n\nOverview.\n", "a.qmd": "# A\n"}
        root = write_project(tmp_path / "site", config=config, documents=documents)

        result = await build_site(Settings(_env_file=None, content_dir=root), fake_renderer)

        assert result.pages_written == ["patterns.html", "a.html", "index.html"]
        landing = (result.output_dir / "patterns.html").read_text()
        assert "<title>Pattern catalogue" in landing
        assert 'class="active" aria-current="page" href="patterns.html">Patterns</a>' in landing
        page = (result.output_dir / "a.html").read_text()
        assert 'nav-page-previous" href="patterns.html">&larr; Patterns</a>' in page
        assert "url=patterns.html" in (result.output_dir / "index.html").read_text()

    async def test_drafts_are_skipped(self, tmp_path: Path, fake_renderer: FakeRenderer) -> None:
        documents = dict(SAMPLE_DOCUMENTS)
        documents["behavioral.qmd"] = "---\ntitle: Behavioral\ndraft: true\n---\nWIP\n"
        root = write_project(tmp_path / "site", documents=documents)
        result = await build_site(Settings(_env_file=None, content_dir=root), fake_renderer)
        assert "behavioral.html" not in result.pages_written

    async def test_linked_orphan_is_rendered(
        self, tmp_path: Path, fake_renderer: FakeRenderer
    ) -> None:
        config = "website:\n  sidebar:\n    contents:\n      - a.qmd\n"
        documents = {"a.qmd": "# A\n\nSee [notes](notes.qmd).\n", "notes.qmd": "# Notes\n"}
        root = write_project(tmp_path / "site", config=config, documents=documents)

        result = await build_site(Settings(_env_file=None, content_dir=root), fake_renderer)

        assert result.pages_written == ["a.html", "notes.html", "index.html"]
        assert (result.output_dir / "notes.html").is_file()
        search = json.loads((result.output_dir / "search.json").read_text())
        assert [e["href"] for e in search] == ["a.html", "notes.html"]


class TestStrictness:
    async def test_lint_errors_abort_strict_build(
        self, test_settings: Settings, fake_renderer: FakeRenderer
    ) -> None:
        (test_settings.content_dir / "variables.qmd").unlink()

        with pytest.raises(BuildError, match="1 content error") as exc_info:
            await build_site(test_settings, renderer=fake_renderer)

        assert [d.code for d in exc_info.value.diagnostics] == ["missing-document"]
        assert fake_renderer.calls == []
        assert not (test_settings.content_dir / "_site").exists()

    async def test_non_strict_skips_failing_documents(
        self, project_dir: Path, fake_renderer: FakeRenderer
    ) -> None:
        (project_dir / "variables.qmd").unlink()
        settings = Settings(_env_file=None, content_dir=project_dir, strict=False)

        result = await build_site(settings, renderer=fake_renderer)

        assert "variables.html" not in result.pages_written
        assert "basic.html" in result.pages_written
        page = (result.output_dir / "basic.html").read_text()
        assert '<span class="nav-missing">Variables</span>' in page

    async def test_render_error_strict(self, test_settings: Settings) -> None:
        renderer = FakeRenderer(fail_on={"creational.qmd"})
        with pytest.raises(BuildError, match="Failed to render creational.qmd"):
            await build_site(test_settings, renderer=renderer)

    async def test_render_error_non_strict(self, project_dir: Path) -> None:
        renderer = FakeRenderer(fail_on={"creational.qmd"})
        settings = Settings(_env_file=None, content_dir=project_dir, strict=False)

        result = await build_site(settings, renderer=renderer)

        assert "creational.html" not in result.pages_written
        assert "behavioral.html" in result.pages_written
        assert any("Skipping creational.qmd" in w for w in result.warnings)

    async def test_dropped_pandoc_connection_non_strict(self, project_dir: Path) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if "Builder" in json.loads(request.content)["text"]:
                raise httpx.ReadError("connection reset", request=request)
            return httpx.Response(200, json={"output": "<p>ok</p>"})

        server = MagicMock(base_url="http://127.0.0.1:3031", ensure_running=AsyncMock())
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        settings = Settings(_env_file=None, content_dir=project_dir, strict=False)

        async with PandocRenderer(server, HtmlFormatConfig(), client=client) as renderer:
            result = await build_site(settings, renderer=renderer)

        assert "creational.html" not in result.pages_written
        assert "behavioral.html" in result.pages_written
        assert any("connection reset" in w for w in result.warnings)


class TestFreeze:
    async def test_frozen_pages_are_reused(self, test_settings: Settings) -> None:
        first = await build_site(test_settings, renderer=FakeRenderer())
        assert len(first.rendered) == 4

        second_renderer = FakeRenderer()
        second = await build_site(test_settings, renderer=second_renderer)
        assert second_renderer.calls == []
        assert sorted(second.reused) == sorted(first.rendered)
        assert (test_settings.content_dir / "_freeze" / "basic.qmd" / "render.json").is_file()

    async def test_frozen_build_picks_up_edited_text(self, test_settings: Settings) -> None:
        await build_site(test_settings, renderer=FakeRenderer())
        edited = "---\ntitle: Basics\n---\nEDITED CONTENT\n"
        (test_settings.content_dir / "basic.qmd").write_text(edited)

        renderer = FakeRenderer()
        result = await build_site(test_settings, renderer=renderer)

        assert renderer.calls == ["basic.qmd"]
        assert "EDITED CONTENT" in (result.output_dir / "basic.html").read_text()

    async def test_frozen_build_survives_format_changes(self, tmp_path: Path) -> None:
        root = write_project(tmp_path / "site")
        settings = Settings(_env_file=None, content_dir=root)
        await build_site(settings, renderer=FakeRenderer())

        (root / "_quarto.yml").write_text(SAMPLE_CONFIG.replace("toc-depth: 3", "toc-depth: 2"))
        renderer = FakeRenderer()
        result = await build_site(settings, renderer=renderer)

        assert renderer.calls == []
        assert len(result.reused) == 4

    async def test_auto_freeze_rerenders_format_changes(self, tmp_path: Path) -> None:
        config = SAMPLE_CONFIG.replace("freeze: true", "freeze: auto")
        root = write_project(tmp_path / "site", config=config)
        settings = Settings(_env_file=None, content_dir=root)
        await build_site(settings, renderer=FakeRenderer())

        (root / "_quarto.yml").write_text(config.replace("toc-depth: 3", "toc-depth: 2"))
        renderer = FakeRenderer()
        await build_site(settings, renderer=renderer)

        assert len(renderer.calls) == 4

    async def test_auto_freeze_rerenders_changed_documents(self, tmp_path: Path) -> None:
        config = SAMPLE_CONFIG.replace("freeze: true", "freeze: auto")
        root = write_project(tmp_path / "site", config=config)
        settings = Settings(_env_file=None, content_dir=root)
        await build_site(settings, renderer=FakeRenderer())

        (root / "basic.qmd").write_text("---\ntitle: Basics\n---\nChanged.\n")
        renderer = FakeRenderer()
        result = await build_site(settings, renderer=renderer)

        assert renderer.calls == ["basic.qmd"]
        assert len(result.reused) == 3

    async def test_freeze_disabled_always_renders(self, tmp_path: Path) -> None:
        config = SAMPLE_CONFIG.replace("freeze: true", "freeze: false")
        root = write_project(tmp_path / "site", config=config)
        settings = Settings(_env_file=None, content_dir=root)
        await build_site(settings, renderer=FakeRenderer())
        renderer = FakeRenderer()
        await build_site(settings, renderer=renderer)
        assert len(renderer.calls) == 4


class TestPagesToRender:
    def test_render_list_adds_extra_files(self, tmp_path: Path) -> None:
        config = (
            "project:\n  render:\n    - about.qmd\n"
            "website:\n  sidebar:\n    contents:\n      - a.qmd\n"
        )
        documents = {"a.qmd": "# A\n", "about.qmd": "# About\n", "index.qmd": "# Home\n"}
        root = write_project(tmp_path / "site", config=config, documents=documents)
        index = ContentManager(content_dir=root).build_index()
        tree = build_navigation(index.config, index.documents)
        assert pages_to_render(index, tree, set()) == ["a.qmd", "index.qmd", "about.qmd"]
        assert pages_to_render(index, tree, {"a.qmd"}) == ["index.qmd", "about.qmd"]

    def test_documents_outside_navigation_are_rendered(self, tmp_path: Path) -> None:
        config = "website:\n  sidebar:\n    contents:\n      - b.qmd\n"
        documents = {
            "a.qmd": "# A\n",
            "b.qmd": "# B\n",
            "draft.qmd": "---\ntitle: D\ndraft: true\n---\n",
            "index.md": "# Home\n",
        }
        root = write_project(tmp_path / "site", config=config, documents=documents)
        index = ContentManager(content_dir=root).build_index()
        tree = build_navigation(index.config, index.documents)
        assert pages_to_render(index, tree, set()) == ["b.qmd", "index.md", "a.qmd"]


async def test_build_starts_pandoc_without_renderer(test_settings: Settings) -> None:
    server = AsyncMock()
    server.__aenter__.return_value = server
    pandoc = AsyncMock()
    pandoc.__aenter__.return_value = FakeRenderer()
    with (
        patch("sitegen.services.build_service.PandocServer", return_value=server) as server_cls,
        patch("sitegen.services.build_service.PandocRenderer", return_value=pandoc),
    ):
        result = await build_site(test_settings)

    server_cls.assert_called_once_with(port=3031, timeout=10, executable="pandoc")
    server.__aexit__.assert_awaited_once()
    assert "basic.html" in result.pages_written


def test_load_and_lint(test_settings: Settings) -> None:
    index, report = load_and_lint(test_settings)
    assert len(index.documents) == 4
    assert report.ok
