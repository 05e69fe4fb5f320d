"""Site build orchestration: content index -> lint -> render -> write."""

from __future__ import annotations

import json
import logging
import shutil
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Protocol

from sitegen.exceptions import BuildError
from sitegen.filesystem.content_manager import ContentIndex, ContentManager, hash_content
from sitegen.pandoc.renderer import PandocRenderer, RenderError
from sitegen.pandoc.server import PandocServer
from sitegen.services.freeze_service import FreezeStore
from sitegen.services.lint_service import LintReport, lint_project
from sitegen.services.navigation_service import (
    build_navigation,
    output_path_for,
    pages_to_render,
)
from sitegen.services.page_service import PageContext, render_page, render_redirect
from sitegen.services.search_service import (
    build_search_index,
    write_search_index,
    write_search_script,
)
from sitegen.services.toc_service import extract_toc, render_toc

if TYPE_CHECKING:
    from pathlib import Path

    from sitegen.config import Settings
    from sitegen.filesystem.frontmatter import DocumentData

logger = logging.getLogger(__name__)


class Renderer(Protocol):
    async def render(self, markdown: str, file_path: str = "") -> str: ...


@dataclass
class BuildResult:
    output_dir: Path
    pages_written: list[str] = field(default_factory=list)
    rendered: list[str] = field(default_factory=list)
    reused: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def _render_fingerprint(index: ContentIndex) -> str:
    # Changing any format option must invalidate "auto" freeze entries
    return json.dumps(asdict(index.config.html), sort_keys=True, default=str)


def load_and_lint(settings: Settings) -> tuple[ContentIndex, LintReport]:
    """Read the project and run the content checks. ConfigError propagates."""
    skip = [settings.freeze_dir]
    if settings.output_dir is not None and settings.output_dir.is_relative_to(settings.content_dir):
        skip.append(settings.output_dir.relative_to(settings.content_dir).as_posix())
    manager = ContentManager(
        content_dir=settings.content_dir,
        config_file=settings.config_file,
        skip_dirs=tuple(skip),
    )
    index = manager.build_index()
    report = lint_project(index, settings.content_dir)
    return index, report


async def _render_body(
    document: DocumentData,
    renderer: Renderer,
    freeze: FreezeStore,
    fingerprint: str,
    result: BuildResult,
) -> str:
    source_hash = hash_content(document.raw_content)
    format_hash = hash_content(fingerprint)
    frozen = freeze.lookup(document.file_path, source_hash, format_hash)
    if frozen is not None:
        result.reused.append(document.file_path)
        return frozen
    body = await renderer.render(document.content, document.file_path)
    freeze.store(document.file_path, source_hash, body, format_hash)
    result.rendered.append(document.file_path)
    return body


def _write(output_dir: Path, page_path: str, text: str, result: BuildResult) -> None:
    target = output_dir / page_path
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(text, encoding="utf-8")
    result.pages_written.append(page_path)


async def render_site(
    settings: Settings,
    index: ContentIndex,
    report: LintReport,
    renderer: Renderer,
) -> BuildResult:
    """Render and write every page of an already linted project."""
    config = index.config
    output_dir = settings.resolve_output_dir(config.project.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    result = BuildResult(output_dir=output_dir, warnings=[str(d) for d in report.warnings])

    tree = build_navigation(config, index.documents)
    freeze = FreezeStore(settings.content_dir / settings.freeze_dir, mode=config.freeze)
    fingerprint = _render_fingerprint(index)

    for file_path in pages_to_render(index, tree, report.failing_files()):
        document = index.documents[file_path]
        try:
            body = await _render_body(document, renderer, freeze, fingerprint, result)
        except RenderError as exc:
            if settings.strict:
                raise BuildError(f"Failed to render {file_path}: {exc}") from exc
            msg = f"Skipping {file_path}: {exc}"
            logger.warning(msg)
            result.warnings.append(msg)
            continue

        toc_html = ""
        if config.html.toc:
            toc_html = render_toc(extract_toc(body, config.html.toc_depth))
        page_path = output_path_for(file_path)
        nav_title = next((i.title for i in tree.page_items() if i.file_path == file_path), None)
        context = PageContext(
            config=config,
            tree=tree,
            page_path=page_path,
            title=document.title or nav_title or config.website.title,
            body_html=body,
            toc_html=toc_html,
            document=document,
            source_path=file_path,
        )
        _write(output_dir, page_path, render_page(context), result)

    if "index.html" not in result.pages_written:
        written = set(result.pages_written)
        pages = [i for i in tree.page_items() if output_path_for(i.file_path) in written]
        if pages:
            _write(output_dir, "index.html", render_redirect(pages[0].href, pages[0].title), result)
        else:
            context = PageContext(
                config=config,
                tree=tree,
                page_path="index.html",
                title=config.website.title,
                body_html="",
            )
            _write(output_dir, "index.html", render_page(context), result)

    for stylesheet in config.html.css:
        source = settings.content_dir / stylesheet
        if source.is_file():
            target = output_dir / stylesheet
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, target)

    if config.website.sidebar.search:
        built = {p: index.documents[p] for p in (*result.rendered, *result.reused)}
        write_search_index(output_dir, build_search_index(tree, built))
        write_search_script(output_dir)

    logger.info(
        "Built %d page(s) into %s (%d rendered, %d reused)",
        len(result.pages_written),
        output_dir,
        len(result.rendered),
        len(result.reused),
    )
    return result


async def build_site(settings: Settings, renderer: Renderer | None = None) -> BuildResult:
    """Build the whole site.

    Lint errors abort the build with ``BuildError`` when ``settings.strict``
    is set; otherwise the offending documents are skipped.  Without an
    explicit *renderer*, a pandoc server is started for the duration of the
    build.
    """
    index, report = load_and_lint(settings)
    for diagnostic in report.diagnostics:
        log = logger.error if diagnostic in report.errors else logger.warning
        log("%s", diagnostic)
    if not report.ok and settings.strict:
        raise BuildError(
            f"Build aborted: {len(report.errors)} content error(s)", diagnostics=report.errors
        )

    if renderer is not None:
        return await render_site(settings, index, report, renderer)

    server = PandocServer(
        port=settings.pandoc_port,
        timeout=settings.pandoc_timeout,
        executable=settings.pandoc_executable,
    )
    async with server, PandocRenderer(server, index.config.html) as pandoc:
        return await render_site(settings, index, report, pandoc)
