"""Pandoc-based markdown to HTML renderer and HTML post-processing."""

from __future__ import annotations

import html
import logging
import posixpath
import re
from typing import TYPE_CHECKING, Any, Self

import httpx

from sitegen.filesystem.frontmatter import normalize_cell_fences
from sitegen.services.slug_service import unique_slug

if TYPE_CHECKING:
    from sitegen.filesystem.project_config import HtmlFormatConfig
    from sitegen.pandoc.server import PandocServer

logger = logging.getLogger(__name__)

PANDOC_INPUT_FORMAT = "markdown+tex_math_dollars+footnotes+raw_html"
_RENDER_TIMEOUT = 30.0

_HEADING_RE = re.compile(r"<(h[1-6])([^>]*)>(.*?)</\1>", re.DOTALL)
_ID_RE = re.compile(r'\sid="([^"]*)"')
_TAG_RE = re.compile(r"<[^>]+>")
_CODE_BLOCK_RE = re.compile(
    r'<div class="sourceCode"[^>]*>\s*<pre.*?</pre>\s*</div>|<pre(?:\s[^>]*)?>.*?</pre>',
    re.DOTALL,
)
_LINK_RE = re.compile(r"""href=(["'])([^"']*)\1""")
_SKIP_PREFIXES = ("/", "#", "data:", "http:", "https:", "mailto:", "tel:")


class RenderError(RuntimeError):
    """Raised when pandoc rendering fails (server unreachable, timeout, parse error)."""


def pandoc_options(options: HtmlFormatConfig) -> dict[str, Any]:
    """Request options for the pandoc server API derived from ``format: html``."""
    return {
        "from": PANDOC_INPUT_FORMAT,
        "to": "html5",
        "html-math-method": {"method": options.html_math_method},
        "number-sections": options.number_sections,
        "highlight-style": "pygments",
        "wrap": "none",
    }


def _strip_tags(fragment: str) -> str:
    return html.unescape(_TAG_RE.sub("", fragment)).strip()


def add_heading_anchors(rendered: str, anchor_links: bool = True) -> str:
    """Give every heading a unique id and, optionally, a trailing anchor link.

    Ids that pandoc already assigned are kept; headings without one get a
    slug of their text.
    """
    seen: set[str] = set()

    def _add_id(match: re.Match[str]) -> str:
        tag, attrs, content = match.group(1), match.group(2), match.group(3)
        existing = _ID_RE.search(attrs)
        if existing:
            anchor = existing.group(1)
            seen.add(anchor)
        else:
            anchor = unique_slug(_strip_tags(content), seen)
            attrs = f'{attrs} id="{anchor}"'
        if anchor_links and 'class="anchor-section"' not in content:
            content = (
                f'{content} <a class="anchor-section" href="#{anchor}" '
                f'aria-label="Anchor link to this section">#</a>'
            )
        return f"<{tag}{attrs}>{content}</{tag}>"

    return _HEADING_RE.sub(_add_id, rendered)


def decorate_code_blocks(rendered: str, options: HtmlFormatConfig) -> str:
    """Wrap code blocks for folding, copying and overflow handling.

    ``code-fold: true`` collapses each block behind ``code-summary``;
    ``code-fold: "show"`` folds it but starts open.
    """
    classes = ["code-block", f"code-overflow-{options.code_overflow}"]
    if options.code_line_numbers:
        classes.append("code-line-numbers")
    if options.code_copy == "hover":
        classes.append("code-copy-hover")
    class_attr = " ".join(classes)

    def _wrap(match: re.Match[str]) -> str:
        block = match.group(0)
        copy_button = ""
        if options.code_copy:
            copy_button = (
                '<button class="code-copy-button" type="button" title="Copy to clipboard">'
                "Copy</button>"
            )
        wrapped = f'<div class="{class_attr}">{copy_button}{block}</div>'
        if options.code_fold is False:
            return wrapped
        open_attr = " open" if options.code_fold == "show" else ""
        summary = html.escape(options.code_summary)
        return (
            f'<details class="code-fold"{open_attr}><summary>{summary}</summary>'
            f"{wrapped}</details>"
        )

    return _CODE_BLOCK_RE.sub(_wrap, rendered)


def rewrite_document_links(rendered: str, file_path: str = "") -> str:
    """Point relative links at content documents to their rendered pages.

    ``href="array.qmd#map"`` becomes ``href="array.html#map"``.  External
    links, absolute paths and fragments are untouched, as are links that
    would escape the site root.
    """
    base_dir = posixpath.dirname(file_path)

    def _replace(match: re.Match[str]) -> str:
        quote, value = match.group(1), match.group(2)
        if any(value.startswith(prefix) for prefix in _SKIP_PREFIXES):
            return match.group(0)
        target, sep, fragment = value.partition("#")
        stem, ext = posixpath.splitext(target)
        if ext not in (".qmd", ".md"):
            return match.group(0)
        if posixpath.normpath(posixpath.join(base_dir, target)).startswith(".."):
            return match.group(0)
        return f"href={quote}{stem}.html{sep}{fragment}{quote}"

    return _LINK_RE.sub(_replace, rendered)


def postprocess_html(rendered: str, options: HtmlFormatConfig, file_path: str = "") -> str:
    """Apply every HTML transformation that follows pandoc."""
    rendered = add_heading_anchors(rendered, anchor_links=options.anchor_sections)
    rendered = decorate_code_blocks(rendered, options)
    return rewrite_document_links(rendered, file_path)


class PandocRenderer:
    """Render markdown documents through a running :class:`PandocServer`."""

    def __init__(
        self,
        server: PandocServer,
        options: HtmlFormatConfig,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._server = server
        self._options = options
        self._client = client or httpx.AsyncClient(timeout=_RENDER_TIMEOUT)

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def _post(self, payload: dict[str, Any]) -> httpx.Response:
        headers = {"Accept": "application/json"}
        url = f"{self._server.base_url}/"
        try:
            return await self._client.post(url, json=payload, headers=headers)
        except httpx.TimeoutException:
            raise RenderError(f"Pandoc rendering timed out after {_RENDER_TIMEOUT}s") from None
        except httpx.NetworkError as exc:
            logger.warning("Pandoc server connection failed (%s), attempting restart", exc)
        except httpx.HTTPError as exc:
            raise RenderError(f"Pandoc server request failed: {exc}") from None

        await self._server.ensure_running()
        try:
            return await self._client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as retry_exc:
            raise RenderError(f"Pandoc server unreachable after restart: {retry_exc}") from None

    async def render_fragment(self, markdown: str) -> str:
        """Convert markdown to an HTML fragment without post-processing."""
        payload = {"text": normalize_cell_fences(markdown), **pandoc_options(self._options)}
        response = await self._post(payload)
        try:
            data = response.json()
        except ValueError:
            raise RenderError(
                f"Pandoc server returned non-JSON response (HTTP {response.status_code})"
            ) from None
        if not isinstance(data, dict):
            raise RenderError("Pandoc server returned an unexpected payload")
        if "error" in data:
            raise RenderError(f"Pandoc rendering error: {str(data['error'])[:200]}")
        for message in data.get("messages") or []:
            logger.debug("pandoc: %s", message)
        output: str = data.get("output", "")
        return output

    async def render(self, markdown: str, file_path: str = "") -> str:
        """Render a document body to post-processed HTML.

        Raises RenderError if pandoc fails.
        """
        fragment = await self.render_fragment(markdown)
        return postprocess_html(fragment, self._options, file_path)
