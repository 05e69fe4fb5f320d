"""Page assembly: wrap a rendered document in the site chrome."""

from __future__ import annotations

import html
import json
from dataclasses import dataclass
from typing import TYPE_CHECKING
from urllib.parse import quote

from sitegen.services.datetime_service import DEFAULT_DATE_FORMAT, format_display_date
from sitegen.services.navigation_service import NavItem, NavSection, relative_href
from sitegen.services.search_service import SEARCH_FILENAME, SEARCH_SCRIPT_FILENAME

if TYPE_CHECKING:
    from sitegen.filesystem.frontmatter import DocumentData
    from sitegen.filesystem.project_config import (
        FooterSide,
        HtmlFormatConfig,
        ProjectConfig,
        SidebarTool,
    )
    from sitegen.services.navigation_service import NavTree

BOOTSWATCH_URL = "https://cdn.jsdelivr.net/npm/bootswatch@5.3.3/dist/{theme}/bootstrap.min.css"
BOOTSTRAP_URL = "https://cdn.jsdelivr.net/npm/bootstrap@5.3.3/dist/css/bootstrap.min.css"
BOOTSTRAP_ICONS_URL = (
    "https://cdn.jsdelivr.net/npm/bootstrap-icons@1.11.3/font/bootstrap-icons.min.css"
)
KATEX_BASE = "https://cdn.jsdelivr.net/npm/katex@0.16.11/dist"
MATHJAX_URL = "https://cdn.jsdelivr.net/npm/mathjax@3/es5/tex-chtml-full.js"


def _e(value: str) -> str:
    return html.escape(value, quote=True)


@dataclass
class PageContext:
    """Everything needed to lay out one output page."""

    config: ProjectConfig
    tree: NavTree
    page_path: str  # output path relative to the site root, e.g. "guide/intro.html"
    title: str
    body_html: str
    toc_html: str = ""
    document: DocumentData | None = None
    source_path: str | None = None


def theme_stylesheets(options: HtmlFormatConfig, prefix: str = "") -> list[str]:
    """``<link>`` tags for the light theme and, if configured, the dark theme."""

    def _url(theme: str | None) -> str:
        if theme is None or theme == "default":
            return BOOTSTRAP_URL
        return BOOTSWATCH_URL.format(theme=theme)

    links = [f'<link rel="stylesheet" href="{_e(_url(options.theme_light))}" class="theme-light">']
    if options.theme_dark is not None:
        links.append(
            f'<link rel="stylesheet" href="{_e(_url(options.theme_dark))}" class="theme-dark" '
            'media="(prefers-color-scheme: dark)">'
        )
    links.append(f'<link rel="stylesheet" href="{BOOTSTRAP_ICONS_URL}">')
    for stylesheet in options.css:
        links.append(f'<link rel="stylesheet" href="{_e(prefix + stylesheet)}">')
    return links


def _math_assets(method: str) -> list[str]:
    if method == "katex":
        return [
            f'<link rel="stylesheet" href="{KATEX_BASE}/katex.min.css">',
            f'<script defer src="{KATEX_BASE}/katex.min.js"></script>',
            f'<script defer src="{KATEX_BASE}/contrib/auto-render.min.js" '
            'onload="renderMathInElement(document.body);"></script>',
        ]
    if method == "mathjax":
        return [f'<script defer src="{MATHJAX_URL}"></script>']
    return []


def _analytics(tracking_id: str) -> list[str]:
    src = _e(f"https://www.googletagmanager.com/gtag/js?id={quote(tracking_id)}")
    # JSON string literal, with "</" broken up so it cannot end the script element
    tid = json.dumps(tracking_id).replace("</", "<\\/")
    return [
        f'<script async src="{src}"></script>',
        "<script>window.dataLayer = window.dataLayer || [];"
        "function gtag(){dataLayer.push(arguments);}"
        f"gtag('js', new Date());gtag('config', {tid});</script>",
    ]


def render_head(ctx: PageContext) -> str:
    website = ctx.config.website
    prefix = relative_href(ctx.page_path, "index.html").removesuffix("index.html")
    page_title = ctx.title if ctx.title == website.title else f"{ctx.title} – {website.title}"
    description = (ctx.document.description if ctx.document else None) or website.description

    parts = [
        '<meta charset="utf-8">',
        '<meta name="viewport" content="width=device-width, initial-scale=1">',
        f"<title>{_e(page_title)}</title>",
    ]
    if description:
        parts.append(f'<meta name="description" content="{_e(description)}">')
    if website.twitter_creator:
        parts.append('<meta name="twitter:card" content="summary">')
        parts.append(f'<meta name="twitter:title" content="{_e(page_title)}">')
        parts.append(f'<meta name="twitter:creator" content="{_e(website.twitter_creator)}">')
    parts.extend(theme_stylesheets(ctx.config.html, prefix))
    parts.extend(_math_assets(ctx.config.html.html_math_method))
    if website.google_analytics:
        parts.extend(_analytics(website.google_analytics))
    return "<head>" + "".join(parts) + "</head>"


def _render_tool(tool: SidebarTool) -> str:
    icon = f'<i class="bi bi-{_e(tool.icon)}"></i>'
    label = _e(tool.text or tool.icon)
    if tool.menu:
        items = "".join(
            f'<li><a class="dropdown-item" href="{_e(item.url)}">{_e(item.text)}</a></li>'
            for item in tool.menu
        )
        return (
            f'<details class="sidebar-tool"><summary aria-label="{label}">{icon}</summary>'
            f'<ul class="dropdown-menu show">{items}</ul></details>'
        )
    href = _e(tool.href or "#")
    return f'<a class="sidebar-tool" href="{href}" aria-label="{label}">{icon}</a>'


def _render_item(item: NavItem, ctx: PageContext) -> str:
    if not item.exists:
        return f'<li class="sidebar-item"><span class="nav-missing">{_e(item.title)}</span></li>'
    href = relative_href(ctx.page_path, item.href)
    if item.href == ctx.page_path:
        return (
            f'<li class="sidebar-item"><a class="sidebar-link active" aria-current="page" '
            f'href="{_e(href)}">{_e(item.title)}</a></li>'
        )
    return (
        f'<li class="sidebar-item"><a class="sidebar-link" href="{_e(href)}">'
        f"{_e(item.title)}</a></li>"
    )


def _contains_page(section: NavSection, page_path: str) -> bool:
    return section.href == page_path or any(i.href == page_path for i in section.walk_items())


def _render_section(section: NavSection, ctx: PageContext) -> str:
    open_attr = " open" if _contains_page(section, ctx.page_path) else ""
    if section.landing is not None and not section.landing.exists:
        label = f'<span class="nav-missing">{_e(section.title)}</span>'
    elif section.href is not None:
        landing = _e(relative_href(ctx.page_path, section.href))
        current = ' class="active" aria-current="page"' if section.href == ctx.page_path else ""
        label = f'<a{current} href="{landing}">{_e(section.title)}</a>'
    else:
        label = _e(section.title)
    children = "".join(
        _render_section(child, ctx) if isinstance(child, NavSection) else _render_item(child, ctx)
        for child in section.children
    )
    return (
        f'<li class="sidebar-section"><details{open_attr}><summary>{label}</summary>'
        f'<ul class="sidebar-section-items">{children}</ul></details></li>'
    )


def render_sidebar(ctx: PageContext) -> str:
    website = ctx.config.website
    sidebar = website.sidebar
    home = relative_href(ctx.page_path, "index.html")
    title = sidebar.title or website.title

    parts = [f'<div class="sidebar-title"><a href="{_e(home)}">{_e(title)}</a></div>']
    if sidebar.subtitle:
        parts.append(f'<div class="sidebar-subtitle">{_e(sidebar.subtitle)}</div>')
    if sidebar.tools:
        parts.append('<div class="sidebar-tools">')
        parts.extend(_render_tool(tool) for tool in sidebar.tools)
        parts.append("</div>")
    if sidebar.search:
        search_index = relative_href(ctx.page_path, SEARCH_FILENAME)
        search_script = relative_href(ctx.page_path, SEARCH_SCRIPT_FILENAME)
        parts.append(
            f'<div class="sidebar-search"><input type="search" id="site-search" '
            f'placeholder="Search" aria-label="Search" data-index="{_e(search_index)}">'
            '<ul id="site-search-results" class="search-results"></ul>'
            f'<script defer src="{_e(search_script)}"></script></div>'
        )
    entries = "".join(
        _render_section(entry, ctx) if isinstance(entry, NavSection) else _render_item(entry, ctx)
        for entry in ctx.tree.entries
    )
    parts.append(f'<ul class="sidebar-menu">{entries}</ul>')
    if ctx.config.html.toc and ctx.config.html.toc_location == "left":
        parts.append(ctx.toc_html)

    background = f" bg-{_e(sidebar.background)}" if sidebar.background else ""
    return (
        f'<nav id="quarto-sidebar" class="sidebar sidebar-{_e(sidebar.style)}{background}">'
        + "".join(parts)
        + "</nav>"
    )


def _render_footer_side(side: FooterSide) -> str:
    if side is None:
        return ""
    if isinstance(side, str):
        return _e(side)
    links: list[str] = []
    for link in side:
        inner = f'<i class="bi bi-{_e(link.icon)}"></i>' if link.icon else ""
        if link.text:
            inner = f"{inner} {_e(link.text)}".strip()
        if link.href:
            label = _e(link.text or link.icon or link.href)
            links.append(
                f'<a class="footer-link" href="{_e(link.href)}" aria-label="{label}">{inner}</a>'
            )
        else:
            links.append(f"<span>{inner}</span>")
    return " ".join(links)


def render_footer(ctx: PageContext) -> str:
    footer = ctx.config.website.page_footer
    if footer.left is None and footer.center is None and footer.right is None:
        return ""
    return (
        '<footer class="page-footer">'
        f'<div class="footer-left">{_render_footer_side(footer.left)}</div>'
        f'<div class="footer-center">{_render_footer_side(footer.center)}</div>'
        f'<div class="footer-right">{_render_footer_side(footer.right)}</div>'
        "</footer>"
    )


def render_page_navigation(ctx: PageContext) -> str:
    if not ctx.config.website.page_navigation or ctx.source_path is None:
        return ""
    prev_item, next_item = ctx.tree.neighbours(ctx.source_path)
    if prev_item is None and next_item is None:
        return ""
    parts = ['<nav class="page-navigation">']
    if prev_item is not None:
        href = _e(relative_href(ctx.page_path, prev_item.href))
        parts.append(
            f'<a class="nav-page nav-page-previous" href="{href}">&larr; {_e(prev_item.title)}</a>'
        )
    if next_item is not None:
        href = _e(relative_href(ctx.page_path, next_item.href))
        parts.append(
            f'<a class="nav-page nav-page-next" href="{href}">{_e(next_item.title)} &rarr;</a>'
        )
    parts.append("</nav>")
    return "".join(parts)


def render_code_tools(ctx: PageContext) -> str:
    """The ``code-tools`` menu: show/hide all folded code and view the page source."""
    tools = ctx.config.html.code_tools
    if not tools.enabled:
        return ""
    entries: list[str] = []
    if tools.toggle:
        entries.append(
            '<button type="button" class="code-tools-toggle" onclick="'
            "document.querySelectorAll('details.code-fold').forEach("
            "d => d.toggleAttribute('open'))\">Show/hide all code</button>"
        )
    if tools.source and ctx.document is not None:
        entries.append(
            '<details class="code-tools-source"><summary>View source</summary>'
            f"<pre><code>{_e(ctx.document.raw_content)}</code></pre></details>"
        )
    return (
        f'<div class="code-tools"><span class="code-tools-caption">{_e(tools.caption)}</span>'
        + "".join(entries)
        + "</div>"
    )


def render_title_block(ctx: PageContext) -> str:
    parts = [f'<header id="title-block-header"><h1 class="title">{_e(ctx.title)}</h1>']
    document = ctx.document
    if document is not None:
        if document.subtitle:
            parts.append(f'<p class="subtitle">{_e(document.subtitle)}</p>')
        meta: list[str] = []
        if document.author:
            meta.append(f'<span class="author">{_e(document.author)}</span>')
        if document.date is not None:
            shown = format_display_date(document.date, document.date_format or DEFAULT_DATE_FORMAT)
            meta.append(f'<time datetime="{_e(document.date.isoformat())}">{_e(shown)}</time>')
        if meta:
            parts.append('<div class="quarto-title-meta">' + " ".join(meta) + "</div>")
    parts.append(render_code_tools(ctx))
    parts.append("</header>")
    return "".join(parts)


def render_page(ctx: PageContext) -> str:
    """Assemble the complete HTML document for one page."""
    options = ctx.config.html
    website = ctx.config.website

    html_style = ' style="scroll-behavior: smooth"' if options.smooth_scroll else ""
    body_attrs = ['class="docked"' if website.sidebar.style == "docked" else 'class="floating"']
    if website.reader_mode:
        body_attrs.append('data-reader-mode="true"')
    if website.cookie_consent:
        body_attrs.append('data-cookie-consent="true"')

    main_parts = [render_title_block(ctx)]
    if options.toc and options.toc_location == "body":
        main_parts.append(ctx.toc_html)
    main_parts.append(f'<div class="page-content">{ctx.body_html}</div>')
    main_parts.append(render_page_navigation(ctx))

    margin = ""
    if options.toc and options.toc_location == "right" and ctx.toc_html:
        margin = (
            f'<div id="quarto-margin-sidebar" class="sidebar margin-sidebar">{ctx.toc_html}</div>'
        )

    extras: list[str] = []
    if website.reader_mode:
        extras.append(
            '<button id="reader-mode-toggle" type="button" '
            "onclick=\"document.body.classList.toggle('reader-mode')\">Reader mode</button>"
        )
    if website.cookie_consent:
        extras.append(
            '<div id="cookie-consent" role="dialog" aria-live="polite">'
            "This site uses cookies for analytics. "
            "<button type=\"button\" onclick=\"this.parentElement.remove()\">OK</button></div>"
        )

    return (
        "<!DOCTYPE html>\n"
        f'<html lang="en"{html_style}>'
        f"{render_head(ctx)}"
        f"<body {' '.join(body_attrs)}>"
        f"{''.join(extras)}"
        '<div id="quarto-content" class="page-columns">'
        f"{render_sidebar(ctx)}"
        f'<main class="content" id="quarto-document-content">{"".join(main_parts)}</main>'
        f"{margin}"
        "</div>"
        f"{render_footer(ctx)}"
        "</body></html>\n"
    )


def render_redirect(target: str, title: str) -> str:
    """Minimal page that forwards the browser to *target*."""
    url = _e(target)
    return (
        "<!DOCTYPE html>\n"
        f'<html lang="en"><head><meta charset="utf-8"><title>{_e(title)}</title>'
        f'<meta http-equiv="refresh" content="0; url={url}"></head>'
        f'<body><a href="{url}">{_e(title)}</a></body></html>\n'
    )
