"""YAML project configuration reader/writer for _quarto.yml."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import yaml

from sitegen.exceptions import ConfigError

if TYPE_CHECKING:
    from pathlib import Path

CONFIG_FILENAME = "_quarto.yml"
DEFAULT_TITLE = "My Site"
TOC_LOCATIONS: frozenset[str] = frozenset({"left", "right", "body"})
MATH_METHODS: frozenset[str] = frozenset({"katex", "mathjax", "plain"})
SIDEBAR_STYLES: frozenset[str] = frozenset({"docked", "floating"})
CODE_OVERFLOW: frozenset[str] = frozenset({"scroll", "wrap"})


@dataclass
class MenuItem:
    """An entry of a sidebar tool's dropdown menu."""

    text: str
    url: str


@dataclass
class SidebarTool:
    """An icon in the sidebar header, either a plain link or a dropdown."""

    icon: str
    href: str | None = None
    text: str | None = None
    menu: list[MenuItem] = field(default_factory=list)


@dataclass
class NavEntry:
    """A node of the declared navigation tree.

    A section has a ``section`` title and nested ``contents``; a document
    reference has an ``href`` pointing at a content file.  A section may also
    carry an ``href`` of its own landing page.
    """

    section: str | None = None
    href: str | None = None
    text: str | None = None
    contents: list[NavEntry] = field(default_factory=list)

    @property
    def is_section(self) -> bool:
        return self.section is not None


@dataclass
class FooterLink:
    icon: str | None = None
    href: str | None = None
    text: str | None = None


FooterSide = str | list[FooterLink] | None


@dataclass
class FooterConfig:
    left: FooterSide = None
    center: FooterSide = None
    right: FooterSide = None


@dataclass
class SidebarConfig:
    title: str | None = None
    subtitle: str | None = None
    style: str = "floating"
    search: bool = False
    background: str | None = None
    tools: list[SidebarTool] = field(default_factory=list)
    contents: list[NavEntry] = field(default_factory=list)


@dataclass
class WebsiteConfig:
    """The ``website:`` block."""

    title: str = DEFAULT_TITLE
    site_url: str | None = None
    description: str = ""
    reader_mode: bool = False
    google_analytics: str | None = None
    twitter_creator: str | None = None
    cookie_consent: bool = False
    page_navigation: bool = True
    sidebar: SidebarConfig = field(default_factory=SidebarConfig)
    page_footer: FooterConfig = field(default_factory=FooterConfig)


@dataclass
class CodeToolsConfig:
    enabled: bool = False
    source: bool = False
    toggle: bool = False
    caption: str = "Code"


@dataclass
class HtmlFormatConfig:
    """Rendering options of the ``format: html:`` block."""

    theme_light: str | None = None
    theme_dark: str | None = None
    css: list[str] = field(default_factory=list)
    toc: bool = False
    toc_depth: int = 3
    toc_location: str = "right"
    number_sections: bool = False
    html_math_method: str = "mathjax"
    code_fold: bool | str = False
    code_summary: str = "Code"
    code_line_numbers: bool = False
    code_overflow: str = "scroll"
    code_copy: bool | str = "hover"
    smooth_scroll: bool = False
    anchor_sections: bool = True
    code_tools: CodeToolsConfig = field(default_factory=CodeToolsConfig)


@dataclass
class ProjectOptions:
    type: str = "website"
    output_dir: str = "_site"
    render: list[str] = field(default_factory=list)


@dataclass
class ProjectConfig:
    """Parsed project configuration."""

    project: ProjectOptions = field(default_factory=ProjectOptions)
    website: WebsiteConfig = field(default_factory=WebsiteConfig)
    html: HtmlFormatConfig = field(default_factory=HtmlFormatConfig)
    freeze: bool | str = False


def _mapping(value: object, key: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"{key}: expected a mapping, got {type(value).__name__}")
    return value


def _string(value: object, key: str, default: str | None = None) -> str | None:
    if value is None:
        return default
    if isinstance(value, bool) or isinstance(value, (dict, list)):
        raise ConfigError(f"{key}: expected a string, got {type(value).__name__}")
    return str(value)


def _flag(value: object, key: str, default: bool) -> bool:
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ConfigError(f"{key}: expected true or false, got {value!r}")
    return value


def _choice(value: object, key: str, default: str, allowed: frozenset[str]) -> str:
    text = _string(value, key) or default
    if text not in allowed:
        options = ", ".join(sorted(allowed))
        raise ConfigError(f"{key}: expected one of {options}, got {text!r}")
    return text


def _string_list(value: object, key: str) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        raise ConfigError(f"{key}: expected a list of strings")
    return [str(item) for item in value]


def parse_nav_entries(raw: object, key: str) -> list[NavEntry]:
    """Parse a ``contents:`` list into navigation entries, keeping order."""
    if raw is None:
        return []
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, list):
        raise ConfigError(f"{key}: expected a list of entries")

    entries: list[NavEntry] = []
    for i, item in enumerate(raw):
        item_key = f"{key}[{i}]"
        if isinstance(item, str):
            entries.append(NavEntry(href=item))
            continue
        if not isinstance(item, dict):
            raise ConfigError(f"{item_key}: expected a file name or a mapping")
        if "section" in item:
            title = _string(item["section"], f"{item_key}.section")
            if not title:
                raise ConfigError(f"{item_key}.section: section title must not be empty")
            entries.append(
                NavEntry(
                    section=title,
                    href=_string(item.get("href"), f"{item_key}.href"),
                    contents=parse_nav_entries(item.get("contents"), f"{item_key}.contents"),
                )
            )
            continue
        href = _string(item.get("href", item.get("file")), f"{item_key}.href")
        if not href:
            raise ConfigError(f"{item_key}: entry needs either 'section' or 'href'")
        entries.append(NavEntry(href=href, text=_string(item.get("text"), f"{item_key}.text")))
    return entries


def _parse_tools(raw: object, key: str) -> list[SidebarTool]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ConfigError(f"{key}: expected a list of tools")
    tools: list[SidebarTool] = []
    for i, item in enumerate(raw):
        data = _mapping(item, f"{key}[{i}]")
        menu: list[MenuItem] = []
        raw_menu = data.get("menu") or []
        if not isinstance(raw_menu, list):
            raise ConfigError(f"{key}[{i}].menu: expected a list")
        for j, menu_item in enumerate(raw_menu):
            menu_data = _mapping(menu_item, f"{key}[{i}].menu[{j}]")
            menu.append(
                MenuItem(
                    text=_string(menu_data.get("text"), f"{key}[{i}].menu[{j}].text", "") or "",
                    url=_string(
                        menu_data.get("url", menu_data.get("href")),
                        f"{key}[{i}].menu[{j}].url",
                        "#",
                    )
                    or "#",
                )
            )
        tools.append(
            SidebarTool(
                icon=_string(data.get("icon"), f"{key}[{i}].icon", "link") or "link",
                href=_string(data.get("href"), f"{key}[{i}].href"),
                text=_string(data.get("text"), f"{key}[{i}].text"),
                menu=menu,
            )
        )
    return tools


def _parse_sidebar(raw: object) -> SidebarConfig:
    # Multiple sidebars are allowed; only the first drives site navigation
    if isinstance(raw, list):
        raw = raw[0] if raw else None
    data = _mapping(raw, "website.sidebar")
    return SidebarConfig(
        title=_string(data.get("title"), "website.sidebar.title"),
        subtitle=_string(data.get("subtitle"), "website.sidebar.subtitle"),
        style=_choice(data.get("style"), "website.sidebar.style", "floating", SIDEBAR_STYLES),
        search=_flag(data.get("search"), "website.sidebar.search", False),
        background=_string(data.get("background"), "website.sidebar.background"),
        tools=_parse_tools(data.get("tools"), "website.sidebar.tools"),
        contents=parse_nav_entries(data.get("contents"), "website.sidebar.contents"),
    )


def _parse_footer_side(raw: object, key: str) -> FooterSide:
    if raw is None or isinstance(raw, str):
        return raw
    if not isinstance(raw, list):
        raise ConfigError(f"{key}: expected text or a list of links")
    links: list[FooterLink] = []
    for i, item in enumerate(raw):
        if isinstance(item, str):
            links.append(FooterLink(text=item))
            continue
        data = _mapping(item, f"{key}[{i}]")
        links.append(
            FooterLink(
                icon=_string(data.get("icon"), f"{key}[{i}].icon"),
                href=_string(data.get("href"), f"{key}[{i}].href"),
                text=_string(data.get("text"), f"{key}[{i}].text"),
            )
        )
    return links


def _parse_footer(raw: object) -> FooterConfig:
    if isinstance(raw, str):
        return FooterConfig(center=raw)
    data = _mapping(raw, "website.page-footer")
    return FooterConfig(
        left=_parse_footer_side(data.get("left"), "website.page-footer.left"),
        center=_parse_footer_side(data.get("center"), "website.page-footer.center"),
        right=_parse_footer_side(data.get("right"), "website.page-footer.right"),
    )


def _parse_website(raw: object) -> WebsiteConfig:
    data = _mapping(raw, "website")

    analytics = data.get("google-analytics")
    if isinstance(analytics, dict):
        analytics = analytics.get("tracking-id")

    twitter = data.get("twitter-card")
    creator = None
    if isinstance(twitter, dict):
        creator = _string(twitter.get("creator"), "website.twitter-card.creator")

    # cookie-consent accepts true/false or a mapping of banner options
    consent = data.get("cookie-consent")
    cookie_consent = bool(consent) if isinstance(consent, dict) else _flag(
        consent, "website.cookie-consent", False
    )

    return WebsiteConfig(
        title=_string(data.get("title"), "website.title", DEFAULT_TITLE) or DEFAULT_TITLE,
        site_url=_string(data.get("site-url"), "website.site-url"),
        description=_string(data.get("description"), "website.description", "") or "",
        reader_mode=_flag(data.get("reader-mode"), "website.reader-mode", False),
        google_analytics=_string(analytics, "website.google-analytics"),
        twitter_creator=creator,
        cookie_consent=cookie_consent,
        page_navigation=_flag(data.get("page-navigation"), "website.page-navigation", True),
        sidebar=_parse_sidebar(data.get("sidebar")),
        page_footer=_parse_footer(data.get("page-footer")),
    )


def _parse_code_tools(raw: object) -> CodeToolsConfig:
    if raw is None or isinstance(raw, bool):
        return CodeToolsConfig(enabled=bool(raw))
    data = _mapping(raw, "format.html.code-tools")
    return CodeToolsConfig(
        enabled=True,
        source=_flag(data.get("source"), "format.html.code-tools.source", False),
        toggle=_flag(data.get("toggle"), "format.html.code-tools.toggle", False),
        caption=_string(data.get("caption"), "format.html.code-tools.caption", "Code") or "Code",
    )


def _parse_html_format(raw: object) -> HtmlFormatConfig:
    formats = _mapping(raw, "format") if not isinstance(raw, str) else {raw: None}
    html_raw = formats.get("html")
    data = {} if html_raw is None or html_raw == "default" else _mapping(html_raw, "format.html")

    theme = data.get("theme")
    if isinstance(theme, dict):
        theme_light = _string(theme.get("light"), "format.html.theme.light")
        theme_dark = _string(theme.get("dark"), "format.html.theme.dark")
    else:
        theme_light = _string(theme, "format.html.theme")
        theme_dark = None

    toc_depth = data.get("toc-depth", 3)
    if isinstance(toc_depth, bool) or not isinstance(toc_depth, int) or not 1 <= toc_depth <= 6:
        raise ConfigError(f"format.html.toc-depth: expected an integer 1-6, got {toc_depth!r}")

    code_fold = data.get("code-fold", False)
    if code_fold not in (True, False, "show"):
        msg = f"expected true, false or 'show', got {code_fold!r}"
        raise ConfigError(f"format.html.code-fold: {msg}")

    code_copy = data.get("code-copy", "hover")
    if code_copy not in (True, False, "hover"):
        msg = f"expected true, false or 'hover', got {code_copy!r}"
        raise ConfigError(f"format.html.code-copy: {msg}")

    return HtmlFormatConfig(
        theme_light=theme_light,
        theme_dark=theme_dark,
        css=_string_list(data.get("css"), "format.html.css"),
        toc=_flag(data.get("toc"), "format.html.toc", False),
        toc_depth=toc_depth,
        toc_location=_choice(
            data.get("toc-location"), "format.html.toc-location", "right", TOC_LOCATIONS
        ),
        number_sections=_flag(data.get("number-sections"), "format.html.number-sections", False),
        html_math_method=_choice(
            data.get("html-math-method"), "format.html.html-math-method", "mathjax", MATH_METHODS
        ),
        code_fold=code_fold,
        code_summary=(
            _string(data.get("code-summary"), "format.html.code-summary", "Code") or "Code"
        ),
        code_line_numbers=_flag(
            data.get("code-line-numbers"), "format.html.code-line-numbers", False
        ),
        code_overflow=_choice(
            data.get("code-overflow"), "format.html.code-overflow", "scroll", CODE_OVERFLOW
        ),
        code_copy=code_copy,
        smooth_scroll=_flag(data.get("smooth-scroll"), "format.html.smooth-scroll", False),
        anchor_sections=_flag(data.get("anchor-sections"), "format.html.anchor-sections", True),
        code_tools=_parse_code_tools(data.get("code-tools")),
    )


def _parse_project(raw: object) -> ProjectOptions:
    data = _mapping(raw, "project")
    return ProjectOptions(
        type=_string(data.get("type"), "project.type", "website") or "website",
        output_dir=_string(data.get("output-dir"), "project.output-dir", "_site") or "_site",
        render=_string_list(data.get("render"), "project.render"),
    )


def _parse_freeze(raw: object) -> bool | str:
    if raw is None:
        return False
    if raw is True or raw is False or raw == "auto":
        return raw
    raise ConfigError(f"freeze: expected true, false or 'auto', got {raw!r}")


def load_project_config(text: str) -> ProjectConfig:
    """Parse project configuration from YAML text."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Malformed YAML: {exc}") from None
    data = _mapping(data, "<root>")
    return ProjectConfig(
        project=_parse_project(data.get("project")),
        website=_parse_website(data.get("website")),
        html=_parse_html_format(data.get("format")),
        freeze=_parse_freeze(data.get("freeze")),
    )


def parse_project_config(content_dir: Path, filename: str = CONFIG_FILENAME) -> ProjectConfig:
    """Parse the project configuration file from the content directory.

    A missing file yields the defaults.  Raises ``ConfigError`` if the file
    is malformed.
    """
    config_path = content_dir / filename
    if not config_path.exists():
        return ProjectConfig()
    return load_project_config(config_path.read_text(encoding="utf-8"))


def _nav_entries_to_data(entries: list[NavEntry]) -> list[Any]:
    result: list[Any] = []
    for entry in entries:
        if entry.is_section:
            section: dict[str, Any] = {"section": entry.section}
            if entry.href is not None:
                section["href"] = entry.href
            if entry.contents:
                section["contents"] = _nav_entries_to_data(entry.contents)
            result.append(section)
        elif entry.text is not None:
            result.append({"href": entry.href, "text": entry.text})
        else:
            result.append(entry.href)
    return result


def _footer_side_to_data(side: FooterSide) -> Any:
    if side is None or isinstance(side, str):
        return side
    links: list[dict[str, str]] = []
    for link in side:
        entry = {"icon": link.icon, "href": link.href, "text": link.text}
        links.append({k: v for k, v in entry.items() if v is not None})
    return links


def _drop_none(data: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


def project_config_to_data(config: ProjectConfig) -> dict[str, Any]:
    """Convert a config back to the YAML document structure."""
    website = config.website
    sidebar = website.sidebar
    html = config.html

    tools: list[dict[str, Any]] = []
    for tool in sidebar.tools:
        tool_data: dict[str, Any] = _drop_none(
            {"icon": tool.icon, "href": tool.href, "text": tool.text}
        )
        if tool.menu:
            tool_data["menu"] = [{"text": m.text, "url": m.url} for m in tool.menu]
        tools.append(tool_data)

    sidebar_data = _drop_none(
        {
            "title": sidebar.title,
            "subtitle": sidebar.subtitle,
            "style": sidebar.style,
            "search": sidebar.search,
            "background": sidebar.background,
        }
    )
    if tools:
        sidebar_data["tools"] = tools
    sidebar_data["contents"] = _nav_entries_to_data(sidebar.contents)

    website_data = _drop_none(
        {
            "title": website.title,
            "site-url": website.site_url,
            "description": website.description or None,
            "reader-mode": website.reader_mode,
            "google-analytics": website.google_analytics,
            "cookie-consent": website.cookie_consent,
            "page-navigation": website.page_navigation,
        }
    )
    if website.twitter_creator is not None:
        website_data["twitter-card"] = {"creator": website.twitter_creator}
    website_data["sidebar"] = sidebar_data
    website_data["page-footer"] = _drop_none(
        {
            "left": _footer_side_to_data(website.page_footer.left),
            "center": _footer_side_to_data(website.page_footer.center),
            "right": _footer_side_to_data(website.page_footer.right),
        }
    )

    theme: Any = html.theme_light
    if html.theme_dark is not None:
        theme = _drop_none({"light": html.theme_light, "dark": html.theme_dark})

    html_data = _drop_none(
        {
            "theme": theme,
            "css": html.css or None,
            "toc": html.toc,
            "toc-depth": html.toc_depth,
            "toc-location": html.toc_location,
            "number-sections": html.number_sections,
            "html-math-method": html.html_math_method,
            "code-fold": html.code_fold,
            "code-summary": html.code_summary,
            "code-line-numbers": html.code_line_numbers,
            "code-overflow": html.code_overflow,
            "code-copy": html.code_copy,
            "smooth-scroll": html.smooth_scroll,
            "anchor-sections": html.anchor_sections,
        }
    )
    if html.code_tools.enabled:
        html_data["code-tools"] = {
            "source": html.code_tools.source,
            "toggle": html.code_tools.toggle,
            "caption": html.code_tools.caption,
        }

    project_data: dict[str, Any] = {
        "type": config.project.type,
        "output-dir": config.project.output_dir,
    }
    if config.project.render:
        project_data["render"] = list(config.project.render)

    return {
        "project": project_data,
        "website": website_data,
        "freeze": config.freeze,
        "format": {"html": html_data},
    }


def write_project_config(
    content_dir: Path, config: ProjectConfig, filename: str = CONFIG_FILENAME
) -> None:
    """Write the project configuration back to disk."""
    text = yaml.safe_dump(
        project_config_to_data(config),
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
    )
    (content_dir / filename).write_text(text, encoding="utf-8")
