"""Shared test fixtures for sitegen."""

from __future__ import annotations

import html
import re
from typing import TYPE_CHECKING

import pytest

from sitegen.config import Settings
from sitegen.filesystem.project_config import HtmlFormatConfig
from sitegen.pandoc.renderer import postprocess_html

if TYPE_CHECKING:
    from pathlib import Path

SAMPLE_CONFIG = """\
project:
  type: website

website:
  title: "JavaScript Crash Course"
  reader-mode: true
  google-analytics: G-TEST123
  twitter-card:
    creator: "@example"

  sidebar:
    subtitle: Developer
    style: "docked"
    search: true
    background: light
    tools:
      - icon: github
        menu:
          - text: Source Code
            url: https://code.example.com
          - text: Report a Bug
            url: https://bugs.example.com
    contents:
      - section: "Basics"
        contents:
          - basic.qmd
      - section: "Variables and Scoping"
        contents:
          - variables.qmd
      - section: "Design Patterns"
        contents:
          - creational.qmd
          - behavioral.qmd
      - section: "Data Structures"

  cookie-consent: true

  page-footer:
    left: "Copyright 2023, Example Author"
    right:
      - icon: github
        href: https://github.com/
      - icon: twitter
        href: https://twitter.com/

freeze: true
format:
  html:
    theme:
      light: cosmo
      dark: darkly
    css: styles.css
    toc: true
    toc-depth: 3
    toc-location: right
    number-sections: false
    html-math-method: katex
    code-fold: true
    code-summary: "Show the code"
    code-overflow: wrap
    code-copy: hover
    smooth-scroll: true
    anchor-sections: true
    code-tools:
      source: false
      toggle: true
      caption: See code
"""

SAMPLE_DOCUMENTS: dict[str, str] = {
    "basic.qmd": (
        "---\ntitle: \"Basics\"\ndate: 2023-01-05\n---\n\n"
        "JavaScript runs in the browser.\n\n## Values\n\nNumbers and strings.\n\n"
        "```{js}\nconsole.log(1 + 1);\n```\n"
    ),
    "variables.qmd": (
        "# Variables and Scoping\n\nUse `let` and `const`.\n\n"
        "## Hoisting\n\n### Temporal dead zone\n"
    ),
    "creational.qmd": (
        "---\ntitle: Creational Patterns\n---\n\n## Builder\n\n"
        "```js\nclass Builder {}\n```\n\n## Factory\n\nSee [behavioral](behavioral.qmd#observer).\n"
    ),
    "behavioral.qmd": (
        "---\ntitle: Behavioral Patterns\n---\n\n## Strategy\n\n## Observer\n\n## Visitor\n"
    ),
}

_HEADING_LINE_RE = re.compile(r"^(#{1,6})\s+(.*)$")
_FENCE_LINE_RE = re.compile(r"^(`{3,}|~{3,})\s*(\S*)\s*$")
_LINK_RE = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")


def simple_markdown(markdown: str) -> str:
    """Tiny markdown subset standing in for pandoc in tests."""
    out: list[str] = []
    paragraph: list[str] = []
    code: list[str] | None = None
    language = ""

    def _flush() -> None:
        if paragraph:
            text = html.escape(" ".join(paragraph))
            text = _LINK_RE.sub(r'<a href="\2">\1</a>', text)
            out.append(f"<p>{text}</p>")
            paragraph.clear()

    for line in markdown.split("\n"):
        fence = _FENCE_LINE_RE.match(line)
        if code is not None:
            if fence and not fence.group(2):
                out.append(
                    f'<div class="sourceCode"><pre class="sourceCode {language}"><code>'
                    f"{html.escape(chr(10).join(code))}</code></pre></div>"
                )
                code = None
            else:
                code.append(line)
            continue
        if fence:
            _flush()
            code = []
            language = fence.group(2).strip("{}")
            continue
        heading = _HEADING_LINE_RE.match(line)
        if heading:
            _flush()
            level = len(heading.group(1))
            out.append(f"<h{level}>{html.escape(heading.group(2).strip())}</h{level}>")
            continue
        if not line.strip():
            _flush()
            continue
        paragraph.append(line.strip())
    _flush()
    return "\n".join(out)


class FakeRenderer:
    """Renderer double that records calls and never talks to pandoc."""

    def __init__(self, options: HtmlFormatConfig | None = None, fail_on: set[str] | None = None):
        self.options = options or HtmlFormatConfig()
        self.fail_on = fail_on or set()
        self.calls: list[str] = []

    async def render(self, markdown: str, file_path: str = "") -> str:
        from sitegen.pandoc.renderer import RenderError

        self.calls.append(file_path)
        if file_path in self.fail_on:
            raise RenderError(f"Pandoc rendering error: cannot parse {file_path}")
        return postprocess_html(simple_markdown(markdown), self.options, file_path)


def write_project(
    root: Path, config: str = SAMPLE_CONFIG, documents: dict[str, str] | None = None
) -> Path:
    root.mkdir(parents=True, exist_ok=True)
    (root / "_quarto.yml").write_text(config, encoding="utf-8")
    for name, text in (SAMPLE_DOCUMENTS if documents is None else documents).items():
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    (root / "styles.css").write_text("body { color: black; }\n", encoding="utf-8")
    return root


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """A project modelled on a small JavaScript course site."""
    return write_project(tmp_path / "site")


@pytest.fixture
def test_settings(project_dir: Path) -> Settings:
    return Settings(_env_file=None, content_dir=project_dir, debug=True)


@pytest.fixture
def fake_renderer() -> FakeRenderer:
    return FakeRenderer()
