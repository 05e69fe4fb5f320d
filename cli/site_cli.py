"""Command-line interface: scaffold, check, inspect and build a site."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from sitegen.config import Settings
from sitegen.exceptions import BuildError, ConfigError
from sitegen.filesystem.project_config import CONFIG_FILENAME
from sitegen.services.build_service import build_site, load_and_lint
from sitegen.services.navigation_service import NavItem, NavSection, build_navigation

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG = """\
project:
  type: website
  output-dir: _site

website:
  title: "{title}"
  sidebar:
    style: "docked"
    search: true
    contents:
      - index.qmd

format:
  html:
    theme: cosmo
    css: styles.css
    toc: true
"""
_DEFAULT_INDEX = "---\ntitle: \"{title}\"\n---\n\nWelcome.\n"
_DEFAULT_CSS = "/* site styles */\n"


def configure_logging(debug: bool) -> None:
    """Configure CLI logging."""
    level = logging.DEBUG if debug else logging.INFO
    fmt = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
    logging.basicConfig(level=level, format=fmt, stream=sys.stderr, force=True)
    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def ensure_project_dir(content_dir: Path, title: str = "My Site") -> list[Path]:
    """Create the scaffold files that are missing; never overwrite. Returns created paths."""
    if content_dir.exists() and not content_dir.is_dir():
        msg = f"Content path exists but is not a directory: {content_dir}"
        raise NotADirectoryError(msg)
    content_dir.mkdir(parents=True, exist_ok=True)

    created: list[Path] = []
    scaffold = {
        CONFIG_FILENAME: _DEFAULT_CONFIG.format(title=title),
        "index.qmd": _DEFAULT_INDEX.format(title=title),
        "styles.css": _DEFAULT_CSS,
    }
    for name, text in scaffold.items():
        path = content_dir / name
        if path.exists():
            continue
        path.write_text(text, encoding="utf-8")
        logger.info("Created %s", path)
        created.append(path)
    return created


def format_nav_tree(entries: list[NavSection | NavItem], indent: int = 0) -> list[str]:
    """Plain-text outline of the navigation tree."""
    lines: list[str] = []
    pad = "  " * indent
    for entry in entries:
        if isinstance(entry, NavSection):
            suffix = " (empty)" if entry.is_empty else ""
            landing = entry.landing
            if landing is not None:
                suffix = f" -> {landing.href}" + ("" if landing.exists else " (missing)")
            lines.append(f"{pad}[{entry.title}]{suffix}")
            lines.extend(format_nav_tree(entry.children, indent + 1))
        else:
            suffix = "" if entry.exists else " (missing)"
            lines.append(f"{pad}- {entry.title} -> {entry.href}{suffix}")
    return lines


def _cmd_check(settings: Settings) -> int:
    _, report = load_and_lint(settings)
    for diagnostic in report.diagnostics:
        print(diagnostic)
    print(f"{len(report.errors)} error(s), {len(report.warnings)} warning(s)")
    return 0 if report.ok else 1


def _cmd_nav(settings: Settings) -> int:
    index, _ = load_and_lint(settings)
    tree = build_navigation(index.config, index.documents)
    print(index.config.website.title)
    for line in format_nav_tree(tree.entries):
        print(line)
    return 0


def _cmd_build(settings: Settings) -> int:
    result = asyncio.run(build_site(settings))
    for warning in result.warnings:
        print(f"  Warning: {warning}")
    print(
        f"Built {len(result.pages_written)} page(s) into {result.output_dir} "
        f"({len(result.rendered)} rendered, {len(result.reused)} frozen)."
    )
    return 0


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="sitegen",
        description="Build a static documentation site from _quarto.yml and markdown documents",
    )
    parser.add_argument("--dir", "-d", default=".", help="Project directory (default: current)")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")

    subparsers = parser.add_subparsers(dest="command")
    init_parser = subparsers.add_parser("init", help="Create a minimal project scaffold")
    init_parser.add_argument("--title", default="My Site", help="Site title")
    subparsers.add_parser("check", help="Check navigation references and document titles")
    subparsers.add_parser("nav", help="Print the navigation tree")
    build_parser = subparsers.add_parser("build", help="Render the site")
    build_parser.add_argument(
        "--output", "-o", help="Output directory (overrides project.output-dir)"
    )
    build_parser.add_argument(
        "--no-strict",
        action="store_true",
        help="Skip documents with errors instead of aborting",
    )

    args = parser.parse_args(argv)
    configure_logging(args.debug)
    content_dir = Path(args.dir).resolve()

    if args.command is None:
        parser.print_help()
        return

    if args.command == "init":
        try:
            created = ensure_project_dir(content_dir, args.title)
        except NotADirectoryError as exc:
            print(f"Error: {exc}")
            sys.exit(1)
        for path in created:
            print(f"  Created: {path.relative_to(content_dir)}")
        print(f"Initialized project in {content_dir}")
        return

    overrides: dict[str, object] = {"content_dir": content_dir, "debug": args.debug}
    if args.command == "build":
        overrides["strict"] = not args.no_strict
        if args.output:
            overrides["output_dir"] = Path(args.output).resolve()
    try:
        settings = Settings(**overrides)  # type: ignore[arg-type]
    except ValidationError as exc:
        print(f"Error: invalid settings: {exc}")
        sys.exit(1)

    commands = {"check": _cmd_check, "nav": _cmd_nav, "build": _cmd_build}
    try:
        status = commands[args.command](settings)
    except ConfigError as exc:
        print(f"Error: {settings.config_file}: {exc}")
        sys.exit(1)
    except BuildError as exc:
        for diagnostic in exc.diagnostics:
            print(diagnostic)
        print(f"Error: {exc}")
        sys.exit(1)
    except RuntimeError as exc:
        # pandoc missing, server start failure, render failure
        print(f"Error: {exc}")
        sys.exit(1)
    if status:
        sys.exit(status)


if __name__ == "__main__":
    main()
