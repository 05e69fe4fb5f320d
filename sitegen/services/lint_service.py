"""Content-integrity checks run before every build."""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from sitegen.filesystem.frontmatter import extract_links
from sitegen.services.navigation_service import (
    INDEX_DOCUMENTS,
    NavItem,
    NavSection,
    build_navigation,
    is_external,
    normalize_reference,
    pages_to_render,
)

if TYPE_CHECKING:
    from pathlib import Path

    from sitegen.filesystem.content_manager import ContentIndex

logger = logging.getLogger(__name__)


class Severity(StrEnum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class Diagnostic:
    """A single finding, printed as ``file: severity [code] message``."""

    severity: Severity
    code: str
    message: str
    file_path: str | None = None

    def __str__(self) -> str:
        where = self.file_path or "_quarto.yml"
        return f"{where}: {self.severity} [{self.code}] {self.message}"


@dataclass
class LintReport:
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity is Severity.ERROR]

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity is Severity.WARNING]

    @property
    def ok(self) -> bool:
        return not self.errors

    def failing_files(self) -> set[str]:
        """Files carrying at least one error."""
        return {d.file_path for d in self.errors if d.file_path is not None}

    def add(
        self, severity: Severity, code: str, message: str, file_path: str | None = None
    ) -> None:
        self.diagnostics.append(Diagnostic(severity, code, message, file_path))


def _escapes_root(reference: str) -> bool:
    return reference == ".." or reference.startswith("../")


def _check_item(item: NavItem, seen: set[str], report: LintReport) -> None:
    if item.external:
        return
    if _escapes_root(item.file_path):
        report.add(
            Severity.ERROR,
            "unsafe-reference",
            f"Navigation reference leaves the project directory: {item.file_path}",
            item.file_path,
        )
        return
    if not item.exists:
        report.add(
            Severity.ERROR,
            "missing-document",
            f"Navigation references a document that does not exist: {item.file_path}",
            item.file_path,
        )
        return
    if item.file_path in seen:
        report.add(
            Severity.WARNING,
            "duplicate-reference",
            f"Document is listed more than once in navigation: {item.file_path}",
            item.file_path,
        )
    seen.add(item.file_path)


def _linked_documents(file_path: str, content: str) -> list[str]:
    """Content documents a page links to, resolved against its directory."""
    base = posixpath.dirname(file_path)
    linked: list[str] = []
    for target in extract_links(content):
        if is_external(target) or target.startswith(("#", "/")):
            continue
        path = target.partition("#")[0]
        if posixpath.splitext(path)[1] not in (".qmd", ".md"):
            continue
        resolved = posixpath.normpath(posixpath.join(base, path))
        if not _escapes_root(resolved):
            linked.append(resolved)
    return linked


def _check_section(section: NavSection, seen: set[str], report: LintReport, trail: str) -> None:
    path = f"{trail} > {section.title}" if trail else section.title
    if section.is_empty:
        report.add(Severity.WARNING, "empty-section", f"Section '{path}' has no documents")
    if section.landing is not None:
        _check_item(section.landing, seen, report)
    for child in section.children:
        if isinstance(child, NavSection):
            _check_section(child, seen, report, path)
        else:
            _check_item(child, seen, report)


def lint_project(index: ContentIndex, content_dir: Path) -> LintReport:
    """Check the navigation tree and documents for authoring mistakes.

    Errors: ``missing-document``, ``unsafe-reference``, ``missing-title``.
    Warnings: ``duplicate-reference``, ``empty-section``,
    ``orphan-document``, ``broken-link``, ``missing-stylesheet``.
    """
    report = LintReport()
    tree = build_navigation(index.config, index.documents)

    seen: set[str] = set()
    for entry in tree.entries:
        if isinstance(entry, NavSection):
            _check_section(entry, seen, report, "")
        else:
            _check_item(entry, seen, report)

    for file_path, document in sorted(index.documents.items()):
        if not document.title:
            report.add(
                Severity.ERROR,
                "missing-title",
                "Document declares no title (front matter 'title' or a '# ' heading)",
                file_path,
            )

    explicit = {normalize_reference(p) for p in index.config.project.render}
    for file_path in sorted(index.documents):
        if file_path in seen or file_path in INDEX_DOCUMENTS or file_path in explicit:
            continue
        report.add(
            Severity.WARNING,
            "orphan-document",
            f"Document is not listed in navigation: {file_path}",
            file_path,
        )

    published = set(pages_to_render(index, tree, set()))
    for file_path, document in sorted(index.documents.items()):
        for target in _linked_documents(file_path, document.content):
            if target in published:
                continue
            reason = "is not rendered" if target in index.documents else "does not exist"
            report.add(
                Severity.WARNING, "broken-link", f"Link to {target} {reason}", file_path
            )

    for stylesheet in index.config.html.css:
        if not (content_dir / stylesheet).is_file():
            report.add(
                Severity.WARNING,
                "missing-stylesheet",
                f"Stylesheet not found: {stylesheet}",
            )

    logger.info(
        "Lint finished: %d error(s), %d warning(s)", len(report.errors), len(report.warnings)
    )
    return report
