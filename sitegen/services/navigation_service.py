"""Navigation tree built from the sidebar declaration."""

from __future__ import annotations

import logging
import posixpath
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sitegen.filesystem.frontmatter import title_from_filename

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sitegen.filesystem.content_manager import ContentIndex
    from sitegen.filesystem.frontmatter import DocumentData
    from sitegen.filesystem.project_config import NavEntry, ProjectConfig

logger = logging.getLogger(__name__)

INDEX_DOCUMENTS: frozenset[str] = frozenset({"index.qmd", "index.md"})

_EXTERNAL_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*:")


def output_path_for(file_path: str) -> str:
    """Map a content path to its output page: ``guide/intro.qmd`` -> ``guide/intro.html``."""
    stem, ext = posixpath.splitext(file_path)
    if ext in (".qmd", ".md"):
        return f"{stem}.html"
    return file_path


def normalize_reference(href: str) -> str:
    """Normalize a declared reference to a content-relative posix path."""
    return posixpath.normpath(href.strip().removeprefix("./").lstrip("/"))


def is_external(href: str) -> bool:
    return bool(_EXTERNAL_RE.match(href)) or href.startswith("//")


def find_document(reference: str, documents: dict[str, DocumentData]) -> str | None:
    """Source path a reference points at, matching on the stem.

    ``guide/index.html`` and ``guide/index.qmd`` both resolve to
    ``guide/index.qmd`` when that document exists.
    """
    path = normalize_reference(reference)
    if path in documents:
        return path
    stem, _ = posixpath.splitext(path)
    for candidate in (f"{stem}.qmd", f"{stem}.md"):
        if candidate in documents:
            return candidate
    return None


@dataclass
class NavItem:
    """A document reference resolved against the content index."""

    file_path: str
    title: str
    href: str
    exists: bool = True
    external: bool = False


@dataclass
class NavSection:
    """A titled group of items and nested sections, kept in declared order.

    ``landing`` is the local document behind ``href`` (``exists=False`` when
    it is missing); it comes first in reading order, ahead of the children.
    """

    title: str
    children: list[NavSection | NavItem] = field(default_factory=list)
    href: str | None = None
    landing: NavItem | None = None

    @property
    def items(self) -> list[NavItem]:
        return [c for c in self.children if isinstance(c, NavItem)]

    @property
    def sections(self) -> list[NavSection]:
        return [c for c in self.children if isinstance(c, NavSection)]

    @property
    def is_empty(self) -> bool:
        return not self.children and self.href is None

    def walk_items(self) -> Iterator[NavItem]:
        if self.landing is not None:
            yield self.landing
        for child in self.children:
            if isinstance(child, NavItem):
                yield child
            else:
                yield from child.walk_items()


@dataclass
class NavTree:
    """The site's navigation: sections and loose items in declared order.

    ``entries`` keeps sections and top-level items interleaved exactly as
    declared; ``sections`` and ``items`` are views of the same nodes.
    """

    entries: list[NavSection | NavItem] = field(default_factory=list)

    @property
    def sections(self) -> list[NavSection]:
        return [e for e in self.entries if isinstance(e, NavSection)]

    @property
    def items(self) -> list[NavItem]:
        return [e for e in self.entries if isinstance(e, NavItem)]

    def ordered_items(self) -> list[NavItem]:
        """All document items depth-first in declaration order."""
        result: list[NavItem] = []
        for entry in self.entries:
            if isinstance(entry, NavItem):
                result.append(entry)
            else:
                result.extend(entry.walk_items())
        return result

    def page_items(self) -> list[NavItem]:
        """Existing local documents, first occurrence only, in reading order."""
        seen: set[str] = set()
        pages: list[NavItem] = []
        for item in self.ordered_items():
            if item.external or not item.exists or item.file_path in seen:
                continue
            seen.add(item.file_path)
            pages.append(item)
        return pages

    def neighbours(self, file_path: str) -> tuple[NavItem | None, NavItem | None]:
        """Previous and next page around *file_path* in reading order."""
        pages = self.page_items()
        for i, item in enumerate(pages):
            if item.file_path == file_path:
                prev_item = pages[i - 1] if i > 0 else None
                next_item = pages[i + 1] if i + 1 < len(pages) else None
                return prev_item, next_item
        return None, None

    def section_for(self, file_path: str) -> NavSection | None:
        """Innermost section listing *file_path*, or None for top-level items."""

        def _find(section: NavSection) -> NavSection | None:
            for sub in section.sections:
                found = _find(sub)
                if found is not None:
                    return found
            if section.landing is not None and section.landing.file_path == file_path:
                return section
            if any(item.file_path == file_path for item in section.items):
                return section
            return None

        for section in self.sections:
            found = _find(section)
            if found is not None:
                return found
        return None


def _resolve_item(entry: NavEntry, documents: dict[str, DocumentData]) -> NavItem:
    href = entry.href or ""
    if is_external(href):
        return NavItem(
            file_path=href, title=entry.text or href, href=href, exists=True, external=True
        )
    file_path = normalize_reference(href)
    document = documents.get(file_path)
    if entry.text:
        title = entry.text
    elif document is not None and document.title:
        title = document.title
    else:
        title = title_from_filename(file_path)
    return NavItem(
        file_path=file_path,
        title=title,
        href=output_path_for(file_path),
        exists=document is not None,
    )


def _build_section(entry: NavEntry, documents: dict[str, DocumentData]) -> NavSection:
    section = NavSection(title=entry.section or "")
    if entry.href and is_external(entry.href):
        section.href = entry.href
    elif entry.href:
        section.href = output_path_for(normalize_reference(entry.href))
        source = find_document(entry.href, documents)
        file_path = source or normalize_reference(entry.href)
        document = documents.get(file_path)
        title = section.title or (document.title if document is not None else None)
        section.landing = NavItem(
            file_path=file_path,
            title=title or title_from_filename(file_path),
            href=output_path_for(file_path),
            exists=document is not None,
        )
    for child in entry.contents:
        if child.is_section:
            section.children.append(_build_section(child, documents))
        else:
            section.children.append(_resolve_item(child, documents))
    return section


def build_navigation(config: ProjectConfig, documents: dict[str, DocumentData]) -> NavTree:
    """Resolve the sidebar declaration against the parsed documents.

    References to missing documents stay in the tree with ``exists=False``.
    """
    tree = NavTree()
    for entry in config.website.sidebar.contents:
        if entry.is_section:
            tree.entries.append(_build_section(entry, documents))
        else:
            tree.entries.append(_resolve_item(entry, documents))
    return tree


def relative_href(from_page: str, to_page: str) -> str:
    """Link from one output page to another, relative to the first page's directory."""
    if is_external(to_page):
        return to_page
    base = posixpath.dirname(from_page) or "."
    return posixpath.relpath(to_page, base)


def pages_to_render(index: ContentIndex, tree: NavTree, skip: set[str]) -> list[str]:
    """Source paths to render, in reading order, each once.

    Navigation pages come first, then the home page, then any extra files
    listed under ``project.render``.  Without a ``project.render`` list every
    remaining document is rendered as well, so pages left out of navigation
    still resolve.  Drafts and files in *skip* are left out.
    """
    ordered: list[str] = [item.file_path for item in tree.page_items()]
    ordered.extend(p for p in sorted(INDEX_DOCUMENTS) if p in index.documents)
    if index.config.project.render:
        ordered.extend(normalize_reference(p) for p in index.config.project.render)
    else:
        ordered.extend(sorted(index.documents))

    result: list[str] = []
    seen: set[str] = set()
    for file_path in ordered:
        if file_path in seen:
            continue
        seen.add(file_path)
        document = index.documents.get(file_path)
        if document is None or file_path in skip:
            continue
        if document.draft:
            logger.info("Skipping draft %s", file_path)
            continue
        result.append(file_path)
    return result
