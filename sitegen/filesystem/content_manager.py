"""Content directory scanner."""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import yaml

from sitegen.filesystem.frontmatter import DocumentData, parse_document
from sitegen.filesystem.project_config import (
    CONFIG_FILENAME,
    ProjectConfig,
    parse_project_config,
)

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

DOCUMENT_SUFFIXES: tuple[str, ...] = (".qmd", ".md")
# README-style files that live next to content but are not pages
_IGNORED_NAMES: frozenset[str] = frozenset({"README.md", "LICENSE.md", "CHANGELOG.md"})


@dataclass
class ContentIndex:
    """Everything read from the content directory for one build."""

    config: ProjectConfig
    documents: dict[str, DocumentData]  # file_path -> parsed document


def hash_content(content: str | bytes) -> str:
    """Compute SHA-256 hash of content."""
    if isinstance(content, str):
        content = content.encode("utf-8")
    return hashlib.sha256(content).hexdigest()


def discover_documents(content_dir: Path, skip_dirs: tuple[str, ...] = ()) -> list[Path]:
    """Recursively discover content documents under *content_dir*.

    Files and directories whose name starts with ``_`` or ``.`` are skipped
    (that covers ``_site``, ``_freeze`` and ``_quarto.yml``), as are the
    directories named in *skip_dirs*.
    """
    found: list[Path] = []
    skip = {content_dir / d for d in skip_dirs}
    for path in content_dir.rglob("*"):
        if not path.is_file() or not path.name.endswith(DOCUMENT_SUFFIXES):
            continue
        if path.name in _IGNORED_NAMES:
            continue
        rel_parts = path.relative_to(content_dir).parts
        if any(part.startswith(("_", ".")) for part in rel_parts):
            continue
        if any(path.is_relative_to(s) for s in skip):
            continue
        found.append(path)
    return sorted(found)


def _mtime(path: Path) -> datetime:
    return datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)


@dataclass
class ContentManager:
    """Reads the project configuration and content documents."""

    content_dir: Path
    config_file: str = CONFIG_FILENAME
    # Extra directories (relative to content_dir) that never hold documents
    skip_dirs: tuple[str, ...] = ()
    _config: ProjectConfig | None = field(default=None, repr=False)

    @property
    def project_config(self) -> ProjectConfig:
        """Get project configuration, loading if needed."""
        if self._config is None:
            self._config = parse_project_config(self.content_dir, self.config_file)
        return self._config

    def reload_config(self) -> None:
        """Reload project configuration from disk."""
        self._config = parse_project_config(self.content_dir, self.config_file)

    def validate_path(self, rel_path: str) -> Path:
        """Validate that a relative path stays within the content directory.

        Raises ValueError if the resolved path escapes content_dir.
        """
        full_path = (self.content_dir / rel_path).resolve()
        if not full_path.is_relative_to(self.content_dir.resolve()):
            raise ValueError(f"Path traversal detected: {rel_path}")
        return full_path

    def read_document(self, rel_path: str) -> DocumentData | None:
        """Read a single document by relative path, or None if it does not exist."""
        full_path = self.validate_path(rel_path)
        if not full_path.is_file():
            return None
        raw_content = full_path.read_text(encoding="utf-8")
        return parse_document(raw_content, file_path=rel_path, modified_at=_mtime(full_path))

    def scan_documents(self) -> list[DocumentData]:
        """Scan all documents; unreadable or malformed files are logged and skipped."""
        skip = (self.project_config.project.output_dir, *self.skip_dirs)
        documents: list[DocumentData] = []
        for path in discover_documents(self.content_dir, skip_dirs=skip):
            rel_path = path.relative_to(self.content_dir).as_posix()
            try:
                raw_content = path.read_text(encoding="utf-8")
                document = parse_document(raw_content, file_path=rel_path, modified_at=_mtime(path))
            except (UnicodeDecodeError, yaml.YAMLError, OSError):
                logger.exception("Skipping document %s due to read/parse error", rel_path)
                continue
            documents.append(document)
        return documents

    def build_index(self) -> ContentIndex:
        """Build a complete content index from the filesystem."""
        documents = {doc.file_path: doc for doc in self.scan_documents()}
        logger.debug("Indexed %d documents in %s", len(documents), self.content_dir)
        return ContentIndex(config=self.project_config, documents=documents)
