"""Reuse of previously rendered pages (the ``freeze`` project option)."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sitegen.services.datetime_service import now_utc

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

FREEZE_FILENAME = "render.json"


@dataclass
class FrozenRender:
    file_path: str
    source_hash: str
    format_hash: str
    html: str
    rendered_at: str


class FreezeStore:
    """One JSON file per document under ``<freeze_dir>/<file path>/render.json``.

    A render is only ever reused for the same source text. ``mode`` follows
    the project option: ``True`` also reuses renders made under different
    format options, ``"auto"`` requires those to match as well, ``False``
    never reuses (entries are still written so a later frozen build can use
    them).
    """

    def __init__(self, freeze_dir: Path, mode: bool | str = False) -> None:
        self.freeze_dir = freeze_dir
        self.mode = mode

    def _entry_path(self, file_path: str) -> Path:
        return self.freeze_dir / file_path / FREEZE_FILENAME

    def load(self, file_path: str) -> FrozenRender | None:
        """Read a stored render; missing, corrupt or foreign entries return None."""
        path = self._entry_path(file_path)
        if not path.is_file():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            frozen = FrozenRender(
                file_path=str(data["file_path"]),
                source_hash=str(data["source_hash"]),
                format_hash=str(data.get("format_hash", "")),
                html=str(data["html"]),
                rendered_at=str(data.get("rendered_at", "")),
            )
        except (OSError, ValueError, KeyError, TypeError) as exc:
            logger.warning("Ignoring corrupt freeze entry %s: %s", path, exc)
            return None
        if frozen.file_path != file_path:
            logger.warning("Ignoring freeze entry %s stored for %s", path, frozen.file_path)
            return None
        return frozen

    def lookup(self, file_path: str, source_hash: str, format_hash: str = "") -> str | None:
        """Return reusable HTML for *file_path*, or None if it must be rendered."""
        if self.mode is False:
            return None
        frozen = self.load(file_path)
        if frozen is None:
            return None
        if frozen.source_hash != source_hash:
            logger.debug("Source of %s changed since it was frozen", file_path)
            return None
        if self.mode == "auto" and frozen.format_hash != format_hash:
            logger.debug("Format options changed since %s was frozen", file_path)
            return None
        return frozen.html

    def store(self, file_path: str, source_hash: str, html: str, format_hash: str = "") -> None:
        path = self._entry_path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        entry = {
            "file_path": file_path,
            "source_hash": source_hash,
            "format_hash": format_hash,
            "html": html,
            "rendered_at": now_utc().isoformat(),
        }
        path.write_text(json.dumps(entry, indent=2), encoding="utf-8")
