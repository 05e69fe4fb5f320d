"""Site generator exception types.

Convention:
- ``ConfigError``: the project configuration cannot be parsed or holds a
  value of the wrong shape.  The message always names the offending key so
  authors can fix the file without reading a traceback.
- ``BuildError``: the build was aborted.  Carries the lint diagnostics that
  caused it, if any.
- ``RenderError`` (in ``sitegen.pandoc.renderer``): pandoc could not turn a
  document into HTML.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sitegen.services.lint_service import Diagnostic


class ConfigError(ValueError):
    """Raised when ``_quarto.yml`` is malformed or structurally invalid."""


class BuildError(Exception):
    """Raised when a site build cannot complete.

    The CLI catches this, prints every attached diagnostic and exits with
    status 1.
    """

    def __init__(self, message: str, diagnostics: list[Diagnostic] | None = None) -> None:
        super().__init__(message)
        self.diagnostics: list[Diagnostic] = list(diagnostics or [])
