"""Generator settings loaded from environment variables."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Sitegen runtime settings.

    Everything describing the site itself lives in ``_quarto.yml``; these
    settings only control where files are read and written and how pandoc
    is run.
    """

    model_config = SettingsConfigDict(
        env_prefix="SITEGEN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    debug: bool = False

    # Paths
    content_dir: Path = Path(".")
    config_file: str = "_quarto.yml"
    # Overrides project.output-dir when set
    output_dir: Path | None = None
    freeze_dir: str = "_freeze"

    # Pandoc
    pandoc_port: int = Field(default=3031, ge=1, le=65535)
    pandoc_timeout: int = Field(default=10, ge=1)
    pandoc_executable: str = "pandoc"

    # Abort the build on lint errors instead of skipping broken documents
    strict: bool = True

    def resolve_output_dir(self, configured: str) -> Path:
        """Return the output directory, preferring the explicit override."""
        if self.output_dir is not None:
            return self.output_dir
        return self.content_dir / configured
