"""Site configuration.

Settings come from three places, highest priority first:

1. Environment variables (``SITESMITH_SECTION__KEY``, e.g. ``SITESMITH_FEED__ROOT``)
2. ``sitesmith.toml`` in the site root
3. Defaults
"""

from __future__ import annotations

import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sitesmith.exceptions import ConfigLoadError

CONFIG_FILENAME = "sitesmith.toml"


def _deep_merge(destination: dict[str, Any], source: Mapping[str, Any]) -> dict[str, Any]:
    """Merge source into destination, with source values overwriting."""
    for key, value in source.items():
        if isinstance(value, Mapping) and key in destination and isinstance(destination[key], Mapping):
            destination[key] = _deep_merge(dict(destination[key]), value)
        else:
            destination[key] = value
    return destination


class FeedSettings(BaseModel):
    """RSS feed configuration. ``root`` is also the site root used for URL rewriting."""

    title: str = Field(default="Ninja Turdle - RSS feed", description="Channel title")
    description: str = Field(default="Ninja Turdle's Development History", description="Channel description")
    author_name: str = Field(default="Kenny Cason", description="Feed author name")
    author_email: str | None = Field(default="kenneth.cason@gmail.com", description="Feed author email")
    root: str = Field(default="http://www.ninjaturdle.com", description="Absolute base URL of the site")
    limit: int | None = Field(default=None, ge=1, description="Maximum number of feed entries")

    @field_validator("root")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class SiteSettings(BaseSettings):
    """Root configuration for a site build.

    Relative directories are resolved against ``site_root``.
    """

    site_root: Path = Field(default_factory=Path.cwd, description="Directory holding the site")
    source_dir: Path = Field(default=Path("."), description="Content directory")
    output_dir: Path = Field(default=Path("_site"), description="Directory receiving the built site")
    strict_patterns: bool = Field(default=True, description="Reject overlapping rule patterns")
    pages: list[str] = Field(
        default_factory=lambda: ["story.markdown", "download.markdown"],
        description="Standalone pages rendered with the default template",
    )
    ignore: list[str] = Field(
        default_factory=lambda: ["_cache/**", "*.toml", "**/*.pyc"],
        description="Glob patterns excluded from discovery",
    )
    feed: FeedSettings = Field(default_factory=FeedSettings)

    model_config = SettingsConfigDict(
        extra="ignore",
        env_prefix="SITESMITH_",
        env_nested_delimiter="__",
    )

    @property
    def abs_source_dir(self) -> Path:
        return self._resolve(self.source_dir)

    @property
    def abs_output_dir(self) -> Path:
        return self._resolve(self.output_dir)

    def _resolve(self, path: Path) -> Path:
        if path.is_absolute():
            return path
        return self.site_root / path

    @classmethod
    def load(cls, site_root: Path | None = None, **overrides: Any) -> SiteSettings:
        """Load settings from ``sitesmith.toml`` and the environment.

        Keyword ``overrides`` (e.g. from CLI flags) win over both.
        """
        root_path = site_root if site_root is not None else Path.cwd()
        config_file = root_path / CONFIG_FILENAME

        file_settings: dict[str, Any] = {}
        if config_file.is_file():
            try:
                with config_file.open("rb") as f:
                    file_settings = tomllib.load(f)
            except tomllib.TOMLDecodeError as exc:
                raise ConfigLoadError(str(config_file), str(exc)) from exc

        try:
            # pydantic-settings gives __init__ arguments priority over the
            # environment, so the file is merged underneath the env values here.
            env_settings = cls().model_dump(exclude_unset=True)
            merged = _deep_merge(file_settings, env_settings)
            merged = _deep_merge(merged, {k: v for k, v in overrides.items() if v is not None})
            merged["site_root"] = root_path
            return cls.model_validate(merged)
        except ValidationError as exc:
            raise ConfigLoadError(str(config_file), str(exc)) from exc
