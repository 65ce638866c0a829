from pathlib import Path

import pytest

from sitesmith.config import CONFIG_FILENAME, FeedSettings, SiteSettings
from sitesmith.exceptions import ConfigLoadError


def test_load_defaults(tmp_path: Path):
    """It should load default settings when no config file or env vars are present."""
    # Act
    settings = SiteSettings.load(tmp_path)

    # Assert
    assert settings.site_root == tmp_path
    assert settings.strict_patterns is True
    assert settings.abs_source_dir == tmp_path / "."
    assert settings.abs_output_dir == tmp_path / "_site"
    assert settings.feed.root == "http://www.ninjaturdle.com"
    assert settings.feed.author_name == "Kenny Cason"
    assert settings.pages == ["story.markdown", "download.markdown"]


def test_load_from_toml_file(tmp_path: Path):
    """It should load settings from a sitesmith.toml file."""
    # Arrange
    (tmp_path / CONFIG_FILENAME).write_text(
        """
output_dir = "public"
strict_patterns = false

[feed]
root = "https://blog.example.org/"
limit = 10
"""
    )

    # Act
    settings = SiteSettings.load(tmp_path)

    # Assert
    assert settings.abs_output_dir == tmp_path / "public"
    assert settings.strict_patterns is False
    assert settings.feed.root == "https://blog.example.org"
    assert settings.feed.limit == 10
    assert settings.feed.title == "Ninja Turdle - RSS feed"  # Default is kept


def test_env_vars_override_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Environment variables should take precedence over the config file."""
    # Arrange
    (tmp_path / CONFIG_FILENAME).write_text('[feed]\ntitle = "From file"\nroot = "https://file.example"\n')
    monkeypatch.setenv("SITESMITH_FEED__ROOT", "https://env.example")

    # Act
    settings = SiteSettings.load(tmp_path)

    # Assert
    assert settings.feed.root == "https://env.example"  # Env var wins
    assert settings.feed.title == "From file"  # From file


def test_overrides_win_over_everything(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    (tmp_path / CONFIG_FILENAME).write_text('output_dir = "from-file"\n')
    monkeypatch.setenv("SITESMITH_OUTPUT_DIR", "from-env")

    settings = SiteSettings.load(tmp_path, output_dir=Path("from-cli"), strict_patterns=None)

    assert settings.output_dir == Path("from-cli")
    assert settings.strict_patterns is True


def test_invalid_toml_raises_config_error(tmp_path: Path):
    (tmp_path / CONFIG_FILENAME).write_text("this is = = not toml")

    with pytest.raises(ConfigLoadError) as excinfo:
        SiteSettings.load(tmp_path)

    assert excinfo.value.path.endswith(CONFIG_FILENAME)


def test_invalid_value_raises_config_error(tmp_path: Path):
    (tmp_path / CONFIG_FILENAME).write_text("[feed]\nlimit = 0\n")

    with pytest.raises(ConfigLoadError, match="limit"):
        SiteSettings.load(tmp_path)


def test_feed_root_trailing_slash_is_stripped():
    assert FeedSettings(root="http://x.io///").root == "http://x.io"
