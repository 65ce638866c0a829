from __future__ import annotations

import logging
import os
from collections.abc import Callable, Mapping
from pathlib import Path

import pytest

from sitesmith.config import SiteSettings
from sitesmith.core.engine import Engine

DEFAULT_TEMPLATE = """\
<html><head><title>{{ title }}</title>{{ metaKeywords | default("") }}</head>
<body><nav><a href="/index.html">Home</a></nav>
{{ body }}</body></html>
"""

POST_TEMPLATE = """\
<article><h1>{{ title }}</h1>{{ date }}
<p>Tags: {{ tags }}</p>
{{ body }}</article>
"""

TAG_TEMPLATE = """\
<ul>{% for post in posts %}<li><a href="{{ post.url }}">{{ post.title }}</a></li>{% endfor %}</ul>
"""

INDEX_PAGE = """\
<ul>{% for post in posts %}<li><a href="{{ post.url }}">{{ post.title }}</a> {{ post.date }}</li>{% endfor %}</ul>
"""

FIRST_POST = """\
---
title: First
tags: a, b
---
Hello [home](/index.html) and [elsewhere](https://example.com/page).

![shot](/images/x.png)
"""

SECOND_POST = """\
---
title: Second
published: 2021-03-04
tags: b
---
Second post.
"""

BLOG_FILES: dict[str, str | bytes] = {
    "templates/default.html": DEFAULT_TEMPLATE,
    "templates/post.html": POST_TEMPLATE,
    "templates/tag.html": TAG_TEMPLATE,
    "index.html": INDEX_PAGE,
    "posts/2020-01-01-first.markdown": FIRST_POST,
    "posts/second.markdown": SECOND_POST,
    "story.markdown": "---\ntitle: Story\n---\nOnce upon a time.\n",
    "download.markdown": "---\ntitle: Download\n---\nGet it [here](/files/game.zip).\n",
    "css/main.css": "body {\n  color: red;  /* brand */\n}\n",
    "images/favicon.ico": b"\x00\x00\x01\x00\xff\xfe",
    "images/x.png": b"\x89PNG\r\n\x1a\n\xff",
    "js/app.js": "console.log('hi');\n",
    "humans.txt": "Kenny Cason\n",
    "robots.txt": "User-agent: *\n",
}


def write_files(root: Path, files: Mapping[str, str | bytes]) -> Path:
    for relative, content in files.items():
        target = root / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            target.write_bytes(content)
        else:
            target.write_text(content, encoding="utf-8")
    return root


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep SITESMITH_* variables from the developer's shell out of the tests."""
    for key in list(os.environ):
        if key.startswith("SITESMITH_"):
            monkeypatch.delenv(key)


@pytest.fixture(autouse=True)
def restore_root_logger() -> None:
    """Keep handlers installed by one test's ``configure_logging`` out of the next."""
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    yield
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)


@pytest.fixture
def site_factory(tmp_path: Path) -> Callable[[Mapping[str, str | bytes]], Path]:
    def _make(files: Mapping[str, str | bytes]) -> Path:
        return write_files(tmp_path, files)

    return _make


@pytest.fixture
def blog_site(tmp_path: Path) -> Path:
    return write_files(tmp_path, BLOG_FILES)


@pytest.fixture
def engine_factory(site_factory) -> Callable[..., Engine]:
    """Engine over a site made of ``files``."""

    def _make(files: Mapping[str, str | bytes], **overrides) -> Engine:
        root = site_factory(files)
        return Engine(SiteSettings.load(root, **overrides))

    return _make
