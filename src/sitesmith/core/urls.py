"""URL rewriting over rendered HTML.

Only the values of ``href`` and ``src`` attributes are touched; every other
byte of the document is preserved.
"""

from __future__ import annotations

import posixpath
import re
from collections.abc import Callable
from typing import Final

_URL_ATTRIBUTE: Final = re.compile(
    r"""(?P<prefix>\s(?:href|src)\s*=\s*)(?P<quote>["'])(?P<url>.*?)(?P=quote)""",
    re.IGNORECASE | re.DOTALL,
)
_SCHEME: Final = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*:")


def with_urls(html: str, rewrite: Callable[[str], str]) -> str:
    """Apply ``rewrite`` to every link and source URL in ``html``."""

    def _replace(match: re.Match[str]) -> str:
        url = match.group("url")
        new_url = rewrite(url)
        if new_url == url:
            return match.group(0)
        quote = match.group("quote")
        return f"{match.group('prefix')}{quote}{new_url}{quote}"

    return _URL_ATTRIBUTE.sub(_replace, html)


def is_external(url: str) -> bool:
    """True for URLs with a scheme (``https:``, ``mailto:``) or protocol-relative ones."""
    return url.startswith("//") or bool(_SCHEME.match(url))


def _is_root_relative(url: str) -> bool:
    return url.startswith("/") and not url.startswith("//")


def externalize_url(url: str, root: str) -> str:
    if is_external(url) or not _is_root_relative(url):
        return url
    return root.rstrip("/") + url


def internalize_url(url: str, root: str) -> str:
    base = root.rstrip("/")
    if url == base:
        return "/"
    if url.startswith(base + "/"):
        return url[len(base) :]
    return url


def externalize_urls(html: str, root: str) -> str:
    """Make root-relative URLs absolute under ``root``; third-party URLs are left alone."""
    return with_urls(html, lambda url: externalize_url(url, root))


def internalize_urls(html: str, root: str) -> str:
    """Strip ``root`` from absolute in-site URLs, back to root-relative form."""
    return with_urls(html, lambda url: internalize_url(url, root))


def to_site_root(route: str) -> str:
    """Relative path from an output file back to the site root (``posts/a.html`` -> ``..``)."""
    directory = posixpath.dirname(route.lstrip("/"))
    if not directory:
        return "."
    return "/".join(".." for _ in directory.split("/"))


def relativize_urls(html: str, route: str) -> str:
    """Make root-relative URLs relative to the page at ``route``."""
    site_root = to_site_root(route)

    def _relativize(url: str) -> str:
        if _is_root_relative(url):
            return site_root + url
        return url

    return with_urls(html, _relativize)


def clean_index_url(url: str) -> str:
    if url.endswith("/index.html") and not is_external(url):
        return url[: -len("index.html")]
    return url


def clean_index_urls(html: str) -> str:
    """Drop a trailing ``index.html`` from in-site links."""
    return with_urls(html, clean_index_url)
