"""Routes map identifiers to output paths.

A route is a plain callable ``Identifier -> str | None``; ``None`` means the
item is compiled (for its snapshots) but not written.
"""

from __future__ import annotations

import logging
import posixpath
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING

from sitesmith.core.identifier import Identifier
from sitesmith.core.patterns import Glob, Pattern, as_pattern
from sitesmith.exceptions import InvalidRouteError, RouteCollisionError, SiteValidationError, StructuralError

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)

Route = Callable[[Identifier], "str | None"]


def id_route(identifier: Identifier) -> str:
    return identifier.path


def no_route(identifier: Identifier) -> None:
    return None


def set_extension(extension: str) -> Route:
    """Replace the file extension, e.g. ``posts/a.markdown`` -> ``posts/a.html``."""
    suffix = extension if extension.startswith(".") or not extension else f".{extension}"

    def route(identifier: Identifier) -> str:
        root, _ = posixpath.splitext(identifier.path)
        return f"{root}{suffix}"

    return route


def const_route(path: str) -> Route:
    def route(identifier: Identifier) -> str:
        return path

    return route


def custom_route(fn: Callable[[Identifier], str | None]) -> Route:
    return fn


def from_capture_route(pattern: Pattern | str, template: Glob | str) -> Route:
    """Fill the wildcards of ``template`` with what ``pattern`` captured.

    ``from_capture_route("posts/*.md", "blog/*/index.html")`` sends
    ``posts/hello.md`` to ``blog/hello/index.html``.
    """
    source = as_pattern(pattern)
    target = template if isinstance(template, Glob) else Glob(template)

    def route(identifier: Identifier) -> str | None:
        captures = source.capture(identifier)
        if captures is None:
            return None
        return target.fill(captures)

    return route


def nice_route(identifier: Identifier) -> str:
    """Send ``foo/bar.md`` to ``foo/bar/index.html`` so the URL reads ``foo/bar/``."""
    directory, name = posixpath.split(identifier.path)
    stem = posixpath.splitext(name)[0]
    return posixpath.join(directory, stem, "index.html")


def compose_routes(first: Route, second: Route) -> Route:
    """Apply ``second`` to the path produced by ``first``."""

    def route(identifier: Identifier) -> str | None:
        intermediate = first(identifier)
        if intermediate is None:
            return None
        return second(Identifier(intermediate, identifier.version))

    return route


def _validate_path(identifier: Identifier, path: str) -> str:
    normalized = posixpath.normpath(path)
    if path.startswith("/") or normalized == ".." or normalized.startswith("../") or normalized == ".":
        raise InvalidRouteError(identifier, path)
    return normalized


class RouteResolver:
    """Resolves every route up front and detects collisions.

    Resolution is deterministic and side-effect free; it runs before any item
    is compiled, so collisions are reported before anything is written.
    """

    def __init__(self) -> None:
        self.routes: dict[Identifier, str] = {}
        self.errors: list[StructuralError] = []
        self._owners: dict[str, Identifier] = {}

    def add(self, identifier: Identifier, route: Route) -> str | None:
        raw = route(identifier)
        if raw is None:
            return None
        try:
            path = _validate_path(identifier, raw)
        except InvalidRouteError as exc:
            self.errors.append(exc)
            return None

        owner = self._owners.get(path)
        if owner is not None and owner != identifier:
            self.errors.append(RouteCollisionError(path, owner, identifier))
            return None
        self._owners[path] = identifier
        self.routes[identifier] = path
        return path

    def resolve(self, assignments: Iterable[tuple[Identifier, Route]]) -> Mapping[Identifier, str]:
        for identifier, route in assignments:
            self.add(identifier, route)
        if self.errors:
            raise SiteValidationError(self.errors)
        logger.debug("Resolved %d routes", len(self.routes))
        return self.routes


def url_for_route(path: str) -> str:
    """Root-relative URL of an output path."""
    return "/" + path.lstrip("/")
