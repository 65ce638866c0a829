"""Build-scoped state passed explicitly to every compiler invocation."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sitesmith.core.patterns import Pattern, as_pattern
from sitesmith.core.routes import url_for_route
from sitesmith.core.snapshots import FINAL_SNAPSHOT, SnapshotStore
from sitesmith.exceptions import UndeclaredDependencyError

if TYPE_CHECKING:
    from sitesmith.config import SiteSettings
    from sitesmith.core.identifier import Identifier
    from sitesmith.core.item import Content, Item, Provider
    from sitesmith.core.rules import Rule
    from sitesmith.core.tags import TagIndex
    from sitesmith.rendering.templates import TemplateEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Dependency:
    """Declares that a compiler reads items matching ``pattern``.

    ``snapshot`` names the snapshot it needs; ``None`` means metadata and
    routes only. Either way the producing rule is scheduled first.
    """

    pattern: Pattern
    snapshot: str | None = None
    version: str | None = None

    def covers(self, identifier: Identifier) -> bool:
        return identifier.version == self.version and self.pattern.matches(identifier)


def depends_on(pattern: Pattern | str, snapshot: str | None = None, *, version: str | None = None) -> Dependency:
    return Dependency(as_pattern(pattern), snapshot, version)


@dataclass
class BuildContext:
    """Everything one build run shares: discovered items, routes, snapshots, tag indexes.

    Constructed when the engine starts and discarded when the build ends.
    """

    settings: SiteSettings
    provider: Provider
    templates: TemplateEngine
    snapshots: SnapshotStore = field(default_factory=SnapshotStore)
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    items: dict[Identifier, Item] = field(default_factory=dict)
    routes: dict[Identifier, str] = field(default_factory=dict)
    tag_indexes: list[TagIndex] = field(default_factory=list)

    @property
    def site_root(self) -> str:
        return self.settings.feed.root

    def item(self, identifier: Identifier) -> Item:
        return self.items[identifier]

    def route_for(self, identifier: Identifier) -> str | None:
        return self.routes.get(identifier)

    def url_for(self, identifier: Identifier) -> str | None:
        route = self.routes.get(identifier)
        return url_for_route(route) if route is not None else None

    def identifiers_matching(self, pattern: Pattern | str, version: str | None = None) -> list[Identifier]:
        compiled = as_pattern(pattern)
        return [
            identifier
            for identifier in self.items
            if identifier.version == version and compiled.matches(identifier)
        ]


class CompilationContext:
    """What a compiler step may see while compiling one item under one rule."""

    def __init__(self, build: BuildContext, item: Item, rule: Rule) -> None:
        self.build = build
        self.item = item
        self.rule = rule
        self.dependencies: tuple[Dependency, ...] = tuple(rule.compiler.dependencies)

    @property
    def identifier(self) -> Identifier:
        return self.item.identifier

    @property
    def route(self) -> str | None:
        return self.build.route_for(self.identifier)

    @property
    def url(self) -> str | None:
        return self.build.url_for(self.identifier)

    @property
    def templates(self) -> TemplateEngine:
        return self.build.templates

    @property
    def settings(self) -> SiteSettings:
        return self.build.settings

    def save_snapshot(self, name: str, content: Content) -> None:
        self.build.snapshots.capture(self.identifier, name, content)

    def load_snapshot(self, identifier: Identifier, name: str = FINAL_SNAPSHOT) -> Content:
        if identifier != self.identifier and not any(dep.covers(identifier) for dep in self.dependencies):
            raise UndeclaredDependencyError(self.identifier, str(identifier))
        return self.build.snapshots.load(identifier, name)

    def items_matching(self, pattern: Pattern | str, *, version: str | None = None) -> list[Identifier]:
        return self._declared(pattern, version)

    def load_all(self, pattern: Pattern | str, *, version: str | None = None) -> list[Item]:
        """Items matching a declared dependency, in discovery order.

        Items whose compilation failed are skipped with a warning, as in
        :meth:`load_all_snapshots`.
        """
        return [self.build.item(identifier) for identifier in self._loadable(pattern, version)]

    def load_all_snapshots(
        self, pattern: Pattern | str, name: str, *, version: str | None = None
    ) -> list[tuple[Item, Content]]:
        """Load one snapshot from every item of a declared dependency.

        Items whose compilation failed are skipped (their failure is already
        reported); a snapshot that was never produced is an ordering error.
        """
        return [
            (self.build.item(identifier), self.build.snapshots.load(identifier, name))
            for identifier in self._loadable(pattern, version)
        ]

    def _loadable(self, pattern: Pattern | str, version: str | None) -> list[Identifier]:
        loadable = []
        for identifier in self._declared(pattern, version):
            if self.build.snapshots.failed(identifier):
                logger.warning("Skipping %s for %s: its compilation failed", identifier, self.identifier)
                continue
            loadable.append(identifier)
        return loadable

    def _declared(self, pattern: Pattern | str, version: str | None) -> list[Identifier]:
        compiled = as_pattern(pattern)
        identifiers = self.build.identifiers_matching(compiled, version)
        declared = any(dep.pattern == compiled and dep.version == version for dep in self.dependencies)
        if not declared and not (identifiers and all(self._covered(i) for i in identifiers)):
            raise UndeclaredDependencyError(self.identifier, str(compiled))
        return identifiers

    def _covered(self, identifier: Identifier) -> bool:
        return any(dep.covers(identifier) for dep in self.dependencies)
