"""Rules bind a pattern to a route and a compiler chain."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sitesmith.core.identifier import Identifier
from sitesmith.core.patterns import Pattern, as_pattern, from_list, overlaps
from sitesmith.exceptions import AmbiguousRuleError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sitesmith.core.compilers import Compiler
    from sitesmith.core.routes import Route

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Rule:
    """A pattern, the route of what it matches, and the chain compiling it.

    ``created`` lists identifiers the rule synthesizes itself (the feed, tag
    pages) instead of taking them from the content directory.
    """

    name: str
    pattern: Pattern
    route: Route
    compiler: Compiler
    version: str | None = None
    created: tuple[Identifier, ...] = ()
    index: int = 0

    @property
    def is_created(self) -> bool:
        return bool(self.created)

    def __str__(self) -> str:
        return self.name


@dataclass
class RuleRegistry:
    """Ordered rule registry.

    Two rules of the same version whose patterns can match a common identifier
    are ambiguous. In strict mode registering the second raises
    :class:`AmbiguousRuleError`; otherwise the overlap is logged and, for each
    identifier, the first-registered rule wins.
    """

    strict: bool = True
    rules: list[Rule] = field(default_factory=list)
    overlaps: list[tuple[Rule, Rule]] = field(default_factory=list)

    def register(
        self,
        pattern: Pattern | str,
        route: Route,
        compiler: Compiler,
        *,
        version: str | None = None,
        name: str | None = None,
    ) -> Rule:
        compiled = as_pattern(pattern)
        rule = Rule(
            name=name or str(compiled) + (f"#{version}" if version else ""),
            pattern=compiled,
            route=route,
            compiler=compiler,
            version=version,
            index=len(self.rules),
        )
        return self._add(rule)

    def create(
        self,
        identifiers: Iterable[Identifier | str],
        route: Route,
        compiler: Compiler,
        *,
        version: str | None = None,
        name: str | None = None,
    ) -> Rule:
        created = tuple(i if isinstance(i, Identifier) else Identifier(i) for i in identifiers)
        pattern = from_list(created)
        rule = Rule(
            name=name or f"create {pattern}",
            pattern=pattern,
            route=route,
            compiler=compiler,
            version=version,
            created=tuple(i.with_version(version) for i in created),
            index=len(self.rules),
        )
        return self._add(rule)

    def _add(self, rule: Rule) -> Rule:
        for existing in self.rules:
            if existing.version != rule.version or not overlaps(existing.pattern, rule.pattern):
                continue
            if self.strict:
                raise AmbiguousRuleError(existing.name, rule.name, rule.version)
            logger.warning(
                "Rule '%s' overlaps '%s'; the earlier rule wins for shared identifiers",
                rule.name,
                existing.name,
            )
            self.overlaps.append((existing, rule))
        self.rules.append(rule)
        logger.debug("Registered rule %d: %s", rule.index, rule.name)
        return rule

    def __iter__(self):
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)
