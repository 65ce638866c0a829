"""The build engine.

A build runs in four phases:

1. assignment: every rule claims the items its pattern matches (or the items
   it creates); for a given identifier the first-registered rule wins,
2. validation: routes are resolved and rules are ordered so producers run
   before consumers; every structural error is collected and raised together,
3. compilation: each item runs through its rule's chain; failures are
   isolated per item x rule,
4. writing: successful outputs are written to their routes.

Example:
    >>> engine = Engine(SiteSettings.load(Path("site")))
    >>> engine.match("css/*.css", route=id_route, compiler=compiler(compress_css))
    >>> report = engine.build()
    >>> report.exit_code
    0
"""

from __future__ import annotations

import heapq
import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from sitesmith.core.context import BuildContext, CompilationContext, depends_on
from sitesmith.core.item import Item, Provider
from sitesmith.core.patterns import Glob, Pattern, as_pattern
from sitesmith.core.routes import RouteResolver, id_route, no_route
from sitesmith.core.rules import Rule, RuleRegistry
from sitesmith.core.snapshots import FINAL_SNAPSHOT
from sitesmith.core.tags import TagIndex, build_index
from sitesmith.exceptions import (
    AmbiguousRuleError,
    CompilerStepError,
    DependencyCycleError,
    ItemError,
    MetadataError,
    OutputWriteError,
    SiteValidationError,
    StructuralError,
)
from sitesmith.rendering.templates import TemplateEngine

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    from sitesmith.config import SiteSettings
    from sitesmith.core.compilers import Compiler
    from sitesmith.core.identifier import Identifier
    from sitesmith.core.item import Content
    from sitesmith.core.routes import Route

logger = logging.getLogger(__name__)


@dataclass
class ItemResult:
    """Outcome of compiling one item under one rule."""

    identifier: Identifier
    rule: str
    route: str | None
    error: ItemError | None = None
    output_path: Path | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BuildReport:
    run_id: str
    results: list[ItemResult] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def errors(self) -> list[ItemError]:
        return [result.error for result in self.results if result.error is not None]

    @property
    def written(self) -> list[Path]:
        return [result.output_path for result in self.results if result.output_path is not None]

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1


def _date_or_last(item: Item) -> Any:
    """Sort key for tag buckets: undated items sort after dated ones."""
    try:
        return (1, item.date)
    except MetadataError as exc:
        logger.warning("Cannot date %s for tag ordering: %s", item.identifier, exc)
        return (0, None)


class Engine:
    """Registers rules for one site and builds it.

    The engine owns one :class:`BuildContext`; build a new engine for a new run.
    """

    def __init__(
        self,
        settings: SiteSettings,
        *,
        provider: Provider | None = None,
        templates: TemplateEngine | None = None,
    ) -> None:
        self.settings = settings
        self.registry = RuleRegistry(strict=settings.strict_patterns)
        source_dir = settings.abs_source_dir
        if provider is None:
            provider = Provider(source_dir, exclude_dirs=[settings.abs_output_dir], ignore=settings.ignore)
        self.context = BuildContext(
            settings=settings,
            provider=provider,
            templates=templates or TemplateEngine(source_dir),
        )
        self._assigned: dict[int, list[Item]] | None = None

    # --- Registration ---

    def match(
        self,
        pattern: Pattern | str,
        *,
        compiler: Compiler,
        route: Route = no_route,
        version: str | None = None,
        name: str | None = None,
    ) -> Rule:
        return self.registry.register(pattern, route, compiler, version=version, name=name)

    def create(
        self,
        identifiers: Iterable[Identifier | str],
        *,
        compiler: Compiler,
        route: Route = id_route,
        version: str | None = None,
        name: str | None = None,
    ) -> Rule:
        return self.registry.create(identifiers, route, compiler, version=version, name=name)

    def build_tags(
        self,
        pattern: Pattern | str,
        template: Glob | str,
        *,
        field: str = "tags",
        sort_key: Callable[[Item], Any] | None = _date_or_last,
    ) -> TagIndex:
        """Index the tags of the discovered items matching ``pattern``.

        Raises :class:`TagSanitizationCollisionError` when two tags share a path segment.
        """
        compiled = as_pattern(pattern)
        items = [item for item in self.context.provider if compiled.matches(item.identifier)]
        index = build_index(items, template=template, field=field, sort_key=sort_key)
        self.context.tag_indexes.append(index)
        return index

    def tags_rules(self, tags: TagIndex, factory: Callable[[str, Pattern], tuple[Route, Compiler]]) -> list[Rule]:
        """Register one created rule per tag.

        ``factory`` receives the tag and the pattern of its items and returns the
        route and compiler of the listing page. The dependency on the tag's
        items is declared automatically.
        """
        rules = []
        for tag in tags:
            pattern = tags.pattern_for(tag)
            route, tag_compiler = factory(tag, pattern)
            rules.append(
                self.registry.create(
                    [tags.identifier_for(tag)],
                    route,
                    tag_compiler.requiring(depends_on(pattern)),
                    name=f"tag '{tag}'",
                )
            )
        return rules

    # --- Phases ---

    def _assign(self, errors: list[StructuralError]) -> dict[int, list[Item]]:
        """Give each identifier to the first rule that claims it.

        Overlaps the registry could not rule out statically (regex patterns)
        show up here. In strict mode each overlapping pair of rules is an error.
        """
        self.context.items.clear()
        assigned: dict[int, list[Item]] = {}
        claimed: dict[Identifier, Rule] = {}
        reported: set[tuple[int, int]] = set()
        for rule in self.registry:
            if rule.is_created:
                candidates = [Item(identifier) for identifier in rule.created]
            else:
                candidates = [
                    item.with_version(rule.version)
                    for item in self.context.provider
                    if rule.pattern.matches(item.identifier)
                ]

            members = []
            for item in candidates:
                owner = claimed.get(item.identifier)
                if owner is None:
                    claimed[item.identifier] = rule
                    self.context.items[item.identifier] = item
                    members.append(item)
                elif self.registry.strict:
                    if (owner.index, rule.index) not in reported:
                        reported.add((owner.index, rule.index))
                        errors.append(AmbiguousRuleError(owner.name, rule.name, rule.version))
                else:
                    logger.warning("%s already belongs to rule '%s'; skipping it for '%s'", item.identifier, owner, rule)
            assigned[rule.index] = members
            logger.debug("Rule '%s' claims %d items", rule, len(members))

        self._assigned = assigned
        return assigned

    def _resolve_routes(self, assigned: Mapping[int, list[Item]], errors: list[StructuralError]) -> None:
        resolver = RouteResolver()
        for rule in self.registry:
            for item in assigned[rule.index]:
                resolver.add(item.identifier, rule.route)
        errors.extend(resolver.errors)
        self.context.routes = resolver.routes

    def _schedule(self, assigned: Mapping[int, list[Item]], errors: list[StructuralError]) -> list[Rule]:
        """Order rules producer-first with Kahn's algorithm.

        Rules without a dependency relation keep registration order.
        """
        rules = list(self.registry)
        adjacency: dict[int, list[int]] = defaultdict(list)
        in_degree: dict[int, int] = dict.fromkeys(range(len(rules)), 0)

        for consumer in rules:
            producers: set[int] = set()
            for dependency in consumer.compiler.dependencies:
                for producer in rules:
                    if any(dependency.covers(item.identifier) for item in assigned[producer.index]):
                        producers.add(producer.index)
            if consumer.index in producers:
                errors.append(DependencyCycleError([consumer.name]))
                producers.discard(consumer.index)
            for producer_index in producers:
                adjacency[producer_index].append(consumer.index)
                in_degree[consumer.index] += 1

        queue = [index for index, degree in in_degree.items() if degree == 0]
        heapq.heapify(queue)
        order: list[Rule] = []
        while queue:
            current = heapq.heappop(queue)
            order.append(rules[current])
            for neighbor in adjacency[current]:
                in_degree[neighbor] -= 1
                if in_degree[neighbor] == 0:
                    heapq.heappush(queue, neighbor)

        if len(order) != len(rules):
            stuck = [rule.name for rule in rules if in_degree[rule.index] > 0]
            errors.append(DependencyCycleError(stuck))
        return order

    def validate(self) -> list[Rule]:
        """Assign items, resolve routes and schedule rules.

        Returns the rules in execution order. Raises :class:`SiteValidationError`
        listing every structural problem found.
        """
        errors: list[StructuralError] = []
        assigned = self._assign(errors)
        self._resolve_routes(assigned, errors)
        order = self._schedule(assigned, errors)
        if errors:
            raise SiteValidationError(errors)
        return order

    def check(self) -> Mapping[Identifier, str]:
        """Validate the site and return its route table without compiling anything."""
        self.validate()
        return dict(self.context.routes)

    def compile_item(self, rule: Rule, item: Item) -> ItemResult:
        ctx = CompilationContext(self.context, item, rule)
        result = ItemResult(item.identifier, rule.name, ctx.route)

        step_index = 0
        try:
            content: Content = item.body
            for step_index, step in enumerate(rule.compiler.steps, start=1):
                content = step(content, ctx)
        except Exception as exc:  # noqa: BLE001
            error = CompilerStepError(item.identifier, rule.name, step_index, exc)
            logger.error("%s", error)
            self.context.snapshots.mark_failed(item.identifier)
            result.error = error
            return result

        self.context.snapshots.capture(item.identifier, FINAL_SNAPSHOT, content)
        return result

    def _write(self, result: ItemResult) -> None:
        if result.route is None or result.error is not None:
            return
        content = self.context.snapshots.load(result.identifier, FINAL_SNAPSHOT)
        target = self.settings.abs_output_dir / result.route
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                target.write_bytes(content)
            else:
                target.write_text(content, encoding="utf-8")
        except OSError as exc:
            result.error = OutputWriteError(result.identifier, str(target), str(exc))
            logger.error("%s", result.error)
            return
        result.output_path = target

    def build(self) -> BuildReport:
        """Run a full build. Structural errors raise before anything is compiled."""
        start = time.perf_counter()
        order = self.validate()
        assigned = self._assigned or {}

        report = BuildReport(run_id=self.context.run_id)
        logger.info("Building %d rules over %d items", len(order), len(self.context.items))
        for rule in order:
            for item in assigned[rule.index]:
                report.results.append(self.compile_item(rule, item))

        for result in report.results:
            self._write(result)

        report.duration_seconds = time.perf_counter() - start
        logger.info(
            "Built %d outputs with %d error(s) in %.2fs",
            len(report.written),
            len(report.errors),
            report.duration_seconds,
        )
        return report
