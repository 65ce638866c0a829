"""Centralized exceptions for sitesmith.

Two families matter to the build engine:

* structural errors describe a broken site topology (overlapping rules,
  colliding routes, colliding tags, dependency cycles). They are raised while
  the site is being configured or validated, before anything is compiled or
  written.
* item errors describe a problem with one item under one rule. The engine
  wraps them in :class:`CompilerStepError`, collects them and keeps building
  everything else.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sitesmith.core.identifier import Identifier


class SitesmithError(Exception):
    """Base exception for all sitesmith errors."""


class ConfigLoadError(SitesmithError):
    """Raised when the site configuration file cannot be loaded or parsed."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load or parse config at '{path}': {reason}")


# --- Structural errors ---


class StructuralError(SitesmithError):
    """Base class for errors in the site topology."""


class AmbiguousRuleError(StructuralError):
    """Raised when two rules of the same version can match the same identifier."""

    def __init__(self, first: str, second: str, version: str | None = None) -> None:
        self.first = first
        self.second = second
        self.version = version
        suffix = f" (version '{version}')" if version else ""
        super().__init__(f"Rule '{second}' overlaps previously registered rule '{first}'{suffix}")


class RouteCollisionError(StructuralError):
    """Raised when two identifiers resolve to the same output path."""

    def __init__(self, path: str, first: Identifier, second: Identifier) -> None:
        self.path = path
        self.first = first
        self.second = second
        super().__init__(f"Route collision on '{path}': '{first}' and '{second}'")


class InvalidRouteError(StructuralError):
    """Raised when a route escapes the output directory."""

    def __init__(self, identifier: Identifier, path: str) -> None:
        self.identifier = identifier
        self.path = path
        super().__init__(f"Route '{path}' for '{identifier}' must be a relative path inside the output directory")


class TagSanitizationCollisionError(StructuralError):
    """Raised when distinct tags sanitize to the same path segment."""

    def __init__(self, segment: str, tags: Sequence[str]) -> None:
        self.segment = segment
        self.tags = tuple(tags)
        quoted = ", ".join(f"'{tag}'" for tag in self.tags)
        super().__init__(f"Tags {quoted} all sanitize to the path segment '{segment}'")


class DependencyCycleError(StructuralError):
    """Raised when rule dependencies cannot be put in a producer-first order."""

    def __init__(self, rules: Sequence[str]) -> None:
        self.rules = tuple(rules)
        super().__init__(f"Rule dependencies contain a cycle between: {', '.join(self.rules)}")


class SiteValidationError(SitesmithError):
    """Aggregates every structural error found while validating a site."""

    def __init__(self, errors: Sequence[StructuralError]) -> None:
        self.errors = list(errors)
        lines = "\n".join(f"  - {error}" for error in self.errors)
        super().__init__(f"Site validation failed with {len(self.errors)} error(s):\n{lines}")


# --- Item errors ---


class ItemError(SitesmithError):
    """Base class for errors scoped to a single item."""


class SnapshotNotFoundError(ItemError):
    """Raised when a snapshot is requested before (or without) being captured."""

    def __init__(self, identifier: Identifier, name: str, *, producer_failed: bool = False) -> None:
        self.identifier = identifier
        self.name = name
        self.producer_failed = producer_failed
        if producer_failed:
            detail = "its producer failed earlier in this build"
        else:
            detail = "the rule producing it has not run yet; declare a dependency on it"
        super().__init__(f"Snapshot '{name}' of '{identifier}' is not available: {detail}")


class UndeclaredDependencyError(ItemError):
    """Raised when a compiler reads other items without declaring the dependency."""

    def __init__(self, identifier: Identifier, pattern: str) -> None:
        self.identifier = identifier
        self.pattern = pattern
        super().__init__(f"Compiler for '{identifier}' read '{pattern}' without declaring a dependency on it")


class MetadataError(ItemError):
    """Base class for metadata accessor failures."""


class MissingFieldError(MetadataError):
    """Raised when a metadata field is absent."""

    def __init__(self, identifier: Identifier | str, field: str) -> None:
        self.identifier = identifier
        self.field = field
        super().__init__(f"Item '{identifier}' has no metadata field '{field}'")


class UnparsableFieldError(MetadataError):
    """Raised when a metadata field is present but cannot be parsed."""

    def __init__(self, identifier: Identifier | str, field: str, value: str) -> None:
        self.identifier = identifier
        self.field = field
        self.value = value
        super().__init__(f"Item '{identifier}' has unparsable metadata field '{field}': {value!r}")


class TemplateRenderError(ItemError):
    """Raised when a template cannot be loaded or rendered."""

    def __init__(self, template_id: str, reason: str) -> None:
        self.template_id = template_id
        self.reason = reason
        super().__init__(f"Failed to render template '{template_id}': {reason}")


class CompilerStepError(ItemError):
    """A failure of one compiler step for one item under one rule."""

    def __init__(self, identifier: Identifier, rule: str, step_index: int, cause: BaseException) -> None:
        self.identifier = identifier
        self.rule = rule
        self.step_index = step_index
        self.cause = cause
        super().__init__(f"'{identifier}' failed at step {step_index} of rule '{rule}': {cause}")


class OutputWriteError(ItemError):
    """Raised when a compiled output cannot be written to its route."""

    def __init__(self, identifier: Identifier, path: str, reason: str) -> None:
        self.identifier = identifier
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to write '{identifier}' to '{path}': {reason}")
