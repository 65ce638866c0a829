"""Tag index: tag -> items, built by scanning item metadata."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Final
from unicodedata import normalize

from sitesmith.core.patterns import Glob, Pattern, from_capture, from_list
from sitesmith.exceptions import MissingFieldError, TagSanitizationCollisionError

if TYPE_CHECKING:
    from sitesmith.core.identifier import Identifier
    from sitesmith.core.item import Item

logger = logging.getLogger(__name__)

DEFAULT_TAG_FIELD: Final[str] = "tags"
DEFAULT_DELIMITER: Final[str] = ","

_WHITESPACE = re.compile(r"\s+")
_DISALLOWED = re.compile(r"[^a-z0-9_.-]")
_HYPHENS = re.compile(r"-{2,}")


def sanitize_tag(tag: str) -> str:
    """Turn a tag into a path segment.

    >>> sanitize_tag("Game Dev")
    'game-dev'
    >>> sanitize_tag("Café Culture")
    'cafe-culture'
    >>> sanitize_tag("C++ / SDL")
    'c-sdl'
    """
    ascii_tag = normalize("NFKD", tag).encode("ascii", "ignore").decode("ascii")
    segment = _WHITESPACE.sub("-", ascii_tag.strip().lower())
    segment = _DISALLOWED.sub("", segment)
    segment = _HYPHENS.sub("-", segment)
    return segment.strip("-.")


def item_tags(item: Item, field: str = DEFAULT_TAG_FIELD, delimiter: str = DEFAULT_DELIMITER) -> list[str]:
    try:
        return item.metadata.get_list(field, delimiter)
    except MissingFieldError:
        return []


@dataclass
class TagIndex:
    """Reverse index from tag to the identifiers carrying it.

    Built once per run and read-only afterwards.
    """

    buckets: dict[str, tuple[Identifier, ...]] = field(default_factory=dict)
    segments: dict[str, str] = field(default_factory=dict)
    template: Glob | None = None

    def __iter__(self):
        return iter(self.buckets)

    def __contains__(self, tag: object) -> bool:
        return tag in self.buckets

    def __len__(self) -> int:
        return len(self.buckets)

    def items_for(self, tag: str) -> tuple[Identifier, ...]:
        return self.buckets.get(tag, ())

    def pattern_for(self, tag: str) -> Pattern:
        return from_list(self.items_for(tag))

    def segment_for(self, tag: str) -> str:
        return self.segments[tag]

    def identifier_for(self, tag: str) -> Identifier:
        """Identifier (and route) of the tag's listing page."""
        if self.template is None:
            msg = "TagIndex has no route template"
            raise ValueError(msg)
        return from_capture(self.template, self.segment_for(tag))

    def route_for(self, tag: str) -> str:
        return self.identifier_for(tag).path

    def url_for(self, tag: str) -> str:
        return "/" + self.route_for(tag)

    def tags_of(self, identifier: Identifier) -> list[str]:
        return [tag for tag, members in self.buckets.items() if identifier in members]


def build_index(
    items: Iterable[Item],
    *,
    template: Glob | str | None = None,
    field: str = DEFAULT_TAG_FIELD,
    delimiter: str = DEFAULT_DELIMITER,
    sort_key: Callable[[Item], Any] | None = None,
    reverse: bool = True,
) -> TagIndex:
    """Scan items once and group them by tag.

    Buckets keep discovery order and are then re-sorted with ``sort_key``
    (stable, so ties keep discovery order). Tags are checked for sanitization
    collisions.
    """
    by_identifier: dict[Identifier, Item] = {}
    grouped: dict[str, list[Item]] = {}
    for item in items:
        by_identifier[item.identifier] = item
        for tag in item_tags(item, field, delimiter):
            grouped.setdefault(tag, []).append(item)

    if sort_key is not None:
        for tag, members in grouped.items():
            grouped[tag] = sorted(members, key=sort_key, reverse=reverse)

    segments = _sanitize_all(grouped)
    glob = Glob(template) if isinstance(template, str) else template
    index = TagIndex(
        buckets={tag: tuple(item.identifier for item in members) for tag, members in grouped.items()},
        segments=segments,
        template=glob,
    )
    logger.info("Indexed %d tags across %d items", len(index), len(by_identifier))
    return index


def _sanitize_all(tags: Mapping[str, Any]) -> dict[str, str]:
    owners: dict[str, list[str]] = {}
    for tag in tags:
        owners.setdefault(sanitize_tag(tag), []).append(tag)

    for segment, group in owners.items():
        if not segment or len(group) > 1:
            raise TagSanitizationCollisionError(segment, group)

    return {tag: segment for segment, group in owners.items() for tag in group}
