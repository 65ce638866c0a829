"""Content items and their discovery."""

from __future__ import annotations

import logging
from functools import cached_property
from pathlib import Path
from typing import TYPE_CHECKING, Any

import frontmatter
import yaml

from sitesmith.core.identifier import Identifier
from sitesmith.core.metadata import Metadata, resolve_date
from sitesmith.core.patterns import Pattern, as_pattern
from sitesmith.exceptions import MetadataError

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Mapping
    from datetime import datetime

logger = logging.getLogger(__name__)

Content = str | bytes


def parse_frontmatter(content: str) -> tuple[dict[str, Any], str]:
    """Split YAML front matter from a body.

    Invalid front matter is logged and the whole text is kept as the body.
    """
    try:
        parsed = frontmatter.loads(content)
    except (yaml.YAMLError, ValueError) as exc:
        logger.warning("Failed to parse frontmatter content: %s", exc)
        return {}, content

    raw_metadata = parsed.metadata or {}
    if not isinstance(raw_metadata, dict):
        logger.warning("Frontmatter metadata is not a mapping: %s", type(raw_metadata).__name__)
        return {}, content
    return dict(raw_metadata), parsed.content


class Item:
    """One content unit flowing through the pipeline.

    Items backed by a file read it lazily, so binary assets are never decoded
    unless a compiler asks for their text. Items created by rules have no
    source, an empty body and empty metadata unless given explicitly.
    """

    def __init__(
        self,
        identifier: Identifier,
        source_path: Path | None = None,
        *,
        body: Content | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> None:
        self.identifier = identifier
        self.source_path = source_path
        self._body = body
        self._metadata = metadata

    def __repr__(self) -> str:
        return f"Item({str(self.identifier)!r})"

    def with_version(self, version: str | None) -> Item:
        return Item(
            self.identifier.with_version(version),
            self.source_path,
            body=self._body,
            metadata=self._metadata,
        )

    def read_bytes(self) -> bytes:
        if self.source_path is not None:
            return self.source_path.read_bytes()
        if isinstance(self._body, bytes):
            return self._body
        return (self._body or "").encode("utf-8")

    @cached_property
    def raw(self) -> Content:
        """The full source: text when it decodes as UTF-8, bytes otherwise."""
        if self.source_path is None:
            return self._body if self._body is not None else ""
        data = self.source_path.read_bytes()
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError:
            return data

    @cached_property
    def _parsed(self) -> tuple[dict[str, Any], Content]:
        if self.source_path is None:
            return dict(self._metadata or {}), self.raw
        if isinstance(self.raw, bytes):
            return {}, self.raw
        return parse_frontmatter(self.raw)

    @property
    def body(self) -> Content:
        """Source content without its front matter."""
        return self._parsed[1]

    @cached_property
    def metadata(self) -> Metadata:
        return Metadata(self._parsed[0], owner=self.identifier)

    @property
    def date(self) -> datetime:
        return resolve_date(self.metadata, self.identifier.name, owner=self.identifier)


class Provider:
    """Discovers the items of a content directory.

    Hidden files and directories, the output directory and anything matching
    ``ignore`` are skipped. Discovery order is the sorted identifier order.
    """

    def __init__(
        self,
        source_dir: Path,
        *,
        exclude_dirs: Iterable[Path] = (),
        ignore: Iterable[Pattern | str] = (),
    ) -> None:
        self.source_dir = source_dir
        self._exclude_dirs = [d.resolve() for d in exclude_dirs]
        self._ignore = [as_pattern(p) for p in ignore]
        self._items: dict[Identifier, Item] = {}
        self.refresh()

    def refresh(self) -> None:
        items: dict[Identifier, Item] = {}
        if self.source_dir.is_dir():
            for path in sorted(self._walk(self.source_dir)):
                identifier = Identifier.from_path(path, self.source_dir)
                if any(pattern.matches(identifier) for pattern in self._ignore):
                    continue
                items[identifier] = Item(identifier, path)
        else:
            logger.warning("Content directory %s does not exist", self.source_dir)
        self._items = items
        logger.debug("Discovered %d items in %s", len(items), self.source_dir)

    def _walk(self, directory: Path) -> Iterator[Path]:
        for child in directory.iterdir():
            if child.name.startswith("."):
                continue
            if child.is_dir():
                if child.resolve() in self._exclude_dirs:
                    continue
                yield from self._walk(child)
            elif child.is_file():
                yield child

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._items

    def __iter__(self) -> Iterator[Item]:
        return iter(self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def get(self, identifier: Identifier) -> Item | None:
        return self._items.get(identifier.with_version(None))

    @property
    def identifiers(self) -> list[Identifier]:
        return list(self._items)


def dated(items: Iterable[Item]) -> Iterator[tuple[Item, datetime]]:
    """Pair each item with its date, dropping items whose date is missing or unparsable."""
    for item in items:
        try:
            published = item.date
        except MetadataError as exc:
            logger.warning("Leaving %s out of a dated listing: %s", item.identifier, exc)
            continue
        yield item, published


def recent_first(items: Iterable[Item]) -> list[Item]:
    """Sort dated items newest first; equal dates keep their order."""
    pairs = sorted(dated(items), key=lambda pair: pair[1], reverse=True)
    return [item for item, _ in pairs]
