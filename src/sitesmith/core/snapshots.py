"""Named snapshots of compiled content."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Final

from sitesmith.exceptions import SnapshotNotFoundError

if TYPE_CHECKING:
    from sitesmith.core.identifier import Identifier
    from sitesmith.core.item import Content

logger = logging.getLogger(__name__)

FINAL_SNAPSHOT: Final[str] = "_final"


class SnapshotStore:
    """Snapshot cache scoped to one build run.

    Capturing under an existing name replaces the previous content. Loading is
    a pure lookup: a snapshot that has not been captured is an ordering error.
    """

    def __init__(self) -> None:
        self._snapshots: dict[tuple[Identifier, str], Content] = {}
        self._failed: set[Identifier] = set()

    def capture(self, identifier: Identifier, name: str, content: Content) -> None:
        if (identifier, name) in self._snapshots:
            logger.debug("Overwriting snapshot '%s' of %s", name, identifier)
        self._snapshots[(identifier, name)] = content

    def load(self, identifier: Identifier, name: str = FINAL_SNAPSHOT) -> Content:
        try:
            return self._snapshots[(identifier, name)]
        except KeyError:
            raise SnapshotNotFoundError(identifier, name, producer_failed=identifier in self._failed) from None

    def has(self, identifier: Identifier, name: str = FINAL_SNAPSHOT) -> bool:
        return (identifier, name) in self._snapshots

    def names(self, identifier: Identifier) -> list[str]:
        return [name for (ident, name) in self._snapshots if ident == identifier]

    def mark_failed(self, identifier: Identifier) -> None:
        self._failed.add(identifier)

    def failed(self, identifier: Identifier) -> bool:
        return identifier in self._failed

    def __len__(self) -> int:
        return len(self._snapshots)
