"""Identifiers for content items."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, replace
from pathlib import PurePath


def _normalize(path: str) -> str:
    normalized = posixpath.normpath(path.replace("\\", "/"))
    if normalized in {"", "."}:
        msg = f"Identifier path must not be empty: {path!r}"
        raise ValueError(msg)
    return normalized.lstrip("/")


@dataclass(frozen=True)
class Identifier:
    """Path-shaped key of an item.

    ``version`` separates the outputs of independent rule sets that compile
    the same source file (e.g. a page render and a raw variant).
    """

    path: str
    version: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", _normalize(self.path))

    @classmethod
    def from_path(cls, path: PurePath | str, root: PurePath | None = None) -> Identifier:
        pure = PurePath(path)
        if root is not None:
            pure = pure.relative_to(root)
        return cls(pure.as_posix())

    def with_version(self, version: str | None) -> Identifier:
        return replace(self, version=version)

    @property
    def name(self) -> str:
        return posixpath.basename(self.path)

    @property
    def stem(self) -> str:
        return posixpath.splitext(self.name)[0]

    @property
    def suffix(self) -> str:
        return posixpath.splitext(self.name)[1]

    def __str__(self) -> str:
        if self.version:
            return f"{self.path}#{self.version}"
        return self.path
