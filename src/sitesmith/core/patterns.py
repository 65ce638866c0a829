"""Patterns select items by the shape of their identifier.

Glob syntax:

* literal characters match themselves,
* ``*`` matches any run of characters inside one path segment (never ``/``),
* ``**`` matches any run of characters, ``/`` included.

Patterns combine with ``|``. Matching depends only on the pattern and the
identifier, never on the order in which rules were registered.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Final

from sitesmith.core.identifier import Identifier

# Glob tokens. Literals are single-character strings.
STAR: Final = object()
DOUBLE_STAR: Final = object()
_OTHER: Final = object()  # any character not mentioned by either glob

Token = object


def _path_of(identifier: Identifier | str) -> str:
    if isinstance(identifier, Identifier):
        return identifier.path
    return Identifier(identifier).path


class Pattern(ABC):
    """Predicate over identifiers."""

    @abstractmethod
    def capture(self, identifier: Identifier | str) -> list[str] | None:
        """Return the substrings matched by wildcards, or None when there is no match."""

    def matches(self, identifier: Identifier | str) -> bool:
        return self.capture(identifier) is not None

    def filter(self, identifiers: Iterable[Identifier]) -> list[Identifier]:
        return [identifier for identifier in identifiers if self.matches(identifier)]

    def __or__(self, other: Pattern | str) -> Pattern:
        return Union((self, as_pattern(other)))

    def __ror__(self, other: Pattern | str) -> Pattern:
        return Union((as_pattern(other), self))


def _tokenize(glob: str) -> tuple[Token, ...]:
    tokens: list[Token] = []
    i = 0
    while i < len(glob):
        if glob.startswith("**", i):
            tokens.append(DOUBLE_STAR)
            i += 2
        elif glob[i] == "*":
            tokens.append(STAR)
            i += 1
        else:
            tokens.append(glob[i])
            i += 1
    return tuple(tokens)


def _glob_regex(tokens: tuple[Token, ...]) -> re.Pattern[str]:
    parts = []
    for token in tokens:
        if token is STAR:
            parts.append("([^/]*)")
        elif token is DOUBLE_STAR:
            parts.append("(.*)")
        else:
            parts.append(re.escape(str(token)))
    return re.compile("".join(parts), re.DOTALL)


@dataclass(frozen=True)
class Glob(Pattern):
    glob: str
    tokens: tuple[Token, ...] = field(init=False, repr=False, compare=False)
    regex: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        tokens = _tokenize(self.glob.lstrip("/"))
        object.__setattr__(self, "tokens", tokens)
        object.__setattr__(self, "regex", _glob_regex(tokens))

    def capture(self, identifier: Identifier | str) -> list[str] | None:
        match = self.regex.fullmatch(_path_of(identifier))
        if match is None:
            return None
        return list(match.groups())

    def fill(self, captures: Iterable[str]) -> str:
        """Replace each wildcard, left to right, with the next capture."""
        values = iter(captures)
        out = []
        for token in self.tokens:
            if token is STAR or token is DOUBLE_STAR:
                try:
                    out.append(next(values))
                except StopIteration:
                    msg = f"Not enough captures to fill '{self.glob}'"
                    raise ValueError(msg) from None
            else:
                out.append(str(token))
        return "".join(out)

    def __str__(self) -> str:
        return self.glob


@dataclass(frozen=True)
class FromList(Pattern):
    """Explicit enumeration of literal identifiers."""

    paths: tuple[str, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "paths", tuple(_path_of(p) for p in self.paths))

    def capture(self, identifier: Identifier | str) -> list[str] | None:
        return [] if _path_of(identifier) in self.paths else None

    def __str__(self) -> str:
        return "[" + ", ".join(self.paths) + "]"


@dataclass(frozen=True)
class FromRegex(Pattern):
    expression: str
    regex: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "regex", re.compile(self.expression))

    def capture(self, identifier: Identifier | str) -> list[str] | None:
        match = self.regex.fullmatch(_path_of(identifier))
        if match is None:
            return None
        return [group or "" for group in match.groups()]

    def __str__(self) -> str:
        return f"regex({self.expression})"


@dataclass(frozen=True)
class Union(Pattern):
    parts: tuple[Pattern, ...]

    def __post_init__(self) -> None:
        flat: list[Pattern] = []
        for part in self.parts:
            flat.extend(part.parts if isinstance(part, Union) else (part,))
        object.__setattr__(self, "parts", tuple(flat))

    def capture(self, identifier: Identifier | str) -> list[str] | None:
        for part in self.parts:
            captured = part.capture(identifier)
            if captured is not None:
                return captured
        return None

    def __str__(self) -> str:
        return " | ".join(str(part) for part in self.parts)


def from_glob(glob: str) -> Glob:
    return Glob(glob)


def from_list(paths: Iterable[Identifier | str]) -> FromList:
    return FromList(tuple(_path_of(p) for p in paths))


def from_regex(expression: str) -> FromRegex:
    return FromRegex(expression)


def from_capture(glob: Glob | str, *captures: str) -> Identifier:
    """Build an identifier by filling the wildcards of ``glob`` (``tags/*.html``)."""
    pattern = glob if isinstance(glob, Glob) else Glob(glob)
    return Identifier(pattern.fill(captures))


def as_pattern(value: Pattern | str) -> Pattern:
    if isinstance(value, Pattern):
        return value
    return Glob(value)


def matches(pattern: Pattern | str, identifier: Identifier | str) -> bool:
    return as_pattern(pattern).matches(identifier)


def capture(pattern: Pattern | str, identifier: Identifier | str) -> list[str] | None:
    return as_pattern(pattern).capture(identifier)


# --- Overlap analysis ---


def _closure(tokens: tuple[Token, ...], index: int) -> list[int]:
    """Positions reachable from ``index`` by letting wildcards match nothing."""
    reachable = [index]
    while index < len(tokens) and (tokens[index] is STAR or tokens[index] is DOUBLE_STAR):
        index += 1
        reachable.append(index)
    return reachable


def _step(tokens: tuple[Token, ...], index: int, symbol: object) -> int | None:
    if index == len(tokens):
        return None
    token = tokens[index]
    if token is DOUBLE_STAR:
        return index
    if token is STAR:
        return None if symbol == "/" else index
    return index + 1 if token == symbol else None


def _globs_overlap(left: Glob, right: Glob) -> bool:
    """Search the product automaton of two globs for a common accepted path."""
    a, b = left.tokens, right.tokens
    alphabet: list[object] = sorted({t for t in a + b if isinstance(t, str)} | {"/"})
    alphabet.append(_OTHER)

    start = (0, 0)
    seen = {start}
    queue = deque([start])
    while queue:
        i, j = queue.popleft()
        a_positions = _closure(a, i)
        b_positions = _closure(b, j)
        if len(a) in a_positions and len(b) in b_positions:
            return True
        for ai in a_positions:
            for bj in b_positions:
                for symbol in alphabet:
                    next_a = _step(a, ai, symbol)
                    next_b = _step(b, bj, symbol)
                    if next_a is None or next_b is None:
                        continue
                    state = (next_a, next_b)
                    if state not in seen:
                        seen.add(state)
                        queue.append(state)
    return False


def overlaps(left: Pattern | str, right: Pattern | str) -> bool:
    """Return True when some identifier can match both patterns.

    Regex patterns are opaque: they only overlap enumerations that they match.
    """
    left, right = as_pattern(left), as_pattern(right)
    if isinstance(left, Union):
        return any(overlaps(part, right) for part in left.parts)
    if isinstance(right, Union):
        return any(overlaps(left, part) for part in right.parts)
    if isinstance(left, FromList):
        return any(right.matches(path) for path in left.paths)
    if isinstance(right, FromList):
        return any(left.matches(path) for path in right.paths)
    if isinstance(left, Glob) and isinstance(right, Glob):
        return _globs_overlap(left, right)
    return False
