"""Typed access to item metadata."""

from __future__ import annotations

import re
from collections.abc import Iterator, Mapping
from datetime import UTC, date, datetime
from typing import Any, Final

from sitesmith.exceptions import MissingFieldError, UnparsableFieldError

DATE_FIELDS: Final[tuple[str, ...]] = ("published", "date")

_DATE_FORMATS: Final[tuple[str, ...]] = (
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S%z",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
    "%a, %d %b %Y %H:%M:%S %z",
    "%a, %d %b %Y %H:%M:%S %Z",
    "%B %d, %Y %I:%M %p",
    "%B %d, %Y",
    "%b %d, %Y",
)

_FILENAME_DATE = re.compile(r"^(\d{4}-\d{2}-\d{2})-")


def _coerce(value: Any) -> str:
    """Flatten a front matter value into the string form metadata stores."""
    if isinstance(value, (list, tuple)):
        return ", ".join(_coerce(v) for v in value)
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def parse_date(value: str) -> datetime | None:
    """Parse a date string into an aware datetime (naive values are taken as UTC)."""
    text = value.strip()
    for fmt in _DATE_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=UTC)
        return parsed
    return None


class Metadata(Mapping[str, str]):
    """Immutable mapping of metadata keys to string values.

    Accessors fail loudly: :class:`MissingFieldError` when a key is absent,
    :class:`UnparsableFieldError` when it is present but cannot be converted.
    """

    def __init__(self, values: Mapping[str, Any] | None = None, *, owner: object = "<unknown>") -> None:
        self._values: dict[str, str] = {
            str(key): _coerce(value) for key, value in (values or {}).items() if value is not None
        }
        self._owner = owner

    def __getitem__(self, key: str) -> str:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"Metadata({self._values!r})"

    def get_field(self, key: str) -> str:
        try:
            return self._values[key]
        except KeyError:
            raise MissingFieldError(self._owner, key) from None

    def get_list(self, key: str, delimiter: str = ",") -> list[str]:
        """Split a field on ``delimiter``; stripped, empties dropped, first occurrence kept."""
        raw = self.get_field(key)
        values: list[str] = []
        for part in raw.split(delimiter):
            value = part.strip()
            if value and value not in values:
                values.append(value)
        return values

    def get_date(self, key: str) -> datetime:
        raw = self.get_field(key)
        parsed = parse_date(raw)
        if parsed is None:
            raise UnparsableFieldError(self._owner, key, raw)
        return parsed

    def get_int(self, key: str) -> int:
        raw = self.get_field(key)
        try:
            return int(raw)
        except ValueError:
            raise UnparsableFieldError(self._owner, key, raw) from None


def resolve_date(metadata: Metadata, filename: str, *, owner: object = "<unknown>") -> datetime:
    """Find the publication date of an item.

    Looks at ``published``, then ``date``, then a ``YYYY-MM-DD-`` file name prefix.
    """
    for key in DATE_FIELDS:
        if key in metadata:
            return metadata.get_date(key)

    match = _FILENAME_DATE.match(filename)
    if match:
        parsed = parse_date(match.group(1))
        if parsed is not None:
            return parsed
        raise UnparsableFieldError(owner, "filename", filename)

    raise MissingFieldError(owner, "date")
