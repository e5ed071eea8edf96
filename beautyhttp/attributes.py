"""Named string attributes taken from a request's path or query string."""

from __future__ import annotations

import re
from collections.abc import Iterator

_INT_PATTERN = re.compile(r"\s*[+-]?\d+")
_FLOAT_PATTERN = re.compile(
    r"\s*[+-]?(?:\d+\.?\d*(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?|inf(?:inity)?|nan)",
    re.IGNORECASE,
)
_TRUE_VALUES = frozenset({"1", "true", "yes"})
_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1


class Attribute:
    """A single attribute value, converted on demand."""

    __slots__ = ("_value",)

    def __init__(self, value: str = "") -> None:
        self._value = str(value)

    @property
    def value(self) -> str:
        return self._value

    def as_string(self, default: str = "") -> str:
        return self._value or default

    def as_integer(self, default: int = 0) -> int:
        """Parse the leading integer of the value; an empty value gives ``default``."""
        if not self._value:
            return default
        match = _INT_PATTERN.match(self._value)
        if match is None:
            raise ValueError(f"attribute is not an integer: {self._value!r}")
        result = int(match.group())
        if not _INT32_MIN <= result <= _INT32_MAX:
            raise OverflowError(f"attribute is out of integer range: {self._value!r}")
        return result

    def as_double(self, default: float = 0.0) -> float:
        """Parse the leading number of the value; an empty value gives ``default``."""
        if not self._value:
            return default
        match = _FLOAT_PATTERN.match(self._value)
        if match is None:
            raise ValueError(f"attribute is not a number: {self._value!r}")
        return float(match.group())

    def as_boolean(self, default: bool = False) -> bool:
        if not self._value:
            return default
        return self._value in _TRUE_VALUES

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Attribute):
            return self._value == other._value
        if isinstance(other, str):
            return self._value == other
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._value)

    def __bool__(self) -> bool:
        return bool(self._value)

    def __str__(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return f"Attribute({self._value!r})"


_EMPTY = Attribute()


class Attributes:
    """A mapping of names to attributes, optionally parsed from ``key=value`` pairs."""

    def __init__(self, text: str = "", sep: str = "&") -> None:
        self._items: dict[str, Attribute] = {}
        for part in text.split(sep) if text else ():
            if not part:
                continue
            key, _, value = part.partition("=")
            self.insert(key, value)

    def insert(self, key: str, value: str | Attribute) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        self._items[key] = value if isinstance(value, Attribute) else Attribute(value)

    def find(self, key: str) -> Attribute | None:
        return self._items.get(key)

    def __getitem__(self, key: str) -> Attribute:
        return self._items.get(key, _EMPTY)

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def items(self) -> Iterator[tuple[str, Attribute]]:
        return iter(self._items.items())

    def __repr__(self) -> str:
        return f"Attributes({dict((k, v.value) for k, v in self._items.items())!r})"