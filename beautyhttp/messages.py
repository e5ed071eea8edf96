"""HTTP request and response messages and content-type values."""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping, MutableMapping
from dataclasses import dataclass
from http import HTTPStatus

from beautyhttp.attributes import Attribute, Attributes

__all__ = [
    "ContentType",
    "HeaderMap",
    "Request",
    "Response",
    "TEXT_PLAIN",
    "TEXT_HTML",
    "APPLICATION_JSON",
    "IMAGE_X_ICON",
    "IMAGE_PNG",
]


@dataclass(frozen=True)
class ContentType:
    """A Content-Type header value."""

    value: str

    def __call__(self, _name: str = "") -> str:
        return self.value

    def __str__(self) -> str:
        return self.value


TEXT_PLAIN = ContentType("text/plain")
TEXT_HTML = ContentType("text/html")
APPLICATION_JSON = ContentType("application/json")
IMAGE_X_ICON = ContentType("image/x-icon")
IMAGE_PNG = ContentType("image/png")


class HeaderMap(MutableMapping):
    """Header fields with case-insensitive names that keep their first spelling."""

    def __init__(self, initial: Mapping[str, str] | None = None) -> None:
        self._fields: dict[str, tuple[str, str]] = {}
        if initial:
            self.update(initial)

    def __setitem__(self, name: str, value: str) -> None:
        key = name.lower()
        original = self._fields.get(key, (name, ""))[0]
        self._fields[key] = (original, str(value))

    def __getitem__(self, name: str) -> str:
        return self._fields[name.lower()][1]

    def __delitem__(self, name: str) -> None:
        try:
            self._fields.pop(name.lower())
        except KeyError:
            raise KeyError(name) from None

    def __iter__(self) -> Iterator[str]:
        return (original for original, _ in self._fields.values())

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        return f"HeaderMap({dict(self.items())!r})"


class Request:
    """An HTTP request; query-string and route attributes are reachable through ``a``."""

    def __init__(
        self,
        method: str = "GET",
        target: str = "/",
        body: str | bytes = "",
        headers: Mapping[str, str] | None = None,
        version: int = 11,
    ) -> None:
        self.method = method.upper()
        self.headers = HeaderMap(headers)
        self.body = body
        self.version = version
        self.attributes = Attributes()
        self.target = target

    @property
    def target(self) -> str:
        return self._target

    @target.setter
    def target(self, value: str) -> None:
        self._target = value
        path, _, query = value.partition("?")
        self._path = path or "/"
        self._query = query
        self.attributes = Attributes(query)

    @property
    def path(self) -> str:
        return self._path

    @property
    def query(self) -> str:
        return self._query

    def a(self, key: str) -> Attribute:
        """Return the attribute named ``key``, empty if it is absent."""
        return self.attributes[key]

    def __repr__(self) -> str:
        return f"Request({self.method!r}, {self._target!r})"


class Response:
    """An HTTP response that a handler fills in, possibly after returning."""

    def __init__(
        self,
        status: int = HTTPStatus.OK,
        body: str | bytes = "",
        headers: Mapping[str, str] | None = None,
        version: int = 11,
    ) -> None:
        self.status = status
        self.body = body
        self.headers = HeaderMap(headers)
        self.version = version
        self._postponed = False
        self._on_done: Callable[[], None] | None = None

    def set(self, content_type: ContentType | str) -> None:
        """Set the Content-Type header."""
        self.headers["Content-Type"] = str(content_type)

    def set_header(self, name: str, value: str) -> None:
        self.headers[name] = value

    @property
    def is_postponed(self) -> bool:
        return self._postponed

    def postpone(self) -> None:
        """Mark the response as completed later by a call to ``done``."""
        self._postponed = True

    def done(self) -> None:
        """Run the completion callback once."""
        callback, self._on_done = self._on_done, None
        if callback is not None:
            callback()

    def on_done(self, callback: Callable[[], None]) -> None:
        self._on_done = callback

    def is_status_ok(self) -> bool:
        return self.status == HTTPStatus.OK

    def __repr__(self) -> str:
        return f"Response({int(self.status)})"