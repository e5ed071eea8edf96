"""Routes with ``:name`` path parameters, a per-method router and swagger metadata."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Any

from beautyhttp.messages import Request, Response

RouteCallback = Callable[[Request, Response], None]


@dataclass
class ServerInfo:
    title: str = ""
    description: str = ""
    version: str = ""


@dataclass
class RouteParameter:
    name: str = ""
    location: str = ""  # "path" or "query"
    description: str = ""
    type: str = ""
    format: str = ""
    required: bool = False


@dataclass
class RouteInfo:
    description: str = ""
    route_parameters: list[RouteParameter] = field(default_factory=list)


def _split(path: str) -> list[str]:
    stripped = path.strip("/")
    return stripped.split("/") if stripped else []


def _is_dynamic(segment: str) -> bool:
    return segment.startswith(":")


class Route:
    """A path pattern bound to an HTTP handler or a websocket handler."""

    def __init__(
        self,
        path: str,
        callback: RouteCallback | None = None,
        info: RouteInfo | None = None,
        ws_handler: Any = None,
    ) -> None:
        self.path = path
        self.callback = callback
        self.info = info if info is not None else RouteInfo()
        self.ws_handler = ws_handler
        self._segments = tuple(_split(path))

    @property
    def segments(self) -> tuple[str, ...]:
        return self._segments

    @property
    def is_websocket(self) -> bool:
        return self.ws_handler is not None

    @property
    def priority(self) -> tuple[int, tuple[bool, ...]]:
        """Sort key: static segments come before parameters, leftmost first."""
        return len(self._segments), tuple(_is_dynamic(s) for s in self._segments)

    def match(self, request: Request) -> bool:
        """Check the request path; on a match, store path parameters on the request."""
        parts = _split(request.path)
        if len(parts) != len(self._segments):
            return False
        captured: dict[str, str] = {}
        for segment, part in zip(self._segments, parts):
            if _is_dynamic(segment):
                captured[segment[1:]] = part
            elif segment != part:
                return False
        for name, value in captured.items():
            request.attributes.insert(name, value)
        return True

    def execute(self, request: Request, response: Response) -> None:
        if self.callback is None:
            raise RuntimeError(f"route {self.path!r} has no HTTP handler")
        self.callback(request, response)

    def connect(self, context: Any) -> None:
        if self.ws_handler is not None:
            self.ws_handler.on_connect(context)

    def receive(self, context: Any, data: str | bytes, is_text: bool) -> None:
        if self.ws_handler is not None:
            self.ws_handler.on_receive(context, data, is_text)

    def disconnect(self, context: Any) -> None:
        if self.ws_handler is not None:
            self.ws_handler.on_disconnect(context)

    def __repr__(self) -> str:
        return f"Route({self.path!r})"


class Router:
    """Routes grouped by HTTP method, each group kept in match priority order."""

    def __init__(self) -> None:
        self._routes: dict[str, list[Route]] = {}

    def add_route(self, method: str, route: Route) -> None:
        routes = self._routes.setdefault(str(method).upper(), [])
        routes.append(route)
        routes.sort(key=lambda r: r.priority)

    def find(self, method: str) -> tuple[Route, ...]:
        return tuple(self._routes.get(str(method).upper(), ()))

    def __iter__(self) -> Iterator[tuple[str, tuple[Route, ...]]]:
        return ((method, tuple(routes)) for method, routes in self._routes.items())


def swagger_path(route: Route) -> str:
    """Render a route path in swagger form: ``/person/:id`` becomes ``/person/{id}``."""
    parts = (f"{{{s[1:]}}}" if _is_dynamic(s) else s for s in route.segments)
    return "/" + "/".join(parts)