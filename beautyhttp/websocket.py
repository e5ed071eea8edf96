"""Websocket connection context, handler callbacks and the server-side session."""

from __future__ import annotations

import asyncio
import uuid
import weakref
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from aiohttp import WSMsgType, web

from beautyhttp.attributes import Attributes
from beautyhttp.messages import Request

if TYPE_CHECKING:
    from beautyhttp.routing import Route

__all__ = ["Endpoint", "WsContext", "WsHandler", "WebSocketSession"]

Endpoint = tuple[str, int]

SERVER_HEADER = "beautyhttp websocket"


def _endpoint(info: Any) -> Endpoint | None:
    if isinstance(info, (tuple, list)) and len(info) >= 2:
        return str(info[0]), int(info[1])
    return None


@dataclass
class WsContext:
    """What a websocket callback knows about its connection."""

    remote_endpoint: Endpoint | None = None
    local_endpoint: Endpoint | None = None
    uuid: str = ""
    ws_session: weakref.ref[WebSocketSession] | None = None
    target: str = ""
    attributes: Attributes = field(default_factory=Attributes)
    route_path: str = ""

    @property
    def session(self) -> WebSocketSession | None:
        """The live session, or None once it is gone."""
        return self.ws_session() if self.ws_session is not None else None


def _ignore_context(context: WsContext) -> None:
    return None


def _ignore_message(context: WsContext, data: str | bytes, is_text: bool) -> None:
    return None


def _ignore_error(error: BaseException | None, what: str) -> None:
    return None


@dataclass
class WsHandler:
    """Callbacks for a websocket route or client; each defaults to doing nothing."""

    on_connect: Callable[[WsContext], Any] = _ignore_context
    on_receive: Callable[[WsContext, str | bytes, bool], Any] = _ignore_message
    on_disconnect: Callable[[WsContext], Any] = _ignore_context
    on_error: Callable[[BaseException | None, str], Any] = _ignore_error


class WebSocketSession:
    """One accepted websocket connection bound to a route."""

    def __init__(self, route: Route) -> None:
        self._route = route
        self._context = WsContext(route_path=route.path)
        self._loop: asyncio.AbstractEventLoop | None = None
        self._socket: web.WebSocketResponse | None = None
        self._queue: deque[str | bytes] = deque()
        self._writer: asyncio.Task[None] | None = None

    @property
    def context(self) -> WsContext:
        return self._context

    async def serve(self, request: Request, raw: web.BaseRequest) -> web.WebSocketResponse:
        """Accept the upgrade, then dispatch messages until the peer closes."""
        self._loop = asyncio.get_running_loop()
        transport = raw.transport
        if transport is not None:
            self._context.remote_endpoint = _endpoint(transport.get_extra_info("peername"))
            self._context.local_endpoint = _endpoint(transport.get_extra_info("sockname"))
        self._context.target = request.target
        self._context.attributes = request.attributes

        socket = web.WebSocketResponse()
        socket.headers["Server"] = SERVER_HEADER
        try:
            await socket.prepare(raw)
        except Exception as error:
            self._fail(error, "accept")
            raise
        self._socket = socket

        self._context.ws_session = weakref.ref(self)
        self._context.uuid = str(uuid.uuid4())
        self._route.connect(self._context)
        try:
            async for message in socket:
                if message.type is WSMsgType.TEXT:
                    self._route.receive(self._context, message.data, True)
                elif message.type is WSMsgType.BINARY:
                    self._route.receive(self._context, message.data, False)
                elif message.type is WSMsgType.ERROR:
                    self._fail(socket.exception(), "read")
                    break
        finally:
            self._route.disconnect(self._context)
        return socket

    def send(self, message: str | bytes) -> None:
        """Queue ``message`` for sending; callable from any thread."""
        if self._loop is None:
            raise RuntimeError("websocket session is not connected")
        self._loop.call_soon_threadsafe(self._enqueue, message)

    async def close(self) -> None:
        if self._socket is not None and not self._socket.closed:
            await self._socket.close()

    def _enqueue(self, message: str | bytes) -> None:
        self._queue.append(message)
        if self._writer is None:
            self._writer = asyncio.ensure_future(self._drain())

    async def _drain(self) -> None:
        try:
            while self._queue:
                message = self._queue[0]
                if self._socket is None:
                    raise ConnectionError("websocket is not open")
                if isinstance(message, (bytes, bytearray)):
                    await self._socket.send_bytes(bytes(message))
                else:
                    await self._socket.send_str(message)
                self._queue.popleft()
        except Exception as error:
            self._queue.clear()
            self._fail(error, "write")
        finally:
            self._writer = None

    def _fail(self, error: BaseException | None, what: str) -> None:
        handler = self._route.ws_handler
        if handler is not None:
            handler.on_error(error, what)

    def __repr__(self) -> str:
        return f"WebSocketSession({self._route.path!r}, uuid={self._context.uuid!r})"