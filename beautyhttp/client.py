"""An HTTP and websocket client whose requests run on the application's event loop."""

from __future__ import annotations

import asyncio
import concurrent.futures
import uuid
from collections import deque
from collections.abc import Callable, Coroutine
from datetime import timedelta
from functools import partial
from ssl import SSLContext
from typing import Any, TypeVar
from urllib.parse import urlsplit

import aiohttp

from beautyhttp.application import Application
from beautyhttp.messages import Response
from beautyhttp.websocket import WsContext, WsHandler

__all__ = ["BODY_LIMIT", "Client", "RequestError", "USER_AGENT"]

USER_AGENT = "beautyhttp"
BODY_LIMIT = 1024 * 1024 * 1024  # 1 GiB

_HTTP_SCHEMES = frozenset({"http", "https"})
_WS_SCHEMES = frozenset({"ws", "wss"})
_DEFAULT_PORTS = {"http": 80, "https": 443, "ws": 80, "wss": 443}

_T = TypeVar("_T")
ClientCallback = Callable[[BaseException | None, Response], Any]
Timeout = float | int | timedelta | None


class RequestError(ConnectionError):
    """A request failed; ``what`` names the stage: connect, read or request."""

    def __init__(self, message: str, what: str = "request") -> None:
        super().__init__(message)
        self.what = what


def _parse(url: str, schemes: frozenset[str]):
    parts = urlsplit(url)
    if parts.scheme.lower() not in schemes or not parts.hostname:
        raise ValueError(f"unsupported URL: {url!r}")
    return parts


def _seconds(timeout: Timeout) -> float | None:
    if timeout is None:
        return None
    seconds = timeout.total_seconds() if isinstance(timeout, timedelta) else float(timeout)
    return seconds if seconds > 0 else None


def _payload(body: str | bytes | None) -> bytes | None:
    if not body:
        return None
    return body.encode("utf-8") if isinstance(body, str) else bytes(body)


def _decode(payload: bytes) -> str | bytes:
    try:
        return payload.decode("utf-8")
    except UnicodeDecodeError:
        return payload


def _stage(error: aiohttp.ClientError) -> str:
    if isinstance(error, aiohttp.ClientConnectorError):
        return "connect"
    if isinstance(error, (aiohttp.ServerDisconnectedError, aiohttp.ClientPayloadError)):
        return "read"
    return "request"


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class Client:
    """Sends requests one after another over a shared connection pool.

    Without a callback a request blocks and returns the response, raising on
    failure. With a callback it returns at once and later calls
    ``callback(error, response)`` on the event loop, ``error`` being None on
    success. A timeout of None or 0 means no limit.
    """

    def __init__(self, app: Application | None = None, ssl_context: SSLContext | None = None) -> None:
        self._app = app if app is not None else Application.instance()
        self._ssl_context = ssl_context
        self._session: aiohttp.ClientSession | None = None
        self._lock: asyncio.Lock | None = None
        self._ws_url: str | None = None
        self._ws_handler: WsHandler | None = None
        self._ws_socket: aiohttp.ClientWebSocketResponse | None = None
        self._ws_task: concurrent.futures.Future[None] | None = None
        self._ws_queue: deque[str | bytes] = deque()
        self._ws_writer: asyncio.Task[None] | None = None

    @property
    def app(self) -> Application:
        return self._app

    # -- HTTP ---------------------------------------------------------------

    def get(self, url: str, callback: ClientCallback | None = None, timeout: Timeout = None) -> Response | None:
        return self.send_request("GET", url, "", callback, timeout)

    def post(
        self,
        url: str,
        body: str | bytes = "",
        callback: ClientCallback | None = None,
        timeout: Timeout = None,
    ) -> Response | None:
        return self.send_request("POST", url, body, callback, timeout)

    def put(
        self,
        url: str,
        body: str | bytes,
        callback: ClientCallback | None = None,
        timeout: Timeout = None,
    ) -> Response | None:
        return self.send_request("PUT", url, body, callback, timeout)

    def delete(
        self,
        url: str,
        body: str | bytes = "",
        callback: ClientCallback | None = None,
        timeout: Timeout = None,
    ) -> Response | None:
        return self.send_request("DELETE", url, body, callback, timeout)

    def send_request(
        self,
        method: str,
        url: str,
        body: str | bytes = "",
        callback: ClientCallback | None = None,
        timeout: Timeout = None,
    ) -> Response | None:
        """Send one request; block for the response unless ``callback`` is given."""
        _parse(url, _HTTP_SCHEMES)
        coro = self._request(method.upper(), url, body, _seconds(timeout))
        if callback is None:
            return self._call(coro)
        self._ensure_started()
        future = asyncio.run_coroutine_threadsafe(coro, self._app.loop)
        future.add_done_callback(partial(self._deliver, callback))
        return None

    @staticmethod
    def _deliver(callback: ClientCallback, future: concurrent.futures.Future[Response]) -> None:
        if future.cancelled():
            callback(concurrent.futures.CancelledError(), Response(status=0))
            return
        error = future.exception()
        if error is not None:
            callback(error, Response(status=0))
        else:
            callback(None, future.result())

    async def _request(
        self, method: str, url: str, body: str | bytes, timeout: float | None
    ) -> Response:
        try:
            return await asyncio.wait_for(self._perform(method, url, body), timeout)
        except asyncio.TimeoutError as error:
            raise TimeoutError(f"timeout: {method} {url}") from error

    async def _perform(self, method: str, url: str, body: str | bytes) -> Response:
        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            session = self._session_for()
            options: dict[str, Any] = {"headers": {"User-Agent": USER_AGENT}}
            if self._ssl_context is not None:
                options["ssl"] = self._ssl_context
            try:
                async with session.request(method, url, data=_payload(body), **options) as raw:
                    if raw.content_length is not None and raw.content_length > BODY_LIMIT:
                        raise RequestError("response body is too large", "read")
                    payload = await raw.read()
                    status, headers = raw.status, raw.headers
            except aiohttp.ClientError as error:
                raise RequestError(str(error) or type(error).__name__, _stage(error)) from error
        if len(payload) > BODY_LIMIT:
            raise RequestError("response body is too large", "read")
        return Response(status=status, body=_decode(payload), headers=headers)

    # -- websocket ----------------------------------------------------------

    def ws(self, url: str, handler: WsHandler) -> None:
        """Open a websocket to ``url``; ``handler`` receives its events."""
        _parse(url, _WS_SCHEMES)
        self._ws_url = url
        self._ws_handler = handler
        self.ws_connect()

    def ws_connect(self) -> None:
        """(Re)connect the websocket given to ``ws``."""
        if self._ws_url is None or self._ws_handler is None:
            raise RuntimeError("no websocket URL: call ws() first")
        self._ensure_started()
        self._ws_task = asyncio.run_coroutine_threadsafe(
            self._ws_run(self._ws_url, self._ws_handler), self._app.loop
        )

    def ws_send(self, data: str | bytes) -> None:
        """Queue ``data`` for the websocket; callable from any thread."""
        if self._ws_handler is None:
            raise RuntimeError("no websocket: call ws() first")
        self._app.loop.call_soon_threadsafe(self._ws_enqueue, data)

    async def _ws_run(self, url: str, handler: WsHandler) -> None:
        session = self._session_for()
        options: dict[str, Any] = {"headers": {"User-Agent": USER_AGENT}}
        if self._ssl_context is not None:
            options["ssl"] = self._ssl_context
        try:
            socket = await session.ws_connect(url, **options)
        except (aiohttp.ClientError, OSError) as error:
            handler.on_error(error, "connect")
            return

        parts = urlsplit(url)
        port = parts.port or _DEFAULT_PORTS[parts.scheme.lower()]
        target = parts.path or "/"
        if parts.query:
            target = f"{target}?{parts.query}"
        context = WsContext(
            remote_endpoint=(parts.hostname or "", port),
            uuid=str(uuid.uuid4()),
            target=target,
            route_path=parts.path or "/",
        )
        self._ws_socket = socket
        try:
            handler.on_connect(context)
            async for message in socket:
                if message.type is aiohttp.WSMsgType.TEXT:
                    handler.on_receive(context, message.data, True)
                elif message.type is aiohttp.WSMsgType.BINARY:
                    handler.on_receive(context, message.data, False)
                elif message.type is aiohttp.WSMsgType.ERROR:
                    handler.on_error(socket.exception(), "read")
                    break
        finally:
            if self._ws_socket is socket:
                self._ws_socket = None
            handler.on_disconnect(context)

    def _ws_enqueue(self, data: str | bytes) -> None:
        self._ws_queue.append(data)
        if self._ws_writer is None:
            self._ws_writer = asyncio.ensure_future(self._ws_drain())

    async def _ws_drain(self) -> None:
        try:
            while self._ws_queue:
                socket = self._ws_socket
                if socket is None or socket.closed:
                    raise ConnectionError("websocket is not connected")
                data = self._ws_queue[0]
                if isinstance(data, (bytes, bytearray)):
                    await socket.send_bytes(bytes(data))
                else:
                    await socket.send_str(data)
                self._ws_queue.popleft()
        except Exception as error:
            self._ws_queue.clear()
            if self._ws_handler is not None:
                self._ws_handler.on_error(error, "write")
        finally:
            self._ws_writer = None

    # -- lifecycle ----------------------------------------------------------

    def close(self) -> None:
        """Close the websocket and the pooled connections."""
        if self._session is None and self._ws_socket is None:
            return
        self._call(self._aclose())

    async def _aclose(self) -> None:
        socket, self._ws_socket = self._ws_socket, None
        if socket is not None and not socket.closed:
            await socket.close()
        session, self._session = self._session, None
        if session is not None and not session.closed:
            await session.close()

    def __enter__(self) -> Client:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _session_for(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    def _ensure_started(self) -> None:
        if not self._app.is_started():
            self._app.start()

    def _call(self, coro: Coroutine[Any, Any, _T]) -> _T:
        loop = self._app.loop
        if _running_loop() is loop:
            coro.close()
            raise RuntimeError("cannot wait for the event loop from inside it")
        self._ensure_started()
        if loop.is_running() or self._app.is_loop_owner:
            return asyncio.run_coroutine_threadsafe(coro, loop).result()
        return loop.run_until_complete(coro)