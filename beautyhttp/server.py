"""An HTTP and websocket server that dispatches requests through a router."""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import weakref
from collections.abc import Coroutine
from contextlib import suppress
from http import HTTPStatus
from typing import Any, TypeVar

from aiohttp import web

from beautyhttp.application import Application
from beautyhttp.errors import HttpError
from beautyhttp.messages import APPLICATION_JSON, Request, Response
from beautyhttp.routing import (
    Route,
    RouteCallback,
    RouteInfo,
    RouteParameter,
    Router,
    ServerInfo,
    swagger_path,
)
from beautyhttp.websocket import Endpoint, WebSocketSession, WsHandler

__all__ = ["Server", "ServerRoute"]

_CLOSE_TIMEOUT = 2.0
_T = TypeVar("_T")


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


def _decode(body: bytes) -> str | bytes:
    try:
        return body.decode("utf-8")
    except UnicodeDecodeError:
        return body


def _is_websocket_upgrade(raw: web.BaseRequest) -> bool:
    return raw.headers.get("Upgrade", "").lower() == "websocket"


def _to_web_response(response: Response) -> web.Response:
    body = response.body.encode("utf-8") if isinstance(response.body, str) else bytes(response.body)
    headers = {
        name: value
        for name, value in response.headers.items()
        if name.lower() != "content-length"
    }
    return web.Response(status=int(response.status), body=body, headers=headers)


def _swagger_parameter(parameter: RouteParameter) -> dict[str, Any]:
    schema = {"type": parameter.type}
    if parameter.format:
        schema["format"] = parameter.format
    return {
        "name": parameter.name,
        "in": parameter.location,
        "description": parameter.description,
        "required": parameter.required,
        "schema": schema,
    }


class _Acceptor:
    """The listening socket and the connections it accepted."""

    def __init__(self, server: Server) -> None:
        self._owner = server
        self._web_server: web.Server | None = None
        self._listener: asyncio.AbstractServer | None = None

    async def open(self, address: str, port: int) -> Endpoint:
        loop = asyncio.get_running_loop()
        self._web_server = web.Server(self._owner._handle)
        app = self._owner.app
        ssl_context = app.ssl_context if app.is_ssl_activated() else None
        self._listener = await loop.create_server(
            self._web_server,
            host=address or None,
            port=port,
            reuse_address=True,
            ssl=ssl_context,
        )
        bound = self._listener.sockets[0].getsockname()
        # The port may have been allocated dynamically.
        return address, int(bound[1])

    def abort(self) -> None:
        if self._listener is not None:
            self._listener.close()

    async def close(self) -> None:
        self.abort()
        await self._owner._close_sessions()
        if self._web_server is not None:
            await self._web_server.shutdown(_CLOSE_TIMEOUT)
        if self._listener is not None:
            with suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._listener.wait_closed(), _CLOSE_TIMEOUT)


class ServerRoute:
    """One path of a server, to which handlers for several methods are added."""

    def __init__(self, server: Server, path: str) -> None:
        self._server = server
        self._path = path

    @property
    def path(self) -> str:
        return self._path

    def get(self, callback: RouteCallback, info: RouteInfo | None = None) -> ServerRoute:
        self._server.get(self._path, callback, info)
        return self

    def put(self, callback: RouteCallback, info: RouteInfo | None = None) -> ServerRoute:
        self._server.put(self._path, callback, info)
        return self

    def post(self, callback: RouteCallback, info: RouteInfo | None = None) -> ServerRoute:
        self._server.post(self._path, callback, info)
        return self

    def options(self, callback: RouteCallback, info: RouteInfo | None = None) -> ServerRoute:
        self._server.options(self._path, callback, info)
        return self

    def delete(self, callback: RouteCallback, info: RouteInfo | None = None) -> ServerRoute:
        self._server.delete(self._path, callback, info)
        return self

    def ws(self, handler: WsHandler) -> ServerRoute:
        self._server.ws(self._path, handler)
        return self


class Server:
    """Routes requests to handlers; blocking handlers run on the worker pool.

    Without an explicit application the shared application instance is used;
    pass an application built with certificates to serve over TLS.
    """

    def __init__(self, app: Application | None = None) -> None:
        self._app = app if app is not None else Application.instance()
        self._concurrency = 1
        self._router = Router()
        self._acceptor: _Acceptor | None = None
        self._endpoint: Endpoint = ("0.0.0.0", 0)
        self._info = ServerInfo()
        self._swagger_entrypoint: str | None = None
        self._sessions: weakref.WeakSet[WebSocketSession] = weakref.WeakSet()

    # -- properties ---------------------------------------------------------

    @property
    def app(self) -> Application:
        return self._app

    @property
    def router(self) -> Router:
        return self._router

    @property
    def endpoint(self) -> Endpoint:
        return self._endpoint

    @property
    def port(self) -> int:
        return self._endpoint[1]

    @property
    def info(self) -> ServerInfo:
        return self._info

    @info.setter
    def info(self, value: ServerInfo) -> None:
        self._info = value

    # -- configuration ------------------------------------------------------

    def concurrency(self, count: int) -> Server:
        self._concurrency = count
        return self

    def add_route(self, path: str) -> ServerRoute:
        return ServerRoute(self, path)

    def _add(self, method: str, path: str, callback: RouteCallback, info: RouteInfo | None) -> Server:
        self._router.add_route(method, Route(path, callback, info))
        return self

    def get(self, path: str, callback: RouteCallback, info: RouteInfo | None = None) -> Server:
        return self._add("GET", path, callback, info)

    def put(self, path: str, callback: RouteCallback, info: RouteInfo | None = None) -> Server:
        return self._add("PUT", path, callback, info)

    def post(self, path: str, callback: RouteCallback, info: RouteInfo | None = None) -> Server:
        return self._add("POST", path, callback, info)

    def options(self, path: str, callback: RouteCallback, info: RouteInfo | None = None) -> Server:
        return self._add("OPTIONS", path, callback, info)

    def delete(self, path: str, callback: RouteCallback, info: RouteInfo | None = None) -> Server:
        return self._add("DELETE", path, callback, info)

    def ws(self, path: str, handler: WsHandler) -> Server:
        self._router.add_route("GET", Route(path, ws_handler=handler))
        return self

    # -- lifecycle ----------------------------------------------------------

    def _call(self, coro: Coroutine[Any, Any, _T], timeout: float | None = None) -> _T:
        loop = self._app.loop
        if _running_loop() is loop:
            coro.close()
            raise RuntimeError("cannot wait for the event loop from inside it")
        if loop.is_running() or (self._app.is_started() and self._app.is_loop_owner):
            return asyncio.run_coroutine_threadsafe(coro, loop).result(timeout)
        return loop.run_until_complete(coro)

    def listen(self, port: int = 0, address: str = "0.0.0.0") -> Server:
        """Start the application and accept connections on ``address:port``."""
        if self._acceptor is not None:
            raise RuntimeError("server is already listening")
        self._app.start(self._concurrency)
        acceptor = _Acceptor(self)
        try:
            self._endpoint = self._call(acceptor.open(address, int(port)))
        except Exception:
            self._app.stop()
            raise
        self._acceptor = acceptor
        return self

    def stop(self) -> None:
        """Close the listening socket and the connections, then stop the application."""
        acceptor, self._acceptor = self._acceptor, None
        if acceptor is not None:
            if _running_loop() is self._app.loop:
                acceptor.abort()
            else:
                try:
                    self._call(acceptor.close(), timeout=_CLOSE_TIMEOUT * 2)
                except (TimeoutError, concurrent.futures.TimeoutError):
                    self._app.loop.call_soon_threadsafe(acceptor.abort)
        self._app.stop()

    def run(self) -> None:
        self._app.run()

    def wait(self) -> None:
        self._app.wait()

    def __enter__(self) -> Server:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    # -- swagger ------------------------------------------------------------

    def swagger_document(self) -> dict[str, Any]:
        """An OpenAPI description of the HTTP routes."""
        paths: dict[str, dict[str, Any]] = {}
        for method, routes in self._router:
            for route in routes:
                if route.is_websocket or route.path == self._swagger_entrypoint:
                    continue
                operation = {
                    "description": route.info.description,
                    "parameters": [_swagger_parameter(p) for p in route.info.route_parameters],
                    "responses": {"200": {"description": "OK"}},
                }
                paths.setdefault(swagger_path(route), {})[method.lower()] = operation
        return {
            "openapi": "3.0.1",
            "info": {
                "title": self._info.title,
                "description": self._info.description,
                "version": self._info.version,
            },
            "paths": paths,
        }

    def enable_swagger(self, entrypoint: str = "/swagger") -> Server:
        """Serve the swagger document as JSON at ``entrypoint``."""
        self._swagger_entrypoint = entrypoint

        def serve(request: Request, response: Response) -> None:
            response.set(APPLICATION_JSON)
            response.body = json.dumps(self.swagger_document())

        return self.get(entrypoint, serve)

    # -- request handling ---------------------------------------------------

    async def _handle(self, raw: web.BaseRequest) -> web.StreamResponse:
        request = Request(raw.method, raw.raw_path, _decode(await raw.read()), raw.headers)
        if _is_websocket_upgrade(raw):
            for route in self._router.find("GET"):
                if route.is_websocket and route.match(request):
                    session = WebSocketSession(route)
                    self._sessions.add(session)
                    return await session.serve(request, raw)
        for route in self._router.find(request.method):
            if not route.is_websocket and route.match(request):
                return await self._execute(route, request)
        return web.Response(status=HTTPStatus.NOT_FOUND, text=f"Not found: {request.path}")

    async def _execute(self, route: Route, request: Request) -> web.Response:
        loop = asyncio.get_running_loop()
        response = Response()
        finished = loop.create_future()

        def finish() -> None:
            if not finished.done():
                finished.set_result(None)

        response.on_done(lambda: loop.call_soon_threadsafe(finish))
        try:
            await loop.run_in_executor(self._app.executor, route.execute, request, response)
            if response.is_postponed:
                await finished
        except HttpError as error:
            response = Response(status=error.status, body=error.message)
        except Exception as error:
            response = Response(status=HTTPStatus.INTERNAL_SERVER_ERROR, body=str(error))
        return _to_web_response(response)

    async def _close_sessions(self) -> None:
        for session in list(self._sessions):
            await session.close()