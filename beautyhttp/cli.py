"""Command-line entry points: a file server, a chat server, a person store and a benchmark."""

from __future__ import annotations

import argparse
import sys
import time
import weakref
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from beautyhttp.client import Client
from beautyhttp.errors import (
    BadGateway,
    BadRequest,
    Forbidden,
    HttpError,
    InternalServerError,
    NotImplementedStatus,
    ServiceUnavailable,
    Unauthorized,
)
from beautyhttp.messages import IMAGE_PNG, TEXT_HTML, Request, Response
from beautyhttp.server import Server
from beautyhttp.websocket import WsContext, WsHandler

__all__ = ["read_file_content", "main"]

Rooms = dict[str, dict[str, "weakref.ref[Any]"]]

_EXCEPTIONS: dict[str, tuple[type[HttpError], str]] = {
    "bad_request": (BadRequest, "This is a bad request"),
    "unauthorized": (Unauthorized, "This is an unauthorized request"),
    "forbidden": (Forbidden, "This is a forbidden request"),
    "internal_server_error": (
        InternalServerError,
        "This is an internal_server_error request",
    ),
    "not_implemented": (NotImplementedStatus, "This is an not_implemented request"),
    "bad_gateway": (BadGateway, "This is an bad_gateway request"),
    "service_unavailable": (ServiceUnavailable, "This is an service_unavailable request"),
}


def read_file_content(path: str | Path, binary: bool = False) -> str | bytes:
    """Return the content of ``path``; an unreadable file gives an empty result."""
    print(f"Reading file: {path}", flush=True)
    file_path = Path(path)
    try:
        return file_path.read_bytes() if binary else file_path.read_text()
    except (OSError, UnicodeDecodeError):
        return b"" if binary else ""


def _text(body: str | bytes) -> str:
    return body.decode("utf-8", errors="replace") if isinstance(body, bytes) else body


def _size(body: str | bytes) -> int:
    return len(body.encode("utf-8")) if isinstance(body, str) else len(body)


# -- file server -------------------------------------------------------------


def _install_file_routes(server: Server, doc_root: str | Path) -> Server:
    root = Path(doc_root)

    def serve_file(request: Request, response: Response) -> None:
        filename = request.a("filename").as_string("index.html")
        response.set(TEXT_HTML)
        response.body = read_file_content(root / filename)

    def serve_image(request: Request, response: Response) -> None:
        dirname = request.a("dirname").as_string()
        filename = request.a("filename").as_string()
        response.set(IMAGE_PNG)
        response.body = read_file_content(root / dirname / filename, binary=True)

    def raise_error(request: Request, response: Response) -> None:
        kind = request.a("type").as_string("bad_request")
        if kind in _EXCEPTIONS:
            error_class, message = _EXCEPTIONS[kind]
            raise error_class(message)
        raise BadRequest(f"type [{kind}] is not supported")

    server.add_route("/:filename").get(serve_file)
    server.add_route("/:dirname/:filename").get(serve_image)
    server.add_route("/exception/:type").get(raise_error)
    return server


# -- person store ------------------------------------------------------------


def _install_person_routes(server: Server, storage: dict[str, str]) -> Server:
    def root(request: Request, response: Response) -> None:
        response.body = "It's work ;) ... it works! :)"

    def list_or_find(request: Request, response: Response) -> None:
        person_id = request.a("id").as_string()
        if not person_id:
            response.body = "".join(f"{key}\n" for key in storage)
        elif person_id in storage:
            response.body = f"id: {person_id}, name: {storage[person_id]}\n"
        else:
            response.body = f"Id: {person_id} NOT FOUND"

    def add(request: Request, response: Response) -> None:
        words = _text(request.body).split()
        person_id = words[0] if words else ""
        name = words[1] if len(words) > 1 else ""
        storage[person_id] = name

    def find(request: Request, response: Response) -> None:
        person_id = request.a("id").as_string()
        if person_id in storage:
            response.body = f"id: {person_id}, name: {storage[person_id]}\n"

    server.add_route("/").get(root)
    server.add_route("/person").get(list_or_find).post(add)
    server.add_route("/person/:id").get(find)
    return server


# -- chat --------------------------------------------------------------------


def _install_chat_routes(server: Server, rooms: Rooms) -> Server:
    def on_connect(context: WsContext) -> None:
        print(f"on connect: {context.uuid}")
        print(f"    remote: {context.remote_endpoint}")
        print(f"    target: {context.target}")
        print(f"     route: {context.route_path}")
        for name, value in context.attributes.items():
            print(f" attribute: {name} = {value.as_string()}")
        room = context.attributes["room"].as_string()
        if context.ws_session is not None:
            rooms.setdefault(room, {})[context.uuid] = context.ws_session

    def on_receive(context: WsContext, data: str | bytes, is_text: bool) -> None:
        print(f"on receive: {context.uuid}")
        room = context.attributes["room"].as_string()
        for reference in list(rooms.setdefault(room, {}).values()):
            session = reference()
            if session is not None:
                session.send(data)

    def on_disconnect(context: WsContext) -> None:
        print(f"on disconnect: {context.uuid}")
        for sessions in rooms.values():
            sessions.pop(context.uuid, None)

    server.add_route("/chat/:room").ws(
        WsHandler(on_connect=on_connect, on_receive=on_receive, on_disconnect=on_disconnect)
    )
    return server


# -- benchmark ---------------------------------------------------------------


def _benchmark(client: Client, url: str, count: int) -> int:
    step = count // 10 or 1
    message_size = 0
    failures = 0
    total_bytes = 0
    start = time.perf_counter()

    sent = 0
    for sent in range(count):
        try:
            response = client.get(url)
        except Exception:
            failures += 1
        else:
            size = _size(response.body)
            if sent == 0:
                message_size = size
            total_bytes += size
            if count == 1:
                print(f"[{_text(response.body)[:512]}]")
        if sent and sent % step == 0:
            print(f"{sent} response(s) received")
    received = sent + 1 if count > 0 else 0

    print(f"Document Length: {message_size}")
    print()
    print(f"{received} response(s) received")
    print(f"{failures} failure(s)")
    print(f"{total_bytes / 1024.0:.6f} Kbyte(s) received")

    delay = time.perf_counter() - start
    print(f"Total duration:      {delay:.6f} seconds")
    rate = count / delay if delay > 0 else 0.0
    print(f"Requests per seconds: {rate:.6f} [#/sec]")
    return failures


# -- entry point -------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="beautyhttp")
    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="serve files from a directory")
    serve.add_argument("address")
    serve.add_argument("port", type=int)
    serve.add_argument("doc_root")
    serve.add_argument("threads", type=int)

    chat = commands.add_parser("chat", help="websocket chat rooms on /chat/:room")
    chat.add_argument("address")
    chat.add_argument("port", type=int)
    chat.add_argument("threads", type=int)

    persons = commands.add_parser("persons", help="a small in-memory person store")
    persons.add_argument("--address", default="0.0.0.0")
    persons.add_argument("--port", type=int, default=8085)

    bench = commands.add_parser("bench", help="send COUNT GET requests to URL")
    bench.add_argument("url")
    bench.add_argument("count", type=int)
    return parser


def _serve_forever(server: Server, port: int, address: str) -> int:
    server.listen(port, address)
    try:
        server.wait()
    except KeyboardInterrupt:
        pass
    finally:
        server.stop()
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(sys.argv[1:] if argv is None else list(argv))

    if args.command == "bench":
        with Client() as client:
            _benchmark(client, args.url, args.count)
        return 0

    server = Server()
    if args.command == "serve":
        _install_file_routes(server, args.doc_root)
        server.concurrency(max(1, args.threads))
        return _serve_forever(server, args.port, args.address)
    if args.command == "chat":
        _install_chat_routes(server, {})
        server.concurrency(max(1, args.threads))
        return _serve_forever(server, args.port, args.address)
    _install_person_routes(server, {})
    return _serve_forever(server, args.port, args.address)


if __name__ == "__main__":
    sys.exit(main())