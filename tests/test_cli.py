import socket
import weakref

import pytest

from beautyhttp.application import Application
from beautyhttp.attributes import Attributes
from beautyhttp.cli import (
    _install_chat_routes,
    _install_file_routes,
    _install_person_routes,
    main,
    read_file_content,
)
from beautyhttp.errors import (
    BadGateway,
    BadRequest,
    Forbidden,
    InternalServerError,
    NotImplementedStatus,
    ServiceUnavailable,
    Unauthorized,
)
from beautyhttp.messages import Request, Response
from beautyhttp.server import Server
from beautyhttp.websocket import WsContext


@pytest.fixture
def server():
    return Server(app=Application())


def dispatch(server, method, target, body=""):
    request = Request(method, target, body)
    for route in server.router.find(method):
        if not route.is_websocket and route.match(request):
            response = Response()
            route.execute(request, response)
            return response
    raise LookupError(target)


def free_port():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


class FakeSession:
    def __init__(self):
        self.sent = []

    def send(self, message):
        self.sent.append(message)


# -- read_file_content --------------------------------------------------------


def test_read_text_file(tmp_path, capsys):
    path = tmp_path / "index.html"
    path.write_text("<h1>hello</h1>")
    assert read_file_content(path) == "<h1>hello</h1>"
    assert "Reading file:" in capsys.readouterr().out


def test_read_binary_file(tmp_path):
    path = tmp_path / "logo.png"
    path.write_bytes(b"\x89PNG\r\n")
    assert read_file_content(path, binary=True) == b"\x89PNG\r\n"


def test_read_missing_file_is_empty(tmp_path):
    assert read_file_content(tmp_path / "missing.html") == ""
    assert read_file_content(tmp_path / "missing.png", binary=True) == b""


# -- file server --------------------------------------------------------------


def test_file_route_serves_html(server, tmp_path):
    (tmp_path / "page.html").write_text("content")
    _install_file_routes(server, tmp_path)
    response = dispatch(server, "GET", "/page.html")
    assert response.body == "content"
    assert response.headers["Content-Type"] == "text/html"


def test_dir_route_serves_png(server, tmp_path):
    (tmp_path / "icons").mkdir()
    (tmp_path / "icons" / "logo.png").write_bytes(b"\x89PNG")
    _install_file_routes(server, tmp_path)
    response = dispatch(server, "GET", "/icons/logo.png")
    assert response.body == b"\x89PNG"
    assert response.headers["Content-Type"] == "image/png"


@pytest.mark.parametrize(
    "kind, error_class, message",
    [
        ("bad_request", BadRequest, "This is a bad request"),
        ("unauthorized", Unauthorized, "This is an unauthorized request"),
        ("forbidden", Forbidden, "This is a forbidden request"),
        ("internal_server_error", InternalServerError, "This is an internal_server_error request"),
        ("not_implemented", NotImplementedStatus, "This is an not_implemented request"),
        ("bad_gateway", BadGateway, "This is an bad_gateway request"),
        ("service_unavailable", ServiceUnavailable, "This is an service_unavailable request"),
    ],
)
def test_exception_routes(server, tmp_path, kind, error_class, message):
    _install_file_routes(server, tmp_path)
    with pytest.raises(error_class) as info:
        dispatch(server, "GET", f"/exception/{kind}")
    assert info.value.message == message


def test_unsupported_exception_type(server, tmp_path):
    _install_file_routes(server, tmp_path)
    with pytest.raises(BadRequest) as info:
        dispatch(server, "GET", "/exception/teapot")
    assert info.value.message == "type [teapot] is not supported"


# -- person store -------------------------------------------------------------


def test_person_store_round_trip(server):
    storage = {}
    _install_person_routes(server, storage)
    dispatch(server, "POST", "/person", "306 Alice")
    assert storage == {"306": "Alice"}
    assert dispatch(server, "GET", "/person/306").body == "id: 306, name: Alice\n"
    assert dispatch(server, "GET", "/person").body == "306\n"
    assert dispatch(server, "GET", "/person?id=306").body == "id: 306, name: Alice\n"


def test_person_store_unknown_ids(server):
    _install_person_routes(server, {})
    assert dispatch(server, "GET", "/person?id=999").body == "Id: 999 NOT FOUND"
    assert dispatch(server, "GET", "/person/999").body == ""


def test_person_root_route(server):
    _install_person_routes(server, {})
    assert dispatch(server, "GET", "/").body == "It's work ;) ... it works! :)"


# -- chat ---------------------------------------------------------------------


def test_chat_broadcasts_within_room(server):
    rooms = {}
    _install_chat_routes(server, rooms)
    route = next(r for r in server.router.find("GET") if r.is_websocket)

    first, second, other = FakeSession(), FakeSession(), FakeSession()
    contexts = [
        WsContext(uuid="u1", ws_session=weakref.ref(first), attributes=Attributes("room=lobby")),
        WsContext(uuid="u2", ws_session=weakref.ref(second), attributes=Attributes("room=lobby")),
        WsContext(uuid="u3", ws_session=weakref.ref(other), attributes=Attributes("room=side")),
    ]
    for context in contexts:
        route.connect(context)

    route.receive(contexts[0], "hello", True)
    assert first.sent == ["hello"]
    assert second.sent == ["hello"]
    assert other.sent == []

    route.disconnect(contexts[1])
    assert set(rooms["lobby"]) == {"u1"}
    route.receive(contexts[0], "again", True)
    assert second.sent == ["hello"]


# -- main ---------------------------------------------------------------------


def test_main_requires_a_command():
    with pytest.raises(SystemExit) as info:
        main([])
    assert info.value.code == 2


def test_bench_against_live_server(capsys):
    live = Server(app=Application())
    live.get("/hello", lambda req, res: setattr(res, "body", "hello"))
    live.listen(0, "127.0.0.1")
    try:
        assert main(["bench", f"http://127.0.0.1:{live.port}/hello", "3"]) == 0
    finally:
        live.stop()
    out = capsys.readouterr().out
    assert "Document Length: 5" in out
    assert "3 response(s) received" in out
    assert "0 failure(s)" in out


def test_bench_counts_failures(capsys):
    port = free_port()
    assert main(["bench", f"http://127.0.0.1:{port}/index.html", "2"]) == 0
    out = capsys.readouterr().out
    assert "2 failure(s)" in out
    assert "Document Length: 0" in out