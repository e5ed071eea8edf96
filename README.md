# beautyhttp

A compact HTTP and WebSocket toolkit built on asyncio and aiohttp: a
server with path routing and named path segments, an HTTP and WebSocket
client, one-shot and repeating timers, and signal handlers. All of them
run on a shared `Application`, which owns an event loop and a pool of
worker threads for request handlers.

## Installation

    pip install beautyhttp

## A server

Routes are declared once per path, and each HTTP method is attached to
that path with `get`, `put`, `post`, `options` or `delete`. Segments that
start with `:` are captured and can be read from the request with `a()`.
Handlers take a `Request` and a `Response` and run on the worker pool.

```python
from beautyhttp.server import Server
from beautyhttp.errors import BadRequest
from beautyhttp.messages import TEXT_PLAIN

server = Server()

def show_person(request, response):
    person_id = request.a("id").as_string()
    if not person_id:
        raise BadRequest("an id is required")
    response.set(TEXT_PLAIN)
    response.body = f"person {person_id}"

server.add_route("/person/:id").get(show_person)

server.concurrency(4)
server.listen(8085, "0.0.0.0")
server.wait()
```

`listen()` with no port binds a free port, which `server.port` then
reports. `stop()` closes the listening socket and open WebSocket
connections and stops the application; a `Server` is also a context
manager that stops on exit. `run()` runs the event loop in the calling
thread instead.

When several routes could match, the most specific one wins: a literal
segment is preferred to a captured one, leftmost segment first, so
`/aaa/bbb` is chosen before `/aaa/:B`, which is chosen before `/:A/:B`.
A request that no route matches gets a 404.

Raising one of the errors from `beautyhttp.errors` (`BadRequest`,
`Unauthorized`, `Forbidden`, `InternalServerError`,
`NotImplementedStatus`, `BadGateway`, `ServiceUnavailable`) inside a
handler sends its status code with the message as the body. Any other
exception gives a 500.

### Attributes

`request.a(name)` returns an `Attribute` taken from the query string or
from a captured path segment. It converts on demand and falls back to a
default when the value is empty:

```python
request.a("page").as_integer(1)
request.a("ratio").as_double(0.5)
request.a("verbose").as_boolean(False)   # "1", "true" and "yes" are true
```

### Answering later

A handler can call `response.postpone()` and return; the response is
sent once `response.done()` is called, for instance from a timer.

### Swagger

`server.info = ServerInfo(title=..., description=..., version=...)` and
a `RouteInfo` passed along with each handler describe the API;
`server.enable_swagger("/swagger")` serves it as an OpenAPI JSON document.

### TLS

Build an `Application(certificates=Certificates(certificate_chain=...,
private_key=...))` and pass it to `Server(app)` to serve over TLS.

### WebSockets

```python
from beautyhttp.websocket import WsHandler

server.add_route("/chat/:room").ws(WsHandler(
    on_connect=lambda ctx: print("connected", ctx.uuid),
    on_receive=lambda ctx, data, is_text: ctx.session.send(data),
    on_disconnect=lambda ctx: print("gone", ctx.uuid),
))
```

Each callback receives a `WsContext` with the endpoints, a uuid, the
target, the captured attributes and a weak reference to the session.

## A client

Without a callback a request blocks and returns the `Response`, raising
`RequestError` (or `TimeoutError`) on failure:

```python
from beautyhttp.client import Client

with Client() as client:
    response = client.get("http://127.0.0.1:8085/person/306", timeout=2.0)
    if response.is_status_ok():
        print(response.body)
```

With a callback it returns at once and later calls
`callback(error, response)`, `error` being `None` on success. `post`,
`put` and `delete` take a body as well. Requests of one client are sent
one after another. `client.ws(url, handler)` opens a WebSocket with a
`WsHandler`, `ws_send()` queues a message and `ws_connect()` reconnects.

## Timers and signals

```python
import signal as stdsignal

from beautyhttp import application, timer, signals

application.start()
timer.after(0.25, lambda: print("once"))
ticker = timer.repeat(0.5, lambda: print("alive"))
signals.signal(stdsignal.SIGINT, lambda signum: application.stop())
application.wait()
```

A callback that returns `False` stops its own timer, and `ticker.stop()`
stops it from outside; `ticker.start()` starts it again. Signal handlers
must be installed from the main thread; their callbacks run on the event
loop.

## Command line

The package installs a `beautyhttp` command:

    beautyhttp serve ADDRESS PORT DOC_ROOT THREADS   # files from DOC_ROOT, /exception/:type raises errors
    beautyhttp chat ADDRESS PORT THREADS             # WebSocket chat rooms on /chat/:room
    beautyhttp persons [--address A] [--port P]      # an in-memory person store on /person
    beautyhttp bench URL COUNT                       # send COUNT GET requests and report timings

## What it does not do

The person store and chat rooms keep their data in memory only; nothing
is persisted. The client does not follow any TLS setup of its own beyond
an optional `ssl_context`, and it does not pipeline requests.

## Running the tests

    pip install beautyhttp[test]
    pytest