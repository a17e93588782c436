# relayutil

Building blocks for reverse proxies and tunnelling servers, using only the
standard library.

## What is inside

- `relayutil.router`: the `Routers` table, which maps a domain, a path
  prefix and an HTTP user to a payload. For one domain and user, longer
  locations are tried first; adding the same route twice raises
  `RouterConfigConflictError`. `iter_wildcard_domains` yields a host name,
  its wildcard forms (`*.example.com`) and finally `*`.
- `relayutil.vhost`: `Muxer` reads routing information from the start of
  each connection through a function you supply, and hands the connection to
  the `VhostListener` registered with `Muxer.listen` for that host, path and
  HTTP user. Optional hooks check credentials, run on success or failure,
  and rewrite the host. `RouteConfig` and `RequestRouteInfo` describe routes
  and requests.
- `relayutil.https`: `read_client_hello` parses a TLS ClientHello,
  `get_https_hostname` returns the server name as routing information
  together with a connection that replays the bytes read, `vhost_failed`
  refuses a connection with an unrecognized-name alert, and `HTTPSMuxer` is
  a `Muxer` built from them.
- `relayutil.conn`: `SharedConn` (inspect the start of a stream, then hand
  it on unread), `ContextConn`, `WrapReadWriteCloserConn`,
  `CloseNotifyConn` (calls a function once on close) and `StatsConn`
  (reports bytes read and written on close).
- `relayutil.listener`: `InternalListener`, which accepts connections that
  other threads put into it.
- `relayutil.udp`: `listen_udp` returns a `UDPListener` that hands out one
  `FakeUDPConn` per peer address; idle connections close themselves.
- `relayutil.tlsdetect`: `check_and_enable_tls_server_conn` looks at the
  first byte of a connection and wraps it in TLS when it starts a TLS
  handshake or carries the custom head byte.
- `relayutil.httpmw`: WSGI middleware: `HTTPAuthMiddleware` for basic
  auth and `GzipMiddleware` / `make_http_gzip_handler` for gzip responses.
- `relayutil.resource`: the 404 page and `not_found_response`.
- `relayutil.limit`: a token-bucket `RateLimiter`, with `LimitedReader`
  and `LimitedWriter` built on it.
- `relayutil.backoff`: `FastBackoffManager`, `FastBackoffOptions`,
  `backoff_until`, `until` and `jitter`. Durations are in seconds.
- `relayutil.metric`: `Counter` and a per-day `DateCounter`.
- `relayutil.util`, `relayutil.httputil`, `relayutil.log`,
  `relayutil.xlog`, `relayutil.version`: helpers (random ids, auth keys,
  range parsing), HTTP responses and basic-auth parsing, logging with a
  trace level, loggers that carry prefixes, and the version string.

## Installation

```
pip install relayutil
```

## Examples

Routing by domain and path:

```python
from relayutil.router import Routers

routers = Routers()
routers.add("example.com", "/api", "", "api-backend")
routers.add("example.com", "/", "", "web-backend")

router = routers.get("example.com", "/api/users", "")
print(router.payload)  # api-backend
```

Routing TLS connections by server name:

```python
import socket
from relayutil.https import HTTPSMuxer
from relayutil.vhost import RouteConfig

server = socket.create_server(("127.0.0.1", 8443))
muxer = HTTPSMuxer(server, timeout=10.0)
listener = muxer.listen({}, RouteConfig(domain="example.com"))

conn = listener.accept()  # the first bytes read are replayed by conn.recv
```

Parsing port ranges:

```python
from relayutil.util import parse_range_numbers

parse_range_numbers(" 3-5,8, 10-12 ")  # [3, 4, 5, 8, 10, 11, 12]
```

Basic auth headers:

```python
from relayutil.httputil import basic_auth, parse_basic_auth

header = basic_auth("user", "password")
parse_basic_auth(header)  # ("user", "password")
parse_basic_auth("Bearer token")  # None
```

Retrying with backoff:

```python
import threading
from relayutil.backoff import FastBackoffManager, FastBackoffOptions, backoff_until

stop = threading.Event()
manager = FastBackoffManager(FastBackoffOptions(duration=1.0, factor=2.0, max_duration=30.0))

def attempt() -> bool:
    ...  # raise to count the attempt as failed
    return True  # True stops the loop

backoff_until(attempt, manager, True, stop)
```

Counting per day:

```python
from relayutil.metric import DateCounter

traffic = DateCounter(7)
traffic.inc(1024)
traffic.get_last_days_count(3)  # [1024, 0, 0]
```

## What it does not do

The package provides routing, muxing and connection pieces, not a finished
server. It has no command-line program and no HTTP reverse proxy that
forwards requests to backends. There is no muxer for HTTP `CONNECT`
requests either; a `Muxer` can be given any function that reads routing
information from a connection, so one can be built on it.

## Running the tests

```
pip install -e ".[test]"
pytest
```