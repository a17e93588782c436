import gzip
import time

from relayutil.httpmw import GzipMiddleware, HTTPAuthMiddleware, make_http_gzip_handler
from relayutil.httputil import basic_auth


class _StartResponse:
    def __init__(self):
        self.status = None
        self.headers = []
        self.written = []

    def __call__(self, status, headers, exc_info=None):
        self.status = status
        self.headers = list(headers)
        return self.written.append

    def header(self, name):
        for key, value in self.headers:
            if key.lower() == name.lower():
                return value
        return None


def _hello_app(environ, start_response):
    start_response("200 OK", [("Content-Type", "text/plain"), ("Content-Length", "11")])
    return [b"hello ", b"world"]


def _call(app, environ):
    start = _StartResponse()
    body = b"".join(start.written) + b"".join(app(environ, start))
    return start, body + b"".join(start.written[len(start.written):])


def test_no_credentials_configured_lets_everyone_in():
    app = HTTPAuthMiddleware("", "").wrap(_hello_app)
    start, body = _call(app, {})
    assert start.status == "200 OK"
    assert body == b"hello world"


def test_correct_credentials_pass():
    password = "password"
    app = HTTPAuthMiddleware("admin", password).wrap(_hello_app)
    start, body = _call(app, {"HTTP_AUTHORIZATION": basic_auth("admin", password)})
    assert start.status == "200 OK"
    assert body == b"hello world"


def test_wrong_credentials_rejected():
    password = "password"
    app = HTTPAuthMiddleware("admin", password).wrap(_hello_app)
    start, body = _call(app, {"HTTP_AUTHORIZATION": basic_auth("admin", "secret")})
    assert start.status.startswith("401")
    assert start.header("WWW-Authenticate") == 'Basic realm="Restricted"'
    assert b"Unauthorized" in body


def test_missing_credentials_rejected_after_delay():
    password = "password"
    app = HTTPAuthMiddleware("admin", password, auth_fail_delay=0.05).wrap(_hello_app)
    began = time.monotonic()
    start, _ = _call(app, {})
    assert time.monotonic() - began >= 0.05
    assert start.status.startswith("401")


def test_gzip_applied_when_accepted():
    app = GzipMiddleware(_hello_app)
    start, body = _call(app, {"HTTP_ACCEPT_ENCODING": "deflate, gzip"})
    assert start.header("Content-Encoding") == "gzip"
    assert start.header("Content-Length") is None
    assert gzip.decompress(body) == b"hello world"


def test_gzip_skipped_without_accept_encoding():
    app = make_http_gzip_handler(_hello_app)
    start, body = _call(app, {})
    assert start.header("Content-Encoding") is None
    assert body == b"hello world"


def test_gzip_handles_write_callable():
    def writing_app(environ, start_response):
        write = start_response("200 OK", [("Content-Type", "text/plain")])
        write(b"hello ")
        return [b"world"]

    start = _StartResponse()
    iterated = b"".join(GzipMiddleware(writing_app)({"HTTP_ACCEPT_ENCODING": "gzip"}, start))
    body = b"".join(start.written) + iterated
    assert gzip.decompress(body) == b"hello world"


def test_gzip_closes_app_result():
    class _Result:
        closed = False

        def __iter__(self):
            return iter([b"data"])

        def close(self):
            self.closed = True

    result = _Result()

    def app(environ, start_response):
        start_response("200 OK", [])
        return result

    start = _StartResponse()
    body = b"".join(GzipMiddleware(app)({"HTTP_ACCEPT_ENCODING": "gzip"}, start))
    assert gzip.decompress(body) == b"data"
    assert result.closed is True