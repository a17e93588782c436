"""WSGI middleware: basic authentication and gzip response compression."""

from __future__ import annotations

import time
import zlib
from collections.abc import Callable, Iterable, Iterator
from typing import Any

from .httputil import parse_basic_auth
from .util import constant_time_eq_string

WSGIApp = Callable[[dict, Callable[..., Any]], Iterable[bytes]]

_UNAUTHORIZED_BODY = b"Unauthorized\n"


class HTTPAuthMiddleware:
    """Requires basic auth credentials when a user or password is configured.

    Failed attempts wait ``auth_fail_delay`` seconds before the 401 reply.
    """

    def __init__(self, user: str, passwd: str, auth_fail_delay: float = 0.0) -> None:
        self.user = user
        self.passwd = passwd
        self.auth_fail_delay = auth_fail_delay

    def _authorized(self, environ: dict) -> bool:
        if not self.user and not self.passwd:
            return True
        creds = parse_basic_auth(environ.get("HTTP_AUTHORIZATION", ""))
        if creds is None:
            return False
        user_ok = constant_time_eq_string(creds[0], self.user)
        passwd_ok = constant_time_eq_string(creds[1], self.passwd)
        return user_ok and passwd_ok

    def wrap(self, app: WSGIApp) -> WSGIApp:
        """Return ``app`` guarded by this middleware."""

        def guarded(environ: dict, start_response: Callable[..., Any]) -> Iterable[bytes]:
            if self._authorized(environ):
                return app(environ, start_response)
            if self.auth_fail_delay > 0:
                time.sleep(self.auth_fail_delay)
            start_response(
                "401 Unauthorized",
                [
                    ("WWW-Authenticate", 'Basic realm="Restricted"'),
                    ("Content-Type", "text/plain; charset=utf-8"),
                    ("X-Content-Type-Options", "nosniff"),
                    ("Content-Length", str(len(_UNAUTHORIZED_BODY))),
                ],
            )
            return [_UNAUTHORIZED_BODY]

        return guarded


class GzipMiddleware:
    """Gzips responses for clients whose Accept-Encoding mentions gzip."""

    def __init__(self, app: WSGIApp) -> None:
        self.app = app

    def __call__(self, environ: dict, start_response: Callable[..., Any]) -> Iterable[bytes]:
        if "gzip" not in environ.get("HTTP_ACCEPT_ENCODING", ""):
            return self.app(environ, start_response)

        compressor = zlib.compressobj(wbits=31)

        def gzip_start_response(status: str, headers: list, exc_info: Any = None) -> Callable:
            kept = [
                (name, value)
                for name, value in headers
                if name.lower() not in ("content-encoding", "content-length")
            ]
            kept.append(("Content-Encoding", "gzip"))
            write = start_response(status, kept, exc_info)

            def gzip_write(data: bytes) -> None:
                out = compressor.compress(data)
                if out:
                    write(out)

            return gzip_write

        result = self.app(environ, gzip_start_response)
        return self._compress(result, compressor)

    @staticmethod
    def _compress(result: Iterable[bytes], compressor: Any) -> Iterator[bytes]:
        try:
            for chunk in result:
                out = compressor.compress(chunk)
                if out:
                    yield out
            yield compressor.flush()
        finally:
            close = getattr(result, "close", None)
            if close is not None:
                close()


def make_http_gzip_handler(app: WSGIApp) -> GzipMiddleware:
    """Wrap ``app`` so its responses are gzipped when the client accepts it."""
    return GzipMiddleware(app)