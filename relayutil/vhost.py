"""Route incoming connections to listeners by the host named at their start."""

from __future__ import annotations

import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from . import log, xlog
from .conn import ContextConn
from .listener import InternalListener, ListenerClosedError
from .router import Routers, iter_wildcard_domains

VhostFunc = Callable[[Any], "tuple[Any, dict[str, str]]"]
AuthFunc = Callable[[Any, str, str, "dict[str, str]"], bool]
SuccessHookFunc = Callable[[Any, "dict[str, str]"], object]
FailHookFunc = Callable[[Any], object]
HostRewriteFunc = Callable[[Any, str], Any]


@dataclass
class RequestRouteInfo:
    """What a request says about where it should be routed."""

    url: str = ""
    host: str = ""
    http_user: str = ""
    remote_addr: str = ""
    url_host: str = ""
    endpoint: str = ""


@dataclass
class RouteConfig:
    """The parameters used to match requests to a route."""

    domain: str = ""
    location: str = ""
    rewrite_host: str = ""
    username: str = ""
    password: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    response_headers: dict[str, str] = field(default_factory=dict)
    route_by_http_user: str = ""
    create_conn_fn: Callable[[str], Any] | None = None
    choose_endpoint_fn: Callable[[], str] | None = None
    create_conn_by_endpoint_fn: Callable[[str, str], Any] | None = None


def _close_quietly(conn: Any) -> None:
    try:
        conn.close()
    except OSError:
        pass


class VhostListener:
    """Receives the connections a Muxer routes to one domain and location."""

    def __init__(self, mux: Muxer, cfg: RouteConfig, ctx: Mapping[Any, Any] | None) -> None:
        self._name = cfg.domain
        self.location = cfg.location
        self.route_by_http_user = cfg.route_by_http_user
        self.rewrite_host = cfg.rewrite_host
        self.username = cfg.username
        self.password = cfg.password
        self.mux = mux
        self.context: Mapping[Any, Any] = ctx if ctx is not None else {}
        self._queue = InternalListener()

    def _put(self, conn: Any) -> None:
        self._queue.put_conn(conn)

    def accept(self, timeout: float | None = None) -> ContextConn:
        """Return the next routed connection, wrapped with this listener's context.

        Raises ListenerClosedError once closed, TimeoutError when ``timeout``
        seconds pass, and ConnectionError when host rewriting fails.
        """
        xl = xlog.from_context_safe(self.context)
        try:
            conn = self._queue.accept(timeout)
        except ListenerClosedError:
            raise ListenerClosedError("Listener closed") from None

        rewrite = self.mux.rewrite_host
        if rewrite is not None:
            try:
                conn = rewrite(conn, self.rewrite_host)
            except Exception as exc:
                xl.warn("host header rewrite failed: %s", exc)
                raise ConnectionError("host header rewrite failed") from exc
            xl.debug("rewrite host to [%s] success", self.rewrite_host)
        return ContextConn(conn, self.context)

    def close(self) -> None:
        """Unregister the route and stop accepting connections."""
        self.mux.registry.delete(self._name, self.location, self.route_by_http_user)
        self._queue.close()

    def name(self) -> str:
        """Return the domain this listener serves."""
        return self._name

    def addr(self) -> None:
        """Virtual listeners have no address."""
        return None

    def __enter__(self) -> VhostListener:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


class Muxer:
    """Reads routing information from the start of each connection and
    hands the connection to the matching VhostListener.

    When ``listener`` is given, its connections are accepted on a background
    thread. ``timeout`` bounds, in seconds, the time allowed to read the
    routing information.
    """

    def __init__(
        self,
        listener: Any,
        vhost_func: VhostFunc,
        timeout: float | None,
        *,
        check_auth: AuthFunc | None = None,
        success_hook: SuccessHookFunc | None = None,
        fail_hook: FailHookFunc | None = None,
        rewrite_host: HostRewriteFunc | None = None,
    ) -> None:
        self.timeout = timeout
        self.vhost_func = vhost_func
        self.check_auth = check_auth
        self.success_hook = success_hook
        self.fail_hook = fail_hook
        self.rewrite_host = rewrite_host
        self.registry = Routers()
        self._listener = listener
        self._closed = threading.Event()
        if listener is not None:
            threading.Thread(target=self._run, daemon=True).start()

    def listen(self, ctx: Mapping[Any, Any] | None, cfg: RouteConfig) -> VhostListener:
        """Register a route and return the listener receiving its connections.

        Raises RouterConfigConflictError when the route already exists.
        """
        listener = VhostListener(self, cfg, ctx)
        self.registry.add(cfg.domain, cfg.location, cfg.route_by_http_user, listener)
        return listener

    def get_listener(self, name: str, path: str, http_user: str) -> VhostListener | None:
        """Find the listener for a host, path and HTTP user.

        The exact host is tried first, then wildcard domains, then ``*``;
        for each, the given user before routes open to every user.
        """
        for domain in iter_wildcard_domains(name):
            for user in (http_user, ""):
                router = self.registry.get(domain, path, user)
                if router is not None:
                    return router.payload
        return None

    def _run(self) -> None:
        while not self._closed.is_set():
            try:
                accepted = self._listener.accept()
            except (OSError, ValueError):
                return
            conn = accepted[0] if isinstance(accepted, tuple) else accepted
            threading.Thread(target=self.handle, args=(conn,), daemon=True).start()

    def handle(self, conn: Any) -> None:
        """Route one connection, closing it when it cannot be delivered."""
        try:
            conn.settimeout(self.timeout)
        except (OSError, AttributeError):
            _close_quietly(conn)
            return

        try:
            shared, req_info = self.vhost_func(conn)
        except Exception as exc:
            log.debug("get hostname from http/https request error: %s", exc)
            _close_quietly(conn)
            return

        name = req_info.get("Host", "").lower()
        path = req_info.get("Path", "").lower()
        http_user = req_info.get("HTTPUser", "")
        listener = self.get_listener(name, path, http_user)
        if listener is None:
            log.debug(
                "http request for host [%s] path [%s] httpUser [%s] not found",
                name,
                path,
                http_user,
            )
            if self.fail_hook is not None:
                self.fail_hook(shared)
            else:
                _close_quietly(shared)
            return

        xl = xlog.from_context_safe(listener.context)
        if self.success_hook is not None:
            try:
                self.success_hook(conn, req_info)
            except Exception as exc:
                xl.info("success func failure on vhost connection: %s", exc)
                _close_quietly(conn)
                return

        if self.check_auth is not None and listener.username:
            try:
                ok = self.check_auth(conn, listener.username, listener.password, req_info)
            except Exception:
                ok = False
            if not ok:
                xl.debug("auth failed for user: %s", listener.username)
                _close_quietly(conn)
                return

        try:
            shared.settimeout(None)
        except OSError:
            _close_quietly(conn)
            return

        xl.debug("new request host [%s] path [%s] httpUser [%s]", name, path, http_user)
        try:
            listener._put(shared)
        except ListenerClosedError:
            xl.warn("listener is already closed, ignore this request")

    def close(self) -> None:
        """Stop accepting connections from the underlying listener."""
        self._closed.set()
        if self._listener is not None:
            close = getattr(self._listener, "close", None)
            if close is not None:
                close()