import socket
import types

import pytest

from relayutil import xlog
from relayutil.conn import ContextConn
from relayutil.listener import InternalListener, ListenerClosedError
from relayutil.router import RouterConfigConflictError
from relayutil.vhost import Muxer, RouteConfig


@pytest.fixture
def pair():
    a, b = socket.socketpair()
    yield a, b
    a.close()
    b.close()


def _info_func(info):
    def vhost_func(conn):
        return conn, dict(info)

    return vhost_func


def _failing_func(conn):
    raise ValueError("bad request")


def test_get_listener_exact_match():
    mux = Muxer(None, _info_func({}), 1.0)
    listener = mux.listen({}, RouteConfig(domain="example.com", location="/"))
    assert mux.get_listener("example.com", "/anything", "") is listener
    assert mux.get_listener("other.example.org", "/", "") is None


def test_get_listener_wildcard_domain():
    mux = Muxer(None, _info_func({}), 1.0)
    listener = mux.listen({}, RouteConfig(domain="*.example.com", location="/"))
    assert mux.get_listener("a.example.com", "/", "") is listener
    assert mux.get_listener("a.b.example.com", "/", "") is listener
    assert mux.get_listener("example.com", "/", "") is None


def test_get_listener_catch_all():
    mux = Muxer(None, _info_func({}), 1.0)
    listener = mux.listen({}, RouteConfig(domain="*", location="/"))
    assert mux.get_listener("anything.example.org", "/x", "") is listener


def test_get_listener_http_user():
    mux = Muxer(None, _info_func({}), 1.0)
    bob = mux.listen({}, RouteConfig(domain="example.com", location="/", route_by_http_user="bob"))
    assert mux.get_listener("example.com", "/", "bob") is bob
    assert mux.get_listener("example.com", "/", "alice") is None
    everyone = mux.listen({}, RouteConfig(domain="example.com", location="/"))
    assert mux.get_listener("example.com", "/", "alice") is everyone
    assert mux.get_listener("example.com", "/", "bob") is bob


def test_listen_conflict():
    mux = Muxer(None, _info_func({}), 1.0)
    mux.listen({}, RouteConfig(domain="example.com", location="/"))
    with pytest.raises(RouterConfigConflictError):
        mux.listen({}, RouteConfig(domain="example.com", location="/"))


def test_handle_delivers_connection(pair):
    a, b = pair
    logger = xlog.Logger()
    ctx = xlog.new_context({}, logger)
    mux = Muxer(None, _info_func({"Host": "Example.COM", "Path": "/"}), 5.0)
    listener = mux.listen(ctx, RouteConfig(domain="example.com", location="/"))
    mux.handle(b)
    accepted = listener.accept(timeout=1)
    assert isinstance(accepted, ContextConn)
    assert xlog.from_context(accepted.context) is logger
    assert accepted.gettimeout() is None
    a.sendall(b"ping")
    assert accepted.recv(4) == b"ping"


def test_handle_lowercases_path(pair):
    a, b = pair
    mux = Muxer(None, _info_func({"Host": "example.com", "Path": "/API/v1"}), 5.0)
    api = mux.listen({}, RouteConfig(domain="example.com", location="/api"))
    mux.handle(b)
    assert api.accept(timeout=1).fileno() == b.fileno()


def test_handle_no_route_calls_fail_hook(pair):
    a, b = pair
    seen = []
    mux = Muxer(None, _info_func({"Host": "missing.example.com"}), 5.0, fail_hook=seen.append)
    mux.handle(b)
    assert seen == [b]


def test_handle_no_route_without_hook_closes(pair):
    a, b = pair
    mux = Muxer(None, _info_func({"Host": "missing.example.com"}), 5.0)
    mux.handle(b)
    assert b.fileno() == -1


def test_handle_vhost_func_error_closes(pair):
    a, b = pair
    mux = Muxer(None, _failing_func, 5.0)
    mux.handle(b)
    assert b.fileno() == -1


def test_success_hook_failure_closes(pair):
    a, b = pair
    calls = []

    def hook(conn, info):
        calls.append(info["Host"])
        raise OSError("cannot answer")

    mux = Muxer(None, _info_func({"Host": "example.com"}), 5.0, success_hook=hook)
    listener = mux.listen({}, RouteConfig(domain="example.com"))
    mux.handle(b)
    assert calls == ["example.com"]
    assert b.fileno() == -1
    with pytest.raises(TimeoutError):
        listener.accept(timeout=0.1)


def test_check_auth_rejects(pair):
    a, b = pair
    password = "password"
    calls = []

    def check(conn, username, passwd, info):
        calls.append((conn, username, passwd))
        return False

    mux = Muxer(None, _info_func({"Host": "example.com"}), 5.0, check_auth=check)
    listener = mux.listen({}, RouteConfig(domain="example.com", username="user", password=password))
    mux.handle(b)
    assert calls == [(b, "user", password)]
    assert b.fileno() == -1
    with pytest.raises(TimeoutError):
        listener.accept(timeout=0.1)


def test_check_auth_skipped_without_username(pair):
    a, b = pair
    calls = []

    def check(conn, username, passwd, info):
        calls.append(username)
        return False

    mux = Muxer(None, _info_func({"Host": "example.com"}), 5.0, check_auth=check)
    listener = mux.listen({}, RouteConfig(domain="example.com"))
    mux.handle(b)
    assert calls == []
    assert listener.accept(timeout=1).fileno() == b.fileno()


def test_listener_close_unregisters():
    mux = Muxer(None, _info_func({}), 1.0)
    listener = mux.listen({}, RouteConfig(domain="example.com", location="/"))
    assert listener.name() == "example.com"
    listener.close()
    assert mux.get_listener("example.com", "/", "") is None
    with pytest.raises(ListenerClosedError):
        listener.accept(timeout=1)


def test_rewrite_host_applied(pair):
    a, b = pair

    def rewrite(conn, host):
        return types.SimpleNamespace(inner=conn, host=host)

    mux = Muxer(None, _info_func({"Host": "example.com"}), 5.0, rewrite_host=rewrite)
    listener = mux.listen({}, RouteConfig(domain="example.com", rewrite_host="backend.local"))
    mux.handle(b)
    accepted = listener.accept(timeout=1)
    assert accepted.host == "backend.local"
    assert accepted.inner is b


def test_rewrite_host_failure(pair):
    a, b = pair

    def rewrite(conn, host):
        raise ValueError("cannot rewrite")

    mux = Muxer(None, _info_func({"Host": "example.com"}), 5.0, rewrite_host=rewrite)
    listener = mux.listen({}, RouteConfig(domain="example.com", rewrite_host="backend.local"))
    mux.handle(b)
    with pytest.raises(ConnectionError):
        listener.accept(timeout=1)


def test_run_loop_accepts_from_listener(pair):
    a, b = pair
    source = InternalListener()
    mux = Muxer(source, _info_func({"Host": "example.com"}), 5.0)
    listener = mux.listen({}, RouteConfig(domain="example.com"))
    source.put_conn(b)
    try:
        assert listener.accept(timeout=2).fileno() == b.fileno()
    finally:
        mux.close()
    with pytest.raises(ListenerClosedError):
        source.put_conn(a)