"""Connection wrappers: replayable reads, contexts, close notification and byte counts."""

from __future__ import annotations

import io
import threading
from collections.abc import Callable, Mapping
from typing import Any

from . import xlog


class _ConnWrapper:
    """Forwards every attribute it does not define to the wrapped connection."""

    def __init__(self, conn: Any) -> None:
        self._conn = conn

    def __getattr__(self, name: str) -> Any:
        if name == "_conn":
            raise AttributeError(name)
        return getattr(self._conn, name)


class _RecordingReader(io.RawIOBase):
    """Reads from the shared connection and remembers what it read."""

    def __init__(self, owner: SharedConn) -> None:
        super().__init__()
        self._owner = owner

    def readable(self) -> bool:
        return True

    def readinto(self, buffer: Any) -> int:
        data = self._owner._conn.recv(len(buffer))
        self._owner._record(data)
        size = len(data)
        buffer[:size] = data
        return size


class SharedConn(_ConnWrapper):
    """A connection whose bytes read through ``reader()`` are replayed by ``recv``.

    Lets a caller inspect the start of a stream and then hand the connection
    on as if nothing had been read.
    """

    def __init__(self, conn: Any) -> None:
        super().__init__(conn)
        self._buffer = bytearray()
        self._lock = threading.Lock()

    def _record(self, data: bytes) -> None:
        with self._lock:
            self._buffer += data

    def reader(self) -> io.RawIOBase:
        """Return a raw stream that reads the connection and records the bytes."""
        return _RecordingReader(self)

    def recv(self, bufsize: int) -> bytes:
        """Return recorded bytes first, then read from the connection."""
        with self._lock:
            if self._buffer:
                data = bytes(self._buffer[:bufsize])
                del self._buffer[:bufsize]
                return data
        return self._conn.recv(bufsize)

    def sendall(self, data: bytes) -> None:
        self._conn.sendall(data)

    def settimeout(self, timeout: float | None) -> None:
        self._conn.settimeout(timeout)

    def close(self) -> None:
        self._conn.close()


class ContextConn(_ConnWrapper):
    """A connection that carries a context mapping."""

    def __init__(self, conn: Any, ctx: Mapping[Any, Any] | None = None) -> None:
        super().__init__(conn)
        self.context: Mapping[Any, Any] = ctx if ctx is not None else {}

    def with_context(self, ctx: Mapping[Any, Any]) -> None:
        """Replace the carried context."""
        self.context = ctx


def _context_of(conn: Any) -> Mapping[Any, Any] | None:
    ctx = getattr(conn, "context", None)
    return ctx if isinstance(ctx, Mapping) else None


def new_log_from_conn(conn: Any) -> xlog.Logger:
    """Return the logger in the connection's context, or a fresh one."""
    ctx = _context_of(conn)
    if ctx is not None:
        return xlog.from_context_safe(ctx)
    return xlog.Logger()


def new_context_from_conn(conn: Any) -> Mapping[Any, Any]:
    """Return the connection's context, or an empty one."""
    ctx = _context_of(conn)
    return ctx if ctx is not None else {}


class WrapReadWriteCloserConn(_ConnWrapper):
    """Presents a readable, writable, closable stream as a connection.

    Addresses and timeouts come from ``under_conn`` when one is given.
    """

    def __init__(self, rwc: Any, under_conn: Any = None) -> None:
        super().__init__(rwc)
        self._under_conn = under_conn
        self._remote_addr: Any = None

    def local_addr(self) -> Any:
        """Return the underlying local address, or None."""
        if self._under_conn is not None:
            return self._under_conn.getsockname()
        return None

    def set_remote_addr(self, addr: Any) -> None:
        """Override the reported remote address."""
        self._remote_addr = addr

    def remote_addr(self) -> Any:
        """Return the overriding or underlying remote address, or None."""
        if self._remote_addr is not None:
            return self._remote_addr
        if self._under_conn is not None:
            return self._under_conn.getpeername()
        return None

    def settimeout(self, timeout: float | None) -> None:
        """Set the underlying timeout; raise OSError when there is none."""
        if self._under_conn is None:
            raise OSError("set wrap: deadline not supported")
        self._under_conn.settimeout(timeout)


class CloseNotifyConn(_ConnWrapper):
    """Calls ``close_fn`` once, the first time the connection is closed."""

    def __init__(self, conn: Any, close_fn: Callable[[], object] | None = None) -> None:
        super().__init__(conn)
        self._close_fn = close_fn
        self._closed = False
        self._lock = threading.Lock()

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        try:
            self._conn.close()
        finally:
            if self._close_fn is not None:
                self._close_fn()


class StatsConn(_ConnWrapper):
    """Counts bytes read and written; reports the totals once on close."""

    def __init__(
        self, conn: Any, stats_func: Callable[[int, int], object] | None = None
    ) -> None:
        super().__init__(conn)
        self._stats_func = stats_func
        self.total_read = 0
        self.total_write = 0
        self._closed = False
        self._lock = threading.Lock()

    def recv(self, bufsize: int) -> bytes:
        data = self._conn.recv(bufsize)
        self.total_read += len(data)
        return data

    def sendall(self, data: bytes) -> None:
        self._conn.sendall(data)
        self.total_write += len(data)

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        try:
            self._conn.close()
        finally:
            if self._stats_func is not None:
                self._stats_func(self.total_read, self.total_write)