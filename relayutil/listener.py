"""A listener that hands over connections put into it by other threads."""

from __future__ import annotations

import threading
from collections import deque
from typing import Any

_ACCEPT_BACKLOG = 128


class ListenerClosedError(OSError):
    """Raised when a closed listener is used."""


class InternalListener:
    """Accepts connections that other threads put into it.

    When the backlog is full, further connections are closed and dropped.
    Connections queued before closing can still be accepted.
    """

    def __init__(self, backlog: int = _ACCEPT_BACKLOG) -> None:
        self._backlog = backlog
        self._pending: deque[Any] = deque()
        self._closed = False
        self._cond = threading.Condition()

    def accept(self, timeout: float | None = None) -> Any:
        """Return the next connection.

        Raises ListenerClosedError once closed and drained, TimeoutError when
        ``timeout`` seconds pass without a connection.
        """
        with self._cond:
            ready = self._cond.wait_for(lambda: self._pending or self._closed, timeout)
            if not ready:
                raise TimeoutError("accept timed out")
            if self._pending:
                return self._pending.popleft()
            raise ListenerClosedError("listener closed")

    def put_conn(self, conn: Any) -> None:
        """Queue ``conn`` for accepting; raise ListenerClosedError if closed."""
        with self._cond:
            if self._closed:
                raise ListenerClosedError("put conn error: listener is closed")
            full = len(self._pending) >= self._backlog
            if not full:
                self._pending.append(conn)
                self._cond.notify()
        if full:
            conn.close()

    def close(self) -> None:
        """Stop accepting new connections; safe to call more than once."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def addr(self) -> str:
        """Return the listener's address."""
        return "internal"

    def __enter__(self) -> InternalListener:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()