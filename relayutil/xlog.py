"""Loggers carrying ordered prefixes, and their storage in a context mapping."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from . import log as _log

_DEFAULT_PRIORITY = 10


@dataclass
class LogPrefix:
    """A named prefix; lower priority values are shown first."""

    name: str
    value: str
    priority: int = _DEFAULT_PRIORITY


class Logger:
    """Writes to the shared logger with its prefixes in front of each message.

    Prefix operations are not thread safe.
    """

    def __init__(self) -> None:
        self._prefixes: list[LogPrefix] = []
        self._prefix_string = ""

    def reset_prefixes(self) -> list[LogPrefix]:
        """Remove all prefixes and return the previous ones."""
        old = self._prefixes
        self._prefixes = []
        self._prefix_string = ""
        return old

    def append_prefix(self, prefix: str) -> Logger:
        """Add a prefix whose name and value are both ``prefix``."""
        return self.add_prefix(LogPrefix(name=prefix, value=prefix, priority=_DEFAULT_PRIORITY))

    def add_prefix(self, prefix: LogPrefix) -> Logger:
        """Add ``prefix`` unless one of that name is already present."""
        if prefix.priority <= 0:
            prefix = LogPrefix(prefix.name, prefix.value, _DEFAULT_PRIORITY)
        if all(p.name != prefix.name for p in self._prefixes):
            self._prefixes.append(prefix)
        self._render()
        return self

    def _render(self) -> None:
        self._prefixes.sort(key=lambda p: p.priority)
        self._prefix_string = "".join(f"[{p.value}] " for p in self._prefixes)

    def prefix_string(self) -> str:
        """Return the rendered prefixes as placed before each message."""
        return self._prefix_string

    def spawn(self) -> Logger:
        """Return an independent logger with a copy of these prefixes."""
        child = Logger()
        child._prefixes = [LogPrefix(p.name, p.value, p.priority) for p in self._prefixes]
        child._render()
        return child

    def error(self, msg: str, *args: object) -> None:
        _log.log(_log.Level.ERROR, self._prefix_string + msg, *args)

    def warn(self, msg: str, *args: object) -> None:
        _log.log(_log.Level.WARN, self._prefix_string + msg, *args)

    def info(self, msg: str, *args: object) -> None:
        _log.log(_log.Level.INFO, self._prefix_string + msg, *args)

    def debug(self, msg: str, *args: object) -> None:
        _log.log(_log.Level.DEBUG, self._prefix_string + msg, *args)

    def trace(self, msg: str, *args: object) -> None:
        _log.log(_log.Level.TRACE, self._prefix_string + msg, *args)


_LOGGER_KEY = object()


def new_context(ctx: Mapping[Any, Any] | None, logger: Logger) -> dict[Any, Any]:
    """Return a copy of ``ctx`` that carries ``logger``."""
    new = dict(ctx or {})
    new[_LOGGER_KEY] = logger
    return new


def from_context(ctx: Mapping[Any, Any] | None) -> Logger | None:
    """Return the logger carried by ``ctx``, or None."""
    if not ctx:
        return None
    found = ctx.get(_LOGGER_KEY)
    return found if isinstance(found, Logger) else None


def from_context_safe(ctx: Mapping[Any, Any] | None) -> Logger:
    """Return the logger carried by ``ctx``, or a fresh one."""
    found = from_context(ctx)
    return found if found is not None else Logger()