"""Routing of (domain, location, HTTP user) to registered payloads."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any


class RouterConfigConflictError(ValueError):
    """Raised when a route for the same domain, location and user exists."""

    def __init__(self, message: str = "router config conflict") -> None:
        super().__init__(message)


@dataclass
class Router:
    """One registered route and its payload."""

    domain: str
    location: str
    http_user: str
    payload: Any = None


class Routers:
    """Thread-safe table of routes matched by domain, user and path prefix.

    For a given domain and user, longer locations are tried before the
    locations they start with.
    """

    def __init__(self) -> None:
        self._index: dict[str, dict[str, list[Router]]] = {}
        self._lock = threading.RLock()

    def add(self, domain: str, location: str, http_user: str, payload: Any) -> None:
        """Register a route; raise RouterConfigConflictError if it exists."""
        domain = domain.lower()
        with self._lock:
            by_user = self._index.setdefault(domain, {})
            routers = by_user.setdefault(http_user, [])
            if any(r.location == location for r in routers):
                raise RouterConfigConflictError()
            routers.append(Router(domain, location, http_user, payload))
            routers.sort(key=lambda r: r.location, reverse=True)

    def delete(self, domain: str, location: str, http_user: str) -> None:
        """Remove the route with exactly this location, if any."""
        domain = domain.lower()
        with self._lock:
            routers = self._index.get(domain, {}).get(http_user)
            if routers is None:
                return
            routers[:] = [r for r in routers if r.location != location]

    def get(self, host: str, path: str, http_user: str) -> Router | None:
        """Return the first route whose location is a prefix of ``path``."""
        host = host.lower()
        with self._lock:
            routers = self._index.get(host, {}).get(http_user, [])
            return next((r for r in routers if path.startswith(r.location)), None)


def iter_wildcard_domains(domain: str) -> Iterator[str]:
    """Yield the domains to try for ``domain``, most specific first.

    The domain itself, then each wildcard form that keeps at least two
    labels after the ``*``, then ``*`` which matches every domain.
    """
    yield domain
    labels = domain.split(".")
    while len(labels) >= 3:
        yield ".".join(["*", *labels[1:]])
        labels = labels[1:]
    yield "*"