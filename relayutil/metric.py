"""Thread-safe counters, including one that keeps a count per day."""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import date
from typing import Protocol, runtime_checkable


@runtime_checkable
class GaugeMetric(Protocol):
    """A single numerical value that can go up and down."""

    def inc(self) -> None: ...

    def dec(self) -> None: ...

    def set(self, value: float) -> None: ...


@runtime_checkable
class CounterMetric(Protocol):
    """A single numerical value that only ever goes up."""

    def inc(self) -> None: ...


@runtime_checkable
class HistogramMetric(Protocol):
    """Counts individual observations."""

    def observe(self, value: float) -> None: ...


class Counter:
    """A counter that can be raised, lowered, copied and cleared."""

    def __init__(self, count: int = 0) -> None:
        self._count = count
        self._lock = threading.Lock()

    def count(self) -> int:
        """Return the current value."""
        with self._lock:
            return self._count

    def inc(self, count: int) -> None:
        """Add ``count``."""
        with self._lock:
            self._count += count

    def dec(self, count: int) -> None:
        """Subtract ``count``."""
        with self._lock:
            self._count -= count

    def snapshot(self) -> Counter:
        """Return an independent copy holding the current value."""
        return Counter(self.count())

    def clear(self) -> None:
        """Reset the value to zero."""
        with self._lock:
            self._count = 0


class DateCounter:
    """Keeps one count per day for the last ``reserve_days`` days.

    Index 0 is today, index 1 yesterday and so on.
    """

    def __init__(self, reserve_days: int, today: Callable[[], date] = date.today) -> None:
        if reserve_days <= 0:
            reserve_days = 1
        self._reserve_days = reserve_days
        self._today = today
        self._counts = [0] * reserve_days
        self._last_update = today()
        self._lock = threading.Lock()

    @property
    def reserve_days(self) -> int:
        return self._reserve_days

    def _rotate(self) -> None:
        now = self._today()
        days = (now - self._last_update).days
        self._last_update = now
        if days <= 0:
            return
        if days >= self._reserve_days:
            self._counts = [0] * self._reserve_days
            return
        self._counts = [0] * days + self._counts[: self._reserve_days - days]

    def today_count(self) -> int:
        """Return today's count."""
        with self._lock:
            self._rotate()
            return self._counts[0]

    def get_last_days_count(self, last_days: int) -> list[int]:
        """Return the counts of the last ``last_days`` days, today first."""
        if last_days < 0:
            raise ValueError(f"negative number of days: {last_days}")
        last_days = min(last_days, self._reserve_days)
        with self._lock:
            self._rotate()
            return self._counts[:last_days]

    def inc(self, count: int) -> None:
        """Add ``count`` to today."""
        with self._lock:
            self._rotate()
            self._counts[0] += count

    def dec(self, count: int) -> None:
        """Subtract ``count`` from today."""
        with self._lock:
            self._rotate()
            self._counts[0] -= count

    def snapshot(self) -> DateCounter:
        """Return an independent copy of the stored counts."""
        with self._lock:
            copy = DateCounter(self._reserve_days, self._today)
            copy._counts = list(self._counts)
            return copy

    def clear(self) -> None:
        """Reset every day's count to zero."""
        with self._lock:
            self._counts = [0] * self._reserve_days