"""A token-bucket rate limiter and byte streams throttled by it."""

from __future__ import annotations

import math
import threading
import time
from collections.abc import Callable
from typing import BinaryIO, Protocol


class RateLimiter:
    """Token bucket: ``rate`` tokens per second, holding at most ``burst``.

    The bucket starts full. A rate of ``math.inf`` never waits.
    """

    def __init__(
        self,
        rate: float,
        burst: int,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.rate = rate
        self._burst = burst
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(burst)
        self._last = clock()
        self._lock = threading.Lock()

    def burst(self) -> int:
        """Return the largest number of tokens that can be taken at once."""
        return self._burst

    def _reserve(self, n: int) -> float:
        with self._lock:
            if math.isinf(self.rate) and self.rate > 0:
                return 0.0
            if self.rate <= 0:
                if self._burst >= n:
                    self._burst -= n
                    return 0.0
                raise ValueError(f"rate: Wait(n={n}) would exceed context deadline")
            if n > self._burst:
                raise ValueError(f"rate: Wait(n={n}) exceeds limiter's burst {self._burst}")
            now = self._clock()
            elapsed = max(now - self._last, 0.0)
            self._tokens = min(float(self._burst), self._tokens + elapsed * self.rate)
            self._last = now
            self._tokens -= n
            if self._tokens >= 0:
                return 0.0
            return -self._tokens / self.rate

    def wait_n(self, n: int) -> None:
        """Block until ``n`` tokens are available and take them.

        Raises ValueError when ``n`` can never be satisfied.
        """
        delay = self._reserve(n)
        if delay > 0:
            self._sleep(delay)


class _Readable(Protocol):
    def read(self, size: int = -1) -> bytes: ...


class _Writable(Protocol):
    def write(self, data: bytes) -> int | None: ...


class LimitedReader:
    """Reads from a stream no faster than the limiter allows."""

    def __init__(self, reader: _Readable | BinaryIO, limiter: RateLimiter) -> None:
        self._reader = reader
        self._limiter = limiter

    def read(self, size: int = -1) -> bytes:
        """Read at most ``size`` bytes, and never more than the burst."""
        burst = self._limiter.burst()
        if size < 0 or size > burst:
            size = burst
        data = self._reader.read(size)
        if data:
            self._limiter.wait_n(len(data))
        return data


class LimitedWriter:
    """Writes to a stream in burst-sized chunks at the limiter's pace."""

    def __init__(self, writer: _Writable | BinaryIO, limiter: RateLimiter) -> None:
        self._writer = writer
        self._limiter = limiter

    def write(self, data: bytes) -> int:
        """Write all of ``data`` and return the number of bytes written."""
        view = memoryview(data)
        burst = self._limiter.burst()
        if view and burst <= 0:
            raise ValueError("rate limiter burst must be positive to write data")
        written = 0
        while view:
            chunk = view[:burst]
            self._limiter.wait_n(len(chunk))
            result = self._writer.write(bytes(chunk))
            written += len(chunk) if result is None else result
            view = view[len(chunk):]
        return written