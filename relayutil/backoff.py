"""Retry delays with jitter, a fast-retry window, and loops that use them."""

from __future__ import annotations

import random
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from .util import empty_or


@runtime_checkable
class BackoffManager(Protocol):
    """Chooses the next delay, in seconds, from the previous one."""

    def backoff(self, previous_duration: float, previous_condition_error: bool) -> float: ...


@dataclass
class FastBackoffOptions:
    """Settings for FastBackoffManager; all durations are in seconds.

    If ``fast_retry_count`` is positive, then within ``fast_retry_window`` the
    first ``fast_retry_count`` failures are retried after ``fast_retry_delay``.
    """

    duration: float = 0.0
    factor: float = 0.0
    jitter: float = 0.0
    max_duration: float = 0.0
    init_duration_if_fail: float = 0.0
    fast_retry_count: int = 0
    fast_retry_delay: float = 0.0
    fast_retry_jitter: float = 0.0
    fast_retry_window: float = 0.0


def jitter(duration: float, max_factor: float) -> float:
    """Return a delay between ``duration`` and ``duration * (1 + max_factor)``.

    A ``max_factor`` of zero or less means 1.0.
    """
    if max_factor <= 0.0:
        max_factor = 1.0
    return duration + random.random() * max_factor * duration


class FastBackoffManager:
    """Backoff that grows on consecutive failures, with optional fast retries."""

    def __init__(
        self, options: FastBackoffOptions, clock: Callable[[], float] = time.monotonic
    ) -> None:
        self.options = options
        self._clock = clock
        self._last_called: float | None = None
        self._consecutive_errors = 0
        self._fast_retry_cutoff = float("-inf")
        self._counts_in_fast_retry_window = 1

    def backoff(self, previous_duration: float, previous_condition_error: bool) -> float:
        """Return the delay before the next attempt."""
        opts = self.options
        now = self._clock()
        if self._last_called is None:
            self._last_called = now
            return opts.duration
        self._last_called = now

        if previous_condition_error:
            self._consecutive_errors += 1
        else:
            self._consecutive_errors = 0

        if opts.fast_retry_count > 0 and previous_condition_error:
            self._counts_in_fast_retry_window += 1
            if self._counts_in_fast_retry_window <= opts.fast_retry_count:
                return jitter(opts.fast_retry_delay, opts.fast_retry_jitter)
            if now > self._fast_retry_cutoff:
                self._fast_retry_cutoff = now + opts.fast_retry_window
                self._counts_in_fast_retry_window = 0

        if not previous_condition_error:
            return opts.duration

        if self._consecutive_errors == 1:
            duration = empty_or(opts.init_duration_if_fail, previous_duration)
        else:
            duration = previous_duration
        duration = empty_or(duration, 1.0)
        if opts.factor != 0:
            duration *= opts.factor
        if opts.jitter > 0:
            duration = jitter(duration, opts.jitter)
        if opts.max_duration > 0 and duration > opts.max_duration:
            duration = opts.max_duration
        return duration


def backoff_until(
    f: Callable[[], bool],
    backoff: BackoffManager,
    sliding: bool,
    stop_event: threading.Event | None,
) -> None:
    """Call ``f`` repeatedly until it returns True or ``stop_event`` is set.

    An exception raised by ``f`` counts as a failed attempt. With ``sliding``
    the delay is chosen after each call, otherwise before it.
    """
    stop = stop_event if stop_event is not None else threading.Event()
    delay = 0.0
    previous_error = False
    backoff.backoff(delay, previous_error)

    while not stop.is_set():
        if not sliding:
            delay = backoff.backoff(delay, previous_error)

        try:
            done = f()
        except Exception:
            previous_error = True
        else:
            if done:
                return
            previous_error = False

        if sliding:
            delay = backoff.backoff(delay, previous_error)

        if stop.wait(max(delay, 0.0)):
            return


class _ConstantBackoff:
    def __init__(self, period: float) -> None:
        self._period = period

    def backoff(self, previous_duration: float, previous_condition_error: bool) -> float:
        return self._period


def until(f: Callable[[], object], period: float, stop_event: threading.Event | None) -> None:
    """Call ``f`` every ``period`` seconds until ``stop_event`` is set."""

    def attempt() -> bool:
        f()
        return False

    backoff_until(attempt, _ConstantBackoff(period), True, stop_event)