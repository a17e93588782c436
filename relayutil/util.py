"""Small helpers: random ids, auth keys, address and range parsing."""

from __future__ import annotations

import hashlib
import hmac
import random
import re
import secrets
import time
from typing import TypeVar

T = TypeVar("T")

_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1
_INT_RE = re.compile(r"[+-]?[0-9]+")


def rand_id() -> str:
    """Return a random 16 character hex identifier."""
    return rand_id_with_len(16)


def rand_id_with_len(id_len: int) -> str:
    """Return a random hex identifier of ``id_len`` characters."""
    if id_len <= 0:
        return ""
    return secrets.token_hex(id_len // 2 + 1)[:id_len]


def get_auth_key(token: str, timestamp: int) -> str:
    """Return the hex MD5 digest of the token followed by the timestamp."""
    digest = hashlib.md5()
    digest.update(token.encode("utf-8"))
    digest.update(str(timestamp).encode("ascii"))
    return digest.hexdigest()


def _join_host_port(host: str, port: int | str) -> str:
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def canonical_addr(host: str, port: int) -> str:
    """Return ``host`` alone for ports 80 and 443, otherwise ``host:port``."""
    if port in (80, 443):
        return host
    return _join_host_port(host, port)


def _parse_int64(text: str) -> int:
    text = text.strip()
    if not _INT_RE.fullmatch(text):
        raise ValueError(f"range number is invalid, invalid syntax: {text!r}")
    value = int(text)
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise ValueError(f"range number is invalid, value out of range: {text!r}")
    return value


def parse_range_numbers(range_str: str) -> list[int]:
    """Parse a list such as ``1000-2000,2001,3000-4000`` into numbers.

    Raises ValueError when an item is malformed or a range is reversed.
    """
    numbers: list[int] = []
    for item in range_str.strip().split(","):
        bounds = item.split("-")
        if len(bounds) == 1:
            numbers.append(_parse_int64(bounds[0]))
        elif len(bounds) == 2:
            low = _parse_int64(bounds[0])
            high = _parse_int64(bounds[1])
            if high < low:
                raise ValueError("range number is invalid")
            numbers.extend(range(low, high + 1))
        else:
            raise ValueError("range number is invalid")
    return numbers


def generate_response_error_string(summary: str, err: BaseException, detailed: bool) -> str:
    """Return the error text when ``detailed`` is set, else the summary."""
    if detailed:
        return str(err)
    return summary


def random_sleep(duration: float, min_ratio: float, max_ratio: float) -> float:
    """Sleep a random fraction of ``duration`` seconds between the ratios.

    Returns the time slept.
    """
    low = int(min_ratio * 1000.0)
    high = int(max_ratio * 1000.0)
    factor = low if high <= low else random.randrange(high - low) + low
    delay = duration * factor / 1000
    time.sleep(delay)
    return delay


def constant_time_eq_string(a: str, b: str) -> bool:
    """Compare two strings in constant time."""
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def empty_or(value: T, fallback: T) -> T:
    """Return ``fallback`` when ``value`` is its type's empty value."""
    if not value:
        return fallback
    return value