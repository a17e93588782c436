"""Process-wide logging with a trace level, console or daily-rotated file output."""

from __future__ import annotations

import logging
import sys
from enum import IntEnum
from logging.handlers import TimedRotatingFileHandler

LOGGER_NAME = "relayutil"


class Level(IntEnum):
    """Log levels, from most to least verbose."""

    TRACE = 5
    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARN = logging.WARNING
    ERROR = logging.ERROR


logging.addLevelName(Level.TRACE, "TRACE")

_LEVEL_NAMES = {
    "trace": Level.TRACE,
    "debug": Level.DEBUG,
    "info": Level.INFO,
    "warn": Level.WARN,
    "error": Level.ERROR,
}

_SHORT = {
    Level.TRACE: "T",
    Level.DEBUG: "D",
    Level.INFO: "I",
    Level.WARN: "W",
    Level.ERROR: "E",
}

_COLOURS = {
    Level.TRACE: "\033[37m",
    Level.DEBUG: "\033[34m",
    Level.INFO: "\033[32m",
    Level.WARN: "\033[33m",
    Level.ERROR: "\033[31m",
}

logger = logging.getLogger(LOGGER_NAME)
logger.setLevel(Level.INFO)


class _Formatter(logging.Formatter):
    def __init__(self, colorful: bool) -> None:
        super().__init__(
            "%(asctime)s.%(msecs)03d [%(levelshort)s] [%(filename)s:%(lineno)d] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        self._colorful = colorful

    def format(self, record: logging.LogRecord) -> str:
        record.levelshort = _SHORT.get(record.levelno, record.levelname[:1])
        text = super().format(record)
        if self._colorful and record.levelno in _COLOURS:
            return f"{_COLOURS[Level(record.levelno)]}{text}\033[0m"
        return text


def parse_level(level_str: str) -> Level:
    """Return the level named by ``level_str``; raise ValueError if unknown."""
    try:
        return _LEVEL_NAMES[level_str.strip().lower()]
    except KeyError:
        raise ValueError(f"unknown log level: {level_str!r}") from None


def init_logger(log_path: str, level_str: str, max_days: int, disable_log_color: bool) -> None:
    """Configure output and level of the shared logger.

    ``log_path`` of ``console`` writes to standard output; any other value is
    a file rotated daily keeping ``max_days`` old files. An unknown level
    falls back to info.
    """
    if log_path == "console":
        handler: logging.Handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(_Formatter(colorful=not disable_log_color))
    else:
        handler = TimedRotatingFileHandler(
            log_path, when="midnight", backupCount=max(max_days, 0), encoding="utf-8"
        )
        handler.setFormatter(_Formatter(colorful=False))

    try:
        level = parse_level(level_str)
    except ValueError:
        level = Level.INFO

    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False


def error(msg: str, *args: object) -> None:
    """Log at error level."""
    logger.log(Level.ERROR, msg, *args, stacklevel=2)


def warn(msg: str, *args: object) -> None:
    """Log at warning level."""
    logger.log(Level.WARN, msg, *args, stacklevel=2)


def info(msg: str, *args: object) -> None:
    """Log at info level."""
    logger.log(Level.INFO, msg, *args, stacklevel=2)


def debug(msg: str, *args: object) -> None:
    """Log at debug level."""
    logger.log(Level.DEBUG, msg, *args, stacklevel=2)


def trace(msg: str, *args: object) -> None:
    """Log at trace level."""
    logger.log(Level.TRACE, msg, *args, stacklevel=2)


def log(level: Level, msg: str, *args: object) -> None:
    """Log at the given level."""
    logger.log(level, msg, *args, stacklevel=2)


class WriteLogger:
    """A file-like sink that logs each written chunk at a fixed level."""

    def __init__(self, level: Level, offset: int = 0) -> None:
        self.level = level
        self.offset = offset

    def write(self, data: bytes | str) -> int:
        """Log ``data`` without trailing newlines and report it all written."""
        text = data.decode("utf-8", errors="replace") if isinstance(data, bytes) else data
        logger.log(self.level, "%s", text.rstrip("\n"), stacklevel=2 + self.offset)
        return len(data)

    def flush(self) -> None:
        """Nothing is buffered."""