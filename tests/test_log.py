import logging
import sys

import pytest

from relayutil import log as rlog
from relayutil.log import Level, WriteLogger, init_logger, parse_level


class _ListHandler(logging.Handler):
    def __init__(self):
        super().__init__(level=1)
        self.records = []

    def emit(self, record):
        self.records.append(record)


@pytest.fixture
def restore_logger():
    logger = logging.getLogger(rlog.LOGGER_NAME)
    saved = (list(logger.handlers), logger.level, logger.propagate)
    yield logger
    for handler in list(logger.handlers):
        if handler not in saved[0]:
            logger.removeHandler(handler)
            handler.close()
    logger.handlers[:] = saved[0]
    logger.setLevel(saved[1])
    logger.propagate = saved[2]


@pytest.fixture
def captured(restore_logger):
    handler = _ListHandler()
    restore_logger.addHandler(handler)
    return handler.records


def _console_records(restore_logger, level_str):
    init_logger("console", level_str, 1, True)
    handler = _ListHandler()
    restore_logger.addHandler(handler)
    return handler.records


@pytest.mark.parametrize(
    "name, level",
    [("trace", Level.TRACE), ("debug", Level.DEBUG), ("info", Level.INFO),
     ("warn", Level.WARN), ("ERROR", Level.ERROR)],
)
def test_parse_level(name, level):
    assert parse_level(name) is level


def test_parse_level_unknown():
    with pytest.raises(ValueError):
        parse_level("verbose")


def test_info_formats_arguments(capsys, restore_logger):
    records = _console_records(restore_logger, "info")
    rlog.info("hello %s", "world")
    out = capsys.readouterr().out
    assert "hello world" in out
    assert records[-1].getMessage() == "hello world"
    assert records[-1].levelno == Level.INFO


def test_debug_below_default_level_is_dropped(capsys, restore_logger):
    records = _console_records(restore_logger, "info")
    rlog.debug("hidden-debug")
    rlog.log(Level.TRACE, "hidden-trace")
    rlog.info("shown")
    out = capsys.readouterr().out
    assert "hidden" not in out
    assert "shown" in out
    assert [r.getMessage() for r in records] == ["shown"]


def test_level_functions_use_their_levels(capsys, restore_logger):
    records = _console_records(restore_logger, "trace")
    rlog.error("msg-e")
    rlog.warn("msg-w")
    rlog.debug("msg-d")
    rlog.log(Level.TRACE, "msg-t")
    rlog.log(Level.ERROR, "boom %d", 3)
    out = capsys.readouterr().out
    positions = [out.index(text) for text in ("msg-e", "msg-w", "msg-d", "msg-t", "boom 3")]
    assert positions == sorted(positions)
    assert [r.levelno for r in records] == [
        Level.ERROR, Level.WARN, Level.DEBUG, Level.TRACE, Level.ERROR,
    ]


def test_write_logger_strips_newlines(captured):
    data = b"line one\n\n"
    writer = WriteLogger(Level.WARN, 2)
    assert writer.write(data) == len(data)
    assert captured[-1].getMessage() == "line one"
    assert captured[-1].levelno == Level.WARN


def test_init_logger_file(tmp_path, restore_logger):
    path = tmp_path / "relay.log"
    init_logger(str(path), "debug", 3, True)
    rlog.debug("hello %s", "file")
    for handler in restore_logger.handlers:
        handler.flush()
    assert "hello file" in path.read_text(encoding="utf-8")
    assert restore_logger.level == Level.DEBUG


def test_init_logger_bad_level_falls_back_to_info(tmp_path, restore_logger):
    path = tmp_path / "x.log"
    init_logger(str(path), "nonsense", 1, True)
    rlog.debug("quiet-line")
    rlog.info("loud-line")
    for handler in restore_logger.handlers:
        handler.flush()
    text = path.read_text(encoding="utf-8")
    assert "loud-line" in text
    assert "quiet-line" not in text


def test_init_logger_console(capsys, restore_logger):
    init_logger("console", "debug", 3, True)
    rlog.debug("visible %s", "line")
    out = capsys.readouterr().out
    assert "visible line" in out
    assert "\033[" not in out
    assert restore_logger.handlers[0].stream is sys.stdout