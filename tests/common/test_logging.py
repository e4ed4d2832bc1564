"""Tests for logging configuration."""

import json
import logging
import sys

import pytest

from s3connector.common.logging import QUIET_LOGGERS, JsonFormatter, setup_logging


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    previous = list(root.handlers), root.level
    quiet = {name: logging.getLogger(name).level for name in QUIET_LOGGERS}
    yield root
    root.handlers[:] = previous[0]
    root.setLevel(previous[1])
    for name, level in quiet.items():
        logging.getLogger(name).setLevel(level)


def test_json_formatter_payload():
    record = logging.LogRecord("s3connector.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
    record.threadName = "s3connector-part_0"

    payload = json.loads(JsonFormatter().format(record))

    assert payload["level"] == "INFO"
    assert payload["logger"] == "s3connector.test"
    assert payload["thread"] == "s3connector-part_0"
    assert payload["message"] == "hello world"
    assert payload["time"]
    assert "exc_info" not in payload


def test_json_formatter_includes_exception():
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = logging.LogRecord(
            "s3connector.test", logging.ERROR, __file__, 1, "failed", (), sys.exc_info()
        )

    payload = json.loads(JsonFormatter().format(record))

    assert "RuntimeError: boom" in payload["exc_info"]


def test_setup_logging_installs_json_handler(restore_logging):
    setup_logging("DEBUG")

    root = restore_logging
    assert root.level == logging.DEBUG
    assert [type(h.formatter) for h in root.handlers] == [JsonFormatter]
    for name in QUIET_LOGGERS:
        assert logging.getLogger(name).level == logging.WARNING
    assert logging.getLogger("s3connector.request").getEffectiveLevel() == logging.DEBUG


def test_setup_logging_plain_lines(restore_logging):
    setup_logging("INFO", json_lines=False)

    (handler,) = restore_logging.handlers
    assert not isinstance(handler.formatter, JsonFormatter)
    assert "%(threadName)s" in handler.formatter._fmt
