"""Logging setup: verbosity mapping, handlers, JSON records."""

from __future__ import annotations

import io
import json
import logging
import sys

import pytest

from cmdclock.logging_utils import TRACE, JSONFormatter, level_for_verbosity, setup_logging


@pytest.mark.parametrize(
    "verbosity, level",
    [
        (0, logging.WARNING),
        (1, logging.INFO),
        (2, logging.DEBUG),
        (3, TRACE),
        (9, TRACE),
        (-2, logging.WARNING),
    ],
)
def test_level_for_verbosity(verbosity, level):
    assert level_for_verbosity(verbosity) == level


def test_trace_level_named():
    assert logging.getLevelName(TRACE) == "TRACE"


def test_setup_writes_to_given_stream():
    stream = io.StringIO()
    logger = setup_logging(1, stream=stream)
    logging.getLogger("cmdclock.timing.hook").info("armed %s", "git")
    logging.getLogger("cmdclock.timing.hook").debug("hidden")

    out = stream.getvalue()
    assert "[INFO] cmdclock.timing.hook: armed git" in out
    assert "hidden" not in out
    assert logger.propagate is False


def test_setup_is_repeatable():
    setup_logging(0, stream=io.StringIO())
    logger = setup_logging(2, stream=io.StringIO())
    assert len(logger.handlers) == 1
    assert logger.level == logging.DEBUG


def test_json_console_format():
    stream = io.StringIO()
    setup_logging(0, log_format="json", stream=stream)
    logging.getLogger("cmdclock").warning(
        "suspicious duration", extra={"command": "make", "duration_ms": 6000.0}
    )

    entry = json.loads(stream.getvalue().strip())
    assert entry["level"] == "WARNING"
    assert entry["message"] == "suspicious duration"
    assert entry["command"] == "make"
    assert entry["duration_ms"] == 6000.0


def test_file_handler_mirrors_as_jsonl(tmp_path):
    log_file = tmp_path / "logs" / "cmdclock.jsonl"
    logger = setup_logging(0, log_path=log_file, stream=io.StringIO())
    logging.getLogger("cmdclock").error(
        "history write failed", extra={"error_code": "PERSISTENCE_FAILED"}
    )
    for handler in logger.handlers:
        handler.flush()

    lines = log_file.read_text().splitlines()
    assert len(lines) == 1
    assert json.loads(lines[0])["error_code"] == "PERSISTENCE_FAILED"


def test_json_formatter_includes_exception():
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = logging.getLogger("cmdclock").makeRecord(
            "cmdclock", logging.ERROR, __file__, 1, "failed", (), sys.exc_info()
        )
    entry = json.loads(JSONFormatter().format(record))
    assert "RuntimeError: boom" in entry["exception"]
