"""Logging helpers for cmdclock.

Handlers write straight to a stream or file. Nothing here goes through the
host shell's command dispatch, so a log call from inside the resolution hook
can never re-enter that hook.
"""

from __future__ import annotations

from datetime import UTC, datetime
import json
import logging
from pathlib import Path
import sys

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

LOGGER_NAME = "cmdclock"

_VERBOSITY_LEVELS = {
    0: logging.WARNING,
    1: logging.INFO,
    2: logging.DEBUG,
    3: TRACE,
}


def level_for_verbosity(verbosity: int) -> int:
    """Map the 0-3 CMDCLOCK_DEBUG scale onto logging levels."""
    return _VERBOSITY_LEVELS.get(max(0, min(3, verbosity)), logging.WARNING)


def setup_logging(
    verbosity: int = 0,
    log_format: str = "text",
    log_path: str | Path | None = None,
    stream=None,
) -> logging.Logger:
    """Configure and return the cmdclock logger.

    Args:
        verbosity: 0 (warnings only) through 3 (trace).
        log_format: "text" or "json" for the console handler.
        log_path: Optional JSONL file to mirror records into.
        stream: Console stream, stderr by default.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.handlers.clear()

    level = level_for_verbosity(verbosity)
    logger.setLevel(level)

    ch = logging.StreamHandler(stream or sys.stderr)
    ch.setLevel(level)
    if log_format == "json":
        ch.setFormatter(JSONFormatter())
    else:
        ch.setFormatter(
            logging.Formatter(fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
    logger.addHandler(ch)

    if log_path:
        log_file = Path(log_path).expanduser()
        log_file.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setFormatter(JSONFormatter())
        fh.setLevel(level)
        logger.addHandler(fh)

    logger.propagate = False
    return logger


class JSONFormatter(logging.Formatter):
    """Simple JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }

        # Extra fields attached by the timing core
        for key in ("command", "duration_ms", "error_code"):
            if hasattr(record, key):
                entry[key] = getattr(record, key)

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry)
