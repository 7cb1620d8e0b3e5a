"""
Logging bootstrap.

Installs a JSONL file sink and an optional stderr handler on the package
logger. Library modules only ever call ``logging.getLogger(__name__)``.
"""

import json
import logging
import os
import sys
from datetime import UTC
from datetime import datetime
from pathlib import Path

from .ui.log_filter import PackageErrorLogFilter

DEFAULT_PATH = os.environ.get("HEX_PRELOAD_LOG_PATH")
DEFAULT_LEVEL = os.environ.get("HEX_PRELOAD_LOG_LEVEL", "WARNING").upper()
LOGGER_NAME = "hex_preload"

_RESERVED_ATTRS = frozenset(
    (
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "name",
        "message",
    )
)


class JsonlHandler(logging.Handler):
    """Append one JSON object per record to a log file."""

    def __init__(self, path: str | Path):
        super().__init__()
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            entry = {
                "ts": datetime.fromtimestamp(record.created, UTC).isoformat(timespec="milliseconds"),
                "lvl": record.levelname,
                "schema": {"name": "hex_preload.log", "ver": "1.0.0"},
                "logger": record.name,
                "where": f"{record.module}:{record.lineno}",
                "message": record.getMessage(),
            }
            if record.exc_info:
                entry["exc"] = logging.Formatter().formatException(record.exc_info)
            # Fields passed via extra=
            for key, value in record.__dict__.items():
                if key not in _RESERVED_ATTRS:
                    entry.setdefault(key, value)
            with self.path.open("a", encoding="utf-8") as f:
                f.write(json.dumps(entry, ensure_ascii=False, default=str) + "\n")
        except Exception:
            self.handleError(record)


class _ConsoleHandler(logging.StreamHandler):
    """Marker subclass so repeated init calls can find and replace it."""


def init_logging(level: str | None = None, path: str | Path | None = None, console: bool = True) -> logging.Logger:
    """Configure the package logger.

    Args:
        level: Minimum level name (DEBUG, INFO, WARNING, ...)
        path: JSONL log file. Defaults to $HEX_PRELOAD_LOG_PATH; no file sink if unset.
        console: Also log to stderr (package-load errors are filtered out there)

    Returns:
        The configured package logger
    """
    level = (level or DEFAULT_LEVEL).upper()
    path = path or DEFAULT_PATH

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level, logging.WARNING))

    # Remove handlers from previous calls to avoid duplicates
    for h in list(logger.handlers):
        if isinstance(h, (JsonlHandler, _ConsoleHandler)):
            logger.removeHandler(h)
            h.close()

    if path:
        logger.addHandler(JsonlHandler(path))

    if console:
        handler = _ConsoleHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        handler.addFilter(PackageErrorLogFilter())
        logger.addHandler(handler)

    return logger
