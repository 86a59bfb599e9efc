"""
Mates Logging — readable console lines in dev, JSON lines in production.

Both formatters understand the Matrix context a call site attaches with
logger.info(..., extra={...}):

    room_id, event_id, sender, scope, user_id, status, enrichment

The text formatter appends the short ones as `key=value` pairs after the
message; the JSON formatter puts every one of them at the top level.

Env vars (read by setup_logging):
    MATES_LOG_LEVEL  — DEBUG / INFO / WARNING / ERROR (default: INFO)
    MATES_LOG_COLOR  — true / false / auto (default: auto, TTY detection)
    MATES_LOG_FORMAT — text / json (default: text)
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone

CONTEXT_FIELDS = ("room_id", "event_id", "sender", "scope", "user_id", "status")
STRUCTURED_FIELDS = CONTEXT_FIELDS + ("enrichment",)

# Every sync long-poll is an HTTP request
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")

_LEVEL_COLORS = {
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[1;31m",
}
_DIM = "\033[2m"
_RESET = "\033[0m"


def _context(record: logging.LogRecord) -> str:
    pairs = [
        f"{key}={getattr(record, key)}"
        for key in CONTEXT_FIELDS
        if getattr(record, key, None) is not None
    ]
    return " ".join(pairs)


class ColorFormatter(logging.Formatter):
    """Terminal formatter. Colors are optional, the context suffix is not."""

    def __init__(self, use_color: bool = True):
        super().__init__(
            fmt="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
            datefmt="%H:%M:%S",
        )
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        levelname, name = record.levelname, record.name
        if self.use_color:
            record.levelname = f"{_LEVEL_COLORS.get(levelname, '')}{levelname}{_RESET}"
            record.name = f"{_DIM}{name}{_RESET}"
        try:
            line = super().format(record)
        finally:
            # Other handlers must see the plain record
            record.levelname, record.name = levelname, name

        context = _context(record)
        if not context:
            return line
        if self.use_color:
            context = f"{_DIM}{context}{_RESET}"
        head, sep, tail = line.partition("\n")
        return f"{head} {context}{sep}{tail}"


class StructuredFormatter(logging.Formatter):
    """One JSON object per line, for log aggregation (MATES_LOG_FORMAT=json)."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in STRUCTURED_FIELDS:
            if hasattr(record, key):
                entry[key] = getattr(record, key)
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _should_use_color() -> bool:
    env_val = os.getenv("MATES_LOG_COLOR", "auto").lower()
    if env_val in ("true", "false"):
        return env_val == "true"
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def setup_logging() -> None:
    """Configure the root logger from MATES_LOG_*. Call once at startup."""
    level_name = os.getenv("MATES_LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    log_format = os.getenv("MATES_LOG_FORMAT", "text").lower()

    if log_format == "json":
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = ColorFormatter(use_color=_should_use_color())

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(level)

    logging.getLogger("mates_prefs").debug(
        "Logging configured (level=%s, format=%s)", level_name, log_format
    )
