"""Tests for log formatting and setup."""

import json
import logging

from mates_prefs.core.logging import ColorFormatter, StructuredFormatter, setup_logging


def _record(**extra):
    record = logging.LogRecord(
        "mates_prefs.observer.timeline", logging.INFO, __file__, 1, "hello %s", ("x",), None
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_structured_formatter_includes_extras():
    line = StructuredFormatter().format(
        _record(room_id="!abc:x", sender="@alice:x", enrichment={"body": "hi"})
    )
    entry = json.loads(line)
    assert entry["msg"] == "hello x"
    assert entry["level"] == "INFO"
    assert entry["room_id"] == "!abc:x"
    assert entry["sender"] == "@alice:x"
    assert entry["enrichment"] == {"body": "hi"}
    assert "event_id" not in entry


def test_color_formatter_restores_record():
    record = _record()
    out = ColorFormatter(use_color=True).format(record)
    assert "\033[" in out
    assert record.levelname == "INFO"
    assert record.name == "mates_prefs.observer.timeline"


def test_plain_formatter_has_no_escape_codes():
    out = ColorFormatter(use_color=False).format(_record())
    assert "\033[" not in out
    assert "hello x" in out


def test_setup_logging_json(monkeypatch):
    monkeypatch.setenv("MATES_LOG_FORMAT", "json")
    monkeypatch.setenv("MATES_LOG_LEVEL", "DEBUG")
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        setup_logging()
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, StructuredFormatter)
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)


def test_text_formatter_appends_matrix_context():
    out = ColorFormatter(use_color=False).format(_record(room_id="!abc:x", sender="@alice:x"))
    assert out.endswith("hello x room_id=!abc:x sender=@alice:x")


def test_text_formatter_skips_enrichment_payload():
    out = ColorFormatter(use_color=False).format(_record(enrichment={"body": "hi"}))
    assert out.endswith("hello x")
