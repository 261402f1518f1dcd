"""Unit tests for the JSON log formatter."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import json
import logging
from logger import JSONFormatter, setup_logging


def _record(message, **attrs):
    record = logging.LogRecord("services.pipeline", logging.ERROR, __file__, 1, message, None, None)
    for key, value in attrs.items():
        setattr(record, key, value)
    return record


def test_format_basic_fields():
    data = json.loads(JSONFormatter().format(_record("검색 실패")))

    assert data["level"] == "ERROR"
    assert data["logger"] == "services.pipeline"
    assert data["message"] == "검색 실패"
    assert data["timestamp"].endswith("Z")


def test_format_merges_extra_fields():
    record = _record("failed", extra={"session_id": "abc123", "error": {"code": "RETRIEVAL_FAILED"}})

    data = json.loads(JSONFormatter().format(record))

    assert data["session_id"] == "abc123"
    assert data["error"]["code"] == "RETRIEVAL_FAILED"


def test_format_exception():
    try:
        raise ValueError("boom")
    except ValueError:
        record = _record("failed", exc_info=sys.exc_info())

    data = json.loads(JSONFormatter().format(record))

    assert "ValueError: boom" in data["exception"]


def test_setup_logging_installs_single_json_handler():
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        setup_logging("DEBUG")

        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONFormatter)
        assert root.level == logging.DEBUG
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
