"""Tests for loguru configuration."""

import json
import sys

import pytest
from loguru import logger

from telemetry_api.monitoring.logger import configure_logger
from telemetry_api.monitoring.logger import flatten_record
from telemetry_api.monitoring.logger import one_line_traceback


@pytest.fixture
def restore_logger():
    """Detach loguru from the captured stream before capsys closes it."""
    yield
    logger.remove()
    logger.add(sys.__stderr__, level="INFO")


class TestFlattenRecord:
    """Tests for the record filter used by the text sink."""

    def test_extra_serialised_to_json(self):
        record = {"extra": {"operation_id": "op-1", "attempt": 2}, "exception": None}

        assert flatten_record(record) is True
        assert json.loads(record["extra"]) == {"operation_id": "op-1", "attempt": 2}
        assert record["stacktrace"] == ""

    def test_empty_extra_untouched(self):
        record = {"extra": {}, "exception": None}

        flatten_record(record)

        assert record["extra"] == {}

    def test_stacktrace_on_one_line(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            exc_info = sys.exc_info()

        record = {"extra": {}, "exception": exc_info}
        flatten_record(record)

        assert "RuntimeError: boom" in record["stacktrace"]
        assert "\n" not in record["stacktrace"]


def test_one_line_traceback():
    try:
        raise ValueError("bad")
    except ValueError:
        exc_info = sys.exc_info()

    text = one_line_traceback(exc_info)

    assert text.startswith("Traceback")
    assert "\r" in text
    assert "\n" not in text


def test_text_sink(capsys, restore_logger):
    """Test the text sink renders message and extras, and honours the level."""
    configure_logger(level="INFO")
    logger.info("Delete by rule accepted", operation_id="op-1")
    logger.debug("not shown")

    out = capsys.readouterr().out
    assert "Delete by rule accepted" in out
    assert '"operation_id": "op-1"' in out
    assert "not shown" not in out


def test_json_sink(capsys, restore_logger):
    """Test JSON output carries the message and extras."""
    configure_logger(level="INFO", json_logs=True)
    logger.warning("Delete alarm failed", operation_id="op-1")

    line = capsys.readouterr().out.strip().splitlines()[-1]
    record = json.loads(line)["record"]
    assert record["message"] == "Delete alarm failed"
    assert record["extra"]["operation_id"] == "op-1"
    assert record["level"]["name"] == "WARNING"
