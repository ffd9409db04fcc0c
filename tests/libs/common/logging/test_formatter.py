"""Tests for JSON log formatter.

Tests verify that logs are formatted correctly with:
- Required schema fields (timestamp, level, service, run_id, message)
- Optional context fields
- Exception information
- Source location
"""

import json
import logging
import sys
from datetime import UTC, datetime

import pytest

from libs.common.logging.formatter import JSONFormatter


def _record(level: int = logging.INFO, msg: str = "Test", args: tuple = (), exc_info=None) -> logging.LogRecord:
    return logging.LogRecord(
        name="test",
        level=level,
        pathname="/path/to/file.py",
        lineno=42,
        msg=msg,
        args=args,
        exc_info=exc_info,
    )


class TestJSONFormatter:
    """Test suite for JSONFormatter."""

    @pytest.fixture
    def formatter(self) -> JSONFormatter:
        return JSONFormatter(service_name="test_service")

    def test_basic_log_format(self, formatter: JSONFormatter) -> None:
        """Test that basic log is formatted as valid JSON with required fields."""
        record = _record(msg="Computed event window returns")
        record.run_id = "run-123"

        log_dict = json.loads(formatter.format(record))

        assert "timestamp" in log_dict
        assert log_dict["level"] == "INFO"
        assert log_dict["service"] == "test_service"
        assert log_dict["run_id"] == "run-123"
        assert log_dict["message"] == "Computed event window returns"

    def test_timestamp_format(self, formatter: JSONFormatter) -> None:
        """Test that timestamp is ISO 8601 in UTC with millisecond precision."""
        log_dict = json.loads(formatter.format(_record()))

        timestamp = log_dict["timestamp"]
        assert timestamp.endswith("Z")
        assert len(timestamp.split(".")[1]) == 4  # three digits plus "Z"
        dt = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
        assert dt.tzinfo == UTC

    def test_known_timestamp(self, formatter: JSONFormatter) -> None:
        assert formatter._format_timestamp(1697896200.0) == "2023-10-21T13:50:00.000Z"

    def test_context_inclusion(self, formatter: JSONFormatter) -> None:
        record = _record()
        record.context = {"ticker": "NVDA", "anchors": 12}

        log_dict = json.loads(formatter.format(record))

        assert log_dict["context"] == {"ticker": "NVDA", "anchors": 12}

    def test_no_context_when_disabled(self) -> None:
        formatter = JSONFormatter(service_name="test", include_context=False)
        record = _record()
        record.context = {"ticker": "NVDA"}

        log_dict = json.loads(formatter.format(record))

        assert "context" not in log_dict

    def test_missing_run_id(self, formatter: JSONFormatter) -> None:
        log_dict = json.loads(formatter.format(_record()))

        assert log_dict["run_id"] is None

    def test_exception_logging(self, formatter: JSONFormatter) -> None:
        """Test that exceptions are properly formatted."""
        try:
            raise ValueError("Window must be a positive integer: 0")
        except ValueError:
            exc_info = sys.exc_info()

        log_dict = json.loads(formatter.format(_record(logging.ERROR, "Run failed", exc_info=exc_info)))

        assert log_dict["exception"]["type"] == "ValueError"
        assert log_dict["exception"]["message"] == "Window must be a positive integer: 0"
        assert "ValueError" in log_dict["exception"]["traceback"]

    def test_source_location(self, formatter: JSONFormatter) -> None:
        record = _record()
        record.funcName = "test_function"

        log_dict = json.loads(formatter.format(record))

        assert log_dict["source"] == {"file": "/path/to/file.py", "line": 42, "function": "test_function"}

    def test_extra_fields_as_context(self, formatter: JSONFormatter) -> None:
        """Non-reserved record attributes become context when no context dict is set."""
        record = _record()
        record.benchmark = "XLF"
        record.window_sessions = 5

        log_dict = json.loads(formatter.format(record))

        assert log_dict["context"] == {"benchmark": "XLF", "window_sessions": 5}

    def test_non_serializable_context_is_stringified(self, formatter: JSONFormatter) -> None:
        record = _record()
        record.context = {"root": datetime(2025, 1, 3, tzinfo=UTC)}

        log_dict = json.loads(formatter.format(record))

        assert log_dict["context"]["root"] == "2025-01-03 00:00:00+00:00"

    def test_message_with_args(self, formatter: JSONFormatter) -> None:
        record = _record(msg="Aligned %d anchors for %s", args=(3, "NVDA"))

        log_dict = json.loads(formatter.format(record))

        assert log_dict["message"] == "Aligned 3 anchors for NVDA"
