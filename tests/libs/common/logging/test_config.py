"""Tests for logging configuration.

Tests verify:
- configure_logging sets up JSON logging correctly
- RunIDFilter adds run IDs to log records
- log_with_context adds context fields properly
"""

import json
import logging
from io import StringIO

import pytest

from libs.common.logging.config import (
    RunIDFilter,
    configure_logging,
    get_logger,
    log_with_context,
)
from libs.common.logging.context import RunContext, clear_run_id, set_run_id
from libs.common.logging.formatter import JSONFormatter


def _record() -> logging.LogRecord:
    return logging.LogRecord(
        name="test",
        level=logging.INFO,
        pathname="/path/to/file.py",
        lineno=42,
        msg="Test",
        args=(),
        exc_info=None,
    )


class TestRunIDFilter:
    """Test suite for RunIDFilter."""

    def test_filter_adds_run_id_to_record(self) -> None:
        """Test that filter adds run ID from context to record."""
        run_filter = RunIDFilter()
        record = _record()

        set_run_id("run-123")
        result = run_filter.filter(record)

        assert result is True  # Filter should always pass through
        assert record.run_id == "run-123"  # type: ignore[attr-defined]

    def test_filter_adds_none_when_no_run_id(self) -> None:
        """Test that filter adds None when no run ID in context."""
        run_filter = RunIDFilter()
        record = _record()

        clear_run_id()
        result = run_filter.filter(record)

        assert result is True
        assert record.run_id is None  # type: ignore[attr-defined]


class TestConfigureLogging:
    """Test suite for configure_logging."""

    def teardown_method(self) -> None:
        """Reset root logger after each test."""
        root_logger = logging.getLogger()
        root_logger.handlers.clear()
        root_logger.setLevel(logging.WARNING)

    def test_configure_logging_returns_root_logger(self) -> None:
        logger = configure_logging(service_name="test")

        assert logger is logging.getLogger()

    @pytest.mark.parametrize(("level", "expected"), [("DEBUG", logging.DEBUG), ("info", logging.INFO)])
    def test_configure_logging_sets_log_level(self, level: str, expected: int) -> None:
        logger = configure_logging(service_name="test", log_level=level)

        assert logger.level == expected

    def test_configure_logging_invalid_level_raises_error(self) -> None:
        with pytest.raises(ValueError, match="Invalid log level"):
            configure_logging(service_name="test", log_level="INVALID")

    def test_configure_logging_installs_json_handler(self) -> None:
        logger = configure_logging(service_name="political_backtest")

        (handler,) = logger.handlers
        assert isinstance(handler.formatter, JSONFormatter)
        assert handler.formatter.service_name == "political_backtest"
        assert any(isinstance(item, RunIDFilter) for item in handler.filters)

    def test_configure_logging_removes_existing_handlers(self) -> None:
        logger = logging.getLogger()
        dummy_handler = logging.StreamHandler()
        logger.addHandler(dummy_handler)

        configure_logging(service_name="test")

        assert len(logger.handlers) == 1
        assert logger.handlers[0] is not dummy_handler


class TestGetLogger:
    """Test suite for get_logger."""

    def test_get_logger_returns_named_logger(self) -> None:
        logger = get_logger("test")

        assert isinstance(logger, logging.Logger)
        assert logger.name == "test"

    def test_get_logger_none_returns_root(self) -> None:
        assert get_logger(None) is logging.getLogger()


class TestLogWithContext:
    """Test suite for log_with_context."""

    def setup_method(self) -> None:
        """Attach a JSON handler writing to an in-memory stream."""
        self.stream = StringIO()
        self.logger = logging.getLogger("test.log_with_context")
        self.logger.setLevel(logging.DEBUG)
        self.logger.handlers.clear()
        self.logger.propagate = False

        handler = logging.StreamHandler(self.stream)
        handler.setFormatter(JSONFormatter(service_name="test"))
        handler.addFilter(RunIDFilter())
        self.logger.addHandler(handler)

    def teardown_method(self) -> None:
        self.logger.handlers.clear()
        self.logger.propagate = True

    def _last_entry(self) -> dict:
        return json.loads(self.stream.getvalue().strip().splitlines()[-1])

    def test_log_with_context_adds_context_fields(self) -> None:
        log_with_context(self.logger, "INFO", "Resolved anchors", anchors=4, mode="both", windows=[1, 5])

        entry = self._last_entry()

        assert entry["message"] == "Resolved anchors"
        assert entry["context"] == {"anchors": 4, "mode": "both", "windows": [1, 5]}

    def test_log_with_context_carries_run_id(self) -> None:
        with RunContext("run-abc"):
            log_with_context(self.logger, "INFO", "Run started", ticker="NVDA")

        assert self._last_entry()["run_id"] == "run-abc"

    @pytest.mark.parametrize("level", ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    def test_log_with_context_different_levels(self, level: str) -> None:
        log_with_context(self.logger, level, f"Test {level} message", test="value")

        entry = self._last_entry()

        assert entry["level"] == level
        assert entry["message"] == f"Test {level} message"
