"""Centralized logging configuration.

Sets up structured JSON output with run ID correlation. Entry points should
call configure_logging() once before starting a run.

Example:
    >>> from libs.common.logging.config import configure_logging
    >>> logger = configure_logging(service_name="political_backtest", log_level="INFO")
    >>> logger.info("Run started", extra={"context": {"ticker": "NVDA"}})
"""

import logging
import sys
from typing import Optional

from libs.common.logging.context import get_run_id
from libs.common.logging.formatter import JSONFormatter


class RunIDFilter(logging.Filter):
    """Logging filter that stamps the current run ID onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = get_run_id()
        return True


def configure_logging(
    service_name: str,
    log_level: str = "INFO",
    include_context: bool = True,
) -> logging.Logger:
    """Configure structured JSON logging on the root logger.

    Sets up:
    - JSON formatted output to stdout
    - Run ID injection on all records
    - Specified log level

    Args:
        service_name: Name reported in the ``service`` field
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        include_context: Whether to include context dict in output

    Returns:
        Configured root logger instance

    Raises:
        ValueError: If log_level is invalid
    """
    numeric_level = getattr(logging, log_level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {log_level}")

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Remove existing handlers to avoid duplicates
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    handler.setFormatter(
        JSONFormatter(
            service_name=service_name,
            include_context=include_context,
        )
    )
    handler.addFilter(RunIDFilter())
    root_logger.addHandler(handler)

    return root_logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger instance (root logger if name is None)."""
    return logging.getLogger(name)


def log_with_context(
    logger: logging.Logger,
    level: str,
    message: str,
    **context_fields: object,
) -> None:
    """Log a message with additional context fields.

    Context fields appear in the "context" dict in JSON output.

    Example:
        >>> logger = get_logger(__name__)
        >>> log_with_context(logger, "INFO", "Resolved anchors", anchors=4, mode="both")
    """
    log_method = getattr(logger, level.lower())
    log_method(message, extra={"context": context_fields})
