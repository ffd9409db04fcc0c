"""Centralized structured logging library.

This package provides structured JSON logging with run ID support so every
line emitted during one event-study run can be correlated.

Usage:
    # At startup
    from libs.common.logging import configure_logging
    logger = configure_logging(service_name="political_backtest", log_level="INFO")

    # Per run
    from libs.common.logging import RunContext, get_logger, log_with_context
    with RunContext():
        logger = get_logger(__name__)
        log_with_context(logger, "INFO", "Run started", ticker="NVDA")
"""

from libs.common.logging.config import (
    RunIDFilter,
    configure_logging,
    get_logger,
    log_with_context,
)
from libs.common.logging.context import (
    RunContext,
    clear_run_id,
    generate_run_id,
    get_run_id,
    set_run_id,
)
from libs.common.logging.formatter import JSONFormatter

__all__ = [
    # Configuration
    "configure_logging",
    "get_logger",
    "log_with_context",
    "RunIDFilter",
    # Run ID management
    "generate_run_id",
    "get_run_id",
    "set_run_id",
    "clear_run_id",
    "RunContext",
    # Formatter (for advanced usage)
    "JSONFormatter",
]
