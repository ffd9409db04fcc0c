"""
Coded exceptions for the political-event backtest.

Two layers exist:

- Low-level errors (``PoliticalBacktestError`` subclasses) raised by the
  building blocks: row normalization, calendar construction, session
  alignment, price lookup and statistics.
- ``EventStudyError`` raised at the orchestration boundary. Its ``code`` is
  an ``EventStudyErrorCode`` meaningful to callers of the event study;
  ``EventStudyError.wrap`` re-codes a low-level error while keeping its
  message and details.

Every error carries a stable string ``code`` and an optional ``details``
payload, and serializes with ``to_dict()``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from libs.common.exceptions import DataQualityError


class PoliticalBacktestError(DataQualityError):
    """Base class for all coded political-backtest errors.

    Attributes:
        message: Human readable description.
        code: Stable machine-readable error code.
        details: Optional structured payload describing the failure.
    """

    default_code = "POLITICAL_BACKTEST_ERROR"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code or self.default_code
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        code = self.code.value if isinstance(self.code, Enum) else self.code
        return {"code": code, "message": self.message, "details": self.details}


class MissingRequiredFieldError(PoliticalBacktestError):
    """Raised when a required field is absent from an input row."""

    default_code = "MISSING_REQUIRED_FIELD"

    def __init__(self, field: str, details: dict[str, Any] | None = None) -> None:
        self.field = field
        super().__init__(f"Missing required field: {field}", details=details)


class InvalidDateError(PoliticalBacktestError):
    """Raised when a date value cannot be parsed or is not strict ISO."""

    default_code = "INVALID_DATE"

    def __init__(self, field: str, value: Any, details: dict[str, Any] | None = None) -> None:
        self.field = field
        self.value = value
        super().__init__(f"Invalid date in field {field}: {value}", details=details)


class InvalidQuiverRowError(PoliticalBacktestError):
    """Raised when a disclosure row is structurally invalid or mismatched."""

    default_code = "INVALID_QUIVER_ROW"


class TradingCalendarError(PoliticalBacktestError):
    """Raised when a trading calendar cannot be built or is inconsistent."""

    default_code = "TRADING_CALENDAR_ERROR"


class SessionAlignmentError(PoliticalBacktestError):
    """Raised when a date or offset falls outside the calendar's sessions."""

    default_code = "SESSION_ALIGNMENT_ERROR"


class InvalidWindowError(PoliticalBacktestError):
    """Raised when forward-return windows are missing, non-positive or duplicated."""

    default_code = "INVALID_WINDOW"


class PriceSeriesError(PoliticalBacktestError):
    """Raised when a price series is empty, duplicated or holds invalid closes."""

    default_code = "PRICE_SERIES_ERROR"


class MissingPriceError(PriceSeriesError):
    """Raised when no close exists for a symbol on a required session."""

    def __init__(self, symbol: str, date: str, details: dict[str, Any] | None = None) -> None:
        self.symbol = symbol
        self.date = date
        super().__init__(f"Missing close price for {symbol} on {date}", details=details)


class StatsComputationError(PoliticalBacktestError):
    """Raised when aggregate statistics cannot be computed."""

    default_code = "STATS_COMPUTATION_ERROR"


class EventStudyErrorCode(str, Enum):
    """Error codes surfaced at the event-study orchestration boundary."""

    MISSING_REQUIRED_ANCHOR_DATE = "MISSING_REQUIRED_ANCHOR_DATE"
    INVALID_EVENT_DATE = "INVALID_EVENT_DATE"
    EMPTY_EVENT_SET = "EMPTY_EVENT_SET"
    DUPLICATE_EVENT_ID = "DUPLICATE_EVENT_ID"
    MISSING_PRICE_SERIES = "MISSING_PRICE_SERIES"
    INVALID_PRICE_SERIES = "INVALID_PRICE_SERIES"
    ANCHOR_OUT_OF_RANGE = "ANCHOR_OUT_OF_RANGE"
    WINDOW_OUT_OF_RANGE = "WINDOW_OUT_OF_RANGE"
    MISSING_BENCHMARK_SERIES = "MISSING_BENCHMARK_SERIES"
    MISSING_BENCHMARK_MAPPING = "MISSING_BENCHMARK_MAPPING"


# Order matters: subclasses before their parents.
_INFERRED_CODES: tuple[tuple[type[PoliticalBacktestError], EventStudyErrorCode], ...] = (
    (MissingRequiredFieldError, EventStudyErrorCode.MISSING_REQUIRED_ANCHOR_DATE),
    (InvalidDateError, EventStudyErrorCode.INVALID_EVENT_DATE),
    (InvalidQuiverRowError, EventStudyErrorCode.INVALID_EVENT_DATE),
    (MissingPriceError, EventStudyErrorCode.MISSING_PRICE_SERIES),
    (PriceSeriesError, EventStudyErrorCode.INVALID_PRICE_SERIES),
    (TradingCalendarError, EventStudyErrorCode.INVALID_PRICE_SERIES),
    (SessionAlignmentError, EventStudyErrorCode.ANCHOR_OUT_OF_RANGE),
    (InvalidWindowError, EventStudyErrorCode.WINDOW_OUT_OF_RANGE),
    (StatsComputationError, EventStudyErrorCode.INVALID_PRICE_SERIES),
)


def infer_error_code(error: BaseException) -> EventStudyErrorCode:
    """Map a low-level error onto the event-study code callers understand."""
    for error_type, code in _INFERRED_CODES:
        if isinstance(error, error_type):
            return code
    return EventStudyErrorCode.INVALID_EVENT_DATE


class EventStudyError(PoliticalBacktestError):
    """Error raised by the event-study pipeline.

    Example:
        >>> try:
        ...     alignment = align_to_next_session(calendar, "1999-01-01")
        ... except SessionAlignmentError as exc:
        ...     raise EventStudyError.wrap(exc, EventStudyErrorCode.ANCHOR_OUT_OF_RANGE) from exc
    """

    code: EventStudyErrorCode

    def __init__(
        self,
        message: str,
        code: EventStudyErrorCode,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code=EventStudyErrorCode(code), details=details)

    @classmethod
    def wrap(
        cls,
        error: BaseException,
        fallback_code: EventStudyErrorCode | None = None,
    ) -> EventStudyError:
        """Re-code ``error`` as an EventStudyError, preserving message and details.

        An EventStudyError is returned unchanged so the innermost orchestration
        code wins.
        """
        if isinstance(error, EventStudyError):
            return error
        code = fallback_code or infer_error_code(error)
        details: dict[str, Any] = {"cause": type(error).__name__}
        if isinstance(error, PoliticalBacktestError):
            details["cause_code"] = error.code
            if error.details:
                details.update(error.details)
            message = error.message
        else:
            message = str(error)
        return cls(message, code, details)
