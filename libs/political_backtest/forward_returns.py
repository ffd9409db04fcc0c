"""Forward-return primitives: windows, close maps and per-window returns.

Two return shapes live here:

- ``forward_return_percent`` / ``relative_return_percent`` produce the
  rounded percentage figures the event study reports.
- ``compute_forward_returns`` produces raw fractional returns of a subject
  paired with SPY over the same sessions, consumed by
  ``aggregate_forward_return_sets``.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from typing import Any

import polars as pl

from libs.political_backtest.errors import (
    EventStudyError,
    EventStudyErrorCode,
    InvalidWindowError,
    MissingPriceError,
    PriceSeriesError,
    SessionAlignmentError,
)
from libs.political_backtest.numeric import round_half_away
from libs.political_backtest.trading_calendar import get_session_by_offset, to_epoch_day
from libs.political_backtest.types import (
    EventForwardReturnSet,
    IsoDate,
    PriceBar,
    SessionAlignment,
    TradingCalendar,
    WindowForwardReturn,
)

CloseByDate = dict[IsoDate, float]

PRICE_FRAME_COLUMNS = ("symbol", "date", "adjusted_close")


def _is_positive_finite(value: Any) -> bool:
    return (
        isinstance(value, int | float)
        and not isinstance(value, bool)
        and math.isfinite(value)
        and value > 0
    )


def _normalize_series_symbol(symbol: str, field: str) -> str:
    normalized = (symbol or "").strip().upper()
    if not normalized:
        raise PriceSeriesError(f"Missing required symbol for {field}")
    return normalized


def normalize_window_list(windows: Sequence[int]) -> list[int]:
    """Validate forward windows, keeping their order.

    Raises:
        InvalidWindowError: If empty, or any window is not a positive integer
            or appears twice
    """
    if not windows:
        raise InvalidWindowError("At least one forward-return window is required")

    normalized: list[int] = []
    for window in windows:
        if isinstance(window, bool) or not isinstance(window, int) or window <= 0:
            raise InvalidWindowError(f"Window must be a positive integer: {window}", details={"window": window})
        if window in normalized:
            raise InvalidWindowError(f"Duplicate window is not allowed: {window}", details={"window": window})
        normalized.append(window)
    return normalized


def create_close_map(symbol: str, closes: Sequence[tuple[IsoDate, float]]) -> CloseByDate:
    """Map session date to close for one symbol.

    Args:
        symbol: Symbol the closes belong to (used in error details)
        closes: ``(date, close)`` pairs in any order

    Raises:
        PriceSeriesError: On empty input, duplicate dates or non-positive closes
        InvalidDateError: If a date is not strict ``YYYY-MM-DD``
    """
    normalized_symbol = _normalize_series_symbol(symbol, "create_close_map")
    if not closes:
        raise PriceSeriesError(f"Price series for {normalized_symbol} cannot be empty")

    close_by_date: CloseByDate = {}
    for row_index, (session_date, close) in enumerate(closes):
        to_epoch_day(session_date, "price_date", {"symbol": normalized_symbol, "row_index": row_index})
        if session_date in close_by_date:
            raise PriceSeriesError(
                f"Duplicate price row for {normalized_symbol} on {session_date}",
                details={"symbol": normalized_symbol, "date": session_date},
            )
        if not _is_positive_finite(close):
            raise PriceSeriesError(
                f"Invalid close price for {normalized_symbol} on {session_date}: {close}",
                details={"symbol": normalized_symbol, "date": session_date},
            )
        close_by_date[session_date] = float(close)
    return close_by_date


def price_series_from_frame(frame: pl.DataFrame) -> dict[str, list[PriceBar]]:
    """Split a long-format bar frame into the ``symbol -> bars`` mapping.

    ``frame`` needs ``symbol``, ``date`` and ``adjusted_close`` columns;
    ``date`` may be a string or a temporal column. Bars come back sorted by
    date within each symbol.

    Raises:
        PriceSeriesError: On missing columns or null values
    """
    missing = set(PRICE_FRAME_COLUMNS) - set(frame.columns)
    if missing:
        raise PriceSeriesError(
            f"Price frame is missing columns: {sorted(missing)}",
            details={"columns": list(frame.columns)},
        )

    date_expr = pl.col("date")
    if frame.schema["date"].is_temporal():
        date_expr = date_expr.dt.strftime("%Y-%m-%d")

    normalized = frame.select(
        pl.col("symbol").cast(pl.Utf8).str.strip_chars().str.to_uppercase().alias("symbol"),
        date_expr.cast(pl.Utf8).alias("date"),
        pl.col("adjusted_close").cast(pl.Float64).alias("adjusted_close"),
    )
    null_rows = normalized.filter(pl.any_horizontal(pl.all().is_null())).height
    if null_rows:
        raise PriceSeriesError(
            f"Price frame has {null_rows} rows with null values",
            details={"null_rows": null_rows},
        )

    by_symbol: dict[str, list[PriceBar]] = {}
    for row in normalized.sort(["symbol", "date"], maintain_order=True).iter_rows(named=True):
        if not row["symbol"]:
            raise PriceSeriesError("Price frame contains a blank symbol", details={"date": row["date"]})
        by_symbol.setdefault(row["symbol"], []).append(PriceBar(**row))
    return by_symbol


def read_close(closes: Mapping[IsoDate, float], symbol: str, session_date: IsoDate) -> float:
    """Close for ``symbol`` on ``session_date``.

    Raises:
        MissingPriceError: If no close exists for the date
        PriceSeriesError: If the stored close is not a positive number
    """
    value = closes.get(session_date)
    if value is None:
        raise MissingPriceError(symbol, session_date)
    if not _is_positive_finite(value):
        raise PriceSeriesError(
            f"Invalid close price for {symbol} on {session_date}: {value}",
            details={"symbol": symbol, "date": session_date, "value": value},
        )
    return value


def simple_return(entry: float, exit_close: float) -> float:
    """Fractional return ``exit / entry - 1``."""
    if not _is_positive_finite(entry):
        raise PriceSeriesError(f"Entry close must be a positive number: {entry}")
    if not _is_positive_finite(exit_close):
        raise PriceSeriesError(f"Exit close must be a positive number: {exit_close}")
    return exit_close / entry - 1


def forward_return_percent(start_close: float, end_close: float) -> float:
    """Rounded percentage return between two closes.

    Example:
        >>> forward_return_percent(100.0, 110.0)
        10.0

    Raises:
        EventStudyError: INVALID_PRICE_SERIES if either close is not a positive number
    """
    if not (_is_positive_finite(start_close) and _is_positive_finite(end_close)):
        raise EventStudyError(
            "Cannot compute forward return from invalid close values.",
            EventStudyErrorCode.INVALID_PRICE_SERIES,
            {"start_close": start_close, "end_close": end_close},
        )
    return round_half_away((end_close / start_close - 1) * 100)


def relative_return_percent(asset_return_percent: float, benchmark_return_percent: float) -> float:
    """Compounded-ratio return of an asset over a benchmark, in percent.

    Raises:
        EventStudyError: INVALID_PRICE_SERIES when either growth factor is non-positive
    """
    asset = 1 + asset_return_percent / 100
    benchmark = 1 + benchmark_return_percent / 100
    if asset <= 0 or benchmark <= 0:
        raise EventStudyError(
            "Cannot compute relative return when compounded values are non-positive.",
            EventStudyErrorCode.INVALID_PRICE_SERIES,
            {
                "asset_return_percent": asset_return_percent,
                "benchmark_return_percent": benchmark_return_percent,
            },
        )
    return round_half_away((asset / benchmark - 1) * 100)


def compute_forward_returns(
    event_id: str,
    symbol: str,
    anchor_date: IsoDate,
    windows: Sequence[int],
    calendar: TradingCalendar,
    alignment: SessionAlignment,
    symbol_closes: Mapping[IsoDate, float],
    spy_closes: Mapping[IsoDate, float],
) -> EventForwardReturnSet:
    """Raw subject and SPY returns for every window from one aligned anchor.

    Both legs are read on the subject calendar's sessions, so SPY must have a
    close on each of them.

    Raises:
        SessionAlignmentError: If ``alignment`` does not point at a session of ``calendar``
        InvalidWindowError: On invalid windows
        MissingPriceError: If either leg lacks a close on a required session
    """
    normalized_symbol = _normalize_series_symbol(symbol, "compute_forward_returns")
    to_epoch_day(anchor_date, "anchor_date", {"event_id": event_id, "symbol": normalized_symbol})
    window_list = normalize_window_list(windows)

    aligned_index = alignment.aligned_index
    if not 0 <= aligned_index < len(calendar.sessions):
        raise SessionAlignmentError(
            f"Aligned index {aligned_index} is outside calendar range",
            details={
                "event_id": event_id,
                "symbol": normalized_symbol,
                "aligned_index": aligned_index,
                "session_count": len(calendar.sessions),
            },
        )
    start_date = calendar.sessions[aligned_index]
    if start_date != alignment.aligned_date:
        raise SessionAlignmentError(
            "Alignment does not match calendar session at aligned index",
            details={
                "event_id": event_id,
                "symbol": normalized_symbol,
                "expected": start_date,
                "actual": alignment.aligned_date,
                "aligned_index": aligned_index,
            },
        )

    symbol_entry = read_close(symbol_closes, normalized_symbol, start_date)
    spy_entry = read_close(spy_closes, "SPY", start_date)

    results: list[WindowForwardReturn] = []
    for window_sessions in window_list:
        exit_session = get_session_by_offset(calendar, aligned_index, window_sessions)
        symbol_return = simple_return(symbol_entry, read_close(symbol_closes, normalized_symbol, exit_session.date))
        spy_return = simple_return(spy_entry, read_close(spy_closes, "SPY", exit_session.date))
        results.append(
            WindowForwardReturn(
                window_sessions=window_sessions,
                start_date=start_date,
                end_date=exit_session.date,
                symbol_return=symbol_return,
                spy_return=spy_return,
                relative_return=symbol_return - spy_return,
            )
        )

    return EventForwardReturnSet(
        event_id=event_id,
        symbol=normalized_symbol,
        anchor_date=anchor_date,
        entry_date=start_date,
        returns=tuple(results),
    )
