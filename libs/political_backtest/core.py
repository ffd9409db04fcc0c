"""Event-study orchestration for political-actor disclosures.

Composes the building blocks into a run:

1. Resolve benchmarks for the subject's sector
2. Align every event anchor to the subject's own trading calendar and read
   forward returns for each window
3. Re-align the same date on each benchmark's calendar and derive excess
   and relative returns
4. Aggregate per (anchor kind, window, benchmark) bucket

Low-level calendar and price errors are re-coded here into
``EventStudyError`` codes (``ANCHOR_OUT_OF_RANGE``, ``WINDOW_OUT_OF_RANGE``,
``INVALID_PRICE_SERIES``, ...) and nothing partial is ever returned.

The core performs no I/O: price histories arrive fully materialized and
every run builds fresh calendars from them.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from libs.common.logging import RunContext, get_run_id, log_with_context
from libs.political_backtest.aggregate import aggregate_by_window
from libs.political_backtest.anchor import resolve_anchors
from libs.political_backtest.benchmark import (
    normalize_portfolio_tickers,
    select_benchmarks,
    select_benchmarks_by_ticker,
)
from libs.political_backtest.errors import (
    EventStudyError,
    EventStudyErrorCode,
    InvalidWindowError,
    PoliticalBacktestError,
    StatsComputationError,
)
from libs.political_backtest.forward_returns import (
    CloseByDate,
    create_close_map,
    forward_return_percent,
    normalize_window_list,
    relative_return_percent,
)
from libs.political_backtest.numeric import round_half_away
from libs.political_backtest.trading_calendar import (
    align_to_next_session,
    create_trading_calendar,
    get_session_by_offset,
)
from libs.political_backtest.types import (
    AggregateWindow,
    BenchmarkMode,
    BenchmarkRelativeReturn,
    BenchmarkSelection,
    EventAnchorMode,
    EventWindowReturn,
    IsoDate,
    NonTradingAlignment,
    PoliticalEvent,
    PriceBar,
    TradingCalendar,
)

logger = logging.getLogger(__name__)

PriceBySymbol = Mapping[str, Sequence[PriceBar | Mapping[str, Any]]]


# =============================================================================
# Configuration
# =============================================================================


@dataclass
class EventStudyConfig:
    """Run parameters for the political event study.

    Enum fields accept their string values and are coerced on init.
    """

    windows: tuple[int, ...] = (1, 5, 20)  # Forward windows in trading sessions
    anchor_mode: EventAnchorMode = EventAnchorMode.BOTH
    benchmark_mode: BenchmarkMode = BenchmarkMode.SPY_PLUS_SECTOR_IF_RELEVANT
    alignment: NonTradingAlignment = NonTradingAlignment.NEXT_SESSION

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        errors = []

        self.windows = tuple(self.windows)
        if not self.windows:
            errors.append("windows must not be empty")
        for window in self.windows:
            if isinstance(window, bool) or not isinstance(window, int) or window < 1:
                errors.append(f"window {window!r} must be an integer >= 1")
        if len(set(self.windows)) != len(self.windows):
            errors.append("windows must not contain duplicates")

        for name, enum_type in (
            ("anchor_mode", EventAnchorMode),
            ("benchmark_mode", BenchmarkMode),
            ("alignment", NonTradingAlignment),
        ):
            try:
                setattr(self, name, enum_type(getattr(self, name)))
            except ValueError:
                allowed = ", ".join(member.value for member in enum_type)
                errors.append(f"{name} must be one of: {allowed}")

        if errors:
            raise ValueError(f"Invalid EventStudyConfig: {'; '.join(errors)}")

    @property
    def sorted_windows(self) -> list[int]:
        return sorted(self.windows)


# =============================================================================
# Result
# =============================================================================


@dataclass
class EventStudyRunResult:
    """Everything one run produces, ready for the artifact store."""

    event_window_returns: list[EventWindowReturn]
    benchmark_relative_returns: list[BenchmarkRelativeReturn]
    aggregates: list[AggregateWindow]
    benchmark_selection: BenchmarkSelection
    run_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "event_window_returns": [row.to_json_dict() for row in self.event_window_returns],
            "benchmark_relative_returns": [row.to_json_dict() for row in self.benchmark_relative_returns],
            "aggregates": [row.to_json_dict() for row in self.aggregates],
            "benchmark_selection": self.benchmark_selection.to_json_dict(),
        }


# =============================================================================
# Price histories
# =============================================================================


@dataclass(frozen=True)
class SymbolHistory:
    """Calendar and closes built from one symbol's bars."""

    symbol: str
    calendar: TradingCalendar
    close_by_date: CloseByDate = field(default_factory=dict)


def _normalize_history_symbol(value: str) -> str:
    symbol = (value or "").strip().upper()
    if not symbol:
        raise EventStudyError("Price history symbol cannot be empty.", EventStudyErrorCode.INVALID_PRICE_SERIES)
    return symbol


def _coerce_bar(bar: PriceBar | Mapping[str, Any], symbol: str, index: int) -> PriceBar:
    if isinstance(bar, PriceBar):
        return bar
    if not isinstance(bar, Mapping):
        raise EventStudyError(
            f"Invalid price row at index {index} for {symbol}.",
            EventStudyErrorCode.INVALID_PRICE_SERIES,
            {"symbol": symbol, "row_index": index},
        )
    try:
        return PriceBar.model_validate({"symbol": symbol, **bar})
    except ValidationError as exc:
        raise EventStudyError(
            f"Invalid price row at index {index} for {symbol}.",
            EventStudyErrorCode.INVALID_PRICE_SERIES,
            {"symbol": symbol, "row_index": index, "errors": exc.error_count()},
        ) from exc


def build_symbol_history(symbol: str, bars: Sequence[PriceBar | Mapping[str, Any]]) -> SymbolHistory:
    """Validate one symbol's bars and build its calendar and close map.

    Bars may arrive in any order; sessions are sorted before the calendar is
    built. Duplicate dates are rejected.

    Raises:
        EventStudyError: MISSING_PRICE_SERIES when ``bars`` is empty,
            INVALID_PRICE_SERIES for anything malformed
    """
    normalized_symbol = _normalize_history_symbol(symbol)
    if not bars:
        raise EventStudyError(
            f"Missing price series for {normalized_symbol}.",
            EventStudyErrorCode.MISSING_PRICE_SERIES,
            {"symbol": normalized_symbol},
        )

    closes: list[tuple[IsoDate, float]] = []
    for index, raw_bar in enumerate(bars):
        bar = _coerce_bar(raw_bar, normalized_symbol, index)
        if not bar.date:
            raise EventStudyError(
                f"Missing date in price row {index} for {normalized_symbol}.",
                EventStudyErrorCode.INVALID_PRICE_SERIES,
                {"symbol": normalized_symbol, "row_index": index},
            )
        if not math.isfinite(bar.adjusted_close) or bar.adjusted_close <= 0:
            raise EventStudyError(
                f"Invalid adjusted close for {normalized_symbol} on {bar.date}.",
                EventStudyErrorCode.INVALID_PRICE_SERIES,
                {"symbol": normalized_symbol, "date": bar.date, "adjusted_close": bar.adjusted_close},
            )
        row_symbol = _normalize_history_symbol(bar.symbol or normalized_symbol)
        if row_symbol != normalized_symbol:
            raise EventStudyError(
                f"Price row symbol mismatch for {normalized_symbol}: {row_symbol}.",
                EventStudyErrorCode.INVALID_PRICE_SERIES,
                {"expected": normalized_symbol, "actual": row_symbol, "date": bar.date},
            )
        closes.append((bar.date, bar.adjusted_close))

    try:
        close_by_date = create_close_map(normalized_symbol, closes)
        calendar = create_trading_calendar(sorted(close_by_date))
    except PoliticalBacktestError as exc:
        raise EventStudyError.wrap(exc, EventStudyErrorCode.INVALID_PRICE_SERIES) from exc

    return SymbolHistory(symbol=normalized_symbol, calendar=calendar, close_by_date=close_by_date)


def build_symbol_histories(price_by_symbol: PriceBySymbol) -> dict[str, SymbolHistory]:
    """Build a ``SymbolHistory`` for every symbol in the mapping."""
    return {
        _normalize_history_symbol(symbol): build_symbol_history(symbol, bars)
        for symbol, bars in price_by_symbol.items()
    }


def _history_for(symbol: str, histories: Mapping[str, SymbolHistory]) -> SymbolHistory:
    normalized = _normalize_history_symbol(symbol)
    history = histories.get(normalized)
    if history is None:
        raise EventStudyError(
            f"Missing required price series for {normalized}.",
            EventStudyErrorCode.MISSING_PRICE_SERIES,
            {"symbol": normalized},
        )
    return history


def _close_at(history: SymbolHistory, session_date: IsoDate, symbol: str) -> float:
    close = history.close_by_date.get(session_date)
    if close is None:
        raise EventStudyError(
            f"Missing close value for {symbol} on {session_date}.",
            EventStudyErrorCode.MISSING_PRICE_SERIES,
            {"symbol": symbol, "date": session_date},
        )
    if not math.isfinite(close) or close <= 0:
        raise EventStudyError(
            f"Invalid close value for {symbol} on {session_date}.",
            EventStudyErrorCode.INVALID_PRICE_SERIES,
            {"symbol": symbol, "date": session_date, "close": close},
        )
    return close


def _ensure_alignment_policy(policy: NonTradingAlignment | str) -> None:
    try:
        NonTradingAlignment(policy)
    except ValueError as exc:
        raise EventStudyError(
            f"Unsupported non-trading alignment policy: {policy}",
            EventStudyErrorCode.INVALID_EVENT_DATE,
            {"policy": str(policy)},
        ) from exc


def _sorted_windows(windows: Sequence[int]) -> list[int]:
    try:
        return sorted(normalize_window_list(windows))
    except InvalidWindowError as exc:
        raise EventStudyError.wrap(exc, EventStudyErrorCode.WINDOW_OUT_OF_RANGE) from exc


def _aggregate_rows(rows: Sequence[BenchmarkRelativeReturn]) -> list[AggregateWindow]:
    try:
        return aggregate_by_window(rows)
    except StatsComputationError as exc:
        raise EventStudyError.wrap(exc, EventStudyErrorCode.INVALID_PRICE_SERIES) from exc


def _window_span(history: SymbolHistory, anchor_date: IsoDate, window_sessions: int) -> tuple[str, str]:
    try:
        alignment = align_to_next_session(history.calendar, anchor_date)
    except PoliticalBacktestError as exc:
        raise EventStudyError.wrap(exc, EventStudyErrorCode.ANCHOR_OUT_OF_RANGE) from exc
    try:
        end = get_session_by_offset(history.calendar, alignment.aligned_index, window_sessions)
    except PoliticalBacktestError as exc:
        raise EventStudyError.wrap(exc, EventStudyErrorCode.WINDOW_OUT_OF_RANGE) from exc
    return alignment.aligned_date, end.date


# =============================================================================
# Returns
# =============================================================================


def _event_window_rows(
    events: Sequence[PoliticalEvent],
    anchor_mode: EventAnchorMode | str,
    windows: list[int],
    histories: Mapping[str, SymbolHistory],
) -> list[EventWindowReturn]:
    anchors = resolve_anchors(events, anchor_mode)
    rows: list[EventWindowReturn] = []

    for anchor in anchors:
        history = _history_for(anchor.ticker, histories)
        try:
            alignment = align_to_next_session(history.calendar, anchor.anchor_date)
        except PoliticalBacktestError as exc:
            raise EventStudyError.wrap(exc, EventStudyErrorCode.ANCHOR_OUT_OF_RANGE) from exc

        for window_sessions in windows:
            try:
                end = get_session_by_offset(history.calendar, alignment.aligned_index, window_sessions)
            except PoliticalBacktestError as exc:
                raise EventStudyError.wrap(exc, EventStudyErrorCode.WINDOW_OUT_OF_RANGE) from exc

            start_close = _close_at(history, alignment.aligned_date, anchor.ticker)
            end_close = _close_at(history, end.date, anchor.ticker)
            rows.append(
                EventWindowReturn(
                    event_id=anchor.event_id,
                    ticker=anchor.ticker,
                    anchor_kind=anchor.anchor_kind,
                    anchor_date=anchor.anchor_date,
                    aligned_anchor_date=alignment.aligned_date,
                    window_sessions=window_sessions,
                    start_close=start_close,
                    end_close=end_close,
                    forward_return_percent=forward_return_percent(start_close, end_close),
                )
            )

    return rows


def compute_event_window_returns(
    events: Sequence[PoliticalEvent],
    anchor_mode: EventAnchorMode | str,
    windows: Sequence[int],
    alignment: NonTradingAlignment | str,
    price_by_symbol: PriceBySymbol,
) -> list[EventWindowReturn]:
    """One forward-return row per (anchor, window) on the subject's calendar.

    Windows are deduplicated-checked and processed in ascending order.

    Raises:
        EventStudyError: ANCHOR_OUT_OF_RANGE if an anchor cannot be aligned,
            WINDOW_OUT_OF_RANGE if a window runs past the series,
            MISSING_PRICE_SERIES / INVALID_PRICE_SERIES for price problems,
            plus anchor-resolution codes
    """
    _ensure_alignment_policy(alignment)
    histories = build_symbol_histories(price_by_symbol)
    return _event_window_rows(events, anchor_mode, _sorted_windows(windows), histories)


def _benchmark_relative_rows(
    base: Sequence[EventWindowReturn],
    benchmark_symbols: Sequence[str],
    histories: Mapping[str, SymbolHistory],
) -> list[BenchmarkRelativeReturn]:
    out: list[BenchmarkRelativeReturn] = []
    for row in base:
        for benchmark_symbol in benchmark_symbols:
            history = _history_for(benchmark_symbol, histories)
            # Benchmarks may trade a different session set; align on their own calendar.
            start_date, end_date = _window_span(history, row.aligned_anchor_date, row.window_sessions)
            benchmark_return = forward_return_percent(
                _close_at(history, start_date, benchmark_symbol),
                _close_at(history, end_date, benchmark_symbol),
            )
            out.append(
                BenchmarkRelativeReturn(
                    **row.model_dump(),
                    benchmark_symbol=benchmark_symbol,
                    benchmark_return_percent=benchmark_return,
                    excess_return_percent=round_half_away(row.forward_return_percent - benchmark_return),
                    relative_return_percent=relative_return_percent(row.forward_return_percent, benchmark_return),
                )
            )
    return out


def compute_benchmark_relative_returns(
    base: Sequence[EventWindowReturn],
    benchmark_symbols: Sequence[str],
    alignment: NonTradingAlignment | str,
    price_by_symbol: PriceBySymbol,
) -> list[BenchmarkRelativeReturn]:
    """One row per (window-return row, benchmark).

    Excess return is the arithmetic difference of the two rounded forward
    returns; relative return is their compounded ratio.

    Raises:
        EventStudyError: MISSING_BENCHMARK_SERIES without benchmark symbols,
            MISSING_PRICE_SERIES if a benchmark has no bars, plus the
            alignment and price codes of ``compute_event_window_returns``
    """
    _ensure_alignment_policy(alignment)
    if not benchmark_symbols:
        raise EventStudyError(
            "At least one benchmark symbol is required.",
            EventStudyErrorCode.MISSING_BENCHMARK_SERIES,
        )
    return _benchmark_relative_rows(base, benchmark_symbols, build_symbol_histories(price_by_symbol))


# =============================================================================
# Runs
# =============================================================================


def run_political_event_study_core(
    events: Sequence[PoliticalEvent],
    price_by_symbol: PriceBySymbol,
    sector: str | None = None,
    config: EventStudyConfig | None = None,
    sector_to_etf: Mapping[str, str] | None = None,
    run_id: str | None = None,
) -> EventStudyRunResult:
    """Run the single-ticker event study end to end.

    Args:
        events: Normalized events for one subject ticker
        price_by_symbol: Bars for the subject and every benchmark symbol
        sector: Subject's sector label, if known
        config: Windows, anchor, benchmark and alignment policy
        sector_to_etf: Optional override of the sector ETF table
        run_id: Correlation id for log lines; generated when absent

    Raises:
        EventStudyError: Any failure; partial results are never returned

    Example:
        >>> result = run_political_event_study_core(
        ...     events, prices, sector="Financial",
        ...     config=EventStudyConfig(windows=(1, 5), anchor_mode="transaction"),
        ... )
        >>> result.benchmark_selection.symbols
        ['SPY', 'XLF']
    """
    config = config or EventStudyConfig()
    with RunContext(run_id or get_run_id()) as active_run_id:
        windows = config.sorted_windows
        selection = select_benchmarks(sector, config.benchmark_mode, sector_to_etf)
        log_with_context(
            logger,
            "INFO",
            "Event study run started",
            events=len(events),
            windows=windows,
            anchor_mode=config.anchor_mode.value,
            benchmarks=selection.symbols,
        )

        _ensure_alignment_policy(config.alignment)
        histories = build_symbol_histories(price_by_symbol)
        event_window_returns = _event_window_rows(events, config.anchor_mode, windows, histories)
        benchmark_relative = _benchmark_relative_rows(event_window_returns, selection.symbols, histories)
        if not benchmark_relative:
            raise EventStudyError(
                "No benchmark-relative rows were produced for this backtest run.",
                EventStudyErrorCode.MISSING_BENCHMARK_SERIES,
                {"benchmarks": selection.symbols},
            )
        aggregates = _aggregate_rows(benchmark_relative)

        log_with_context(
            logger,
            "INFO",
            "Event study run completed",
            window_rows=len(event_window_returns),
            benchmark_rows=len(benchmark_relative),
            buckets=len(aggregates),
        )
        return EventStudyRunResult(
            event_window_returns=event_window_returns,
            benchmark_relative_returns=benchmark_relative,
            aggregates=aggregates,
            benchmark_selection=selection,
            run_id=active_run_id,
        )


def compute_portfolio_benchmark_relative_rows(
    tickers: Sequence[str],
    event_window_returns: Sequence[EventWindowReturn],
    benchmark_symbols_by_ticker: Mapping[str, Sequence[str]],
    alignment: NonTradingAlignment | str,
    price_by_symbol: PriceBySymbol,
) -> list[BenchmarkRelativeReturn]:
    """Benchmark-relative rows where each ticker uses its own benchmark set.

    Tickers and ``benchmark_symbols_by_ticker`` keys are matched against the
    upper-cased row tickers.

    Raises:
        EventStudyError: EMPTY_EVENT_SET if a ticker produced no window rows,
            MISSING_BENCHMARK_SERIES if a ticker has no benchmarks or nothing
            was produced
    """
    _ensure_alignment_policy(alignment)
    histories = build_symbol_histories(price_by_symbol)
    benchmarks_by_ticker = {
        (key or "").strip().upper(): symbols for key, symbols in benchmark_symbols_by_ticker.items()
    }
    out: list[BenchmarkRelativeReturn] = []

    for ticker in normalize_portfolio_tickers(tickers):
        scoped_rows = [row for row in event_window_returns if row.ticker == ticker]
        if not scoped_rows:
            raise EventStudyError(
                f"No event-window rows were produced for {ticker} in portfolio mode.",
                EventStudyErrorCode.EMPTY_EVENT_SET,
                {"ticker": ticker},
            )
        benchmark_symbols = list(benchmarks_by_ticker.get(ticker) or [])
        if not benchmark_symbols:
            raise EventStudyError(
                f"No scoped benchmark symbols were resolved for {ticker}.",
                EventStudyErrorCode.MISSING_BENCHMARK_SERIES,
                {"ticker": ticker},
            )
        scoped_relative = _benchmark_relative_rows(scoped_rows, benchmark_symbols, histories)
        if not scoped_relative:
            raise EventStudyError(
                f"No benchmark-relative rows were produced for {ticker} in portfolio mode.",
                EventStudyErrorCode.MISSING_BENCHMARK_SERIES,
                {"ticker": ticker, "benchmarks": benchmark_symbols},
            )
        out.extend(scoped_relative)

    if not out:
        raise EventStudyError(
            "No benchmark-relative rows were produced for this backtest run.",
            EventStudyErrorCode.MISSING_BENCHMARK_SERIES,
        )
    return out


def run_portfolio_event_study_core(
    events: Sequence[PoliticalEvent],
    tickers: Sequence[str],
    price_by_symbol: PriceBySymbol,
    sectors_by_ticker: Mapping[str, str | None],
    config: EventStudyConfig | None = None,
    sector_to_etf: Mapping[str, str] | None = None,
    run_id: str | None = None,
) -> EventStudyRunResult:
    """Run the event study over several tickers, each with its own benchmarks.

    The returned ``benchmark_selection`` carries the union of benchmark
    symbols and one rationale line per ticker.
    """
    config = config or EventStudyConfig()
    with RunContext(run_id or get_run_id()) as active_run_id:
        windows = config.sorted_windows
        tickers = normalize_portfolio_tickers(tickers)
        portfolio = select_benchmarks_by_ticker(tickers, config.benchmark_mode, sectors_by_ticker, sector_to_etf)
        log_with_context(
            logger,
            "INFO",
            "Portfolio event study run started",
            tickers=tickers,
            events=len(events),
            windows=windows,
            benchmarks=portfolio.symbols,
        )

        event_window_returns = compute_event_window_returns(
            events, config.anchor_mode, windows, config.alignment, price_by_symbol
        )
        benchmark_relative = compute_portfolio_benchmark_relative_rows(
            tickers,
            event_window_returns,
            portfolio.symbols_by_ticker(),
            config.alignment,
            price_by_symbol,
        )
        aggregates = _aggregate_rows(benchmark_relative)

        log_with_context(
            logger,
            "INFO",
            "Portfolio event study run completed",
            window_rows=len(event_window_returns),
            benchmark_rows=len(benchmark_relative),
            buckets=len(aggregates),
        )
        return EventStudyRunResult(
            event_window_returns=event_window_returns,
            benchmark_relative_returns=benchmark_relative,
            aggregates=aggregates,
            benchmark_selection=portfolio.as_selection(),
            run_id=active_run_id,
        )
