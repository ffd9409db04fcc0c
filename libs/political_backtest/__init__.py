"""Event-study backtesting of political-actor securities disclosures."""

from .aggregate import aggregate_by_window, aggregate_forward_return_sets, compute_aggregate_stats
from .anchor import market_date_bounds, resolve_anchors, split_anchor_cohorts
from .benchmark import (
    SECTOR_ETF_MAP,
    PortfolioBenchmarkSelection,
    normalize_portfolio_tickers,
    sector_etf,
    select_benchmarks,
    select_benchmarks_by_ticker,
)
from .core import (
    EventStudyConfig,
    EventStudyRunResult,
    compute_benchmark_relative_returns,
    compute_event_window_returns,
    compute_portfolio_benchmark_relative_rows,
    run_political_event_study_core,
    run_portfolio_event_study_core,
)
from .errors import (
    EventStudyError,
    EventStudyErrorCode,
    InvalidDateError,
    InvalidQuiverRowError,
    InvalidWindowError,
    MissingPriceError,
    MissingRequiredFieldError,
    PoliticalBacktestError,
    PriceSeriesError,
    SessionAlignmentError,
    StatsComputationError,
    TradingCalendarError,
)
from .forward_returns import (
    compute_forward_returns,
    create_close_map,
    forward_return_percent,
    normalize_window_list,
    price_series_from_frame,
    relative_return_percent,
)

# Run history
from .history import (
    build_assumptions,
    build_run_comparison,
    build_run_snapshot,
    compare_runs,
    discover_historical_runs,
    render_summary,
    write_run_artifacts,
)
from .normalize import (
    assert_unique_event_ids,
    normalize_political_events,
    normalize_quiver_row,
    normalize_quiver_rows,
)
from .trading_calendar import align_to_next_session, create_trading_calendar, get_session_by_offset
from .types import (
    AggregateWindow,
    AnchorKind,
    BacktestRunComparison,
    BacktestRunSnapshot,
    BenchmarkMode,
    BenchmarkRelativeReturn,
    BenchmarkSelection,
    DatasetRows,
    EventAnchor,
    EventAnchorMode,
    EventWindowReturn,
    GovernmentTradingDataset,
    NonTradingAlignment,
    PoliticalEvent,
    PriceBar,
    TradingCalendar,
    TransactionSide,
)

__all__ = [
    # Data model
    "AggregateWindow",
    "AnchorKind",
    "BacktestRunComparison",
    "BacktestRunSnapshot",
    "BenchmarkMode",
    "BenchmarkRelativeReturn",
    "BenchmarkSelection",
    "DatasetRows",
    "EventAnchor",
    "EventAnchorMode",
    "EventWindowReturn",
    "GovernmentTradingDataset",
    "NonTradingAlignment",
    "PoliticalEvent",
    "PriceBar",
    "TradingCalendar",
    "TransactionSide",
    # Normalization
    "assert_unique_event_ids",
    "normalize_political_events",
    "normalize_quiver_row",
    "normalize_quiver_rows",
    # Anchors and calendars
    "align_to_next_session",
    "create_trading_calendar",
    "get_session_by_offset",
    "market_date_bounds",
    "resolve_anchors",
    "split_anchor_cohorts",
    # Benchmarks
    "SECTOR_ETF_MAP",
    "PortfolioBenchmarkSelection",
    "normalize_portfolio_tickers",
    "sector_etf",
    "select_benchmarks",
    "select_benchmarks_by_ticker",
    # Returns
    "compute_forward_returns",
    "create_close_map",
    "forward_return_percent",
    "normalize_window_list",
    "price_series_from_frame",
    "relative_return_percent",
    # Aggregation
    "aggregate_by_window",
    "aggregate_forward_return_sets",
    "compute_aggregate_stats",
    # Runs
    "EventStudyConfig",
    "EventStudyRunResult",
    "compute_benchmark_relative_returns",
    "compute_event_window_returns",
    "compute_portfolio_benchmark_relative_rows",
    "run_political_event_study_core",
    "run_portfolio_event_study_core",
    # History
    "build_assumptions",
    "build_run_comparison",
    "build_run_snapshot",
    "compare_runs",
    "discover_historical_runs",
    "render_summary",
    "write_run_artifacts",
    # Errors
    "EventStudyError",
    "EventStudyErrorCode",
    "InvalidDateError",
    "InvalidQuiverRowError",
    "InvalidWindowError",
    "MissingPriceError",
    "MissingRequiredFieldError",
    "PoliticalBacktestError",
    "PriceSeriesError",
    "SessionAlignmentError",
    "StatsComputationError",
    "TradingCalendarError",
]
