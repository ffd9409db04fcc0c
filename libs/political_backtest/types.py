"""Data model for the political-event backtest.

Records that cross the boundary to the (external) I/O, persistence and
rendering layers are frozen pydantic models so they validate on the way in
and dump to JSON on the way out. Purely internal value objects (calendars,
alignments, statistic bundles) are plain dataclasses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import numpy as np
from numpy.typing import NDArray
from pydantic import BaseModel, ConfigDict, Field, field_validator

IsoDate = str


# =============================================================================
# Enums
# =============================================================================


class TransactionSide(str, Enum):
    """Direction of a disclosed transaction."""

    BUY = "buy"
    SELL = "sell"
    OTHER = "other"


class AnchorKind(str, Enum):
    """Which event date a forward window is measured from."""

    TRANSACTION = "transaction"
    REPORT = "report"


class EventAnchorMode(str, Enum):
    """Anchor policy: which date types produce anchors for each event."""

    TRANSACTION = "transaction"
    REPORT = "report"
    BOTH = "both"

    @property
    def kinds(self) -> tuple[AnchorKind, ...]:
        if self is EventAnchorMode.TRANSACTION:
            return (AnchorKind.TRANSACTION,)
        if self is EventAnchorMode.REPORT:
            return (AnchorKind.REPORT,)
        return (AnchorKind.TRANSACTION, AnchorKind.REPORT)


class NonTradingAlignment(str, Enum):
    """How non-trading anchor dates are mapped onto sessions."""

    NEXT_SESSION = "next_session"  # Roll forward; never look back


class BenchmarkMode(str, Enum):
    """Benchmark selection policy."""

    SPY_ONLY = "spy_only"
    SPY_PLUS_SECTOR_IF_RELEVANT = "spy_plus_sector_if_relevant"
    SPY_PLUS_SECTOR_REQUIRED = "spy_plus_sector_required"


class ConclusionView(str, Enum):
    """Sign of a bucket's mean excess return."""

    OUTPERFORM = "outperform"
    UNDERPERFORM = "underperform"
    FLAT = "flat"

    @classmethod
    def from_excess(cls, value: float) -> ConclusionView:
        if value > 0:
            return cls.OUTPERFORM
        if value < 0:
            return cls.UNDERPERFORM
        return cls.FLAT


class GovernmentTradingDataset(str, Enum):
    """Closed set of disclosure datasets the event study understands."""

    GLOBAL_CONGRESS_TRADING = "global_congress_trading"
    GLOBAL_SENATE_TRADING = "global_senate_trading"
    GLOBAL_HOUSE_TRADING = "global_house_trading"
    TICKER_CONGRESS_TRADING = "ticker_congress_trading"
    TICKER_SENATE_TRADING = "ticker_senate_trading"
    TICKER_HOUSE_TRADING = "ticker_house_trading"
    TICKER_LOBBYING = "ticker_lobbying"
    TICKER_GOV_CONTRACTS = "ticker_gov_contracts"
    TICKER_OFF_EXCHANGE = "ticker_off_exchange"
    INSIDERS_FORM4 = "insiders_form4"

    @property
    def label(self) -> str:
        return _DATASET_LABELS[self]


_DATASET_LABELS: dict[GovernmentTradingDataset, str] = {
    GovernmentTradingDataset.GLOBAL_CONGRESS_TRADING: "Global Congress Trading",
    GovernmentTradingDataset.GLOBAL_SENATE_TRADING: "Global Senate Trading",
    GovernmentTradingDataset.GLOBAL_HOUSE_TRADING: "Global House Trading",
    GovernmentTradingDataset.TICKER_CONGRESS_TRADING: "Ticker Congress Trading",
    GovernmentTradingDataset.TICKER_SENATE_TRADING: "Ticker Senate Trading",
    GovernmentTradingDataset.TICKER_HOUSE_TRADING: "Ticker House Trading",
    GovernmentTradingDataset.TICKER_LOBBYING: "Ticker Lobbying",
    GovernmentTradingDataset.TICKER_GOV_CONTRACTS: "Ticker Government Contracts",
    GovernmentTradingDataset.TICKER_OFF_EXCHANGE: "Ticker Off-Exchange Activity",
    GovernmentTradingDataset.INSIDERS_FORM4: "Live Insider Form 4",
}


# =============================================================================
# Boundary records (pydantic)
# =============================================================================


class _FrozenRecord(BaseModel):
    model_config = ConfigDict(frozen=True, use_enum_values=False)

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class PoliticalEvent(_FrozenRecord):
    """Canonical disclosure event produced from one raw row."""

    event_id: str
    ticker: str
    source_dataset_id: str
    actor: str | None = None
    side: TransactionSide
    transaction_date: IsoDate | None = None
    report_date: IsoDate | None = None
    shares: float | None = None

    @property
    def sort_date(self) -> str:
        return self.transaction_date or self.report_date or ""


class EventAnchor(_FrozenRecord):
    event_id: str
    ticker: str
    anchor_kind: AnchorKind
    anchor_date: IsoDate


class PriceBar(_FrozenRecord):
    """One daily bar. ``adjusted_close`` is validated downstream, not here."""

    symbol: str
    date: IsoDate
    adjusted_close: float


class EventWindowReturn(_FrozenRecord):
    event_id: str
    ticker: str
    anchor_kind: AnchorKind
    anchor_date: IsoDate
    aligned_anchor_date: IsoDate
    window_sessions: int
    start_close: float
    end_close: float
    forward_return_percent: float


class BenchmarkRelativeReturn(EventWindowReturn):
    benchmark_symbol: str
    benchmark_return_percent: float
    excess_return_percent: float
    relative_return_percent: float


class AggregateWindow(_FrozenRecord):
    """Summary statistics for one (anchor_kind, window, benchmark) bucket."""

    anchor_kind: AnchorKind
    window_sessions: int
    benchmark_symbol: str
    sample_size: int = 0
    hit_rate_percent: float = 0.0
    mean_return_percent: float = 0.0
    median_return_percent: float = 0.0
    stdev_return_percent: float = 0.0
    mean_excess_return_percent: float = 0.0
    mean_relative_return_percent: float = 0.0

    @property
    def bucket_key(self) -> str:
        return aggregate_key(self.anchor_kind, self.window_sessions, self.benchmark_symbol)


def aggregate_key(anchor_kind: AnchorKind | str, window_sessions: int, benchmark_symbol: str) -> str:
    """Stable string key for an aggregate bucket, e.g. ``transaction|5|SPY``."""
    kind = anchor_kind.value if isinstance(anchor_kind, AnchorKind) else anchor_kind
    return f"{kind}|{window_sessions}|{benchmark_symbol}"


class BenchmarkSelection(_FrozenRecord):
    symbols: list[str]
    rationale: list[str]
    sector: str | None = None
    sector_etf: str | None = None


class BacktestRunSnapshot(_FrozenRecord):
    """What a finished run exposes to later comparisons."""

    workflow: str = "financial_political_backtest"
    output_root: str
    generated_at: str
    aggregates: list[AggregateWindow]
    event_ids: list[str]

    @field_validator("event_ids")
    @classmethod
    def dedupe_and_sort(cls, value: list[str]) -> list[str]:
        """Event ids are stored deduplicated and sorted regardless of input order."""
        return sorted({item.strip() for item in value if item and item.strip()})


class RunBaseline(_FrozenRecord):
    output_root: str
    generated_at: str


class AggregateDrift(_FrozenRecord):
    key: str
    anchor_kind: AnchorKind
    window_sessions: int
    benchmark_symbol: str
    baseline_sample_size: int
    current_sample_size: int
    sample_delta: int
    hit_rate_delta: float
    median_return_delta: float
    mean_excess_delta: float


class ConclusionChange(_FrozenRecord):
    key: str
    benchmark_symbol: str
    window_sessions: int
    anchor_kind: AnchorKind
    baseline_view: ConclusionView
    current_view: ConclusionView


class EventSampleDiff(_FrozenRecord):
    current: int
    baseline: int
    new_events: list[str] = Field(default_factory=list)
    removed_events: list[str] = Field(default_factory=list)
    persisted_events: list[str] = Field(default_factory=list)


class BacktestRunComparison(_FrozenRecord):
    first_run: bool
    baseline: RunBaseline | None = None
    aggregate_drift: list[AggregateDrift] = Field(default_factory=list)
    event_sample: EventSampleDiff
    conclusion_changes: list[ConclusionChange] = Field(default_factory=list)


# =============================================================================
# Internal value objects (dataclasses)
# =============================================================================


@dataclass(frozen=True, eq=False)
class TradingCalendar:
    """Strictly increasing, duplicate-free trading sessions for one symbol.

    ``session_epoch_days`` is parallel to ``sessions`` and backs the binary
    search in ``align_to_next_session``.
    """

    sessions: tuple[IsoDate, ...]
    session_epoch_days: NDArray[np.int64]
    session_index_by_date: dict[IsoDate, int]

    def __len__(self) -> int:
        return len(self.sessions)

    @property
    def first_session(self) -> IsoDate:
        return self.sessions[0]

    @property
    def last_session(self) -> IsoDate:
        return self.sessions[-1]


@dataclass(frozen=True)
class SessionAlignment:
    input_date: IsoDate
    aligned_date: IsoDate
    aligned_index: int
    shifted: bool


@dataclass(frozen=True)
class SessionLookup:
    index: int
    date: IsoDate


@dataclass(frozen=True)
class NormalizedQuiverEvent:
    """One normalized disclosure row with its provenance."""

    event_id: str
    symbol: str
    source_dataset_id: str
    source_dataset_label: str
    source_row_index: int
    transaction_date: IsoDate | None
    report_date: IsoDate | None
    transaction_type: TransactionSide
    actor: str | None


@dataclass
class DatasetRows:
    """Raw rows from one disclosure dataset for one ticker."""

    dataset_id: str
    rows: list[dict[str, Any]]
    label: str | None = None

    @classmethod
    def for_dataset(cls, dataset: GovernmentTradingDataset, rows: list[dict[str, Any]]) -> DatasetRows:
        return cls(dataset_id=dataset.value, rows=rows, label=dataset.label)


@dataclass(frozen=True)
class AggregateStats:
    sample_count: int
    hit_rate: float
    mean: float
    median: float
    stdev: float


@dataclass(frozen=True)
class WindowForwardReturn:
    """Raw (unrounded, fractional) forward returns for one window."""

    window_sessions: int
    start_date: IsoDate
    end_date: IsoDate
    symbol_return: float
    spy_return: float
    relative_return: float


@dataclass(frozen=True)
class EventForwardReturnSet:
    event_id: str
    symbol: str
    anchor_date: IsoDate
    entry_date: IsoDate
    returns: tuple[WindowForwardReturn, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class WindowAggregateStats:
    window_sessions: int
    symbol_return: AggregateStats
    spy_return: AggregateStats
    relative_return: AggregateStats
