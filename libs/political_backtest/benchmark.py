"""Benchmark selection: SPY always, plus the mapped sector ETF when policy asks for it."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from libs.political_backtest.errors import EventStudyError, EventStudyErrorCode
from libs.political_backtest.types import BenchmarkMode, BenchmarkSelection

logger = logging.getLogger(__name__)

BASELINE_BENCHMARK = "SPY"

SECTOR_ETF_MAP: dict[str, str] = {
    "communication services": "XLC",
    "consumer": "XLY",
    "consumer discretionary": "XLY",
    "consumer staples": "XLP",
    "energy": "XLE",
    "financial": "XLF",
    "healthcare": "XLV",
    "industrials": "XLI",
    "materials": "XLB",
    "real estate": "XLRE",
    "technology": "XLK",
    "utilities": "XLU",
}

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_sector(value: str | None) -> str | None:
    """Lower-case, trim and collapse whitespace; blank becomes ``None``."""
    if not value:
        return None
    normalized = _WHITESPACE_RE.sub(" ", value.strip().lower())
    return normalized or None


def sector_etf(sector: str | None, mapping: Mapping[str, str] | None = None) -> str | None:
    """ETF mapped to ``sector``, or ``None`` when unknown or unmapped.

    Example:
        >>> sector_etf("  Real   Estate ")
        'XLRE'
    """
    normalized = normalize_sector(sector)
    if normalized is None:
        return None
    return (SECTOR_ETF_MAP if mapping is None else mapping).get(normalized)


def select_benchmarks(
    sector: str | None,
    mode: BenchmarkMode | str,
    sector_to_etf: Mapping[str, str] | None = None,
) -> BenchmarkSelection:
    """Resolve benchmark symbols for one subject.

    SPY is always first. ``spy_plus_sector_if_relevant`` degrades to SPY only
    when the sector is unknown or unmapped, noting why in ``rationale``;
    ``spy_plus_sector_required`` fails instead.

    Raises:
        EventStudyError: MISSING_BENCHMARK_MAPPING in required mode without a mapping
    """
    benchmark_mode = BenchmarkMode(mode)
    mapping = SECTOR_ETF_MAP if sector_to_etf is None else sector_to_etf
    normalized = normalize_sector(sector)
    symbols = [BASELINE_BENCHMARK]
    rationale = ["SPY baseline included for all runs."]

    if benchmark_mode is BenchmarkMode.SPY_ONLY:
        rationale.append("Sector benchmark disabled by benchmark mode.")
        return BenchmarkSelection(symbols=symbols, rationale=rationale, sector=normalized, sector_etf=None)

    required = benchmark_mode is BenchmarkMode.SPY_PLUS_SECTOR_REQUIRED
    if normalized is None:
        if required:
            raise EventStudyError(
                "Sector benchmark is required but sector metadata is unavailable.",
                EventStudyErrorCode.MISSING_BENCHMARK_MAPPING,
                {"mode": benchmark_mode.value},
            )
        rationale.append("Sector benchmark not added because sector metadata is unavailable.")
        return BenchmarkSelection(symbols=symbols, rationale=rationale, sector=None, sector_etf=None)

    etf = mapping.get(normalized)
    if not etf:
        if required:
            raise EventStudyError(
                f"No sector ETF mapping exists for sector '{normalized}'.",
                EventStudyErrorCode.MISSING_BENCHMARK_MAPPING,
                {"mode": benchmark_mode.value, "sector": normalized},
            )
        rationale.append(f"Sector '{normalized}' has no configured ETF mapping; using SPY only.")
        return BenchmarkSelection(symbols=symbols, rationale=rationale, sector=normalized, sector_etf=None)

    if etf != BASELINE_BENCHMARK:
        symbols.append(etf)
    rationale.append(f"Sector benchmark '{etf}' added for sector '{normalized}'.")
    return BenchmarkSelection(symbols=symbols, rationale=rationale, sector=normalized, sector_etf=etf)


@dataclass
class PortfolioBenchmarkSelection:
    """Per-ticker selections plus the union of symbols the fetch layer must load."""

    by_ticker: dict[str, BenchmarkSelection]
    symbols: list[str] = field(default_factory=list)
    rationale: list[str] = field(default_factory=list)

    def symbols_by_ticker(self) -> dict[str, list[str]]:
        return {ticker: list(selection.symbols) for ticker, selection in self.by_ticker.items()}

    def as_selection(self) -> BenchmarkSelection:
        return BenchmarkSelection(symbols=list(self.symbols), rationale=list(self.rationale))


def normalize_portfolio_tickers(tickers: Sequence[str]) -> list[str]:
    """Trimmed, upper-cased tickers in first-seen order with repeats dropped.

    Raises:
        EventStudyError: EMPTY_EVENT_SET for an empty list or a blank entry
    """
    normalized: list[str] = []
    for value in tickers:
        ticker = (value or "").strip().upper()
        if not ticker:
            raise EventStudyError(
                "Portfolio tickers cannot be blank.",
                EventStudyErrorCode.EMPTY_EVENT_SET,
                {"tickers": list(tickers)},
            )
        if ticker not in normalized:
            normalized.append(ticker)
    if not normalized:
        raise EventStudyError("Portfolio mode requires at least one ticker.", EventStudyErrorCode.EMPTY_EVENT_SET)
    return normalized


def select_benchmarks_by_ticker(
    tickers: Sequence[str],
    mode: BenchmarkMode | str,
    sectors_by_ticker: Mapping[str, str | None],
    sector_to_etf: Mapping[str, str] | None = None,
) -> PortfolioBenchmarkSelection:
    """Run ``select_benchmarks`` for every ticker of a portfolio.

    Tickers and ``sectors_by_ticker`` keys are matched case-insensitively;
    results are keyed by the upper-cased ticker.

    Raises:
        EventStudyError: EMPTY_EVENT_SET for a blank ticker list,
            MISSING_BENCHMARK_SERIES if a ticker resolves no symbols,
            or whatever ``select_benchmarks`` raises for it
    """
    benchmark_mode = BenchmarkMode(mode)
    sectors = {(key or "").strip().upper(): sector for key, sector in sectors_by_ticker.items()}
    by_ticker: dict[str, BenchmarkSelection] = {}
    symbols: list[str] = []
    rationale: list[str] = []

    for ticker in normalize_portfolio_tickers(tickers):
        selection = select_benchmarks(sectors.get(ticker), benchmark_mode, sector_to_etf)
        if not selection.symbols:
            raise EventStudyError(
                f"No benchmark symbols were resolved for {ticker}.",
                EventStudyErrorCode.MISSING_BENCHMARK_SERIES,
                {"ticker": ticker, "benchmark_mode": benchmark_mode.value},
            )
        by_ticker[ticker] = selection
        for symbol in selection.symbols:
            if symbol not in symbols:
                symbols.append(symbol)
        rationale.append(f"{ticker}: {' '.join(selection.rationale)}")

    logger.debug(
        "Resolved portfolio benchmarks",
        extra={"context": {"tickers": len(by_ticker), "symbols": symbols}},
    )
    return PortfolioBenchmarkSelection(by_ticker=by_ticker, symbols=symbols, rationale=rationale)
