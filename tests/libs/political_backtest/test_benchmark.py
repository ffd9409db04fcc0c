"""Tests for benchmark selection."""

import pytest

from libs.political_backtest.benchmark import (
    SECTOR_ETF_MAP,
    normalize_portfolio_tickers,
    normalize_sector,
    sector_etf,
    select_benchmarks,
    select_benchmarks_by_ticker,
)
from libs.political_backtest.errors import EventStudyError, EventStudyErrorCode
from libs.political_backtest.types import BenchmarkMode


class TestSectorEtf:
    def test_sector_lookup_is_normalized(self) -> None:
        assert sector_etf("Financial") == "XLF"
        assert sector_etf("  Consumer   Staples ") == "XLP"

    def test_unknown_or_blank_sector(self) -> None:
        assert sector_etf("Crypto") is None
        assert sector_etf(None) is None
        assert normalize_sector("   ") is None

    def test_custom_mapping(self) -> None:
        assert sector_etf("technology", {"technology": "SMH"}) == "SMH"

    def test_default_table_covers_core_sectors(self) -> None:
        assert len(SECTOR_ETF_MAP) == 12
        assert SECTOR_ETF_MAP["technology"] == "XLK"


class TestSelectBenchmarks:
    def test_spy_only_ignores_sector(self) -> None:
        selection = select_benchmarks("Financial", BenchmarkMode.SPY_ONLY)

        assert selection.symbols == ["SPY"]
        assert selection.sector == "financial"
        assert selection.sector_etf is None
        assert selection.rationale[-1] == "Sector benchmark disabled by benchmark mode."

    def test_sector_added_when_relevant(self) -> None:
        selection = select_benchmarks("Financial", "spy_plus_sector_if_relevant")

        assert selection.symbols == ["SPY", "XLF"]
        assert selection.sector == "financial"
        assert selection.sector_etf == "XLF"

    def test_relevant_mode_falls_back_without_sector(self) -> None:
        selection = select_benchmarks(None, BenchmarkMode.SPY_PLUS_SECTOR_IF_RELEVANT)

        assert selection.symbols == ["SPY"]
        assert "sector metadata is unavailable" in selection.rationale[-1]

    def test_relevant_mode_falls_back_without_mapping(self) -> None:
        selection = select_benchmarks("Crypto", BenchmarkMode.SPY_PLUS_SECTOR_IF_RELEVANT)

        assert selection.symbols == ["SPY"]
        assert selection.sector == "crypto"
        assert "no configured ETF mapping" in selection.rationale[-1]

    def test_required_mode_fails_without_sector(self) -> None:
        with pytest.raises(EventStudyError) as exc_info:
            select_benchmarks(None, BenchmarkMode.SPY_PLUS_SECTOR_REQUIRED)

        assert exc_info.value.code is EventStudyErrorCode.MISSING_BENCHMARK_MAPPING

    def test_required_mode_fails_without_mapping(self) -> None:
        with pytest.raises(EventStudyError) as exc_info:
            select_benchmarks("Crypto", BenchmarkMode.SPY_PLUS_SECTOR_REQUIRED)

        assert exc_info.value.code is EventStudyErrorCode.MISSING_BENCHMARK_MAPPING
        assert exc_info.value.details == {"mode": "spy_plus_sector_required", "sector": "crypto"}

    def test_spy_mapped_sector_is_not_duplicated(self) -> None:
        selection = select_benchmarks("broad", BenchmarkMode.SPY_PLUS_SECTOR_REQUIRED, {"broad": "SPY"})

        assert selection.symbols == ["SPY"]
        assert selection.sector_etf == "SPY"


class TestSelectBenchmarksByTicker:
    def test_union_keeps_first_seen_order(self) -> None:
        portfolio = select_benchmarks_by_ticker(
            ["JPM", "NVDA", "BAC"],
            BenchmarkMode.SPY_PLUS_SECTOR_IF_RELEVANT,
            {"JPM": "Financial", "NVDA": "Technology", "BAC": "Financial"},
        )

        assert portfolio.symbols == ["SPY", "XLF", "XLK"]
        assert portfolio.symbols_by_ticker() == {
            "JPM": ["SPY", "XLF"],
            "NVDA": ["SPY", "XLK"],
            "BAC": ["SPY", "XLF"],
        }
        assert portfolio.rationale[0].startswith("JPM: SPY baseline included")

    def test_tickers_and_sector_keys_are_case_insensitive(self) -> None:
        portfolio = select_benchmarks_by_ticker(
            ["jpm", "Nvda"],
            BenchmarkMode.SPY_PLUS_SECTOR_IF_RELEVANT,
            {"JPM": "Financial", "nvda": "Technology"},
        )

        assert portfolio.symbols_by_ticker() == {"JPM": ["SPY", "XLF"], "NVDA": ["SPY", "XLK"]}

    def test_missing_sector_entry_is_treated_as_unknown(self) -> None:
        portfolio = select_benchmarks_by_ticker(["XYZ"], "spy_plus_sector_if_relevant", {})

        assert portfolio.by_ticker["XYZ"].symbols == ["SPY"]

    def test_required_mode_propagates_mapping_error(self) -> None:
        with pytest.raises(EventStudyError) as exc_info:
            select_benchmarks_by_ticker(["XYZ"], BenchmarkMode.SPY_PLUS_SECTOR_REQUIRED, {"XYZ": None})

        assert exc_info.value.code is EventStudyErrorCode.MISSING_BENCHMARK_MAPPING

    def test_as_selection_carries_union(self) -> None:
        portfolio = select_benchmarks_by_ticker(["JPM"], BenchmarkMode.SPY_ONLY, {"JPM": "Financial"})

        selection = portfolio.as_selection()

        assert selection.symbols == ["SPY"]
        assert selection.sector is None


class TestNormalizePortfolioTickers:
    def test_trims_uppercases_and_drops_repeats(self) -> None:
        assert normalize_portfolio_tickers([" jpm", "NVDA", "Jpm ", "brk.b"]) == ["JPM", "NVDA", "BRK.B"]

    @pytest.mark.parametrize("tickers", [[], ["JPM", " "], [""]])
    def test_empty_or_blank_entries_fail(self, tickers: list[str]) -> None:
        with pytest.raises(EventStudyError) as exc_info:
            normalize_portfolio_tickers(tickers)

        assert exc_info.value.code is EventStudyErrorCode.EMPTY_EVENT_SET
