"""Tests for bucket statistics."""

import math

import pytest

from libs.political_backtest.aggregate import (
    aggregate_by_window,
    aggregate_forward_return_sets,
    compute_aggregate_stats,
)
from libs.political_backtest.errors import StatsComputationError
from libs.political_backtest.types import (
    AnchorKind,
    BenchmarkRelativeReturn,
    EventForwardReturnSet,
    WindowForwardReturn,
)


def _relative_row(
    *,
    event_id: str = "evt",
    anchor_kind: AnchorKind = AnchorKind.TRANSACTION,
    window: int = 5,
    benchmark: str = "SPY",
    forward: float = 1.0,
    excess: float = 0.5,
    relative: float = 0.4,
) -> BenchmarkRelativeReturn:
    return BenchmarkRelativeReturn(
        event_id=event_id,
        ticker="TEST",
        anchor_kind=anchor_kind,
        anchor_date="2025-01-03",
        aligned_anchor_date="2025-01-03",
        window_sessions=window,
        start_close=100.0,
        end_close=100.0 + forward,
        forward_return_percent=forward,
        benchmark_symbol=benchmark,
        benchmark_return_percent=forward - excess,
        excess_return_percent=excess,
        relative_return_percent=relative,
    )


def _return_set(event_id: str, values: list[tuple[int, float, float]]) -> EventForwardReturnSet:
    return EventForwardReturnSet(
        event_id=event_id,
        symbol="TEST",
        anchor_date="2025-01-02",
        entry_date="2025-01-02",
        returns=tuple(
            WindowForwardReturn(
                window_sessions=window,
                start_date="2025-01-02",
                end_date="2025-01-03",
                symbol_return=symbol_return,
                spy_return=spy_return,
                relative_return=symbol_return - spy_return,
            )
            for window, symbol_return, spy_return in values
        ),
    )


_STAT_SAMPLES = [
    [2.5],
    [-3.0, -1.25, -7.5],
    [-3.0, -1.25, -7.5, -0.5],
    [0.0, 0.0, 0.0],
    [4.0, -2.0, 0.0, 9.5, -6.25],
    [1.5, 1.5, -1.5, 10.0, -0.25, 3.0],
    [0.000001, -0.000001],
]


class TestComputeAggregateStats:
    def test_basic_statistics(self) -> None:
        stats = compute_aggregate_stats([1.0, -1.0, 3.0, 5.0])

        assert stats.sample_count == 4
        assert stats.hit_rate == 0.75
        assert stats.mean == 2.0
        assert stats.median == 2.0
        # Population stdev: sqrt(((1)+(9)+(1)+(9)) / 4)
        assert stats.stdev == pytest.approx(math.sqrt(5.0))

    def test_zero_is_not_a_hit(self) -> None:
        stats = compute_aggregate_stats([0.0, 0.0, 2.0])

        assert stats.hit_rate == pytest.approx(1 / 3)

    def test_single_value_has_zero_stdev(self) -> None:
        stats = compute_aggregate_stats([4.2])

        assert stats.stdev == 0.0
        assert stats.median == 4.2

    def test_empty_input_fails(self) -> None:
        with pytest.raises(StatsComputationError, match="At least one numeric value"):
            compute_aggregate_stats([])

    @pytest.mark.parametrize("bad", [math.nan, math.inf, -math.inf])
    def test_non_finite_input_fails(self, bad: float) -> None:
        with pytest.raises(StatsComputationError) as exc_info:
            compute_aggregate_stats([1.0, bad])

        assert exc_info.value.details["index"] == 1

    @pytest.mark.parametrize("values", _STAT_SAMPLES)
    def test_statistics_stay_within_bounds(self, values: list[float]) -> None:
        stats = compute_aggregate_stats(values)

        assert stats.sample_count == len(values)
        assert stats.stdev >= 0.0
        assert min(values) <= stats.median <= max(values)
        assert min(values) <= stats.mean <= max(values)
        assert 0.0 <= stats.hit_rate <= 1.0


class TestAggregateForwardReturnSets:
    def test_stats_per_window(self) -> None:
        events = [
            _return_set("a", [(1, 0.10, 0.01), (5, 0.20, 0.02)]),
            _return_set("b", [(1, -0.10, 0.01), (5, 0.00, 0.02)]),
        ]

        output = aggregate_forward_return_sets(events)

        assert [item.window_sessions for item in output] == [1, 5]
        assert output[0].symbol_return.mean == pytest.approx(0.0)
        assert output[0].symbol_return.hit_rate == 0.5
        assert output[1].spy_return.mean == pytest.approx(0.02)
        assert output[1].relative_return.median == pytest.approx(0.08)

    def test_no_events_fails(self) -> None:
        with pytest.raises(StatsComputationError):
            aggregate_forward_return_sets([])

    def test_mismatched_window_count_fails(self) -> None:
        events = [_return_set("a", [(1, 0.1, 0.0)]), _return_set("b", [(1, 0.1, 0.0), (5, 0.1, 0.0)])]

        with pytest.raises(StatsComputationError, match="mismatched window count"):
            aggregate_forward_return_sets(events)

    def test_inconsistent_windows_fail(self) -> None:
        events = [_return_set("a", [(1, 0.1, 0.0)]), _return_set("b", [(5, 0.1, 0.0)])]

        with pytest.raises(StatsComputationError, match="inconsistent windows"):
            aggregate_forward_return_sets(events)


class TestAggregateByWindow:
    def test_empty_rows_give_no_buckets(self) -> None:
        assert aggregate_by_window([]) == []

    def test_buckets_are_sorted_by_kind_window_benchmark(self) -> None:
        rows = [
            _relative_row(anchor_kind=AnchorKind.TRANSACTION, window=20, benchmark="XLF"),
            _relative_row(anchor_kind=AnchorKind.TRANSACTION, window=5, benchmark="XLF"),
            _relative_row(anchor_kind=AnchorKind.TRANSACTION, window=5, benchmark="SPY"),
            _relative_row(anchor_kind=AnchorKind.REPORT, window=20, benchmark="SPY"),
        ]

        aggregates = aggregate_by_window(rows)

        assert [item.bucket_key for item in aggregates] == [
            "report|20|SPY",
            "transaction|5|SPY",
            "transaction|5|XLF",
            "transaction|20|XLF",
        ]

    def test_bucket_statistics(self) -> None:
        rows = [
            _relative_row(event_id="a", forward=10.0, excess=9.0, relative=8.910891),
            _relative_row(event_id="b", forward=-2.0, excess=-3.0, relative=-2.970297),
            _relative_row(event_id="c", forward=4.0, excess=0.0, relative=0.0),
        ]

        (bucket,) = aggregate_by_window(rows)

        assert bucket.sample_size == 3
        # Only one of three excess returns is strictly positive
        assert bucket.hit_rate_percent == 33.3333
        assert bucket.mean_return_percent == 4.0
        assert bucket.median_return_percent == 4.0
        assert bucket.stdev_return_percent == 4.898979
        assert bucket.mean_excess_return_percent == 2.0
        assert bucket.mean_relative_return_percent == 1.980198

    @pytest.mark.parametrize("values", _STAT_SAMPLES)
    def test_bucket_statistics_stay_within_bounds(self, values: list[float]) -> None:
        rows = [
            _relative_row(event_id=f"evt-{index}", forward=value, excess=value, relative=value)
            for index, value in enumerate(values)
        ]

        (bucket,) = aggregate_by_window(rows)

        assert bucket.sample_size == len(values)
        assert bucket.stdev_return_percent >= 0.0
        assert min(values) <= bucket.median_return_percent <= max(values)
        assert 0.0 <= bucket.hit_rate_percent <= 100.0

    def test_non_finite_row_fails(self) -> None:
        with pytest.raises(StatsComputationError):
            aggregate_by_window([_relative_row(forward=math.nan)])
