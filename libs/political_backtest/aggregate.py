"""Bucket statistics over event-study returns.

``aggregate_by_window`` is the reporting aggregation: benchmark-relative rows
bucketed by (anchor kind, window, benchmark). ``aggregate_forward_return_sets``
summarizes the raw SPY-paired return sets window by window.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import numpy as np
import polars as pl
from numpy.typing import NDArray

from libs.political_backtest.errors import StatsComputationError
from libs.political_backtest.numeric import HIT_RATE_DIGITS, round_half_away
from libs.political_backtest.types import (
    AggregateStats,
    AggregateWindow,
    AnchorKind,
    BenchmarkRelativeReturn,
    EventForwardReturnSet,
    WindowAggregateStats,
)

BUCKET_COLUMNS = ["anchor_kind", "window_sessions", "benchmark_symbol"]


def _validated_array(values: Sequence[float]) -> NDArray[np.float64]:
    if len(values) == 0:
        raise StatsComputationError("At least one numeric value is required to compute aggregate stats")
    try:
        array = np.asarray(values, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise StatsComputationError(f"Non-numeric value in aggregate input: {exc}") from exc

    non_finite = np.flatnonzero(~np.isfinite(array))
    if non_finite.size:
        index = int(non_finite[0])
        raise StatsComputationError(
            f"Non-finite numeric value at index {index}: {values[index]}",
            details={"index": index, "value": str(values[index])},
        )
    return array


def compute_aggregate_stats(values: Sequence[float]) -> AggregateStats:
    """Count, hit rate, mean, median and population stdev of ``values``.

    ``hit_rate`` is the fraction of strictly positive values.

    Raises:
        StatsComputationError: On empty input or any non-finite value

    Example:
        >>> stats = compute_aggregate_stats([1.0, -1.0, 3.0, 5.0])
        >>> stats.median, stats.hit_rate
        (2.0, 0.75)
    """
    array = _validated_array(values)
    count = int(array.size)
    return AggregateStats(
        sample_count=count,
        hit_rate=float(np.count_nonzero(array > 0)) / count,
        mean=float(np.mean(array)),
        median=float(np.median(array)),
        stdev=float(np.std(array, ddof=0)),
    )


def _ensure_comparable_return_shapes(events: Sequence[EventForwardReturnSet]) -> list[int]:
    if not events:
        raise StatsComputationError("At least one event return set is required for window aggregation")

    baseline = [item.window_sessions for item in events[0].returns]
    if not baseline:
        raise StatsComputationError("Event return sets must include at least one configured window")

    for event_index, event in enumerate(events):
        current = [item.window_sessions for item in event.returns]
        if len(current) != len(baseline):
            raise StatsComputationError(
                f"Event {event.event_id} has a mismatched window count",
                details={"event_index": event_index, "expected": len(baseline), "actual": len(current)},
            )
        for index, (expected, actual) in enumerate(zip(baseline, current, strict=True)):
            if expected != actual:
                raise StatsComputationError(
                    f"Event {event.event_id} has inconsistent windows",
                    details={"event_index": event_index, "index": index, "expected": expected, "actual": actual},
                )
    return baseline


def aggregate_forward_return_sets(events: Sequence[EventForwardReturnSet]) -> list[WindowAggregateStats]:
    """Per-window stats across events that share one ordered window list.

    Raises:
        StatsComputationError: If there are no events, or their window lists differ
    """
    windows = _ensure_comparable_return_shapes(events)
    output: list[WindowAggregateStats] = []
    for index, window_sessions in enumerate(windows):
        output.append(
            WindowAggregateStats(
                window_sessions=window_sessions,
                symbol_return=compute_aggregate_stats([event.returns[index].symbol_return for event in events]),
                spy_return=compute_aggregate_stats([event.returns[index].spy_return for event in events]),
                relative_return=compute_aggregate_stats([event.returns[index].relative_return for event in events]),
            )
        )
    return output


def _rows_frame(rows: Sequence[BenchmarkRelativeReturn]) -> pl.DataFrame:
    records: list[dict[str, Any]] = [
        {
            "anchor_kind": AnchorKind(row.anchor_kind).value,
            "window_sessions": row.window_sessions,
            "benchmark_symbol": row.benchmark_symbol,
            "forward_return_percent": row.forward_return_percent,
            "excess_return_percent": row.excess_return_percent,
            "relative_return_percent": row.relative_return_percent,
        }
        for row in rows
    ]
    return pl.DataFrame(
        records,
        schema={
            "anchor_kind": pl.Utf8,
            "window_sessions": pl.Int64,
            "benchmark_symbol": pl.Utf8,
            "forward_return_percent": pl.Float64,
            "excess_return_percent": pl.Float64,
            "relative_return_percent": pl.Float64,
        },
    )


def aggregate_by_window(rows: Sequence[BenchmarkRelativeReturn]) -> list[AggregateWindow]:
    """One ``AggregateWindow`` per (anchor kind, window, benchmark) bucket.

    Output is sorted by anchor kind, then window length, then benchmark symbol.
    Hit rate is the share of rows whose excess return is positive.

    Raises:
        StatsComputationError: If a bucket contains a non-finite value
    """
    if not rows:
        return []

    buckets = (
        _rows_frame(rows)
        .group_by(BUCKET_COLUMNS, maintain_order=True)
        .agg(
            pl.col("forward_return_percent").alias("forward"),
            pl.col("excess_return_percent").alias("excess"),
            pl.col("relative_return_percent").alias("relative"),
        )
        .sort(BUCKET_COLUMNS)
    )

    aggregates: list[AggregateWindow] = []
    for bucket in buckets.iter_rows(named=True):
        forward_stats = compute_aggregate_stats(bucket["forward"])
        excess_stats = compute_aggregate_stats(bucket["excess"])
        relative_stats = compute_aggregate_stats(bucket["relative"])
        aggregates.append(
            AggregateWindow(
                anchor_kind=AnchorKind(bucket["anchor_kind"]),
                window_sessions=bucket["window_sessions"],
                benchmark_symbol=bucket["benchmark_symbol"],
                sample_size=len(bucket["forward"]),
                hit_rate_percent=round_half_away(excess_stats.hit_rate * 100, HIT_RATE_DIGITS),
                mean_return_percent=round_half_away(forward_stats.mean),
                median_return_percent=round_half_away(forward_stats.median),
                stdev_return_percent=round_half_away(forward_stats.stdev),
                mean_excess_return_percent=round_half_away(excess_stats.mean),
                mean_relative_return_percent=round_half_away(relative_stats.mean),
            )
        )
    return aggregates
