"""Run artifacts, historical-run discovery and run-to-run comparison.

A persisted run is a directory holding a small set of JSON documents plus
a markdown summary. ``assumptions.json`` is the run marker; discovery
requires ``aggregate-results.json`` and ``events.json`` next to it and
treats a marker without them as corrupt history rather than skipping it.

Layout::

    <reports_root>/political-backtest/<scope_key>/<run dir>/
        assumptions.json
        events.json
        event-window-returns.json
        benchmark-relative-returns.json
        aggregate-results.json
        comparison.json
        summary.md
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import structlog
from dateutil import parser as date_parser
from pydantic import ValidationError

from libs.common.file_utils import atomic_write_json, atomic_write_text, read_json
from libs.political_backtest.core import EventStudyRunResult
from libs.political_backtest.errors import EventStudyError, EventStudyErrorCode
from libs.political_backtest.numeric import round_half_away
from libs.political_backtest.types import (
    AggregateDrift,
    AggregateWindow,
    BacktestRunComparison,
    BacktestRunSnapshot,
    ConclusionChange,
    ConclusionView,
    EventSampleDiff,
    PoliticalEvent,
    RunBaseline,
)

logger = structlog.get_logger(__name__)

WORKFLOW = "financial_political_backtest"
BACKTEST_WORKFLOW_DIR = "political-backtest"

ASSUMPTIONS_FILE = "assumptions.json"
EVENTS_FILE = "events.json"
WINDOW_RETURNS_FILE = "event-window-returns.json"
BENCHMARK_RETURNS_FILE = "benchmark-relative-returns.json"
AGGREGATE_FILE = "aggregate-results.json"
COMPARISON_FILE = "comparison.json"
SUMMARY_FILE = "summary.md"


# =============================================================================
# Snapshots
# =============================================================================


def utc_timestamp(value: datetime | None = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a ``Z`` suffix."""
    moment = value or datetime.now(UTC)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _as_timestamp(value: Any) -> str | None:
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return utc_timestamp(date_parser.isoparse(value.strip()))
    except (ValueError, OverflowError):
        return None


def parse_event_ids(payload: Any) -> list[str]:
    """Unique, sorted ``event_id`` values from an events payload.

    Non-list payloads and entries without an id contribute nothing.
    """
    if not isinstance(payload, list):
        return []
    ids = {
        str(item.get("event_id") or "").strip()
        for item in payload
        if isinstance(item, Mapping)
    }
    return sorted(item for item in ids if item)


def parse_aggregate_rows(payload: Any, output_root: str) -> list[AggregateWindow]:
    """Validate a persisted aggregate list; missing statistics default to zero.

    Raises:
        EventStudyError: INVALID_PRICE_SERIES on a non-list payload or a row
            without a valid bucket key
    """
    if not isinstance(payload, list):
        raise EventStudyError(
            f"Invalid {AGGREGATE_FILE} payload in {output_root}",
            EventStudyErrorCode.INVALID_PRICE_SERIES,
            {"output_root": output_root},
        )

    rows: list[AggregateWindow] = []
    for item in payload:
        if not isinstance(item, Mapping):
            raise EventStudyError(
                f"Invalid aggregate row in {output_root}",
                EventStudyErrorCode.INVALID_PRICE_SERIES,
                {"output_root": output_root, "row": item},
            )
        try:
            present = {key: value for key, value in item.items() if value is not None}
            rows.append(AggregateWindow.model_validate(present))
        except ValidationError as exc:
            raise EventStudyError(
                f"Invalid aggregate row in {output_root}",
                EventStudyErrorCode.INVALID_PRICE_SERIES,
                {"output_root": output_root, "row": dict(item), "errors": exc.error_count()},
            ) from exc
    return rows


def build_run_snapshot(
    output_root: str | Path,
    generated_at: str,
    aggregates: Sequence[AggregateWindow],
    events: Sequence[PoliticalEvent | Mapping[str, Any]],
) -> BacktestRunSnapshot:
    """Snapshot of the current run for comparison against history."""
    payload = [event.to_json_dict() if isinstance(event, PoliticalEvent) else event for event in events]
    return BacktestRunSnapshot(
        output_root=str(output_root),
        generated_at=generated_at,
        aggregates=list(aggregates),
        event_ids=parse_event_ids(payload),
    )


# =============================================================================
# Discovery
# =============================================================================


def _read_artifact(path: Path, output_root: Path) -> Any:
    try:
        return read_json(path)
    except (OSError, json.JSONDecodeError) as exc:
        raise EventStudyError(
            f"Failed to parse {path.name} in {output_root}",
            EventStudyErrorCode.INVALID_PRICE_SERIES,
            {"output_root": str(output_root), "file": path.name},
        ) from exc


def discover_historical_runs(
    reports_root: str | Path,
    scope_key: str,
    exclude_output_root: str | Path | None = None,
) -> list[BacktestRunSnapshot]:
    """Load every prior run under ``<reports_root>/political-backtest/<scope_key>``.

    Markers from other workflows are ignored. A run whose ``generated_at``
    is missing or unparseable falls back to the marker file's mtime.
    Snapshots are returned oldest first.

    Raises:
        EventStudyError: INVALID_PRICE_SERIES for unreadable or incomplete runs
    """
    base = Path(reports_root) / BACKTEST_WORKFLOW_DIR / scope_key
    if not base.is_dir():
        logger.debug("history_root_missing", base=str(base))
        return []

    excluded = Path(exclude_output_root).resolve() if exclude_output_root else None
    snapshots: list[BacktestRunSnapshot] = []

    for marker in sorted(base.rglob(ASSUMPTIONS_FILE)):
        if not marker.is_file():
            continue
        output_root = marker.parent
        if excluded is not None and output_root.resolve() == excluded:
            continue

        assumptions = _read_artifact(marker, output_root)
        if not isinstance(assumptions, Mapping) or assumptions.get("workflow") != WORKFLOW:
            continue

        aggregate_path = output_root / AGGREGATE_FILE
        events_path = output_root / EVENTS_FILE
        if not aggregate_path.is_file() or not events_path.is_file():
            raise EventStudyError(
                f"Historical run at {output_root} is missing required raw artifacts.",
                EventStudyErrorCode.INVALID_PRICE_SERIES,
                {"output_root": str(output_root)},
            )

        generated_at = _as_timestamp(assumptions.get("generated_at")) or utc_timestamp(
            datetime.fromtimestamp(marker.stat().st_mtime, UTC)
        )
        snapshots.append(
            BacktestRunSnapshot(
                output_root=str(output_root),
                generated_at=generated_at,
                aggregates=parse_aggregate_rows(_read_artifact(aggregate_path, output_root), str(output_root)),
                event_ids=parse_event_ids(_read_artifact(events_path, output_root)),
            )
        )

    snapshots.sort(key=lambda snapshot: snapshot.generated_at)
    logger.info("historical_runs_discovered", scope_key=scope_key, runs=len(snapshots))
    return snapshots


# =============================================================================
# Comparison
# =============================================================================


def compare_runs(
    current: BacktestRunSnapshot,
    baseline: BacktestRunSnapshot | None = None,
) -> BacktestRunComparison:
    """Diff the current snapshot against a baseline.

    Without a baseline the run is a first run and every current event is new.
    Buckets present in only one snapshot are skipped for drift.
    """
    if baseline is None:
        return BacktestRunComparison(
            first_run=True,
            event_sample=EventSampleDiff(
                current=len(current.event_ids),
                baseline=0,
                new_events=list(current.event_ids),
            ),
        )

    baseline_by_key = {row.bucket_key: row for row in baseline.aggregates}
    current_by_key = {row.bucket_key: row for row in current.aggregates}

    drift: list[AggregateDrift] = []
    changes: list[ConclusionChange] = []
    for key in sorted(baseline_by_key.keys() | current_by_key.keys()):
        base = baseline_by_key.get(key)
        now = current_by_key.get(key)
        if base is None or now is None:
            continue

        drift.append(
            AggregateDrift(
                key=key,
                anchor_kind=now.anchor_kind,
                window_sessions=now.window_sessions,
                benchmark_symbol=now.benchmark_symbol,
                baseline_sample_size=base.sample_size,
                current_sample_size=now.sample_size,
                sample_delta=now.sample_size - base.sample_size,
                hit_rate_delta=round_half_away(now.hit_rate_percent - base.hit_rate_percent),
                median_return_delta=round_half_away(now.median_return_percent - base.median_return_percent),
                mean_excess_delta=round_half_away(now.mean_excess_return_percent - base.mean_excess_return_percent),
            )
        )

        baseline_view = ConclusionView.from_excess(base.mean_excess_return_percent)
        current_view = ConclusionView.from_excess(now.mean_excess_return_percent)
        if baseline_view is not current_view:
            changes.append(
                ConclusionChange(
                    key=key,
                    benchmark_symbol=now.benchmark_symbol,
                    window_sessions=now.window_sessions,
                    anchor_kind=now.anchor_kind,
                    baseline_view=baseline_view,
                    current_view=current_view,
                )
            )

    baseline_events = set(baseline.event_ids)
    current_events = set(current.event_ids)
    return BacktestRunComparison(
        first_run=False,
        baseline=RunBaseline(output_root=baseline.output_root, generated_at=baseline.generated_at),
        aggregate_drift=drift,
        event_sample=EventSampleDiff(
            current=len(current.event_ids),
            baseline=len(baseline.event_ids),
            new_events=sorted(current_events - baseline_events),
            removed_events=sorted(baseline_events - current_events),
            persisted_events=sorted(current_events & baseline_events),
        ),
        conclusion_changes=changes,
    )


def build_run_comparison(
    reports_root: str | Path,
    scope_key: str,
    current: BacktestRunSnapshot,
) -> BacktestRunComparison:
    """Compare ``current`` against the most recent prior run of the same scope."""
    prior_runs = discover_historical_runs(reports_root, scope_key, exclude_output_root=current.output_root)
    baseline = prior_runs[-1] if prior_runs else None
    comparison = compare_runs(current, baseline)
    logger.info(
        "run_comparison_built",
        scope_key=scope_key,
        first_run=comparison.first_run,
        baseline=baseline.output_root if baseline else None,
        conclusion_changes=len(comparison.conclusion_changes),
    )
    return comparison


# =============================================================================
# Artifacts
# =============================================================================


def build_assumptions(
    generated_at: str,
    scope_key: str,
    tickers: Sequence[str],
    windows: Sequence[int],
    anchor_mode: str,
    alignment_policy: str,
    benchmark_mode: str,
    benchmark_selection: Mapping[str, Any],
    comparison: BacktestRunComparison,
    sectors_by_ticker: Mapping[str, str | None] | None = None,
    market_history: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Run marker document: parameters plus the comparison headline."""
    return {
        "workflow": WORKFLOW,
        "generated_at": generated_at,
        "mode": "ticker" if len(tickers) == 1 else "portfolio",
        "scope_key": scope_key,
        "tickers": list(tickers),
        "anchor_mode": anchor_mode,
        "windows": list(windows),
        "alignment_policy": alignment_policy,
        "benchmark_mode": benchmark_mode,
        "benchmark_selection": dict(benchmark_selection),
        "sectors_by_ticker": dict(sectors_by_ticker or {}),
        "market_history": dict(market_history or {}),
        "historical_comparison": {
            "first_run": comparison.first_run,
            "baseline": comparison.baseline.to_json_dict() if comparison.baseline else None,
            "event_sample": comparison.event_sample.to_json_dict(),
            "conclusion_changes": [change.to_json_dict() for change in comparison.conclusion_changes],
        },
        "policy": {"strict_failure": True, "non_advisory": True},
    }


def render_summary(
    scope_key: str,
    generated_at: str,
    event_count: int,
    aggregates: Sequence[AggregateWindow],
    comparison: BacktestRunComparison,
) -> str:
    """Short markdown summary of a run."""
    lines = [
        f"# Political event study: {scope_key}",
        "",
        f"- Generated at: {generated_at}",
        f"- Events: {event_count}",
        f"- First run: {'yes' if comparison.first_run else 'no'}",
        "",
        "| Anchor | Window | Benchmark | N | Hit rate % | Mean % | Median % | Mean excess % |",
        "|---|---|---|---|---|---|---|---|",
    ]
    for row in aggregates:
        lines.append(
            f"| {row.anchor_kind.value} | {row.window_sessions} | {row.benchmark_symbol} | {row.sample_size} "
            f"| {row.hit_rate_percent} | {row.mean_return_percent} | {row.median_return_percent} "
            f"| {row.mean_excess_return_percent} |"
        )

    if comparison.conclusion_changes:
        lines += ["", "## Conclusion changes", ""]
        for change in comparison.conclusion_changes:
            lines.append(f"- {change.key}: {change.baseline_view.value} -> {change.current_view.value}")

    lines += ["", "Historical analysis only; not investment advice.", ""]
    return "\n".join(lines)


def write_run_artifacts(
    output_root: str | Path,
    assumptions: Mapping[str, Any],
    events: Sequence[PoliticalEvent],
    result: EventStudyRunResult,
    comparison: BacktestRunComparison,
    summary: str,
) -> dict[str, Path]:
    """Write every artifact of a run atomically.

    The ``assumptions.json`` marker is written last so discovery never sees
    a run without its companions.
    """
    root = Path(output_root)
    root.mkdir(parents=True, exist_ok=True)
    payloads: dict[str, Any] = {
        EVENTS_FILE: [event.to_json_dict() for event in events],
        WINDOW_RETURNS_FILE: [row.to_json_dict() for row in result.event_window_returns],
        BENCHMARK_RETURNS_FILE: [row.to_json_dict() for row in result.benchmark_relative_returns],
        AGGREGATE_FILE: [row.to_json_dict() for row in result.aggregates],
        COMPARISON_FILE: comparison.to_json_dict(),
    }

    written: dict[str, Path] = {}
    for name, payload in payloads.items():
        written[name] = atomic_write_json(root / name, payload)
    written[SUMMARY_FILE] = atomic_write_text(root / SUMMARY_FILE, summary)
    written[ASSUMPTIONS_FILE] = atomic_write_json(root / ASSUMPTIONS_FILE, dict(assumptions))

    logger.info("run_artifacts_written", output_root=str(root), files=sorted(written))
    return written
