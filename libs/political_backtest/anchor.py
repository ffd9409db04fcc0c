"""Anchor resolution: which dated points each event is measured from."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, timedelta

from libs.political_backtest.errors import EventStudyError, EventStudyErrorCode, InvalidDateError
from libs.political_backtest.trading_calendar import to_epoch_day
from libs.political_backtest.types import (
    AnchorKind,
    EventAnchor,
    EventAnchorMode,
    IsoDate,
    PoliticalEvent,
)

# Calendar-day padding around anchors when sizing price-history requests.
HISTORY_LOOKBACK_DAYS = 15
HISTORY_SESSIONS_TO_DAYS = 4
HISTORY_LOOKAHEAD_PAD_DAYS = 10


def _validate_anchor_date(value: str, event_id: str, kind: AnchorKind) -> None:
    try:
        to_epoch_day(value, f"{kind.value}_date")
    except InvalidDateError as exc:
        raise EventStudyError(
            f"Invalid {kind.value} date for event {event_id}: {value}",
            EventStudyErrorCode.INVALID_EVENT_DATE,
            {"event_id": event_id, "anchor_kind": kind.value, "value": value},
        ) from exc


def resolve_anchors(
    events: Sequence[PoliticalEvent],
    mode: EventAnchorMode | str,
) -> list[EventAnchor]:
    """Emit one anchor per (event, date type implied by ``mode``).

    Anchors are sorted ascending by ``anchor_date``; the sort is stable so
    an event's transaction anchor precedes its report anchor on ties.

    Raises:
        EventStudyError: EMPTY_EVENT_SET for no events,
            MISSING_REQUIRED_ANCHOR_DATE when a required date is absent,
            INVALID_EVENT_DATE when it does not parse
    """
    if not events:
        raise EventStudyError(
            "Cannot resolve anchors for an empty event set.",
            EventStudyErrorCode.EMPTY_EVENT_SET,
        )
    anchor_mode = EventAnchorMode(mode)

    anchors: list[EventAnchor] = []
    for event in events:
        for kind in anchor_mode.kinds:
            field = f"{kind.value}_date"
            value = event.transaction_date if kind is AnchorKind.TRANSACTION else event.report_date
            if not value:
                raise EventStudyError(
                    f"Missing {kind.value} date for event {event.event_id} "
                    f"while anchor mode is {anchor_mode.value}.",
                    EventStudyErrorCode.MISSING_REQUIRED_ANCHOR_DATE,
                    {"event_id": event.event_id, "mode": anchor_mode.value, "required": field},
                )
            _validate_anchor_date(value, event.event_id, kind)
            anchors.append(
                EventAnchor(
                    event_id=event.event_id,
                    ticker=event.ticker,
                    anchor_kind=kind,
                    anchor_date=value,
                )
            )

    return sorted(anchors, key=lambda anchor: anchor.anchor_date)


def split_anchor_cohorts(anchors: Sequence[EventAnchor]) -> dict[AnchorKind, list[EventAnchor]]:
    """Partition anchors by kind, preserving order within each cohort."""
    cohorts: dict[AnchorKind, list[EventAnchor]] = {kind: [] for kind in AnchorKind}
    for anchor in anchors:
        cohorts[AnchorKind(anchor.anchor_kind)].append(anchor)
    return cohorts


def market_date_bounds(
    anchors: Sequence[EventAnchor],
    windows: Sequence[int],
) -> tuple[IsoDate, IsoDate]:
    """Calendar range of daily bars the fetch layer should request.

    Starts a little before the earliest anchor and extends past the latest
    anchor far enough (about four calendar days per session) to cover the
    longest window.

    Raises:
        EventStudyError: EMPTY_EVENT_SET when there are no anchors
    """
    if not anchors:
        raise EventStudyError(
            "No anchors were resolved for this backtest run.",
            EventStudyErrorCode.EMPTY_EVENT_SET,
        )
    if not windows:
        raise EventStudyError(
            "Backtest requires at least one forward window.",
            EventStudyErrorCode.WINDOW_OUT_OF_RANGE,
        )
    dates = sorted(date.fromisoformat(anchor.anchor_date) for anchor in anchors)
    start = dates[0] - timedelta(days=HISTORY_LOOKBACK_DAYS)
    end = dates[-1] + timedelta(days=max(windows) * HISTORY_SESSIONS_TO_DAYS + HISTORY_LOOKAHEAD_PAD_DAYS)
    return start.isoformat(), end.isoformat()
