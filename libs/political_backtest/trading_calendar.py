"""Per-symbol trading calendars with forward-only session alignment.

A calendar is the sorted session dates present in one symbol's price
series. Anchors that fall on non-trading days roll forward to the next
session; nothing here ever looks backwards.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from datetime import date
from typing import Any

import numpy as np

from libs.political_backtest.errors import (
    InvalidDateError,
    SessionAlignmentError,
    TradingCalendarError,
)
from libs.political_backtest.types import IsoDate, SessionAlignment, SessionLookup, TradingCalendar

ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_EPOCH = date(1970, 1, 1)


def to_epoch_day(value: IsoDate, field: str, details: dict[str, Any] | None = None) -> int:
    """Whole days since 1970-01-01 for a strict ``YYYY-MM-DD`` string.

    Raises:
        InvalidDateError: If ``value`` is not a real calendar date in strict ISO form
    """
    if not isinstance(value, str) or not ISO_DATE_RE.fullmatch(value):
        raise InvalidDateError(field, value, details)
    try:
        parsed = date.fromisoformat(value)
    except ValueError as exc:
        raise InvalidDateError(field, value, details) from exc
    return (parsed - _EPOCH).days


def _ensure_calendar(calendar: TradingCalendar) -> None:
    if len(calendar.sessions) == 0:
        raise TradingCalendarError("Trading calendar cannot be empty")
    if len(calendar.sessions) != len(calendar.session_epoch_days):
        raise TradingCalendarError(
            "Trading calendar session and epoch lengths do not match",
            details={
                "sessions": len(calendar.sessions),
                "epoch_days": len(calendar.session_epoch_days),
            },
        )


def create_trading_calendar(sessions: Sequence[IsoDate]) -> TradingCalendar:
    """Build a calendar from already sorted, deduplicated session dates.

    Args:
        sessions: Strict ISO dates in strictly increasing order

    Raises:
        TradingCalendarError: If ``sessions`` is empty, out of order or has duplicates
        InvalidDateError: If any entry is not a strict ISO date

    Example:
        >>> calendar = create_trading_calendar(["2025-01-02", "2025-01-03", "2025-01-06"])
        >>> calendar.session_index_by_date["2025-01-06"]
        2
    """
    if not sessions:
        raise TradingCalendarError("Trading sessions are required")

    epoch_days: list[int] = []
    index_by_date: dict[IsoDate, int] = {}
    previous: int | None = None
    for index, session in enumerate(sessions):
        epoch_day = to_epoch_day(session, "session_date", {"index": index})
        if previous is not None and epoch_day <= previous:
            raise TradingCalendarError(
                "Trading sessions must be strictly increasing and unique",
                details={"previous": sessions[index - 1], "current": session, "index": index},
            )
        if session in index_by_date:
            raise TradingCalendarError(f"Duplicate session date: {session}", details={"index": index})
        epoch_days.append(epoch_day)
        index_by_date[session] = index
        previous = epoch_day

    return TradingCalendar(
        sessions=tuple(sessions),
        session_epoch_days=np.asarray(epoch_days, dtype=np.int64),
        session_index_by_date=index_by_date,
    )


def align_to_next_session(calendar: TradingCalendar, input_date: IsoDate) -> SessionAlignment:
    """Resolve ``input_date`` to the first session on or after it.

    Aligning an already-aligned session date returns it unchanged with
    ``shifted=False``.

    Raises:
        SessionAlignmentError: If the date predates the first session or
            falls after the last one
        InvalidDateError: If ``input_date`` is not a strict ISO date
    """
    _ensure_calendar(calendar)
    target_day = to_epoch_day(input_date, "input_date")
    epoch_days = calendar.session_epoch_days

    if target_day < int(epoch_days[0]):
        raise SessionAlignmentError(
            f"Input date predates first available trading session: {input_date}",
            details={"input_date": input_date, "first_session": calendar.first_session},
        )

    # Leftmost session with epoch_day >= target_day
    resolved_index = int(np.searchsorted(epoch_days, target_day, side="left"))
    if resolved_index >= len(calendar.sessions):
        raise SessionAlignmentError(
            f"No trading session exists on or after {input_date}",
            details={"input_date": input_date, "last_session": calendar.last_session},
        )

    aligned_date = calendar.sessions[resolved_index]
    return SessionAlignment(
        input_date=input_date,
        aligned_date=aligned_date,
        aligned_index=resolved_index,
        shifted=aligned_date != input_date,
    )


def get_session_by_offset(calendar: TradingCalendar, start_index: int, offset: int) -> SessionLookup:
    """Session ``offset`` trading days after ``start_index``.

    Offsets are non-negative; an offset of zero returns the start session.

    Raises:
        SessionAlignmentError: On an invalid start index, a negative offset or
            an offset running past the end of the calendar
    """
    _ensure_calendar(calendar)
    session_count = len(calendar.sessions)
    if isinstance(start_index, bool) or not isinstance(start_index, int) or not 0 <= start_index < session_count:
        raise SessionAlignmentError(
            f"Invalid session start index: {start_index}",
            details={"start_index": start_index, "session_count": session_count},
        )
    if isinstance(offset, bool) or not isinstance(offset, int) or offset < 0:
        raise SessionAlignmentError(f"Invalid session offset: {offset}", details={"offset": offset})

    resolved_index = start_index + offset
    if resolved_index >= session_count:
        raise SessionAlignmentError(
            f"Session offset exceeds available calendar range: start {start_index} + {offset}",
            details={"start_index": start_index, "offset": offset, "session_count": session_count},
        )
    return SessionLookup(index=resolved_index, date=calendar.sessions[resolved_index])
