"""Normalization of raw disclosure rows into canonical political events.

Raw rows arrive with arbitrary casing and field naming depending on the
dataset (``TransactionDate`` vs ``tradeDate`` vs ``Date``...). Each logical
field has an ordered tuple of candidate names in ``FIELD_ALIASES``; a row is
case-folded once and probed against that table, so adding a new alias is a
one-line change.

Event identity is content-derived: ``{dataset_id}:{symbol}:{sha256}`` where
the hash covers the resolved identity fields plus a fingerprint of the whole
row. The fingerprint is computed over a canonical projection in which the
alias keys actually used are replaced by their logical names and resolved
values, so the same disclosure spelled with different casing, key order or
aliases gets the same id, while rows that differ in any other content
(e.g. amount) do not.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Mapping, Sequence
from datetime import UTC, date, datetime
from typing import Any

from dateutil import parser as date_parser

from libs.common.hash_utils import normalize_text, stable_hash
from libs.political_backtest.errors import (
    EventStudyError,
    EventStudyErrorCode,
    InvalidDateError,
    InvalidQuiverRowError,
    MissingRequiredFieldError,
)
from libs.political_backtest.types import (
    DatasetRows,
    IsoDate,
    NormalizedQuiverEvent,
    PoliticalEvent,
    TransactionSide,
)

logger = logging.getLogger(__name__)

ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
SYMBOL_RE = re.compile(r"^[A-Z][A-Z0-9.]{0,9}$")
_SYMBOL_STRIP_RE = re.compile(r"[^A-Z0-9.]")
_NUMBER_STRIP_RE = re.compile(r"[^0-9.\-]")

# Fixed default so partial dates ("Jan 2025") never pick up today's fields.
_PARSE_DEFAULT = datetime(2000, 1, 1)

# Candidate names per logical field, probed in order against case-folded keys.
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "symbol": ("ticker", "symbol"),
    "transaction_date": (
        "transactiondate",
        "transaction_date",
        "tradedate",
        "trade_date",
        "date",
    ),
    "report_date": (
        "reportdate",
        "report_date",
        "fileddate",
        "filed_date",
        "filedat",
        "filed_at",
        "disclosuredate",
        "disclosure_date",
    ),
    "actor": (
        "name",
        "representative",
        "senator",
        "ownername",
        "owner_name",
        "insidername",
        "insider_name",
    ),
    "transaction_type": (
        "transaction",
        "transactiontype",
        "transaction_type",
        "type",
    ),
    "shares": (
        "shares_traded",
        "shareschanged",
        "changeinshares",
        "shares",
        "quantity",
        "amount",
    ),
}

_BUY_KEYWORDS = ("buy", "acquired", "purchase")
_SELL_KEYWORDS = ("sell", "dispose")

# Fields whose resolved values replace the raw alias entry in the fingerprint.
_IDENTITY_FIELDS = ("symbol", "transaction_date", "report_date", "actor", "transaction_type")


class RowFields:
    """Case-folded view over one raw row, built once and probed many times."""

    def __init__(self, row: Mapping[str, Any]) -> None:
        self.row = row
        self._by_folded: dict[str, tuple[str, Any]] = {}
        # Sorted so a row holding both "Date" and "date" resolves the same way
        # regardless of insertion order.
        for key in sorted(row, key=str):
            self._by_folded.setdefault(str(key).strip().casefold(), (key, row[key]))

    def pick(self, field: str) -> tuple[str, Any] | None:
        """Return ``(raw_key, value)`` for the first alias holding a non-blank value."""
        for candidate in FIELD_ALIASES[field]:
            hit = self._by_folded.get(candidate)
            if hit is None:
                continue
            value = hit[1]
            if value is None or not normalize_text(value):
                continue
            return hit
        return None

    def value(self, field: str) -> Any:
        hit = self.pick(field)
        return None if hit is None else hit[1]


def normalize_symbol(value: Any, details: dict[str, Any] | None = None) -> str:
    """Upper-case a symbol, drop everything but letters, digits and ``.``, validate.

    Example:
        >>> normalize_symbol(" brk.b ")
        'BRK.B'
    """
    symbol = _SYMBOL_STRIP_RE.sub("", normalize_text(value).upper())
    if not symbol:
        raise MissingRequiredFieldError("symbol", details)
    if not SYMBOL_RE.fullmatch(symbol):
        raise InvalidQuiverRowError(f"Invalid symbol: {symbol}", details=details)
    return symbol


def normalize_date(value: Any, field: str, details: dict[str, Any] | None = None) -> IsoDate:
    """Normalize a strict ISO date or any parseable date string to ``YYYY-MM-DD``.

    Timezone-aware timestamps are converted to UTC before the date is taken.

    Raises:
        MissingRequiredFieldError: value is blank
        InvalidDateError: value does not parse or is an impossible ISO date
    """
    if isinstance(value, datetime):
        return (value.astimezone(UTC) if value.tzinfo else value).date().isoformat()
    if isinstance(value, date):
        return value.isoformat()

    text = normalize_text(value)
    if not text:
        raise MissingRequiredFieldError(field, details)

    if ISO_DATE_RE.fullmatch(text):
        try:
            return date.fromisoformat(text).isoformat()
        except ValueError as exc:
            raise InvalidDateError(field, value, details) from exc

    try:
        parsed = date_parser.parse(text, default=_PARSE_DEFAULT)
    except (ValueError, OverflowError) as exc:
        raise InvalidDateError(field, value, details) from exc
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(UTC)
    return parsed.date().isoformat()


def classify_transaction_type(value: Any) -> TransactionSide:
    """Keyword classification of a free-text transaction description.

    Example:
        >>> classify_transaction_type("Purchase").value
        'buy'
        >>> classify_transaction_type("Sale (Partial)").value
        'other'
    """
    text = normalize_text(value).lower()
    if not text:
        return TransactionSide.OTHER
    if any(keyword in text for keyword in _BUY_KEYWORDS):
        return TransactionSide.BUY
    if any(keyword in text for keyword in _SELL_KEYWORDS):
        return TransactionSide.SELL
    return TransactionSide.OTHER


def parse_share_count(value: Any) -> float | None:
    """Best-effort numeric parse after stripping thousands separators and units."""
    text = _NUMBER_STRIP_RE.sub("", normalize_text(value))
    if not text:
        return None
    try:
        parsed = float(text)
    except ValueError:
        return None
    return parsed if math.isfinite(parsed) else None


def row_fingerprint(row: Mapping[str, Any], fields: RowFields, resolved: Mapping[str, Any]) -> str:
    """Hash of the canonical projection of a full raw row."""
    used_keys: set[str] = set()
    identity: dict[str, Any] = {}
    for field in _IDENTITY_FIELDS:
        hit = fields.pick(field)
        if hit is not None:
            used_keys.add(hit[0])
        identity[field] = resolved.get(field)
    extra = {key: value for key, value in row.items() if key not in used_keys}
    return stable_hash({"identity": identity, "extra": extra})


def normalize_quiver_row(
    dataset_id: str,
    dataset_label: str,
    symbol: str,
    row: Mapping[str, Any],
    row_index: int = 0,
) -> NormalizedQuiverEvent:
    """Normalize one raw disclosure row for ``symbol``.

    Raises:
        MissingRequiredFieldError: blank dataset id/label/symbol, or neither
            a transaction nor a report date is present
        InvalidQuiverRowError: row is not a mapping, or its own symbol does
            not match ``symbol``
        InvalidDateError: a date field is present but unparseable
    """
    if not dataset_id or not dataset_id.strip():
        raise MissingRequiredFieldError("dataset_id", {"row_index": row_index})
    if not dataset_label or not dataset_label.strip():
        raise MissingRequiredFieldError(
            "dataset_label", {"dataset_id": dataset_id, "row_index": row_index}
        )
    if not isinstance(row, Mapping):
        raise InvalidQuiverRowError(
            "Quiver row must be an object",
            details={"dataset_id": dataset_id, "row_index": row_index},
        )

    base_details = {"dataset_id": dataset_id, "dataset_label": dataset_label, "row_index": row_index}
    normalized_symbol = normalize_symbol(symbol, base_details)

    fields = RowFields(row)
    row_symbol = fields.value("symbol")
    if row_symbol is not None:
        normalized_row_symbol = normalize_symbol(row_symbol, {**base_details, "field": "row_symbol"})
        if normalized_row_symbol != normalized_symbol:
            raise InvalidQuiverRowError(
                f"Row symbol {normalized_row_symbol} does not match requested symbol {normalized_symbol}",
                details=base_details,
            )

    details = {**base_details, "symbol": normalized_symbol}
    transaction_raw = fields.value("transaction_date")
    report_raw = fields.value("report_date")
    transaction_date = (
        normalize_date(transaction_raw, "transaction_date", details) if transaction_raw is not None else None
    )
    report_date = normalize_date(report_raw, "report_date", details) if report_raw is not None else None
    if transaction_date is None and report_date is None:
        raise MissingRequiredFieldError("transaction_date or report_date", details)

    actor_raw = fields.value("actor")
    actor = (normalize_text(actor_raw) or None) if actor_raw is not None else None
    type_raw = fields.value("transaction_type")
    transaction_type = classify_transaction_type(type_raw)

    fingerprint = row_fingerprint(
        row,
        fields,
        {
            "symbol": normalized_symbol if row_symbol is not None else None,
            "transaction_date": transaction_date,
            "report_date": report_date,
            "actor": actor,
            "transaction_type": type_raw,
        },
    )
    identity = stable_hash(
        {
            "dataset_id": dataset_id,
            "symbol": normalized_symbol,
            "transaction_date": transaction_date or "",
            "report_date": report_date or "",
            "actor": actor or "",
            "transaction_type": transaction_type.value,
            "row_fingerprint": fingerprint,
        }
    )

    return NormalizedQuiverEvent(
        event_id=f"{dataset_id}:{normalized_symbol}:{identity}",
        symbol=normalized_symbol,
        source_dataset_id=dataset_id,
        source_dataset_label=dataset_label,
        source_row_index=row_index,
        transaction_date=transaction_date,
        report_date=report_date,
        transaction_type=transaction_type,
        actor=actor,
    )


def normalize_quiver_rows(
    dataset_id: str,
    dataset_label: str,
    symbol: str,
    rows: Sequence[Mapping[str, Any]],
) -> list[NormalizedQuiverEvent]:
    """Normalize every row of one dataset, preserving source order."""
    if isinstance(rows, str | bytes) or not isinstance(rows, Sequence):
        raise InvalidQuiverRowError(
            "rows must be an array",
            details={"dataset_id": dataset_id, "dataset_label": dataset_label},
        )
    return [
        normalize_quiver_row(dataset_id, dataset_label, symbol, row, row_index)
        for row_index, row in enumerate(rows)
    ]


def assert_unique_event_ids(events: Sequence[PoliticalEvent]) -> None:
    """Raise DUPLICATE_EVENT_ID on the first repeated id."""
    seen: set[str] = set()
    for event in events:
        if event.event_id in seen:
            raise EventStudyError(
                f"Duplicate political event id detected: {event.event_id}",
                EventStudyErrorCode.DUPLICATE_EVENT_ID,
                {"event_id": event.event_id},
            )
        seen.add(event.event_id)


def normalize_political_events(ticker: str, datasets: Sequence[DatasetRows]) -> list[PoliticalEvent]:
    """Normalize all datasets for one ticker into a sorted, duplicate-free event list.

    Output is sorted ascending by ``transaction_date`` falling back to
    ``report_date``; the sort is stable so same-day events keep source order.

    Raises:
        EventStudyError: INVALID_EVENT_DATE for a blank ticker or dataset id,
            EMPTY_EVENT_SET when no datasets or no rows are supplied,
            DUPLICATE_EVENT_ID when two rows produce the same id
    """
    symbol = normalize_text(ticker).upper()
    if not symbol:
        raise EventStudyError(
            "Ticker is required to normalize political events.",
            EventStudyErrorCode.INVALID_EVENT_DATE,
        )
    if not datasets:
        raise EventStudyError(
            "At least one dataset is required to normalize political events.",
            EventStudyErrorCode.EMPTY_EVENT_SET,
        )

    events: list[PoliticalEvent] = []
    for dataset in datasets:
        if not dataset.dataset_id or not dataset.dataset_id.strip():
            raise EventStudyError(
                "Dataset id is required for political event normalization.",
                EventStudyErrorCode.INVALID_EVENT_DATE,
            )
        normalized = normalize_quiver_rows(
            dataset.dataset_id,
            dataset.label or dataset.dataset_id,
            symbol,
            dataset.rows,
        )
        for item in normalized:
            shares = parse_share_count(RowFields(dataset.rows[item.source_row_index]).value("shares"))
            events.append(
                PoliticalEvent(
                    event_id=item.event_id,
                    ticker=item.symbol,
                    source_dataset_id=item.source_dataset_id,
                    actor=item.actor,
                    side=item.transaction_type,
                    transaction_date=item.transaction_date,
                    report_date=item.report_date,
                    shares=shares,
                )
            )
        logger.debug(
            "Normalized dataset rows",
            extra={"context": {"dataset_id": dataset.dataset_id, "ticker": symbol, "rows": len(normalized)}},
        )

    if not events:
        raise EventStudyError(
            "No political-trading events were returned for the requested ticker.",
            EventStudyErrorCode.EMPTY_EVENT_SET,
            {"ticker": symbol, "datasets": [dataset.dataset_id for dataset in datasets]},
        )

    assert_unique_event_ids(events)
    logger.info(
        "Normalized political events",
        extra={"context": {"ticker": symbol, "events": len(events), "datasets": len(datasets)}},
    )
    return sorted(events, key=lambda event: event.sort_date)
