"""
Content-addressed hashing of canonicalized structures.

Identity keys must be byte-for-byte reproducible across runs, hosts and
input orderings. Hashing therefore happens in two steps:

1. ``canonicalize`` maps an arbitrary JSON-like value onto a normalized form:
   keys are snake_cased and sorted, strings are trimmed, whitespace-collapsed
   and lower-cased, integral floats become ints and non-finite numbers become
   empty strings.
2. ``canonical_bytes`` serializes that form with fixed separators and key
   order, and ``stable_hash`` digests those bytes with SHA-256.

Key Design Principles:
1. Pure functions, no dependence on dict iteration order of the input
2. Hash raw UTF-8 bytes of a single fixed JSON encoding
"""

from __future__ import annotations

import hashlib
import json
import math
import re
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any

_CAMEL_BOUNDARY_RE = re.compile(r"([a-z0-9])([A-Z])")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_field_key(key: str) -> str:
    """
    Convert a field name to snake_case.

    Example:
        >>> normalize_field_key("TransactionDate")
        'transaction_date'
        >>> normalize_field_key("  Filed At ")
        'filed_at'
    """
    text = _CAMEL_BOUNDARY_RE.sub(r"\1_\2", key.strip()).lower()
    return _NON_ALNUM_RE.sub("_", text).strip("_")


def normalize_text(value: Any) -> str:
    """Trim and collapse internal whitespace; ``None`` becomes ``""``."""
    if value is None:
        return ""
    return _WHITESPACE_RE.sub(" ", str(value).strip())


def canonicalize(value: Any) -> Any:
    """
    Return the canonical form of a JSON-like value.

    Mappings are re-keyed with ``normalize_field_key`` and sorted by the
    normalized key, so ``{"Ticker": 1, "date": 2}`` and
    ``{"date": 2, "ticker": 1}`` canonicalize identically.

    Example:
        >>> canonicalize({"Amount": 1000.0, "Name": "  Jane   DOE "})
        {'amount': 1000, 'name': 'jane doe'}
    """
    if value is None:
        return ""
    # bool before int/float: bool is an int subclass
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            return ""
        return int(value) if value.is_integer() else value
    if isinstance(value, str):
        return normalize_text(value).lower()
    if isinstance(value, datetime | date):
        return value.isoformat()
    if isinstance(value, Mapping):
        # Iterate in sorted raw-key order so colliding keys ("Amount", "amount")
        # resolve identically whatever the input order.
        normalized = {
            normalize_field_key(str(key)): canonicalize(item)
            for key, item in sorted(value.items(), key=lambda pair: str(pair[0]))
        }
        return {key: normalized[key] for key in sorted(normalized)}
    if isinstance(value, list | tuple):
        return [canonicalize(item) for item in value]
    return normalize_text(value).lower()


def canonical_bytes(value: Any) -> bytes:
    """Serialize the canonical form of ``value`` to a deterministic byte string."""
    return json.dumps(
        canonicalize(value),
        ensure_ascii=False,
        separators=(",", ":"),
        sort_keys=True,
    ).encode("utf-8")


def stable_hash(value: Any) -> str:
    """
    SHA-256 hex digest of the canonical encoding of ``value``.

    Example:
        >>> stable_hash({"a": 1}) == stable_hash({"A": 1.0})
        True
    """
    return hashlib.sha256(canonical_bytes(value)).hexdigest()
