"""Fixed rounding policy for every percentage figure the event study emits."""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Context, Decimal

PERCENT_DIGITS = 6
HIT_RATE_DIGITS = 4

# Wide enough for any finite double at any supported digit count.
_QUANTIZE_CONTEXT = Context(prec=400)


def round_half_away(value: float, digits: int = PERCENT_DIGITS) -> float:
    """Round ``value`` half away from zero at ``digits`` decimal places.

    Goes through the shortest ``repr`` of the float so that e.g.
    ``10.000000000000009`` rounds to ``10.0`` deterministically on every host.
    Non-finite input is returned unchanged; callers validate finiteness.

    Example:
        >>> round_half_away(0.0000025)
        3e-06
        >>> round_half_away(-0.0000025)
        -3e-06
    """
    if not math.isfinite(value):
        return value
    quantum = Decimal(1).scaleb(-digits)
    rounded = float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP, context=_QUANTIZE_CONTEXT))
    # Normalize -0.0 so serialized output is stable.
    return rounded + 0.0
