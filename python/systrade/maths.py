"""Decimal arithmetic helpers.

Prices, cash and indicator values are `decimal.Decimal`. Every multiply and
divide goes through an explicit `decimal.Context`, never the thread's
ambient one.
"""

from __future__ import annotations

from decimal import ROUND_DOWN, ROUND_HALF_EVEN, Context, Decimal

# 16 significant digits, matching IEEE 754 decimal64.
MATH_CONTEXT = Context(prec=16, rounding=ROUND_HALF_EVEN)

ZERO = Decimal(0)
ONE = Decimal(1)
ONE_HUNDRED = Decimal(100)


def to_decimal(value) -> Decimal:
    """Convert config/CSV values to Decimal without binary float artefacts."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # str() keeps the shortest round-tripping form, e.g. 0.1 -> "0.1"
        return Decimal(str(value))
    return Decimal(value)


def round_down(value: Decimal, scale: int, context: Context = MATH_CONTEXT) -> Decimal:
    """Truncate to `scale` decimal places (equity volumes are never rounded up)."""
    return value.quantize(Decimal(1).scaleb(-scale), rounding=ROUND_DOWN, context=context)
