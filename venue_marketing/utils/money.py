from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from typing import Any, Optional


CENT = Decimal("0.01")
ZERO = Decimal("0")
MICROS_PER_UNIT = Decimal(1_000_000)


def to_decimal(value: Any) -> Decimal:
    """Coerce a number-like value to Decimal; None, NaN, infinities and garbage become 0."""
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        return value if value.is_finite() else ZERO
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return ZERO
        # str() yields the shortest repr, so 1.005 stays 1.005 instead of 1.00499999...
        return Decimal(str(value))
    s = str(value).strip()
    if not s:
        return ZERO
    try:
        out = Decimal(s)
    except InvalidOperation:
        return ZERO
    return out if out.is_finite() else ZERO


def _quantize_cents(value: Decimal) -> Decimal:
    # quantize raises unless the precision covers the integer digits plus a carry and the cents.
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, value.adjusted() + 4)
        return value.quantize(CENT, rounding=ROUND_HALF_UP)


def round_money(value: Any) -> Decimal:
    return _quantize_cents(to_decimal(value))


def round_count(value: Any) -> Decimal:
    # Ad platform conversions are fractional; same two-decimal rule as money.
    return _quantize_cents(to_decimal(value))


def micros_to_money(micros: Any) -> Decimal:
    return round_money(to_decimal(micros) / MICROS_PER_UNIT)


def safe_ratio(numerator: Decimal, denominator: Optional[Decimal]) -> Optional[Decimal]:
    if denominator is not None and denominator > 0:
        return round_money(numerator / denominator)
    return None


def money_to_float(value: Optional[Decimal]) -> Optional[float]:
    if value is None:
        return None
    # + 0.0 folds the negative zero that rounding a tiny negative shortfall leaves behind.
    return float(round_money(value)) + 0.0
