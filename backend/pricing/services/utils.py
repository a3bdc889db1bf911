from __future__ import annotations

from decimal import Decimal, ROUND_CEILING, ROUND_HALF_UP

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0")
ONE = Decimal("1")
CM3_PER_M3 = Decimal(1_000_000)


def d(val) -> Decimal:
    """Coerce incoming values to Decimal safely."""
    if isinstance(val, Decimal):
        return val
    return Decimal(str(val))


def money(amount: Decimal) -> Decimal:
    """Round a money amount to cents, half-up (12.345 -> 12.35)."""
    return d(amount).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def ceil_int(amount: Decimal) -> int:
    """Round a Decimal up to the next whole number."""
    return int(d(amount).to_integral_value(rounding=ROUND_CEILING))
