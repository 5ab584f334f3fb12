# app/utils/decimal_utils.py
from decimal import Decimal, InvalidOperation, ROUND_HALF_EVEN
from app.core.config import CURRENCY_QUANTUM

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value, default: Decimal = ZERO) -> Decimal:
    """Coerce DB/JSON numerics to Decimal; floats go through str to avoid binary noise."""
    if value is None:
        return default
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default


def quantize_money(value) -> Decimal:
    """Round to the currency minor unit using round-half-to-even."""
    return to_decimal(value).quantize(CURRENCY_QUANTUM, rounding=ROUND_HALF_EVEN)


def non_negative(value) -> Decimal:
    value = to_decimal(value)
    return value if value > ZERO else ZERO


def percent_of(amount, base) -> Decimal:
    """amount / base * 100; a zero base yields zero."""
    base = to_decimal(base)
    if base <= ZERO:
        return ZERO
    return (to_decimal(amount) / base * HUNDRED).quantize(Decimal("0.0001"), rounding=ROUND_HALF_EVEN)
