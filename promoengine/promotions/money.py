"""
promoengine/promotions/money.py
-------------------------------
Currency precision helpers. Every amount in the engine is a Decimal
quantized to two places; rounding happens at each step, not only at
the end.
"""
from decimal import Decimal, ROUND_HALF_UP


Q    = Decimal('0.01')   # quantize target
ZERO = Decimal('0.00')


def round2(value) -> Decimal:
    """Quantize a Decimal (or int/str) to currency precision."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(Q, rounding=ROUND_HALF_UP)


def money_sum(values) -> Decimal:
    return round2(sum(values, start=ZERO))


def format_money(value: Decimal) -> str:
    """Render an amount for reason strings, e.g. Decimal('5') → '5.00'."""
    return f'{round2(value):.2f}'
