# Overview: Decimal money helpers shared by pricing, orders, and the POS sync.

"""
Money handling.

All amounts are Decimal dollars rounded half-up to whole cents at the
point they are produced. Payment and POS gateways speak integer cents;
JSON responses carry 2-decimal strings.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value) -> Decimal:
    """Coerce str/int/float/Decimal to a Decimal rounded half-up to cents."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, float):
        # repr keeps 19.99 as 19.99 instead of its binary expansion
        amount = Decimal(repr(value))
    else:
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f"Invalid money amount: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"Invalid money amount: {value!r}")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(value) -> int:
    """Dollars -> integer cents ("19.99" -> 1999)."""
    return int((to_money(value) * 100).to_integral_value(rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    """Integer cents -> Decimal dollars (1999 -> Decimal("19.99"))."""
    return (Decimal(int(cents)) / 100).quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(value) -> str | None:
    if value is None:
        return None
    return f"{to_money(value):.2f}"
