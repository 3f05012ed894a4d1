"""Decimal money helpers.

All balances, prices and cost bases are Decimal, rounded to 2 places with
ROUND_HALF_UP (half away from zero) when they are stored. Floats never
enter a money calculation.
"""

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
QUANTITY_STEP = Decimal("0.000001")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


def to_money(value: Decimal | int | str) -> Decimal:
    """Round to currency precision: Decimal('2.345') -> Decimal('2.35')."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def percentage(part: Decimal, whole: Decimal) -> Decimal:
    """part / whole × 100 rounded to 2 places; 0 when whole is 0."""
    if whole == 0:
        return ZERO
    return to_money(part / whole * HUNDRED)


def money_display(amount: Decimal) -> str:
    """Format for display: Decimal('1500') -> '$1,500.00', Decimal('-12') -> '-$12.00'."""
    rounded = to_money(amount)
    if rounded < 0:
        return f"-${-rounded:,.2f}"
    return f"${rounded:,.2f}"
