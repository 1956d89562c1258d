"""
Order pricing in fixed-point decimal.

Prices come from the catalog as Decimal; quantities are integers. All
rounding goes through `round2` (half-up to cents) so stored totals always
reconcile with their lines.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

CENT = Decimal("0.01")

# Ceiling of a Numeric(12, 2) column
MAX_AMOUNT = Decimal("9999999999.99")


def round2(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def to_money(value) -> Decimal:
    """
    Coerce a price to Decimal without going through binary floats.

    Floats are converted via their shortest repr, so 12.5 becomes
    Decimal("12.50") rather than its binary expansion.
    """
    if isinstance(value, Decimal):
        return round2(value)
    if isinstance(value, float):
        return round2(Decimal(repr(value)))
    return round2(Decimal(value))


def line_subtotal(unit_price: Decimal, quantity: int) -> Decimal:
    return round2(to_money(unit_price) * quantity)


def order_total(subtotals: Iterable[Decimal]) -> Decimal:
    return round2(sum(subtotals, Decimal("0")))
