"""
Module: procurement_kernel.db.types
Responsibility: the sole sanctioned money rounding helper, and coercion of
    aggregate results read back from the database.

CRITICAL: no floats anywhere.  All monetary amounts are Decimal.
"""

from decimal import ROUND_HALF_UP, Decimal

MONEY_DECIMAL_PLACES = 2


def round_money(value: Decimal, decimal_places: int = MONEY_DECIMAL_PLACES) -> Decimal:
    """Quantize a monetary value using ROUND_HALF_UP."""
    quantum = Decimal(1).scaleb(-decimal_places)
    return value.quantize(quantum, rounding=ROUND_HALF_UP)


def money_from_db(value: object) -> Decimal:
    """
    Coerce a value read back from the database into money precision.

    SUM() over a Numeric column runs in floating point on SQLite, and the
    driver hands back a Decimal carrying the binary noise
    (``20000000.299999997``).  Every result is quantized to money places;
    non-Decimal values go through str() first.
    """
    if value is None:
        return round_money(Decimal("0"))
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return round_money(value)
