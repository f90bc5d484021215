"""
Module: settlement_kernel.db.types
Responsibility: Annotated type aliases and rounding helpers for financial-grade
    column types.  Centralizes precision and tolerance so that every model and
    service uses identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

CRITICAL: No floats anywhere in the settlement kernel.  All monetary amounts
use Decimal with explicit precision.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated

from sqlalchemy import Numeric, String

# Monetary amount: 38 digits total, 9 decimal places
Money = Annotated[Decimal, Numeric(38, 9)]

# Short identifier strings (enum values, check numbers)
ShortCode = Annotated[str, String(50)]

# Long text for descriptions and notes
LongText = Annotated[str, String(4000)]

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")

# Absolute tolerance for amount comparisons (one cent)
DEFAULT_TOLERANCE = Decimal("0.01")


def money_from_str(value: str) -> Decimal:
    """
    Create a Money value from string.

    Raises:
        decimal.InvalidOperation: If value is not a number.
    """
    return Decimal(value)


def to_money(value: Decimal | int | str | None) -> Decimal:
    """Coerce an optional amount to Decimal; None becomes zero.

    Floats are rejected: they cannot represent cents exactly.
    """
    if value is None:
        return ZERO
    if isinstance(value, float):
        raise TypeError("Monetary amounts must be Decimal, int or str, not float")
    if isinstance(value, Decimal):
        return value
    return Decimal(value)


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to specified decimal places.

    This is the ONLY sanctioned rounding function for financial values in
    the kernel.
    """
    quantize_str = "0." + "0" * decimal_places if decimal_places > 0 else "1"
    return value.quantize(Decimal(quantize_str), rounding=rounding)


def amounts_match(
    left: Decimal,
    right: Decimal,
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> bool:
    """True when two amounts differ by no more than the tolerance."""
    return abs(left - right) <= tolerance
