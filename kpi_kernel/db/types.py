"""
Module: kpi_kernel.db.types
Responsibility: Annotated type aliases and rounding helpers for KPI columns.
    Centralizes money precision and rounding so that the aggregator, the
    finance enricher and the stores all agree on representation.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/ and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats for money.  Ledger relations store integer cents; everything
      above the ledger boundary is a Decimal in currency units.
    - round_money() is the only rounding function for monetary values.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated

from sqlalchemy import BigInteger, Integer, Numeric, String

# Monetary amount, 38 digits total, 9 decimal places
Money = Annotated[Decimal, Numeric(38, 9)]

# Hourly rate in currency units
Rate = Annotated[Decimal, Numeric(38, 9)]

# Whole minutes of labour time
Minutes = Annotated[int, Integer]

# Owner-scoped job sequence number
JobNo = Annotated[int, BigInteger]

# Normalized (digits-only) owner identifier
OwnerId = Annotated[str, String(64)]

MONEY_DECIMAL_PLACES = 2
PERCENT_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

_CENTS_PER_UNIT = Decimal(100)


def money_from_cents(value: int | Decimal | None) -> Decimal | None:
    """
    Convert an integer amount of cents into currency units.

    ``None`` passes through so that an unavailable ledger sum stays
    unavailable.

    Example:
        money_from_cents(1050) -> Decimal("10.50")
    """
    if value is None:
        return None
    return round_money(Decimal(value) / _CENTS_PER_UNIT)


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given number of decimal places.

    Args:
        value: The Decimal value to round.
        decimal_places: Number of decimal places to round to.
        rounding: Rounding mode (default: ROUND_HALF_UP).
    """
    quantize_str = "0." + "0" * decimal_places
    return value.quantize(Decimal(quantize_str), rounding=rounding)
