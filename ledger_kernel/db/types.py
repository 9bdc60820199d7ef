"""
Module: ledger_kernel.db.types
Responsibility: Annotated type aliases and the sanctioned rounding function for
    monetary values.  Centralizes precision so that every model, selector and
    service compares amounts the same way.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - Storage precision: Money is Numeric(38, 9).
    - Comparison precision: every equality check on amounts (debits == credits,
      ledger balance == recorded balance) runs on values passed through
      round_money(), so backends that return aggregates through floating
      point (SQLite) compare exactly at currency precision.
    CRITICAL: No floats anywhere in the ledger kernel.

Failure modes:
    - decimal.InvalidOperation if round_money() receives a non-numeric value.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated

from sqlalchemy import BigInteger, Numeric, String

# 38 digits total, 9 decimal places
Money = Annotated[Decimal, Numeric(38, 9)]

# Monotonic sequence number for ordering
Sequence = Annotated[int, BigInteger]

# Short identifier strings (codes, prefixes, states)
ShortCode = Annotated[str, String(50)]

# Long text for descriptions and reasons
LongText = Annotated[str, String(4000)]


MONEY_DECIMAL_PLACES = 9
CURRENCY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0.00")


def round_money(
    value: Decimal | int | str | None,
    decimal_places: int = CURRENCY_DECIMAL_PLACES,
) -> Decimal:
    """
    Quantize an amount to currency precision.

    ``None`` (an empty SUM) is treated as zero.

    Args:
        value: Amount to round.
        decimal_places: Number of decimal places (default 2).

    Returns:
        Decimal quantized with ROUND_HALF_UP.
    """
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    quantum = Decimal(1).scaleb(-decimal_places)
    return value.quantize(quantum, rounding=DEFAULT_ROUNDING)
