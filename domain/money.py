"""
Domain: money helpers (pure).

All ledger amounts are Decimals quantized to cents.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from .errors import InvalidArgument

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Any, *, name: str = "amount") -> Decimal:
    """
    Convert an int/str/float/Decimal into a cent-quantized Decimal.

    Floats go through `str()` so 0.1 becomes Decimal('0.10') and not the
    binary expansion.
    """

    if isinstance(value, bool):
        raise InvalidArgument(f"{name} must be a number, got bool")
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidArgument(f"{name} must be a number, got {value!r}") from None
    if not amount.is_finite():
        raise InvalidArgument(f"{name} must be finite, got {value!r}")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def require_non_negative(value: Any, *, name: str = "amount") -> Decimal:
    amount = to_money(value, name=name)
    if amount < 0:
        raise InvalidArgument(f"{name} must be >= 0, got {amount}")
    return amount


def require_positive(value: Any, *, name: str = "amount") -> Decimal:
    amount = to_money(value, name=name)
    if amount <= 0:
        raise InvalidArgument(f"{name} must be > 0, got {amount}")
    return amount
