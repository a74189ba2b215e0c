"""
Domain: credit ledger entries.

Rules implemented here:
- Ledger entries are immutable once created. Corrections are new `adjustment`
  entries, never edits.
- Entries carry balance_before / balance_after; for a single credit limit the
  balance_after of one entry equals the balance_before of the next one.
- Balance arithmetic lives in `compute_balance_after` and nowhere else:
  - purchase:            after = before + amount
  - payment:             after = max(0, before - amount)
  - adjustment (signed): after = before + amount, floored at 0
  - limit_change:        after = before (balance untouched)

Overpayments are clamped to zero and the excess is not tracked as credit in
favor of the client.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Iterable, List, Optional, Sequence
from uuid import UUID

from .errors import InvalidArgument
from .money import ZERO, require_non_negative, require_positive, to_money
from .time import require_utc_timestamp


class TransactionType(str, Enum):
    PURCHASE = "purchase"
    PAYMENT = "payment"
    ADJUSTMENT = "adjustment"
    LIMIT_CHANGE = "limit_change"

    @staticmethod
    def parse(value: "TransactionType | str") -> "TransactionType":
        if isinstance(value, TransactionType):
            return value
        try:
            return TransactionType(str(value))
        except ValueError:
            raise InvalidArgument(f"Unknown transaction type: {value!r}") from None


# Types a caller may record directly; limit changes go through the limit workflow.
BALANCE_TYPES = frozenset({TransactionType.PURCHASE, TransactionType.PAYMENT, TransactionType.ADJUSTMENT})


@dataclass(frozen=True, slots=True)
class CreditTransaction:
    """Immutable ledger entry for one balance-affecting (or limit) event."""

    id: UUID
    credit_limit_id: UUID
    client_id: UUID
    type: TransactionType
    amount: Decimal
    balance_before: Decimal
    balance_after: Decimal
    description: str
    performed_by: str
    created_at: datetime
    sale_id: Optional[UUID] = None
    reference_id: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", TransactionType.parse(self.type))
        object.__setattr__(self, "amount", to_money(self.amount))
        object.__setattr__(self, "balance_before", require_non_negative(self.balance_before, name="balance_before"))
        object.__setattr__(self, "balance_after", require_non_negative(self.balance_after, name="balance_after"))
        require_utc_timestamp("created_at", self.created_at)


def normalize_amount(type_: TransactionType, amount: object) -> Decimal:
    """
    Validate an amount for the given transaction type.

    Purchases and payments take a strictly positive amount. Adjustments are
    signed (positive raises the balance, negative lowers it) and must be
    non-zero. Limit changes carry the signed limit delta.
    """

    if type_ in (TransactionType.PURCHASE, TransactionType.PAYMENT):
        return require_positive(amount)
    value = to_money(amount)
    if type_ is TransactionType.ADJUSTMENT and value == 0:
        raise InvalidArgument("adjustment amount must be non-zero")
    return value


def compute_balance_after(type_: TransactionType, balance_before: Decimal, amount: Decimal) -> Decimal:
    """Single source of truth for ledger balance arithmetic."""

    if type_ is TransactionType.PURCHASE:
        return balance_before + amount
    if type_ is TransactionType.PAYMENT:
        return max(ZERO, balance_before - amount)
    if type_ is TransactionType.ADJUSTMENT:
        return max(ZERO, balance_before + amount)
    return balance_before


def chronological(entries: Iterable[CreditTransaction]) -> List[CreditTransaction]:
    """
    Order entries oldest first.

    Stores list entries newest first; entries sharing a timestamp keep their
    relative insertion order.
    """

    newest_first = list(entries)
    oldest_first = list(reversed(newest_first))
    return sorted(oldest_first, key=lambda e: e.created_at)


def replay_used_amount(entries: Iterable[CreditTransaction]) -> Decimal:
    """Reconstruct the current used amount by replaying the log from zero."""

    balance = ZERO
    for entry in chronological(entries):
        balance = compute_balance_after(entry.type, balance, entry.amount)
    return balance


def find_chain_breaks(entries: Sequence[CreditTransaction]) -> List[CreditTransaction]:
    """Return entries whose balance_before does not match the previous balance_after."""

    breaks: List[CreditTransaction] = []
    previous: Optional[CreditTransaction] = None
    for entry in chronological(entries):
        if previous is not None and entry.balance_before != previous.balance_after:
            breaks.append(entry)
        previous = entry
    return breaks


__all__ = [
    "TransactionType",
    "BALANCE_TYPES",
    "CreditTransaction",
    "normalize_amount",
    "compute_balance_after",
    "chronological",
    "replay_used_amount",
    "find_chain_breaks",
]
