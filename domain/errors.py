"""
Domain: credit ledger error taxonomy.

Every failure surfaced by the ledger core is one of these types. Callers can
catch `CreditLedgerError` to handle all of them, or a specific subclass to
react to one condition (e.g. retry on `ConcurrentModification`).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .eligibility import EligibilityResult


class CreditLedgerError(Exception):
    """Base class for all credit ledger failures."""


class InvalidArgument(CreditLedgerError, ValueError):
    """Negative amounts, unknown types, malformed identifiers. Raised before any I/O."""


class NotFound(CreditLedgerError):
    """No active credit limit (or application) exists for the given key."""


class InvalidState(CreditLedgerError):
    """Operation not allowed in the current state (terminal application, missing limit)."""


class InsufficientCredit(InvalidState):
    """A purchase was rejected at write time by the eligibility rules."""

    def __init__(self, message: str, eligibility: Optional["EligibilityResult"] = None) -> None:
        super().__init__(message)
        self.eligibility = eligibility


class StoreUnavailable(CreditLedgerError):
    """Transient backing-store failure. Nothing was written; safe to retry."""


class ConcurrentModification(CreditLedgerError):
    """The balance changed between read and write; re-fetch and retry."""


class OperationCancelled(CreditLedgerError):
    """The caller's deadline expired before a store call was issued."""


__all__ = [
    "CreditLedgerError",
    "InvalidArgument",
    "NotFound",
    "InvalidState",
    "InsufficientCredit",
    "StoreUnavailable",
    "ConcurrentModification",
    "OperationCancelled",
]
