"""
Ledger store contract.

The durable owner of record for credit limits, the append-only transaction
log and credit applications. Implementations:
- `repositories.supabase_ledger_store.SupabaseLedgerStore` (hosted Postgres via supabase-py)
- `repositories.memory_ledger_store.InMemoryLedgerStore` (in-process, tests and demos)

Every method either fully applies or raises; there are no partial writes.
Failures are reported with the `domain.errors` taxonomy.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, List, Mapping, Optional, Protocol, Tuple
from uuid import UUID

from domain.credit_application import ApplicationStatus, CreditApplication
from domain.credit_limit import CreditLimit, CreditLimitStatus
from domain.credit_transaction import CreditTransaction, TransactionType
from domain.settings import CreditLimitSettings


@dataclass(frozen=True, slots=True)
class NewCreditTransaction:
    """A ledger entry that has not been persisted yet (no id, no created_at)."""

    credit_limit_id: UUID
    client_id: UUID
    type: TransactionType
    amount: Decimal
    balance_before: Decimal
    balance_after: Decimal
    description: str
    performed_by: str
    sale_id: Optional[UUID] = None
    reference_id: Optional[str] = None


class LedgerStore(Protocol):
    # Credit limits

    def get_credit_limit(self, client_id: UUID) -> Optional[CreditLimit]:
        """Return the single active limit for the client, or None."""
        ...

    def list_credit_limits(self, *, active_only: bool = True) -> List[CreditLimit]:
        ...

    def upsert_credit_limit(
        self,
        client_id: UUID,
        limit_amount: Decimal,
        *,
        actor: str,
        notes: Optional[str] = None,
    ) -> CreditLimit:
        """
        Create the active limit if absent, otherwise update limit_amount in place.

        The current used_amount is re-read inside the write so in-flight
        purchases are never clobbered.
        """
        ...

    def set_credit_limit_status(self, client_id: UUID, status: CreditLimitStatus, *, actor: str) -> CreditLimit:
        ...

    def change_credit_limit(
        self,
        client_id: UUID,
        limit_amount: Decimal,
        *,
        actor: str,
        description: str,
        notes: Optional[str] = None,
        reference_id: Optional[str] = None,
    ) -> Tuple[CreditLimit, CreditTransaction]:
        """Atomically update an existing limit and append its limit_change entry."""
        ...

    # Transactions

    def list_transactions(self, credit_limit_id: UUID, *, limit: Optional[int] = None) -> List[CreditTransaction]:
        """Entries for one credit limit, newest first."""
        ...

    def append_transaction(self, entry: NewCreditTransaction) -> CreditTransaction:
        ...

    def apply_transaction(
        self,
        entry: NewCreditTransaction,
        *,
        expected_used_amount: Decimal,
        due_date: Optional[datetime],
    ) -> Tuple[CreditLimit, CreditTransaction]:
        """
        Atomically append `entry` and set the limit's used_amount to
        entry.balance_after (and its due date).

        Raises ConcurrentModification when the stored used_amount no longer
        equals `expected_used_amount`.
        """
        ...

    # Applications

    def list_applications(self, client_id: UUID) -> List[CreditApplication]:
        ...

    def get_application(self, application_id: UUID) -> Optional[CreditApplication]:
        ...

    def insert_application(self, application: CreditApplication) -> CreditApplication:
        ...

    def update_application(
        self,
        application: CreditApplication,
        *,
        expected_status: ApplicationStatus,
    ) -> CreditApplication:
        """
        Persist `application` only if the stored status is still `expected_status`.

        Raises InvalidState otherwise, so a decision is applied at most once.
        """
        ...

    # Settings

    def get_settings(self) -> CreditLimitSettings:
        ...

    def update_settings(self, patch: Mapping[str, Any]) -> CreditLimitSettings:
        ...


__all__ = ["LedgerStore", "NewCreditTransaction"]
