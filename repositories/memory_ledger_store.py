"""
In-memory ledger store.

Process-local implementation of the LedgerStore contract. A single lock
guards all state, which makes every operation atomic and gives the same
guarantees the Supabase RPC functions give (guarded writes, no partial
appends). Used by the test-suite, demos and `CREDIT_LEDGER_STORE=memory`.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple
from uuid import UUID, uuid4

from domain.credit_application import ApplicationStatus, CreditApplication
from domain.credit_limit import CreditLimit, CreditLimitStatus
from domain.credit_transaction import CreditTransaction, TransactionType
from domain.errors import ConcurrentModification, InvalidState, NotFound
from domain.money import ZERO
from domain.settings import CreditLimitSettings
from domain.time import utc_now
from repositories.ledger_store import NewCreditTransaction


class InMemoryLedgerStore:
    def __init__(
        self,
        *,
        settings: Optional[CreditLimitSettings] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._lock = threading.RLock()
        self._clock = clock
        # Every limit ever created, keyed by id; at most one active per client.
        self._limits: Dict[UUID, CreditLimit] = {}
        self._active_by_client: Dict[UUID, UUID] = {}
        # Append-only, oldest first.
        self._transactions: Dict[UUID, List[CreditTransaction]] = {}
        self._applications: Dict[UUID, CreditApplication] = {}
        self._settings = settings or CreditLimitSettings()

    # ------------------------------------------------------------------
    # Credit limits
    # ------------------------------------------------------------------

    def get_credit_limit(self, client_id: UUID) -> Optional[CreditLimit]:
        with self._lock:
            limit_id = self._active_by_client.get(client_id)
            return self._limits[limit_id] if limit_id is not None else None

    def list_credit_limits(self, *, active_only: bool = True) -> List[CreditLimit]:
        with self._lock:
            return [lim for lim in self._limits.values() if lim.is_active or not active_only]

    def _require_active(self, client_id: UUID) -> CreditLimit:
        current = self.get_credit_limit(client_id)
        if current is None:
            raise InvalidState(f"Client {client_id} has no active credit limit")
        return current

    def _save_limit(self, limit: CreditLimit) -> CreditLimit:
        self._limits[limit.id] = limit
        if limit.is_active:
            previous_id = self._active_by_client.get(limit.client_id)
            if previous_id is not None and previous_id != limit.id:
                # One active record per client: the previous one is deactivated, never deleted.
                self._limits[previous_id] = self._limits[previous_id].deactivated(updated_at=limit.updated_at)
            self._active_by_client[limit.client_id] = limit.id
        return limit

    def upsert_credit_limit(
        self,
        client_id: UUID,
        limit_amount: Decimal,
        *,
        actor: str,
        notes: Optional[str] = None,
    ) -> CreditLimit:
        with self._lock:
            now = self._clock()
            current = self.get_credit_limit(client_id)
            if current is None:
                return self._save_limit(CreditLimit(
                    id=uuid4(),
                    client_id=client_id,
                    limit_amount=limit_amount,
                    used_amount=ZERO,
                    status=CreditLimitStatus.ACTIVE,
                    is_active=True,
                    created_at=now,
                    updated_at=now,
                    approved_by=actor,
                    notes=notes,
                ))
            return self._save_limit(
                current.with_limit_amount(limit_amount, updated_at=now, approved_by=actor, notes=notes)
            )

    def set_credit_limit_status(self, client_id: UUID, status: CreditLimitStatus, *, actor: str) -> CreditLimit:
        with self._lock:
            current = self._require_active(client_id)
            return self._save_limit(replace(current, status=status, approved_by=actor, updated_at=self._clock()))

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
        with self._lock:
            current = self._require_active(client_id)
            now = self._clock()
            updated = current.with_limit_amount(limit_amount, updated_at=now, approved_by=actor, notes=notes)
            entry = self._build_entry(
                NewCreditTransaction(
                    credit_limit_id=current.id,
                    client_id=client_id,
                    type=TransactionType.LIMIT_CHANGE,
                    amount=limit_amount - current.limit_amount,
                    balance_before=current.used_amount,
                    balance_after=current.used_amount,
                    description=description,
                    performed_by=actor,
                    reference_id=reference_id,
                ),
                now,
            )
            self._save_limit(updated)
            self._transactions.setdefault(current.id, []).append(entry)
            return updated, entry

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @staticmethod
    def _build_entry(entry: NewCreditTransaction, created_at: datetime) -> CreditTransaction:
        return CreditTransaction(
            id=uuid4(),
            credit_limit_id=entry.credit_limit_id,
            client_id=entry.client_id,
            type=entry.type,
            amount=entry.amount,
            balance_before=entry.balance_before,
            balance_after=entry.balance_after,
            description=entry.description,
            performed_by=entry.performed_by,
            created_at=created_at,
            sale_id=entry.sale_id,
            reference_id=entry.reference_id,
        )

    def list_transactions(self, credit_limit_id: UUID, *, limit: Optional[int] = None) -> List[CreditTransaction]:
        with self._lock:
            newest_first = list(reversed(self._transactions.get(credit_limit_id, [])))
        return newest_first[:limit] if limit is not None else newest_first

    def append_transaction(self, entry: NewCreditTransaction) -> CreditTransaction:
        with self._lock:
            if entry.credit_limit_id not in self._limits:
                raise NotFound(f"Credit limit {entry.credit_limit_id} does not exist")
            # Build fully before appending so a failure leaves no trace.
            created = self._build_entry(entry, self._clock())
            self._transactions.setdefault(entry.credit_limit_id, []).append(created)
            return created

    def apply_transaction(
        self,
        entry: NewCreditTransaction,
        *,
        expected_used_amount: Decimal,
        due_date: Optional[datetime],
    ) -> Tuple[CreditLimit, CreditTransaction]:
        with self._lock:
            current = self._limits.get(entry.credit_limit_id)
            if current is None or not current.is_active:
                raise InvalidState(f"Credit limit {entry.credit_limit_id} is not active")
            if current.used_amount != expected_used_amount:
                raise ConcurrentModification(
                    f"used_amount changed from {expected_used_amount} to {current.used_amount}"
                )
            now = self._clock()
            created = self._build_entry(entry, now)
            updated = current.with_used_amount(entry.balance_after, updated_at=now, due_date=due_date)
            self._save_limit(updated)
            self._transactions.setdefault(current.id, []).append(created)
            return updated, created

    # ------------------------------------------------------------------
    # Applications
    # ------------------------------------------------------------------

    def list_applications(self, client_id: UUID) -> List[CreditApplication]:
        with self._lock:
            apps = [a for a in self._applications.values() if a.client_id == client_id]
        return sorted(apps, key=lambda a: a.created_at, reverse=True)

    def get_application(self, application_id: UUID) -> Optional[CreditApplication]:
        with self._lock:
            return self._applications.get(application_id)

    def insert_application(self, application: CreditApplication) -> CreditApplication:
        with self._lock:
            if application.id in self._applications:
                raise InvalidState(f"Application {application.id} already exists")
            self._applications[application.id] = application
            return application

    def update_application(
        self,
        application: CreditApplication,
        *,
        expected_status: ApplicationStatus,
    ) -> CreditApplication:
        with self._lock:
            stored = self._applications.get(application.id)
            if stored is None:
                raise NotFound(f"Application {application.id} not found")
            if stored.status is not expected_status:
                raise InvalidState(
                    f"Application {application.id} is {stored.status.value}, expected {expected_status.value}"
                )
            self._applications[application.id] = application
            return application

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def get_settings(self) -> CreditLimitSettings:
        with self._lock:
            return self._settings

    def update_settings(self, patch: Mapping[str, Any]) -> CreditLimitSettings:
        with self._lock:
            self._settings = self._settings.merged(patch)
            return self._settings


__all__ = ["InMemoryLedgerStore"]
