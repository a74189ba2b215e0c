"""
Ledger service: balance mutation for credit accounts.

Handles:
- purchase / payment / adjustment postings with before/after balances
- limit changes together with their `limit_change` entry
- ledger replay and verification

Process for a balance-affecting posting:
1. Validate arguments (InvalidArgument, before any I/O)
2. Take the client's account lock
3. Re-read the current credit limit (InvalidState if none)
4. Purchases: re-validate eligibility against the fresh balance
5. Compute balance_after (`domain.credit_transaction.compute_balance_after`)
6. Write entry + limit atomically, guarded by the balance read in step 3
7. On ConcurrentModification, retry from step 3 (bounded)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, List, Optional
from uuid import UUID

from domain.credit_limit import CreditLimit, CreditLimitStatus
from domain.credit_transaction import (
    BALANCE_TYPES,
    CreditTransaction,
    TransactionType,
    compute_balance_after,
    find_chain_breaks,
    normalize_amount,
    replay_used_amount,
)
from domain.deadline import Deadline, check_deadline
from domain.eligibility import can_purchase
from domain.errors import ConcurrentModification, InsufficientCredit, InvalidArgument, InvalidState, NotFound
from domain.money import require_non_negative
from domain.time import utc_now
from repositories.credit_limit_repository import CreditLimitRepository, require_uuid
from repositories.credit_transaction_repository import TransactionRecorder, build_entry
from repositories.ledger_store import LedgerStore
from services.concurrency import KeyedLock
from services.settings_service import SettingsProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LedgerPosting:
    """Result of a write: the limit as stored afterwards and the entry written (if any)."""

    credit_limit: CreditLimit
    transaction: Optional[CreditTransaction]


@dataclass(frozen=True, slots=True)
class LedgerVerification:
    credit_limit_id: UUID
    stored_used_amount: Decimal
    replayed_used_amount: Decimal
    entries: int
    chain_breaks: List[UUID] = field(default_factory=list)

    @property
    def consistent(self) -> bool:
        return self.stored_used_amount == self.replayed_used_amount and not self.chain_breaks


class LedgerService:
    def __init__(
        self,
        store: LedgerStore,
        settings: SettingsProvider,
        *,
        locks: Optional[KeyedLock] = None,
        max_retries: int = 3,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._settings = settings
        self._locks = locks or KeyedLock()
        self._max_retries = max_retries
        self._clock = clock
        self.limits = CreditLimitRepository(store)
        self.recorder = TransactionRecorder(store)

    # ------------------------------------------------------------------
    # Balance postings
    # ------------------------------------------------------------------

    def _next_due_date(
        self,
        limit: CreditLimit,
        type_: TransactionType,
        balance_after: Decimal,
        deadline: Optional[Deadline] = None,
    ) -> Optional[datetime]:
        if balance_after == 0:
            return None
        if type_ is TransactionType.PURCHASE and (limit.used_amount == 0 or limit.due_date is None):
            settings = self._settings.ensure_loaded(deadline=deadline)
            return self._clock() + timedelta(days=settings.max_credit_days)
        return limit.due_date

    def record(
        self,
        client_id: UUID,
        type: TransactionType | str,
        amount: object,
        description: str,
        actor: str,
        sale_id: Optional[UUID] = None,
        *,
        reference_id: Optional[str] = None,
        enforce_limit: bool = True,
        deadline: Optional[Deadline] = None,
    ) -> LedgerPosting:
        """
        Post a purchase, payment or adjustment against the client's limit.

        Raises:
            InvalidArgument: bad type/amount/identifier (no I/O performed)
            InvalidState: no active limit; purchase on a suspended/blocked account
            InsufficientCredit: purchase above the available credit
            ConcurrentModification: balance kept changing after all retries
        """

        client_id = require_uuid(client_id, name="client_id")
        type_ = TransactionType.parse(type)
        if type_ not in BALANCE_TYPES:
            raise InvalidArgument("limit changes must go through change_limit()")
        value = normalize_amount(type_, amount)
        if not actor:
            raise InvalidArgument("actor is required")

        attempts = self._max_retries + 1
        for attempt in range(1, attempts + 1):
            with self._locks.hold(client_id):
                limit = self.limits.get(client_id, deadline=deadline)
                if limit is None:
                    raise InvalidState(f"Client {client_id} has no active credit limit")

                if type_ is TransactionType.PURCHASE and enforce_limit:
                    eligibility = can_purchase(limit, value)
                    if not eligibility.allowed:
                        logger.warning(
                            "Credit purchase rejected",
                            extra={
                                "client_id": str(client_id),
                                "amount": str(value),
                                "available_credit": str(eligibility.available_credit),
                                "reason": eligibility.reason,
                            },
                        )
                        if limit.status is not CreditLimitStatus.ACTIVE:
                            raise InvalidState(f"Cannot purchase on credit: {eligibility.reason}")
                        raise InsufficientCredit(
                            f"Cannot purchase {value} on credit: {eligibility.reason} "
                            f"(available {eligibility.available_credit})",
                            eligibility,
                        )

                balance_before = limit.used_amount
                balance_after = compute_balance_after(type_, balance_before, value)
                entry = build_entry(
                    limit.id, client_id, type_, value, balance_before, balance_after,
                    description, actor, sale_id, reference_id,
                )
                due_date = self._next_due_date(limit, type_, balance_after, deadline)
                check_deadline(deadline, f"posting {type_.value}")
                try:
                    updated, transaction = self._store.apply_transaction(
                        entry,
                        expected_used_amount=balance_before,
                        due_date=due_date,
                    )
                except ConcurrentModification:
                    if attempt == attempts:
                        logger.error(
                            "Credit posting failed after retries",
                            extra={"client_id": str(client_id), "type": type_.value, "attempts": attempts},
                        )
                        raise
                    logger.warning(
                        "Balance changed during posting, retrying",
                        extra={"client_id": str(client_id), "type": type_.value, "attempt": attempt},
                    )
                    continue

            logger.info(
                "Credit transaction recorded",
                extra={
                    "client_id": str(client_id),
                    "credit_limit_id": str(updated.id),
                    "type": type_.value,
                    "amount": str(value),
                    "balance_before": str(balance_before),
                    "balance_after": str(balance_after),
                    "sale_id": str(sale_id) if sale_id else None,
                },
            )
            return LedgerPosting(credit_limit=updated, transaction=transaction)

        raise AssertionError("unreachable")

    # ------------------------------------------------------------------
    # Limit changes
    # ------------------------------------------------------------------

    def change_limit(
        self,
        client_id: UUID,
        limit_amount: object,
        actor: str,
        *,
        description: Optional[str] = None,
        notes: Optional[str] = None,
        reference_id: Optional[str] = None,
        deadline: Optional[Deadline] = None,
    ) -> LedgerPosting:
        """
        Set a client's limit and write the matching `limit_change` entry
        (amount = new limit - previous limit; balances unchanged).

        Opens the account when the client has no limit yet. Setting the limit
        to its current value writes nothing, unless `reference_id` is given
        (an approval), which is audited with a zero-amount entry.
        """

        client_id = require_uuid(client_id, name="client_id")
        new_limit = require_non_negative(limit_amount, name="limit_amount")
        if not actor:
            raise InvalidArgument("actor is required")

        with self._locks.hold(client_id):
            current = self.limits.get(client_id, deadline=deadline)

            if current is None:
                created = self.limits.upsert(client_id, new_limit, actor, notes, deadline=deadline)
                transaction = self.recorder.record(
                    created.id,
                    client_id,
                    TransactionType.LIMIT_CHANGE,
                    new_limit,
                    created.used_amount,
                    created.used_amount,
                    description or f"Credit limit opened at {new_limit}",
                    actor,
                    reference_id=reference_id,
                    deadline=deadline,
                )
                return LedgerPosting(credit_limit=created, transaction=transaction)

            if current.limit_amount == new_limit:
                updated = current
                if notes is not None:
                    updated = self.limits.upsert(client_id, new_limit, actor, notes, deadline=deadline)
                transaction = None
                if reference_id is not None:
                    transaction = self.recorder.record(
                        updated.id,
                        client_id,
                        TransactionType.LIMIT_CHANGE,
                        Decimal("0"),
                        updated.used_amount,
                        updated.used_amount,
                        description or f"Credit limit confirmed at {new_limit}",
                        actor,
                        reference_id=reference_id,
                        deadline=deadline,
                    )
                return LedgerPosting(credit_limit=updated, transaction=transaction)

            check_deadline(deadline, "changing credit limit")
            updated, transaction = self._store.change_credit_limit(
                client_id,
                new_limit,
                actor=actor,
                description=description or f"Limit changed from {current.limit_amount} to {new_limit}",
                notes=notes,
                reference_id=reference_id,
            )

        logger.info(
            "Credit limit changed",
            extra={
                "client_id": str(client_id),
                "credit_limit_id": str(updated.id),
                "previous_limit": str(current.limit_amount),
                "limit_amount": str(updated.limit_amount),
                "actor": actor,
            },
        )
        return LedgerPosting(credit_limit=updated, transaction=transaction)

    # ------------------------------------------------------------------
    # Reads and verification
    # ------------------------------------------------------------------

    def transactions(
        self,
        client_id: UUID,
        *,
        limit: Optional[int] = 50,
        deadline: Optional[Deadline] = None,
    ) -> List[CreditTransaction]:
        """Newest-first entries for the client's active limit (empty when there is none)."""

        credit_limit = self.limits.get(client_id, deadline=deadline)
        if credit_limit is None:
            return []
        return self.recorder.list(credit_limit.id, limit, deadline=deadline)

    def verify(self, client_id: UUID, *, deadline: Optional[Deadline] = None) -> LedgerVerification:
        """Replay the full log from zero and compare it with the stored balance."""

        credit_limit = self.limits.get(client_id, deadline=deadline)
        if credit_limit is None:
            raise NotFound(f"Client {client_id} has no active credit limit")
        entries = self.recorder.list(credit_limit.id, None, deadline=deadline)
        replayed = replay_used_amount(entries)
        return LedgerVerification(
            credit_limit_id=credit_limit.id,
            stored_used_amount=credit_limit.used_amount,
            replayed_used_amount=replayed,
            entries=len(entries),
            chain_breaks=[entry.id for entry in find_chain_breaks(entries)],
        )


__all__ = ["LedgerService", "LedgerPosting", "LedgerVerification"]
