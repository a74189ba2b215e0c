"""
Transaction recorder.

Pure append of ledger entries. Balances are computed by the caller
(`LedgerService`) and recorded as given; this module never recomputes them
and never updates or removes an existing entry.
"""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from domain.credit_transaction import CreditTransaction, TransactionType, normalize_amount
from domain.deadline import Deadline, check_deadline
from domain.errors import InvalidArgument
from domain.money import require_non_negative
from repositories.credit_limit_repository import require_uuid
from repositories.ledger_store import LedgerStore, NewCreditTransaction

DEFAULT_PAGE_SIZE = 50


def build_entry(
    credit_limit_id: UUID,
    client_id: UUID,
    type: TransactionType | str,
    amount: object,
    balance_before: object,
    balance_after: object,
    description: str,
    actor: str,
    sale_id: Optional[UUID] = None,
    reference_id: Optional[str] = None,
) -> NewCreditTransaction:
    """
    Validate and assemble an unsaved ledger entry.

    Raises:
        InvalidArgument: unknown type, bad amount, negative balances, missing actor
    """

    type_ = TransactionType.parse(type)
    if not actor:
        raise InvalidArgument("actor is required")
    return NewCreditTransaction(
        credit_limit_id=require_uuid(credit_limit_id, name="credit_limit_id"),
        client_id=require_uuid(client_id, name="client_id"),
        type=type_,
        amount=normalize_amount(type_, amount),
        balance_before=require_non_negative(balance_before, name="balance_before"),
        balance_after=require_non_negative(balance_after, name="balance_after"),
        description=description or "",
        performed_by=actor,
        sale_id=require_uuid(sale_id, name="sale_id") if sale_id is not None else None,
        reference_id=reference_id,
    )


class TransactionRecorder:
    def __init__(self, store: LedgerStore) -> None:
        self._store = store

    def record(
        self,
        credit_limit_id: UUID,
        client_id: UUID,
        type: TransactionType | str,
        amount: object,
        balance_before: object,
        balance_after: object,
        description: str,
        actor: str,
        sale_id: Optional[UUID] = None,
        *,
        reference_id: Optional[str] = None,
        deadline: Optional[Deadline] = None,
    ) -> CreditTransaction:
        """
        Append one entry exactly as given.

        Either the entry exists with all fields set afterwards, or the store
        raised and nothing was written.
        """

        entry = build_entry(
            credit_limit_id, client_id, type, amount, balance_before, balance_after,
            description, actor, sale_id, reference_id,
        )
        check_deadline(deadline, "recording credit transaction")
        return self._store.append_transaction(entry)

    def list(
        self,
        credit_limit_id: UUID,
        limit: Optional[int] = DEFAULT_PAGE_SIZE,
        *,
        deadline: Optional[Deadline] = None,
    ) -> List[CreditTransaction]:
        """Entries for a credit limit, newest first. `limit=None` returns the full log."""

        if limit is not None and limit <= 0:
            raise InvalidArgument(f"limit must be > 0, got {limit}")
        credit_limit_id = require_uuid(credit_limit_id, name="credit_limit_id")
        check_deadline(deadline, "listing credit transactions")
        return self._store.list_transactions(credit_limit_id, limit=limit)


__all__ = ["TransactionRecorder", "build_entry", "DEFAULT_PAGE_SIZE"]
