"""
Credit limit repository.

Loads, creates and updates the single active CreditLimit per client. It does
not write ledger entries: callers that change a limit for an auditable reason
use `LedgerService.change_limit`, which writes the limit and its
`limit_change` entry together.
"""

from __future__ import annotations

import logging
from typing import List, Optional
from uuid import UUID

from domain.credit_limit import CreditLimit, CreditLimitStatus
from domain.deadline import Deadline, check_deadline
from domain.errors import InvalidArgument, NotFound
from domain.money import require_non_negative
from repositories.ledger_store import LedgerStore

logger = logging.getLogger(__name__)


def require_uuid(value: object, *, name: str) -> UUID:
    """Accept a UUID or its string form; anything else is a malformed identifier."""

    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        raise InvalidArgument(f"{name} is not a valid identifier: {value!r}") from None


class CreditLimitRepository:
    def __init__(self, store: LedgerStore) -> None:
        self._store = store

    def get(self, client_id: UUID, *, deadline: Optional[Deadline] = None) -> Optional[CreditLimit]:
        """
        Return the active credit limit for a client.

        Returns:
            CreditLimit, or None when the client has none (the NotFound signal)
        """

        client_id = require_uuid(client_id, name="client_id")
        check_deadline(deadline, "fetching credit limit")
        return self._store.get_credit_limit(client_id)

    def require(self, client_id: UUID, *, deadline: Optional[Deadline] = None) -> CreditLimit:
        """Like `get`, but raises NotFound instead of returning None."""

        limit = self.get(client_id, deadline=deadline)
        if limit is None:
            raise NotFound(f"Client {client_id} has no active credit limit")
        return limit

    def list_active(self, *, deadline: Optional[Deadline] = None) -> List[CreditLimit]:
        check_deadline(deadline, "listing credit limits")
        return self._store.list_credit_limits(active_only=True)

    def upsert(
        self,
        client_id: UUID,
        limit_amount: object,
        actor: str,
        notes: Optional[str] = None,
        *,
        deadline: Optional[Deadline] = None,
    ) -> CreditLimit:
        """
        Create the client's limit, or update limit_amount in place.

        The store re-reads used_amount inside the write, so a purchase that
        lands between our read and this call is preserved.

        Raises:
            InvalidArgument: negative amount or malformed client id (before any I/O)
        """

        client_id = require_uuid(client_id, name="client_id")
        amount = require_non_negative(limit_amount, name="limit_amount")
        if not actor:
            raise InvalidArgument("actor is required")

        check_deadline(deadline, "upserting credit limit")
        limit = self._store.upsert_credit_limit(client_id, amount, actor=actor, notes=notes)
        logger.info(
            "Credit limit upserted",
            extra={
                "client_id": str(client_id),
                "credit_limit_id": str(limit.id),
                "limit_amount": str(limit.limit_amount),
                "used_amount": str(limit.used_amount),
                "actor": actor,
            },
        )
        return limit

    def set_status(
        self,
        client_id: UUID,
        status: CreditLimitStatus | str,
        actor: str,
        *,
        deadline: Optional[Deadline] = None,
    ) -> CreditLimit:
        """Suspend, block or re-activate a client's credit."""

        client_id = require_uuid(client_id, name="client_id")
        try:
            new_status = CreditLimitStatus(status)
        except ValueError:
            raise InvalidArgument(f"Unknown credit limit status: {status!r}") from None

        check_deadline(deadline, "updating credit limit status")
        limit = self._store.set_credit_limit_status(client_id, new_status, actor=actor)
        logger.info(
            "Credit limit status changed",
            extra={"client_id": str(client_id), "status": new_status.value, "actor": actor},
        )
        return limit


__all__ = ["CreditLimitRepository", "require_uuid"]
