"""
Domain: per-customer credit limit.

Rules implemented here:
- A client has at most one active CreditLimit (enforced by the store; this
  entity only carries the `is_active` flag).
- available_amount == limit_amount - used_amount at every observable point.
  It is derived on access and never stored as ground truth.
- limit_amount >= 0 and used_amount >= 0.
- Records are never deleted; a replaced record is deactivated.

This module contains only pure domain entities: no I/O, no database, no frameworks.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from .errors import InvalidArgument
from .money import require_non_negative
from .time import require_utc_timestamp


class CreditLimitStatus(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    BLOCKED = "blocked"


@dataclass(frozen=True, slots=True)
class CreditLimit:
    """
    Running-balance credit account for a single client.

    Immutable: balance and limit changes return a new instance.
    """

    id: UUID
    client_id: UUID
    limit_amount: Decimal
    used_amount: Decimal
    status: CreditLimitStatus
    is_active: bool
    created_at: datetime
    updated_at: datetime
    due_date: Optional[datetime] = None
    approved_by: Optional[str] = None
    notes: Optional[str] = None

    def __post_init__(self) -> None:
        # Normalize amounts so equality and arithmetic are cent-exact.
        object.__setattr__(self, "limit_amount", require_non_negative(self.limit_amount, name="limit_amount"))
        object.__setattr__(self, "used_amount", require_non_negative(self.used_amount, name="used_amount"))
        if not isinstance(self.status, CreditLimitStatus):
            try:
                object.__setattr__(self, "status", CreditLimitStatus(self.status))
            except ValueError:
                raise InvalidArgument(f"Unknown credit limit status: {self.status!r}") from None
        require_utc_timestamp("created_at", self.created_at)
        require_utc_timestamp("updated_at", self.updated_at)
        if self.due_date is not None:
            require_utc_timestamp("due_date", self.due_date)

    @property
    def available_amount(self) -> Decimal:
        """Remaining purchasing capacity. Negative only while over limit."""

        return self.limit_amount - self.used_amount

    @property
    def is_over_limit(self) -> bool:
        return self.used_amount > self.limit_amount

    def with_used_amount(
        self,
        used_amount: Decimal,
        *,
        updated_at: datetime,
        due_date: Optional[datetime] = None,
    ) -> "CreditLimit":
        return replace(self, used_amount=used_amount, updated_at=updated_at, due_date=due_date)

    def with_limit_amount(
        self,
        limit_amount: Decimal,
        *,
        updated_at: datetime,
        approved_by: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> "CreditLimit":
        return replace(
            self,
            limit_amount=limit_amount,
            updated_at=updated_at,
            approved_by=approved_by if approved_by is not None else self.approved_by,
            notes=notes if notes is not None else self.notes,
        )

    def deactivated(self, *, updated_at: datetime) -> "CreditLimit":
        return replace(self, is_active=False, updated_at=updated_at)


__all__ = ["CreditLimit", "CreditLimitStatus"]
