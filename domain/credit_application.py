"""
Domain: credit limit applications.

State machine:
- pending --approve(approved_limit)--> approved   (terminal)
- pending --reject(reason)-----------> rejected   (terminal)

Terminal applications reject every further transition with InvalidState.
`current_limit_at_request` is an audit snapshot taken at submission and never
changes afterwards, even if the limit changes before the decision.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from .errors import InvalidArgument, InvalidState
from .money import require_non_negative
from .time import require_utc_timestamp


class ApplicationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not ApplicationStatus.PENDING


class ApplicationDecision(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass(frozen=True, slots=True)
class CreditApplication:
    """Request to change a client's credit limit, subject to approval."""

    id: UUID
    client_id: UUID
    requested_limit: Decimal
    current_limit_at_request: Decimal
    reason: str
    status: ApplicationStatus
    created_at: datetime
    approved_limit: Optional[Decimal] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejected_reason: Optional[str] = None
    decided_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "requested_limit", require_non_negative(self.requested_limit, name="requested_limit"))
        object.__setattr__(
            self,
            "current_limit_at_request",
            require_non_negative(self.current_limit_at_request, name="current_limit_at_request"),
        )
        if self.approved_limit is not None:
            object.__setattr__(self, "approved_limit", require_non_negative(self.approved_limit, name="approved_limit"))
        object.__setattr__(self, "status", ApplicationStatus(self.status))
        require_utc_timestamp("created_at", self.created_at)
        if self.approved_at is not None:
            require_utc_timestamp("approved_at", self.approved_at)
        if self.decided_at is not None:
            require_utc_timestamp("decided_at", self.decided_at)

    def _require_pending(self, action: str) -> None:
        if self.status is not ApplicationStatus.PENDING:
            raise InvalidState(
                f"Cannot {action} application {self.id}: already {self.status.value}"
            )

    def approve(self, *, approved_limit: Optional[Decimal], actor: str, at: datetime) -> "CreditApplication":
        """Return the approved copy. approved_limit defaults to requested_limit."""

        self._require_pending("approve")
        require_utc_timestamp("at", at)
        limit = self.requested_limit if approved_limit is None else require_non_negative(
            approved_limit, name="approved_limit"
        )
        return replace(
            self,
            status=ApplicationStatus.APPROVED,
            approved_limit=limit,
            approved_by=actor,
            approved_at=at,
            decided_at=at,
        )

    def reject(self, *, reason: Optional[str], actor: str, at: datetime) -> "CreditApplication":
        self._require_pending("reject")
        require_utc_timestamp("at", at)
        if not reason or not reason.strip():
            raise InvalidArgument("rejected_reason is required to reject an application")
        return replace(
            self,
            status=ApplicationStatus.REJECTED,
            approved_by=actor,
            rejected_reason=reason.strip(),
            decided_at=at,
        )


__all__ = ["ApplicationStatus", "ApplicationDecision", "CreditApplication"]
