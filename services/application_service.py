"""
Credit application workflow.

Handles:
- Submitting requests to change a client's credit limit
- Single-fire approve / reject decisions
- Applying approved limits through the ledger (limit + `limit_change` entry)

Decision process:
1. Load the application (NotFound if missing)
2. Reject the call with InvalidState if it is no longer pending (no side effects)
3. Persist the decision guarded on status == pending, so concurrent deciders
   cannot both win
4. Approved: change the limit through LedgerService. If that fails, the
   application is put back to pending and the error is re-raised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional
from uuid import UUID, uuid4

from domain.credit_application import ApplicationDecision, ApplicationStatus, CreditApplication
from domain.credit_limit import CreditLimit
from domain.credit_transaction import CreditTransaction
from domain.deadline import Deadline, check_deadline
from domain.errors import CreditLedgerError, InvalidArgument, InvalidState, NotFound
from domain.money import require_non_negative
from domain.time import utc_now
from repositories.credit_limit_repository import require_uuid
from repositories.ledger_store import LedgerStore
from services.ledger_service import LedgerService

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ApplicationOutcome:
    """
    Result of a decision.

    credit_limit/transaction are only set when an approval changed the limit.
    """

    application: CreditApplication
    credit_limit: Optional[CreditLimit] = None
    transaction: Optional[CreditTransaction] = None


class ApplicationWorkflow:
    def __init__(
        self,
        store: LedgerStore,
        ledger: LedgerService,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._clock = clock

    def submit(
        self,
        client_id: UUID,
        requested_limit: object,
        reason: str,
        actor: str,
        *,
        deadline: Optional[Deadline] = None,
    ) -> CreditApplication:
        """
        Create a pending application.

        The client's current limit (0 when none) is captured as an audit
        snapshot and is not updated afterwards.
        """

        client_id = require_uuid(client_id, name="client_id")
        requested = require_non_negative(requested_limit, name="requested_limit")
        if not reason or not reason.strip():
            raise InvalidArgument("reason is required")

        current = self._ledger.limits.get(client_id, deadline=deadline)
        application = CreditApplication(
            id=uuid4(),
            client_id=client_id,
            requested_limit=requested,
            current_limit_at_request=current.limit_amount if current is not None else 0,
            reason=reason.strip(),
            status=ApplicationStatus.PENDING,
            created_at=self._clock(),
        )

        check_deadline(deadline, "submitting credit application")
        saved = self._store.insert_application(application)
        logger.info(
            "Credit application submitted",
            extra={
                "client_id": str(client_id),
                "application_id": str(saved.id),
                "requested_limit": str(requested),
                "current_limit": str(saved.current_limit_at_request),
                "actor": actor,
            },
        )
        return saved

    def get(self, application_id: UUID, *, deadline: Optional[Deadline] = None) -> CreditApplication:
        application_id = require_uuid(application_id, name="application_id")
        check_deadline(deadline, "fetching credit application")
        application = self._store.get_application(application_id)
        if application is None:
            raise NotFound(f"Application {application_id} not found")
        return application

    def list(self, client_id: UUID, *, deadline: Optional[Deadline] = None) -> List[CreditApplication]:
        client_id = require_uuid(client_id, name="client_id")
        check_deadline(deadline, "listing credit applications")
        return self._store.list_applications(client_id)

    def decide(
        self,
        application_id: UUID,
        decision: ApplicationDecision | str,
        actor: str,
        approved_limit: Optional[object] = None,
        rejected_reason: Optional[str] = None,
        *,
        deadline: Optional[Deadline] = None,
    ) -> ApplicationOutcome:
        try:
            decision = ApplicationDecision(decision)
        except ValueError:
            raise InvalidArgument(f"decision must be 'approved' or 'rejected', got {decision!r}") from None
        if not actor:
            raise InvalidArgument("actor is required")
        limit_value = (
            require_non_negative(approved_limit, name="approved_limit") if approved_limit is not None else None
        )

        application = self.get(application_id, deadline=deadline)
        if application.status.is_terminal:
            logger.warning(
                "Decision on a closed credit application rejected",
                extra={
                    "application_id": str(application.id),
                    "status": application.status.value,
                    "decision": decision.value,
                },
            )
            raise InvalidState(f"Application {application.id} is already {application.status.value}")

        now = self._clock()
        if decision is ApplicationDecision.REJECTED:
            decided = application.reject(reason=rejected_reason, actor=actor, at=now)
            check_deadline(deadline, "rejecting credit application")
            saved = self._store.update_application(decided, expected_status=ApplicationStatus.PENDING)
            logger.info(
                "Credit application rejected",
                extra={"application_id": str(saved.id), "client_id": str(saved.client_id), "actor": actor},
            )
            return ApplicationOutcome(application=saved)

        decided = application.approve(approved_limit=limit_value, actor=actor, at=now)
        check_deadline(deadline, "approving credit application")
        saved = self._store.update_application(decided, expected_status=ApplicationStatus.PENDING)

        try:
            posting = self._ledger.change_limit(
                saved.client_id,
                saved.approved_limit,
                actor,
                description=f"Limit set to {saved.approved_limit} by approval of application {saved.id}",
                notes=f"Approved through application {saved.id}",
                reference_id=str(saved.id),
                deadline=deadline,
            )
        except CreditLedgerError:
            self._reopen(saved)
            raise

        logger.info(
            "Credit application approved",
            extra={
                "application_id": str(saved.id),
                "client_id": str(saved.client_id),
                "approved_limit": str(saved.approved_limit),
                "actor": actor,
            },
        )
        return ApplicationOutcome(
            application=saved,
            credit_limit=posting.credit_limit,
            transaction=posting.transaction,
        )

    def _reopen(self, approved: CreditApplication) -> None:
        """Compensate a failed approval by putting the application back to pending."""

        pending = CreditApplication(
            id=approved.id,
            client_id=approved.client_id,
            requested_limit=approved.requested_limit,
            current_limit_at_request=approved.current_limit_at_request,
            reason=approved.reason,
            status=ApplicationStatus.PENDING,
            created_at=approved.created_at,
        )
        try:
            self._store.update_application(pending, expected_status=ApplicationStatus.APPROVED)
        except CreditLedgerError:
            logger.exception(
                "Failed to reopen credit application after a failed approval",
                extra={"application_id": str(approved.id)},
            )
            raise
        logger.warning(
            "Credit application reopened after a failed approval",
            extra={"application_id": str(approved.id)},
        )


__all__ = ["ApplicationWorkflow", "ApplicationOutcome"]
