"""
Credit session: per-customer facade over the credit ledger.

Coordinates the credit limit repository, the ledger service and the
application workflow for the customer currently being viewed, and keeps an
in-memory view (limit, recent transactions, applications, last risk
analysis) consistent with the store.

Failure policy:
- Every command re-raises the typed error after recording a human readable
  message in `last_error`.
- The cached view is only replaced after a command succeeds, so a failure
  never leaves a half-updated view behind.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Callable, List, Optional, Sequence, TypeVar
from uuid import UUID

from domain.credit_application import ApplicationDecision, CreditApplication
from domain.credit_limit import CreditLimit, CreditLimitStatus
from domain.credit_transaction import CreditTransaction, TransactionType
from domain.deadline import Deadline
from domain.eligibility import EligibilityResult, can_purchase
from domain.errors import CreditLedgerError, InvalidArgument, InvalidState
from domain.risk import (
    ClientProfile,
    CreditReport,
    CreditRiskAnalysis,
    CreditStatus,
    IncreaseEligibility,
    PurchaseHistoryItem,
    analyze_risk,
    check_increase_eligibility,
    classify_status,
    generate_credit_report,
    utilization,
)
from domain.settings import CreditLimitSettings
from repositories.credit_limit_repository import require_uuid
from repositories.ledger_store import LedgerStore
from services.application_service import ApplicationOutcome, ApplicationWorkflow
from services.ledger_service import LedgerService
from services.settings_service import SettingsProvider

logger = logging.getLogger(__name__)

T = TypeVar("T")

AUTO_APPROVAL_ACTOR = "auto-approval"
RECENT_TRANSACTIONS = 50


class CreditSession:
    def __init__(
        self,
        client_id: UUID,
        *,
        store: LedgerStore,
        settings: SettingsProvider,
        ledger: Optional[LedgerService] = None,
        workflow: Optional[ApplicationWorkflow] = None,
        actor: str = "system",
        deadline_seconds: Optional[float] = None,
    ) -> None:
        self.client_id = require_uuid(client_id, name="client_id")
        self.actor = actor
        self._settings = settings
        self._ledger = ledger or LedgerService(store, settings)
        self._workflow = workflow or ApplicationWorkflow(store, self._ledger)
        self._deadline_seconds = deadline_seconds

        self.credit_limit: Optional[CreditLimit] = None
        self.transactions: List[CreditTransaction] = []
        self.applications: List[CreditApplication] = []
        self.risk_analysis: Optional[CreditRiskAnalysis] = None
        self.last_error: Optional[str] = None

    @property
    def settings(self) -> Optional[CreditLimitSettings]:
        return self._settings.current if self._settings.loaded else None

    def _deadline(self) -> Optional[Deadline]:
        if self._deadline_seconds is None:
            return None
        return Deadline.after(self._deadline_seconds)

    def _run(self, action: str, operation: Callable[[], T]) -> T:
        try:
            result = operation()
        except CreditLedgerError as e:
            self.last_error = f"Failed to {action}: {e}"
            logger.warning(
                f"Credit session command failed: {action}",
                extra={"client_id": str(self.client_id), "error_type": type(e).__name__, "error": str(e)},
            )
            raise
        self.last_error = None
        return result

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def refresh(self) -> None:
        """Reload limit, recent transactions, applications and settings from the store."""

        def load() -> None:
            deadline = self._deadline()
            self._settings.load(deadline=deadline)
            credit_limit = self._ledger.limits.get(self.client_id, deadline=deadline)
            transactions = (
                self._ledger.recorder.list(credit_limit.id, RECENT_TRANSACTIONS, deadline=deadline)
                if credit_limit is not None
                else []
            )
            applications = self._workflow.list(self.client_id, deadline=deadline)

            self.credit_limit = credit_limit
            self.transactions = transactions
            self.applications = applications

        self._run("load credit data", load)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create_or_update_limit(self, amount: Optional[object] = None, notes: Optional[str] = None) -> CreditLimit:
        """
        Open the client's account or change its limit.

        Without an amount, the default limit from the settings is used. Every
        change is audited with a `limit_change` entry.
        """

        def change() -> CreditLimit:
            limit_amount = amount
            if limit_amount is None:
                limit_amount = self._settings.ensure_loaded(deadline=self._deadline()).default_limit_amount
            posting = self._ledger.change_limit(
                self.client_id, limit_amount, self.actor, notes=notes, deadline=self._deadline()
            )
            self.credit_limit = posting.credit_limit
            if posting.transaction is not None:
                self.transactions = [posting.transaction, *self.transactions]
            return posting.credit_limit

        return self._run("save credit limit", change)

    def set_status(self, status: CreditLimitStatus | str) -> CreditLimit:
        """Suspend, block or re-activate the client's credit."""

        def change() -> CreditLimit:
            updated = self._ledger.limits.set_status(self.client_id, status, self.actor, deadline=self._deadline())
            self.credit_limit = updated
            return updated

        return self._run("update credit status", change)

    def check_eligibility(self, amount: object) -> EligibilityResult:
        """Evaluate a prospective purchase against the cached limit (no store round-trip)."""

        return self._run("check purchase eligibility", lambda: can_purchase(self.credit_limit, amount))

    def submit_application(self, requested_limit: object, reason: str) -> CreditApplication:
        """
        Submit a limit change request.

        Requests at or below the settings' auto-approve limit are approved
        immediately on behalf of the auto-approval actor.
        """

        def submit() -> CreditApplication:
            deadline = self._deadline()
            application = self._workflow.submit(
                self.client_id, requested_limit, reason, self.actor, deadline=deadline
            )
            self.applications = [application, *self.applications]

            settings = self._settings.ensure_loaded(deadline=deadline)
            if (
                settings.auto_approve_limit > 0
                and application.requested_limit <= settings.auto_approve_limit
            ):
                outcome = self._workflow.decide(
                    application.id, ApplicationDecision.APPROVED, AUTO_APPROVAL_ACTOR, deadline=deadline
                )
                self._apply_outcome(outcome)
                return outcome.application
            return application

        return self._run("submit credit application", submit)

    def decide_application(
        self,
        application_id: UUID,
        decision: ApplicationDecision | str,
        approved_limit: Optional[object] = None,
        rejected_reason: Optional[str] = None,
    ) -> CreditApplication:
        def decide() -> CreditApplication:
            outcome = self._workflow.decide(
                application_id,
                decision,
                self.actor,
                approved_limit=approved_limit,
                rejected_reason=rejected_reason,
                deadline=self._deadline(),
            )
            self._apply_outcome(outcome)
            return outcome.application

        return self._run("process credit application", decide)

    def _apply_outcome(self, outcome: ApplicationOutcome) -> None:
        decided = outcome.application
        self.applications = [decided if app.id == decided.id else app for app in self.applications]
        if all(app.id != decided.id for app in self.applications):
            self.applications = [decided, *self.applications]
        if outcome.credit_limit is not None:
            self.credit_limit = outcome.credit_limit
        if outcome.transaction is not None:
            self.transactions = [outcome.transaction, *self.transactions]

    def record_transaction(
        self,
        type: TransactionType | str,
        amount: object,
        description: str,
        sale_id: Optional[UUID] = None,
        *,
        enforce_limit: bool = True,
    ) -> CreditTransaction:
        """
        Post a purchase, payment or adjustment for this client.

        The balance is always computed from the store's current value, not the
        cached one.
        """

        def record() -> CreditTransaction:
            if TransactionType.parse(type) is TransactionType.LIMIT_CHANGE:
                raise InvalidArgument("use create_or_update_limit() to change the limit")
            posting = self._ledger.record(
                self.client_id,
                type,
                amount,
                description,
                self.actor,
                sale_id,
                enforce_limit=enforce_limit,
                deadline=self._deadline(),
            )
            self.credit_limit = posting.credit_limit
            self.transactions = [posting.transaction, *self.transactions]
            return posting.transaction

        return self._run("record credit transaction", record)

    # ------------------------------------------------------------------
    # Analytics (cached data only)
    # ------------------------------------------------------------------

    def get_status(self) -> CreditStatus:
        return classify_status(self.credit_limit)

    def get_utilization(self) -> Decimal:
        return utilization(self.credit_limit)

    def analyze_risk(
        self,
        profile: ClientProfile,
        purchase_history: Sequence[PurchaseHistoryItem],
        *,
        as_of: Optional[datetime] = None,
    ) -> CreditRiskAnalysis:
        def analyze() -> CreditRiskAnalysis:
            if self.credit_limit is None:
                raise InvalidState("Client has no credit limit to analyze")
            analysis = analyze_risk(
                profile, purchase_history, self.credit_limit, transactions=self.transactions, as_of=as_of
            )
            self.risk_analysis = analysis
            return analysis

        return self._run("analyze credit risk", analyze)

    def increase_eligibility(self) -> IncreaseEligibility:
        if self.credit_limit is None or self.risk_analysis is None:
            raise InvalidState("A credit limit and a risk analysis are required")
        return check_increase_eligibility(self.credit_limit, self.risk_analysis)

    def report(self) -> CreditReport:
        if self.credit_limit is None:
            raise InvalidState("Client has no credit limit")
        return generate_credit_report(self.credit_limit, self.transactions, self.risk_analysis)


__all__ = ["CreditSession", "AUTO_APPROVAL_ACTOR"]
