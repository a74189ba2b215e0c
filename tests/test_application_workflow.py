"""
Tests for `services/application_service.py` and `domain/credit_application.py`.

Covers contract rules:
- Submitting captures current_limit_at_request as an audit snapshot.
- Approval defaults to the requested limit and writes one limit_change entry
  whose amount is the limit delta.
- Decisions are single-fire: deciding a closed application raises
  InvalidState and has no side effects.
- A failed limit change puts the application back to pending.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

import pytest

from conftest import CLIENT_ID
from domain.credit_application import ApplicationStatus
from domain.credit_transaction import TransactionType
from domain.errors import InvalidArgument, InvalidState, NotFound, StoreUnavailable
from services.application_service import ApplicationWorkflow
from services.ledger_service import LedgerService


def test_submit_snapshots_current_limit(ledger: LedgerService, workflow: ApplicationWorkflow) -> None:
    """Verify the snapshot is kept even after the limit changes."""

    ledger.change_limit(CLIENT_ID, "1000", "manager")

    application = workflow.submit(CLIENT_ID, "1500", "More volume", "client")
    ledger.change_limit(CLIENT_ID, "1200", "manager")

    stored = workflow.get(application.id)
    assert stored.status is ApplicationStatus.PENDING
    assert stored.current_limit_at_request == Decimal("1000.00")


def test_submit_without_limit_snapshots_zero(workflow: ApplicationWorkflow) -> None:
    application = workflow.submit(CLIENT_ID, "800", "First account", "client")

    assert application.current_limit_at_request == Decimal("0.00")


@pytest.mark.parametrize("requested, reason", [("-1", "reason"), ("100", ""), ("100", "   ")])
def test_submit_validates_input(workflow: ApplicationWorkflow, requested: str, reason: str) -> None:
    with pytest.raises(InvalidArgument):
        workflow.submit(CLIENT_ID, requested, reason, "client")


def test_approval_changes_limit_and_records_delta(ledger: LedgerService, workflow: ApplicationWorkflow) -> None:
    """Limit 1000, application approved at 1500: one limit_change entry of +500."""

    ledger.change_limit(CLIENT_ID, "1000", "manager")
    application = workflow.submit(CLIENT_ID, "2000", "Seasonal stock", "client")

    outcome = workflow.decide(application.id, "approved", "manager", approved_limit="1500")

    assert outcome.application.status is ApplicationStatus.APPROVED
    assert outcome.application.approved_limit == Decimal("1500.00")
    assert outcome.application.approved_by == "manager"
    assert outcome.credit_limit.limit_amount == Decimal("1500.00")
    assert outcome.transaction.type is TransactionType.LIMIT_CHANGE
    assert outcome.transaction.amount == Decimal("500.00")
    assert outcome.transaction.reference_id == str(application.id)
    assert str(application.id) in outcome.transaction.description

    entries = ledger.transactions(CLIENT_ID)
    assert [e.type for e in entries] == [TransactionType.LIMIT_CHANGE, TransactionType.LIMIT_CHANGE]


def test_approval_defaults_to_requested_limit(ledger: LedgerService, workflow: ApplicationWorkflow) -> None:
    ledger.change_limit(CLIENT_ID, "1000", "manager")
    application = workflow.submit(CLIENT_ID, "1250", "Growth", "client")

    outcome = workflow.decide(application.id, "approved", "manager")

    assert outcome.credit_limit.limit_amount == Decimal("1250.00")
    assert outcome.transaction.amount == Decimal("250.00")



def test_approval_at_current_limit_is_audited(ledger: LedgerService, workflow: ApplicationWorkflow) -> None:
    """Approving the current limit writes a zero-amount limit_change entry referencing the application."""

    ledger.change_limit(CLIENT_ID, "1000", "manager")
    application = workflow.submit(CLIENT_ID, "1000", "Confirm terms", "client")

    outcome = workflow.decide(application.id, "approved", "manager")

    assert outcome.credit_limit.limit_amount == Decimal("1000.00")
    assert outcome.transaction.type is TransactionType.LIMIT_CHANGE
    assert outcome.transaction.amount == Decimal("0.00")
    assert outcome.transaction.reference_id == str(application.id)
    assert len(ledger.transactions(CLIENT_ID)) == 2

def test_approval_opens_account_when_missing(ledger: LedgerService, workflow: ApplicationWorkflow) -> None:
    application = workflow.submit(CLIENT_ID, "700", "New client", "client")

    outcome = workflow.decide(application.id, "approved", "manager")

    assert outcome.credit_limit.limit_amount == Decimal("700.00")
    assert outcome.transaction.amount == Decimal("700.00")


def test_rejection_requires_reason(ledger: LedgerService, workflow: ApplicationWorkflow) -> None:
    application = workflow.submit(CLIENT_ID, "5000", "Big order", "client")

    with pytest.raises(InvalidArgument):
        workflow.decide(application.id, "rejected", "manager")

    assert workflow.get(application.id).status is ApplicationStatus.PENDING


def test_rejection_leaves_limit_untouched(ledger: LedgerService, workflow: ApplicationWorkflow) -> None:
    ledger.change_limit(CLIENT_ID, "1000", "manager")
    application = workflow.submit(CLIENT_ID, "5000", "Big order", "client")

    outcome = workflow.decide(application.id, "rejected", "manager", rejected_reason="Too risky")

    assert outcome.application.status is ApplicationStatus.REJECTED
    assert outcome.application.rejected_reason == "Too risky"
    assert outcome.credit_limit is None
    assert ledger.limits.require(CLIENT_ID).limit_amount == Decimal("1000.00")
    assert len(ledger.transactions(CLIENT_ID)) == 1


@pytest.mark.parametrize("first", ["approved", "rejected"])
def test_decisions_are_single_fire(ledger: LedgerService, workflow: ApplicationWorkflow, first: str) -> None:
    """Verify a second decision fails and does not write a second limit change."""

    ledger.change_limit(CLIENT_ID, "1000", "manager")
    application = workflow.submit(CLIENT_ID, "1500", "Growth", "client")
    workflow.decide(application.id, first, "manager", rejected_reason="No")
    entries_before = ledger.transactions(CLIENT_ID)
    limit_before = ledger.limits.require(CLIENT_ID)

    with pytest.raises(InvalidState):
        workflow.decide(application.id, "approved", "manager", approved_limit="3000")

    assert ledger.transactions(CLIENT_ID) == entries_before
    assert ledger.limits.require(CLIENT_ID) == limit_before


def test_unknown_decision_is_invalid(workflow: ApplicationWorkflow) -> None:
    application = workflow.submit(CLIENT_ID, "100", "Test", "client")

    with pytest.raises(InvalidArgument):
        workflow.decide(application.id, "maybe", "manager")


def test_missing_application_is_not_found(workflow: ApplicationWorkflow) -> None:
    with pytest.raises(NotFound):
        workflow.get(uuid4())


def test_failed_limit_change_reopens_application(
    ledger: LedgerService,
    workflow: ApplicationWorkflow,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Verify an approval whose limit change fails leaves the application pending."""

    ledger.change_limit(CLIENT_ID, "1000", "manager")
    application = workflow.submit(CLIENT_ID, "1500", "Growth", "client")

    def unavailable(*args, **kwargs):
        raise StoreUnavailable("database offline")

    monkeypatch.setattr(ledger, "change_limit", unavailable)

    with pytest.raises(StoreUnavailable):
        workflow.decide(application.id, "approved", "manager")

    assert workflow.get(application.id).status is ApplicationStatus.PENDING
    assert ledger.limits.require(CLIENT_ID).limit_amount == Decimal("1000.00")


def test_list_is_newest_first(workflow: ApplicationWorkflow) -> None:
    first = workflow.submit(CLIENT_ID, "100", "One", "client")
    second = workflow.submit(CLIENT_ID, "200", "Two", "client")

    assert [a.id for a in workflow.list(CLIENT_ID)] == [second.id, first.id]
