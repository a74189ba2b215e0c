"""
Tests for `services/ledger_service.py`.

Covers contract rules:
- Purchases add to used_amount; payments and adjustments floor at zero.
- Purchases above the available credit are rejected before anything is written.
- Entries chain balances and replaying the log reproduces used_amount.
- Limit changes write a limit_change entry with the delta and leave balances alone.
- Optimistic conflicts are retried a bounded number of times.
- Store failures and expired deadlines leave no partial writes.
- Concurrent purchases on one account never overspend the limit.
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from conftest import CLIENT_ID, OTHER_CLIENT_ID, START, FakeClock
from domain.credit_transaction import TransactionType
from domain.deadline import Deadline
from domain.errors import (
    ConcurrentModification,
    InsufficientCredit,
    InvalidArgument,
    InvalidState,
    NotFound,
    OperationCancelled,
    StoreUnavailable,
)
from repositories.memory_ledger_store import InMemoryLedgerStore
from services.ledger_service import LedgerService
from services.settings_service import SettingsProvider


class FlakyStore(InMemoryLedgerStore):
    """Fails the first `failures` guarded writes with the given error."""

    def __init__(self, failures: int, error: Exception, **kwargs) -> None:
        super().__init__(**kwargs)
        self.failures = failures
        self.error = error
        self.apply_calls = 0

    def apply_transaction(self, entry, *, expected_used_amount, due_date):
        self.apply_calls += 1
        if self.failures > 0:
            self.failures -= 1
            raise self.error
        return super().apply_transaction(entry, expected_used_amount=expected_used_amount, due_date=due_date)


def _service(store: InMemoryLedgerStore, **kwargs) -> LedgerService:
    settings = SettingsProvider(store)
    settings.load()
    return LedgerService(store, settings, **kwargs)


def _open_account(ledger: LedgerService, limit: str = "1000", used: str = "400") -> None:
    ledger.change_limit(CLIENT_ID, limit, "manager")
    if Decimal(used) > 0:
        ledger.record(CLIENT_ID, "purchase", used, "Opening balance", "seller")


def test_purchase_within_limit(ledger: LedgerService) -> None:
    """Limit 1000, used 400: a purchase of 200 leaves used 600 and available 400."""

    _open_account(ledger)
    sale_id = uuid4()

    posting = ledger.record(CLIENT_ID, TransactionType.PURCHASE, "200", "Order #2", "seller", sale_id)

    assert posting.credit_limit.used_amount == Decimal("600.00")
    assert posting.credit_limit.available_amount == Decimal("400.00")
    txn = posting.transaction
    assert txn.type is TransactionType.PURCHASE
    assert txn.balance_before == Decimal("400.00")
    assert txn.balance_after == Decimal("600.00")
    assert txn.sale_id == sale_id
    assert txn.performed_by == "seller"


def test_purchase_above_available_is_rejected(ledger: LedgerService) -> None:
    """Limit 1000, used 400: a purchase of 700 is rejected and nothing changes."""

    _open_account(ledger)
    entries_before = ledger.transactions(CLIENT_ID)

    with pytest.raises(InsufficientCredit) as excinfo:
        ledger.record(CLIENT_ID, "purchase", "700", "Too big", "seller")

    assert excinfo.value.eligibility.available_credit == Decimal("600.00")
    assert excinfo.value.eligibility.shortage == Decimal("100.00")
    assert ledger.limits.require(CLIENT_ID).used_amount == Decimal("400.00")
    assert ledger.transactions(CLIENT_ID) == entries_before


def test_purchase_of_exact_available_amount(ledger: LedgerService) -> None:
    _open_account(ledger)

    posting = ledger.record(CLIENT_ID, "purchase", "600", "All of it", "seller")

    assert posting.credit_limit.available_amount == Decimal("0.00")


def test_unenforced_purchase_may_exceed_limit(ledger: LedgerService) -> None:
    _open_account(ledger)

    posting = ledger.record(CLIENT_ID, "purchase", "700", "Manager override", "manager", enforce_limit=False)

    assert posting.credit_limit.used_amount == Decimal("1100.00")
    assert posting.credit_limit.is_over_limit


def test_purchase_on_suspended_account_is_invalid_state(ledger: LedgerService) -> None:
    _open_account(ledger)
    ledger.limits.set_status(CLIENT_ID, "suspended", "manager")

    with pytest.raises(InvalidState) as excinfo:
        ledger.record(CLIENT_ID, "purchase", "10", "Blocked", "seller")

    assert not isinstance(excinfo.value, InsufficientCredit)


def test_payment_allowed_on_suspended_account(ledger: LedgerService) -> None:
    _open_account(ledger)
    ledger.limits.set_status(CLIENT_ID, "suspended", "manager")

    posting = ledger.record(CLIENT_ID, "payment", "100", "Partial payment", "cashier")

    assert posting.credit_limit.used_amount == Decimal("300.00")


def test_overpayment_is_clamped_to_zero(ledger: LedgerService) -> None:
    """Verify an overpayment records the full amount but floors the balance at zero."""

    _open_account(ledger, used="100")

    posting = ledger.record(CLIENT_ID, "payment", "150", "Paid too much", "cashier")

    assert posting.transaction.amount == Decimal("150.00")
    assert posting.transaction.balance_after == Decimal("0.00")
    assert posting.credit_limit.used_amount == Decimal("0.00")
    assert posting.credit_limit.available_amount == Decimal("1000.00")


def test_signed_adjustments(ledger: LedgerService) -> None:
    _open_account(ledger, used="100")

    up = ledger.record(CLIENT_ID, "adjustment", "25", "Fee", "manager")
    down = ledger.record(CLIENT_ID, "adjustment", "-200", "Write-off", "manager")

    assert up.credit_limit.used_amount == Decimal("125.00")
    assert down.credit_limit.used_amount == Decimal("0.00")


def test_record_without_limit_is_invalid_state(ledger: LedgerService) -> None:
    with pytest.raises(InvalidState):
        ledger.record(CLIENT_ID, "purchase", "10", "No account", "seller")


@pytest.mark.parametrize(
    "type_, amount",
    [("purchase", "0"), ("payment", "-5"), ("adjustment", "0"), ("refund", "5"), ("limit_change", "100")],
)
def test_invalid_arguments_are_rejected_before_io(ledger: LedgerService, type_: str, amount: str) -> None:
    with pytest.raises(InvalidArgument):
        ledger.record(CLIENT_ID, type_, amount, "Bad", "seller")


def test_malformed_client_id_is_invalid(ledger: LedgerService) -> None:
    with pytest.raises(InvalidArgument):
        ledger.record("not-a-uuid", "purchase", "10", "Bad", "seller")


def test_due_date_follows_balance(ledger: LedgerService) -> None:
    """Verify the first purchase opens a due date and settling the balance clears it."""

    _open_account(ledger, used="0")

    opened = ledger.record(CLIENT_ID, "purchase", "100", "First", "seller").credit_limit
    assert opened.due_date is not None
    assert opened.due_date >= START + timedelta(days=30)

    second = ledger.record(CLIENT_ID, "purchase", "50", "Second", "seller").credit_limit
    assert second.due_date == opened.due_date

    settled = ledger.record(CLIENT_ID, "payment", "150", "Settle", "cashier").credit_limit
    assert settled.due_date is None


def test_ledger_replay_matches_stored_balance(ledger: LedgerService) -> None:
    _open_account(ledger)
    ledger.record(CLIENT_ID, "purchase", "200", "Order", "seller")
    ledger.record(CLIENT_ID, "payment", "1000", "Overpay", "cashier")
    ledger.record(CLIENT_ID, "adjustment", "30", "Fee", "manager")
    ledger.change_limit(CLIENT_ID, "800", "manager")
    ledger.record(CLIENT_ID, "purchase", "70", "Order", "seller")

    result = ledger.verify(CLIENT_ID)

    assert result.consistent
    assert result.stored_used_amount == Decimal("100.00")
    assert result.entries == 7


def test_verify_without_limit_is_not_found(ledger: LedgerService) -> None:
    with pytest.raises(NotFound):
        ledger.verify(CLIENT_ID)


def test_change_limit_records_delta(ledger: LedgerService) -> None:
    _open_account(ledger)

    posting = ledger.change_limit(CLIENT_ID, "1500", "manager", notes="Annual review")

    assert posting.credit_limit.limit_amount == Decimal("1500.00")
    assert posting.credit_limit.used_amount == Decimal("400.00")
    assert posting.credit_limit.notes == "Annual review"
    assert posting.transaction.type is TransactionType.LIMIT_CHANGE
    assert posting.transaction.amount == Decimal("500.00")
    assert posting.transaction.balance_before == posting.transaction.balance_after == Decimal("400.00")


def test_limit_changes_sum_to_current_limit(ledger: LedgerService) -> None:
    ledger.change_limit(CLIENT_ID, "500", "manager")
    ledger.change_limit(CLIENT_ID, "1200", "manager")
    ledger.change_limit(CLIENT_ID, "900", "manager")

    deltas = [t.amount for t in ledger.transactions(CLIENT_ID) if t.type is TransactionType.LIMIT_CHANGE]

    assert sum(deltas) == Decimal("900.00")
    assert deltas[0] == Decimal("-300.00")


def test_lowering_limit_below_balance_is_allowed(ledger: LedgerService) -> None:
    _open_account(ledger)

    posting = ledger.change_limit(CLIENT_ID, "300", "manager")

    assert posting.credit_limit.is_over_limit
    assert posting.credit_limit.available_amount == Decimal("-100.00")


def test_unchanged_limit_writes_nothing(ledger: LedgerService) -> None:
    _open_account(ledger)
    entries_before = ledger.transactions(CLIENT_ID)

    posting = ledger.change_limit(CLIENT_ID, "1000", "manager")

    assert posting.transaction is None
    assert ledger.transactions(CLIENT_ID) == entries_before


def test_unchanged_limit_with_reference_is_recorded(ledger: LedgerService) -> None:
    _open_account(ledger)

    posting = ledger.change_limit(CLIENT_ID, "1000", "manager", reference_id="application-1")

    assert posting.transaction.amount == Decimal("0.00")
    assert posting.transaction.balance_before == posting.transaction.balance_after == Decimal("400.00")
    assert posting.credit_limit.limit_amount == Decimal("1000.00")
    assert ledger.verify(CLIENT_ID).consistent


def test_negative_limit_is_rejected(ledger: LedgerService) -> None:
    with pytest.raises(InvalidArgument):
        ledger.change_limit(CLIENT_ID, "-1", "manager")


def test_concurrent_modification_is_retried() -> None:
    store = FlakyStore(2, ConcurrentModification("balance moved"), clock=FakeClock())
    ledger = _service(store, max_retries=3)
    ledger.change_limit(CLIENT_ID, "1000", "manager")

    posting = ledger.record(CLIENT_ID, "purchase", "100", "Retried", "seller")

    assert store.apply_calls == 3
    assert posting.credit_limit.used_amount == Decimal("100.00")
    assert len(ledger.transactions(CLIENT_ID)) == 2


def test_retries_are_bounded() -> None:
    store = FlakyStore(100, ConcurrentModification("balance moved"), clock=FakeClock())
    ledger = _service(store, max_retries=2)
    ledger.change_limit(CLIENT_ID, "1000", "manager")

    with pytest.raises(ConcurrentModification):
        ledger.record(CLIENT_ID, "purchase", "100", "Never lands", "seller")

    assert store.apply_calls == 3
    assert ledger.limits.require(CLIENT_ID).used_amount == Decimal("0.00")


def test_store_failure_leaves_no_partial_write() -> None:
    store = FlakyStore(1, StoreUnavailable("database offline"), clock=FakeClock())
    ledger = _service(store)
    ledger.change_limit(CLIENT_ID, "1000", "manager")

    with pytest.raises(StoreUnavailable):
        ledger.record(CLIENT_ID, "purchase", "100", "Lost", "seller")

    assert store.apply_calls == 1
    assert ledger.limits.require(CLIENT_ID).used_amount == Decimal("0.00")
    assert len(ledger.transactions(CLIENT_ID)) == 1

    # The whole operation is safe to retry.
    ledger.record(CLIENT_ID, "purchase", "100", "Retried by caller", "seller")
    assert ledger.verify(CLIENT_ID).consistent


def test_expired_deadline_cancels_before_write(ledger: LedgerService) -> None:
    _open_account(ledger)
    expired = Deadline(expires_at=datetime(2000, 1, 1, tzinfo=timezone.utc))

    with pytest.raises(OperationCancelled):
        ledger.record(CLIENT_ID, "purchase", "10", "Too late", "seller", deadline=expired)

    assert ledger.limits.require(CLIENT_ID).used_amount == Decimal("400.00")
    assert len(ledger.transactions(CLIENT_ID)) == 2


def test_concurrent_purchases_never_overspend() -> None:
    """Ten threads race to buy 100 each against a limit of 500: exactly five succeed."""

    ledger = _service(InMemoryLedgerStore())
    ledger.change_limit(CLIENT_ID, "500", "manager")
    successes = []
    failures = []
    barrier = threading.Barrier(10)

    def buy() -> None:
        barrier.wait()
        try:
            ledger.record(CLIENT_ID, "purchase", "100", "Race", "seller")
            successes.append(1)
        except InsufficientCredit:
            failures.append(1)

    threads = [threading.Thread(target=buy) for _ in range(10)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(successes) == 5
    assert len(failures) == 5
    result = ledger.verify(CLIENT_ID)
    assert result.consistent
    assert result.stored_used_amount == Decimal("500.00")


def test_accounts_are_independent(ledger: LedgerService) -> None:
    _open_account(ledger)
    ledger.change_limit(OTHER_CLIENT_ID, "50", "manager")

    ledger.record(OTHER_CLIENT_ID, "purchase", "50", "Other", "seller")

    assert ledger.limits.require(CLIENT_ID).used_amount == Decimal("400.00")
    assert ledger.limits.require(OTHER_CLIENT_ID).used_amount == Decimal("50.00")
