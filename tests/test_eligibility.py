"""
Tests for `domain/eligibility.py`.

Covers contract rules:
- No limit -> not allowed ("no credit limit").
- Suspended/blocked -> not allowed, regardless of available credit.
- amount == available is allowed; one cent more is not.
- Over-limit accounts never report negative available credit.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

import pytest

from domain.credit_limit import CreditLimit, CreditLimitStatus
from domain.eligibility import REASON_INSUFFICIENT, REASON_NO_LIMIT, can_purchase
from domain.errors import InvalidArgument

NOW = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def _limit(limit_amount: str = "1000", used_amount: str = "400", status: str = "active") -> CreditLimit:
    return CreditLimit(
        id=UUID("00000000-0000-0000-0000-000000000001"),
        client_id=UUID("00000000-0000-0000-0000-000000000101"),
        limit_amount=limit_amount,
        used_amount=used_amount,
        status=status,
        is_active=True,
        created_at=NOW,
        updated_at=NOW,
    )


def test_no_limit_is_not_allowed() -> None:
    result = can_purchase(None, "10")

    assert not result.allowed
    assert result.reason == REASON_NO_LIMIT
    assert result.available_credit == Decimal("0.00")


@pytest.mark.parametrize(
    "amount, allowed",
    [
        ("0", True),
        ("599.99", True),
        ("600.00", True),
        ("600.01", False),
        ("10000", False),
    ],
)
def test_available_credit_boundary(amount: str, allowed: bool) -> None:
    """Verify the purchase boundary sits exactly at the available amount."""

    result = can_purchase(_limit(), amount)

    assert result.allowed is allowed
    assert result.available_credit == Decimal("600.00")
    if not allowed:
        assert result.reason == REASON_INSUFFICIENT
        assert result.shortage == Decimal(amount).quantize(Decimal("0.01")) - Decimal("600.00")


@pytest.mark.parametrize("status", [CreditLimitStatus.SUSPENDED, CreditLimitStatus.BLOCKED])
def test_inactive_account_is_not_allowed(status: CreditLimitStatus) -> None:
    """Verify account status wins over available credit."""

    result = can_purchase(_limit(status=status.value), "1")

    assert not result.allowed
    assert result.reason == f"{status.value} account"
    assert result.available_credit == Decimal("0.00")


def test_over_limit_reports_zero_available() -> None:
    result = can_purchase(_limit(limit_amount="300", used_amount="400"), "1")

    assert not result.allowed
    assert result.available_credit == Decimal("0.00")
    assert result.shortage == Decimal("1.00")


def test_negative_amount_is_invalid() -> None:
    with pytest.raises(InvalidArgument):
        can_purchase(_limit(), "-5")
