"""
Tests for `domain/analytics.py`.

Covers:
- Portfolio totals only count active records.
- Alerts: over_limit (critical), high_utilization (high/medium) and
  payment_delay after the grace period.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

from domain.analytics import AlertSeverity, AlertType, build_alerts, summarize_portfolio
from domain.credit_limit import CreditLimit
from domain.settings import CreditLimitSettings

NOW = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def _limit(limit_amount: str, used_amount: str, *, is_active: bool = True, status: str = "active", due_date=None):
    return CreditLimit(
        id=uuid4(),
        client_id=uuid4(),
        limit_amount=limit_amount,
        used_amount=used_amount,
        status=status,
        is_active=is_active,
        created_at=NOW,
        updated_at=NOW,
        due_date=due_date,
    )


def test_summarize_portfolio() -> None:
    limits = [
        _limit("1000", "500"),
        _limit("1000", "0", status="suspended"),
        _limit("2000", "2000", is_active=False),
    ]

    summary = summarize_portfolio(limits)

    assert summary.total_clients == 2
    assert summary.active_limits == 1
    assert summary.total_credit == Decimal("2000.00")
    assert summary.total_used == Decimal("500.00")
    assert summary.average_utilization == Decimal("25.00")
    assert summary.status_distribution == {"active": 1, "suspended": 1, "blocked": 0}


def test_empty_portfolio() -> None:
    summary = summarize_portfolio([])

    assert summary.total_clients == 0
    assert summary.average_utilization == Decimal("0.00")


def test_build_alerts() -> None:
    settings = CreditLimitSettings(grace_period_days=7)
    over = _limit("1000", "1200")
    high = _limit("1000", "850")
    medium = _limit("1000", "650")
    healthy = _limit("1000", "100")
    late = _limit("1000", "100", due_date=NOW - timedelta(days=50))

    alerts = build_alerts([over, high, medium, healthy, late], settings, NOW)
    by_limit = {(a.credit_limit_id, a.type): a for a in alerts}

    assert by_limit[(over.id, AlertType.OVER_LIMIT)].severity is AlertSeverity.CRITICAL
    assert by_limit[(high.id, AlertType.HIGH_UTILIZATION)].severity is AlertSeverity.HIGH
    assert by_limit[(medium.id, AlertType.HIGH_UTILIZATION)].severity is AlertSeverity.MEDIUM
    assert by_limit[(late.id, AlertType.PAYMENT_DELAY)].severity is AlertSeverity.CRITICAL
    assert not any(a.credit_limit_id == healthy.id for a in alerts)
    assert len(alerts) == 4
