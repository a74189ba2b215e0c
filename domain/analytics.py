"""
Domain: portfolio analytics and risk monitoring alerts (pure).

Aggregates over many clients' credit limits. Inputs are already loaded
records; nothing here talks to the store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Dict, List, Sequence
from uuid import UUID

from .credit_limit import CreditLimit, CreditLimitStatus
from .money import ZERO
from .risk import CreditRiskAnalysis, RiskLevel, days_overdue, utilization, utilization_ratio
from .settings import CreditLimitSettings


@dataclass(frozen=True, slots=True)
class PortfolioSummary:
    total_clients: int
    active_limits: int
    total_credit: Decimal
    total_used: Decimal
    average_utilization: Decimal
    risk_distribution: Dict[str, int] = field(default_factory=dict)
    status_distribution: Dict[str, int] = field(default_factory=dict)


def summarize_portfolio(
    limits: Sequence[CreditLimit],
    analyses: Sequence[CreditRiskAnalysis] = (),
) -> PortfolioSummary:
    """Totals and distributions across active credit limits."""

    active = [lim for lim in limits if lim.is_active]
    status_distribution = {s.value: 0 for s in CreditLimitStatus}
    for lim in active:
        status_distribution[lim.status.value] += 1

    risk_distribution = {level.value: 0 for level in RiskLevel}
    for analysis in analyses:
        risk_distribution[analysis.risk_level.value] += 1

    total_credit = sum((lim.limit_amount for lim in active), ZERO)
    total_used = sum((lim.used_amount for lim in active), ZERO)
    if active:
        average = sum((utilization(lim) for lim in active), ZERO) / len(active)
    else:
        average = ZERO

    return PortfolioSummary(
        total_clients=len({lim.client_id for lim in active}),
        active_limits=status_distribution[CreditLimitStatus.ACTIVE.value],
        total_credit=total_credit,
        total_used=total_used,
        average_utilization=average.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP),
        risk_distribution=risk_distribution,
        status_distribution=status_distribution,
    )


class AlertType(str, Enum):
    HIGH_UTILIZATION = "high_utilization"
    OVER_LIMIT = "over_limit"
    PAYMENT_DELAY = "payment_delay"


class AlertSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass(frozen=True, slots=True)
class CreditAlert:
    client_id: UUID
    credit_limit_id: UUID
    type: AlertType
    severity: AlertSeverity
    message: str
    created_at: datetime


def build_alerts(
    limits: Sequence[CreditLimit],
    settings: CreditLimitSettings,
    as_of: datetime,
) -> List[CreditAlert]:
    """
    Risk monitoring alerts for active accounts.

    - over_limit when used > limit (critical)
    - high_utilization at >= 80% (high) or >= 60% (medium)
    - payment_delay when past due date plus grace period; critical after 30 days
    """

    alerts: List[CreditAlert] = []
    for lim in limits:
        if not lim.is_active:
            continue

        ratio = utilization_ratio(lim)
        if lim.is_over_limit or (lim.limit_amount == 0 and lim.used_amount > 0):
            alerts.append(CreditAlert(
                client_id=lim.client_id,
                credit_limit_id=lim.id,
                type=AlertType.OVER_LIMIT,
                severity=AlertSeverity.CRITICAL,
                message=f"Balance {lim.used_amount} exceeds limit {lim.limit_amount}",
                created_at=as_of,
            ))
        elif ratio >= 60:
            alerts.append(CreditAlert(
                client_id=lim.client_id,
                credit_limit_id=lim.id,
                type=AlertType.HIGH_UTILIZATION,
                severity=AlertSeverity.HIGH if ratio >= 80 else AlertSeverity.MEDIUM,
                message=f"Credit utilization at {utilization(lim)}%",
                created_at=as_of,
            ))

        late_days = days_overdue(lim, settings, as_of)
        if late_days:
            alerts.append(CreditAlert(
                client_id=lim.client_id,
                credit_limit_id=lim.id,
                type=AlertType.PAYMENT_DELAY,
                severity=AlertSeverity.CRITICAL if late_days > 30 else AlertSeverity.HIGH,
                message=f"Payment overdue by {late_days} day(s)",
                created_at=as_of,
            ))

    return alerts


__all__ = [
    "PortfolioSummary",
    "summarize_portfolio",
    "AlertType",
    "AlertSeverity",
    "CreditAlert",
    "build_alerts",
]
