"""
Domain: credit status classification and risk analysis (pure).

Status bands (explicit suspended/blocked status always wins):
- utilization >= 100%  -> over_limit
- utilization >=  80%  -> critical
- utilization >=  60%  -> warning
- otherwise            -> healthy

A zero limit counts as 0% utilization when nothing is owed and as fully used
otherwise.

Risk analysis is advisory only. It never gates purchases and never touches
ledger state; it is a pure function of the limit, the client profile and the
purchase history handed in by the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import List, Optional, Sequence
from uuid import UUID

from .credit_limit import CreditLimit, CreditLimitStatus
from .credit_transaction import CreditTransaction, chronological
from .money import ZERO
from .settings import CreditLimitSettings
from .time import require_utc_timestamp, utc_now

HUNDRED = Decimal("100")
_PCT = Decimal("0.01")


class CreditStatusBand(str, Enum):
    NO_LIMIT = "no_limit"
    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"
    OVER_LIMIT = "over_limit"
    SUSPENDED = "suspended"
    BLOCKED = "blocked"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"


class Confidence(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True, slots=True)
class CreditStatus:
    status: CreditStatusBand
    color: str
    message: str


NO_LIMIT_STATUS = CreditStatus(CreditStatusBand.NO_LIMIT, "gray", "No credit limit")


@dataclass(frozen=True, slots=True)
class ClientProfile:
    """The slice of the client record the risk analysis needs."""

    client_id: UUID
    created_at: Optional[datetime] = None
    status: str = "active"
    name: Optional[str] = None

    def __post_init__(self) -> None:
        if self.created_at is not None:
            require_utc_timestamp("created_at", self.created_at)


@dataclass(frozen=True, slots=True)
class PurchaseHistoryItem:
    """
    One past sale for the client.

    due_date/paid_at are only set for sales paid on credit; they feed the
    payment punctuality signal.
    """

    sale_id: UUID
    sale_date: datetime
    total_amount: Decimal
    status: str = "completed"  # completed, pending, cancelled
    due_date: Optional[datetime] = None
    paid_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("sale_date", self.sale_date)
        if self.due_date is not None:
            require_utc_timestamp("due_date", self.due_date)
        if self.paid_at is not None:
            require_utc_timestamp("paid_at", self.paid_at)


@dataclass(frozen=True, slots=True)
class RiskFactors:
    """Each factor is on a 0-100 scale; higher means riskier."""

    payment_history: int
    purchase_frequency: int
    average_ticket: int
    days_since_last_purchase: int
    credit_utilization: int
    utilization_trend: int
    account_age: int


@dataclass(frozen=True, slots=True)
class CreditRiskAnalysis:
    client_id: UUID
    risk_score: int
    risk_level: RiskLevel
    confidence: Confidence
    factors: RiskFactors
    suggested_limit: Decimal
    analysis_date: datetime
    recommendations: List[str] = field(default_factory=list)


# Factor weights; they sum to 1.
_WEIGHTS = {
    "payment_history": Decimal("0.30"),
    "purchase_frequency": Decimal("0.15"),
    "average_ticket": Decimal("0.10"),
    "days_since_last_purchase": Decimal("0.15"),
    "credit_utilization": Decimal("0.15"),
    "utilization_trend": Decimal("0.05"),
    "account_age": Decimal("0.10"),
}

_LIMIT_MULTIPLIER = {
    RiskLevel.LOW: Decimal("1.5"),
    RiskLevel.MEDIUM: Decimal("1"),
    RiskLevel.HIGH: Decimal("0.7"),
    RiskLevel.VERY_HIGH: Decimal("0.5"),
}


def utilization_ratio(limit: Optional[CreditLimit]) -> Decimal:
    """
    Used / limit as an unrounded percentage. No limit -> 0.

    Thresholds compare against this value; `utilization()` is for display.
    """

    if limit is None:
        return ZERO
    if limit.limit_amount == 0:
        return ZERO if limit.used_amount == 0 else HUNDRED
    return limit.used_amount / limit.limit_amount * HUNDRED


def utilization(limit: Optional[CreditLimit]) -> Decimal:
    """Used / limit as a percentage (0.01 precision). No limit -> 0."""

    if limit is None:
        return ZERO
    return utilization_ratio(limit).quantize(_PCT, rounding=ROUND_HALF_UP)


def classify_status(limit: Optional[CreditLimit]) -> CreditStatus:
    if limit is None:
        return NO_LIMIT_STATUS

    if limit.status is CreditLimitStatus.SUSPENDED:
        return CreditStatus(CreditStatusBand.SUSPENDED, "orange", "Credit suspended")
    if limit.status is CreditLimitStatus.BLOCKED:
        return CreditStatus(CreditStatusBand.BLOCKED, "red", "Credit blocked")

    pct = utilization_ratio(limit)
    if pct >= 100:
        return CreditStatus(CreditStatusBand.OVER_LIMIT, "red", "Credit limit exceeded")
    if pct >= 80:
        return CreditStatus(CreditStatusBand.CRITICAL, "red", "Critical credit utilization")
    if pct >= 60:
        return CreditStatus(CreditStatusBand.WARNING, "yellow", "High credit utilization")
    return CreditStatus(CreditStatusBand.HEALTHY, "green", "Healthy credit")


def days_overdue(limit: CreditLimit, settings: CreditLimitSettings, as_of: datetime) -> int:
    """Days past due date plus grace period; 0 when nothing is owed or not yet due."""

    if limit.used_amount == 0 or limit.due_date is None:
        return 0
    deadline = limit.due_date + timedelta(days=settings.grace_period_days)
    if as_of <= deadline:
        return 0
    return max(1, (as_of - deadline).days)


def is_overdue(limit: CreditLimit, settings: CreditLimitSettings, as_of: datetime) -> bool:
    return days_overdue(limit, settings, as_of) > 0


def _clamp(value: Decimal) -> Decimal:
    return max(ZERO, min(HUNDRED, value))


def _to_int(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _risk_level(score: Decimal) -> RiskLevel:
    if score <= 30:
        return RiskLevel.LOW
    if score <= 50:
        return RiskLevel.MEDIUM
    if score <= 70:
        return RiskLevel.HIGH
    return RiskLevel.VERY_HIGH


def _account_age_factor(profile: ClientProfile, as_of: datetime) -> Decimal:
    if profile.created_at is None:
        return Decimal("30")
    age_days = (as_of - profile.created_at).days
    if age_days < 90:
        return Decimal("60")
    if age_days < 365:
        return Decimal("30")
    return ZERO


def _utilization_trend_factor(
    limit: Optional[CreditLimit],
    transactions: Sequence[CreditTransaction],
    as_of: datetime,
) -> Decimal:
    """Growth of the balance over the last 30 days, as % of the limit. Falling balances score 0."""

    if limit is None or not transactions or limit.limit_amount == 0:
        return ZERO
    cutoff = as_of - timedelta(days=30)
    ordered = chronological(transactions)
    # The log may be truncated; start from the oldest supplied entry's opening balance.
    balance_then = ordered[0].balance_before
    for entry in ordered:
        if entry.created_at > cutoff:
            break
        balance_then = entry.balance_after
    growth = (limit.used_amount - balance_then) / limit.limit_amount * HUNDRED
    return _clamp(growth)


def _payment_history_factor(completed: Sequence[PurchaseHistoryItem], as_of: datetime) -> tuple[Decimal, bool]:
    """
    Share of credit sales paid late (or unpaid past due). Falls back to a
    volume heuristic when no sale carries due-date information.

    Returns (factor, has_punctuality_data).
    """

    on_credit = [p for p in completed if p.due_date is not None]
    if not on_credit:
        return _clamp(HUNDRED - Decimal(len(completed) * 2)), False

    late = 0
    for item in on_credit:
        if item.paid_at is not None:
            if item.paid_at > item.due_date:
                late += 1
        elif item.due_date < as_of:
            late += 1
    return _clamp(Decimal(late) / Decimal(len(on_credit)) * HUNDRED), True


def _neutral_analysis(
    profile: ClientProfile,
    limit: Optional[CreditLimit],
    as_of: datetime,
) -> CreditRiskAnalysis:
    util = _clamp(utilization(limit))
    factors = RiskFactors(
        payment_history=50,
        purchase_frequency=50,
        average_ticket=0,
        days_since_last_purchase=50,
        credit_utilization=_to_int(util),
        utilization_trend=0,
        account_age=_to_int(_account_age_factor(profile, as_of)),
    )
    return CreditRiskAnalysis(
        client_id=profile.client_id,
        risk_score=50,
        risk_level=RiskLevel.MEDIUM,
        confidence=Confidence.LOW,
        factors=factors,
        suggested_limit=limit.limit_amount if limit is not None else ZERO,
        analysis_date=as_of,
        recommendations=["Insufficient purchase history - keep a conservative limit"],
    )


def analyze_risk(
    profile: ClientProfile,
    purchase_history: Sequence[PurchaseHistoryItem],
    limit: Optional[CreditLimit],
    *,
    transactions: Sequence[CreditTransaction] = (),
    as_of: Optional[datetime] = None,
) -> CreditRiskAnalysis:
    """
    Combine punctuality, activity, utilization trend and account age into a
    qualitative risk tier.

    An empty (or fully cancelled) purchase history yields a neutral,
    low-confidence analysis instead of failing.
    """

    now = as_of or utc_now()
    require_utc_timestamp("as_of", now)

    completed = [p for p in purchase_history if p.status == "completed"]
    if not completed:
        return _neutral_analysis(profile, limit, now)

    total = len(completed)
    spent = sum((Decimal(p.total_amount) for p in completed), ZERO)
    average_ticket = spent / total
    last_purchase = max(p.sale_date for p in completed)
    days_since_last = max(0, (now - last_purchase).days)

    payment_history, has_punctuality = _payment_history_factor(completed, now)
    raw = {
        "payment_history": payment_history,
        "purchase_frequency": ZERO if total > 10 else Decimal("50"),
        "average_ticket": Decimal("20") if average_ticket > 1000 else ZERO,
        "days_since_last_purchase": _clamp(Decimal(days_since_last) / 3),
        "credit_utilization": _clamp(utilization(limit)),
        "utilization_trend": _utilization_trend_factor(limit, transactions, now),
        "account_age": _account_age_factor(profile, now),
    }
    score = sum((raw[name] * weight for name, weight in _WEIGHTS.items()), ZERO)
    level = _risk_level(score)

    if total < 3:
        confidence = Confidence.LOW
    elif total < 10 or not has_punctuality:
        confidence = Confidence.MEDIUM
    else:
        confidence = Confidence.HIGH

    recommendations: List[str] = []
    if raw["payment_history"] > 70:
        recommendations.append(
            "Late payments on credit sales - review the limit"
            if has_punctuality
            else "Limited history - consider a lower limit"
        )
    if raw["purchase_frequency"] > 40:
        recommendations.append("Low purchase frequency - monitor activity")
    if raw["days_since_last_purchase"] > 60:
        recommendations.append("Inactive client - re-evaluate credit")
    if raw["credit_utilization"] > 80:
        recommendations.append("High utilization - be careful with increases")
    if raw["utilization_trend"] > 25:
        recommendations.append("Balance growing quickly - follow up on payments")

    suggested = (average_ticket * 3 * _LIMIT_MULTIPLIER[level]).quantize(Decimal("1"), rounding=ROUND_HALF_UP)

    return CreditRiskAnalysis(
        client_id=profile.client_id,
        risk_score=_to_int(score),
        risk_level=level,
        confidence=confidence,
        factors=RiskFactors(**{name: _to_int(value) for name, value in raw.items()}),
        suggested_limit=suggested.quantize(_PCT),
        analysis_date=now,
        recommendations=recommendations,
    )


@dataclass(frozen=True, slots=True)
class IncreaseEligibility:
    eligible: bool
    reason: str
    suggested_increase: Optional[Decimal] = None


def check_increase_eligibility(limit: CreditLimit, analysis: CreditRiskAnalysis) -> IncreaseEligibility:
    """Whether a limit increase is advisable, and by how much."""

    status = classify_status(limit)
    if status.status is not CreditStatusBand.HEALTHY:
        return IncreaseEligibility(False, f"Credit is not healthy: {status.message}")

    if analysis.risk_level in (RiskLevel.HIGH, RiskLevel.VERY_HIGH):
        return IncreaseEligibility(False, f"Credit risk too high: {analysis.risk_level.value}")

    pct = utilization_ratio(limit)
    increase = ZERO
    if pct < 30 and analysis.risk_level is RiskLevel.LOW:
        increase = limit.limit_amount * Decimal("0.5")
    elif pct < 50 and analysis.risk_level is RiskLevel.MEDIUM:
        increase = limit.limit_amount * Decimal("0.25")

    if increase > 0:
        return IncreaseEligibility(True, "Client eligible for a credit increase", increase.quantize(_PCT))
    return IncreaseEligibility(False, "Client not eligible for an increase at this time")


@dataclass(frozen=True, slots=True)
class CreditReport:
    limit_amount: Decimal
    used_amount: Decimal
    available_amount: Decimal
    utilization: Decimal
    status: CreditStatus
    recent_transactions: List[CreditTransaction]
    risk_analysis: Optional[CreditRiskAnalysis]
    recommendations: List[str]


def generate_credit_report(
    limit: CreditLimit,
    transactions: Sequence[CreditTransaction],
    analysis: Optional[CreditRiskAnalysis] = None,
) -> CreditReport:
    """Summary of an account with its ten most recent entries (input is newest first)."""

    pct = utilization_ratio(limit)
    status = classify_status(limit)

    recommendations: List[str] = []
    if pct > 80:
        recommendations.append("Contact client about payment")
    if status.status is CreditStatusBand.WARNING:
        recommendations.append("Monitor credit utilization")
    if analysis is not None and analysis.risk_level in (RiskLevel.HIGH, RiskLevel.VERY_HIGH):
        recommendations.append("Re-evaluate credit limit")

    return CreditReport(
        limit_amount=limit.limit_amount,
        used_amount=limit.used_amount,
        available_amount=limit.available_amount,
        utilization=pct,
        status=status,
        recent_transactions=list(transactions[:10]),
        risk_analysis=analysis,
        recommendations=recommendations,
    )


__all__ = [
    "CreditStatusBand",
    "CreditStatus",
    "RiskLevel",
    "Confidence",
    "ClientProfile",
    "PurchaseHistoryItem",
    "RiskFactors",
    "CreditRiskAnalysis",
    "IncreaseEligibility",
    "CreditReport",
    "utilization",
    "classify_status",
    "days_overdue",
    "is_overdue",
    "analyze_risk",
    "check_increase_eligibility",
    "generate_credit_report",
]
