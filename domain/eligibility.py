"""
Domain: purchase eligibility (pure).

Rules, in order:
1. No credit limit for the client -> not allowed ("no credit limit").
2. Limit status is not active -> not allowed ("<status> account").
3. amount > available_amount -> not allowed ("insufficient available credit"),
   still reporting the available credit and the shortage.
4. Otherwise allowed.

`amount == available_amount` is allowed.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from .credit_limit import CreditLimit, CreditLimitStatus
from .money import ZERO, require_non_negative

REASON_NO_LIMIT = "no credit limit"
REASON_INSUFFICIENT = "insufficient available credit"


@dataclass(frozen=True, slots=True)
class EligibilityResult:
    allowed: bool
    available_credit: Decimal
    reason: Optional[str] = None
    shortage: Optional[Decimal] = None


def can_purchase(limit: Optional[CreditLimit], amount: object) -> EligibilityResult:
    """Evaluate whether `amount` may be bought on credit against `limit`."""

    value = require_non_negative(amount)

    if limit is None:
        return EligibilityResult(allowed=False, available_credit=ZERO, reason=REASON_NO_LIMIT)

    if limit.status is not CreditLimitStatus.ACTIVE:
        return EligibilityResult(
            allowed=False,
            available_credit=ZERO,
            reason=f"{limit.status.value} account",
        )

    available = max(ZERO, limit.available_amount)
    if value > available:
        return EligibilityResult(
            allowed=False,
            available_credit=available,
            reason=REASON_INSUFFICIENT,
            shortage=value - available,
        )

    return EligibilityResult(allowed=True, available_credit=available)


__all__ = ["EligibilityResult", "can_purchase", "REASON_NO_LIMIT", "REASON_INSUFFICIENT"]
