"""
Domain: credit limit policy settings.

Process-wide business policy for credit accounts. Loaded explicitly from the
ledger store and handed to the components that need it; there is no implicit
module-level instance.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from decimal import Decimal
from typing import Any, Mapping

from .errors import InvalidArgument
from .money import require_non_negative

_INT_FIELDS = frozenset({"grace_period_days", "max_credit_days"})


@dataclass(frozen=True, slots=True)
class CreditLimitSettings:
    default_limit_amount: Decimal = Decimal("500.00")
    # Applications requesting at most this limit are approved automatically (0 disables).
    auto_approve_limit: Decimal = Decimal("1000.00")
    require_analysis_threshold: Decimal = Decimal("5000.00")
    block_threshold: Decimal = Decimal("10000.00")
    interest_rate: Decimal = Decimal("5.00")
    late_fee: Decimal = Decimal("10.00")
    grace_period_days: int = 7
    max_credit_days: int = 30

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name in _INT_FIELDS:
                if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                    raise InvalidArgument(f"{f.name} must be a non-negative integer, got {value!r}")
            else:
                object.__setattr__(self, f.name, require_non_negative(value, name=f.name))

    @classmethod
    def field_names(cls) -> frozenset[str]:
        return frozenset(f.name for f in fields(cls))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "CreditLimitSettings":
        """Build settings from a stored row, ignoring unknown columns (id, timestamps)."""

        known = cls.field_names()
        return cls(**{k: v for k, v in data.items() if k in known and v is not None})

    def merged(self, patch: Mapping[str, Any]) -> "CreditLimitSettings":
        unknown = set(patch) - self.field_names()
        if unknown:
            raise InvalidArgument(f"Unknown settings field(s): {', '.join(sorted(unknown))}")
        return replace(self, **dict(patch))

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


__all__ = ["CreditLimitSettings"]
