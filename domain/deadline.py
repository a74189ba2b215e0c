"""
Domain: caller deadlines.

A Deadline travels with an operation and is checked before every store call.
An expired deadline aborts the operation before its next store call; since
each write is a single atomic store call, no partial write is left behind.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from .errors import OperationCancelled
from .time import require_utc_timestamp, utc_now


@dataclass(frozen=True, slots=True)
class Deadline:
    expires_at: datetime
    clock: Callable[[], datetime] = utc_now

    def __post_init__(self) -> None:
        require_utc_timestamp("expires_at", self.expires_at)

    @classmethod
    def after(cls, seconds: float, *, clock: Callable[[], datetime] = utc_now) -> "Deadline":
        return cls(expires_at=clock() + timedelta(seconds=seconds), clock=clock)

    @property
    def expired(self) -> bool:
        return self.clock() >= self.expires_at

    def check(self, operation: str) -> None:
        if self.expired:
            raise OperationCancelled(f"Deadline exceeded before {operation}")


def check_deadline(deadline: Optional[Deadline], operation: str) -> None:
    if deadline is not None:
        deadline.check(operation)


__all__ = ["Deadline", "check_deadline"]
