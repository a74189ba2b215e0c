"""
Per-account serialization.

Every balance-affecting operation for a client runs while holding that
client's lock, so two purchases for the same account cannot both read the
same balance_before. Cross-process writers are additionally guarded by the
store's expected-balance check.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator


class KeyedLock:
    """A registry of mutexes, one per key. Different keys never block each other."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, threading.Lock] = {}

    def _lock_for(self, key: Hashable) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        lock = self._lock_for(key)
        with lock:
            yield


__all__ = ["KeyedLock"]
