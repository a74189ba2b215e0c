"""
Credit limit settings provider.

Holds the process-wide CreditLimitSettings. The settings are loaded with an
explicit `load()` call and passed by reference to the services that need
them. Reads are lock-free (the settings object is immutable); updates are
serialized on the provider's own lock, independent of any account lock.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Mapping, Optional

from domain.deadline import Deadline, check_deadline
from domain.errors import InvalidState
from domain.settings import CreditLimitSettings
from repositories.ledger_store import LedgerStore

logger = logging.getLogger(__name__)


class SettingsProvider:
    def __init__(self, store: LedgerStore) -> None:
        self._store = store
        self._lock = threading.Lock()
        self._settings: Optional[CreditLimitSettings] = None

    @property
    def loaded(self) -> bool:
        return self._settings is not None

    @property
    def current(self) -> CreditLimitSettings:
        settings = self._settings
        if settings is None:
            raise InvalidState("Credit limit settings have not been loaded; call load() first")
        return settings

    def load(self, *, deadline: Optional[Deadline] = None) -> CreditLimitSettings:
        check_deadline(deadline, "loading credit limit settings")
        settings = self._store.get_settings()
        self._settings = settings
        return settings

    def ensure_loaded(self, *, deadline: Optional[Deadline] = None) -> CreditLimitSettings:
        """Return the current settings, loading them from the store on first use."""

        settings = self._settings
        if settings is None:
            return self.load(deadline=deadline)
        return settings

    def update(self, patch: Mapping[str, Any], *, deadline: Optional[Deadline] = None) -> CreditLimitSettings:
        """
        Apply a partial update.

        The patch is validated against the current settings before the store
        is called, so unknown fields or negative values never reach it.
        """

        with self._lock:
            base = self._settings or CreditLimitSettings()
            base.merged(patch)
            check_deadline(deadline, "updating credit limit settings")
            updated = self._store.update_settings(patch)
            self._settings = updated

        logger.info("Credit limit settings updated", extra={"fields": sorted(patch)})
        return updated


__all__ = ["SettingsProvider"]
