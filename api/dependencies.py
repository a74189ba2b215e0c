"""
API Dependencies.

Builds the ledger components once per process from `AppConfig` and hands
them to the routers through FastAPI's dependency injection. Tests replace
`get_services` with `app.dependency_overrides`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache

from config import STORE_MEMORY, AppConfig
from repositories.ledger_store import LedgerStore
from repositories.memory_ledger_store import InMemoryLedgerStore
from services.application_service import ApplicationWorkflow
from services.ledger_service import LedgerService
from services.settings_service import SettingsProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerServices:
    config: AppConfig
    store: LedgerStore
    settings: SettingsProvider
    ledger: LedgerService
    workflow: ApplicationWorkflow


def build_services(config: AppConfig, store: LedgerStore | None = None) -> LedgerServices:
    """Wire the store, settings provider, ledger and workflow together and load the settings."""

    if store is None:
        if config.store_backend == STORE_MEMORY:
            store = InMemoryLedgerStore()
        else:
            # Imported here so the memory backend never needs Supabase credentials
            from repositories.client import get_supabase
            from repositories.supabase_ledger_store import SupabaseLedgerStore

            store = SupabaseLedgerStore(get_supabase(config))

    settings = SettingsProvider(store)
    settings.load()
    ledger = LedgerService(store, settings, max_retries=config.max_retries)
    workflow = ApplicationWorkflow(store, ledger)

    logger.info("Credit ledger services ready", extra={"store_backend": config.store_backend})
    return LedgerServices(config=config, store=store, settings=settings, ledger=ledger, workflow=workflow)


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    return AppConfig.from_env()


@lru_cache(maxsize=1)
def get_services() -> LedgerServices:
    return build_services(get_config())


__all__ = ["LedgerServices", "build_services", "get_config", "get_services"]
