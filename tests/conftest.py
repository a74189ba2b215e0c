"""
Pytest configuration for the credit ledger tests.

Adds the project root to the Python path so tests can import domain,
repositories, services and api, and provides fixtures wired to the
in-memory ledger store.
"""

from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from uuid import UUID

import pytest

# Add the project root to the Python path
# so tests can import domain, repositories, etc.
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from repositories.memory_ledger_store import InMemoryLedgerStore  # noqa: E402
from services.application_service import ApplicationWorkflow  # noqa: E402
from services.credit_session import CreditSession  # noqa: E402
from services.ledger_service import LedgerService  # noqa: E402
from services.settings_service import SettingsProvider  # noqa: E402

CLIENT_ID = UUID("00000000-0000-0000-0000-000000000101")
OTHER_CLIENT_ID = UUID("00000000-0000-0000-0000-000000000102")
START = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced UTC clock; each read moves time forward by one second."""

    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        current = self.now
        self.now = current + timedelta(seconds=1)
        return current

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> InMemoryLedgerStore:
    return InMemoryLedgerStore(clock=clock)


@pytest.fixture
def settings(store: InMemoryLedgerStore) -> SettingsProvider:
    provider = SettingsProvider(store)
    provider.load()
    return provider


@pytest.fixture
def ledger(store: InMemoryLedgerStore, settings: SettingsProvider, clock: FakeClock) -> LedgerService:
    return LedgerService(store, settings, clock=clock)


@pytest.fixture
def workflow(store: InMemoryLedgerStore, ledger: LedgerService, clock: FakeClock) -> ApplicationWorkflow:
    return ApplicationWorkflow(store, ledger, clock=clock)


@pytest.fixture
def session(
    store: InMemoryLedgerStore,
    settings: SettingsProvider,
    ledger: LedgerService,
    workflow: ApplicationWorkflow,
) -> CreditSession:
    return CreditSession(
        CLIENT_ID,
        store=store,
        settings=settings,
        ledger=ledger,
        workflow=workflow,
        actor="manager@example.com",
    )
