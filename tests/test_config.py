"""
Tests for `config.py` and `repositories/client.py`.

Covers:
- Defaults when only the required variables are present.
- Invalid store backend and retry count are rejected.
- Missing Supabase credentials fail with an actionable RuntimeError.
"""

from __future__ import annotations

import pytest

from config import STORE_MEMORY, STORE_SUPABASE, AppConfig
from repositories.client import create_supabase_client


def test_defaults() -> None:
    config = AppConfig.from_env({})

    assert config.store_backend == STORE_SUPABASE
    assert config.max_retries == 3
    assert config.default_actor == "system"
    assert config.log_level == "INFO"
    assert config.supabase_url is None


def test_reads_environment() -> None:
    config = AppConfig.from_env({
        "SUPABASE_URL": "https://example.supabase.co",
        "SUPABASE_KEY": "secret",
        "CREDIT_LEDGER_STORE": " Memory ",
        "CREDIT_LEDGER_MAX_RETRIES": "5",
        "CREDIT_LEDGER_ACTOR": "backoffice",
        "CREDIT_LEDGER_LOG_LEVEL": "debug",
    })

    assert config.store_backend == STORE_MEMORY
    assert config.max_retries == 5
    assert config.default_actor == "backoffice"
    assert config.log_level == "DEBUG"


@pytest.mark.parametrize(
    "environ",
    [
        {"CREDIT_LEDGER_STORE": "sqlite"},
        {"CREDIT_LEDGER_MAX_RETRIES": "many"},
        {"CREDIT_LEDGER_MAX_RETRIES": "-1"},
    ],
)
def test_invalid_values_are_rejected(environ: dict) -> None:
    with pytest.raises(ValueError):
        AppConfig.from_env(environ)


@pytest.mark.parametrize(
    "url, key, missing",
    [
        (None, "secret", "SUPABASE_URL"),
        ("https://example.supabase.co", None, "SUPABASE_KEY"),
    ],
)
def test_missing_credentials(url, key, missing: str) -> None:
    config = AppConfig(supabase_url=url, supabase_key=key)

    with pytest.raises(RuntimeError, match=missing):
        create_supabase_client(config)
