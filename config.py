"""
Application configuration.

Values come from the environment, optionally loaded from a `.env` file next
to this module. Business policy (credit limit settings) is NOT configured
here; it lives in the ledger store and is loaded by `SettingsProvider`.

Environment variables:
- SUPABASE_URL / SUPABASE_KEY: hosted database credentials (server-side key)
- CREDIT_LEDGER_STORE: "supabase" (default) or "memory"
- CREDIT_LEDGER_MAX_RETRIES: optimistic-write retries per operation (default 3)
- CREDIT_LEDGER_ACTOR: actor recorded when a caller does not name one (default "system")
- CREDIT_LEDGER_LOG_LEVEL: logging level for the API process (default INFO)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

_ENV_PATH = Path(__file__).parent / ".env"

STORE_SUPABASE = "supabase"
STORE_MEMORY = "memory"


@dataclass(frozen=True, slots=True)
class AppConfig:
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    store_backend: str = STORE_SUPABASE
    max_retries: int = 3
    default_actor: str = "system"
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.store_backend not in (STORE_SUPABASE, STORE_MEMORY):
            raise ValueError(
                f"CREDIT_LEDGER_STORE must be '{STORE_SUPABASE}' or '{STORE_MEMORY}', got {self.store_backend!r}"
            )
        if self.max_retries < 0:
            raise ValueError("CREDIT_LEDGER_MAX_RETRIES must be >= 0")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AppConfig":
        """
        Build the configuration from the process environment.

        `.env` is only loaded when reading the real environment; passing an
        explicit mapping (tests) skips it.
        """

        if environ is None:
            load_dotenv(dotenv_path=_ENV_PATH)
            environ = os.environ

        retries = environ.get("CREDIT_LEDGER_MAX_RETRIES", "3")
        try:
            max_retries = int(retries)
        except ValueError:
            raise ValueError(f"CREDIT_LEDGER_MAX_RETRIES must be an integer, got {retries!r}") from None

        return cls(
            supabase_url=environ.get("SUPABASE_URL"),
            supabase_key=environ.get("SUPABASE_KEY"),
            store_backend=environ.get("CREDIT_LEDGER_STORE", STORE_SUPABASE).strip().lower(),
            max_retries=max_retries,
            default_actor=environ.get("CREDIT_LEDGER_ACTOR", "system"),
            log_level=environ.get("CREDIT_LEDGER_LOG_LEVEL", "INFO").upper(),
        )


__all__ = ["AppConfig", "STORE_SUPABASE", "STORE_MEMORY"]
