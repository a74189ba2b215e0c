"""
Supabase client initialization.

This module contains *only* the database connection setup. The client is
created on first use from `AppConfig`, so importing the repositories package
does not require credentials (the in-memory store needs none).

Environment variables required for the Supabase store:
- SUPABASE_URL: Your Supabase project URL
- SUPABASE_KEY: Your Supabase API key (use a server-side key only on the backend)
"""

from __future__ import annotations

import threading
from typing import Optional

# The dependency is `supabase` (supabase-py). If your editor can't resolve it,
# install it in your environment: `pip install supabase`.
from supabase import Client, create_client  # type: ignore[import-not-found]

from config import AppConfig

_client: Optional[Client] = None
_client_lock = threading.Lock()


def create_supabase_client(config: AppConfig) -> Client:
    """Create a new Supabase client from explicit configuration."""

    if not config.supabase_url:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_URL. "
            "Set SUPABASE_URL to your Supabase project URL."
        )

    if not config.supabase_key:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_KEY. "
            "Set SUPABASE_KEY to your Supabase API key."
        )

    return create_client(config.supabase_url, config.supabase_key)


def get_supabase(config: Optional[AppConfig] = None) -> Client:
    """Return the process-wide Supabase client, creating it on first call."""

    global _client
    with _client_lock:
        if _client is None:
            _client = create_supabase_client(config or AppConfig.from_env())
        return _client


__all__ = ["create_supabase_client", "get_supabase"]
