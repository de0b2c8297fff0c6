"""
Runtime settings.

Values come from the environment; a `.env` file in the allocation-core
directory is loaded first so local development needs no exported variables.

Environment variables:
- ALLOCATION_STORAGE_BACKEND: "supabase" (default) or "memory"
- SUPABASE_URL / SUPABASE_KEY: only required for the supabase backend
- HOLD_TTL_MINUTES: lifetime of an unconfirmed hold (default 15)
- HOLD_SWEEP_INTERVAL_SECONDS: expiry sweep interval (default 60)
- RELEASE_CHECK_INTERVAL_MINUTES: release-date check interval (default 60)
- QUOTE_VALIDITY_MINUTES: how long a price quote stays valid (default 15)
- LOW_INVENTORY_THRESHOLD: calendar "low_inventory" threshold (default 5)
- DEFAULT_ORG_ID: organization used by maintenance scripts
- LOG_LEVEL: logging level name (default INFO)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional
from uuid import UUID

from dotenv import load_dotenv

env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

_BACKENDS = ("supabase", "memory")


@dataclass(frozen=True, slots=True)
class Settings:
    storage_backend: str = "supabase"
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    hold_ttl_minutes: int = 15
    hold_sweep_interval_seconds: int = 60
    release_check_interval_minutes: int = 60
    quote_validity_minutes: int = 15
    low_inventory_threshold: int = 5
    default_org_id: Optional[UUID] = None
    log_level: str = "INFO"


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise RuntimeError(
            f"Invalid environment variable: {name}={raw!r}. Set {name} to a whole number."
        ) from None
    if value <= 0:
        raise RuntimeError(f"Invalid environment variable: {name}={raw!r}. {name} must be > 0.")
    return value


def load_settings() -> Settings:
    """Read settings from the environment (no caching)."""

    backend = (os.getenv("ALLOCATION_STORAGE_BACKEND") or "supabase").strip().lower()
    if backend not in _BACKENDS:
        raise RuntimeError(
            f"Invalid environment variable: ALLOCATION_STORAGE_BACKEND={backend!r}. "
            f"Use one of: {', '.join(_BACKENDS)}."
        )

    org_raw = os.getenv("DEFAULT_ORG_ID")
    try:
        default_org_id = UUID(org_raw) if org_raw else None
    except ValueError:
        raise RuntimeError(
            f"Invalid environment variable: DEFAULT_ORG_ID={org_raw!r}. Set it to an organization UUID."
        ) from None

    return Settings(
        storage_backend=backend,
        supabase_url=os.getenv("SUPABASE_URL"),
        supabase_key=os.getenv("SUPABASE_KEY"),
        hold_ttl_minutes=_int_env("HOLD_TTL_MINUTES", 15),
        hold_sweep_interval_seconds=_int_env("HOLD_SWEEP_INTERVAL_SECONDS", 60),
        release_check_interval_minutes=_int_env("RELEASE_CHECK_INTERVAL_MINUTES", 60),
        quote_validity_minutes=_int_env("QUOTE_VALIDITY_MINUTES", 15),
        low_inventory_threshold=_int_env("LOW_INVENTORY_THRESHOLD", 5),
        default_org_id=default_org_id,
        log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()


__all__ = ["Settings", "get_settings", "load_settings"]
