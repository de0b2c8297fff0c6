"""
Row helpers shared by the Supabase repositories.

Conversion between PostgREST JSON rows and domain values, plus the single
place where transport failures are turned into StorageUnavailable.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Callable, List, Mapping, Optional, TypeVar
from uuid import UUID

import httpx
from postgrest.exceptions import APIError

from domain.errors import StorageUnavailable
from domain.time import require_utc_timestamp

logger = logging.getLogger(__name__)

T = TypeVar("T")

# PostgREST / Postgres error classes that mean "try again later" rather than
# "your request is wrong": connection failures, serialization failures,
# deadlocks, lock timeouts, too many connections.
_TRANSIENT_CODES = {"08000", "08003", "08006", "40001", "40P01", "55P03", "53300", "57014", "PGRST000", "PGRST001", "PGRST002"}


def to_iso_utc(dt: datetime, *, name: str) -> str:
    """Serialize a UTC datetime to ISO-8601 (timezone-aware, offset 0)."""

    require_utc_timestamp(name, dt)
    return dt.astimezone(timezone.utc).isoformat()


def parse_utc_datetime(value: Any) -> datetime:
    """
    Parse a Supabase timestamp into a timezone-aware UTC datetime.

    Supabase commonly returns ISO-8601 strings, sometimes with a trailing 'Z'.
    """

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        raise TypeError(f"Unsupported timestamp type: {type(value)!r}")

    if dt.tzinfo is None or dt.utcoffset() is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_date(value: Any) -> date:
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value[:10])
    raise TypeError(f"Unsupported date type: {type(value)!r}")


def parse_decimal(value: Any, default: str = "0") -> Decimal:
    if value is None:
        return Decimal(default)
    return Decimal(str(value))


def parse_optional_uuid(value: Any) -> Optional[UUID]:
    return UUID(str(value)) if value is not None else None


def is_transient(error: APIError) -> bool:
    return str(getattr(error, "code", "")) in _TRANSIENT_CODES


def run_query(operation: str, query: Callable[[], T]) -> T:
    """
    Execute a PostgREST call, mapping transport faults to StorageUnavailable.

    APIErrors that are not transient are programming or schema errors and are
    raised as RuntimeError, the way the other repositories report them.
    """

    try:
        response = query()
    except httpx.HTTPError as e:
        logger.warning("Storage call %s failed: %s", operation, e)
        raise StorageUnavailable(operation, e) from e
    except APIError as e:
        if is_transient(e):
            logger.warning("Storage call %s hit a transient error: %s", operation, e)
            raise StorageUnavailable(operation, e) from e
        raise RuntimeError(f"Failed to {operation}: {e}") from e

    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to {operation}: {error}")
    return response


def rows_of(response: Any) -> List[Mapping[str, Any]]:
    return getattr(response, "data", None) or []


__all__ = [
    "is_transient",
    "parse_date",
    "parse_decimal",
    "parse_optional_uuid",
    "parse_utc_datetime",
    "rows_of",
    "run_query",
    "to_iso_utc",
]
