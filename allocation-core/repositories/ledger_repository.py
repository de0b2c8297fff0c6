"""
Ledger repository (persistence) on Supabase.

Reads bucket definitions from `allocation_buckets` and per-night counters
from `allocation_bucket_days`. Counters are never written with a plain
UPDATE from here: every mutation goes through a Postgres function defined in
migrations/001_allocation_core.sql.

- adjust_bucket_day(): one conditional UPDATE guarded by the capacity
  invariant. Two concurrent callers racing for the last unit are serialized
  by the row lock Postgres takes for the UPDATE.
- adjust_bucket_days(): applies an array of adjustments inside one
  transaction and raises (rolling everything back) on the first violation.
  An optional operation key is inserted in the same transaction; a call
  whose key already exists is answered with `replayed` and changes nothing.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Sequence
from uuid import UUID

from postgrest.exceptions import APIError

from domain.allocation import (
    AllocationBucket,
    AllocationType,
    AvailabilityState,
    BucketAdjustment,
    BucketDay,
    DailyAvailability,
    summarize_nights,
)
from domain.errors import CapacityExceeded, InvalidAdjustment, StorageUnavailable
from domain.time import DateRange
from repositories.client import get_supabase_client
from repositories.rows import (
    is_transient,
    parse_date,
    parse_decimal,
    parse_optional_uuid,
    rows_of,
    run_query,
)

logger = logging.getLogger(__name__)

# Supabase table names.
# Keep these aligned with your database schema.
_BUCKETS_TABLE: str = "allocation_buckets"
_DAYS_TABLE: str = "allocation_bucket_days"
_OPERATIONS_TABLE: str = "allocation_ledger_operations"

_BUCKET_COLUMNS = (
    "id, org_id, product_variant_id, supplier_id, contract_id, inventory_pool_id, "
    "allocation_type, valid_from, valid_to, overbooking_limit, allow_overbooking, "
    "priority, unit_cost, currency, release_days, released"
)


def _row_to_bucket(row: Mapping[str, Any]) -> AllocationBucket:
    """Convert a Supabase row into an AllocationBucket."""

    return AllocationBucket(
        bucket_id=UUID(str(row["id"])),
        org_id=UUID(str(row["org_id"])),
        unit_id=UUID(str(row["product_variant_id"])),
        supplier_id=UUID(str(row["supplier_id"])),
        contract_id=parse_optional_uuid(row.get("contract_id")),
        pool_id=parse_optional_uuid(row.get("inventory_pool_id")),
        allocation_type=AllocationType(str(row["allocation_type"])),
        valid_from=parse_date(row["valid_from"]),
        valid_to=parse_date(row["valid_to"]),
        overbooking_limit=int(row.get("overbooking_limit") or 0),
        allow_overbooking=bool(row.get("allow_overbooking")),
        priority=int(row.get("priority") if row.get("priority") is not None else 100),
        unit_cost=parse_decimal(row.get("unit_cost"), "0.00"),
        currency=str(row.get("currency") or "EUR"),
        release_days=int(row["release_days"]) if row.get("release_days") is not None else None,
        released=bool(row.get("released")),
    )


def _row_to_day(row: Mapping[str, Any]) -> BucketDay:
    """Convert a Supabase row into a BucketDay."""

    quantity = row.get("quantity")
    return BucketDay(
        bucket_id=UUID(str(row["bucket_id"])),
        night=parse_date(row["date"]),
        quantity=int(quantity) if quantity is not None else None,
        booked=int(row.get("booked") or 0),
        held=int(row.get("held") or 0),
        stop_sell=bool(row.get("stop_sell")),
        blackout=bool(row.get("blackout")),
    )


def _state_from_payload(payload: Mapping[str, Any]) -> AvailabilityState:
    quantity = payload.get("quantity")
    available = payload.get("available")
    return AvailabilityState(
        bucket_id=UUID(str(payload["bucket_id"])),
        night=parse_date(payload["date"]),
        quantity=int(quantity) if quantity is not None else None,
        booked=int(payload["booked"]),
        held=int(payload["held"]),
        available=int(available) if available is not None else None,
    )


def _raise_for_payload(payload: Mapping[str, Any], requested: int) -> None:
    """Turn a failed adjustment payload into the matching domain error."""

    error_code = payload.get("error")
    message = payload.get("message") or str(error_code)
    if error_code == "CAPACITY_EXCEEDED":
        available = payload.get("available")
        raise CapacityExceeded(
            bucket_id=UUID(str(payload["bucket_id"])),
            night=parse_date(payload["date"]),
            requested=int(payload.get("requested", requested)),
            available=int(available) if available is not None else None,
        )
    if error_code in ("NEGATIVE_COUNTER", "ROW_NOT_FOUND"):
        raise InvalidAdjustment(message)
    raise RuntimeError(f"Ledger adjustment failed: {message}")


class SupabaseLedgerStore:
    """LedgerStore backed by the hosted Postgres database."""

    def __init__(self, client: Optional[Any] = None) -> None:
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = get_supabase_client()
        return self._client

    # Reads ----------------------------------------------------------------

    def list_buckets(self, org_id: UUID, unit_id: UUID, stay: DateRange) -> List[AllocationBucket]:
        response = run_query(
            "list allocation buckets",
            lambda: self.client.table(_BUCKETS_TABLE)
            .select(_BUCKET_COLUMNS)
            .eq("org_id", str(org_id))
            .eq("product_variant_id", str(unit_id))
            .lte("valid_from", stay.last_night.isoformat())
            .gte("valid_to", stay.start.isoformat())
            .order("id")
            .execute(),
        )
        return [_row_to_bucket(row) for row in rows_of(response)]

    def get_bucket(self, org_id: UUID, bucket_id: UUID) -> Optional[AllocationBucket]:
        response = run_query(
            "get allocation bucket",
            lambda: self.client.table(_BUCKETS_TABLE)
            .select(_BUCKET_COLUMNS)
            .eq("org_id", str(org_id))
            .eq("id", str(bucket_id))
            .limit(1)
            .execute(),
        )
        rows = rows_of(response)
        return _row_to_bucket(rows[0]) if rows else None

    def list_org_buckets(self, org_id: UUID) -> List[AllocationBucket]:
        response = run_query(
            "list organization buckets",
            lambda: self.client.table(_BUCKETS_TABLE)
            .select(_BUCKET_COLUMNS)
            .eq("org_id", str(org_id))
            .order("valid_from")
            .execute(),
        )
        return [_row_to_bucket(row) for row in rows_of(response)]

    def get_days(self, bucket_id: UUID, stay: DateRange) -> List[BucketDay]:
        response = run_query(
            "fetch bucket days",
            lambda: self.client.table(_DAYS_TABLE)
            .select("bucket_id, date, quantity, booked, held, stop_sell, blackout")
            .eq("bucket_id", str(bucket_id))
            .gte("date", stay.start.isoformat())
            .lte("date", stay.last_night.isoformat())
            .order("date")
            .execute(),
        )
        return [_row_to_day(row) for row in rows_of(response)]

    def get_availability(self, org_id: UUID, unit_id: UUID, stay: DateRange) -> List[DailyAvailability]:
        buckets = {b.bucket_id: b for b in self.list_buckets(org_id, unit_id, stay)}
        if not buckets:
            return summarize_nights(unit_id, stay, buckets, [])

        response = run_query(
            "fetch unit availability",
            lambda: self.client.table(_DAYS_TABLE)
            .select("bucket_id, date, quantity, booked, held, stop_sell, blackout")
            .in_("bucket_id", [str(bucket_id) for bucket_id in buckets])
            .gte("date", stay.start.isoformat())
            .lte("date", stay.last_night.isoformat())
            .execute(),
        )
        days = [_row_to_day(row) for row in rows_of(response)]
        return summarize_nights(unit_id, stay, buckets, days)

    # Mutations ------------------------------------------------------------

    def adjust(
        self,
        org_id: UUID,
        bucket_id: UUID,
        night: date,
        delta_booked: int,
        delta_held: int,
    ) -> AvailabilityState:
        payload = self._rpc(
            "adjust_bucket_day",
            {
                "p_org_id": str(org_id),
                "p_bucket_id": str(bucket_id),
                "p_date": night.isoformat(),
                "p_delta_booked": delta_booked,
                "p_delta_held": delta_held,
            },
        )
        if not payload.get("success"):
            _raise_for_payload(payload, delta_booked + delta_held)
        return _state_from_payload(payload)

    def adjust_many(
        self,
        org_id: UUID,
        adjustments: Sequence[BucketAdjustment],
        operation_key: Optional[str] = None,
    ) -> List[AvailabilityState]:
        if not adjustments:
            return []

        params: Dict[str, Any] = {
            "p_org_id": str(org_id),
            "p_adjustments": [
                {
                    "bucket_id": str(a.bucket_id),
                    "date": a.night.isoformat(),
                    "delta_booked": a.delta_booked,
                    "delta_held": a.delta_held,
                }
                for a in adjustments
            ],
        }
        if operation_key is not None:
            params["p_operation_key"] = operation_key

        payload = self._rpc("adjust_bucket_days", params)
        if not payload.get("success"):
            _raise_for_payload(payload, 0)
        if payload.get("replayed"):
            logger.info("Ledger operation %s was already applied", operation_key)
            return []
        return [_state_from_payload(row) for row in payload.get("rows") or []]

    def operation_applied(self, org_id: UUID, operation_key: str) -> bool:
        response = run_query(
            "check ledger operation",
            lambda: self.client.table(_OPERATIONS_TABLE)
            .select("operation_key")
            .eq("org_id", str(org_id))
            .eq("operation_key", operation_key)
            .limit(1)
            .execute(),
        )
        return bool(rows_of(response))

    def save_bucket(self, bucket: AllocationBucket) -> None:
        payload: Dict[str, Any] = {
            "id": str(bucket.bucket_id),
            "org_id": str(bucket.org_id),
            "product_variant_id": str(bucket.unit_id),
            "supplier_id": str(bucket.supplier_id),
            "contract_id": str(bucket.contract_id) if bucket.contract_id else None,
            "inventory_pool_id": str(bucket.pool_id) if bucket.pool_id else None,
            "allocation_type": bucket.allocation_type.value,
            "valid_from": bucket.valid_from.isoformat(),
            "valid_to": bucket.valid_to.isoformat(),
            "overbooking_limit": bucket.overbooking_limit,
            "allow_overbooking": bucket.allow_overbooking,
            "priority": bucket.priority,
            "unit_cost": str(bucket.unit_cost),
            "currency": bucket.currency,
            "release_days": bucket.release_days,
            "released": bucket.released,
        }
        run_query(
            "save allocation bucket",
            lambda: self.client.table(_BUCKETS_TABLE).upsert(payload).execute(),
        )

    def save_day(self, org_id: UUID, day: BucketDay) -> None:
        # Only the admin-owned columns; counters keep their stored values on conflict.
        payload: Dict[str, Any] = {
            "org_id": str(org_id),
            "bucket_id": str(day.bucket_id),
            "date": day.night.isoformat(),
            "quantity": day.quantity,
            "stop_sell": day.stop_sell,
            "blackout": day.blackout,
        }
        run_query(
            "save bucket day",
            lambda: self.client.table(_DAYS_TABLE)
            .upsert(payload, on_conflict="bucket_id,date")
            .execute(),
        )

    def mark_released(self, org_id: UUID, bucket_id: UUID) -> bool:
        response = run_query(
            "mark bucket released",
            lambda: self.client.table(_BUCKETS_TABLE)
            .update({"released": True})
            .eq("org_id", str(org_id))
            .eq("id", str(bucket_id))
            .eq("released", False)
            .execute(),
        )
        return bool(rows_of(response))

    # Internals ------------------------------------------------------------

    def _rpc(self, function: str, params: Mapping[str, Any]) -> Mapping[str, Any]:
        """
        Call a ledger function and return its JSON payload.

        supabase-py raises APIError when a Postgres function returns a bare
        JSON object, for successful and failed outcomes alike, so the payload
        is recovered from the exception when it carries a `success` key.
        """

        try:
            response = run_query(function, lambda: self.client.rpc(function, dict(params)).execute())
        except RuntimeError as e:
            cause = e.__cause__
            if isinstance(cause, APIError):
                payload = _payload_from_api_error(cause)
                if payload is not None:
                    return payload
            raise

        data = getattr(response, "data", None)
        if isinstance(data, list):
            data = data[0] if data else None
        if not isinstance(data, Mapping):
            raise StorageUnavailable(function, f"unexpected response payload: {data!r}")
        return data


def _payload_from_api_error(error: APIError) -> Optional[Mapping[str, Any]]:
    if is_transient(error):
        return None
    details = getattr(error, "json", None)
    data = details() if callable(details) else details
    if isinstance(data, Mapping) and "success" in data:
        return data
    return None


__all__ = ["SupabaseLedgerStore"]
