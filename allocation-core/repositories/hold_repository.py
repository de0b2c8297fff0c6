"""
Hold repository (persistence).

This module provides *only* persistence operations for the Hold domain entity.
It does not touch ledger counters; the HoldManager pairs every status change
made here with the matching ledger adjustment.

Status changes are compare-and-set: the UPDATE is filtered on the status the
caller last saw, so two workers racing on the same hold (confirm vs. sweep,
for example) cannot both win.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional
from uuid import UUID

from domain.hold import Hold, HoldLine, HoldStatus
from repositories.client import get_supabase_client
from repositories.rows import parse_date, parse_utc_datetime, rows_of, run_query, to_iso_utc

# Supabase table name for holds.
# Keep this aligned with your database schema.
_HOLDS_TABLE: str = "allocation_holds"


def _row_to_hold(row: Mapping[str, Any]) -> Hold:
    """Convert a Supabase row into a Hold."""

    lines = tuple(
        HoldLine(
            bucket_id=UUID(str(line["bucket_id"])),
            night=parse_date(line["date"]),
            quantity=int(line["quantity"]),
        )
        for line in row.get("lines") or []
    )
    return Hold(
        hold_id=UUID(str(row["id"])),
        org_id=UUID(str(row["org_id"])),
        unit_id=UUID(str(row["product_variant_id"])),
        bucket_id=UUID(str(row["bucket_id"])),
        quantity=int(row["quantity"]),
        lines=lines,
        status=HoldStatus(str(row["status"])),
        created_at=parse_utc_datetime(row["created_at"]),
        expires_at=parse_utc_datetime(row["expires_at"]),
        updated_at=parse_utc_datetime(row["updated_at"]),
        request_id=row.get("request_id"),
        requires_confirmation=bool(row.get("requires_confirmation")),
        status_reason=row.get("status_reason"),
    )


def _hold_to_payload(hold: Hold) -> Dict[str, Any]:
    return {
        "id": str(hold.hold_id),
        "org_id": str(hold.org_id),
        "product_variant_id": str(hold.unit_id),
        "bucket_id": str(hold.bucket_id),
        "quantity": hold.quantity,
        "lines": [
            {"bucket_id": str(line.bucket_id), "date": line.night.isoformat(), "quantity": line.quantity}
            for line in hold.lines
        ],
        "status": hold.status.value,
        "created_at": to_iso_utc(hold.created_at, name="created_at"),
        "expires_at": to_iso_utc(hold.expires_at, name="expires_at"),
        "updated_at": to_iso_utc(hold.updated_at, name="updated_at"),
        "request_id": hold.request_id,
        "requires_confirmation": hold.requires_confirmation,
        "status_reason": hold.status_reason,
    }


class SupabaseHoldRepository:
    def __init__(self, client: Optional[Any] = None) -> None:
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = get_supabase_client()
        return self._client

    def insert(self, hold: Hold) -> None:
        payload = _hold_to_payload(hold)
        run_query("insert hold", lambda: self.client.table(_HOLDS_TABLE).insert(payload).execute())

    def get(self, org_id: UUID, hold_id: UUID) -> Optional[Hold]:
        response = run_query(
            "get hold",
            lambda: self.client.table(_HOLDS_TABLE)
            .select("*")
            .eq("org_id", str(org_id))
            .eq("id", str(hold_id))
            .limit(1)
            .execute(),
        )
        rows = rows_of(response)
        if not rows:
            return None
        return _row_to_hold(rows[0])

    def compare_and_set(self, hold: Hold, expected: HoldStatus) -> bool:
        """
        Persist the hold's new status only if the stored status is `expected`.

        Returns:
            True if this call changed the row, False if another writer got there first
        """

        payload = {
            "status": hold.status.value,
            "updated_at": to_iso_utc(hold.updated_at, name="updated_at"),
            "status_reason": hold.status_reason,
        }
        response = run_query(
            "update hold status",
            lambda: self.client.table(_HOLDS_TABLE)
            .update(payload)
            .eq("id", str(hold.hold_id))
            .eq("org_id", str(hold.org_id))
            .eq("status", expected.value)
            .execute(),
        )
        return bool(rows_of(response))

    def list_expired(self, now: datetime, limit: int = 500) -> List[Hold]:
        response = run_query(
            "list expired holds",
            lambda: self.client.table(_HOLDS_TABLE)
            .select("*")
            .in_("status", [HoldStatus.ACTIVE.value, HoldStatus.REQUESTED.value])
            .lte("expires_at", to_iso_utc(now, name="now"))
            .order("expires_at")
            .limit(limit)
            .execute(),
        )
        return [_row_to_hold(row) for row in rows_of(response)]


__all__ = ["SupabaseHoldRepository"]
