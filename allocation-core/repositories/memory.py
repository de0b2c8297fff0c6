"""
In-memory implementations of the storage contracts.

Used by the test suite and by `ALLOCATION_STORAGE_BACKEND=memory` for local
runs. Every read-modify-write of a ledger row or hold happens under the store
lock, which gives the same row-level compare-and-swap behaviour the Postgres
functions give the Supabase backend. `adjust_many` validates every row before
writing any of them, so it is all-or-nothing. An operation key is recorded
in the same step, so replaying a keyed call changes nothing.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import date, datetime
from typing import Dict, List, Optional, Sequence, Set, Tuple
from uuid import UUID

from domain.allocation import (
    AllocationBucket,
    AvailabilityState,
    BucketAdjustment,
    BucketDay,
    DailyAvailability,
    summarize_nights,
)
from domain.errors import InvalidAdjustment
from domain.hold import Hold, HoldStatus
from domain.pool import InventoryPool
from domain.rate import RatePlan
from domain.time import DateRange


class InMemoryLedgerStore:
    """Bucket definitions and per-night counters held in dictionaries."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._buckets: Dict[UUID, AllocationBucket] = {}
        self._days: Dict[Tuple[UUID, date], BucketDay] = {}
        self._operations: Set[Tuple[UUID, str]] = set()

    # Admin / seeding -----------------------------------------------------

    def save_bucket(self, bucket: AllocationBucket) -> None:
        with self._lock:
            self._buckets[bucket.bucket_id] = bucket

    def save_day(self, org_id: UUID, day: BucketDay) -> None:
        with self._lock:
            self._require_bucket(org_id, day.bucket_id)
            self._days[(day.bucket_id, day.night)] = day

    def mark_released(self, org_id: UUID, bucket_id: UUID) -> bool:
        with self._lock:
            bucket = self._require_bucket(org_id, bucket_id)
            if bucket.released:
                return False
            self._buckets[bucket_id] = replace(bucket, released=True)
            return True

    # Reads ----------------------------------------------------------------

    def list_buckets(self, org_id: UUID, unit_id: UUID, stay: DateRange) -> List[AllocationBucket]:
        with self._lock:
            return sorted(
                (
                    b
                    for b in self._buckets.values()
                    if b.org_id == org_id
                    and b.unit_id == unit_id
                    and b.valid_from <= stay.last_night
                    and b.valid_to >= stay.start
                ),
                key=lambda b: str(b.bucket_id),
            )

    def get_bucket(self, org_id: UUID, bucket_id: UUID) -> Optional[AllocationBucket]:
        with self._lock:
            bucket = self._buckets.get(bucket_id)
            if bucket is None or bucket.org_id != org_id:
                return None
            return bucket

    def list_org_buckets(self, org_id: UUID) -> List[AllocationBucket]:
        with self._lock:
            return sorted(
                (b for b in self._buckets.values() if b.org_id == org_id),
                key=lambda b: (b.valid_from, str(b.bucket_id)),
            )

    def get_days(self, bucket_id: UUID, stay: DateRange) -> List[BucketDay]:
        with self._lock:
            return [
                self._days[(bucket_id, night)]
                for night in stay
                if (bucket_id, night) in self._days
            ]

    def get_availability(self, org_id: UUID, unit_id: UUID, stay: DateRange) -> List[DailyAvailability]:
        buckets = {b.bucket_id: b for b in self.list_buckets(org_id, unit_id, stay)}
        days: List[BucketDay] = []
        for bucket_id in buckets:
            days.extend(self.get_days(bucket_id, stay))
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
        with self._lock:
            bucket, row = self._require_row(org_id, bucket_id, night)
            updated = row.apply(bucket, delta_booked, delta_held)
            self._days[(bucket_id, night)] = updated
            return updated.state(bucket)

    def adjust_many(
        self,
        org_id: UUID,
        adjustments: Sequence[BucketAdjustment],
        operation_key: Optional[str] = None,
    ) -> List[AvailabilityState]:
        with self._lock:
            if operation_key is not None and (org_id, operation_key) in self._operations:
                return []

            staged: Dict[Tuple[UUID, date], BucketDay] = {}
            buckets: Dict[UUID, AllocationBucket] = {}
            for adjustment in adjustments:
                key = (adjustment.bucket_id, adjustment.night)
                bucket, row = self._require_row(org_id, adjustment.bucket_id, adjustment.night)
                current = staged.get(key, row)
                staged[key] = current.apply(bucket, adjustment.delta_booked, adjustment.delta_held)
                buckets[adjustment.bucket_id] = bucket

            self._days.update(staged)
            if operation_key is not None:
                self._operations.add((org_id, operation_key))
            return [row.state(buckets[row.bucket_id]) for row in staged.values()]

    def operation_applied(self, org_id: UUID, operation_key: str) -> bool:
        with self._lock:
            return (org_id, operation_key) in self._operations

    # Internals ------------------------------------------------------------

    def _require_bucket(self, org_id: UUID, bucket_id: UUID) -> AllocationBucket:
        bucket = self._buckets.get(bucket_id)
        if bucket is None or bucket.org_id != org_id:
            raise InvalidAdjustment(f"Unknown bucket {bucket_id} for organization {org_id}")
        return bucket

    def _require_row(self, org_id: UUID, bucket_id: UUID, night: date) -> Tuple[AllocationBucket, BucketDay]:
        bucket = self._require_bucket(org_id, bucket_id)
        row = self._days.get((bucket_id, night))
        if row is None:
            raise InvalidAdjustment(f"Bucket {bucket_id} has no ledger row for {night}")
        return bucket, row


_SWEEPABLE = (HoldStatus.ACTIVE, HoldStatus.REQUESTED)


class InMemoryHoldRepository:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._holds: Dict[UUID, Hold] = {}

    def insert(self, hold: Hold) -> None:
        with self._lock:
            if hold.hold_id in self._holds:
                raise ValueError(f"Hold already exists: {hold.hold_id}")
            self._holds[hold.hold_id] = hold

    def get(self, org_id: UUID, hold_id: UUID) -> Optional[Hold]:
        with self._lock:
            hold = self._holds.get(hold_id)
            if hold is None or hold.org_id != org_id:
                return None
            return hold

    def compare_and_set(self, hold: Hold, expected: HoldStatus) -> bool:
        with self._lock:
            current = self._holds.get(hold.hold_id)
            if current is None or current.status is not expected:
                return False
            self._holds[hold.hold_id] = hold
            return True

    def list_expired(self, now: datetime, limit: int = 500) -> List[Hold]:
        with self._lock:
            expired = [
                h
                for h in self._holds.values()
                if h.status in _SWEEPABLE and h.expires_at <= now
            ]
        expired.sort(key=lambda h: (h.expires_at, str(h.hold_id)))
        return expired[:limit]


class InMemoryCatalog:
    """Pools and rate plans: read-mostly reference data."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pools: Dict[UUID, InventoryPool] = {}
        self._rate_plans: Dict[UUID, RatePlan] = {}

    def add_pool(self, pool: InventoryPool) -> None:
        with self._lock:
            self._pools[pool.pool_id] = pool

    def add_rate_plan(self, plan: RatePlan) -> None:
        with self._lock:
            self._rate_plans[plan.rate_plan_id] = plan

    def list_pools_for_unit(self, org_id: UUID, unit_id: UUID) -> List[InventoryPool]:
        with self._lock:
            return [
                p
                for p in self._pools.values()
                if p.org_id == org_id and p.variant_for(unit_id) is not None
            ]

    def get_pool(self, org_id: UUID, pool_id: UUID) -> Optional[InventoryPool]:
        with self._lock:
            pool = self._pools.get(pool_id)
            if pool is None or pool.org_id != org_id:
                return None
            return pool

    def list_rate_plans(self, org_id: UUID, unit_id: UUID, stay: DateRange) -> List[RatePlan]:
        with self._lock:
            return [
                p
                for p in self._rate_plans.values()
                if p.org_id == org_id
                and p.unit_id == unit_id
                and p.valid_from <= stay.last_night
                and p.valid_to >= stay.start
            ]


__all__ = ["InMemoryCatalog", "InMemoryHoldRepository", "InMemoryLedgerStore"]
