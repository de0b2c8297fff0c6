"""
Storage contracts for the allocation core.

Two implementations exist: Supabase-backed repositories (production) and the
in-memory store in `repositories.memory` (tests, local runs).

Every LedgerStore mutation of a (bucket, night) row must be a single atomic
conditional update at the storage layer. Application code never locks rows
itself; two callers racing for the last unit are serialized by the store.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Protocol, Sequence
from uuid import UUID

from domain.allocation import (
    AllocationBucket,
    AvailabilityState,
    BucketAdjustment,
    BucketDay,
    DailyAvailability,
)
from domain.hold import Hold, HoldStatus
from domain.pool import InventoryPool
from domain.rate import RatePlan
from domain.time import DateRange


class LedgerStore(Protocol):
    def list_buckets(self, org_id: UUID, unit_id: UUID, stay: DateRange) -> List[AllocationBucket]:
        """Buckets of a unit whose validity window overlaps the stay."""

    def get_bucket(self, org_id: UUID, bucket_id: UUID) -> Optional[AllocationBucket]:
        ...

    def list_org_buckets(self, org_id: UUID) -> List[AllocationBucket]:
        ...

    def get_days(self, bucket_id: UUID, stay: DateRange) -> List[BucketDay]:
        """Ledger rows of a bucket for the nights of the stay (missing nights are omitted)."""

    def get_availability(self, org_id: UUID, unit_id: UUID, stay: DateRange) -> List[DailyAvailability]:
        ...

    def adjust(
        self,
        org_id: UUID,
        bucket_id: UUID,
        night,
        delta_booked: int,
        delta_held: int,
    ) -> AvailabilityState:
        """Atomic conditional update of one row. Raises CapacityExceeded / InvalidAdjustment."""

    def adjust_many(
        self,
        org_id: UUID,
        adjustments: Sequence[BucketAdjustment],
        operation_key: Optional[str] = None,
    ) -> List[AvailabilityState]:
        """
        All-or-nothing update of several rows.

        With an `operation_key` the key is recorded together with the rows, and
        a call whose key is already recorded changes nothing and returns [].
        """

    def operation_applied(self, org_id: UUID, operation_key: str) -> bool:
        """Whether an `adjust_many` call with this key has been applied."""

    def save_bucket(self, bucket: AllocationBucket) -> None:
        ...

    def save_day(self, org_id: UUID, day: BucketDay) -> None:
        ...

    def mark_released(self, org_id: UUID, bucket_id: UUID) -> bool:
        """Set the released flag. Returns False if it was already set."""


class HoldRepository(Protocol):
    def insert(self, hold: Hold) -> None:
        ...

    def get(self, org_id: UUID, hold_id: UUID) -> Optional[Hold]:
        ...

    def compare_and_set(self, hold: Hold, expected: HoldStatus) -> bool:
        """Persist `hold` only if the stored status is still `expected`."""

    def list_expired(self, now: datetime, limit: int = 500) -> List[Hold]:
        """ACTIVE and REQUESTED holds whose expiry is at or before `now`, across organizations."""


class PoolRepository(Protocol):
    def list_pools_for_unit(self, org_id: UUID, unit_id: UUID) -> List[InventoryPool]:
        ...

    def get_pool(self, org_id: UUID, pool_id: UUID) -> Optional[InventoryPool]:
        ...


class RatePlanRepository(Protocol):
    def list_rate_plans(self, org_id: UUID, unit_id: UUID, stay: DateRange) -> List[RatePlan]:
        """Plans of the unit whose validity window overlaps the stay, with their documents."""


__all__ = ["HoldRepository", "LedgerStore", "PoolRepository", "RatePlanRepository"]
