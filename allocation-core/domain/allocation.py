"""
Domain: allocation buckets and their per-night ledger rows.

An AllocationBucket is a block of sellable capacity for one inventory unit
(product variant) owned through a supplier contract or an inventory pool. Its
counters live on one BucketDay row per night.

Invariant (per BucketDay row):
- booked + held <= quantity + effective overbooking, unless the bucket is
  `unlimited` (or has no quantity at all).
- Overbooking only relaxes `committed` buckets, and only when allowed.
- Counters never go negative.

The check only applies to adjustments that grow booked + held. Moving units
from held to booked, or giving them back, is always allowed even if an admin
has since reduced the quantity below what is already sold.

This module contains only pure domain entities/value objects: no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional
from uuid import UUID

from .errors import CapacityExceeded, InvalidAdjustment


class AllocationType(str, Enum):
    COMMITTED = "committed"
    ON_REQUEST = "on_request"
    UNLIMITED = "unlimited"


@dataclass(frozen=True, slots=True)
class AllocationBucket:
    """Definition of a bucket. Counters are on BucketDay rows, never here."""

    bucket_id: UUID
    org_id: UUID
    unit_id: UUID
    supplier_id: UUID
    allocation_type: AllocationType
    valid_from: date
    valid_to: date
    contract_id: Optional[UUID] = None
    pool_id: Optional[UUID] = None
    overbooking_limit: int = 0
    allow_overbooking: bool = False
    priority: int = 100
    unit_cost: Decimal = Decimal("0.00")
    currency: str = "EUR"
    release_days: Optional[int] = None
    released: bool = False

    def __post_init__(self) -> None:
        if self.valid_to < self.valid_from:
            raise ValueError("valid_to must not be before valid_from")
        if self.overbooking_limit < 0:
            raise ValueError("overbooking_limit must be >= 0")
        if self.release_days is not None and self.release_days < 0:
            raise ValueError("release_days must be >= 0")

    @property
    def effective_overbooking(self) -> int:
        if self.allocation_type is AllocationType.COMMITTED and self.allow_overbooking:
            return self.overbooking_limit
        return 0

    @property
    def requires_confirmation(self) -> bool:
        return self.allocation_type is AllocationType.ON_REQUEST


@dataclass(frozen=True, slots=True)
class AvailabilityState:
    """Snapshot of one ledger row after an adjustment."""

    bucket_id: UUID
    night: date
    quantity: Optional[int]
    booked: int
    held: int
    available: Optional[int]


@dataclass(frozen=True, slots=True)
class BucketDay:
    """One ledger row: the counters of a bucket for a single night."""

    bucket_id: UUID
    night: date
    quantity: Optional[int]
    booked: int = 0
    held: int = 0
    stop_sell: bool = False
    blackout: bool = False

    def __post_init__(self) -> None:
        if self.quantity is not None and self.quantity < 0:
            raise ValueError("quantity must be >= 0")
        if self.booked < 0 or self.held < 0:
            raise ValueError("booked and held must be >= 0")

    def capacity_limit(self, bucket: AllocationBucket) -> Optional[int]:
        """Upper bound for booked + held, or None when the row is unbounded."""

        if bucket.allocation_type is AllocationType.UNLIMITED or self.quantity is None:
            return None
        return self.quantity + bucket.effective_overbooking

    def available(self, bucket: AllocationBucket) -> Optional[int]:
        limit = self.capacity_limit(bucket)
        if limit is None:
            return None
        return max(0, limit - self.booked - self.held)

    @property
    def sellable(self) -> bool:
        return not (self.stop_sell or self.blackout)

    def can_accept(self, bucket: AllocationBucket, units: int) -> bool:
        limit = self.capacity_limit(bucket)
        return limit is None or self.booked + self.held + units <= limit

    def apply(self, bucket: AllocationBucket, delta_booked: int, delta_held: int) -> "BucketDay":
        """
        Return the row after the adjustment, or raise.

        Raises:
        - InvalidAdjustment if a counter would go negative
        - CapacityExceeded if the adjustment grows booked + held past the limit
        """

        new_booked = self.booked + delta_booked
        new_held = self.held + delta_held
        if new_booked < 0 or new_held < 0:
            raise InvalidAdjustment(
                f"Adjustment ({delta_booked:+d} booked, {delta_held:+d} held) would make "
                f"bucket {self.bucket_id} negative on {self.night}"
            )

        growth = delta_booked + delta_held
        limit = self.capacity_limit(bucket)
        if growth > 0 and limit is not None and new_booked + new_held > limit:
            raise CapacityExceeded(
                bucket_id=self.bucket_id,
                night=self.night,
                requested=growth,
                available=max(0, limit - self.booked - self.held),
            )

        return replace(self, booked=new_booked, held=new_held)

    def state(self, bucket: AllocationBucket) -> AvailabilityState:
        return AvailabilityState(
            bucket_id=self.bucket_id,
            night=self.night,
            quantity=self.quantity,
            booked=self.booked,
            held=self.held,
            available=self.available(bucket),
        )


@dataclass(frozen=True, slots=True)
class BucketAdjustment:
    """A counter delta for one (bucket, night) row."""

    bucket_id: UUID
    night: date
    delta_booked: int = 0
    delta_held: int = 0

    def inverse(self) -> "BucketAdjustment":
        return BucketAdjustment(
            bucket_id=self.bucket_id,
            night=self.night,
            delta_booked=-self.delta_booked,
            delta_held=-self.delta_held,
        )


@dataclass(frozen=True, slots=True)
class DailyAvailability:
    """
    Aggregate counters for one unit on one night across all its buckets.

    `total_quantity` and `available` are None when at least one bucket is
    unbounded on that night.
    """

    unit_id: UUID
    night: date
    total_quantity: Optional[int]
    booked: int
    held: int
    available: Optional[int]
    bucket_count: int


def summarize_nights(
    unit_id: UUID,
    nights: Iterable[date],
    buckets: Mapping[UUID, AllocationBucket],
    days: Iterable[BucketDay],
) -> List[DailyAvailability]:
    """
    Fold ledger rows into one DailyAvailability per night.

    Released buckets are left out. Stop-sell and blackout rows still count
    towards quantity/booked/held but contribute nothing to `available`.
    """

    by_night: Dict[date, List[BucketDay]] = {}
    for day in days:
        bucket = buckets.get(day.bucket_id)
        if bucket is None or bucket.released:
            continue
        by_night.setdefault(day.night, []).append(day)

    summary: List[DailyAvailability] = []
    for night in nights:
        rows = by_night.get(night, [])
        unbounded = False
        total_quantity = 0
        available = 0
        for row in rows:
            bucket = buckets[row.bucket_id]
            limit = row.capacity_limit(bucket)
            if limit is None:
                unbounded = True
                continue
            total_quantity += row.quantity or 0
            if row.sellable:
                available += row.available(bucket) or 0
        summary.append(
            DailyAvailability(
                unit_id=unit_id,
                night=night,
                total_quantity=None if unbounded else total_quantity,
                booked=sum(r.booked for r in rows),
                held=sum(r.held for r in rows),
                available=None if unbounded else available,
                bucket_count=len(rows),
            )
        )
    return summary


__all__ = [
    "AllocationBucket",
    "AllocationType",
    "AvailabilityState",
    "BucketAdjustment",
    "BucketDay",
    "DailyAvailability",
    "summarize_nights",
]
