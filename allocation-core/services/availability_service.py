"""
Availability service: read-side views over the ledger.

Provides:
- Daily availability of a unit (straight from the ledger store)
- The availability calendar: per night, every supplier's bucket with its
  counters, the selling price, a status and the recommended supplier
- A summary over a date range (available / sold-out / low-inventory days)

Nothing here mutates the ledger.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from domain.allocation import AllocationBucket, AllocationType, BucketDay, DailyAvailability
from domain.errors import NoPricingAvailable
from domain.time import DateRange
from repositories.base import LedgerStore
from services.pricing_service import PricingService

logger = logging.getLogger(__name__)

STATUS_AVAILABLE = "available"
STATUS_LOW_INVENTORY = "low_inventory"
STATUS_SOLD_OUT = "sold_out"
STATUS_STOP_SELL = "stop_sell"
STATUS_BLACKOUT = "blackout"


@dataclass(frozen=True, slots=True)
class SupplierAvailability:
    """One bucket's row on one calendar night."""
    bucket_id: UUID
    supplier_id: UUID
    allocation_type: AllocationType
    quantity: Optional[int]
    booked: int
    held: int
    available: Optional[int]  # None = unbounded
    cost: Decimal
    margin: Optional[Decimal]
    priority: int
    stop_sell: bool
    blackout: bool

    @property
    def can_sell(self) -> bool:
        if self.stop_sell or self.blackout:
            return False
        return self.available is None or self.available > 0


@dataclass(frozen=True, slots=True)
class CalendarDay:
    night: date
    selling_price: Optional[Decimal]
    currency: Optional[str]
    total_quantity: Optional[int]
    total_booked: int
    total_held: int
    total_available: Optional[int]
    status: str
    recommended_supplier: Optional[UUID]
    suppliers: Tuple[SupplierAvailability, ...]


@dataclass(frozen=True, slots=True)
class AvailabilitySummary:
    total_days: int
    available_days: int
    sold_out_days: int
    low_inventory_days: int
    total_available: Optional[int]
    total_booked: int


def day_status(suppliers: List[SupplierAvailability], total_available: Optional[int], threshold: int) -> str:
    """
    Calendar status of one night.

    A night where no row can sell reports stop_sell (or blackout when no row
    is stop-sell); otherwise the sellable total decides.
    """

    if suppliers and all(s.stop_sell or s.blackout for s in suppliers):
        if any(s.stop_sell for s in suppliers):
            return STATUS_STOP_SELL
        return STATUS_BLACKOUT
    if total_available is None:
        return STATUS_AVAILABLE
    if total_available == 0:
        return STATUS_SOLD_OUT
    if total_available < threshold:
        return STATUS_LOW_INVENTORY
    return STATUS_AVAILABLE


class AvailabilityService:
    def __init__(
        self,
        ledger: LedgerStore,
        pricing: Optional[PricingService] = None,
        low_inventory_threshold: int = 5,
    ) -> None:
        self._ledger = ledger
        self._pricing = pricing
        self._low_inventory_threshold = low_inventory_threshold

    def get_availability(self, org_id: UUID, unit_id: UUID, stay: DateRange) -> List[DailyAvailability]:
        return self._ledger.get_availability(org_id, unit_id, stay)

    def calendar(
        self,
        org_id: UUID,
        unit_id: UUID,
        stay: DateRange,
        channel: Optional[str] = None,
        market: Optional[str] = None,
    ) -> List[CalendarDay]:
        """One CalendarDay per night of the range, suppliers sorted by priority."""

        buckets: Dict[UUID, AllocationBucket] = {
            b.bucket_id: b for b in self._ledger.list_buckets(org_id, unit_id, stay) if not b.released
        }
        rows_by_night: Dict[date, List[BucketDay]] = {}
        for bucket_id in buckets:
            for day in self._ledger.get_days(bucket_id, stay):
                rows_by_night.setdefault(day.night, []).append(day)

        days: List[CalendarDay] = []
        for night in stay:
            selling_price, currency = self._selling_price(org_id, unit_id, night, channel, market)
            suppliers = sorted(
                (self._supplier_row(buckets[row.bucket_id], row, selling_price) for row in rows_by_night.get(night, [])),
                key=lambda s: (-s.priority, str(s.bucket_id)),
            )

            unbounded = any(s.available is None and s.can_sell for s in suppliers)
            total_available = None if unbounded else sum(s.available or 0 for s in suppliers if s.can_sell)
            bounded = [s.quantity for s in suppliers if s.quantity is not None]
            total_quantity = None if len(bounded) != len(suppliers) else sum(bounded)

            recommended = next((s.supplier_id for s in suppliers if s.can_sell), None)
            days.append(
                CalendarDay(
                    night=night,
                    selling_price=selling_price,
                    currency=currency,
                    total_quantity=total_quantity,
                    total_booked=sum(s.booked for s in suppliers),
                    total_held=sum(s.held for s in suppliers),
                    total_available=total_available,
                    status=day_status(suppliers, total_available, self._low_inventory_threshold),
                    recommended_supplier=recommended,
                    suppliers=tuple(suppliers),
                )
            )
        return days

    def summary(self, org_id: UUID, unit_id: UUID, stay: DateRange) -> AvailabilitySummary:
        days = self.calendar(org_id, unit_id, stay)
        unbounded = any(d.total_available is None for d in days)
        return AvailabilitySummary(
            total_days=len(days),
            available_days=sum(1 for d in days if d.status in (STATUS_AVAILABLE, STATUS_LOW_INVENTORY)),
            sold_out_days=sum(1 for d in days if d.status == STATUS_SOLD_OUT),
            low_inventory_days=sum(1 for d in days if d.status == STATUS_LOW_INVENTORY),
            total_available=None if unbounded else sum(d.total_available or 0 for d in days),
            total_booked=sum(d.total_booked for d in days),
        )

    def _supplier_row(
        self, bucket: AllocationBucket, row: BucketDay, selling_price: Optional[Decimal]
    ) -> SupplierAvailability:
        return SupplierAvailability(
            bucket_id=bucket.bucket_id,
            supplier_id=bucket.supplier_id,
            allocation_type=bucket.allocation_type,
            quantity=row.quantity,
            booked=row.booked,
            held=row.held,
            available=row.available(bucket),
            cost=bucket.unit_cost,
            margin=selling_price - bucket.unit_cost if selling_price is not None else None,
            priority=bucket.priority,
            stop_sell=row.stop_sell,
            blackout=row.blackout,
        )

    def _selling_price(
        self,
        org_id: UUID,
        unit_id: UUID,
        night: date,
        channel: Optional[str],
        market: Optional[str],
    ) -> Tuple[Optional[Decimal], Optional[str]]:
        """Nightly rate of the preferred selling plan, or (None, None) when unpriced."""

        if self._pricing is None:
            return None, None
        try:
            plan = self._pricing.select_rate_plan(org_id, unit_id, night, channel, market)
        except NoPricingAvailable as e:
            logger.debug("Calendar night %s unpriced: %s", night, e)
            return None, None
        season = plan.season_for(night, 1)
        if season is None:
            return None, plan.currency
        return season.nightly_rate, plan.currency


__all__ = [
    "AvailabilityService",
    "AvailabilitySummary",
    "CalendarDay",
    "STATUS_AVAILABLE",
    "STATUS_BLACKOUT",
    "STATUS_LOW_INVENTORY",
    "STATUS_SOLD_OUT",
    "STATUS_STOP_SELL",
    "SupplierAvailability",
    "day_status",
]
