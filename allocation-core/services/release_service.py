"""
Release schedule for contracted allocations.

A bucket with `release_days` must be sold by `valid_from - release_days`;
after that date unsold capacity goes back to the supplier.

- release_warnings(): buckets with unsold capacity whose release date is
  between yesterday and the horizon, soonest first, with the cost at risk,
  an urgency level and suggested follow-ups
- release_due(): marks committed buckets past their release date as
  released so the resolver stops offering them
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Callable, List, Optional, Tuple
from uuid import UUID

from domain.allocation import AllocationBucket, AllocationType
from domain.time import DateRange, utc_now
from repositories.base import LedgerStore
from services.pricing_service import quantize_money

logger = logging.getLogger(__name__)

DEFAULT_HORIZON_DAYS = 30
HIGH_LOSS_THRESHOLD = Decimal("50000")


class ReleaseUrgency(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True, slots=True)
class ReleaseWarning:
    bucket_id: UUID
    unit_id: UUID
    supplier_id: UUID
    contract_id: Optional[UUID]
    allocation_type: AllocationType
    valid_from: date
    valid_to: date
    release_days: int
    release_date: date
    days_until_release: int
    total_quantity: int
    booked: int
    available_quantity: int
    unit_cost: Decimal
    currency: str
    potential_loss: Decimal
    urgency: ReleaseUrgency
    recommendations: Tuple[str, ...]


def release_date_of(bucket: AllocationBucket) -> Optional[date]:
    if bucket.release_days is None:
        return None
    return bucket.valid_from - timedelta(days=bucket.release_days)


def release_urgency(days_until_release: int) -> ReleaseUrgency:
    if days_until_release <= 3:
        return ReleaseUrgency.CRITICAL
    if days_until_release <= 7:
        return ReleaseUrgency.HIGH
    if days_until_release <= 14:
        return ReleaseUrgency.MEDIUM
    return ReleaseUrgency.LOW


def release_recommendations(
    days_until_release: int,
    total_quantity: int,
    booked: int,
    potential_loss: Decimal,
) -> Tuple[str, ...]:
    """
    Suggested follow-ups for a warning.

    Utilization is booked / total quantity over the bucket's window; the
    price-cut suggestions only appear while it is low.
    """

    utilization = booked * 100 / total_quantity if total_quantity > 0 else 0
    recommendations: List[str] = []

    if days_until_release <= 3:
        recommendations.append("URGENT: Contact supplier immediately")
        recommendations.append("Consider emergency price reduction")
        recommendations.append("Alert sales team for last-minute push")
    elif days_until_release <= 7:
        recommendations.append("Schedule supplier call this week")
        if utilization < 50:
            recommendations.append("Reduce prices to accelerate sales")
        recommendations.append("Send urgent alert to sales team")
    elif days_until_release <= 14:
        recommendations.append("Monitor daily and prepare action plan")
        if utilization < 30:
            recommendations.append("Consider promotional pricing")
        recommendations.append("Weekly sales team reminder")

    if potential_loss > HIGH_LOSS_THRESHOLD:
        recommendations.append("High financial risk - prioritize resolution")

    return tuple(recommendations)


class ReleaseService:
    def __init__(self, ledger: LedgerStore, clock: Callable[[], datetime] = utc_now) -> None:
        self._ledger = ledger
        self._clock = clock

    def release_warnings(
        self,
        org_id: UUID,
        as_of: Optional[date] = None,
        horizon_days: int = DEFAULT_HORIZON_DAYS,
    ) -> List[ReleaseWarning]:
        as_of = as_of or self._clock().date()
        warnings: List[ReleaseWarning] = []

        for bucket in self._ledger.list_org_buckets(org_id):
            release_date = release_date_of(bucket)
            if release_date is None or bucket.released or bucket.allocation_type is AllocationType.UNLIMITED:
                continue
            days_until = (release_date - as_of).days
            if days_until < -1 or days_until > horizon_days:
                continue

            warning = self._warning_for(bucket, release_date, days_until)
            if warning.available_quantity > 0:
                warnings.append(warning)

        warnings.sort(key=lambda w: (w.days_until_release, str(w.bucket_id)))
        return warnings

    def release_due(self, org_id: UUID, as_of: Optional[date] = None) -> List[AllocationBucket]:
        """Flag committed buckets whose release date has been reached. Returns the buckets flipped."""

        as_of = as_of or self._clock().date()
        flipped: List[AllocationBucket] = []
        for bucket in self._ledger.list_org_buckets(org_id):
            release_date = release_date_of(bucket)
            if (
                release_date is None
                or bucket.released
                or bucket.allocation_type is not AllocationType.COMMITTED
                or release_date > as_of
            ):
                continue
            if self._ledger.mark_released(org_id, bucket.bucket_id):
                logger.info(
                    "Released bucket %s (supplier %s): release date %s reached",
                    bucket.bucket_id,
                    bucket.supplier_id,
                    release_date.isoformat(),
                )
                flipped.append(bucket)
        return flipped

    def _warning_for(self, bucket: AllocationBucket, release_date: date, days_until: int) -> ReleaseWarning:
        window = DateRange(bucket.valid_from, bucket.valid_to + timedelta(days=1))
        total_quantity = 0
        booked = 0
        available = 0
        for day in self._ledger.get_days(bucket.bucket_id, window):
            total_quantity += day.quantity or 0
            booked += day.booked
            available += day.available(bucket) or 0

        potential_loss = quantize_money(bucket.unit_cost * available)
        return ReleaseWarning(
            bucket_id=bucket.bucket_id,
            unit_id=bucket.unit_id,
            supplier_id=bucket.supplier_id,
            contract_id=bucket.contract_id,
            allocation_type=bucket.allocation_type,
            valid_from=bucket.valid_from,
            valid_to=bucket.valid_to,
            release_days=int(bucket.release_days or 0),
            release_date=release_date,
            days_until_release=days_until,
            total_quantity=total_quantity,
            booked=booked,
            available_quantity=available,
            unit_cost=bucket.unit_cost,
            currency=bucket.currency,
            potential_loss=potential_loss,
            urgency=release_urgency(days_until),
            recommendations=release_recommendations(days_until, total_quantity, booked, potential_loss),
        )


__all__ = [
    "DEFAULT_HORIZON_DAYS",
    "HIGH_LOSS_THRESHOLD",
    "ReleaseService",
    "ReleaseUrgency",
    "ReleaseWarning",
    "release_date_of",
    "release_recommendations",
    "release_urgency",
]
