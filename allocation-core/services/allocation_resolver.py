"""
Allocation resolver: picks the bucket a request is fulfilled from.

Handles:
- Candidate enumeration (direct buckets of the unit + buckets of its pools)
- Eligibility filtering (allocation type, flags, projected capacity)
- Deterministic ranking (priority, then cost, then bucket id)
- Hold acquisition with fall-through, bounded by the candidate count
- Pricing of the winner; the hold is released if pricing fails

One request is always fulfilled from a single bucket. Splitting a request
across several buckets is not supported.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from domain.allocation import AllocationBucket, AllocationType, BucketDay
from domain.errors import CapacityExceeded, NoAvailability, NoPricingAvailable, StorageUnavailable
from domain.hold import Hold
from domain.pool import InventoryPool, PoolVariant
from domain.request import AllocationRequest
from domain.time import DateRange
from repositories.base import LedgerStore, PoolRepository
from services.hold_manager import CancellationToken, HoldManager
from services.pricing_service import PricingService, StayQuote

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Candidate:
    """A bucket the request could be fulfilled from, directly or through a pool."""
    bucket: AllocationBucket
    days: Tuple[BucketDay, ...]
    priority: int
    cost_per_unit: Decimal
    units_required: int
    pool: Optional[InventoryPool] = None
    variant: Optional[PoolVariant] = None

    @property
    def bucket_id(self) -> UUID:
        return self.bucket.bucket_id

    @property
    def source(self) -> str:
        return "pool" if self.pool is not None else "direct"

    @property
    def requires_confirmation(self) -> bool:
        return self.bucket.requires_confirmation

    @property
    def rank_key(self) -> Tuple[int, Decimal, str]:
        # Higher priority first, then cheapest, then bucket id.
        return (-self.priority, self.cost_per_unit, str(self.bucket_id))

    def has_capacity(self) -> bool:
        return all(day.can_accept(self.bucket, self.units_required) for day in self.days)


@dataclass(frozen=True, slots=True)
class AllocationResult:
    """
    Outcome of a successful resolution.

    candidate: the winning bucket
    hold: ACTIVE hold on the winner for every night of the stay
    quote: priced stay (None when the resolver has no pricing service)
    attempts: candidates tried, winner included
    """
    request: AllocationRequest
    candidate: Candidate
    hold: Hold
    quote: Optional[StayQuote]
    attempts: int

    @property
    def requires_confirmation(self) -> bool:
        return self.hold.requires_confirmation


def _covers(valid_from, valid_to, stay: DateRange) -> bool:
    return valid_from <= stay.start and valid_to >= stay.last_night


class AllocationResolver:
    def __init__(
        self,
        ledger: LedgerStore,
        pools: PoolRepository,
        hold_manager: HoldManager,
        pricing: Optional[PricingService] = None,
    ) -> None:
        self._ledger = ledger
        self._pools = pools
        self._hold_manager = hold_manager
        self._pricing = pricing

    def find_candidates(self, request: AllocationRequest) -> List[Candidate]:
        """
        Every eligible bucket covering the whole stay, unranked.

        A bucket reachable both directly and through a pool appears once,
        with whichever route ranks better.
        """

        stay = request.stay
        found: Dict[UUID, Candidate] = {}

        def offer(candidate: Optional[Candidate]) -> None:
            if candidate is None:
                return
            current = found.get(candidate.bucket_id)
            if current is None or candidate.rank_key < current.rank_key:
                found[candidate.bucket_id] = candidate

        for bucket in self._ledger.list_buckets(request.org_id, request.unit_id, stay):
            offer(
                self._build_candidate(
                    bucket,
                    stay,
                    priority=bucket.priority,
                    cost_per_unit=bucket.unit_cost,
                    units_required=request.quantity,
                )
            )

        for pool in self._pools.list_pools_for_unit(request.org_id, request.unit_id):
            if not pool.is_active or not _covers(pool.valid_from, pool.valid_to, stay):
                continue
            variant = pool.variant_for(request.unit_id)
            if variant is None or not variant.is_active or not variant.auto_allocate:
                continue
            for bucket_id in pool.bucket_ids:
                bucket = self._ledger.get_bucket(request.org_id, bucket_id)
                if bucket is None:
                    continue
                offer(
                    self._build_candidate(
                        bucket,
                        stay,
                        priority=variant.priority,
                        cost_per_unit=(
                            variant.cost_per_unit if variant.cost_per_unit is not None else bucket.unit_cost
                        ),
                        units_required=variant.units_required(request.quantity),
                        pool=pool,
                        variant=variant,
                    )
                )

        return list(found.values())

    def rank_candidates(self, candidates: List[Candidate]) -> List[Candidate]:
        return sorted(candidates, key=lambda c: c.rank_key)

    def resolve(self, request: AllocationRequest, cancel_token: Optional[CancellationToken] = None) -> AllocationResult:
        """
        Hold capacity for the request on the best candidate that still has it.

        Candidates are tried in rank order; a CapacityExceeded (another
        booking won the race) moves on to the next one. At most one attempt
        is made per candidate.

        Raises:
            NoAvailability: no candidate, or every candidate was full
            NoPricingAvailable: the winner could not be priced (its hold is released)
            AllocationCancelled: the caller cancelled before a hold became active
            StorageUnavailable: transient storage failure; retry the whole request
        """

        candidates = self.rank_candidates(self.find_candidates(request))
        if not candidates:
            logger.info("No candidates for %s", request.to_string())
            raise NoAvailability(request.unit_id, 0)

        for attempt, candidate in enumerate(candidates, start=1):
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()
            try:
                hold = self._hold_manager.acquire(
                    request.org_id,
                    request.unit_id,
                    candidate.bucket_id,
                    request.stay,
                    candidate.units_required,
                    request_id=request.request_id,
                    requires_confirmation=candidate.requires_confirmation,
                    cancel_token=cancel_token,
                )
            except CapacityExceeded as e:
                logger.info(
                    "Candidate %d/%d (bucket %s) rejected: %s",
                    attempt,
                    len(candidates),
                    candidate.bucket_id,
                    e,
                )
                continue

            quote = self._price(request, candidate, hold)
            logger.info(
                "Allocated %s to bucket %s (%s) with hold %s",
                request.to_string(),
                candidate.bucket_id,
                candidate.source,
                hold.hold_id,
            )
            return AllocationResult(
                request=request,
                candidate=candidate,
                hold=hold,
                quote=quote,
                attempts=attempt,
            )

        raise NoAvailability(request.unit_id, len(candidates))

    def _price(self, request: AllocationRequest, candidate: Candidate, hold: Hold) -> Optional[StayQuote]:
        if self._pricing is None:
            return None
        try:
            return self._pricing.price_stay(request, candidate)
        except (NoPricingAvailable, StorageUnavailable) as e:
            logger.warning("Pricing failed for hold %s, releasing it: %s", hold.hold_id, e)
            self._hold_manager.release(request.org_id, hold.hold_id, reason="pricing_unavailable")
            raise

    def _build_candidate(
        self,
        bucket: AllocationBucket,
        stay: DateRange,
        *,
        priority: int,
        cost_per_unit: Decimal,
        units_required: int,
        pool: Optional[InventoryPool] = None,
        variant: Optional[PoolVariant] = None,
    ) -> Optional[Candidate]:
        """Build a candidate, or return None when the bucket cannot serve the stay."""

        if bucket.released or not _covers(bucket.valid_from, bucket.valid_to, stay):
            return None

        days = tuple(self._ledger.get_days(bucket.bucket_id, stay))
        if len(days) != stay.night_count:
            logger.debug("Bucket %s has no ledger row for some night of the stay", bucket.bucket_id)
            return None
        if not all(day.sellable for day in days):
            return None

        candidate = Candidate(
            bucket=bucket,
            days=days,
            priority=priority,
            cost_per_unit=cost_per_unit,
            units_required=units_required,
            pool=pool,
            variant=variant,
        )
        # Unlimited and on-request buckets are offered regardless; the ledger still
        # enforces any quantity an on-request row carries.
        if bucket.allocation_type is AllocationType.COMMITTED and not candidate.has_capacity():
            return None
        return candidate


__all__ = ["AllocationResolver", "AllocationResult", "Candidate"]
