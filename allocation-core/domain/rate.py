"""
Domain: rate plans and their pricing documents.

A rate plan is scoped to an inventory unit, a validity window, a currency and
optionally to channels and markets (empty scope = every channel / market).
Plans with `supplier_id = None` are the selling ("master") plans used to price
a stay; supplier plans describe cost and are informational here.

Invariant: for any (night, channel, market) at most one preferred selling
plan is active. The pricing service treats a violation as an error.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple
from uuid import UUID

ALL_DAYS_MASK = 127


class PricingModel(str, Enum):
    FIXED = "fixed"
    PER_PERSON = "per_person"
    BASE_PLUS_PAX = "base_plus_pax"


class AmountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class CalcBase(str, Enum):
    PER_BOOKING = "per_booking"
    PER_NIGHT = "per_night"
    PER_PERSON = "per_person"
    PER_PERSON_PER_NIGHT = "per_person_per_night"


@dataclass(frozen=True, slots=True)
class RateSeason:
    """
    Nightly rate for part of a plan's window.

    `dow_mask` bit n is weekday n (Monday = bit 0); 127 means every day.
    Stay-length limits apply to the whole stay, not the nights in the season.
    """

    season_id: UUID
    season_from: date
    season_to: date
    nightly_rate: Decimal
    dow_mask: int = ALL_DAYS_MASK
    min_stay: Optional[int] = None
    max_stay: Optional[int] = None

    def __post_init__(self) -> None:
        if self.season_to < self.season_from:
            raise ValueError("season_to must not be before season_from")
        if not 0 < self.dow_mask <= ALL_DAYS_MASK:
            raise ValueError("dow_mask must be between 1 and 127")
        if self.nightly_rate < 0:
            raise ValueError("nightly_rate must be >= 0")

    def applies_to(self, night: date, stay_nights: int) -> bool:
        if not self.season_from <= night <= self.season_to:
            return False
        if not self.dow_mask & (1 << night.weekday()):
            return False
        if self.min_stay is not None and stay_nights < self.min_stay:
            return False
        if self.max_stay is not None and stay_nights > self.max_stay:
            return False
        return True


@dataclass(frozen=True, slots=True)
class RateOccupancy:
    min_occupancy: int
    max_occupancy: int
    pricing_model: PricingModel = PricingModel.FIXED
    multiplier: Decimal = Decimal("1")
    per_person_amount: Decimal = Decimal("0")

    def __post_init__(self) -> None:
        if self.min_occupancy < 1 or self.max_occupancy < self.min_occupancy:
            raise ValueError("occupancy range must satisfy 1 <= min <= max")

    def matches(self, occupancy: int) -> bool:
        return self.min_occupancy <= occupancy <= self.max_occupancy

    def adjust(self, nightly_rate: Decimal, occupancy: int) -> Decimal:
        """Per-unit, per-night rate for `occupancy` guests."""

        if self.pricing_model is PricingModel.PER_PERSON:
            return nightly_rate * self.multiplier * occupancy
        if self.pricing_model is PricingModel.BASE_PLUS_PAX:
            extra_pax = max(0, occupancy - self.min_occupancy)
            return (nightly_rate + extra_pax * self.per_person_amount) * self.multiplier
        return nightly_rate * self.multiplier


@dataclass(frozen=True, slots=True)
class RateTaxFee:
    name: str
    amount_type: AmountType
    value: Decimal
    calc_base: CalcBase = CalcBase.PER_BOOKING
    inclusive: bool = False

    def fixed_amount(self, *, nights: int, occupancy: int, units: int) -> Decimal:
        """Amount of a fixed fee for the stay. Only meaningful for AmountType.FIXED."""

        if self.calc_base is CalcBase.PER_NIGHT:
            return self.value * nights * units
        if self.calc_base is CalcBase.PER_PERSON:
            return self.value * occupancy * units
        if self.calc_base is CalcBase.PER_PERSON_PER_NIGHT:
            return self.value * occupancy * nights * units
        return self.value


@dataclass(frozen=True, slots=True)
class RatePlan:
    rate_plan_id: UUID
    org_id: UUID
    unit_id: UUID
    name: str
    currency: str
    valid_from: date
    valid_to: date
    preferred: bool = False
    supplier_id: Optional[UUID] = None
    channels: Tuple[str, ...] = ()
    markets: Tuple[str, ...] = ()
    priority: int = 100
    fees_before_taxes: bool = False
    seasons: Tuple[RateSeason, ...] = field(default_factory=tuple)
    occupancies: Tuple[RateOccupancy, ...] = field(default_factory=tuple)
    taxes_fees: Tuple[RateTaxFee, ...] = field(default_factory=tuple)

    @property
    def is_selling_plan(self) -> bool:
        return self.supplier_id is None

    def in_scope(self, night: date, channel: Optional[str], market: Optional[str]) -> bool:
        if not self.valid_from <= night <= self.valid_to:
            return False
        if channel is not None and self.channels and channel not in self.channels:
            return False
        if market is not None and self.markets and market not in self.markets:
            return False
        return True

    def season_for(self, night: date, stay_nights: int) -> Optional[RateSeason]:
        """The latest-starting season covering `night`; ties go to the lowest season id."""

        matching = [s for s in self.seasons if s.applies_to(night, stay_nights)]
        if not matching:
            return None
        matching.sort(key=lambda s: (-s.season_from.toordinal(), str(s.season_id)))
        return matching[0]

    def occupancy_for(self, occupancy: int) -> Optional[RateOccupancy]:
        for rule in self.occupancies:
            if rule.matches(occupancy):
                return rule
        return None


__all__ = [
    "ALL_DAYS_MASK",
    "AmountType",
    "CalcBase",
    "PricingModel",
    "RateOccupancy",
    "RatePlan",
    "RateSeason",
    "RateTaxFee",
]
