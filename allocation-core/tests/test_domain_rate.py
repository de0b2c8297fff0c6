"""
Tests for `domain/rate.py` and `domain/pool.py`.

Covers contract rules:
- Seasons apply by window, weekday mask and stay length.
- The latest-starting season wins when seasons overlap.
- Occupancy pricing models adjust the nightly rate.
- Pool variants consume ceil(quantity * weight) bucket units.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from builders import make_plan, season
from domain.pool import PoolVariant
from domain.rate import AmountType, CalcBase, PricingModel, RateOccupancy, RateTaxFee


def test_season_weekday_mask_and_stay_limits() -> None:
    weekend_only = season(date(2026, 7, 1), date(2026, 7, 31), "150.00", dow_mask=0b1100000)  # Sat, Sun

    assert weekend_only.applies_to(date(2026, 7, 4), 2)  # Saturday
    assert not weekend_only.applies_to(date(2026, 7, 6), 2)  # Monday

    min_three = season(date(2026, 7, 1), date(2026, 7, 31), "90.00", min_stay=3, max_stay=7)
    assert not min_three.applies_to(date(2026, 7, 2), 2)
    assert min_three.applies_to(date(2026, 7, 2), 3)
    assert not min_three.applies_to(date(2026, 7, 2), 8)


def test_latest_starting_season_wins() -> None:
    base = season(date(2026, 1, 1), date(2026, 12, 31), "100.00")
    peak = season(date(2026, 7, 10), date(2026, 7, 20), "180.00")
    plan = make_plan([base, peak])

    assert plan.season_for(date(2026, 7, 9), 1) == base
    assert plan.season_for(date(2026, 7, 10), 1) == peak
    assert plan.season_for(date(2027, 1, 1), 1) is None


@pytest.mark.parametrize(
    "rule, occupancy, expected",
    [
        (RateOccupancy(1, 2, PricingModel.FIXED, multiplier=Decimal("1.5")), 2, Decimal("150.0")),
        (RateOccupancy(1, 4, PricingModel.PER_PERSON), 3, Decimal("300")),
        (RateOccupancy(2, 4, PricingModel.BASE_PLUS_PAX, per_person_amount=Decimal("25")), 4, Decimal("150")),
        (RateOccupancy(2, 4, PricingModel.BASE_PLUS_PAX, per_person_amount=Decimal("25")), 2, Decimal("100")),
    ],
)
def test_occupancy_adjustment(rule: RateOccupancy, occupancy: int, expected: Decimal) -> None:
    assert rule.adjust(Decimal("100"), occupancy) == expected


def test_channel_and_market_scope() -> None:
    plan = make_plan([], channels=("b2b",), markets=("UK", "IE"))
    night = date(2026, 7, 1)

    assert plan.in_scope(night, "b2b", "UK")
    assert plan.in_scope(night, None, None)
    assert not plan.in_scope(night, "b2c", "UK")
    assert not plan.in_scope(night, "b2b", "FR")

    unscoped = make_plan([])
    assert unscoped.in_scope(night, "anything", "anywhere")


def test_fixed_fee_calc_bases() -> None:
    def fee(base: CalcBase) -> RateTaxFee:
        return RateTaxFee(name="fee", amount_type=AmountType.FIXED, value=Decimal("2"), calc_base=base)

    assert fee(CalcBase.PER_BOOKING).fixed_amount(nights=3, occupancy=2, units=2) == Decimal("2")
    assert fee(CalcBase.PER_NIGHT).fixed_amount(nights=3, occupancy=2, units=2) == Decimal("12")
    assert fee(CalcBase.PER_PERSON).fixed_amount(nights=3, occupancy=2, units=2) == Decimal("8")
    assert fee(CalcBase.PER_PERSON_PER_NIGHT).fixed_amount(nights=3, occupancy=2, units=2) == Decimal("24")


def test_pool_variant_weighted_units() -> None:
    variant = PoolVariant(pool_variant_id=uuid4(), pool_id=uuid4(), unit_id=uuid4(), capacity_weight=Decimal("1.5"))

    assert variant.units_required(1) == 2
    assert variant.units_required(2) == 3

    with pytest.raises(ValueError):
        PoolVariant(pool_variant_id=uuid4(), pool_id=uuid4(), unit_id=uuid4(), capacity_weight=Decimal("0"))
