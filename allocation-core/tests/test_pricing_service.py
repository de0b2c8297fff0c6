"""
Tests for `services/pricing_service.py`.

Covers contract rules:
- Each night is priced from the one preferred selling plan active for it.
- A night with no plan or no season is an error, never a zero price.
- Occupancy adjustments, taxes and fees are applied in a fixed order.
- Margin is computed against the candidate's cost.
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from builders import CHECK_IN, NOW, ORG_ID, UNIT_ID, flat_plan, make_bucket, make_plan, make_request, season
from domain.errors import NoPricingAvailable, RatePlanConflict
from domain.rate import AmountType, CalcBase, PricingModel, RateOccupancy, RateTaxFee
from services.allocation_resolver import Candidate
from services.pricing_service import calculate_margin, calculate_margin_percentage


@pytest.fixture
def pricing(engine):
    return engine.pricing


def _tax(name, value, amount_type=AmountType.PERCENTAGE, **kwargs) -> RateTaxFee:
    return RateTaxFee(name=name, amount_type=amount_type, value=Decimal(value), **kwargs)


def test_five_night_stay_across_two_seasons(pricing, catalog) -> None:
    catalog.add_rate_plan(
        make_plan(
            [
                season(CHECK_IN, CHECK_IN + timedelta(days=2), "100.00"),
                season(CHECK_IN + timedelta(days=3), CHECK_IN + timedelta(days=10), "120.00"),
            ]
        )
    )

    quote = pricing.price_stay(make_request(nights=5))

    assert [line.amount for line in quote.nights] == [Decimal("100.00")] * 3 + [Decimal("120.00")] * 2
    assert quote.subtotal == Decimal("540.00")
    assert quote.total == Decimal("540.00")
    assert quote.currency == "EUR"
    assert quote.expires_at == NOW + timedelta(minutes=15)


def test_units_multiply_every_night(pricing, catalog) -> None:
    catalog.add_rate_plan(flat_plan("80.00"))

    quote = pricing.price_stay(make_request(nights=2, quantity=3))

    assert quote.base_total == Decimal("480.00")
    assert quote.subtotal == Decimal("480.00")


def test_occupancy_rule_adjusts_nightly_rate(pricing, catalog) -> None:
    catalog.add_rate_plan(
        flat_plan(
            "100.00",
            occupancies=[
                RateOccupancy(1, 1, PricingModel.FIXED),
                RateOccupancy(2, 4, PricingModel.BASE_PLUS_PAX, per_person_amount=Decimal("20")),
            ],
        )
    )

    quote = pricing.price_stay(make_request(nights=2, occupancy=3))

    assert quote.base_total == Decimal("200.00")
    assert quote.subtotal == Decimal("240.00")
    assert all(line.adjusted_rate == Decimal("120.00") for line in quote.nights)


def test_missing_occupancy_rule_is_an_error(pricing, catalog) -> None:
    catalog.add_rate_plan(flat_plan(occupancies=[RateOccupancy(1, 2)]))

    with pytest.raises(NoPricingAvailable):
        pricing.price_stay(make_request(occupancy=3))


def test_taxes_then_fees_by_default(pricing, catalog) -> None:
    catalog.add_rate_plan(
        flat_plan(
            "100.00",
            taxes_fees=[
                _tax("VAT", "10"),
                _tax("Resort fee", "5", AmountType.FIXED, calc_base=CalcBase.PER_NIGHT),
            ],
        )
    )

    quote = pricing.price_stay(make_request(nights=2))

    assert quote.taxes_total == Decimal("20.00")
    assert quote.fees_total == Decimal("10.00")
    assert quote.total == Decimal("230.00")
    assert [t.name for t in quote.taxes] == ["VAT", "Resort fee"]


def test_fees_before_taxes_puts_fees_in_the_tax_base(pricing, catalog) -> None:
    catalog.add_rate_plan(
        flat_plan(
            "100.00",
            fees_before_taxes=True,
            taxes_fees=[
                _tax("VAT", "10"),
                _tax("Booking fee", "20", AmountType.FIXED),
            ],
        )
    )

    quote = pricing.price_stay(make_request(nights=2))

    assert quote.fees_total == Decimal("20.00")
    assert quote.taxes_total == Decimal("22.00")
    assert quote.total == Decimal("242.00")


def test_inclusive_tax_is_reported_not_added(pricing, catalog) -> None:
    catalog.add_rate_plan(flat_plan("110.00", taxes_fees=[_tax("City VAT", "10", inclusive=True)]))

    quote = pricing.price_stay(make_request())

    assert quote.total == Decimal("110.00")
    assert quote.taxes[0].inclusive
    assert quote.taxes[0].amount == Decimal("10.00")


def test_night_without_a_plan_is_an_error(pricing, catalog) -> None:
    catalog.add_rate_plan(flat_plan(valid_to=CHECK_IN + timedelta(days=1)))

    with pytest.raises(NoPricingAvailable) as exc_info:
        pricing.price_stay(make_request(nights=3))

    assert exc_info.value.night == CHECK_IN + timedelta(days=2)


def test_night_without_a_season_is_an_error(pricing, catalog) -> None:
    catalog.add_rate_plan(make_plan([season(CHECK_IN, CHECK_IN, "100.00")]))

    with pytest.raises(NoPricingAvailable):
        pricing.price_stay(make_request(nights=2))


def test_two_preferred_plans_conflict(pricing, catalog) -> None:
    catalog.add_rate_plan(flat_plan("100.00"))
    catalog.add_rate_plan(flat_plan("90.00"))

    with pytest.raises(RatePlanConflict):
        pricing.price_stay(make_request())


def test_only_preferred_selling_plans_in_scope_are_used(pricing, catalog) -> None:
    selling = flat_plan("100.00", channels=("b2b",))
    catalog.add_rate_plan(selling)
    catalog.add_rate_plan(flat_plan("70.00", preferred=False))
    catalog.add_rate_plan(flat_plan("60.00", supplier_id=uuid4()))
    catalog.add_rate_plan(flat_plan("50.00", channels=("b2c",)))

    quote = pricing.price_stay(make_request(channel="b2b"))

    assert quote.rate_plan_ids == (selling.rate_plan_id,)
    assert quote.total == Decimal("100.00")


def test_requested_currency_filters_plans(pricing, catalog) -> None:
    catalog.add_rate_plan(flat_plan("100.00", currency="EUR"))
    catalog.add_rate_plan(flat_plan("85.00", currency="GBP"))

    quote = pricing.price_stay(make_request(currency="GBP"))

    assert quote.currency == "GBP"
    assert quote.total == Decimal("85.00")


def test_candidate_cost_gives_margin(pricing, catalog) -> None:
    catalog.add_rate_plan(flat_plan("100.00"))
    bucket = make_bucket(unit_cost=Decimal("80.00"))
    candidate = Candidate(
        bucket=bucket,
        days=(),
        priority=100,
        cost_per_unit=Decimal("80.00"),
        units_required=2,
    )

    quote = pricing.price_stay(make_request(nights=2, quantity=2), candidate)

    assert quote.cost_total == Decimal("320.00")
    assert quote.margin == Decimal("80.00")
    assert quote.margin_percent == Decimal("25.00")


def test_margin_helpers() -> None:
    assert calculate_margin(Decimal("80"), Decimal("100")) == Decimal("20")
    assert calculate_margin_percentage(Decimal("80"), Decimal("100")) == Decimal("25.00")
    assert calculate_margin_percentage(Decimal("0"), Decimal("100")) == Decimal("0.00")


def test_select_rate_plan_for_other_unit_finds_nothing(pricing, catalog) -> None:
    catalog.add_rate_plan(flat_plan(unit_id=uuid4()))

    with pytest.raises(NoPricingAvailable):
        pricing.select_rate_plan(ORG_ID, UNIT_ID, CHECK_IN)
