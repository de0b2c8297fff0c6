"""
Tests for `services/release_service.py`.

Covers contract rules:
- Release date = valid_from - release_days.
- Warnings only list buckets with unsold capacity inside the horizon.
- release_due flips committed buckets once; released buckets stop being candidates.
- Urgency bands: critical <= 3 days, high <= 7, medium <= 14, otherwise low.
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

import pytest

from builders import CHECK_IN, ORG_ID, OTHER_ORG_ID, flat_plan, make_bucket, make_request, seed_bucket
from domain.allocation import AllocationType
from domain.errors import NoAvailability
from services.release_service import (
    ReleaseUrgency,
    release_date_of,
    release_recommendations,
    release_urgency,
)

# CHECK_IN is 2026-07-01 and the test clock reads 2026-06-01.
AS_OF = date(2026, 6, 1)


@pytest.fixture
def releases(engine):
    return engine.releases


def test_release_date_of() -> None:
    assert release_date_of(make_bucket(release_days=21)) == CHECK_IN - timedelta(days=21)
    assert release_date_of(make_bucket()) is None


def test_warning_reports_unsold_capacity_and_loss(releases, ledger) -> None:
    bucket = make_bucket(1, release_days=21, unit_cost=Decimal("50.00"), valid_to=CHECK_IN + timedelta(days=1))
    seed_bucket(ledger, bucket, quantity=5, booked=2)

    (warning,) = releases.release_warnings(ORG_ID)

    assert warning.bucket_id == bucket.bucket_id
    assert warning.release_date == date(2026, 6, 10)
    assert warning.days_until_release == 9
    assert warning.total_quantity == 10
    assert warning.booked == 4
    assert warning.available_quantity == 6
    assert warning.potential_loss == Decimal("300.00")
    assert warning.urgency is ReleaseUrgency.MEDIUM
    assert warning.recommendations == ("Monitor daily and prepare action plan", "Weekly sales team reminder")


def test_warnings_respect_horizon_and_sort_soonest_first(releases, ledger) -> None:
    later = seed_bucket(ledger, make_bucket(1, release_days=5))
    sooner = seed_bucket(ledger, make_bucket(2, release_days=25))
    far_out = CHECK_IN + timedelta(days=60)
    seed_bucket(ledger, make_bucket(3, release_days=0, valid_from=far_out, valid_to=far_out + timedelta(days=1)))

    warnings = releases.release_warnings(ORG_ID, as_of=AS_OF, horizon_days=30)

    assert [w.bucket_id for w in warnings] == [sooner.bucket_id, later.bucket_id]
    assert releases.release_warnings(ORG_ID, as_of=AS_OF, horizon_days=10) == [warnings[0]]


def test_sold_out_and_unlimited_buckets_are_not_warned(releases, ledger) -> None:
    seed_bucket(ledger, make_bucket(1, release_days=10), quantity=2, booked=2)
    seed_bucket(ledger, make_bucket(2, release_days=10, allocation_type=AllocationType.UNLIMITED), quantity=None)

    assert releases.release_warnings(ORG_ID, as_of=AS_OF) == []


def test_warnings_are_scoped_to_organization(releases, ledger) -> None:
    seed_bucket(ledger, make_bucket(1, release_days=10))

    assert releases.release_warnings(OTHER_ORG_ID, as_of=AS_OF) == []


def test_release_due_flips_committed_buckets_once(releases, ledger) -> None:
    due = seed_bucket(ledger, make_bucket(1, release_days=30))
    seed_bucket(ledger, make_bucket(2, release_days=10))
    seed_bucket(ledger, make_bucket(3, release_days=30, allocation_type=AllocationType.ON_REQUEST))

    flipped = releases.release_due(ORG_ID, as_of=AS_OF)

    assert [b.bucket_id for b in flipped] == [due.bucket_id]
    assert ledger.get_bucket(ORG_ID, due.bucket_id).released
    assert releases.release_due(ORG_ID, as_of=AS_OF) == []


def test_released_bucket_is_no_longer_allocated(engine, releases, ledger, catalog) -> None:
    catalog.add_rate_plan(flat_plan())
    seed_bucket(ledger, make_bucket(1, release_days=30))

    releases.release_due(ORG_ID, as_of=AS_OF)

    with pytest.raises(NoAvailability):
        engine.resolver.resolve(make_request())


@pytest.mark.parametrize(
    "days, expected",
    [
        (-1, ReleaseUrgency.CRITICAL),
        (3, ReleaseUrgency.CRITICAL),
        (4, ReleaseUrgency.HIGH),
        (7, ReleaseUrgency.HIGH),
        (8, ReleaseUrgency.MEDIUM),
        (14, ReleaseUrgency.MEDIUM),
        (15, ReleaseUrgency.LOW),
        (30, ReleaseUrgency.LOW),
    ],
)
def test_release_urgency_bands(days, expected) -> None:
    assert release_urgency(days) is expected


def test_critical_recommendations() -> None:
    assert release_recommendations(2, 10, 9, Decimal("100.00")) == (
        "URGENT: Contact supplier immediately",
        "Consider emergency price reduction",
        "Alert sales team for last-minute push",
    )


def test_price_cut_suggested_only_while_utilization_is_low() -> None:
    slow = release_recommendations(5, 10, 4, Decimal("100.00"))
    selling = release_recommendations(5, 10, 5, Decimal("100.00"))

    assert "Reduce prices to accelerate sales" in slow
    assert "Reduce prices to accelerate sales" not in selling
    assert selling == ("Schedule supplier call this week", "Send urgent alert to sales team")

    assert "Consider promotional pricing" in release_recommendations(10, 10, 2, Decimal("0"))
    assert "Consider promotional pricing" not in release_recommendations(10, 10, 3, Decimal("0"))


def test_empty_bucket_counts_as_unsold() -> None:
    assert "Consider promotional pricing" in release_recommendations(10, 0, 0, Decimal("0"))


def test_low_urgency_has_no_follow_ups_unless_loss_is_high() -> None:
    assert release_recommendations(20, 10, 0, Decimal("50000")) == ()
    assert release_recommendations(20, 10, 0, Decimal("50000.01")) == (
        "High financial risk - prioritize resolution",
    )
    assert release_recommendations(1, 10, 0, Decimal("60000"))[-1] == "High financial risk - prioritize resolution"


def test_warning_flags_high_financial_risk(releases, ledger) -> None:
    bucket = make_bucket(
        1, release_days=25, unit_cost=Decimal("30000.00"), valid_to=CHECK_IN + timedelta(days=1)
    )
    seed_bucket(ledger, bucket, quantity=1)

    (warning,) = releases.release_warnings(ORG_ID, as_of=AS_OF)

    assert warning.days_until_release == 5
    assert warning.urgency is ReleaseUrgency.HIGH
    assert warning.potential_loss == Decimal("60000.00")
    assert warning.recommendations[-1] == "High financial risk - prioritize resolution"
