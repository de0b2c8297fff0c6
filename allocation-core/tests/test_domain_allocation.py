"""
Tests for `domain/allocation.py` and `domain/time.py`.

Covers contract rules:
- booked + held never exceeds quantity (+ overbooking for committed buckets that allow it).
- Unlimited buckets and rows without a quantity are unbounded.
- Counters never go negative.
- Shrinking adjustments are always allowed.
- DateRange is check-in inclusive, check-out exclusive.
"""

from __future__ import annotations

from dataclasses import FrozenInstanceError
from datetime import date, timedelta

import pytest

from builders import CHECK_IN, UNIT_ID, make_bucket
from domain.allocation import AllocationType, BucketAdjustment, BucketDay, summarize_nights
from domain.errors import CapacityExceeded, InvalidAdjustment
from domain.time import DateRange


def _day(bucket, quantity=10, booked=0, held=0, **kwargs) -> BucketDay:
    return BucketDay(bucket_id=bucket.bucket_id, night=CHECK_IN, quantity=quantity, booked=booked, held=held, **kwargs)


def test_date_range_is_half_open() -> None:
    stay = DateRange(date(2026, 7, 1), date(2026, 7, 4))

    assert stay.night_count == 3
    assert stay.nights == [date(2026, 7, 1), date(2026, 7, 2), date(2026, 7, 3)]
    assert stay.last_night == date(2026, 7, 3)
    assert stay.contains(date(2026, 7, 1))
    assert not stay.contains(date(2026, 7, 4))


def test_date_range_requires_at_least_one_night() -> None:
    with pytest.raises(ValueError):
        DateRange(date(2026, 7, 1), date(2026, 7, 1))

    assert DateRange.single(date(2026, 7, 1)).night_count == 1


def test_apply_rejects_growth_past_quantity() -> None:
    bucket = make_bucket()
    day = _day(bucket, booked=8)

    with pytest.raises(CapacityExceeded) as exc_info:
        day.apply(bucket, 0, 3)

    assert exc_info.value.requested == 3
    assert exc_info.value.available == 2
    assert day.apply(bucket, 0, 2).held == 2


def test_overbooking_only_relaxes_committed_buckets_that_allow_it() -> None:
    committed = make_bucket(overbooking_limit=2, allow_overbooking=True)
    not_allowed = make_bucket(overbooking_limit=2, allow_overbooking=False)
    on_request = make_bucket(allocation_type=AllocationType.ON_REQUEST, overbooking_limit=2, allow_overbooking=True)

    assert _day(committed, booked=10).apply(committed, 0, 2).held == 2
    with pytest.raises(CapacityExceeded):
        _day(committed, booked=10).apply(committed, 0, 3)
    with pytest.raises(CapacityExceeded):
        _day(not_allowed, booked=10).apply(not_allowed, 0, 1)
    with pytest.raises(CapacityExceeded):
        _day(on_request, booked=10).apply(on_request, 0, 1)


def test_unlimited_and_quantityless_rows_are_unbounded() -> None:
    unlimited = make_bucket(allocation_type=AllocationType.UNLIMITED)
    committed = make_bucket()

    assert _day(unlimited, quantity=1, booked=50).apply(unlimited, 0, 100).held == 100
    assert _day(committed, quantity=None).apply(committed, 5, 0).booked == 5
    assert _day(unlimited).available(unlimited) is None


def test_counters_never_go_negative() -> None:
    bucket = make_bucket()

    with pytest.raises(InvalidAdjustment):
        _day(bucket, held=1).apply(bucket, 0, -2)
    with pytest.raises(InvalidAdjustment):
        _day(bucket, booked=0, held=3).apply(bucket, -1, 1)


def test_moving_held_to_booked_is_allowed_after_quantity_was_cut() -> None:
    """Confirmation does not grow booked + held, so a reduced quantity cannot block it."""

    bucket = make_bucket()
    day = _day(bucket, quantity=2, booked=1, held=3)

    confirmed = day.apply(bucket, 3, -3)

    assert (confirmed.booked, confirmed.held) == (4, 0)


def test_adjustment_inverse_round_trips() -> None:
    adjustment = BucketAdjustment(bucket_id=make_bucket().bucket_id, night=CHECK_IN, delta_booked=2, delta_held=-2)

    assert adjustment.inverse().inverse() == adjustment
    assert adjustment.inverse().delta_booked == -2


def test_bucket_day_is_immutable() -> None:
    day = _day(make_bucket())

    with pytest.raises(FrozenInstanceError):
        day.booked = 3  # type: ignore[misc]


def test_summarize_nights_skips_released_and_unsellable_rows() -> None:
    open_bucket = make_bucket(1)
    closed_bucket = make_bucket(2)
    released_bucket = make_bucket(3, released=True)
    buckets = {b.bucket_id: b for b in (open_bucket, closed_bucket, released_bucket)}
    days = [
        _day(open_bucket, quantity=10, booked=4, held=1),
        _day(closed_bucket, quantity=5, booked=1, stop_sell=True),
        _day(released_bucket, quantity=7),
    ]

    summary = summarize_nights(UNIT_ID, [CHECK_IN, CHECK_IN + timedelta(days=1)], buckets, days)

    first, second = summary
    assert first.total_quantity == 15
    assert first.booked == 5
    assert first.held == 1
    assert first.available == 5
    assert first.bucket_count == 2
    assert second.bucket_count == 0
    assert second.available == 0


def test_summarize_nights_reports_unbounded_as_none() -> None:
    unlimited = make_bucket(allocation_type=AllocationType.UNLIMITED)

    summary = summarize_nights(UNIT_ID, [CHECK_IN], {unlimited.bucket_id: unlimited}, [_day(unlimited)])

    assert summary[0].available is None
    assert summary[0].total_quantity is None
