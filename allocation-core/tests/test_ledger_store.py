"""
Tests for the in-memory ledger store (`repositories/memory.py`).

Covers contract rules:
- Every adjustment is an atomic conditional update of one row.
- Two callers racing for the last unit: exactly one wins.
- adjust_many is all-or-nothing.
- A keyed adjust_many is applied at most once.
- Rows and buckets are scoped to their organization.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest

from builders import CHECK_IN, OTHER_ORG_ID, ORG_ID, UNIT_ID, make_bucket, row, seed_bucket, stay
from domain.allocation import AllocationType, BucketAdjustment
from domain.errors import CapacityExceeded, InvalidAdjustment


def test_adjust_returns_state_after_update(ledger) -> None:
    bucket = seed_bucket(ledger, make_bucket(), quantity=10, booked=8)

    state = ledger.adjust(ORG_ID, bucket.bucket_id, CHECK_IN, 0, 2)

    assert (state.quantity, state.booked, state.held, state.available) == (10, 8, 2, 0)
    assert row(ledger, bucket).held == 2


def test_adjust_rejects_over_capacity_without_writing(ledger) -> None:
    bucket = seed_bucket(ledger, make_bucket(), quantity=10, booked=8)

    with pytest.raises(CapacityExceeded):
        ledger.adjust(ORG_ID, bucket.bucket_id, CHECK_IN, 0, 3)

    assert row(ledger, bucket).held == 0


def test_concurrent_requests_for_last_unit(ledger) -> None:
    bucket = seed_bucket(ledger, make_bucket(), quantity=10, booked=9)

    def take_one():
        try:
            ledger.adjust(ORG_ID, bucket.bucket_id, CHECK_IN, 0, 1)
            return True
        except CapacityExceeded:
            return False

    with ThreadPoolExecutor(max_workers=2) as pool:
        results = list(pool.map(lambda _: take_one(), range(2)))

    assert sorted(results) == [False, True]
    final = row(ledger, bucket)
    assert final.booked + final.held == 10


def test_many_threads_never_oversell(ledger) -> None:
    bucket = seed_bucket(ledger, make_bucket(), quantity=25)

    def take_one(_):
        try:
            ledger.adjust(ORG_ID, bucket.bucket_id, CHECK_IN, 0, 1)
            return 1
        except CapacityExceeded:
            return 0

    with ThreadPoolExecutor(max_workers=8) as pool:
        won = sum(pool.map(take_one, range(100)))

    assert won == 25
    assert row(ledger, bucket).held == 25


def test_adjust_many_is_all_or_nothing(ledger) -> None:
    bucket = seed_bucket(ledger, make_bucket(), quantity=10)
    second_night = CHECK_IN + timedelta(days=1)
    ledger.adjust(ORG_ID, bucket.bucket_id, second_night, 9, 0)

    with pytest.raises(CapacityExceeded):
        ledger.adjust_many(
            ORG_ID,
            [
                BucketAdjustment(bucket.bucket_id, CHECK_IN, delta_held=2),
                BucketAdjustment(bucket.bucket_id, second_night, delta_held=2),
            ],
        )

    assert row(ledger, bucket, CHECK_IN).held == 0
    assert row(ledger, bucket, second_night).held == 0


def test_adjust_many_applies_repeated_rows_in_order(ledger) -> None:
    bucket = seed_bucket(ledger, make_bucket(), quantity=3)

    states = ledger.adjust_many(
        ORG_ID,
        [
            BucketAdjustment(bucket.bucket_id, CHECK_IN, delta_held=3),
            BucketAdjustment(bucket.bucket_id, CHECK_IN, delta_booked=3, delta_held=-3),
        ],
    )

    assert len(states) == 1
    assert (states[0].booked, states[0].held, states[0].available) == (3, 0, 0)


def test_keyed_adjust_many_applies_once(ledger) -> None:
    bucket = seed_bucket(ledger, make_bucket(), quantity=10)
    adjustments = [BucketAdjustment(bucket.bucket_id, CHECK_IN, delta_held=3)]

    assert not ledger.operation_applied(ORG_ID, "hold:1:acquire")
    first = ledger.adjust_many(ORG_ID, adjustments, "hold:1:acquire")
    replay = ledger.adjust_many(ORG_ID, adjustments, "hold:1:acquire")

    assert len(first) == 1
    assert replay == []
    assert row(ledger, bucket).held == 3
    assert ledger.operation_applied(ORG_ID, "hold:1:acquire")
    assert not ledger.operation_applied(OTHER_ORG_ID, "hold:1:acquire")


def test_failed_keyed_call_is_not_recorded(ledger) -> None:
    bucket = seed_bucket(ledger, make_bucket(), quantity=2)
    adjustments = [BucketAdjustment(bucket.bucket_id, CHECK_IN, delta_held=3)]

    with pytest.raises(CapacityExceeded):
        ledger.adjust_many(ORG_ID, adjustments, "hold:2:acquire")

    assert not ledger.operation_applied(ORG_ID, "hold:2:acquire")


def test_missing_row_is_an_invalid_adjustment(ledger) -> None:
    bucket = seed_bucket(ledger, make_bucket(), nights=[CHECK_IN])

    with pytest.raises(InvalidAdjustment):
        ledger.adjust(ORG_ID, bucket.bucket_id, CHECK_IN + timedelta(days=1), 0, 1)


def test_rows_are_scoped_to_their_organization(ledger) -> None:
    bucket = seed_bucket(ledger, make_bucket())

    with pytest.raises(InvalidAdjustment):
        ledger.adjust(OTHER_ORG_ID, bucket.bucket_id, CHECK_IN, 0, 1)
    assert ledger.get_bucket(OTHER_ORG_ID, bucket.bucket_id) is None
    assert ledger.list_buckets(OTHER_ORG_ID, UNIT_ID, stay()) == []


def test_list_buckets_filters_by_validity_overlap(ledger) -> None:
    inside = seed_bucket(ledger, make_bucket(1))
    later = make_bucket(2, valid_from=CHECK_IN + timedelta(days=40), valid_to=CHECK_IN + timedelta(days=50))
    ledger.save_bucket(later)

    found = ledger.list_buckets(ORG_ID, UNIT_ID, stay(3))

    assert [b.bucket_id for b in found] == [inside.bucket_id]


def test_get_availability_sums_buckets(ledger) -> None:
    seed_bucket(ledger, make_bucket(1), quantity=10, booked=3)
    seed_bucket(ledger, make_bucket(2), quantity=5, held=1, stop_sell_on=[CHECK_IN])

    first, second = ledger.get_availability(ORG_ID, UNIT_ID, stay(2))

    assert first.total_quantity == 15
    assert first.available == 7
    assert second.available == 11


def test_unlimited_bucket_accepts_any_quantity(ledger) -> None:
    bucket = seed_bucket(ledger, make_bucket(allocation_type=AllocationType.UNLIMITED), quantity=None)

    state = ledger.adjust(ORG_ID, bucket.bucket_id, CHECK_IN, 0, 500)

    assert state.held == 500
    assert state.available is None


def test_mark_released_is_idempotent(ledger) -> None:
    bucket = seed_bucket(ledger, make_bucket())

    assert ledger.mark_released(ORG_ID, bucket.bucket_id) is True
    assert ledger.mark_released(ORG_ID, bucket.bucket_id) is False
    assert ledger.get_bucket(ORG_ID, bucket.bucket_id).released
