"""
API tests through FastAPI's TestClient.

The app is built around an in-memory engine with a fixed clock and without
the background scheduler. Covers the route wiring and the error mapping:
404 unknown hold, 409 no availability / expired hold, 422 bad input or no
pricing, 503 with Retry-After when storage is down.
"""

from __future__ import annotations

from datetime import timedelta
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from builders import CHECK_IN, ORG_ID, SUPPLIER_A, UNIT_ID, flat_plan, make_bucket, row, seed_bucket
from domain.errors import StorageUnavailable


@pytest.fixture
def client(engine):
    with TestClient(create_app(engine=engine, start_scheduler=False)) as test_client:
        yield test_client


def _body(**overrides) -> dict:
    body = {
        "org_id": str(ORG_ID),
        "unit_id": str(UNIT_ID),
        "start": CHECK_IN.isoformat(),
        "end": (CHECK_IN + timedelta(days=2)).isoformat(),
        "quantity": 2,
    }
    body.update(overrides)
    return body


def _allocate(client, **overrides) -> dict:
    response = client.post("/api/v1/allocations", json=_body(**overrides))
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def stocked(ledger, catalog):
    catalog.add_rate_plan(flat_plan("100.00"))
    return seed_bucket(ledger, make_bucket(1), quantity=10)


def test_health(client) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_allocate_holds_and_prices(client, stocked, ledger) -> None:
    data = _allocate(client, request_id="booking-1")

    assert data["bucket_id"] == str(stocked.bucket_id)
    assert data["supplier_id"] == str(SUPPLIER_A)
    assert data["source"] == "direct"
    assert data["units_held"] == 2
    assert data["hold"]["status"] == "active"
    assert data["hold"]["request_id"] == "booking-1"
    assert data["quote"]["total"] == "400.00"
    assert row(ledger, stocked).held == 2


def test_confirm_and_release_routes(client, stocked, ledger) -> None:
    first = _allocate(client)["hold"]["hold_id"]
    second = _allocate(client)["hold"]["hold_id"]

    confirmed = client.post(f"/api/v1/holds/{first}/confirm", params={"org_id": str(ORG_ID)})
    released = client.post(
        f"/api/v1/holds/{second}/release", params={"org_id": str(ORG_ID), "reason": "customer_cancelled"}
    )

    assert confirmed.json()["status"] == "confirmed"
    assert released.json()["status"] == "released"
    assert released.json()["status_reason"] == "customer_cancelled"
    day = row(ledger, stocked)
    assert (day.booked, day.held) == (2, 0)


def test_get_hold(client, stocked) -> None:
    hold_id = _allocate(client)["hold"]["hold_id"]

    response = client.get(f"/api/v1/holds/{hold_id}", params={"org_id": str(ORG_ID)})

    assert response.status_code == 200
    assert response.json()["nights"] == [CHECK_IN.isoformat(), (CHECK_IN + timedelta(days=1)).isoformat()]


def test_unknown_hold_is_404(client) -> None:
    response = client.get(f"/api/v1/holds/{uuid4()}", params={"org_id": str(ORG_ID)})

    assert response.status_code == 404
    assert response.json()["error"] == "HOLD_NOT_FOUND"


def test_no_availability_is_409(client, ledger, catalog) -> None:
    catalog.add_rate_plan(flat_plan())
    seed_bucket(ledger, make_bucket(1), quantity=10, booked=9)

    response = client.post("/api/v1/allocations", json=_body())

    assert response.status_code == 409
    assert response.json()["error"] == "NO_AVAILABILITY"


def test_expired_hold_confirm_is_409(client, stocked, clock) -> None:
    hold_id = _allocate(client)["hold"]["hold_id"]
    clock.advance(minutes=30)

    response = client.post(f"/api/v1/holds/{hold_id}/confirm", params={"org_id": str(ORG_ID)})

    assert response.status_code == 409
    assert response.json()["error"] == "HOLD_EXPIRED"


def test_missing_pricing_is_422(client, ledger) -> None:
    seed_bucket(ledger, make_bucket(1), quantity=10)

    response = client.post("/api/v1/allocations", json=_body())

    assert response.status_code == 422
    assert response.json()["error"] == "NO_PRICING_AVAILABLE"
    assert row(ledger, make_bucket(1)).held == 0


def test_invalid_stay_is_rejected(client) -> None:
    response = client.post("/api/v1/allocations", json=_body(end=CHECK_IN.isoformat()))

    assert response.status_code == 422


def test_storage_outage_is_503_with_retry_after(client, engine, monkeypatch) -> None:
    def unavailable(*args, **kwargs):
        raise StorageUnavailable("list allocation buckets", cause="timeout", retry_after_seconds=5)

    monkeypatch.setattr(engine.ledger, "list_buckets", unavailable)

    response = client.post("/api/v1/allocations", json=_body())

    assert response.status_code == 503
    assert response.headers["Retry-After"] == "5"
    assert response.json()["error"] == "STORAGE_UNAVAILABLE"


def test_availability_and_calendar(client, stocked) -> None:
    _allocate(client)
    params = {
        "org_id": str(ORG_ID),
        "unit_id": str(UNIT_ID),
        "start": CHECK_IN.isoformat(),
        "end": (CHECK_IN + timedelta(days=1)).isoformat(),
    }

    daily = client.get("/api/v1/availability", params=params).json()
    calendar = client.get("/api/v1/availability/calendar", params=params).json()

    assert daily["days"][0]["available"] == 8
    assert daily["days"][0]["held"] == 2
    assert calendar["days"][0]["status"] == "available"
    assert calendar["days"][0]["selling_price"] == "100.00"
    assert calendar["summary"]["total_days"] == 1


def test_availability_rejects_empty_range(client) -> None:
    response = client.get(
        "/api/v1/availability",
        params={"org_id": str(ORG_ID), "unit_id": str(UNIT_ID), "start": CHECK_IN.isoformat(), "end": CHECK_IN.isoformat()},
    )

    assert response.status_code == 422


def test_quote_does_not_hold(client, stocked, ledger) -> None:
    response = client.post("/api/v1/pricing/quote", json=_body(quantity=1))

    assert response.status_code == 200
    assert response.json()["subtotal"] == "200.00"
    assert row(ledger, stocked).held == 0


def test_release_warnings(client, ledger) -> None:
    bucket = seed_bucket(ledger, make_bucket(2, release_days=21), quantity=4)

    response = client.get("/api/v1/releases/warnings", params={"org_id": str(ORG_ID)})

    assert response.status_code == 200
    (warning,) = response.json()
    assert warning["bucket_id"] == str(bucket.bucket_id)
    assert warning["days_until_release"] == 9
    assert warning["urgency"] == "medium"
    assert warning["recommendations"][0] == "Monitor daily and prepare action plan"
