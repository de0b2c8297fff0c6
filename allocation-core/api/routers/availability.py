"""
Availability API Endpoints.

Read-only views of the ledger: daily counts and the availability calendar.
"""

from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query

from api.converters import calendar_day_response, daily_availability_response, summary_response
from api.dependencies import get_engine
from api.models import AvailabilityResponse, CalendarResponse
from domain.time import DateRange
from services.engine import AllocationEngine

router = APIRouter()


def stay_from_query(start: date, end: date) -> DateRange:
    if end <= start:
        raise HTTPException(status_code=422, detail="end must be after start")
    return DateRange(start, end)


@router.get(
    "/availability",
    response_model=AvailabilityResponse,
    summary="Daily Availability",
    description="Booked, held and available counts of a unit for every night of the range."
)
def get_availability(
    org_id: UUID = Query(..., description="Organization ID"),
    unit_id: UUID = Query(..., description="Inventory unit ID"),
    start: date = Query(..., description="First night"),
    end: date = Query(..., description="Check-out date (not a night)"),
    engine: AllocationEngine = Depends(get_engine),
):
    """
    Aggregate availability across every bucket of the unit.

    Released buckets are excluded. Stop-sell and blackout nights count
    towards booked/held but contribute nothing to `available`. A `null`
    quantity or availability means at least one bucket is unlimited.
    """
    stay = stay_from_query(start, end)
    days = engine.availability.get_availability(org_id, unit_id, stay)
    return AvailabilityResponse(
        unit_id=unit_id,
        start=stay.start,
        end=stay.end,
        days=[daily_availability_response(d) for d in days],
    )


@router.get(
    "/availability/calendar",
    response_model=CalendarResponse,
    summary="Availability Calendar",
    description="Per-night supplier breakdown, selling price, status and recommended supplier."
)
def get_calendar(
    org_id: UUID = Query(..., description="Organization ID"),
    unit_id: UUID = Query(..., description="Inventory unit ID"),
    start: date = Query(..., description="First night"),
    end: date = Query(..., description="Check-out date (not a night)"),
    channel: Optional[str] = Query(None, description="Sales channel used to pick the selling rate"),
    market: Optional[str] = Query(None, description="Market used to pick the selling rate"),
    engine: AllocationEngine = Depends(get_engine),
):
    """
    Calendar view of a unit.

    **Status per night** (first match wins):
    - `stop_sell` / `blackout`: no supplier row can sell
    - `sold_out`: nothing left
    - `low_inventory`: fewer units left than LOW_INVENTORY_THRESHOLD
    - `available`
    """
    stay = stay_from_query(start, end)
    days = engine.availability.calendar(org_id, unit_id, stay, channel=channel, market=market)
    summary = engine.availability.summary(org_id, unit_id, stay)
    return CalendarResponse(
        unit_id=unit_id,
        start=stay.start,
        end=stay.end,
        days=[calendar_day_response(d) for d in days],
        summary=summary_response(summary),
    )
