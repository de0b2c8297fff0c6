"""
Holds API Endpoints.

Inspect, confirm or release a hold created by `POST /allocations`.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from api.converters import hold_response
from api.dependencies import get_engine
from api.models import ErrorResponse, HoldResponse
from services.engine import AllocationEngine

router = APIRouter()

_ERRORS = {
    404: {"model": ErrorResponse, "description": "Hold not found"},
    409: {"model": ErrorResponse, "description": "Hold expired or not in a state that allows this"},
    503: {"model": ErrorResponse, "description": "Storage unavailable, retry with backoff"},
}


@router.get("/holds/{hold_id}", response_model=HoldResponse, summary="Get Hold", responses=_ERRORS)
def get_hold(
    hold_id: UUID,
    org_id: UUID = Query(..., description="Organization ID"),
    engine: AllocationEngine = Depends(get_engine),
):
    return hold_response(engine.hold_manager.get(org_id, hold_id))


@router.post(
    "/holds/{hold_id}/confirm",
    response_model=HoldResponse,
    summary="Confirm Hold",
    description="Turn the held units into booked units. Confirming twice is a no-op.",
    responses=_ERRORS,
)
def confirm_hold(
    hold_id: UUID,
    org_id: UUID = Query(..., description="Organization ID"),
    engine: AllocationEngine = Depends(get_engine),
):
    """
    Confirm a hold.

    A hold past its expiry is released and the call fails with 409
    `HOLD_EXPIRED`; the booking flow has to allocate again.
    """
    return hold_response(engine.hold_manager.confirm(org_id, hold_id))


@router.post(
    "/holds/{hold_id}/release",
    response_model=HoldResponse,
    summary="Release Hold",
    description="Give the held units back. Releasing a finished hold is a no-op.",
    responses=_ERRORS,
)
def release_hold(
    hold_id: UUID,
    org_id: UUID = Query(..., description="Organization ID"),
    reason: Optional[str] = Query(None, max_length=200, description="Stored on the hold"),
    engine: AllocationEngine = Depends(get_engine),
):
    hold = engine.hold_manager.release(org_id, hold_id, reason=reason or "released")
    return hold_response(hold)
