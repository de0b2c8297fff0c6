"""
Allocations API Endpoints.

Resolve a booking request to a bucket and hold the capacity.
"""

from fastapi import APIRouter, Depends

from api.converters import allocation_response
from api.dependencies import get_engine
from api.models import AllocationRequestBody, AllocationResponse, ErrorResponse, StayRequest
from domain.request import AllocationRequest
from domain.time import DateRange
from services.engine import AllocationEngine

router = APIRouter()


def to_allocation_request(body: StayRequest) -> AllocationRequest:
    return AllocationRequest(
        org_id=body.org_id,
        unit_id=body.unit_id,
        stay=DateRange(body.start, body.end),
        quantity=body.quantity,
        occupancy=body.occupancy,
        channel=body.channel,
        market=body.market,
        currency=body.currency,
        request_id=getattr(body, "request_id", None),
    )


@router.post(
    "/allocations",
    response_model=AllocationResponse,
    status_code=201,
    summary="Allocate and Hold",
    description="Pick the best bucket for the request, hold the capacity and price the stay.",
    responses={
        409: {"model": ErrorResponse, "description": "No availability"},
        422: {"model": ErrorResponse, "description": "No pricing available"},
        503: {"model": ErrorResponse, "description": "Storage unavailable, retry with backoff"},
    },
)
def create_allocation(body: AllocationRequestBody, engine: AllocationEngine = Depends(get_engine)):
    """
    Resolve and hold an allocation.

    **Process:**
    1. Finds buckets covering every night, directly or through pools
    2. Drops buckets that are released, stop-sell, blackout or full
    3. Ranks by priority (higher first), then cost, then bucket id
    4. Holds the best one; if another booking took the capacity first, tries the next
    5. Prices the stay on the winner (the hold is released if pricing fails)

    The hold expires after HOLD_TTL_MINUTES unless confirmed through
    `POST /holds/{hold_id}/confirm`. On-request buckets come back with
    `requires_confirmation: true`.

    **Failure responses:**
    - 409 `NO_AVAILABILITY`: every candidate was full
    - 422 `NO_PRICING_AVAILABLE` / `RATE_PLAN_CONFLICT`: rate plan configuration problem
    - 503 `STORAGE_UNAVAILABLE`: transient, retry the whole request
    """
    result = engine.resolver.resolve(to_allocation_request(body))
    return allocation_response(result)
