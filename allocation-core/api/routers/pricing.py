"""
Pricing API Endpoints.

Endpoints for pricing a stay without holding capacity.
"""

from fastapi import APIRouter, Depends

from api.converters import quote_response
from api.dependencies import get_engine
from api.models import ErrorResponse, QuoteRequest, QuoteResponse
from api.routers.allocations import to_allocation_request
from services.engine import AllocationEngine

router = APIRouter()


@router.post(
    "/pricing/quote",
    response_model=QuoteResponse,
    summary="Calculate Stay Quote",
    description="Price a stay from the preferred selling rate plan. Quote is valid for QUOTE_VALIDITY_MINUTES.",
    responses={422: {"model": ErrorResponse, "description": "No pricing available"}},
)
def calculate_quote(body: QuoteRequest, engine: AllocationEngine = Depends(get_engine)):
    """
    Calculate a quote for the stay.

    **How it works:**
    1. Picks the one preferred selling rate plan for each night, channel and market
    2. Takes the nightly rate of the season covering the night
    3. Adjusts it for occupancy and multiplies by the quantity
    4. Adds percentage taxes, then fixed fees (or the reverse if the plan says so)

    **Example request:**
    ```json
    {
      "org_id": "123e4567-e89b-12d3-a456-426614174010",
      "unit_id": "123e4567-e89b-12d3-a456-426614174000",
      "start": "2026-07-01",
      "end": "2026-07-06",
      "quantity": 1,
      "occupancy": 2
    }
    ```
    """
    quote = engine.pricing.price_stay(to_allocation_request(body))
    return quote_response(quote)
