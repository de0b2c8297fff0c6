"""
Releases API Endpoints.

Contracted allocations approaching their release date.
"""

from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from api.converters import release_warning_response
from api.dependencies import get_engine
from api.models import ReleaseWarningResponse
from services.engine import AllocationEngine
from services.release_service import DEFAULT_HORIZON_DAYS

router = APIRouter()


@router.get(
    "/releases/warnings",
    response_model=List[ReleaseWarningResponse],
    summary="Release Warnings",
    description="Buckets with unsold capacity whose release date falls between yesterday and the horizon."
)
def list_release_warnings(
    org_id: UUID = Query(..., description="Organization ID"),
    as_of: Optional[date] = Query(None, description="Reference date (default: today, UTC)"),
    horizon_days: int = Query(DEFAULT_HORIZON_DAYS, ge=0, le=365),
    engine: AllocationEngine = Depends(get_engine),
):
    """
    Release date = `valid_from - release_days`. Sorted soonest first;
    `potential_loss` is the unsold quantity times the unit cost. `urgency` is
    critical within 3 days, high within 7, medium within 14, else low.
    """
    warnings = engine.releases.release_warnings(org_id, as_of=as_of, horizon_days=horizon_days)
    return [release_warning_response(w) for w in warnings]
