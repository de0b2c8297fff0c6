"""
Centralized mapping of allocation errors to HTTP responses.

Routes never catch domain errors themselves; the exception handler
registered in api.main looks the error up here. Add new rules here instead
of scattering checks in routes.
"""

from __future__ import annotations

import logging
from typing import List, Tuple, Type

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from domain.errors import (
    AllocationCancelled,
    AllocationError,
    CapacityExceeded,
    HoldExpired,
    HoldNotFound,
    InvalidAdjustment,
    InvalidHoldTransition,
    NoAvailability,
    NoPricingAvailable,
    StorageUnavailable,
)

logger = logging.getLogger(__name__)

STATUS_NOT_FOUND = 404
STATUS_CONFLICT = 409
STATUS_UNPROCESSABLE = 422
STATUS_INTERNAL_ERROR = 500
STATUS_SERVICE_UNAVAILABLE = 503

# (error class, status code). First match wins, so subclasses go first.
ERROR_RULES: List[Tuple[Type[AllocationError], int]] = [
    (HoldNotFound, STATUS_NOT_FOUND),
    (CapacityExceeded, STATUS_CONFLICT),
    (NoAvailability, STATUS_CONFLICT),
    (HoldExpired, STATUS_CONFLICT),
    (InvalidHoldTransition, STATUS_CONFLICT),
    (AllocationCancelled, STATUS_CONFLICT),
    (NoPricingAvailable, STATUS_UNPROCESSABLE),
    (InvalidAdjustment, STATUS_UNPROCESSABLE),
    (StorageUnavailable, STATUS_SERVICE_UNAVAILABLE),
]


def status_for(exc: AllocationError) -> int:
    for error_type, status_code in ERROR_RULES:
        if isinstance(exc, error_type):
            return status_code
    return STATUS_INTERNAL_ERROR


def allocation_error_response(exc: AllocationError) -> JSONResponse:
    status_code = status_for(exc)
    headers = {}
    if isinstance(exc, StorageUnavailable):
        headers["Retry-After"] = str(exc.retry_after_seconds)
        logger.warning("Storage unavailable: %s", exc)
    elif status_code >= STATUS_INTERNAL_ERROR:
        logger.error("Unmapped allocation error: %s", exc)

    return JSONResponse(
        status_code=status_code,
        content={"error": exc.code, "detail": str(exc), "status_code": status_code},
        headers=headers or None,
    )


async def _handle_allocation_error(request: Request, exc: AllocationError) -> JSONResponse:
    return allocation_error_response(exc)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AllocationError, _handle_allocation_error)


__all__ = ["ERROR_RULES", "allocation_error_response", "register_error_handlers", "status_for"]
