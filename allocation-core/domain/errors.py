"""
Domain: allocation error taxonomy.

Only StorageUnavailable is a fault worth retrying (with backoff). Every other
error here is a decision outcome: retrying the same request blindly will give
the same answer.

- CapacityExceeded: the bucket invariant would be violated. Recoverable; the
  resolver moves on to the next candidate.
- PartialCapacityFailure: a multi-night hold failed on a later night and kept
  none of the earlier ones. Always handled internally; it is a
  CapacityExceeded to callers.
- NoAvailability: every candidate was exhausted. Terminal for the request.
- NoPricingAvailable: no preferred rate plan covers some night. Terminal,
  configuration problem.
"""

from __future__ import annotations

from datetime import date
from typing import Optional
from uuid import UUID


class AllocationError(Exception):
    """Base class for every error raised by the allocation core."""

    code: str = "ALLOCATION_ERROR"


class CapacityExceeded(AllocationError):
    code = "CAPACITY_EXCEEDED"

    def __init__(
        self,
        bucket_id: UUID,
        night: Optional[date],
        requested: int,
        available: Optional[int],
        message: Optional[str] = None,
    ):
        self.bucket_id = bucket_id
        self.night = night
        self.requested = requested
        self.available = available
        super().__init__(
            message
            or f"Capacity exceeded for bucket {bucket_id} on {night}. "
            f"Requested: {requested}, Available: {available}"
        )


class PartialCapacityFailure(CapacityExceeded):
    """A multi-night hold failed on a later night; none of its earlier nights were kept."""

    code = "PARTIAL_CAPACITY_FAILURE"

    def __init__(self, bucket_id: UUID, night: Optional[date], requested: int, available: Optional[int], rolled_back: int):
        self.rolled_back = rolled_back
        super().__init__(
            bucket_id,
            night,
            requested,
            available,
            message=(
                f"Hold on bucket {bucket_id} failed on {night}; "
                f"its {rolled_back} earlier night(s) were not kept"
            ),
        )


class NoAvailability(AllocationError):
    code = "NO_AVAILABILITY"

    def __init__(self, unit_id: UUID, candidates_tried: int, message: Optional[str] = None):
        self.unit_id = unit_id
        self.candidates_tried = candidates_tried
        super().__init__(
            message or f"No availability for unit {unit_id} ({candidates_tried} candidate(s) tried)"
        )


class NoPricingAvailable(AllocationError):
    code = "NO_PRICING_AVAILABLE"

    def __init__(self, unit_id: UUID, night: Optional[date], reason: str):
        self.unit_id = unit_id
        self.night = night
        self.reason = reason
        super().__init__(f"No pricing available for unit {unit_id} on {night}: {reason}")


class RatePlanConflict(NoPricingAvailable):
    """More than one preferred plan is active for the same night, channel and market."""

    code = "RATE_PLAN_CONFLICT"


class StorageUnavailable(AllocationError):
    code = "STORAGE_UNAVAILABLE"

    def __init__(self, operation: str, cause: object = None, retry_after_seconds: int = 1):
        self.operation = operation
        self.cause = cause
        self.retry_after_seconds = retry_after_seconds
        super().__init__(f"Storage unavailable during {operation}: {cause}")


class InvalidAdjustment(AllocationError):
    """An adjustment would drive a ledger counter below zero or hit an unknown row."""

    code = "INVALID_ADJUSTMENT"


class HoldNotFound(AllocationError):
    code = "HOLD_NOT_FOUND"

    def __init__(self, hold_id: UUID):
        self.hold_id = hold_id
        super().__init__(f"Hold not found: {hold_id}")


class InvalidHoldTransition(AllocationError):
    code = "INVALID_HOLD_TRANSITION"


class HoldExpired(AllocationError):
    code = "HOLD_EXPIRED"

    def __init__(self, hold_id: UUID):
        self.hold_id = hold_id
        super().__init__(f"Hold {hold_id} expired before it was confirmed")


class AllocationCancelled(AllocationError):
    code = "ALLOCATION_CANCELLED"


__all__ = [
    "AllocationCancelled",
    "AllocationError",
    "CapacityExceeded",
    "HoldExpired",
    "HoldNotFound",
    "InvalidAdjustment",
    "InvalidHoldTransition",
    "NoAvailability",
    "NoPricingAvailable",
    "PartialCapacityFailure",
    "RatePlanConflict",
    "StorageUnavailable",
]
