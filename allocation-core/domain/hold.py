"""
Domain: holds (time-boxed soft reservations).

Lifecycle:

    REQUESTED -> ACTIVE -> CONFIRMED | RELEASED | EXPIRED
    REQUESTED -> RELEASED   (acquisition failed or was cancelled)
    REQUESTED -> EXPIRED    (acquisition never finished; reclaimed by the sweep)

A hold is ACTIVE only once every night it covers has been counted in the
ledger's `held` counter. Terminal holds never change again.

All timestamps must be passed explicitly and be UTC.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple
from uuid import UUID

from .allocation import BucketAdjustment
from .errors import InvalidHoldTransition
from .time import require_utc_timestamp


class HoldStatus(str, Enum):
    REQUESTED = "requested"
    ACTIVE = "active"
    CONFIRMED = "confirmed"
    RELEASED = "released"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL


_TERMINAL: FrozenSet[HoldStatus] = frozenset(
    {HoldStatus.CONFIRMED, HoldStatus.RELEASED, HoldStatus.EXPIRED}
)

_TRANSITIONS: Dict[HoldStatus, FrozenSet[HoldStatus]] = {
    HoldStatus.REQUESTED: frozenset({HoldStatus.ACTIVE, HoldStatus.RELEASED, HoldStatus.EXPIRED}),
    HoldStatus.ACTIVE: frozenset({HoldStatus.CONFIRMED, HoldStatus.RELEASED, HoldStatus.EXPIRED}),
    HoldStatus.CONFIRMED: frozenset(),
    HoldStatus.RELEASED: frozenset(),
    HoldStatus.EXPIRED: frozenset(),
}


def can_transition(current: HoldStatus, target: HoldStatus) -> bool:
    return target in _TRANSITIONS[current]


@dataclass(frozen=True, slots=True)
class HoldLine:
    """Units held on one (bucket, night) row."""

    bucket_id: UUID
    night: date
    quantity: int

    def __post_init__(self) -> None:
        if self.quantity <= 0:
            raise ValueError("HoldLine quantity must be > 0")

    def acquire(self) -> BucketAdjustment:
        return BucketAdjustment(self.bucket_id, self.night, delta_held=self.quantity)

    def release(self) -> BucketAdjustment:
        return BucketAdjustment(self.bucket_id, self.night, delta_held=-self.quantity)

    def confirm(self) -> BucketAdjustment:
        return BucketAdjustment(
            self.bucket_id, self.night, delta_booked=self.quantity, delta_held=-self.quantity
        )


@dataclass(frozen=True, slots=True)
class Hold:
    hold_id: UUID
    org_id: UUID
    unit_id: UUID
    bucket_id: UUID
    quantity: int
    lines: Tuple[HoldLine, ...]
    status: HoldStatus
    created_at: datetime
    expires_at: datetime
    updated_at: datetime
    request_id: Optional[str] = None
    requires_confirmation: bool = False
    status_reason: Optional[str] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)
        require_utc_timestamp("expires_at", self.expires_at)
        require_utc_timestamp("updated_at", self.updated_at)
        if self.expires_at <= self.created_at:
            raise ValueError("expires_at must be after created_at")
        if self.quantity <= 0:
            raise ValueError("quantity must be > 0")

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def is_expired(self, now: datetime) -> bool:
        require_utc_timestamp("now", now)
        return now >= self.expires_at

    def transition(self, target: HoldStatus, at: datetime, reason: Optional[str] = None) -> "Hold":
        """Return the hold in `target` status, or raise InvalidHoldTransition."""

        require_utc_timestamp("at", at)
        if not can_transition(self.status, target):
            raise InvalidHoldTransition(
                f"Hold {self.hold_id} cannot move from {self.status.value} to {target.value}"
            )
        return replace(self, status=target, updated_at=at, status_reason=reason)


__all__ = ["Hold", "HoldLine", "HoldStatus", "can_transition"]
