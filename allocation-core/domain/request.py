"""
Domain: the allocation request a booking flow sends to the resolver.

Organization identity is always explicit; nothing in the core reads it from
ambient state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from .time import DateRange


@dataclass(frozen=True, slots=True)
class AllocationRequest:
    org_id: UUID
    unit_id: UUID
    stay: DateRange
    quantity: int
    occupancy: int = 1
    channel: Optional[str] = None
    market: Optional[str] = None
    currency: Optional[str] = None
    request_id: Optional[str] = None

    def __post_init__(self) -> None:
        if self.quantity <= 0:
            raise ValueError("quantity must be > 0")
        if self.occupancy <= 0:
            raise ValueError("occupancy must be > 0")

    def to_string(self) -> str:
        """Human-readable description of the request."""
        parts = [
            f"unit={self.unit_id}",
            f"{self.stay.start.isoformat()}..{self.stay.end.isoformat()}",
            f"qty={self.quantity}",
            f"pax={self.occupancy}",
        ]
        if self.channel:
            parts.append(f"channel={self.channel}")
        if self.market:
            parts.append(f"market={self.market}")
        return " ".join(parts)


__all__ = ["AllocationRequest"]
