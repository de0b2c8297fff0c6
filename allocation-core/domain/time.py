"""
Domain time utilities (pure).

Centralized timestamp validation and stay-date helpers.

Behavior and error messages must remain consistent across the domain model.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Iterator, List


def require_utc_timestamp(name: str, value: datetime) -> None:
    """
    Enforces the requirement that timestamps are UTC.

    Invariants:
    - Timestamps must be timezone-aware.
    - Timestamps must have UTC offset 0.
    """

    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"{name} must be timezone-aware (UTC)")
    if value.utcoffset() != timedelta(0):
        raise ValueError(f"{name} must be a UTC timestamp (offset 0)")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class DateRange:
    """
    A stay expressed as nights.

    `start` is the first night (check-in), `end` is check-out and is not a night.
    A single-day product (ticket, transfer) is DateRange(d, d + 1 day).
    """

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.end <= self.start:
            raise ValueError("end must be after start (at least one night)")

    @classmethod
    def single(cls, day: date) -> "DateRange":
        return cls(start=day, end=day + timedelta(days=1))

    @property
    def night_count(self) -> int:
        return (self.end - self.start).days

    def __iter__(self) -> Iterator[date]:
        current = self.start
        while current < self.end:
            yield current
            current += timedelta(days=1)

    @property
    def nights(self) -> List[date]:
        return list(self)

    @property
    def last_night(self) -> date:
        return self.end - timedelta(days=1)

    def contains(self, day: date) -> bool:
        return self.start <= day < self.end
