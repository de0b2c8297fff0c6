"""
Domain: inventory pools.

A pool is shared capacity aggregating several buckets. It is reference data:
the booking flow reads pools but only ever mutates the member buckets.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional, Tuple
from uuid import UUID


@dataclass(frozen=True, slots=True)
class PoolVariant:
    """How one inventory unit draws on a pool."""

    pool_variant_id: UUID
    pool_id: UUID
    unit_id: UUID
    capacity_weight: Decimal = Decimal("1")
    cost_per_unit: Optional[Decimal] = None
    sell_price_per_unit: Optional[Decimal] = None
    priority: int = 100
    auto_allocate: bool = True
    status: str = "active"

    def __post_init__(self) -> None:
        if self.capacity_weight <= 0:
            raise ValueError("capacity_weight must be > 0")

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def units_required(self, quantity: int) -> int:
        """Bucket units consumed when `quantity` units of this variant are sold."""

        return math.ceil(Decimal(quantity) * self.capacity_weight)


@dataclass(frozen=True, slots=True)
class InventoryPool:
    pool_id: UUID
    org_id: UUID
    name: str
    valid_from: date
    valid_to: date
    supplier_id: Optional[UUID] = None
    currency: str = "EUR"
    status: str = "active"
    bucket_ids: Tuple[UUID, ...] = ()
    variants: Tuple[PoolVariant, ...] = field(default_factory=tuple)

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def variant_for(self, unit_id: UUID) -> Optional[PoolVariant]:
        for variant in self.variants:
            if variant.unit_id == unit_id:
                return variant
        return None


__all__ = ["InventoryPool", "PoolVariant"]
