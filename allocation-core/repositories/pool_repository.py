"""
Inventory pool repository (read-only).

Pools are reference data maintained by admins. The booking flow only reads
them, so nothing here writes.

Tables:
- inventory_pools: the pool itself
- pool_variants: one row per inventory unit that can draw on the pool
- allocation_buckets.inventory_pool_id: membership of buckets in a pool
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional
from uuid import UUID

from domain.pool import InventoryPool, PoolVariant
from repositories.client import get_supabase_client
from repositories.rows import parse_date, parse_decimal, parse_optional_uuid, rows_of, run_query

_POOLS_TABLE: str = "inventory_pools"
_VARIANTS_TABLE: str = "pool_variants"
_BUCKETS_TABLE: str = "allocation_buckets"


def _row_to_variant(row: Mapping[str, Any]) -> PoolVariant:
    cost = row.get("cost_per_unit")
    sell = row.get("sell_price_per_unit")
    return PoolVariant(
        pool_variant_id=UUID(str(row["id"])),
        pool_id=UUID(str(row["pool_id"])),
        unit_id=UUID(str(row["product_variant_id"])),
        capacity_weight=parse_decimal(row.get("capacity_weight"), "1"),
        cost_per_unit=parse_decimal(cost) if cost is not None else None,
        sell_price_per_unit=parse_decimal(sell) if sell is not None else None,
        priority=int(row.get("priority") if row.get("priority") is not None else 100),
        auto_allocate=bool(row.get("auto_allocate", True)),
        status=str(row.get("status") or "active"),
    )


def _row_to_pool(row: Mapping[str, Any], variants: List[PoolVariant], bucket_ids: List[UUID]) -> InventoryPool:
    return InventoryPool(
        pool_id=UUID(str(row["id"])),
        org_id=UUID(str(row["org_id"])),
        name=str(row.get("name") or ""),
        valid_from=parse_date(row["valid_from"]),
        valid_to=parse_date(row["valid_to"]),
        supplier_id=parse_optional_uuid(row.get("supplier_id")),
        currency=str(row.get("currency") or "EUR"),
        status=str(row.get("status") or "active"),
        bucket_ids=tuple(sorted(bucket_ids, key=str)),
        variants=tuple(variants),
    )


class SupabasePoolRepository:
    def __init__(self, client: Optional[Any] = None) -> None:
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = get_supabase_client()
        return self._client

    def list_pools_for_unit(self, org_id: UUID, unit_id: UUID) -> List[InventoryPool]:
        response = run_query(
            "list pool variants",
            lambda: self.client.table(_VARIANTS_TABLE)
            .select("pool_id")
            .eq("product_variant_id", str(unit_id))
            .execute(),
        )
        pool_ids = sorted({str(row["pool_id"]) for row in rows_of(response)})
        if not pool_ids:
            return []
        return self._load_pools(org_id, pool_ids)

    def get_pool(self, org_id: UUID, pool_id: UUID) -> Optional[InventoryPool]:
        pools = self._load_pools(org_id, [str(pool_id)])
        return pools[0] if pools else None

    def _load_pools(self, org_id: UUID, pool_ids: List[str]) -> List[InventoryPool]:
        pools_response = run_query(
            "list inventory pools",
            lambda: self.client.table(_POOLS_TABLE)
            .select("*")
            .eq("org_id", str(org_id))
            .in_("id", pool_ids)
            .execute(),
        )
        pool_rows = rows_of(pools_response)
        if not pool_rows:
            return []

        variants_response = run_query(
            "list pool variants",
            lambda: self.client.table(_VARIANTS_TABLE).select("*").in_("pool_id", pool_ids).execute(),
        )
        members_response = run_query(
            "list pool members",
            lambda: self.client.table(_BUCKETS_TABLE)
            .select("id, inventory_pool_id")
            .eq("org_id", str(org_id))
            .in_("inventory_pool_id", pool_ids)
            .execute(),
        )

        variants_by_pool: Dict[str, List[PoolVariant]] = {}
        for row in rows_of(variants_response):
            variants_by_pool.setdefault(str(row["pool_id"]), []).append(_row_to_variant(row))

        members_by_pool: Dict[str, List[UUID]] = {}
        for row in rows_of(members_response):
            members_by_pool.setdefault(str(row["inventory_pool_id"]), []).append(UUID(str(row["id"])))

        return [
            _row_to_pool(row, variants_by_pool.get(str(row["id"]), []), members_by_pool.get(str(row["id"]), []))
            for row in pool_rows
        ]


__all__ = ["SupabasePoolRepository"]
