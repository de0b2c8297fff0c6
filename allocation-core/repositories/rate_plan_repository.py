"""
Rate plan repository (read-only).

Loads rate plans with their pricing documents in one PostgREST call using
embedded resources:

    rate_plans
      -> rate_seasons
      -> rate_occupancies
      -> rate_taxes_fees
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional
from uuid import UUID

from domain.rate import (
    ALL_DAYS_MASK,
    AmountType,
    CalcBase,
    PricingModel,
    RateOccupancy,
    RatePlan,
    RateSeason,
    RateTaxFee,
)
from domain.time import DateRange
from repositories.client import get_supabase_client
from repositories.rows import parse_date, parse_decimal, parse_optional_uuid, rows_of, run_query

_RATE_PLANS_TABLE: str = "rate_plans"

_RATE_PLAN_SELECT = (
    "*, "
    "rate_seasons(id, season_from, season_to, rate, dow_mask, min_stay, max_stay), "
    "rate_occupancies(min_occupancy, max_occupancy, pricing_model, occupancy_multiplier, per_person_rate), "
    "rate_taxes_fees(name, amount_type, value, calc_base, inclusive)"
)


def _optional_int(value: Any) -> Optional[int]:
    return int(value) if value is not None else None


def _row_to_season(row: Mapping[str, Any]) -> RateSeason:
    return RateSeason(
        season_id=UUID(str(row["id"])),
        season_from=parse_date(row["season_from"]),
        season_to=parse_date(row["season_to"]),
        nightly_rate=parse_decimal(row.get("rate")),
        dow_mask=int(row.get("dow_mask") or ALL_DAYS_MASK),
        min_stay=_optional_int(row.get("min_stay")),
        max_stay=_optional_int(row.get("max_stay")),
    )


def _row_to_occupancy(row: Mapping[str, Any]) -> RateOccupancy:
    return RateOccupancy(
        min_occupancy=int(row["min_occupancy"]),
        max_occupancy=int(row["max_occupancy"]),
        pricing_model=PricingModel(str(row.get("pricing_model") or "fixed")),
        multiplier=parse_decimal(row.get("occupancy_multiplier"), "1"),
        per_person_amount=parse_decimal(row.get("per_person_rate"), "0"),
    )


def _row_to_tax_fee(row: Mapping[str, Any]) -> RateTaxFee:
    return RateTaxFee(
        name=str(row["name"]),
        amount_type=AmountType(str(row["amount_type"])),
        value=parse_decimal(row.get("value")),
        calc_base=CalcBase(str(row.get("calc_base") or "per_booking")),
        inclusive=bool(row.get("inclusive")),
    )


def _row_to_rate_plan(row: Mapping[str, Any]) -> RatePlan:
    """Convert a Supabase row (with embedded documents) into a RatePlan."""

    return RatePlan(
        rate_plan_id=UUID(str(row["id"])),
        org_id=UUID(str(row["org_id"])),
        unit_id=UUID(str(row["product_variant_id"])),
        name=str(row.get("name") or ""),
        currency=str(row["currency"]),
        valid_from=parse_date(row["valid_from"]),
        valid_to=parse_date(row["valid_to"]),
        preferred=bool(row.get("preferred")),
        supplier_id=parse_optional_uuid(row.get("supplier_id")),
        channels=tuple(row.get("channels") or ()),
        markets=tuple(row.get("markets") or ()),
        priority=int(row.get("priority") if row.get("priority") is not None else 100),
        fees_before_taxes=bool(row.get("fees_before_taxes")),
        seasons=tuple(_row_to_season(s) for s in row.get("rate_seasons") or []),
        occupancies=tuple(_row_to_occupancy(o) for o in row.get("rate_occupancies") or []),
        taxes_fees=tuple(_row_to_tax_fee(t) for t in row.get("rate_taxes_fees") or []),
    )


class SupabaseRatePlanRepository:
    def __init__(self, client: Optional[Any] = None) -> None:
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = get_supabase_client()
        return self._client

    def list_rate_plans(self, org_id: UUID, unit_id: UUID, stay: DateRange) -> List[RatePlan]:
        response = run_query(
            "list rate plans",
            lambda: self.client.table(_RATE_PLANS_TABLE)
            .select(_RATE_PLAN_SELECT)
            .eq("org_id", str(org_id))
            .eq("product_variant_id", str(unit_id))
            .lte("valid_from", stay.last_night.isoformat())
            .gte("valid_to", stay.start.isoformat())
            .execute(),
        )
        return [_row_to_rate_plan(row) for row in rows_of(response)]


__all__ = ["SupabaseRatePlanRepository"]
