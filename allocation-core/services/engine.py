"""
Service wiring.

Builds the storage backend selected by ALLOCATION_STORAGE_BACKEND and the
services on top of it. The API and the maintenance scripts both start here;
tests build an engine over the in-memory store directly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from core.config import Settings, get_settings
from domain.time import utc_now
from repositories.base import HoldRepository, LedgerStore, PoolRepository, RatePlanRepository
from services.allocation_resolver import AllocationResolver
from services.availability_service import AvailabilityService
from services.hold_manager import HoldManager
from services.pricing_service import PricingService
from services.release_service import ReleaseService

logger = logging.getLogger(__name__)


@dataclass
class AllocationEngine:
    settings: Settings
    ledger: LedgerStore
    holds: HoldRepository
    pools: PoolRepository
    rate_plans: RatePlanRepository
    hold_manager: HoldManager
    pricing: PricingService
    resolver: AllocationResolver
    availability: AvailabilityService
    releases: ReleaseService


def assemble_engine(
    settings: Settings,
    ledger: LedgerStore,
    holds: HoldRepository,
    pools: PoolRepository,
    rate_plans: RatePlanRepository,
    clock: Callable[[], datetime] = utc_now,
) -> AllocationEngine:
    """Wire services over already-built repositories."""

    hold_manager = HoldManager(
        ledger,
        holds,
        clock=clock,
        hold_ttl=timedelta(minutes=settings.hold_ttl_minutes),
    )
    pricing = PricingService(rate_plans, quote_validity_minutes=settings.quote_validity_minutes, clock=clock)
    return AllocationEngine(
        settings=settings,
        ledger=ledger,
        holds=holds,
        pools=pools,
        rate_plans=rate_plans,
        hold_manager=hold_manager,
        pricing=pricing,
        resolver=AllocationResolver(ledger, pools, hold_manager, pricing),
        availability=AvailabilityService(
            ledger, pricing, low_inventory_threshold=settings.low_inventory_threshold
        ),
        releases=ReleaseService(ledger, clock=clock),
    )


def build_engine(settings: Optional[Settings] = None, clock: Callable[[], datetime] = utc_now) -> AllocationEngine:
    """Build the engine for the configured storage backend."""

    settings = settings or get_settings()

    if settings.storage_backend == "memory":
        from repositories.memory import InMemoryCatalog, InMemoryHoldRepository, InMemoryLedgerStore

        catalog = InMemoryCatalog()
        logger.info("Using in-memory storage backend")
        return assemble_engine(
            settings, InMemoryLedgerStore(), InMemoryHoldRepository(), catalog, catalog, clock=clock
        )

    from repositories.hold_repository import SupabaseHoldRepository
    from repositories.ledger_repository import SupabaseLedgerStore
    from repositories.pool_repository import SupabasePoolRepository
    from repositories.rate_plan_repository import SupabaseRatePlanRepository

    logger.info("Using Supabase storage backend")
    return assemble_engine(
        settings,
        SupabaseLedgerStore(),
        SupabaseHoldRepository(),
        SupabasePoolRepository(),
        SupabaseRatePlanRepository(),
        clock=clock,
    )


__all__ = ["AllocationEngine", "assemble_engine", "build_engine"]
