"""
Background jobs.

- hold sweep: every HOLD_SWEEP_INTERVAL_SECONDS, expire overdue holds
- release check: every RELEASE_CHECK_INTERVAL_MINUTES, flag committed
  buckets of DEFAULT_ORG_ID past their release date

Both jobs are idempotent, so overlapping or repeated runs are harmless.
"""

from __future__ import annotations

import logging

from apscheduler.schedulers.background import BackgroundScheduler

from domain.errors import StorageUnavailable
from services.engine import AllocationEngine

logger = logging.getLogger(__name__)

HOLD_SWEEP_JOB_ID = "hold_expiry_sweep"
RELEASE_CHECK_JOB_ID = "release_check"


def run_hold_sweep(engine: AllocationEngine) -> int:
    try:
        swept = engine.hold_manager.sweep_expired()
    except StorageUnavailable as e:
        logger.warning("Hold sweep deferred: %s", e)
        return 0
    return len(swept)


def run_release_check(engine: AllocationEngine) -> int:
    org_id = engine.settings.default_org_id
    if org_id is None:
        return 0
    try:
        released = engine.releases.release_due(org_id)
    except StorageUnavailable as e:
        logger.warning("Release check deferred: %s", e)
        return 0
    return len(released)


def create_scheduler(engine: AllocationEngine) -> BackgroundScheduler:
    """Build (but do not start) the scheduler for the engine's jobs."""

    settings = engine.settings
    scheduler = BackgroundScheduler()
    scheduler.add_job(
        run_hold_sweep,
        "interval",
        seconds=settings.hold_sweep_interval_seconds,
        args=[engine],
        id=HOLD_SWEEP_JOB_ID,
        max_instances=1,
        coalesce=True,
    )
    scheduler.add_job(
        run_release_check,
        "interval",
        minutes=settings.release_check_interval_minutes,
        args=[engine],
        id=RELEASE_CHECK_JOB_ID,
        max_instances=1,
        coalesce=True,
    )
    return scheduler


__all__ = [
    "HOLD_SWEEP_JOB_ID",
    "RELEASE_CHECK_JOB_ID",
    "create_scheduler",
    "run_hold_sweep",
    "run_release_check",
]
