"""
Tests for `services/scheduler.py`.

The jobs are called directly; the scheduler itself is only built, never
started.
"""

from __future__ import annotations

from dataclasses import replace

from builders import ORG_ID, UNIT_ID, build_memory_engine, make_bucket, row, seed_bucket, stay
from core.config import Settings
from domain.errors import StorageUnavailable
from services.scheduler import (
    HOLD_SWEEP_JOB_ID,
    RELEASE_CHECK_JOB_ID,
    create_scheduler,
    run_hold_sweep,
    run_release_check,
)


def test_hold_sweep_job_expires_overdue_holds(engine, ledger, clock) -> None:
    bucket = seed_bucket(ledger, make_bucket(), quantity=10)
    engine.hold_manager.acquire(ORG_ID, UNIT_ID, bucket.bucket_id, stay(), 3)
    clock.advance(minutes=16)

    assert run_hold_sweep(engine) == 1
    assert run_hold_sweep(engine) == 0
    assert row(ledger, bucket).held == 0


def test_release_check_needs_a_default_org(engine, ledger) -> None:
    seed_bucket(ledger, make_bucket(release_days=30))

    assert run_release_check(engine) == 0


def test_release_check_flips_due_buckets(clock) -> None:
    engine = build_memory_engine(clock, Settings(storage_backend="memory", default_org_id=ORG_ID))
    bucket = seed_bucket(engine.ledger, make_bucket(release_days=30))

    assert run_release_check(engine) == 1
    assert engine.ledger.get_bucket(ORG_ID, bucket.bucket_id).released


def test_scheduler_registers_both_jobs(engine) -> None:
    engine.settings = replace(engine.settings, hold_sweep_interval_seconds=30)

    scheduler = create_scheduler(engine)

    jobs = {job.id: job for job in scheduler.get_jobs()}
    assert set(jobs) == {HOLD_SWEEP_JOB_ID, RELEASE_CHECK_JOB_ID}
    assert jobs[HOLD_SWEEP_JOB_ID].trigger.interval.total_seconds() == 30
    assert jobs[RELEASE_CHECK_JOB_ID].trigger.interval.total_seconds() == 3600


def test_hold_sweep_job_defers_when_storage_is_down(engine, monkeypatch) -> None:
    def unavailable(now, limit=500):
        raise StorageUnavailable("list_expired", cause="connection refused")

    monkeypatch.setattr(engine.holds, "list_expired", unavailable)

    assert run_hold_sweep(engine) == 0
