#!/usr/bin/env python3
"""
Seed Demo Inventory Script

Creates one committed bucket (with overbooking), one on-request bucket and
their nightly ledger rows for a demo unit, so the API can be exercised end
to end. Rate plans and pools are admin data and are not created here.

Usage:
    python seed_demo_inventory.py --unit-id <uuid> --supplier-id <uuid>
    python seed_demo_inventory.py --unit-id <uuid> --supplier-id <uuid> --start 2026-07-01 --nights 30
    python seed_demo_inventory.py --unit-id <uuid> --supplier-id <uuid> --dry-run
"""

from __future__ import annotations

import argparse
import sys
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path
from typing import List, Tuple
from uuid import UUID, uuid4

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.config import get_settings
from core.logging_config import configure_logging
from domain.allocation import AllocationBucket, AllocationType, BucketDay
from repositories.base import LedgerStore


def demo_buckets(
    org_id: UUID,
    unit_id: UUID,
    supplier_id: UUID,
    start: date,
    nights: int,
    quantity: int,
) -> List[Tuple[AllocationBucket, List[BucketDay]]]:
    """Build the demo buckets and their rows (nothing is written)."""

    valid_to = start + timedelta(days=nights - 1)
    committed = AllocationBucket(
        bucket_id=uuid4(),
        org_id=org_id,
        unit_id=unit_id,
        supplier_id=supplier_id,
        allocation_type=AllocationType.COMMITTED,
        valid_from=start,
        valid_to=valid_to,
        overbooking_limit=1,
        allow_overbooking=True,
        priority=200,
        unit_cost=Decimal("80.00"),
        release_days=14,
    )
    on_request = AllocationBucket(
        bucket_id=uuid4(),
        org_id=org_id,
        unit_id=unit_id,
        supplier_id=supplier_id,
        allocation_type=AllocationType.ON_REQUEST,
        valid_from=start,
        valid_to=valid_to,
        priority=100,
        unit_cost=Decimal("95.00"),
    )

    seeded = []
    for bucket, bucket_quantity in ((committed, quantity), (on_request, quantity // 2)):
        rows = [
            BucketDay(bucket_id=bucket.bucket_id, night=start + timedelta(days=i), quantity=bucket_quantity)
            for i in range(nights)
        ]
        seeded.append((bucket, rows))
    return seeded


def seed(ledger: LedgerStore, seeded: List[Tuple[AllocationBucket, List[BucketDay]]]) -> int:
    written = 0
    for bucket, rows in seeded:
        ledger.save_bucket(bucket)
        for row in rows:
            ledger.save_day(bucket.org_id, row)
            written += 1
    return written


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(description="Seed demo allocation buckets for one unit")
    parser.add_argument("--unit-id", type=UUID, required=True, help="Inventory unit ID")
    parser.add_argument("--supplier-id", type=UUID, required=True, help="Supplier ID")
    parser.add_argument("--org-id", type=UUID, help="Organization ID (default: DEFAULT_ORG_ID)")
    parser.add_argument("--start", type=date.fromisoformat, default=date.today(), help="First night")
    parser.add_argument("--nights", type=int, default=30, help="Number of nights (default: 30)")
    parser.add_argument("--quantity", type=int, default=10, help="Units per night (default: 10)")
    parser.add_argument("--dry-run", action="store_true", help="Show what would be written")
    args = parser.parse_args()

    configure_logging()

    org_id = args.org_id or get_settings().default_org_id
    if org_id is None:
        print("ERROR: pass --org-id or set DEFAULT_ORG_ID", file=sys.stderr)
        return 2
    if args.nights <= 0 or args.quantity <= 0:
        print("ERROR: --nights and --quantity must be > 0", file=sys.stderr)
        return 2

    try:
        seeded = demo_buckets(org_id, args.unit_id, args.supplier_id, args.start, args.nights, args.quantity)
        for bucket, rows in seeded:
            print(
                f"{bucket.allocation_type.value:<11} bucket {bucket.bucket_id}: "
                f"{len(rows)} nights x {rows[0].quantity} units, priority {bucket.priority}"
            )

        if args.dry_run:
            print("\n** DRY RUN - No records were written **")
            return 0

        from services.engine import build_engine

        written = seed(build_engine().ledger, seeded)
        print(f"\nSUCCESS: Wrote {len(seeded)} buckets and {written} ledger rows")
        return 0

    except KeyboardInterrupt:
        print("\n\nSeeding interrupted by user")
        return 130
    except Exception as e:
        print(f"\nFATAL ERROR: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
