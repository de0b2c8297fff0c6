#!/usr/bin/env python3
"""
Check allocation status - calendar of a unit and upcoming releases.

Usage:
    python check_allocation_status.py --unit-id <uuid> --start 2026-07-01 --end 2026-07-08
    python check_allocation_status.py --unit-id <uuid> --start 2026-07-01 --end 2026-07-08 --org-id <uuid>

The organization defaults to DEFAULT_ORG_ID.
"""

from __future__ import annotations

import argparse
import sys
from datetime import date
from pathlib import Path
from uuid import UUID

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.config import get_settings
from core.logging_config import configure_logging
from domain.time import DateRange
from services.engine import build_engine


def _fmt(value) -> str:
    return "unlimited" if value is None else str(value)


def check_allocation_status(org_id: UUID, unit_id: UUID, stay: DateRange) -> None:
    """Print the calendar, its summary and release warnings for the organization."""

    engine = build_engine()
    days = engine.availability.calendar(org_id, unit_id, stay)
    summary = engine.availability.summary(org_id, unit_id, stay)

    print("=" * 70)
    print("ALLOCATION STATUS")
    print("=" * 70)
    print(f"{'Night':<12}{'Status':<15}{'Quantity':>10}{'Booked':>8}{'Held':>6}{'Available':>11}  Price")
    print("-" * 70)
    for day in days:
        price = f"{day.selling_price} {day.currency}" if day.selling_price is not None else "-"
        print(
            f"{day.night.isoformat():<12}{day.status:<15}{_fmt(day.total_quantity):>10}"
            f"{day.total_booked:>8}{day.total_held:>6}{_fmt(day.total_available):>11}  {price}"
        )
    print("-" * 70)
    print(f"Nights:              {summary.total_days}")
    print(f"Available nights:    {summary.available_days}")
    print(f"Low inventory:       {summary.low_inventory_days}")
    print(f"Sold out:            {summary.sold_out_days}")
    print(f"Total booked:        {summary.total_booked}")
    print("=" * 70)

    warnings = engine.releases.release_warnings(org_id)
    print(f"\nUpcoming releases ({len(warnings)}):")
    print("-" * 70)
    for warning in warnings:
        print(
            f"{warning.release_date.isoformat()}  ({warning.days_until_release:+d}d)  "
            f"bucket={warning.bucket_id}  unsold={warning.available_quantity}  "
            f"at risk={warning.potential_loss} {warning.currency}"
        )
    print("-" * 70)


def main() -> int:
    parser = argparse.ArgumentParser(description="Show the availability calendar of a unit")
    parser.add_argument("--unit-id", type=UUID, required=True, help="Inventory unit ID")
    parser.add_argument("--start", type=date.fromisoformat, required=True, help="First night (YYYY-MM-DD)")
    parser.add_argument("--end", type=date.fromisoformat, required=True, help="Check-out date (YYYY-MM-DD)")
    parser.add_argument("--org-id", type=UUID, help="Organization ID (default: DEFAULT_ORG_ID)")
    args = parser.parse_args()

    configure_logging()

    org_id = args.org_id or get_settings().default_org_id
    if org_id is None:
        print("ERROR: pass --org-id or set DEFAULT_ORG_ID", file=sys.stderr)
        return 2
    if args.end <= args.start:
        print("ERROR: --end must be after --start", file=sys.stderr)
        return 2

    check_allocation_status(org_id, args.unit_id, DateRange(args.start, args.end))
    return 0


if __name__ == "__main__":
    sys.exit(main())
