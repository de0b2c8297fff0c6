#!/usr/bin/env python3
"""
Hold Expiry Sweep Script

Expires every active hold past its expiry and returns the held units to the
ledger. The API runs the same sweep on a background scheduler; this script
is for deployments that run the API without it, or for one-off cleanups.

Safe to run at any time and as often as needed: a hold another worker
already finished is skipped.

Usage:
    python sweep_expired_holds.py
    python sweep_expired_holds.py --as-of "2026-07-01T12:00:00Z"
    python sweep_expired_holds.py --limit 100

Schedule via cron (every minute):
    * * * * * cd /app/allocation-core && python scripts/sweep_expired_holds.py
"""

from __future__ import annotations

import argparse
import sys
from datetime import datetime, timezone
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.logging_config import configure_logging
from services.engine import build_engine


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Expire overdue holds and return their units to the ledger",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--as-of",
        type=str,
        help="ISO timestamp to treat as 'now' (default: now, UTC)"
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=500,
        help="Maximum number of holds to expire in this run (default: 500)"
    )
    args = parser.parse_args()

    configure_logging()

    try:
        if args.as_of:
            as_of = datetime.fromisoformat(args.as_of.replace("Z", "+00:00"))
            if as_of.tzinfo is None:
                as_of = as_of.replace(tzinfo=timezone.utc)
            as_of = as_of.astimezone(timezone.utc)
        else:
            as_of = datetime.now(timezone.utc)

        engine = build_engine()
        swept = engine.hold_manager.sweep_expired(now=as_of, limit=args.limit)

        print("=" * 60)
        print("HOLD SWEEP SUMMARY")
        print("=" * 60)
        print(f"As of:            {as_of.isoformat()}")
        print(f"Holds expired:    {len(swept)}")
        for hold in swept:
            print(f"  {hold.hold_id}  bucket={hold.bucket_id}  qty={hold.quantity}  nights={len(hold.lines)}")
        print("=" * 60)
        return 0

    except KeyboardInterrupt:
        print("\n\nHold sweep interrupted by user")
        return 130
    except Exception as e:
        print(f"\nFATAL ERROR: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
