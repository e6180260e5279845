#!/usr/bin/env python3
"""Auto-checkout sweep — scheduled cron wrapper.

Force-closes open attendance rows for every tenant whose working day has
ended. Safe to run as often as you like; a row is closed at most once.

Usage:
    python scripts/run_sweep.py              # sweep all active tenants
    python scripts/run_sweep.py --dry-run    # count candidates, no writes
    python scripts/run_sweep.py --lookback 14

Requires .env at project root:
    DATABASE_URL, JWT_SECRET
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path

# ── Path setup ────────────────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from dotenv import load_dotenv

load_dotenv(PROJECT_ROOT / ".env")

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("run_sweep")

from backoffice.attendance.clock import Clock  # noqa: E402
from backoffice.attendance.repository import AttendanceRepository  # noqa: E402
from backoffice.attendance.schemas import SweepSummary  # noqa: E402
from backoffice.attendance.sweep import Sweep  # noqa: E402
from backoffice.config import settings  # noqa: E402
from backoffice.database import async_session_factory, engine  # noqa: E402


async def run(*, dry_run: bool, lookback_days: int) -> SweepSummary:
    clock = Clock()
    async with async_session_factory() as db:
        tenant_windows = await AttendanceRepository.list_tenant_windows(db)

    try:
        return await Sweep(
            async_session_factory,
            lookback_days=lookback_days,
            dry_run=dry_run,
        ).run(tenant_windows, today=clock.today(), now_minute=clock.now_minute())
    finally:
        await engine.dispose()


def main():
    parser = argparse.ArgumentParser(
        description="Auto-checkout sweep — force-close open attendance rows",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Cron schedule (recommended):
    */15 * * * *    (every 15 min; tenants inside their working day are skipped)
""",
    )
    parser.add_argument("--dry-run", action="store_true", help="Count candidates but don't write")
    parser.add_argument(
        "--lookback",
        type=int,
        default=settings.SWEEP_LOOKBACK_DAYS,
        help=f"Days of open rows to consider (default: {settings.SWEEP_LOOKBACK_DAYS})",
    )
    args = parser.parse_args()

    start_time = time.time()
    try:
        summary = asyncio.run(run(dry_run=args.dry_run, lookback_days=args.lookback))
    except Exception:
        logger.exception("Sweep failed")
        sys.exit(1)

    elapsed = time.time() - start_time
    print(f"""
{'=' * 60}
  SWEEP COMPLETE — {summary.today.isoformat()} ({elapsed:.1f}s)
  Dry run            : {args.dry_run}
  Tenants processed  : {summary.tenants_processed}
  Candidates         : {summary.candidates}
  Auto-checked-out   : {summary.auto_checked_out}
{'=' * 60}
""")


if __name__ == "__main__":
    main()
