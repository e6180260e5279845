"""Cross-tenant auto-checkout sweep.

Runs on an external schedule. For every tenant whose working day has ended
(``now_minute >= end_minute``) it force-closes all open rows dated within the
lookback window. A tenant still inside its working day is skipped entirely.

Tenants are independent and processed concurrently, bounded by a semaphore;
each tenant gets its own session. Individual row failures are counted, never
fatal, and a partial run heals on the next tick.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backoffice.attendance.clock import Clock
from backoffice.attendance.reconciler import ReconcileResult, Reconciler
from backoffice.attendance.repository import AttendanceRepository
from backoffice.attendance.schemas import SweepSummary
from backoffice.attendance.work_window import TenantWorkWindow
from backoffice.config import settings

logger = logging.getLogger(__name__)


@dataclass
class TenantSweepResult:
    processed: bool = False
    candidates: int = 0
    closed: int = 0


class Sweep:
    """Force-closes stale open attendance rows across a list of tenants."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        lookback_days: int = settings.SWEEP_LOOKBACK_DAYS,
        max_concurrency: int = settings.SWEEP_MAX_CONCURRENCY,
        dry_run: bool = False,
    ) -> None:
        self._session_factory = session_factory
        self._lookback = timedelta(days=lookback_days)
        self._max_concurrency = max(1, max_concurrency)
        self._dry_run = dry_run

    async def run(
        self,
        tenant_windows: Sequence[TenantWorkWindow],
        *,
        today: date,
        now_minute: int,
    ) -> SweepSummary:
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def _bounded(tenant: TenantWorkWindow) -> TenantSweepResult:
            async with semaphore:
                return await self._sweep_tenant(tenant, today, now_minute)

        results = await asyncio.gather(
            *(_bounded(t) for t in tenant_windows if t.tenant_id is not None)
        )

        summary = SweepSummary(
            today=today,
            tenants_processed=sum(1 for r in results if r.processed),
            candidates=sum(r.candidates for r in results),
            auto_checked_out=sum(r.closed for r in results),
        )
        logger.info(
            "Auto-checkout sweep %s: %d tenants processed, %d candidates, %d closed%s",
            today.isoformat(),
            summary.tenants_processed,
            summary.candidates,
            summary.auto_checked_out,
            " (dry run)" if self._dry_run else "",
        )
        return summary

    async def _sweep_tenant(
        self,
        tenant: TenantWorkWindow,
        today: date,
        now_minute: int,
    ) -> TenantSweepResult:
        window = tenant.window
        if now_minute < window.end_minute:
            return TenantSweepResult()

        logger.debug(
            "Sweep: tenant %s past end of day (%s)",
            tenant.tenant_id,
            Clock.format_time_of_day(window.end_minute),
        )
        result = TenantSweepResult(processed=True)
        async with self._session_factory() as db:
            try:
                open_rows = await AttendanceRepository.list_open(
                    db, tenant.tenant_id, since=today - self._lookback, until=today,
                )
            except SQLAlchemyError:
                logger.exception("Sweep: loading open rows failed for tenant %s", tenant.tenant_id)
                return result

            result.candidates = len(open_rows)
            for row in open_rows:
                # Every row here is past its end of day: the tenant gate above
                # covers today, and earlier dates always qualify.
                closed = ReconcileResult(Reconciler.force_close(row, window), True, True)
                if self._dry_run:
                    continue
                try:
                    async with db.begin_nested():
                        saved = await AttendanceRepository.save_reconciled(db, row, closed)
                except SQLAlchemyError:
                    logger.warning(
                        "Sweep: auto-checkout write failed for record %s", row.id, exc_info=True,
                    )
                    continue
                if saved:
                    result.closed += 1
                else:
                    logger.info("Sweep: record %s was clocked out concurrently; skipped", row.id)

            if not self._dry_run:
                try:
                    await db.commit()
                except SQLAlchemyError:
                    logger.exception("Sweep: commit failed for tenant %s", tenant.tenant_id)
                    result.closed = 0
        return result
