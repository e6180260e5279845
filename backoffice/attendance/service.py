"""Attendance service layer — reconciled read paths for admins and technicians.

Business logic:
  - Every read reconciles the rows it returns (force-close or recompute)
  - Corrections are persisted best-effort; a failed write is logged and the
    freshly computed value is still returned
  - Today roster, monthly roster + totals, per-technician month grid,
    technician self view
"""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from datetime import timedelta
from typing import Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.attendance.clock import Clock
from backoffice.attendance.reconciler import ReconcileResult, Reconciler
from backoffice.attendance.repository import AttendanceRepository
from backoffice.attendance.roster import RosterAggregator
from backoffice.attendance.schemas import (
    AttendanceRecordResponse,
    MonthlyRosterResponse,
    TechnicianTodayResponse,
    TodayRosterItem,
    TodayRosterResponse,
    UserMonthResponse,
)
from backoffice.attendance.work_window import WorkWindow
from backoffice.common.constants import AttendanceDisplayStatus
from backoffice.common.exceptions import ForbiddenException
from backoffice.config import settings

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════
# AttendanceService
# ═════════════════════════════════════════════════════════════════════


class AttendanceService:
    """Async attendance read operations with inline reconciliation."""

    # ── Helpers ─────────────────────────────────────────────────────

    @staticmethod
    async def _persist_best_effort(
        db: AsyncSession,
        observed: AttendanceRecordResponse,
        result: ReconcileResult,
    ) -> None:
        """Write a correction inside a savepoint; failures are logged, never raised."""
        try:
            async with db.begin_nested():
                saved = await AttendanceRepository.save_reconciled(db, observed, result)
        except SQLAlchemyError:
            logger.warning(
                "Best-effort attendance correction failed for record %s",
                observed.id,
                exc_info=True,
            )
            return
        if not saved:
            logger.debug("Record %s changed concurrently; correction skipped", observed.id)

    @staticmethod
    async def _reconcile_rows(
        db: AsyncSession,
        rows: Sequence[AttendanceRecordResponse],
        window: WorkWindow,
        clock: Clock,
    ) -> list[AttendanceRecordResponse]:
        """Reconcile rows against one shared "now", persisting the dirty ones."""
        today = clock.today()
        now_minute = clock.now_minute()

        reconciled: list[AttendanceRecordResponse] = []
        wrote = False
        for row in rows:
            result = Reconciler.reconcile_one(row, window, today, now_minute)
            if result.dirty:
                await AttendanceService._persist_best_effort(db, row, result)
                wrote = True
            reconciled.append(result.record)

        if wrote:
            try:
                await db.commit()
            except SQLAlchemyError:
                logger.warning("Committing attendance corrections failed", exc_info=True)
                await db.rollback()
        return reconciled

    @staticmethod
    def _resolve_month(clock: Clock, month: Optional[str]) -> str:
        if month is None:
            return clock.current_month_key()
        return Clock.parse_month_key(month)

    @staticmethod
    def display_status(
        record: Optional[AttendanceRecordResponse],
        has_user: bool,
    ) -> AttendanceDisplayStatus:
        """Single status label for a roster row."""
        if not has_user:
            return AttendanceDisplayStatus.not_activated
        if record is None or record.clock_in_time is None:
            return AttendanceDisplayStatus.absent
        if record.is_auto_checkout:
            return AttendanceDisplayStatus.auto_checkout
        if record.is_late and record.is_early_leave:
            return AttendanceDisplayStatus.late_and_early_leave
        if record.is_late:
            return AttendanceDisplayStatus.late
        if record.is_early_leave:
            return AttendanceDisplayStatus.early_leave
        return AttendanceDisplayStatus.on_time

    # ── Today roster (admin view) ───────────────────────────────────

    @staticmethod
    async def get_today_roster(
        db: AsyncSession,
        tenant_id: uuid.UUID,
        clock: Clock,
    ) -> TodayRosterResponse:
        """Every technician of the tenant with today's reconciled record."""

        today = clock.today()
        window = await AttendanceRepository.get_work_window(db, tenant_id)
        technicians = await AttendanceRepository.list_technicians(db, tenant_id)
        user_ids = [t.user_id for t in technicians if t.user_id is not None]

        rows = await AttendanceRepository.list_records(
            db,
            tenant_id,
            technician_ids=user_ids,
            start=today,
            end_exclusive=today + timedelta(days=1),
        )
        reconciled = await AttendanceService._reconcile_rows(db, rows, window, clock)
        by_user = {r.technician_id: r for r in reconciled}
        roles = await AttendanceRepository.get_roles(db, tenant_id, user_ids)

        roster = []
        for t in technicians:
            record = by_user.get(t.user_id) if t.user_id is not None else None
            roster.append(
                TodayRosterItem(
                    technician_record_id=t.id,
                    user_id=t.user_id,
                    full_name=t.full_name,
                    email=t.email,
                    staff_role=roles.get(t.user_id) if t.user_id is not None else None,
                    attendance=record,
                    status=AttendanceService.display_status(record, t.user_id is not None),
                )
            )

        return TodayRosterResponse(date=today, roster=roster)

    # ── Monthly roster ──────────────────────────────────────────────

    @staticmethod
    async def get_monthly_roster(
        db: AsyncSession,
        tenant_id: uuid.UUID,
        clock: Clock,
        *,
        month: Optional[str] = None,
    ) -> MonthlyRosterResponse:
        """Per-technician month summaries plus tenant totals."""

        month_key = AttendanceService._resolve_month(clock, month)
        start, end_exclusive = Clock.month_range(month_key)

        window = await AttendanceRepository.get_work_window(db, tenant_id)
        technicians = await AttendanceRepository.list_technicians(db, tenant_id)
        user_ids = [t.user_id for t in technicians if t.user_id is not None]

        rows = await AttendanceRepository.list_records(
            db,
            tenant_id,
            technician_ids=user_ids,
            start=start,
            end_exclusive=end_exclusive,
        )
        reconciled = await AttendanceService._reconcile_rows(db, rows, window, clock)

        by_user: dict[uuid.UUID, list[AttendanceRecordResponse]] = defaultdict(list)
        for r in reconciled:
            by_user[r.technician_id].append(r)

        roster, totals = RosterAggregator.summarize(technicians, by_user)
        return MonthlyRosterResponse(
            month=month_key,
            start=start,
            end_exclusive=end_exclusive,
            totals=totals,
            roster=roster,
        )

    # ── Single technician month grid ────────────────────────────────

    @staticmethod
    async def get_user_month(
        db: AsyncSession,
        tenant_id: uuid.UUID,
        user_id: uuid.UUID,
        clock: Clock,
        *,
        month: Optional[str] = None,
    ) -> UserMonthResponse:
        """Every calendar day of the month for one technician."""

        month_key = AttendanceService._resolve_month(clock, month)
        start, end_exclusive = Clock.month_range(month_key)

        window = await AttendanceRepository.get_work_window(db, tenant_id)
        rows = await AttendanceRepository.list_records(
            db,
            tenant_id,
            technician_ids=[user_id],
            start=start,
            end_exclusive=end_exclusive,
        )
        reconciled = await AttendanceService._reconcile_rows(db, rows, window, clock)

        return UserMonthResponse(
            month=month_key,
            start=start,
            end_exclusive=end_exclusive,
            user_id=user_id,
            days=RosterAggregator.day_grid(month_key, reconciled),
        )

    # ── Technician self view ────────────────────────────────────────

    @staticmethod
    async def get_technician_today(
        db: AsyncSession,
        user_id: uuid.UUID,
        clock: Clock,
    ) -> TechnicianTodayResponse:
        """The caller's own today row and most recent days."""

        technician = await AttendanceRepository.get_technician_by_user(db, user_id)
        if technician is None:
            raise ForbiddenException(detail="Only technicians can view their attendance.")

        today = clock.today()
        window = await AttendanceRepository.get_work_window(db, technician.tenant_id)
        recent = await AttendanceRepository.list_recent(
            db,
            technician.tenant_id,
            user_id,
            limit=settings.RECENT_DAYS_LIMIT,
        )
        reconciled = await AttendanceService._reconcile_rows(db, recent, window, clock)
        today_row = next((r for r in reconciled if r.date == today), None)

        return TechnicianTodayResponse(today=today, today_row=today_row, recent=reconciled)
