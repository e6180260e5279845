"""Attendance storage access — tenant-scoped reads and guarded writes.

Every write is conditional on the ``clock_out_time`` the caller observed, so an
engine correction never overwrites a clock-out that landed in between; the
losing write simply affects zero rows.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.attendance.models import AttendanceRecord, WorkingHoursConfig
from backoffice.attendance.reconciler import ReconcileResult
from backoffice.attendance.schemas import AttendanceRecordResponse
from backoffice.attendance.work_window import TenantWorkWindow, WorkWindow
from backoffice.auth.models import Tenant, UserTenantRole
from backoffice.common.audit import create_audit_entry
from backoffice.common.constants import TenantRole
from backoffice.people.models import Technician


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


class AttendanceRepository:
    """Async query helpers over ``daily_attendance`` and its lookups."""

    # ── Configuration ───────────────────────────────────────────────

    @staticmethod
    async def get_work_window(db: AsyncSession, tenant_id: uuid.UUID) -> WorkWindow:
        result = await db.execute(
            select(WorkingHoursConfig).where(WorkingHoursConfig.tenant_id == tenant_id)
        )
        return WorkWindow.from_config(result.scalars().first())

    @staticmethod
    async def list_tenant_windows(db: AsyncSession) -> list[TenantWorkWindow]:
        """Every active tenant with its resolved window; unconfigured tenants get defaults."""
        result = await db.execute(
            select(
                Tenant.id,
                WorkingHoursConfig.work_start_time,
                WorkingHoursConfig.work_end_time,
            )
            .outerjoin(WorkingHoursConfig, WorkingHoursConfig.tenant_id == Tenant.id)
            .where(Tenant.is_active.is_(True))
            .order_by(Tenant.id)
        )
        return [
            TenantWorkWindow(
                tenant_id=tenant_id,
                window=WorkWindow.resolve(start, end),
            )
            for tenant_id, start, end in result.all()
        ]

    # ── People ──────────────────────────────────────────────────────

    @staticmethod
    async def list_technicians(db: AsyncSession, tenant_id: uuid.UUID) -> Sequence[Technician]:
        result = await db.execute(
            select(Technician)
            .where(Technician.tenant_id == tenant_id)
            .order_by(Technician.full_name)
        )
        return result.scalars().all()

    @staticmethod
    async def get_technician_by_user(
        db: AsyncSession,
        user_id: uuid.UUID,
    ) -> Optional[Technician]:
        result = await db.execute(
            select(Technician).where(Technician.user_id == user_id).limit(1)
        )
        return result.scalars().first()

    @staticmethod
    async def get_roles(
        db: AsyncSession,
        tenant_id: uuid.UUID,
        user_ids: Sequence[uuid.UUID],
    ) -> dict[uuid.UUID, TenantRole]:
        if not user_ids:
            return {}
        result = await db.execute(
            select(UserTenantRole.user_id, UserTenantRole.role).where(
                UserTenantRole.tenant_id == tenant_id,
                UserTenantRole.user_id.in_(user_ids),
                UserTenantRole.is_active.is_(True),
            )
        )
        return {user_id: role for user_id, role in result.all()}

    # ── Attendance reads ────────────────────────────────────────────

    @staticmethod
    async def _fetch(db: AsyncSession, query) -> list[AttendanceRecordResponse]:
        # Corrections are written with bulk UPDATEs; refresh any identity-mapped rows.
        result = await db.execute(query.execution_options(populate_existing=True))
        return [AttendanceRecordResponse.model_validate(r) for r in result.scalars().all()]

    @staticmethod
    async def list_records(
        db: AsyncSession,
        tenant_id: uuid.UUID,
        *,
        technician_ids: Sequence[uuid.UUID],
        start: date,
        end_exclusive: date,
    ) -> list[AttendanceRecordResponse]:
        """Records for a technician set within ``[start, end_exclusive)``, oldest first."""
        if not technician_ids:
            return []
        return await AttendanceRepository._fetch(
            db,
            select(AttendanceRecord)
            .where(
                AttendanceRecord.tenant_id == tenant_id,
                AttendanceRecord.technician_id.in_(technician_ids),
                AttendanceRecord.date >= start,
                AttendanceRecord.date < end_exclusive,
            )
            .order_by(AttendanceRecord.date),
        )

    @staticmethod
    async def list_recent(
        db: AsyncSession,
        tenant_id: uuid.UUID,
        technician_id: uuid.UUID,
        *,
        limit: int,
    ) -> list[AttendanceRecordResponse]:
        return await AttendanceRepository._fetch(
            db,
            select(AttendanceRecord)
            .where(
                AttendanceRecord.tenant_id == tenant_id,
                AttendanceRecord.technician_id == technician_id,
            )
            .order_by(AttendanceRecord.date.desc())
            .limit(limit),
        )

    @staticmethod
    async def list_open(
        db: AsyncSession,
        tenant_id: uuid.UUID,
        *,
        since: date,
        until: date,
    ) -> list[AttendanceRecordResponse]:
        """Open rows (clocked in, not out) dated within ``[since, until]``."""
        return await AttendanceRepository._fetch(
            db,
            select(AttendanceRecord)
            .where(
                AttendanceRecord.tenant_id == tenant_id,
                AttendanceRecord.clock_in_time.is_not(None),
                AttendanceRecord.clock_out_time.is_(None),
                AttendanceRecord.date >= since,
                AttendanceRecord.date <= until,
            )
            .order_by(AttendanceRecord.date),
        )

    # ── Attendance writes ───────────────────────────────────────────

    @staticmethod
    async def save_reconciled(
        db: AsyncSession,
        observed: AttendanceRecordResponse,
        result: ReconcileResult,
    ) -> bool:
        """Persist a reconciliation result; False when a concurrent write got there first."""
        reconciled = result.record
        values = {
            "is_late": reconciled.is_late,
            "is_early_leave": reconciled.is_early_leave,
            "total_work_hours": reconciled.total_work_hours,
            "updated_at": datetime.now(timezone.utc),
        }
        if result.force_closed:
            values.update(
                clock_out_time=reconciled.clock_out_time,
                work_start_time=reconciled.work_start_time,
                work_end_time=reconciled.work_end_time,
                is_auto_checkout=True,
            )

        if observed.clock_out_time is None:
            clock_out_guard = AttendanceRecord.clock_out_time.is_(None)
        else:
            clock_out_guard = AttendanceRecord.clock_out_time == observed.clock_out_time

        outcome = await db.execute(
            update(AttendanceRecord)
            .where(AttendanceRecord.id == observed.id, clock_out_guard)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if outcome.rowcount != 1:
            return False

        if result.force_closed:
            await create_audit_entry(
                db,
                tenant_id=observed.tenant_id,
                action="auto_checkout",
                entity_type="daily_attendance",
                entity_id=observed.id,
                old_values={"clock_out_time": None},
                new_values={
                    "clock_out_time": _iso(reconciled.clock_out_time),
                    "total_work_hours": reconciled.total_work_hours,
                    "is_late": reconciled.is_late,
                },
            )
        return True
