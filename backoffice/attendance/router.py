"""Attendance router — reconciled today roster, monthly roster, month grid.

All endpoints require an authenticated tenant context with an admin role.
"""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.attendance.clock import Clock, get_clock
from backoffice.attendance.schemas import (
    MonthlyRosterResponse,
    TechnicianTodayResponse,
    TodayRosterResponse,
    UserMonthResponse,
)
from backoffice.attendance.service import AttendanceService
from backoffice.auth.dependencies import TenantContext, get_current_user_id, require_role
from backoffice.common.constants import ATTENDANCE_ADMIN_ROLES
from backoffice.database import get_db

router = APIRouter(prefix="", tags=["attendance"])
technician_router = APIRouter(prefix="", tags=["technician"])

require_attendance_admin = require_role(*ATTENDANCE_ADMIN_ROLES)


# ── GET /today ──────────────────────────────────────────────────────

@router.get("/today", response_model=TodayRosterResponse)
async def today_roster(
    ctx: TenantContext = Depends(require_attendance_admin),
    clock: Clock = Depends(get_clock),
    db: AsyncSession = Depends(get_db),
):
    """Today's attendance for every technician of the tenant."""
    return await AttendanceService.get_today_roster(db, ctx.tenant_id, clock)


# ── GET /monthly ────────────────────────────────────────────────────

@router.get("/monthly", response_model=MonthlyRosterResponse)
async def monthly_roster(
    month: Optional[str] = Query(None, description="Month as YYYY-MM; defaults to the current month"),
    ctx: TenantContext = Depends(require_attendance_admin),
    clock: Clock = Depends(get_clock),
    db: AsyncSession = Depends(get_db),
):
    """Monthly per-technician summaries and tenant totals."""
    return await AttendanceService.get_monthly_roster(db, ctx.tenant_id, clock, month=month)


# ── GET /user ───────────────────────────────────────────────────────

@router.get("/user", response_model=UserMonthResponse)
async def user_month(
    user_id: uuid.UUID = Query(..., description="Technician auth-user id"),
    month: Optional[str] = Query(None, description="Month as YYYY-MM; defaults to the current month"),
    ctx: TenantContext = Depends(require_attendance_admin),
    clock: Clock = Depends(get_clock),
    db: AsyncSession = Depends(get_db),
):
    """Day-by-day attendance for one technician across a month."""
    return await AttendanceService.get_user_month(
        db, ctx.tenant_id, user_id, clock, month=month,
    )


# ── GET /technician/attendance/today ────────────────────────────────

@technician_router.get("/attendance/today", response_model=TechnicianTodayResponse)
async def my_attendance_today(
    user_id: uuid.UUID = Depends(get_current_user_id),
    clock: Clock = Depends(get_clock),
    db: AsyncSession = Depends(get_db),
):
    """The authenticated technician's today row and recent days."""
    return await AttendanceService.get_technician_today(db, user_id, clock)
