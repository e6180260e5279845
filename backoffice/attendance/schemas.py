"""Attendance Pydantic v2 schemas — reconciled records, rosters, sweep summary.

Naming conventions:
  - *Response → response bodies (read)
  - *Summary / *Item → compact read representations
"""

import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from backoffice.common.constants import AttendanceDisplayStatus, TenantRole


# ═════════════════════════════════════════════════════════════════════
# Attendance record
# ═════════════════════════════════════════════════════════════════════


class AttendanceRecordResponse(BaseModel):
    """One technician-day as read from storage, or after reconciliation.

    The derived fields (``is_late``, ``is_early_leave``, ``total_work_hours``)
    are only trustworthy once the record has passed through the Reconciler.
    """

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    tenant_id: uuid.UUID
    technician_id: uuid.UUID
    date: date
    clock_in_time: Optional[datetime] = None
    clock_out_time: Optional[datetime] = None
    work_start_time: Optional[datetime] = None
    work_end_time: Optional[datetime] = None
    total_work_hours: Optional[float] = None
    is_late: Optional[bool] = False
    is_early_leave: Optional[bool] = False
    is_auto_checkout: Optional[bool] = False
    notes: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.clock_in_time is not None and self.clock_out_time is None


# ═════════════════════════════════════════════════════════════════════
# Today roster (admin view)
# ═════════════════════════════════════════════════════════════════════


class TechnicianBrief(BaseModel):
    """Identity block embedded in roster rows."""

    technician_record_id: uuid.UUID
    user_id: Optional[uuid.UUID] = None
    full_name: Optional[str] = None
    email: Optional[str] = None


class TodayRosterItem(TechnicianBrief):
    staff_role: Optional[TenantRole] = None
    attendance: Optional[AttendanceRecordResponse] = None
    status: AttendanceDisplayStatus


class TodayRosterResponse(BaseModel):
    success: bool = True
    date: date
    roster: list[TodayRosterItem] = Field(default_factory=list)


# ═════════════════════════════════════════════════════════════════════
# Monthly roster
# ═════════════════════════════════════════════════════════════════════


class MonthCounters(BaseModel):
    """Counters shared by per-technician rows and tenant totals."""

    days_clocked_in: int = 0
    days_complete: int = 0
    missing_clock_out: int = 0
    total_hours: float = 0.0
    late_count: int = 0
    early_leave_count: int = 0
    auto_checkout_count: int = 0


class TechnicianMonthSummary(TechnicianBrief, MonthCounters):
    avg_hours_per_complete_day: float = 0.0


class MonthTotals(MonthCounters):
    headcount: int = 0


class MonthlyRosterResponse(BaseModel):
    month: str
    start: date
    end_exclusive: date
    totals: MonthTotals
    roster: list[TechnicianMonthSummary] = Field(default_factory=list)


# ═════════════════════════════════════════════════════════════════════
# Per-technician month grid
# ═════════════════════════════════════════════════════════════════════


class AttendanceDay(BaseModel):
    date: date
    row: Optional[AttendanceRecordResponse] = None


class UserMonthResponse(BaseModel):
    success: bool = True
    month: str
    start: date
    end_exclusive: date
    user_id: uuid.UUID
    days: list[AttendanceDay] = Field(default_factory=list)


# ═════════════════════════════════════════════════════════════════════
# Technician self view
# ═════════════════════════════════════════════════════════════════════


class TechnicianTodayResponse(BaseModel):
    today: date
    today_row: Optional[AttendanceRecordResponse] = None
    recent: list[AttendanceRecordResponse] = Field(default_factory=list)


# ═════════════════════════════════════════════════════════════════════
# Sweep
# ═════════════════════════════════════════════════════════════════════


class SweepSummary(BaseModel):
    """Counters returned to the scheduler (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = True
    today: date
    tenants_processed: int = 0
    candidates: int = 0
    auto_checked_out: int = 0
