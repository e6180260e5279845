"""Attendance reconciler — derives canonical facts for one technician-day.

Stored ``is_late`` / ``is_early_leave`` / ``total_work_hours`` are a cache of
values computed from ``(clock_in_time, clock_out_time, WorkWindow)``. Every read
path and the sweep run records through here and treat any disagreement as a
repair to persist.

A record is:
  - open    — clocked in, not clocked out
  - closed  — both timestamps present (terminal; never reopened)

An open record whose business day has ended is force-closed at the window's
end time and flagged ``is_auto_checkout``.
"""

from __future__ import annotations

import math
from datetime import date, datetime
from typing import NamedTuple, Optional

from backoffice.attendance.clock import Clock
from backoffice.attendance.schemas import AttendanceRecordResponse
from backoffice.attendance.work_window import WorkWindow
from backoffice.common.constants import HOURS_TOLERANCE


def round2(value: float) -> Optional[float]:
    """Round to 2 decimals; NaN/Infinity become None."""
    if value is None or not math.isfinite(value):
        return None
    return round(value, 2)


def hours_between(start: datetime, end: datetime) -> Optional[float]:
    try:
        seconds = (end - start).total_seconds()
    except (TypeError, OverflowError):
        return None
    return round2(seconds / 3600)


class ReconcileResult(NamedTuple):
    record: AttendanceRecordResponse
    dirty: bool
    force_closed: bool


class Reconciler:
    """Pure attendance state machine; callers own persistence."""

    @staticmethod
    def should_force_close(
        record: AttendanceRecordResponse,
        today: date,
        now_minute: int,
        end_minute: int,
    ) -> bool:
        """Past days always close; today closes once the end time has passed."""
        if not record.is_open:
            return False
        if record.date < today:
            return True
        return record.date == today and now_minute >= end_minute

    @staticmethod
    def force_close(
        record: AttendanceRecordResponse,
        window: WorkWindow,
    ) -> AttendanceRecordResponse:
        """Close an open record at the window's end time on its own date."""
        clock_in = record.clock_in_time
        clock_out = Clock.combine(record.date, window.end_minute)
        return record.model_copy(
            update={
                "clock_out_time": clock_out,
                "work_start_time": clock_in,
                "work_end_time": clock_out,
                "is_late": Clock.minute_of_day(clock_in) > window.start_minute,
                # A synthetic clock-out is never an early leave
                "is_early_leave": False,
                "is_auto_checkout": True,
                "total_work_hours": hours_between(clock_in, clock_out),
            }
        )

    @staticmethod
    def recompute(
        record: AttendanceRecordResponse,
        window: WorkWindow,
    ) -> AttendanceRecordResponse:
        """Re-derive flags and hours without touching the timestamps."""
        clock_in = record.clock_in_time
        clock_out = record.clock_out_time

        is_late = clock_in is not None and Clock.minute_of_day(clock_in) > window.start_minute
        is_early_leave = (
            clock_out is not None and Clock.minute_of_day(clock_out) < window.end_minute
        )
        # No running total for open days
        total_hours = (
            hours_between(clock_in, clock_out)
            if clock_in is not None and clock_out is not None
            else None
        )
        return record.model_copy(
            update={
                "is_late": is_late,
                "is_early_leave": is_early_leave,
                "total_work_hours": total_hours,
            }
        )

    @staticmethod
    def is_dirty(
        stored: AttendanceRecordResponse,
        computed: AttendanceRecordResponse,
    ) -> bool:
        """Whether ``computed`` differs from ``stored`` enough to warrant a write."""
        if stored.clock_out_time != computed.clock_out_time:
            return True
        if (
            bool(stored.is_late) != bool(computed.is_late)
            or bool(stored.is_early_leave) != bool(computed.is_early_leave)
            or bool(stored.is_auto_checkout) != bool(computed.is_auto_checkout)
        ):
            return True

        stored_hours = stored.total_work_hours
        computed_hours = computed.total_work_hours
        if stored_hours is None or computed_hours is None:
            return (stored_hours is None) != (computed_hours is None)
        if not math.isfinite(stored_hours):
            return True
        return abs(stored_hours - computed_hours) > HOURS_TOLERANCE

    @staticmethod
    def reconcile_one(
        record: AttendanceRecordResponse,
        window: WorkWindow,
        today: date,
        now_minute: int,
    ) -> ReconcileResult:
        """Force-close or recompute ``record`` and report whether it changed."""
        if Reconciler.should_force_close(record, today, now_minute, window.end_minute):
            reconciled = Reconciler.force_close(record, window)
            return ReconcileResult(reconciled, True, True)

        reconciled = Reconciler.recompute(record, window)
        return ReconcileResult(reconciled, Reconciler.is_dirty(record, reconciled), False)
