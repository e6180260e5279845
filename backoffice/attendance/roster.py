"""Monthly roster aggregation over reconciled attendance records."""

from __future__ import annotations

import uuid
from typing import Iterable, Mapping, Sequence

from backoffice.attendance.clock import Clock
from backoffice.attendance.reconciler import round2
from backoffice.attendance.schemas import (
    AttendanceDay,
    AttendanceRecordResponse,
    MonthTotals,
    TechnicianMonthSummary,
)
from backoffice.people.models import Technician

_COUNTER_FIELDS = (
    "days_clocked_in",
    "days_complete",
    "missing_clock_out",
    "late_count",
    "early_leave_count",
    "auto_checkout_count",
)


class RosterAggregator:
    """Folds reconciled daily records into per-technician and tenant totals.

    Inputs must already be reconciled: an open record counted as
    ``missing_clock_out`` is assumed to be genuinely still open.
    """

    @staticmethod
    def summarize_technician(
        technician: Technician,
        records: Iterable[AttendanceRecordResponse],
    ) -> TechnicianMonthSummary:
        days_clocked_in = days_complete = missing_clock_out = 0
        late_count = early_leave_count = auto_checkout_count = 0
        total_hours = 0.0

        for r in records:
            if r.clock_in_time is not None:
                days_clocked_in += 1
                if r.clock_out_time is not None:
                    days_complete += 1
                else:
                    missing_clock_out += 1
            if r.total_work_hours is not None:
                total_hours += r.total_work_hours
            if r.is_late:
                late_count += 1
            if r.is_early_leave:
                early_leave_count += 1
            if r.is_auto_checkout:
                auto_checkout_count += 1

        avg_hours = (round2(total_hours / days_complete) or 0.0) if days_complete else 0.0

        return TechnicianMonthSummary(
            technician_record_id=technician.id,
            user_id=technician.user_id,
            full_name=technician.full_name,
            email=technician.email,
            days_clocked_in=days_clocked_in,
            days_complete=days_complete,
            missing_clock_out=missing_clock_out,
            total_hours=round2(total_hours) or 0.0,
            avg_hours_per_complete_day=avg_hours,
            late_count=late_count,
            early_leave_count=early_leave_count,
            auto_checkout_count=auto_checkout_count,
        )

    @staticmethod
    def summarize(
        technicians: Sequence[Technician],
        records_by_user: Mapping[uuid.UUID, Sequence[AttendanceRecordResponse]],
    ) -> tuple[list[TechnicianMonthSummary], MonthTotals]:
        """Per-technician rows in roster order, plus tenant-wide totals."""
        roster = [
            RosterAggregator.summarize_technician(
                t,
                records_by_user.get(t.user_id, ()) if t.user_id is not None else (),
            )
            for t in technicians
        ]
        return roster, RosterAggregator.totals(roster)

    @staticmethod
    def totals(roster: Sequence[TechnicianMonthSummary]) -> MonthTotals:
        totals = MonthTotals(headcount=len(roster))
        total_hours = 0.0
        for row in roster:
            for name in _COUNTER_FIELDS:
                setattr(totals, name, getattr(totals, name) + getattr(row, name))
            total_hours += row.total_hours
        # Re-round to shed accumulated float drift
        totals.total_hours = round2(total_hours) or 0.0
        return totals

    @staticmethod
    def day_grid(
        month_key: str,
        records: Iterable[AttendanceRecordResponse],
    ) -> list[AttendanceDay]:
        """One entry per calendar day of the month; ``row`` is None where nothing was recorded."""
        by_date = {r.date: r for r in records}
        return [
            AttendanceDay(date=day, row=by_date.get(day))
            for day in Clock.days_in_month(month_key)
        ]
