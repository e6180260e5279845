"""Attendance module — clock, work windows, reconciliation, sweep and rosters."""

from backoffice.attendance.clock import Clock
from backoffice.attendance.reconciler import ReconcileResult, Reconciler
from backoffice.attendance.roster import RosterAggregator
from backoffice.attendance.sweep import Sweep
from backoffice.attendance.work_window import TenantWorkWindow, WorkWindow

__all__ = [
    "Clock",
    "ReconcileResult",
    "Reconciler",
    "RosterAggregator",
    "Sweep",
    "TenantWorkWindow",
    "WorkWindow",
]
