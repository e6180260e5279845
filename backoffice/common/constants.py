"""Enums and constants for the back office — matching PostgreSQL ENUM types."""

from __future__ import annotations

import enum
from datetime import timedelta, timezone


# ── Tenancy / Roles ─────────────────────────────────────────────────

class TenantRole(str, enum.Enum):
    owner = "owner"
    admin_finance = "admin_finance"
    admin_logistic = "admin_logistic"
    tech_head = "tech_head"
    technician = "technician"


# Roles allowed to read tenant-wide attendance views
ATTENDANCE_ADMIN_ROLES: tuple[TenantRole, ...] = (
    TenantRole.owner,
    TenantRole.admin_finance,
    TenantRole.admin_logistic,
    TenantRole.tech_head,
)


# ── Attendance ──────────────────────────────────────────────────────

class AttendanceDisplayStatus(str, enum.Enum):
    not_activated = "not_activated"
    absent = "absent"
    auto_checkout = "auto_checkout"
    late_and_early_leave = "late_and_early_leave"
    late = "late"
    early_leave = "early_leave"
    on_time = "on_time"


# ── Business time ───────────────────────────────────────────────────

# Single fixed offset, no DST transitions.
TIMEZONE = "Asia/Jakarta"
BUSINESS_TZ = timezone(timedelta(hours=7), TIMEZONE)

MINUTES_PER_DAY = 24 * 60
HOURS_TOLERANCE = 0.01
MONTH_FORMAT = "%Y-%m"
