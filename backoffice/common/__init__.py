"""Common module — shared utilities for the back office."""

from backoffice.common.audit import AuditTrail, create_audit_entry
from backoffice.common.constants import (
    ATTENDANCE_ADMIN_ROLES,
    BUSINESS_TZ,
    TIMEZONE,
    AttendanceDisplayStatus,
    TenantRole,
)
from backoffice.common.exceptions import (
    AppException,
    ConflictError,
    ForbiddenException,
    UnauthorizedException,
    ValidationException,
    register_exception_handlers,
)
from backoffice.common.types import UTCDateTime

__all__ = [
    # Audit
    "AuditTrail",
    "create_audit_entry",
    # Constants / Enums
    "AttendanceDisplayStatus",
    "TenantRole",
    "ATTENDANCE_ADMIN_ROLES",
    "BUSINESS_TZ",
    "TIMEZONE",
    # Exceptions
    "AppException",
    "ConflictError",
    "ForbiddenException",
    "UnauthorizedException",
    "ValidationException",
    "register_exception_handlers",
    # Types
    "UTCDateTime",
]
