"""Attendance ORM models: WorkingHoursConfig, AttendanceRecord."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from backoffice.common.types import UTCDateTime
from backoffice.database import Base


class WorkingHoursConfig(Base):
    """Per-tenant work window. Times are free text ``HH:MM[:SS]`` in business time."""

    __tablename__ = "working_hours_config"

    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("tenants.id", ondelete="CASCADE"),
        primary_key=True,
    )
    work_start_time: Mapped[Optional[str]] = mapped_column(sa.String(16))
    work_end_time: Mapped[Optional[str]] = mapped_column(sa.String(16))
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )


class AttendanceRecord(Base):
    __tablename__ = "daily_attendance"
    __table_args__ = (
        sa.UniqueConstraint(
            "tenant_id", "technician_id", "date", name="uq_daily_attendance_tenant_tech_date"
        ),
        sa.Index("ix_daily_attendance_tenant_date", "tenant_id", "date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
    )
    technician_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    clock_in_time: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime()
    )
    clock_out_time: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime()
    )
    # Legacy mirrors of clock_in_time / clock_out_time
    work_start_time: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime()
    )
    work_end_time: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime()
    )
    total_work_hours: Mapped[Optional[float]] = mapped_column(sa.Float)
    is_late: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    is_early_leave: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    is_auto_checkout: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    notes: Mapped[Optional[str]] = mapped_column(sa.Text)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
