"""Per-tenant work window resolution."""

from __future__ import annotations

import uuid
from typing import Optional

from pydantic import BaseModel

from backoffice.attendance.clock import Clock
from backoffice.attendance.models import WorkingHoursConfig
from backoffice.config import settings


class WorkWindow(BaseModel):
    """Effective start/end of a tenant's working day, as business minute-of-day."""

    start_minute: int
    end_minute: int

    @classmethod
    def resolve(
        cls,
        raw_start: Optional[str],
        raw_end: Optional[str],
    ) -> WorkWindow:
        """Parse configured times, falling back to the defaults when blank or absent."""
        start_text = (raw_start or "").strip() or settings.DEFAULT_WORK_START_TIME
        end_text = (raw_end or "").strip() or settings.DEFAULT_WORK_END_TIME
        return cls(
            start_minute=Clock.parse_time_of_day(start_text),
            end_minute=Clock.parse_time_of_day(end_text),
        )

    @classmethod
    def from_config(cls, config: Optional[WorkingHoursConfig]) -> WorkWindow:
        if config is None:
            return cls.resolve(None, None)
        return cls.resolve(config.work_start_time, config.work_end_time)


class TenantWorkWindow(BaseModel):
    """A tenant paired with its resolved window — one unit of sweep work."""

    tenant_id: Optional[uuid.UUID] = None
    window: WorkWindow
