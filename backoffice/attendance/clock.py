"""Business-time utilities — the single source of "now" for attendance.

The business runs on a fixed UTC+7 offset with no DST transitions, so every
conversion is a plain offset shift. Month helpers back the read endpoints'
``YYYY-MM`` parameter.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, Optional

from backoffice.common.constants import BUSINESS_TZ, MINUTES_PER_DAY, MONTH_FORMAT
from backoffice.common.exceptions import ValidationException

_MONTH_KEY_RE = re.compile(r"^\d{4}-\d{2}$")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Clock:
    """Wall clock pinned to the business timezone.

    ``now`` is injectable so request handlers and the sweep can share a
    frozen instant, and tests can pin time.
    """

    def __init__(self, now: Optional[Callable[[], datetime]] = None) -> None:
        self._now = now or _utcnow

    # ── Current instant ─────────────────────────────────────────────

    def now(self) -> datetime:
        """Current instant, expressed in the business timezone."""
        return self.to_business(self._now())

    def today(self) -> date:
        return self.now().date()

    def now_minute(self) -> int:
        return self.minute_of_day(self.now())

    # ── Conversions ─────────────────────────────────────────────────

    @staticmethod
    def to_business(instant: datetime) -> datetime:
        # Naive values come from stores that drop the offset; they are UTC.
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        return instant.astimezone(BUSINESS_TZ)

    @staticmethod
    def minute_of_day(instant: datetime) -> int:
        """Minute of the business day (0..1439) the instant falls in."""
        local = Clock.to_business(instant)
        return local.hour * 60 + local.minute

    @staticmethod
    def combine(day: date, minute_of_day: int) -> datetime:
        """Absolute instant for ``day`` at ``minute_of_day`` business time."""
        midnight = datetime.combine(day, time(0, 0), tzinfo=BUSINESS_TZ)
        return midnight + timedelta(minutes=minute_of_day)

    # ── Time-of-day text ────────────────────────────────────────────

    @staticmethod
    def parse_time_of_day(text: Optional[str]) -> int:
        """Parse ``HH:MM[:SS]`` into minute-of-day.

        Never raises: configuration rows are free text, and a segment that is
        missing or not a plain ASCII integer counts as 0. Seconds are accepted
        but ignored. The result is clamped to the last minute of the day.
        """
        parts = str(text or "").strip().split(":")

        def _segment(index: int) -> int:
            if index >= len(parts):
                return 0
            value = parts[index].strip()
            return int(value) if value.isascii() and value.isdigit() else 0

        return min(_segment(0) * 60 + _segment(1), MINUTES_PER_DAY - 1)

    @staticmethod
    def format_time_of_day(minute_of_day: int) -> str:
        minute_of_day %= MINUTES_PER_DAY
        return f"{minute_of_day // 60:02d}:{minute_of_day % 60:02d}:00"

    # ── Months ──────────────────────────────────────────────────────

    @staticmethod
    def month_key(day: date) -> str:
        return day.strftime(MONTH_FORMAT)

    def current_month_key(self) -> str:
        return self.month_key(self.today())

    @staticmethod
    def parse_month_key(value: str) -> str:
        """Validate a strict ``YYYY-MM`` key (month 01..12)."""
        trimmed = str(value or "").strip()
        if _MONTH_KEY_RE.match(trimmed):
            year, month = (int(v) for v in trimmed.split("-"))
            if year >= 1 and 1 <= month <= 12:
                return trimmed
        raise ValidationException(
            {"month": [f"'{value}' is not a valid month; expected YYYY-MM."]}
        )

    @staticmethod
    def month_range(month_key: str) -> tuple[date, date]:
        """``(first day, first day of next month)`` for a validated key."""
        year, month = (int(v) for v in month_key.split("-"))
        start = date(year, month, 1)
        if month == 12:
            end_exclusive = date(year + 1, 1, 1)
        else:
            end_exclusive = date(year, month + 1, 1)
        return start, end_exclusive

    @staticmethod
    def days_in_month(month_key: str) -> list[date]:
        start, end_exclusive = Clock.month_range(month_key)
        return [
            start + timedelta(days=offset)
            for offset in range((end_exclusive - start).days)
        ]


def get_clock() -> Clock:
    """FastAPI dependency: the process wall clock."""
    return Clock()
