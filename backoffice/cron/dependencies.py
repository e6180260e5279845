"""Scheduler trigger authorization."""

from __future__ import annotations

import secrets
from typing import Optional

from fastapi import Query, Request

from backoffice.common.exceptions import UnauthorizedException
from backoffice.config import settings


async def require_scheduler(
    request: Request,
    secret: Optional[str] = Query(None, description="Shared cron secret"),
) -> None:
    """Accept the platform scheduler's header, or a matching shared secret."""
    if request.headers.get(settings.CRON_TRUSTED_HEADER):
        return
    if settings.CRON_SECRET and secret and secrets.compare_digest(secret, settings.CRON_SECRET):
        return
    raise UnauthorizedException()
