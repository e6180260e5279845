"""Cron router — scheduler-triggered auto-checkout sweep."""


from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backoffice.attendance.clock import Clock, get_clock
from backoffice.attendance.repository import AttendanceRepository
from backoffice.attendance.schemas import SweepSummary
from backoffice.attendance.sweep import Sweep
from backoffice.common.rate_limit import limiter
from backoffice.cron.dependencies import require_scheduler
from backoffice.database import get_db, get_session_factory

router = APIRouter(prefix="", tags=["cron"])


# ── GET /auto-checkout ──────────────────────────────────────────────

@router.get(
    "/auto-checkout",
    response_model=SweepSummary,
    response_model_by_alias=True,
    dependencies=[Depends(require_scheduler)],
)
@limiter.limit("10/minute")
async def auto_checkout(
    request: Request,
    clock: Clock = Depends(get_clock),
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """Force-close open attendance rows for every tenant past its end of day."""
    tenant_windows = await AttendanceRepository.list_tenant_windows(db)
    return await Sweep(session_factory).run(
        tenant_windows,
        today=clock.today(),
        now_minute=clock.now_minute(),
    )
