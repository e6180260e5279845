"""Auto-checkout sweep tests — tenant gating, lookback, idempotence, races.

Runs the Sweep against the in-memory SQLite database through its own
session factory, the same way the cron endpoint and CLI do.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from backoffice.attendance.models import AttendanceRecord
from backoffice.attendance.reconciler import ReconcileResult, Reconciler
from backoffice.attendance.repository import AttendanceRepository
from backoffice.attendance.sweep import Sweep
from backoffice.attendance.work_window import WorkWindow
from backoffice.common.audit import AuditTrail
from tests.conftest import (
    TODAY,
    TestSessionFactory,
    local,
    make_record,
    make_technician,
    make_tenant,
    make_working_hours,
    reload_record,
)

YESTERDAY = TODAY - timedelta(days=1)


async def _run(db, *, at_minute: int, **kwargs):
    windows = await AttendanceRepository.list_tenant_windows(db)
    return await Sweep(TestSessionFactory, **kwargs).run(
        windows, today=TODAY, now_minute=at_minute,
    )


# ── Scenario: end of day passed ─────────────────────────────────────


async def test_sweep_closes_open_rows_within_lookback(db, tenant):
    tech = await make_technician(db, tenant.id)
    today_row = await make_record(db, tenant.id, tech.user_id, TODAY, clock_in=local(TODAY, 9, 0))
    old_row = await make_record(
        db, tenant.id, tech.user_id, YESTERDAY, clock_in=local(YESTERDAY, 8, 50),
    )
    stale = TODAY - timedelta(days=8)
    outside = await make_record(db, tenant.id, tech.user_id, stale, clock_in=local(stale, 9, 0))

    summary = await _run(db, at_minute=18 * 60 + 30)

    assert summary.tenants_processed == 1
    assert summary.candidates == 2
    assert summary.auto_checked_out == 2

    closed = await reload_record(old_row.id)
    assert closed.clock_out_time == local(YESTERDAY, 18, 0)
    assert closed.is_auto_checkout is True
    assert closed.is_late is False
    assert closed.is_early_leave is False
    assert closed.total_work_hours == 9.17
    assert closed.work_end_time == closed.clock_out_time

    assert (await reload_record(today_row.id)).clock_out_time == local(TODAY, 18, 0)
    assert (await reload_record(outside.id)).clock_out_time is None


async def test_second_run_finds_no_candidates(db, tenant):
    tech = await make_technician(db, tenant.id)
    await make_record(db, tenant.id, tech.user_id, TODAY, clock_in=local(TODAY, 9, 0))

    first = await _run(db, at_minute=18 * 60 + 30)
    second = await _run(db, at_minute=18 * 60 + 31)

    assert first.auto_checked_out == 1
    assert second.tenants_processed == 1
    assert second.candidates == 0
    assert second.auto_checked_out == 0


async def test_tenant_inside_working_day_is_skipped(db, tenant):
    tech = await make_technician(db, tenant.id)
    row = await make_record(
        db, tenant.id, tech.user_id, YESTERDAY, clock_in=local(YESTERDAY, 9, 0),
    )

    summary = await _run(db, at_minute=17 * 60)

    assert summary.tenants_processed == 0
    assert summary.candidates == 0
    assert (await reload_record(row.id)).clock_out_time is None


async def test_tenants_use_their_own_windows(db):
    early = await make_tenant(db, name="Early Shift Co")
    await make_working_hours(db, early.id, start="07:00", end="16:00")
    late = await make_tenant(db, name="Late Shift Co")
    await make_working_hours(db, late.id, start="10:00", end="20:00")
    unconfigured = await make_tenant(db, name="Defaults Co")
    inactive = await make_tenant(db, name="Dormant Co", is_active=False)

    rows = {}
    for t in (early, late, unconfigured, inactive):
        tech = await make_technician(db, t.id)
        rows[t.id] = await make_record(db, t.id, tech.user_id, TODAY, clock_in=local(TODAY, 9, 0))

    # 18:30: past 16:00 and the 18:00 default, before 20:00
    summary = await _run(db, at_minute=18 * 60 + 30)

    assert summary.tenants_processed == 2
    assert summary.auto_checked_out == 2
    assert (await reload_record(rows[early.id].id)).clock_out_time == local(TODAY, 16, 0)
    assert (await reload_record(rows[unconfigured.id].id)).clock_out_time == local(TODAY, 18, 0)
    assert (await reload_record(rows[late.id].id)).clock_out_time is None
    assert (await reload_record(rows[inactive.id].id)).clock_out_time is None


async def test_sweep_logs_tenant_end_of_day(db, tenant, caplog):
    caplog.set_level(logging.DEBUG, logger="backoffice.attendance.sweep")

    await _run(db, at_minute=19 * 60)

    assert f"tenant {tenant.id} past end of day (18:00:00)" in caplog.text


async def test_dry_run_counts_without_writing(db, tenant):
    tech = await make_technician(db, tenant.id)
    row = await make_record(db, tenant.id, tech.user_id, TODAY, clock_in=local(TODAY, 9, 0))

    summary = await _run(db, at_minute=19 * 60, dry_run=True)

    assert summary.candidates == 1
    assert summary.auto_checked_out == 0
    assert (await reload_record(row.id)).clock_out_time is None


async def test_force_close_writes_audit_entry(db, tenant):
    tech = await make_technician(db, tenant.id)
    row = await make_record(db, tenant.id, tech.user_id, TODAY, clock_in=local(TODAY, 9, 0))

    await _run(db, at_minute=19 * 60)

    async with TestSessionFactory() as session:
        entries = (await session.execute(select(AuditTrail))).scalars().all()
    assert len(entries) == 1
    assert entries[0].action == "auto_checkout"
    assert entries[0].entity_id == row.id
    assert entries[0].actor_id is None


# ── Failure isolation ───────────────────────────────────────────────


async def test_failed_write_does_not_stop_the_sweep(db, tenant, monkeypatch):
    first_tech = await make_technician(db, tenant.id, full_name="Andi Wijaya")
    second_tech = await make_technician(db, tenant.id, full_name="Citra Lestari")
    failing = await make_record(
        db, tenant.id, first_tech.user_id, YESTERDAY, clock_in=local(YESTERDAY, 9, 0),
    )
    healthy = await make_record(
        db, tenant.id, second_tech.user_id, TODAY, clock_in=local(TODAY, 9, 0),
    )

    original = AttendanceRepository.save_reconciled

    async def _flaky(session, observed, result):
        if observed.id == failing.id:
            raise SQLAlchemyError("simulated write failure")
        return await original(session, observed, result)

    monkeypatch.setattr(AttendanceRepository, "save_reconciled", _flaky)

    summary = await _run(db, at_minute=19 * 60)

    assert summary.candidates == 2
    assert summary.auto_checked_out == 1
    assert (await reload_record(failing.id)).clock_out_time is None
    assert (await reload_record(healthy.id)).clock_out_time == local(TODAY, 18, 0)


async def test_conditional_write_loses_to_concurrent_clock_out(db, tenant):
    """A technician clock-out landing after the read is never overwritten."""
    tech = await make_technician(db, tenant.id)
    row = await make_record(db, tenant.id, tech.user_id, TODAY, clock_in=local(TODAY, 9, 0))
    window = WorkWindow(start_minute=540, end_minute=1080)

    async with TestSessionFactory() as session:
        (observed,) = await AttendanceRepository.list_open(
            session, tenant.id, since=YESTERDAY, until=TODAY,
        )

    # The technician clocks out at 18:05 through the app
    async with TestSessionFactory() as session:
        await session.execute(
            update(AttendanceRecord)
            .where(AttendanceRecord.id == row.id)
            .values(clock_out_time=local(TODAY, 18, 5))
        )
        await session.commit()

    async with TestSessionFactory() as session:
        result = ReconcileResult(Reconciler.force_close(observed, window), True, True)
        saved = await AttendanceRepository.save_reconciled(session, observed, result)
        await session.commit()

    assert saved is False
    stored = await reload_record(row.id)
    assert stored.clock_out_time == local(TODAY, 18, 5)
    assert stored.is_auto_checkout is False
