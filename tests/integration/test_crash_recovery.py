"""Chaos-style crash recovery tests."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
from sqlalchemy import select

from incremental_sitemaps.config import Settings
from incremental_sitemaps.models import JobExecution
from incremental_sitemaps.services.content_store import SessionScopeFactory
from incremental_sitemaps.services.engine import SitemapEngine, build_engine
from incremental_sitemaps.services.full_generation import TickAction
from incremental_sitemaps.services.job_recovery_service import JobRecoveryService
from incremental_sitemaps.services.scheduler import ManualTickSource
from incremental_sitemaps.services.sitemap_jobs import (
    FULL_GENERATION_TICK_JOB_ID,
    INCREMENTAL_SITEMAP_JOB_ID,
)

AddContent = Callable[..., Awaitable[Any]]


def _engine(
    session_factory: SessionScopeFactory,
    clock: Callable[[], datetime],
) -> SitemapEngine:
    return build_engine(
        Settings(
            DATABASE_URL="sqlite+aiosqlite:///:memory:",
            INCLUDE_PAGES=False,
            INCLUDE_TAXONOMIES=False,
            SITEMAP_CRON_ENABLED=False,
        ),
        session_factory=session_factory,
        tick_source=ManualTickSource(),
        clock=clock,
    )


@pytest.mark.asyncio
async def test_crash_recovery_marks_running_jobs_failed_and_logs_startup_summary(
    session_factory: SessionScopeFactory,
    clock: Callable[[], datetime],
    caplog: pytest.LogCaptureFixture,
) -> None:
    async with session_factory() as session:
        session.add(
            JobExecution(
                job_id=INCREMENTAL_SITEMAP_JOB_ID,
                job_name="Incremental Sitemap Update",
                started_at=datetime.now(UTC),
                status="running",
                documents_processed=4,
                checkpoint_data={"stage": "generating"},
            )
        )

    recovery_service = JobRecoveryService(session_factory=session_factory)
    result = await recovery_service.handle_startup_recovery(auto_resume=False)

    assert result.detected_count == 1
    assert result.detected_jobs[0].job_id == INCREMENTAL_SITEMAP_JOB_ID
    assert result.detected_jobs[0].documents_processed == 4
    assert result.auto_resumed == 0

    async with session_factory() as session:
        executions = (await session.execute(select(JobExecution))).scalars().all()

    assert len(executions) == 1
    assert executions[0].status == "failed"
    assert executions[0].error_message == (
        "Recovered unfinished job after process interruption"
    )
    assert executions[0].finished_at is not None
    assert executions[0].checkpoint_data is not None
    assert executions[0].checkpoint_data["stage"] == "startup_recovery"
    assert "interrupted_at" in executions[0].checkpoint_data

    from incremental_sitemaps import main

    caplog.set_level("INFO", logger="incremental_sitemaps.lifecycle")

    await main._log_startup_summary(
        _engine(session_factory, clock),
        interrupted_jobs_detected=1,
        auto_resumed_jobs=0,
        cron_enabled=False,
    )

    startup_records = [
        record
        for record in caplog.records
        if record.name == "incremental_sitemaps.lifecycle"
        and record.msg == "startup_recovery_summary"
    ]
    assert len(startup_records) == 1
    summary = startup_records[0]
    assert getattr(summary, "interrupted_jobs_detected", None) == 1
    assert getattr(summary, "auto_resumed_jobs", None) == 0
    assert getattr(summary, "document_count", None) == 0
    assert getattr(summary, "phase", None) == "idle"
    assert getattr(summary, "cron_enabled", None) is False


@pytest.mark.asyncio
async def test_startup_recovery_resumes_halted_rebuild_when_enabled(
    session_factory: SessionScopeFactory,
    clock: Callable[[], datetime],
    add_content: AddContent,
) -> None:
    await add_content(
        "https://example.com/posts/hello/",
        datetime(2024, 3, 1, 9, 0, tzinfo=UTC),
    )
    engine = _engine(session_factory, clock)
    await engine.start_full_generation()
    assert (await engine.tick()).action is TickAction.YEAR_PROCESSED

    # A shutdown signal halts the walk at the next unit boundary.
    engine.request_shutdown()
    assert (await engine.tick()).action is TickAction.HALTED

    restarted = _engine(session_factory, clock)
    halted_state = await restarted.full_generation.get_state()
    assert halted_state.is_halted
    assert halted_state.pending_months == [3]

    skipped = await restarted.recovery.handle_startup_recovery(auto_resume=False)
    assert skipped.auto_resumed == 0
    assert (await restarted.full_generation.get_state()).in_progress is False

    resumed = await restarted.recovery.handle_startup_recovery(auto_resume=True)
    assert resumed.auto_resumed == 1

    state = await restarted.full_generation.get_state()
    assert state.in_progress is True
    assert state.pending_months == [3]

    month_result = await restarted.tick()
    day_result = await restarted.tick()

    assert month_result.action is TickAction.MONTH_PROCESSED
    assert day_result.action is TickAction.DAY_PROCESSED
    assert day_result.completed is True
    assert len(await restarted.list_documents()) == 1


@pytest.mark.asyncio
async def test_shutdown_checkpoints_and_session_summary(
    session_factory: SessionScopeFactory,
) -> None:
    session_started_at = datetime.now(UTC) - timedelta(minutes=5)
    async with session_factory() as session:
        session.add_all(
            [
                JobExecution(
                    job_id=INCREMENTAL_SITEMAP_JOB_ID,
                    job_name="Incremental Sitemap Update",
                    started_at=session_started_at + timedelta(minutes=1),
                    finished_at=session_started_at + timedelta(minutes=2),
                    status="success",
                    documents_processed=3,
                ),
                JobExecution(
                    job_id=FULL_GENERATION_TICK_JOB_ID,
                    job_name="Full Sitemap Generation Tick",
                    started_at=session_started_at + timedelta(minutes=3),
                    status="running",
                    documents_processed=1,
                ),
                JobExecution(
                    job_id=INCREMENTAL_SITEMAP_JOB_ID,
                    job_name="Incremental Sitemap Update",
                    started_at=session_started_at - timedelta(hours=1),
                    finished_at=session_started_at - timedelta(minutes=59),
                    status="success",
                    documents_processed=50,
                ),
            ]
        )

    recovery_service = JobRecoveryService(session_factory=session_factory)

    assert await recovery_service.persist_shutdown_checkpoints() == 1
    assert await recovery_service.persist_shutdown_checkpoints() == 0

    summary = await recovery_service.summarize_session(
        session_started_at=session_started_at
    )
    assert summary.jobs_completed == 1
    assert summary.jobs_interrupted == 1
    assert summary.documents_processed == 4

    async with session_factory() as session:
        interrupted = await session.scalar(
            select(JobExecution).where(
                JobExecution.job_id == FULL_GENERATION_TICK_JOB_ID
            )
        )
    assert interrupted is not None
    assert interrupted.status == "failed"
    assert interrupted.checkpoint_data is not None
    assert interrupted.checkpoint_data["stage"] == "shutdown"
