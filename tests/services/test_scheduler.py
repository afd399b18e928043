"""Tests for tick sources: the APScheduler service and the manual source."""

from __future__ import annotations

from pathlib import Path

import pytest

from incremental_sitemaps.services.scheduler import ManualTickSource, SchedulerService


async def _noop_job() -> None:
    return None


@pytest.mark.asyncio
async def test_scheduler_service_schedules_and_unschedules_interval_jobs(
    tmp_path: Path,
) -> None:
    scheduler = SchedulerService(
        enabled=True,
        jobstore_url=f"sqlite:///{tmp_path / 'scheduler-jobs.sqlite'}",
    )

    await scheduler.start()
    try:
        scheduler.schedule(job_id="interval-job", func=_noop_job, seconds=60)
        scheduler.schedule(job_id="interval-job", func=_noop_job, seconds=120)

        assert scheduler.is_scheduled("interval-job")
        assert scheduler.next_run_time("interval-job") is not None

        assert scheduler.unschedule("interval-job") is True
        assert scheduler.unschedule("interval-job") is False
        assert scheduler.next_run_time("interval-job") is None
    finally:
        await scheduler.shutdown()


@pytest.mark.asyncio
async def test_scheduler_service_rejects_operations_when_disabled(
    tmp_path: Path,
) -> None:
    scheduler = SchedulerService(
        enabled=False,
        jobstore_url=f"sqlite:///{tmp_path / 'scheduler-disabled.sqlite'}",
    )

    await scheduler.start()

    assert scheduler.enabled is False
    assert scheduler.is_scheduled("interval-job") is False
    assert scheduler.unschedule("interval-job") is False
    with pytest.raises(RuntimeError, match="disabled"):
        scheduler.schedule(job_id="interval-job", func=_noop_job, seconds=60)


@pytest.mark.asyncio
async def test_scheduler_service_rejects_non_positive_interval(
    tmp_path: Path,
) -> None:
    scheduler = SchedulerService(
        enabled=True,
        jobstore_url=f"sqlite:///{tmp_path / 'scheduler-interval.sqlite'}",
    )

    with pytest.raises(ValueError, match="greater than zero"):
        scheduler.schedule(job_id="interval-job", func=_noop_job, seconds=0)


@pytest.mark.asyncio
async def test_manual_tick_source_fires_sync_and_async_jobs() -> None:
    calls: list[str] = []

    async def async_job() -> None:
        calls.append("async")

    def sync_job() -> None:
        calls.append("sync")

    tick_source = ManualTickSource()
    tick_source.schedule(job_id="async-job", func=async_job, seconds=300)
    tick_source.schedule(job_id="sync-job", func=sync_job, seconds=60)

    await tick_source.fire("async-job")
    await tick_source.fire("sync-job")

    assert calls == ["async", "sync"]
    assert tick_source.interval_for("sync-job") == 60
    assert tick_source.next_run_time("sync-job") is None
    assert tick_source.unschedule("sync-job") is True
    with pytest.raises(LookupError):
        await tick_source.fire("sync-job")
    with pytest.raises(ValueError):
        tick_source.schedule(job_id="bad-job", func=sync_job, seconds=0)
