"""Scheduled sitemap jobs with overlap protection and execution history."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from time import perf_counter
from typing import Any
from uuid import UUID

from incremental_sitemaps.models import JobExecution
from incremental_sitemaps.services.content_store import SessionScopeFactory
from incremental_sitemaps.services.full_generation import (
    FullGenerationScheduler,
    TickAction,
)
from incremental_sitemaps.services.incremental_runner import IncrementalRunner

_job_logger = logging.getLogger("incremental_sitemaps.scheduler.jobs")

_sitemap_jobs_service: SitemapJobsService | None = None

INCREMENTAL_SITEMAP_JOB_ID = "sitemap-incremental-job"
FULL_GENERATION_TICK_JOB_ID = "sitemap-full-generation-tick-job"

DEFAULT_JOB_TIMEOUT_SECONDS = 900


@dataclass(slots=True)
class JobExecutionMetrics:
    """In-memory runtime metrics for one scheduled job."""

    job_id: str
    name: str
    total_runs: int = 0
    successful_runs: int = 0
    failed_runs: int = 0
    overlap_skips: int = 0
    running: bool = False
    last_started_at: datetime | None = None
    last_finished_at: datetime | None = None
    last_duration_ms: float | None = None
    last_error: str | None = None


@dataclass(slots=True, frozen=True)
class JobRunResult:
    """Normalized result metadata persisted to job execution history."""

    summary: dict[str, Any]
    documents_processed: int
    checkpoint_data: dict[str, Any] | None = None


class _OverlapProtectedRunner:
    """Execute jobs with overlap protection and per-job metrics."""

    def __init__(
        self,
        *,
        session_factory: SessionScopeFactory,
        timeout_seconds: float,
    ) -> None:
        self._session_factory = session_factory
        self._timeout_seconds = timeout_seconds
        self._locks: dict[str, asyncio.Lock] = {}
        self._metrics: dict[str, JobExecutionMetrics] = {}

    def register(self, *, job_id: str, name: str) -> None:
        self._locks.setdefault(job_id, asyncio.Lock())
        self._metrics.setdefault(job_id, JobExecutionMetrics(job_id=job_id, name=name))

    def snapshot(self) -> list[JobExecutionMetrics]:
        return [
            JobExecutionMetrics(
                job_id=metrics.job_id,
                name=metrics.name,
                total_runs=metrics.total_runs,
                successful_runs=metrics.successful_runs,
                failed_runs=metrics.failed_runs,
                overlap_skips=metrics.overlap_skips,
                running=metrics.running,
                last_started_at=metrics.last_started_at,
                last_finished_at=metrics.last_finished_at,
                last_duration_ms=metrics.last_duration_ms,
                last_error=metrics.last_error,
            )
            for metrics in self._metrics.values()
        ]

    async def run(
        self,
        *,
        job_id: str,
        run: Callable[[UUID], Awaitable[JobRunResult]],
    ) -> JobRunResult | None:
        lock = self._locks[job_id]
        metrics = self._metrics[job_id]
        if lock.locked():
            metrics.overlap_skips += 1
            _job_logger.warning(
                "scheduler_job_overlap_skipped", extra={"job_id": job_id}
            )
            return None

        async with lock:
            metrics.total_runs += 1
            metrics.running = True
            metrics.last_started_at = datetime.now(UTC)
            started_at = perf_counter()
            execution_id = await self._start_job_execution(
                job_id=job_id, metrics=metrics
            )

            try:
                async with asyncio.timeout(self._timeout_seconds):
                    job_result = await run(execution_id)
                metrics.successful_runs += 1
                metrics.last_error = None
                _job_logger.info(
                    "sitemap_job_completed",
                    extra={"job_id": job_id, **job_result.summary},
                )
                await self._finish_job_execution(
                    execution_id=execution_id,
                    status="success",
                    documents_processed=job_result.documents_processed,
                    checkpoint_data=job_result.checkpoint_data,
                    error_message=None,
                )
                return job_result
            except Exception as error:
                metrics.failed_runs += 1
                metrics.last_error = str(error)
                _job_logger.exception(
                    "sitemap_job_failed",
                    extra={"job_id": job_id},
                )
                await self._finish_job_execution(
                    execution_id=execution_id,
                    status="failed",
                    documents_processed=None,
                    checkpoint_data=None,
                    error_message=str(error),
                )
                return None
            finally:
                metrics.running = False
                metrics.last_finished_at = datetime.now(UTC)
                metrics.last_duration_ms = round(
                    (perf_counter() - started_at) * 1000, 2
                )

    async def _start_job_execution(
        self,
        *,
        job_id: str,
        metrics: JobExecutionMetrics,
    ) -> UUID:
        execution = JobExecution(
            job_id=job_id,
            job_name=metrics.name,
            status="running",
            started_at=datetime.now(UTC),
            checkpoint_data={"stage": "started", "job_id": job_id},
        )
        async with self._session_factory() as session:
            session.add(execution)
            await session.flush()
            return execution.id

    async def _finish_job_execution(
        self,
        *,
        execution_id: UUID,
        status: str,
        documents_processed: int | None,
        checkpoint_data: dict[str, Any] | None,
        error_message: str | None,
    ) -> None:
        async with self._session_factory() as session:
            execution = await session.get(JobExecution, execution_id)
            if execution is None:
                return
            execution.status = status
            execution.finished_at = datetime.now(UTC)
            if documents_processed is not None:
                execution.documents_processed = documents_processed
            if checkpoint_data is not None:
                execution.checkpoint_data = checkpoint_data
            execution.error_message = error_message


class SitemapJobsService:
    """Run the incremental pass and the full-rebuild tick as tracked jobs."""

    def __init__(
        self,
        *,
        incremental_runner: IncrementalRunner,
        full_generation: FullGenerationScheduler,
        session_factory: SessionScopeFactory | None = None,
        stop_event: asyncio.Event | None = None,
        timeout_seconds: float = DEFAULT_JOB_TIMEOUT_SECONDS,
    ) -> None:
        if session_factory is None:
            from incremental_sitemaps.database import session_scope

            session_factory = session_scope

        self._incremental_runner = incremental_runner
        self._full_generation = full_generation
        self._stop_event = stop_event
        self._runner = _OverlapProtectedRunner(
            session_factory=session_factory,
            timeout_seconds=timeout_seconds,
        )
        self._runner.register(
            job_id=INCREMENTAL_SITEMAP_JOB_ID, name="Incremental Sitemap Job"
        )
        self._runner.register(
            job_id=FULL_GENERATION_TICK_JOB_ID, name="Full Generation Tick Job"
        )

    def monitoring_snapshot(self) -> list[JobExecutionMetrics]:
        return self._runner.snapshot()

    async def run_incremental_job(self) -> JobRunResult | None:
        return await self._runner.run(
            job_id=INCREMENTAL_SITEMAP_JOB_ID,
            run=self._run_incremental_pass,
        )

    async def run_full_generation_tick_job(self) -> JobRunResult | None:
        return await self._runner.run(
            job_id=FULL_GENERATION_TICK_JOB_ID,
            run=self._run_full_generation_tick,
        )

    async def _run_incremental_pass(self, execution_id: UUID) -> JobRunResult:
        result = await self._incremental_runner.run_incremental_pass(self._stop_event)
        summary = result.summary()
        if result.skipped:
            stage = "skipped"
        elif result.stopped:
            stage = "stopped"
        else:
            stage = "completed"
        checkpoint: dict[str, Any] = {
            "stage": stage,
            "job_id": INCREMENTAL_SITEMAP_JOB_ID,
            "job_execution_id": str(execution_id),
        }
        if result.report is not None:
            checkpoint["detection"] = result.report.summary()
        return JobRunResult(
            summary=summary,
            documents_processed=summary["generated"] + summary["deleted"],
            checkpoint_data=checkpoint,
        )

    async def _run_full_generation_tick(self, execution_id: UUID) -> JobRunResult:
        result = await self._full_generation.tick(self._stop_event)
        changed = result.generation is not None and result.generation.changed
        checkpoint: dict[str, Any] = {
            "stage": result.action.value,
            "phase": result.phase.value,
            "job_id": FULL_GENERATION_TICK_JOB_ID,
            "job_execution_id": str(execution_id),
            "year": result.year,
            "month": result.month,
            "day": result.day.isoformat() if result.day is not None else None,
        }
        if result.action is TickAction.DAY_FAILED:
            checkpoint["error"] = result.error
        return JobRunResult(
            summary={
                "action": result.action.value,
                "completed": int(result.completed),
            },
            documents_processed=int(changed),
            checkpoint_data=checkpoint,
        )


def set_sitemap_jobs_service(service: SitemapJobsService | None) -> None:
    global _sitemap_jobs_service
    _sitemap_jobs_service = service


def _require_sitemap_jobs_service() -> SitemapJobsService:
    if _sitemap_jobs_service is None:
        raise RuntimeError("Sitemap jobs service is not initialized")

    return _sitemap_jobs_service


async def run_scheduled_incremental_job() -> None:
    await _require_sitemap_jobs_service().run_incremental_job()


async def run_scheduled_full_generation_tick_job() -> None:
    await _require_sitemap_jobs_service().run_full_generation_tick_job()


__all__ = [
    "FULL_GENERATION_TICK_JOB_ID",
    "INCREMENTAL_SITEMAP_JOB_ID",
    "JobExecutionMetrics",
    "JobRunResult",
    "SitemapJobsService",
    "run_scheduled_full_generation_tick_job",
    "run_scheduled_incremental_job",
    "set_sitemap_jobs_service",
]
