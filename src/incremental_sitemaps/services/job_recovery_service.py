"""Startup and shutdown recovery helpers for interrupted job executions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select

from incremental_sitemaps.models import JobExecution
from incremental_sitemaps.services.content_store import SessionScopeFactory
from incremental_sitemaps.services.full_generation import (
    FullGenerationScheduler,
    StartOutcome,
)

_recovery_logger = logging.getLogger("incremental_sitemaps.recovery")


@dataclass(slots=True, frozen=True)
class InterruptedJobRecord:
    """Interrupted job details for logs and lifecycle summaries."""

    execution_id: UUID
    job_id: str
    job_name: str
    started_at: datetime
    documents_processed: int
    checkpoint_data: dict[str, Any] | None


@dataclass(slots=True, frozen=True)
class StartupRecoveryResult:
    detected_jobs: tuple[InterruptedJobRecord, ...]
    auto_resumed: int

    @property
    def detected_count(self) -> int:
        return len(self.detected_jobs)


@dataclass(slots=True, frozen=True)
class ShutdownExecutionSummary:
    jobs_completed: int
    jobs_interrupted: int
    documents_processed: int


class JobRecoveryService:
    """Close out job executions left running by a crash or shutdown.

    A halted full rebuild keeps its queues in the option store, so the only
    thing to resume at startup is the walk itself, and only when asked to.
    """

    def __init__(
        self,
        *,
        session_factory: SessionScopeFactory | None = None,
        full_generation: FullGenerationScheduler | None = None,
    ) -> None:
        if session_factory is None:
            from incremental_sitemaps.database import session_scope

            session_factory = session_scope

        self._session_factory = session_factory
        self._full_generation = full_generation

    async def handle_startup_recovery(
        self,
        *,
        auto_resume: bool = False,
    ) -> StartupRecoveryResult:
        interrupted_jobs = await self._list_running_jobs()
        if interrupted_jobs:
            _recovery_logger.warning(
                "startup_interrupted_jobs_detected",
                extra={
                    "count": len(interrupted_jobs),
                    "job_ids": [job.job_id for job in interrupted_jobs],
                },
            )
        else:
            _recovery_logger.info("startup_interrupted_jobs_not_found")

        await self._mark_running_jobs_failed(
            stage="startup_recovery",
            reason="Recovered unfinished job after process interruption",
        )

        auto_resumed = 0
        if auto_resume and self._full_generation is not None:
            state = await self._full_generation.get_state()
            if state.is_halted:
                result = await self._full_generation.start_full_generation()
                if result.outcome is StartOutcome.RESUMED:
                    auto_resumed = 1
                    _recovery_logger.info(
                        "startup_full_generation_resumed",
                        extra={"phase": state.phase.value},
                    )

        return StartupRecoveryResult(
            detected_jobs=tuple(interrupted_jobs),
            auto_resumed=auto_resumed,
        )

    async def persist_shutdown_checkpoints(self) -> int:
        return await self._mark_running_jobs_failed(
            stage="shutdown",
            reason="Job interrupted by application shutdown",
        )

    async def summarize_session(
        self,
        *,
        session_started_at: datetime,
    ) -> ShutdownExecutionSummary:
        async with self._session_factory() as session:
            executions = (
                await session.scalars(
                    select(JobExecution).where(
                        JobExecution.started_at >= session_started_at
                    )
                )
            ).all()

        return ShutdownExecutionSummary(
            jobs_completed=sum(
                1 for execution in executions if execution.status == "success"
            ),
            jobs_interrupted=sum(
                1 for execution in executions if execution.status == "failed"
            ),
            documents_processed=sum(
                int(execution.documents_processed) for execution in executions
            ),
        )

    async def _list_running_jobs(self) -> list[InterruptedJobRecord]:
        async with self._session_factory() as session:
            rows = (
                await session.scalars(
                    select(JobExecution)
                    .where(JobExecution.status == "running")
                    .order_by(JobExecution.started_at.asc())
                )
            ).all()

        return [
            InterruptedJobRecord(
                execution_id=row.id,
                job_id=row.job_id,
                job_name=row.job_name,
                started_at=row.started_at,
                documents_processed=int(row.documents_processed),
                checkpoint_data=row.checkpoint_data,
            )
            for row in rows
        ]

    async def _mark_running_jobs_failed(self, *, stage: str, reason: str) -> int:
        interrupted_at = datetime.now(UTC)
        updated_count = 0
        async with self._session_factory() as session:
            rows = (
                await session.scalars(
                    select(JobExecution).where(JobExecution.status == "running")
                )
            ).all()
            for row in rows:
                row.status = "failed"
                row.finished_at = interrupted_at
                row.error_message = reason
                checkpoint = (
                    dict(row.checkpoint_data)
                    if isinstance(row.checkpoint_data, dict)
                    else {}
                )
                checkpoint["stage"] = stage
                checkpoint["interrupted_at"] = interrupted_at.isoformat()
                checkpoint["recovery_reason"] = reason
                row.checkpoint_data = checkpoint
                updated_count += 1

        if updated_count > 0:
            _recovery_logger.info(
                "running_jobs_marked_failed",
                extra={"count": updated_count, "phase": stage},
            )
        return updated_count


__all__ = [
    "InterruptedJobRecord",
    "JobRecoveryService",
    "ShutdownExecutionSummary",
    "StartupRecoveryResult",
]
