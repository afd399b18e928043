"""Tick sources: APScheduler integration and a manual source for tests."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, cast

from apscheduler.events import EVENT_JOB_ERROR  # type: ignore[import-untyped]
from apscheduler.events import EVENT_JOB_EXECUTED
from apscheduler.events import EVENT_JOB_SUBMITTED
from apscheduler.events import JobExecutionEvent
from apscheduler.events import JobSubmissionEvent
from apscheduler.events import SchedulerEvent
from apscheduler.jobstores.sqlalchemy import SQLAlchemyJobStore  # type: ignore[import-untyped]
from apscheduler.schedulers.asyncio import AsyncIOScheduler  # type: ignore[import-untyped]

from incremental_sitemaps.config import Settings

JobCallable = Callable[[], Awaitable[None] | None]

_scheduler_logger = logging.getLogger("incremental_sitemaps.scheduler")


class TickSource(Protocol):
    """Anything that can invoke a job callable on a fixed interval."""

    @property
    def enabled(self) -> bool: ...

    def schedule(
        self,
        *,
        job_id: str,
        func: JobCallable,
        seconds: int,
        name: str | None = None,
    ) -> None: ...

    def unschedule(self, job_id: str) -> bool: ...

    def is_scheduled(self, job_id: str) -> bool: ...

    def next_run_time(self, job_id: str) -> datetime | None: ...


class SchedulerService:
    """Encapsulate scheduler startup, job management, and event logging."""

    def __init__(
        self,
        *,
        enabled: bool,
        jobstore_url: str,
        scheduler: AsyncIOScheduler | None = None,
    ) -> None:
        self._enabled = enabled
        self._scheduler = scheduler or AsyncIOScheduler(
            jobstores={"default": SQLAlchemyJobStore(url=jobstore_url)}
        )
        self._scheduler.add_listener(
            self._handle_job_event,
            EVENT_JOB_SUBMITTED | EVENT_JOB_EXECUTED | EVENT_JOB_ERROR,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> SchedulerService:
        return cls(
            enabled=settings.SCHEDULER_ENABLED,
            jobstore_url=settings.SCHEDULER_JOBSTORE_URL,
        )

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def start(self) -> None:
        if not self._enabled:
            _scheduler_logger.info("scheduler_disabled")
            return

        if self._scheduler.running:
            return

        self._scheduler.start()
        _scheduler_logger.info("scheduler_started")

    async def shutdown(self) -> None:
        if not self._enabled:
            return

        if not self._scheduler.running:
            return

        self._scheduler.shutdown(wait=False)
        _scheduler_logger.info("scheduler_shutdown")

    def schedule(
        self,
        *,
        job_id: str,
        func: JobCallable,
        seconds: int,
        name: str | None = None,
    ) -> None:
        self._ensure_enabled()
        if seconds <= 0:
            raise ValueError("Interval seconds must be greater than zero")

        self._scheduler.add_job(
            func=func,
            trigger="interval",
            seconds=seconds,
            id=job_id,
            name=name,
            replace_existing=True,
        )
        _scheduler_logger.info(
            "scheduler_job_scheduled",
            extra={"job_id": job_id, "interval_seconds": seconds},
        )

    def unschedule(self, job_id: str) -> bool:
        if not self._enabled:
            return False
        if self._scheduler.get_job(job_id) is None:
            return False
        self._scheduler.remove_job(job_id)
        _scheduler_logger.info("scheduler_job_removed", extra={"job_id": job_id})
        return True

    def is_scheduled(self, job_id: str) -> bool:
        if not self._enabled:
            return False
        return self._scheduler.get_job(job_id) is not None

    def next_run_time(self, job_id: str) -> datetime | None:
        if not self._enabled:
            return None
        job = self._scheduler.get_job(job_id)
        if job is None:
            return None
        return cast(datetime | None, getattr(job, "next_run_time", None))

    def _ensure_enabled(self) -> None:
        if self._enabled:
            return
        raise RuntimeError("Scheduler is disabled")

    @staticmethod
    def _scheduled_times_iso(
        run_times: tuple[datetime, ...] | list[datetime],
    ) -> list[str]:
        if not run_times:
            return []
        return [run_time.isoformat() for run_time in run_times]

    @staticmethod
    def _handle_job_event(event: SchedulerEvent) -> None:
        if isinstance(event, JobSubmissionEvent):
            _scheduler_logger.info(
                "scheduler_job_started",
                extra={
                    "job_id": event.job_id,
                    "scheduled_run_times": SchedulerService._scheduled_times_iso(
                        event.scheduled_run_times
                    ),
                },
            )
            return

        if not isinstance(event, JobExecutionEvent):
            return

        if event.exception is None:
            _scheduler_logger.info(
                "scheduler_job_succeeded",
                extra={"job_id": event.job_id},
            )
            return

        _scheduler_logger.error(
            "scheduler_job_failed",
            extra={
                "job_id": event.job_id,
                "exception": str(event.exception),
                "traceback": event.traceback,
            },
        )


@dataclass(slots=True)
class _ManualJob:
    func: JobCallable
    seconds: int
    name: str | None
    runs: int = 0


class ManualTickSource:
    """Tick source driven by explicit :meth:`fire` calls."""

    def __init__(self, *, enabled: bool = True) -> None:
        self._enabled = enabled
        self._jobs: dict[str, _ManualJob] = {}

    @property
    def enabled(self) -> bool:
        return self._enabled

    def schedule(
        self,
        *,
        job_id: str,
        func: JobCallable,
        seconds: int,
        name: str | None = None,
    ) -> None:
        if seconds <= 0:
            raise ValueError("Interval seconds must be greater than zero")
        self._jobs[job_id] = _ManualJob(func=func, seconds=seconds, name=name)

    def unschedule(self, job_id: str) -> bool:
        return self._jobs.pop(job_id, None) is not None

    def is_scheduled(self, job_id: str) -> bool:
        return job_id in self._jobs

    def next_run_time(self, job_id: str) -> datetime | None:
        return None

    def interval_for(self, job_id: str) -> int:
        job = self._jobs.get(job_id)
        if job is None:
            raise LookupError(f"Scheduler job '{job_id}' not found")
        return job.seconds

    async def fire(self, job_id: str) -> None:
        job = self._jobs.get(job_id)
        if job is None:
            raise LookupError(f"Scheduler job '{job_id}' not found")
        job.runs += 1
        outcome = job.func()
        if inspect.isawaitable(outcome):
            await outcome


__all__ = [
    "JobCallable",
    "ManualTickSource",
    "SchedulerService",
    "TickSource",
]
