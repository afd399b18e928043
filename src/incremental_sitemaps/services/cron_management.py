"""Enable, disable and reschedule the recurring sitemap jobs."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import get_args

from incremental_sitemaps.config import CronFrequency
from incremental_sitemaps.services.generation_state import GenerationStateRepository
from incremental_sitemaps.services.option_store import OptionStore
from incremental_sitemaps.services.scheduler import JobCallable, TickSource
from incremental_sitemaps.services.sitemap_jobs import (
    FULL_GENERATION_TICK_JOB_ID,
    INCREMENTAL_SITEMAP_JOB_ID,
)

OPTION_CRON_ENABLED = "sitemap_cron_enabled"
OPTION_CRON_FREQUENCY = "sitemap_cron_frequency"

VALID_FREQUENCIES: tuple[str, ...] = get_args(CronFrequency)
DEFAULT_FREQUENCY = "15min"
FREQUENCY_SECONDS: dict[str, int] = {
    "5min": 300,
    "10min": 600,
    "15min": 900,
    "30min": 1800,
    "hourly": 3600,
    "2hourly": 7200,
    "3hourly": 10800,
}

_cron_logger = logging.getLogger("incremental_sitemaps.cron")


class CronStateError(RuntimeError):
    """Raised when cron is asked to move into the state it is already in."""


class InvalidCronFrequencyError(ValueError):
    """Raised for a frequency outside :data:`VALID_FREQUENCIES`."""


def frequency_to_seconds(frequency: str) -> int:
    seconds = FREQUENCY_SECONDS.get(frequency)
    if seconds is None:
        raise InvalidCronFrequencyError(
            f"Invalid frequency '{frequency}'. "
            f"Expected one of: {', '.join(VALID_FREQUENCIES)}"
        )
    return seconds


@dataclass(slots=True, frozen=True)
class CronStatus:
    """Operator-facing view of scheduling and generation state."""

    enabled: bool
    in_progress: bool
    halted: bool
    stop_requested: bool
    next_scheduled: datetime | None
    last_run: datetime | None
    last_check: datetime | None
    last_update: datetime | None
    current_frequency: str
    valid_frequencies: tuple[str, ...] = VALID_FREQUENCIES


class CronManagementService:
    """Own the cron-enabled flag, the frequency option and the scheduled jobs."""

    def __init__(
        self,
        *,
        tick_source: TickSource,
        option_store: OptionStore,
        state_repository: GenerationStateRepository,
        incremental_job: JobCallable,
        full_generation_job: JobCallable,
        full_generation_interval_seconds: int,
        default_enabled: bool = False,
        default_frequency: str = DEFAULT_FREQUENCY,
    ) -> None:
        frequency_to_seconds(default_frequency)
        self._tick_source = tick_source
        self._option_store = option_store
        self._state_repository = state_repository
        self._incremental_job = incremental_job
        self._full_generation_job = full_generation_job
        self._full_generation_interval_seconds = full_generation_interval_seconds
        self._default_enabled = default_enabled
        self._default_frequency = default_frequency

    async def is_enabled(self) -> bool:
        value = await self._option_store.get(OPTION_CRON_ENABLED)
        if value is None:
            return self._default_enabled
        return bool(value)

    async def get_current_frequency(self) -> str:
        value = await self._option_store.get(OPTION_CRON_FREQUENCY)
        if isinstance(value, str) and value in FREQUENCY_SECONDS:
            return value
        return self._default_frequency

    async def sync_schedule(self) -> bool:
        """Make the tick source match the persisted enabled flag."""

        if await self.is_enabled():
            await self._schedule_jobs(await self.get_current_frequency())
            return True
        self._unschedule_jobs()
        return False

    async def enable_cron(self) -> None:
        if await self.is_enabled() and self._tick_source.is_scheduled(
            INCREMENTAL_SITEMAP_JOB_ID
        ):
            raise CronStateError("Automatic updates are already enabled")

        await self._option_store.set_many({OPTION_CRON_ENABLED: True})
        frequency = await self.get_current_frequency()
        await self._schedule_jobs(frequency)
        _cron_logger.info("sitemap_cron_enabled", extra={"frequency": frequency})

    async def disable_cron(self) -> None:
        if not await self.is_enabled():
            raise CronStateError("Automatic updates are already disabled")

        await self._option_store.set_many({OPTION_CRON_ENABLED: False})
        self._unschedule_jobs()
        await self._state_repository.clear()
        _cron_logger.info("sitemap_cron_disabled")

    async def reset_cron(self) -> None:
        """Disable scheduling and clear all generation state unconditionally."""

        await self._option_store.set_many({OPTION_CRON_ENABLED: False})
        self._unschedule_jobs()
        await self._state_repository.clear()
        _cron_logger.warning("sitemap_cron_reset")

    async def update_frequency(self, frequency: str) -> str:
        frequency_to_seconds(frequency)
        await self._option_store.set_many({OPTION_CRON_FREQUENCY: frequency})
        if await self.is_enabled():
            await self._schedule_jobs(frequency)
        _cron_logger.info(
            "sitemap_cron_frequency_updated", extra={"frequency": frequency}
        )
        return frequency

    async def get_status(self) -> CronStatus:
        enabled = await self.is_enabled()
        next_scheduled = self._tick_source.next_run_time(INCREMENTAL_SITEMAP_JOB_ID)
        if not enabled and self._tick_source.is_scheduled(INCREMENTAL_SITEMAP_JOB_ID):
            self._unschedule_jobs()
            next_scheduled = None

        state = await self._state_repository.load()
        return CronStatus(
            enabled=enabled,
            in_progress=state.in_progress,
            halted=state.stop_requested or state.is_halted,
            stop_requested=state.stop_requested,
            next_scheduled=next_scheduled,
            last_run=state.last_run,
            last_check=state.last_check,
            last_update=state.last_update,
            current_frequency=await self.get_current_frequency(),
        )

    async def _schedule_jobs(self, frequency: str) -> None:
        if not self._tick_source.enabled:
            _cron_logger.warning(
                "sitemap_cron_tick_source_disabled", extra={"frequency": frequency}
            )
            return

        self._tick_source.schedule(
            job_id=INCREMENTAL_SITEMAP_JOB_ID,
            func=self._incremental_job,
            seconds=frequency_to_seconds(frequency),
            name="Incremental sitemap update",
        )
        self._tick_source.schedule(
            job_id=FULL_GENERATION_TICK_JOB_ID,
            func=self._full_generation_job,
            seconds=self._full_generation_interval_seconds,
            name="Full sitemap generation tick",
        )

    def _unschedule_jobs(self) -> None:
        for job_id in (INCREMENTAL_SITEMAP_JOB_ID, FULL_GENERATION_TICK_JOB_ID):
            self._tick_source.unschedule(job_id)


__all__ = [
    "CronManagementService",
    "CronStateError",
    "CronStatus",
    "DEFAULT_FREQUENCY",
    "FREQUENCY_SECONDS",
    "InvalidCronFrequencyError",
    "OPTION_CRON_ENABLED",
    "OPTION_CRON_FREQUENCY",
    "VALID_FREQUENCIES",
    "frequency_to_seconds",
]
