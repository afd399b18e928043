"""Resumable full rebuild walking years, then months, then days.

Each call to :meth:`FullGenerationScheduler.tick` performs exactly one
transition and persists the resulting queues before returning, so a crashed
or halted rebuild continues from the last persisted position.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum

from incremental_sitemaps.services.content_providers import ContentProviderRegistry
from incremental_sitemaps.services.content_store import ContentStore
from incremental_sitemaps.services.document_store import DocumentStore
from incremental_sitemaps.services.generation_state import (
    GenerationPhase,
    GenerationState,
    GenerationStateRepository,
)
from incremental_sitemaps.services.sitemap_generation import (
    KeyGenerationResult,
    SitemapGenerationService,
)
from incremental_sitemaps.services.sitemap_keys import SitemapKey
from incremental_sitemaps.utils.dates import ensure_utc, month_bounds, utc_now, year_bounds

_full_generation_logger = logging.getLogger("incremental_sitemaps.generation.full")


class StartOutcome(str, Enum):
    """Result of asking for a full rebuild."""

    STARTED = "started"
    RESUMED = "resumed"
    ALREADY_RUNNING = "already_running"
    NOTHING_TO_DO = "nothing_to_do"


class TickAction(str, Enum):
    """Transition performed by one tick."""

    IDLE = "idle"
    HALTED = "halted"
    YEAR_PROCESSED = "year_processed"
    MONTH_PROCESSED = "month_processed"
    DAY_PROCESSED = "day_processed"
    DAY_FAILED = "day_failed"
    COMPLETED = "completed"


@dataclass(slots=True, frozen=True)
class StartResult:
    outcome: StartOutcome
    pending_years: tuple[int, ...] = ()


@dataclass(slots=True, frozen=True)
class TickResult:
    """What one tick did and where the walk stands afterwards."""

    action: TickAction
    phase: GenerationPhase
    year: int | None = None
    month: int | None = None
    day: date | None = None
    generation: KeyGenerationResult | None = None
    completed: bool = False
    error: str | None = None


class FullGenerationScheduler:
    """Drive the full rebuild one bounded unit of work per tick."""

    def __init__(
        self,
        *,
        state_repository: GenerationStateRepository,
        generation_service: SitemapGenerationService,
        content_store: ContentStore,
        document_store: DocumentStore,
        registry: ContentProviderRegistry,
        status: str = "publish",
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._state_repository = state_repository
        self._generation_service = generation_service
        self._content_store = content_store
        self._document_store = document_store
        self._registry = registry
        self._status = status
        self._clock = clock

    async def get_state(self) -> GenerationState:
        return await self._state_repository.load()

    async def start_full_generation(self, *, restart: bool = False) -> StartResult:
        """Queue every year with content, newest first.

        A halted rebuild with pending queues is resumed rather than restarted
        unless ``restart`` is set.
        """
        state = await self._state_repository.load()
        if state.in_progress:
            _full_generation_logger.warning("full_generation_already_running")
            return StartResult(
                outcome=StartOutcome.ALREADY_RUNNING,
                pending_years=tuple(state.pending_years),
            )

        if state.has_pending_work and not restart:
            state.in_progress = True
            state.stop_requested = False
            await self._state_repository.save(state, clear_stop_request=True)
            _full_generation_logger.info(
                "full_generation_resumed",
                extra={
                    "phase": state.phase.value,
                    "year": state.current_year,
                    "month": state.current_month,
                },
            )
            return StartResult(
                outcome=StartOutcome.RESUMED,
                pending_years=tuple(state.pending_years),
            )

        state.clear_queues()
        years = await self._years_to_process()
        if not years:
            state.in_progress = False
            state.last_run = ensure_utc(self._clock())
            await self._state_repository.save(state, clear_stop_request=True)
            _full_generation_logger.info("full_generation_nothing_to_do")
            return StartResult(outcome=StartOutcome.NOTHING_TO_DO)

        state.pending_years = years
        state.in_progress = True
        state.stop_requested = False
        await self._state_repository.save(state, clear_stop_request=True)
        _full_generation_logger.info(
            "full_generation_started",
            extra={"pending_years": years},
        )
        return StartResult(outcome=StartOutcome.STARTED, pending_years=tuple(years))

    async def halt_generation(self) -> None:
        """Ask the running rebuild to stop at the next tick."""

        await self._state_repository.request_stop()
        _full_generation_logger.info("full_generation_stop_requested")

    async def reset_all_state(self) -> None:
        """Forget queues, flags and timestamps, including a stuck in-progress flag."""

        await self._state_repository.clear()
        _full_generation_logger.warning("full_generation_state_reset")

    async def tick(self, stop_event: asyncio.Event | None = None) -> TickResult:
        state = await self._state_repository.load()

        stop_signalled = state.stop_requested or (
            stop_event is not None and stop_event.is_set()
        )
        if not state.in_progress:
            if state.stop_requested:
                await self._state_repository.save(state, clear_stop_request=True)
            return TickResult(action=TickAction.IDLE, phase=GenerationPhase.IDLE)

        if stop_signalled:
            return await self._halt(state)

        if state.pending_days:
            return await self._process_next_day(state)
        if state.pending_months:
            return await self._process_next_month(state)
        if state.pending_years:
            return await self._process_next_year(state)
        return await self._complete(state)

    async def process_next_year(self) -> TickResult:
        return await self._process_next_year(await self._state_repository.load())

    async def process_next_month(self) -> TickResult:
        return await self._process_next_month(await self._state_repository.load())

    async def process_next_day(self) -> TickResult:
        return await self._process_next_day(await self._state_repository.load())

    async def _halt(self, state: GenerationState) -> TickResult:
        state.in_progress = False
        state.stop_requested = False
        await self._state_repository.save(state, clear_stop_request=True)
        _full_generation_logger.info(
            "full_generation_halted",
            extra={
                "year": state.current_year,
                "month": state.current_month,
                "pending_years": list(state.pending_years),
                "pending_months": list(state.pending_months),
                "pending_days": list(state.pending_days),
            },
        )
        return TickResult(action=TickAction.HALTED, phase=GenerationPhase.IDLE)

    async def _process_next_year(self, state: GenerationState) -> TickResult:
        if not state.pending_years:
            return TickResult(action=TickAction.IDLE, phase=state.phase)

        year = state.pending_years.pop(0)
        months = await self._months_to_process(year)
        state.current_year = year
        state.current_month = None
        state.pending_months = months
        state.pending_days = []
        await self._state_repository.save(state)

        _full_generation_logger.info(
            "full_generation_year_processed",
            extra={"year": year, "pending_months": months},
        )
        return TickResult(
            action=TickAction.YEAR_PROCESSED,
            phase=state.phase,
            year=year,
        )

    async def _process_next_month(self, state: GenerationState) -> TickResult:
        if not state.pending_months or state.current_year is None:
            return TickResult(action=TickAction.IDLE, phase=state.phase)

        year = state.current_year
        month = state.pending_months.pop(0)
        days = await self._days_to_process(year, month)
        state.current_month = month
        state.pending_days = days
        await self._state_repository.save(state)

        _full_generation_logger.info(
            "full_generation_month_processed",
            extra={"year": year, "month": month, "pending_days": days},
        )
        return TickResult(
            action=TickAction.MONTH_PROCESSED,
            phase=state.phase,
            year=year,
            month=month,
        )

    async def _process_next_day(self, state: GenerationState) -> TickResult:
        if (
            not state.pending_days
            or state.current_year is None
            or state.current_month is None
        ):
            return TickResult(action=TickAction.IDLE, phase=state.phase)

        day = date(state.current_year, state.current_month, state.pending_days[0])
        key = SitemapKey.for_date(day)
        action = TickAction.DAY_PROCESSED
        generation: KeyGenerationResult | None = None
        error_message: str | None = None
        try:
            generation = await self._generation_service.generate_for_key(
                key, force=True
            )
        except Exception as error:
            action = TickAction.DAY_FAILED
            error_message = str(error)
            _full_generation_logger.exception(
                "full_generation_day_failed",
                extra={"sitemap_date": day.isoformat()},
            )

        state.pending_days.pop(0)
        completed = not state.has_pending_work
        if completed:
            self._mark_complete(state)
        await self._state_repository.save(state)

        if generation is not None:
            _full_generation_logger.info(
                "full_generation_day_processed",
                extra={
                    "sitemap_date": day.isoformat(),
                    "outcome": generation.outcome.value,
                    "entry_count": generation.entry_count,
                },
            )
        if completed:
            _full_generation_logger.info("full_generation_completed")

        return TickResult(
            action=action,
            phase=state.phase,
            year=day.year,
            month=day.month,
            day=day,
            generation=generation,
            completed=completed,
            error=error_message,
        )

    async def _complete(self, state: GenerationState) -> TickResult:
        self._mark_complete(state)
        await self._state_repository.save(state)
        _full_generation_logger.info("full_generation_completed")
        return TickResult(
            action=TickAction.COMPLETED,
            phase=GenerationPhase.IDLE,
            completed=True,
        )

    def _mark_complete(self, state: GenerationState) -> None:
        state.clear_queues()
        state.in_progress = False
        state.last_run = ensure_utc(self._clock())

    def _today(self) -> date:
        return ensure_utc(self._clock()).date()

    async def _years_to_process(self) -> list[int]:
        today = self._today()
        content_types = self._registry.daily_content_types()

        earliest_candidates: list[date] = []
        if content_types:
            earliest_content = await self._content_store.earliest_content_date(
                self._status, content_types
            )
            if earliest_content is not None:
                earliest_candidates.append(earliest_content)
        document_dates = await self._document_store.list_dates()
        if document_dates:
            earliest_candidates.append(document_dates[0])
        if not earliest_candidates:
            return []

        document_years = {day.year for day in document_dates}
        first_year = min(earliest_candidates).year
        years: list[int] = []
        for year in range(today.year, first_year - 1, -1):
            if year in document_years:
                years.append(year)
                continue
            if not content_types:
                continue
            start, end = year_bounds(year)
            if await self._content_store.date_range_has_content(
                start, min(end, today), content_types, self._status
            ):
                years.append(year)
        return years

    async def _months_to_process(self, year: int) -> list[int]:
        today = self._today()
        start, end = year_bounds(year)
        end = min(end, today)
        if end < start:
            return []

        months = {day.month for day in await self._dates_in_range(start, end)}
        return sorted(months, reverse=True)

    async def _days_to_process(self, year: int, month: int) -> list[int]:
        today = self._today()
        start, end = month_bounds(year, month)
        end = min(end, today)
        if end < start:
            return []

        days = {day.day for day in await self._dates_in_range(start, end)}
        return sorted(days, reverse=True)

    async def _dates_in_range(self, start: date, end: date) -> set[date]:
        dates = set(await self._document_store.list_dates(start=start, end=end))
        content_types = self._registry.daily_content_types()
        if content_types:
            dates.update(
                await self._content_store.find_content_dates_with_status(
                    self._status, content_types, start=start, end=end
                )
            )
        return dates


__all__ = [
    "FullGenerationScheduler",
    "StartOutcome",
    "StartResult",
    "TickAction",
    "TickResult",
]
