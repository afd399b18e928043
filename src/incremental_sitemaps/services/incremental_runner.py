"""Steady-state upkeep: regenerate missing and stale documents, drop orphans."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from incremental_sitemaps.services.document_store import DocumentStore
from incremental_sitemaps.services.generation_state import GenerationStateRepository
from incremental_sitemaps.services.missing_detector import (
    MissingSitemapDetector,
    MissingSitemapReport,
)
from incremental_sitemaps.services.sitemap_generation import (
    KeyGenerationResult,
    SitemapGenerationService,
)
from incremental_sitemaps.services.sitemap_keys import SitemapKey
from incremental_sitemaps.utils.dates import ensure_utc, utc_now

_incremental_logger = logging.getLogger("incremental_sitemaps.generation.incremental")


@dataclass(slots=True, frozen=True)
class IncrementalRunResult:
    """Summary of one incremental pass."""

    skipped: bool = False
    stopped: bool = False
    report: MissingSitemapReport | None = None
    generated: tuple[KeyGenerationResult, ...] = ()
    deleted: tuple[SitemapKey, ...] = ()

    @property
    def work_done(self) -> bool:
        return bool(self.deleted) or any(result.changed for result in self.generated)

    def summary(self) -> dict[str, int]:
        return {
            "generated": sum(1 for result in self.generated if result.changed),
            "deleted": len(self.deleted),
            "skipped": int(self.skipped),
            "stopped": int(self.stopped),
        }


class IncrementalRunner:
    """Bring stored documents in line with recent content changes in one pass."""

    def __init__(
        self,
        *,
        detector: MissingSitemapDetector,
        generation_service: SitemapGenerationService,
        document_store: DocumentStore,
        state_repository: GenerationStateRepository,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._detector = detector
        self._generation_service = generation_service
        self._document_store = document_store
        self._state_repository = state_repository
        self._clock = clock

    async def run_incremental_pass(
        self,
        stop_event: asyncio.Event | None = None,
    ) -> IncrementalRunResult:
        started_at = ensure_utc(self._clock())
        await self._state_repository.set_last_check(started_at)

        if await self._state_repository.is_in_progress():
            _incremental_logger.info("incremental_pass_skipped_full_generation_running")
            return IncrementalRunResult(skipped=True)

        state = await self._state_repository.load()

        report = await self._detector.detect(since=state.last_run)

        generated: list[KeyGenerationResult] = []
        deleted: list[SitemapKey] = []
        stopped = False

        stale_dates = set(report.stale_dates)
        stale_entities = set(report.stale_entity_keys)
        work: list[tuple[SitemapKey, bool]] = [
            (SitemapKey.for_date(day), day in stale_dates)
            for day in report.all_dates_to_generate
        ]
        work.extend((key, key in stale_entities) for key in report.entity_keys_to_generate)

        for key, force in work:
            if await self._stop_requested(stop_event):
                stopped = True
                break
            generated.append(
                await self._generation_service.generate_for_key(key, force=force)
            )

        if not stopped:
            orphaned = [SitemapKey.for_date(day) for day in report.orphaned_dates]
            orphaned.extend(report.orphaned_entity_keys)
            for key in orphaned:
                if await self._stop_requested(stop_event):
                    stopped = True
                    break
                if await self._document_store.delete(key):
                    deleted.append(key)

        result = IncrementalRunResult(
            stopped=stopped,
            report=report,
            generated=tuple(generated),
            deleted=tuple(deleted),
        )
        if result.work_done:
            await self._state_repository.set_last_update(started_at)
        if not stopped:
            await self._state_repository.set_last_run(started_at)

        if stopped:
            _incremental_logger.info(
                "incremental_pass_stopped", extra=result.summary()
            )
        else:
            _incremental_logger.info(
                "incremental_pass_completed", extra=result.summary()
            )
        return result

    async def _stop_requested(self, stop_event: asyncio.Event | None) -> bool:
        if stop_event is not None and stop_event.is_set():
            return True
        return await self._state_repository.is_stop_requested()


__all__ = ["IncrementalRunResult", "IncrementalRunner"]
