"""Composition root wiring stores, providers and schedulers together."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from incremental_sitemaps.config import Settings
from incremental_sitemaps.services.content_aggregator import (
    ContentAggregator,
    exclude_noindex_items,
)
from incremental_sitemaps.services.content_providers import (
    ContentProviderRegistry,
    build_default_registry,
)
from incremental_sitemaps.services.content_store import (
    SessionScopeFactory,
    SQLAlchemyContentStore,
)
from incremental_sitemaps.services.cron_management import (
    CronManagementService,
    CronStatus,
)
from incremental_sitemaps.services.document_store import (
    DocumentSummary,
    SQLAlchemyDocumentStore,
    StoredDocument,
)
from incremental_sitemaps.services.full_generation import (
    FullGenerationScheduler,
    StartResult,
    TickResult,
)
from incremental_sitemaps.services.generation_state import GenerationStateRepository
from incremental_sitemaps.services.incremental_runner import (
    IncrementalRunner,
    IncrementalRunResult,
)
from incremental_sitemaps.services.job_recovery_service import JobRecoveryService
from incremental_sitemaps.services.missing_detector import MissingSitemapDetector
from incremental_sitemaps.services.option_store import SQLAlchemyOptionStore
from incremental_sitemaps.services.scheduler import ManualTickSource, TickSource
from incremental_sitemaps.services.sitemap_generation import (
    KeyGenerationResult,
    SitemapGenerationService,
)
from incremental_sitemaps.services.sitemap_index import SitemapIndexService
from incremental_sitemaps.services.sitemap_jobs import (
    SitemapJobsService,
    run_scheduled_full_generation_tick_job,
    run_scheduled_incremental_job,
    set_sitemap_jobs_service,
)
from incremental_sitemaps.services.sitemap_keys import SitemapKey
from incremental_sitemaps.utils.dates import utc_now


@dataclass(slots=True)
class SitemapEngine:
    """All collaborating services for one site.

    The public coroutine methods are the operator surface used by the API
    and the CLI; the attributes stay available for finer-grained control.
    """

    settings: Settings
    content_store: SQLAlchemyContentStore
    document_store: SQLAlchemyDocumentStore
    option_store: SQLAlchemyOptionStore
    registry: ContentProviderRegistry
    aggregator: ContentAggregator
    state_repository: GenerationStateRepository
    generation_service: SitemapGenerationService
    index_service: SitemapIndexService
    detector: MissingSitemapDetector
    full_generation: FullGenerationScheduler
    incremental_runner: IncrementalRunner
    jobs: SitemapJobsService
    cron: CronManagementService
    recovery: JobRecoveryService
    stop_event: asyncio.Event

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        session_factory: SessionScopeFactory | None = None,
        tick_source: TickSource | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> SitemapEngine:
        content_store = SQLAlchemyContentStore(
            session_factory=session_factory,
            earliest_date_cache_seconds=settings.EARLIEST_CONTENT_DATE_CACHE_SECONDS,
        )
        document_store = SQLAlchemyDocumentStore(
            session_factory=session_factory, clock=clock
        )
        option_store = SQLAlchemyOptionStore(session_factory=session_factory)
        registry = build_default_registry(settings, content_store)
        aggregator = ContentAggregator(
            registry,
            skip_predicate=exclude_noindex_items,
            max_entries=settings.SITEMAP_MAX_ENTRIES,
        )
        state_repository = GenerationStateRepository(option_store)
        generation_service = SitemapGenerationService(
            aggregator=aggregator, document_store=document_store
        )
        detector = MissingSitemapDetector(
            content_store=content_store,
            document_store=document_store,
            registry=registry,
            status=settings.CONTENT_STATUS,
            lookback_seconds=settings.STALE_DETECTION_LOOKBACK_SECONDS,
            clock=clock,
        )
        full_generation = FullGenerationScheduler(
            state_repository=state_repository,
            generation_service=generation_service,
            content_store=content_store,
            document_store=document_store,
            registry=registry,
            status=settings.CONTENT_STATUS,
            clock=clock,
        )
        incremental_runner = IncrementalRunner(
            detector=detector,
            generation_service=generation_service,
            document_store=document_store,
            state_repository=state_repository,
            clock=clock,
        )
        stop_event = asyncio.Event()
        jobs = SitemapJobsService(
            incremental_runner=incremental_runner,
            full_generation=full_generation,
            session_factory=session_factory,
            stop_event=stop_event,
        )
        cron = CronManagementService(
            tick_source=tick_source or ManualTickSource(enabled=False),
            option_store=option_store,
            state_repository=state_repository,
            incremental_job=run_scheduled_incremental_job,
            full_generation_job=run_scheduled_full_generation_tick_job,
            full_generation_interval_seconds=settings.FULL_GENERATION_TICK_INTERVAL_SECONDS,
            default_enabled=settings.SITEMAP_CRON_ENABLED,
            default_frequency=settings.SITEMAP_CRON_FREQUENCY,
        )
        recovery = JobRecoveryService(
            session_factory=session_factory,
            full_generation=full_generation,
        )
        return cls(
            settings=settings,
            content_store=content_store,
            document_store=document_store,
            option_store=option_store,
            registry=registry,
            aggregator=aggregator,
            state_repository=state_repository,
            generation_service=generation_service,
            index_service=SitemapIndexService(
                document_store=document_store,
                base_url=settings.site_base_url,
                max_entries=settings.SITEMAP_MAX_ENTRIES,
            ),
            detector=detector,
            full_generation=full_generation,
            incremental_runner=incremental_runner,
            jobs=jobs,
            cron=cron,
            recovery=recovery,
            stop_event=stop_event,
        )

    def install_jobs(self) -> None:
        """Route the module-level scheduled job functions to this engine."""

        set_sitemap_jobs_service(self.jobs)

    async def start_full_generation(self, *, restart: bool = False) -> StartResult:
        return await self.full_generation.start_full_generation(restart=restart)

    async def halt_generation(self) -> None:
        await self.full_generation.halt_generation()

    async def reset_all_state(self) -> None:
        await self.full_generation.reset_all_state()
        self.content_store.clear_cache()

    async def tick(self) -> TickResult:
        return await self.full_generation.tick(self.stop_event)

    async def run_incremental_pass(self) -> IncrementalRunResult:
        return await self.incremental_runner.run_incremental_pass(self.stop_event)

    async def get_status(self) -> CronStatus:
        return await self.cron.get_status()

    async def enable_cron(self) -> None:
        await self.cron.enable_cron()

    async def disable_cron(self) -> None:
        await self.cron.disable_cron()

    async def update_frequency(self, frequency: str) -> str:
        return await self.cron.update_frequency(frequency)

    async def generate_for_key(
        self,
        key: SitemapKey,
        *,
        force: bool = False,
    ) -> KeyGenerationResult:
        return await self.generation_service.generate_for_key(key, force=force)

    async def get_document(self, key: SitemapKey) -> StoredDocument | None:
        return await self.document_store.get(key)

    async def list_documents(self) -> list[DocumentSummary]:
        return await self.document_store.list_summaries()

    async def total_url_count(self) -> int:
        return await self.document_store.count_entries()

    async def render_index(self) -> str:
        return await self.index_service.render()

    def request_shutdown(self) -> None:
        """Signal running passes to stop at their next unit boundary."""

        self.stop_event.set()


def build_engine(
    settings: Settings,
    *,
    session_factory: SessionScopeFactory | None = None,
    tick_source: TickSource | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> SitemapEngine:
    return SitemapEngine.from_settings(
        settings,
        session_factory=session_factory,
        tick_source=tick_source,
        clock=clock,
    )


__all__ = ["SitemapEngine", "build_engine"]
