"""Service layer for incremental sitemap generation."""

from incremental_sitemaps import __version__
from incremental_sitemaps.services.url_entries import (
    SITEMAP_PROTOCOL_MAX_ENTRIES,
    CappedEntrySet,
    CappedEntrySetError,
    ChangeFrequency,
    ImageEntry,
    SitemapIndexEntry,
    UrlEntry,
    UrlEntryValidationError,
)
from incremental_sitemaps.services.sitemap_keys import SitemapKey, SitemapKeyError
from incremental_sitemaps.services.sitemap_renderer import (
    render_sitemap_index,
    render_urlset,
)
from incremental_sitemaps.services.content_store import (
    ContentItemRecord,
    ContentStore,
    SQLAlchemyContentStore,
)
from incremental_sitemaps.services.content_providers import (
    ContentProviderRegistrationError,
    ContentProviderRegistry,
    ContentSourceProvider,
    DailyContentProvider,
    EntityContentProvider,
    build_default_registry,
)
from incremental_sitemaps.services.content_aggregator import ContentAggregator
from incremental_sitemaps.services.document_store import (
    DocumentStore,
    DocumentSummary,
    SQLAlchemyDocumentStore,
    StoredDocument,
)
from incremental_sitemaps.services.option_store import (
    OptionStore,
    SQLAlchemyOptionStore,
)
from incremental_sitemaps.services.generation_state import (
    GenerationPhase,
    GenerationState,
    GenerationStateError,
    GenerationStateRepository,
)
from incremental_sitemaps.services.sitemap_generation import (
    GenerationOutcome,
    KeyGenerationResult,
    SitemapGenerationService,
)
from incremental_sitemaps.services.sitemap_index import SitemapIndexService
from incremental_sitemaps.services.missing_detector import (
    MissingSitemapDetector,
    MissingSitemapReport,
)
from incremental_sitemaps.services.full_generation import (
    FullGenerationScheduler,
    StartOutcome,
    StartResult,
    TickAction,
    TickResult,
)
from incremental_sitemaps.services.incremental_runner import (
    IncrementalRunResult,
    IncrementalRunner,
)
from incremental_sitemaps.services.scheduler import (
    ManualTickSource,
    SchedulerService,
    TickSource,
)
from incremental_sitemaps.services.sitemap_jobs import (
    JobExecutionMetrics,
    SitemapJobsService,
    set_sitemap_jobs_service,
)
from incremental_sitemaps.services.cron_management import (
    CronManagementService,
    CronStateError,
    CronStatus,
    InvalidCronFrequencyError,
)
from incremental_sitemaps.services.job_recovery_service import JobRecoveryService
from incremental_sitemaps.services.engine import SitemapEngine, build_engine

__all__ = [
    "CappedEntrySet",
    "CappedEntrySetError",
    "ChangeFrequency",
    "ContentAggregator",
    "ContentItemRecord",
    "ContentProviderRegistrationError",
    "ContentProviderRegistry",
    "ContentSourceProvider",
    "ContentStore",
    "CronManagementService",
    "CronStateError",
    "CronStatus",
    "DailyContentProvider",
    "DocumentStore",
    "DocumentSummary",
    "EntityContentProvider",
    "FullGenerationScheduler",
    "GenerationOutcome",
    "GenerationPhase",
    "GenerationState",
    "GenerationStateError",
    "GenerationStateRepository",
    "ImageEntry",
    "IncrementalRunResult",
    "IncrementalRunner",
    "InvalidCronFrequencyError",
    "JobExecutionMetrics",
    "JobRecoveryService",
    "KeyGenerationResult",
    "ManualTickSource",
    "MissingSitemapDetector",
    "MissingSitemapReport",
    "OptionStore",
    "SITEMAP_PROTOCOL_MAX_ENTRIES",
    "SQLAlchemyContentStore",
    "SQLAlchemyDocumentStore",
    "SQLAlchemyOptionStore",
    "SchedulerService",
    "SitemapEngine",
    "SitemapGenerationService",
    "SitemapIndexEntry",
    "SitemapIndexService",
    "SitemapJobsService",
    "SitemapKey",
    "SitemapKeyError",
    "StartOutcome",
    "StartResult",
    "StoredDocument",
    "TickAction",
    "TickResult",
    "TickSource",
    "UrlEntry",
    "UrlEntryValidationError",
    "__version__",
    "build_default_registry",
    "build_engine",
    "render_sitemap_index",
    "render_urlset",
    "set_sitemap_jobs_service",
]
