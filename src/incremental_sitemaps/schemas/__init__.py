"""Schema exports for API serialization."""

from incremental_sitemaps import __version__
from incremental_sitemaps.schemas.generation import (
    CronFrequencyUpdate,
    FullGenerationStartRead,
    FullGenerationTickRead,
    GenerationStatusRead,
    IncrementalRunRead,
    JobExecutionHistoryItem,
    JobExecutionHistoryResponse,
    JobMonitoringRead,
)
from incremental_sitemaps.schemas.sitemap_document import (
    SitemapDocumentRead,
    SitemapKeyGenerationRead,
    SitemapTotalsRead,
)

__all__ = [
    "CronFrequencyUpdate",
    "FullGenerationStartRead",
    "FullGenerationTickRead",
    "GenerationStatusRead",
    "IncrementalRunRead",
    "JobExecutionHistoryItem",
    "JobExecutionHistoryResponse",
    "JobMonitoringRead",
    "SitemapDocumentRead",
    "SitemapKeyGenerationRead",
    "SitemapTotalsRead",
    "__version__",
]
