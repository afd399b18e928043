"""ORM model exports."""

from incremental_sitemaps import __version__
from incremental_sitemaps.models.base import Base
from incremental_sitemaps.models.content_item import ContentImage, ContentItem
from incremental_sitemaps.models.job_execution import JobExecution
from incremental_sitemaps.models.sitemap_document import SitemapDocument
from incremental_sitemaps.models.sitemap_option import SitemapOption

__all__ = [
    "__version__",
    "Base",
    "ContentImage",
    "ContentItem",
    "JobExecution",
    "SitemapDocument",
    "SitemapOption",
]
