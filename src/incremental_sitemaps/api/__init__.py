"""API package exports."""

from incremental_sitemaps import __version__
from incremental_sitemaps.api.generation import router as generation_router
from incremental_sitemaps.api.sitemaps import router as sitemaps_router

__all__ = [
    "__version__",
    "generation_router",
    "sitemaps_router",
]
