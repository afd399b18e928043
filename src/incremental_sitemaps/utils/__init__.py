"""Utilities for shared application concerns."""

from incremental_sitemaps import __version__
from incremental_sitemaps.utils.logging import (
    add_request_logging_middleware,
    setup_logging,
)

__all__ = ["__version__", "add_request_logging_middleware", "setup_logging"]
