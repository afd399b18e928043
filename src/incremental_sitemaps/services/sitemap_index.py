"""Build the top-level sitemap index from stored documents."""

from __future__ import annotations

import logging

from incremental_sitemaps.services.document_store import DocumentStore, DocumentSummary
from incremental_sitemaps.services.sitemap_renderer import render_sitemap_index
from incremental_sitemaps.services.url_entries import (
    SITEMAP_PROTOCOL_MAX_ENTRIES,
    CappedEntrySet,
    SitemapIndexEntry,
    UrlEntryValidationError,
)
from incremental_sitemaps.utils.dates import format_w3c_datetime

_index_logger = logging.getLogger("incremental_sitemaps.index")


def _index_order(summaries: list[DocumentSummary]) -> list[DocumentSummary]:
    """Entity documents by name, then days newest first."""

    entities = sorted(
        (summary for summary in summaries if not summary.key.is_date),
        key=lambda summary: str(summary.key),
    )
    days = sorted(
        (summary for summary in summaries if summary.key.is_date),
        key=lambda summary: str(summary.key),
        reverse=True,
    )
    return [*entities, *days]


class SitemapIndexService:
    """List every stored document in a capped sitemap index."""

    def __init__(
        self,
        *,
        document_store: DocumentStore,
        base_url: str,
        max_entries: int = SITEMAP_PROTOCOL_MAX_ENTRIES,
    ) -> None:
        self._document_store = document_store
        self._base_url = base_url.rstrip("/")
        self._max_entries = max_entries

    def location_for(self, summary: DocumentSummary) -> str:
        return f"{self._base_url}/{summary.key.filename}"

    async def build(self) -> CappedEntrySet[SitemapIndexEntry]:
        entries: CappedEntrySet[SitemapIndexEntry] = CappedEntrySet(
            max_entries=self._max_entries
        )
        summaries = _index_order(await self._document_store.list_summaries())
        for summary in summaries:
            try:
                entry = SitemapIndexEntry(
                    loc=self.location_for(summary),
                    lastmod=format_w3c_datetime(summary.last_built_at),
                )
            except UrlEntryValidationError as error:
                _index_logger.warning(
                    "sitemap_index_entry_invalid",
                    extra={"sitemap_key": str(summary.key), "error": str(error)},
                )
                continue
            entries.add(entry)

        if entries.dropped_count:
            _index_logger.warning(
                "sitemap_index_ceiling_reached",
                extra={
                    "entry_count": len(entries),
                    "dropped_count": entries.dropped_count,
                },
            )
        return entries

    async def render(self) -> str:
        return render_sitemap_index(await self.build())


__all__ = ["SitemapIndexService"]
