"""Regenerate a single sitemap document from current content."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from incremental_sitemaps.services.content_aggregator import (
    ContentAggregator,
    SkipPredicate,
)
from incremental_sitemaps.services.document_store import DocumentStore
from incremental_sitemaps.services.sitemap_keys import SitemapKey
from incremental_sitemaps.services.sitemap_renderer import render_urlset

_generation_logger = logging.getLogger("incremental_sitemaps.generation")


class GenerationOutcome(str, Enum):
    """What regenerating one key did to the document store."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    SKIPPED = "skipped"
    EMPTY = "empty"


@dataclass(slots=True, frozen=True)
class KeyGenerationResult:
    """Outcome of regenerating one sitemap key."""

    key: SitemapKey
    outcome: GenerationOutcome
    entry_count: int = 0
    dropped_count: int = 0

    @property
    def changed(self) -> bool:
        return self.outcome in {
            GenerationOutcome.CREATED,
            GenerationOutcome.UPDATED,
            GenerationOutcome.DELETED,
        }


class SitemapGenerationService:
    """Aggregate, render and store or delete the document for one key."""

    def __init__(
        self,
        *,
        aggregator: ContentAggregator,
        document_store: DocumentStore,
    ) -> None:
        self._aggregator = aggregator
        self._document_store = document_store

    async def generate_for_key(
        self,
        key: SitemapKey,
        *,
        force: bool = False,
        skip_predicate: SkipPredicate | None = None,
    ) -> KeyGenerationResult:
        """Rebuild ``key``.

        Without ``force`` an existing document is left untouched. An empty
        aggregation deletes any stored document instead of writing it.
        """
        if not force and await self._document_store.get(key) is not None:
            return KeyGenerationResult(key=key, outcome=GenerationOutcome.SKIPPED)

        entries = await self._aggregator.aggregate(key, skip_predicate=skip_predicate)
        if entries.is_empty:
            deleted = await self._document_store.delete(key)
            outcome = GenerationOutcome.DELETED if deleted else GenerationOutcome.EMPTY
            _generation_logger.info(
                "sitemap_key_empty",
                extra={"sitemap_key": str(key), "outcome": outcome.value},
            )
            return KeyGenerationResult(key=key, outcome=outcome)

        xml_body = render_urlset(entries)
        created = await self._document_store.upsert(key, xml_body, len(entries))
        return KeyGenerationResult(
            key=key,
            outcome=GenerationOutcome.CREATED if created else GenerationOutcome.UPDATED,
            entry_count=len(entries),
            dropped_count=entries.dropped_count,
        )


__all__ = [
    "GenerationOutcome",
    "KeyGenerationResult",
    "SitemapGenerationService",
]
