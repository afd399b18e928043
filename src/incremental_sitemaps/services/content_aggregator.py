"""Assemble a capped, validated URL entry set for one sitemap key."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date

from incremental_sitemaps.services.content_providers import (
    ContentProviderRegistry,
    ContentSourceProvider,
)
from incremental_sitemaps.services.content_store import ContentItemRecord
from incremental_sitemaps.services.sitemap_keys import SitemapKey
from incremental_sitemaps.services.url_entries import (
    SITEMAP_PROTOCOL_MAX_ENTRIES,
    CappedEntrySet,
    ChangeFrequency,
    ImageEntry,
    UrlEntry,
    UrlEntryValidationError,
)
from incremental_sitemaps.utils.dates import format_w3c_datetime, utc_now

SkipPredicate = Callable[[ContentItemRecord], bool]
ChangefreqDecision = Callable[[ContentItemRecord, ChangeFrequency], object]
PriorityDecision = Callable[[ContentItemRecord, float], object]

DEFAULT_CANDIDATE_PAGE_SIZE = 1000

_aggregator_logger = logging.getLogger("incremental_sitemaps.aggregator")


def recent_content_changefreq(
    *,
    today: Callable[[], date] = lambda: utc_now().date(),
    recent: ChangeFrequency = ChangeFrequency.HOURLY,
) -> ChangefreqDecision:
    """Return a decision function marking content published today as ``recent``."""

    def decide(item: ContentItemRecord, default: ChangeFrequency) -> object:
        if item.published_on == today():
            return recent
        return default

    return decide


def recent_content_priority(
    *,
    today: Callable[[], date] = lambda: utc_now().date(),
    recent: float = 0.9,
) -> PriorityDecision:
    """Return a decision function boosting content published today."""

    def decide(item: ContentItemRecord, default: float) -> object:
        if item.published_on == today():
            return recent
        return default

    return decide


def exclude_noindex_items(item: ContentItemRecord) -> bool:
    return item.noindex


class ContentAggregator:
    """Convert provider candidates into a :class:`CappedEntrySet`.

    Items that fail validation are skipped one at a time. Provider and
    content store errors propagate so callers never write a partial
    document.
    """

    def __init__(
        self,
        registry: ContentProviderRegistry,
        *,
        skip_predicate: SkipPredicate | None = None,
        changefreq_override: ChangefreqDecision | None = None,
        priority_override: PriorityDecision | None = None,
        max_entries: int = SITEMAP_PROTOCOL_MAX_ENTRIES,
        candidate_page_size: int = DEFAULT_CANDIDATE_PAGE_SIZE,
    ) -> None:
        if candidate_page_size < 1:
            raise ValueError("Candidate page size must be at least 1")
        self._registry = registry
        self._candidate_page_size = candidate_page_size
        self._skip_predicate = skip_predicate
        self._changefreq_override = changefreq_override
        self._priority_override = priority_override
        self._max_entries = max_entries

    @property
    def registry(self) -> ContentProviderRegistry:
        return self._registry

    async def aggregate(
        self,
        key: SitemapKey,
        *,
        skip_predicate: SkipPredicate | None = None,
    ) -> CappedEntrySet[UrlEntry]:
        entries: CappedEntrySet[UrlEntry] = CappedEntrySet(
            max_entries=self._max_entries
        )
        skip_predicates = [
            predicate
            for predicate in (self._skip_predicate, skip_predicate)
            if predicate is not None
        ]
        skipped = 0
        invalid = 0

        for provider in self._registry.providers_for(key):
            if entries.is_full:
                break

            offset = 0
            while True:
                page = list(
                    await provider.get_candidates(
                        key, limit=self._candidate_page_size, offset=offset
                    )
                )
                offset += len(page)

                for position, item in enumerate(page):
                    # Rows past the ceiling are counted, never built.
                    if entries.is_full:
                        entries.mark_dropped(len(page) - position)
                        break

                    if any(predicate(item) for predicate in skip_predicates):
                        skipped += 1
                        continue

                    try:
                        entry = self._build_entry(item, provider)
                    except UrlEntryValidationError as error:
                        invalid += 1
                        _aggregator_logger.warning(
                            "sitemap_entry_invalid",
                            extra={
                                "sitemap_key": str(key),
                                "content_type": item.content_type,
                                "content_id": item.id,
                                "error": str(error),
                            },
                        )
                        continue

                    entries.add(entry)

                if len(page) < self._candidate_page_size:
                    break

        if entries.dropped_count:
            _aggregator_logger.warning(
                "sitemap_entry_ceiling_reached",
                extra={
                    "sitemap_key": str(key),
                    "entry_count": len(entries),
                    "dropped_count": entries.dropped_count,
                },
            )

        _aggregator_logger.debug(
            "sitemap_aggregation_completed",
            extra={
                "sitemap_key": str(key),
                "entry_count": len(entries),
                "skipped": skipped,
                "invalid": invalid,
            },
        )
        return entries

    def _build_entry(
        self,
        item: ContentItemRecord,
        provider: ContentSourceProvider,
    ) -> UrlEntry:
        changefreq: object = provider.default_changefreq
        if self._changefreq_override is not None:
            changefreq = self._changefreq_override(item, provider.default_changefreq)

        priority: object = provider.default_priority
        if self._priority_override is not None:
            priority = self._priority_override(item, provider.default_priority)

        images = tuple(
            ImageEntry(
                loc=image.loc,
                caption=image.caption,
                title=image.title,
                geo_location=image.geo_location,
                license=image.license,
            )
            for image in item.images
        )

        return UrlEntry(
            loc=item.url,
            lastmod=format_w3c_datetime(item.modified_at),
            changefreq=changefreq,  # type: ignore[arg-type]
            priority=priority,  # type: ignore[arg-type]
            images=images,
        )


__all__ = [
    "ChangefreqDecision",
    "ContentAggregator",
    "PriorityDecision",
    "SkipPredicate",
    "exclude_noindex_items",
    "recent_content_changefreq",
    "recent_content_priority",
]
