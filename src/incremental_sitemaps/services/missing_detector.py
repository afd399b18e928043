"""Detect sitemap documents that are missing, stale or orphaned."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from incremental_sitemaps.services.content_providers import ContentProviderRegistry
from incremental_sitemaps.services.content_store import ContentStore
from incremental_sitemaps.services.document_store import DocumentStore
from incremental_sitemaps.services.sitemap_keys import SitemapKey
from incremental_sitemaps.utils.dates import ensure_utc, utc_now

DEFAULT_LOOKBACK_SECONDS = 86_400

_detector_logger = logging.getLogger("incremental_sitemaps.detector")


def _sorted_keys(keys: set[SitemapKey]) -> tuple[SitemapKey, ...]:
    return tuple(sorted(keys, key=str))


@dataclass(slots=True, frozen=True)
class MissingSitemapReport:
    """Derived snapshot of documents that need work."""

    missing_dates: tuple[date, ...] = ()
    stale_dates: tuple[date, ...] = ()
    orphaned_dates: tuple[date, ...] = ()
    missing_entity_keys: tuple[SitemapKey, ...] = ()
    stale_entity_keys: tuple[SitemapKey, ...] = ()
    orphaned_entity_keys: tuple[SitemapKey, ...] = ()
    recently_modified_count: int = 0

    @property
    def all_dates_to_generate(self) -> tuple[date, ...]:
        """Stale dates first, then missing dates, each oldest first."""

        stale = set(self.stale_dates)
        return tuple(sorted(stale)) + tuple(
            day for day in sorted(set(self.missing_dates)) if day not in stale
        )

    @property
    def entity_keys_to_generate(self) -> tuple[SitemapKey, ...]:
        stale = set(self.stale_entity_keys)
        return _sorted_keys(stale) + tuple(
            key for key in _sorted_keys(set(self.missing_entity_keys)) if key not in stale
        )

    @property
    def has_work(self) -> bool:
        return bool(
            self.missing_dates
            or self.stale_dates
            or self.orphaned_dates
            or self.missing_entity_keys
            or self.stale_entity_keys
            or self.orphaned_entity_keys
        )

    def summary(self) -> dict[str, int]:
        return {
            "missing_dates": len(self.missing_dates),
            "stale_dates": len(self.stale_dates),
            "orphaned_dates": len(self.orphaned_dates),
            "missing_entity_keys": len(self.missing_entity_keys),
            "stale_entity_keys": len(self.stale_entity_keys),
            "orphaned_entity_keys": len(self.orphaned_entity_keys),
            "recently_modified": self.recently_modified_count,
        }


class MissingSitemapDetector:
    """Compare stored documents against the content store.

    Any store failure propagates; callers must not write after a failed
    detection.
    """

    def __init__(
        self,
        *,
        content_store: ContentStore,
        document_store: DocumentStore,
        registry: ContentProviderRegistry,
        status: str = "publish",
        lookback_seconds: int = DEFAULT_LOOKBACK_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._content_store = content_store
        self._document_store = document_store
        self._registry = registry
        self._status = status
        self._lookback = timedelta(seconds=lookback_seconds)
        self._clock = clock

    async def detect(self, *, since: datetime | None = None) -> MissingSitemapReport:
        now = ensure_utc(self._clock())
        today = now.date()

        built_at = {
            summary.key: summary.last_built_at
            for summary in await self._document_store.list_summaries()
        }
        existing_dates = {key.sitemap_date for key in built_at if key.sitemap_date}
        existing_entities = {key for key in built_at if not key.is_date}

        content_types = self._registry.daily_content_types()
        content_dates: set[date] = set()
        candidate_dates: set[date] = set()
        if content_types:
            earliest = await self._content_store.earliest_content_date(
                self._status, content_types
            )
            content_dates = set(
                await self._content_store.find_content_dates_with_status(
                    self._status, content_types
                )
            )
            if earliest is not None:
                candidate_dates = {
                    day for day in content_dates if earliest <= day <= today
                }

        missing_dates = sorted(candidate_dates - existing_dates)

        orphaned_dates: list[date] = []
        for day in sorted(existing_dates - content_dates):
            if not content_types or not await self._content_store.count_content_for_date(
                day, content_types, self._status
            ):
                orphaned_dates.append(day)

        expected_entities: set[SitemapKey] = set()
        for provider in self._registry.entity_providers():
            expected_entities.update(await provider.list_keys())
        missing_entities = expected_entities - existing_entities
        orphaned_entities = existing_entities - expected_entities

        window_start = now - self._lookback
        query_since = window_start
        if since is not None and ensure_utc(since) > window_start:
            query_since = ensure_utc(since)
        recently_modified = await self._content_store.find_recently_modified(
            query_since
        )

        stale_keys: set[SitemapKey] = set()
        providers = self._registry.providers()
        for record in recently_modified:
            for provider in providers:
                key = provider.key_for_modified(record)
                if key is None:
                    continue
                last_built_at = built_at.get(key)
                if last_built_at is not None and record.modified_at > last_built_at:
                    stale_keys.add(key)

        orphaned_date_set = set(orphaned_dates)
        stale_dates = sorted(
            key.sitemap_date
            for key in stale_keys
            if key.sitemap_date is not None
            and key.sitemap_date not in orphaned_date_set
        )
        stale_entities = {
            key
            for key in stale_keys
            if not key.is_date and key not in orphaned_entities
        }

        report = MissingSitemapReport(
            missing_dates=tuple(missing_dates),
            stale_dates=tuple(stale_dates),
            orphaned_dates=tuple(orphaned_dates),
            missing_entity_keys=_sorted_keys(missing_entities),
            stale_entity_keys=_sorted_keys(stale_entities),
            orphaned_entity_keys=_sorted_keys(orphaned_entities),
            recently_modified_count=len(recently_modified),
        )
        _detector_logger.info(
            "missing_sitemap_detection_completed",
            extra=report.summary(),
        )
        return report


__all__ = ["MissingSitemapDetector", "MissingSitemapReport"]
