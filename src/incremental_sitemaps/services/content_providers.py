"""Pluggable content source providers and their explicit registry."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from incremental_sitemaps.config import Settings
from incremental_sitemaps.services.content_store import (
    ContentItemRecord,
    ContentStore,
    RecentlyModifiedRecord,
)
from incremental_sitemaps.services.sitemap_keys import SitemapKey
from incremental_sitemaps.services.url_entries import ChangeFrequency

POSTS_PROVIDER = "posts"
PAGES_PROVIDER = "pages"
TAXONOMY_PROVIDER = "taxonomies"
AUTHORS_PROVIDER = "authors"


class ProviderScope(str, Enum):
    """Whether a provider's documents are split per day or per entity."""

    DATE = "date"
    ENTITY = "entity"


class ContentProviderRegistrationError(RuntimeError):
    """Raised when a provider name is registered twice."""


class ContentSourceProvider(Protocol):
    """Supplies candidate content items for the sitemap keys it covers."""

    name: str
    scope: ProviderScope
    content_types: tuple[str, ...]
    default_changefreq: ChangeFrequency
    default_priority: float

    def covers(self, key: SitemapKey) -> bool: ...

    async def get_candidates(
        self,
        key: SitemapKey,
        *,
        limit: int | None = None,
        offset: int = 0,
    ) -> Sequence[ContentItemRecord]: ...

    async def list_keys(self) -> list[SitemapKey]: ...

    def key_for_modified(self, record: RecentlyModifiedRecord) -> SitemapKey | None: ...


@dataclass(slots=True, frozen=True)
class ProviderStatus:
    """Registry listing row for status output."""

    name: str
    scope: ProviderScope
    content_types: tuple[str, ...]


class DailyContentProvider:
    """Content published on a calendar day, one document per day."""

    scope = ProviderScope.DATE

    def __init__(
        self,
        *,
        store: ContentStore,
        content_types: Sequence[str] = ("post",),
        status: str = "publish",
        name: str = POSTS_PROVIDER,
        default_changefreq: ChangeFrequency = ChangeFrequency.MONTHLY,
        default_priority: float = 0.7,
    ) -> None:
        if not content_types:
            raise ValueError("Daily provider needs at least one content type")
        self.name = name
        self.content_types = tuple(content_types)
        self.default_changefreq = default_changefreq
        self.default_priority = default_priority
        self._store = store
        self._status = status

    def covers(self, key: SitemapKey) -> bool:
        return key.is_date

    async def get_candidates(
        self,
        key: SitemapKey,
        *,
        limit: int | None = None,
        offset: int = 0,
    ) -> Sequence[ContentItemRecord]:
        if key.sitemap_date is None:
            return []
        return await self._store.get_items_for_date(
            key.sitemap_date,
            self.content_types,
            self._status,
            limit=limit,
            offset=offset,
        )

    async def list_keys(self) -> list[SitemapKey]:
        return []

    def key_for_modified(self, record: RecentlyModifiedRecord) -> SitemapKey | None:
        if record.content_type not in self.content_types:
            return None
        return SitemapKey.for_date(record.published_on)


class EntityContentProvider:
    """Content grouped by entity rather than by day.

    With ``key_per_content_type`` each content type gets its own document
    (``taxonomies-category``); otherwise the provider owns a single document
    named after its entity type (``pages``).
    """

    scope = ProviderScope.ENTITY

    def __init__(
        self,
        *,
        store: ContentStore,
        name: str,
        content_types: Sequence[str],
        status: str = "publish",
        key_per_content_type: bool = False,
        default_changefreq: ChangeFrequency = ChangeFrequency.WEEKLY,
        default_priority: float = 0.5,
    ) -> None:
        if not content_types:
            raise ValueError("Entity provider needs at least one content type")
        self.name = name
        self.content_types = tuple(content_types)
        self.default_changefreq = default_changefreq
        self.default_priority = default_priority
        self._store = store
        self._status = status
        self._key_per_content_type = key_per_content_type

    def covers(self, key: SitemapKey) -> bool:
        if key.entity_type != self.name:
            return False
        if self._key_per_content_type:
            return key.entity_key in self.content_types
        return key.entity_key is None

    async def get_candidates(
        self,
        key: SitemapKey,
        *,
        limit: int | None = None,
        offset: int = 0,
    ) -> Sequence[ContentItemRecord]:
        if not self.covers(key):
            return []
        content_types = (
            (str(key.entity_key),) if self._key_per_content_type else self.content_types
        )
        return await self._store.get_items_for_types(
            content_types,
            self._status,
            limit=limit,
            offset=offset,
        )

    async def list_keys(self) -> list[SitemapKey]:
        present = await self._store.list_content_types_present(
            self.content_types, self._status
        )
        if not present:
            return []
        if self._key_per_content_type:
            return [SitemapKey.for_entity(self.name, content_type) for content_type in present]
        return [SitemapKey.for_entity(self.name)]

    def key_for_modified(self, record: RecentlyModifiedRecord) -> SitemapKey | None:
        if record.content_type not in self.content_types:
            return None
        if self._key_per_content_type:
            return SitemapKey.for_entity(self.name, record.content_type)
        return SitemapKey.for_entity(self.name)


class ContentProviderRegistry:
    """Ordered provider registry passed explicitly to the aggregator."""

    def __init__(self, providers: Sequence[ContentSourceProvider] = ()) -> None:
        self._providers: dict[str, ContentSourceProvider] = {}
        for provider in providers:
            self.register(provider)

    def register(self, provider: ContentSourceProvider) -> None:
        if provider.name in self._providers:
            raise ContentProviderRegistrationError(
                f"Content provider '{provider.name}' is already registered"
            )
        self._providers[provider.name] = provider

    def unregister(self, name: str) -> bool:
        return self._providers.pop(name, None) is not None

    def get(self, name: str) -> ContentSourceProvider:
        provider = self._providers.get(name)
        if provider is None:
            raise LookupError(f"Content provider '{name}' is not registered")
        return provider

    def providers(self) -> list[ContentSourceProvider]:
        return list(self._providers.values())

    def providers_for(self, key: SitemapKey) -> list[ContentSourceProvider]:
        return [provider for provider in self._providers.values() if provider.covers(key)]

    def daily_content_types(self) -> tuple[str, ...]:
        content_types: list[str] = []
        for provider in self._providers.values():
            if provider.scope is not ProviderScope.DATE:
                continue
            for content_type in provider.content_types:
                if content_type not in content_types:
                    content_types.append(content_type)
        return tuple(content_types)

    def entity_providers(self) -> list[ContentSourceProvider]:
        return [
            provider
            for provider in self._providers.values()
            if provider.scope is ProviderScope.ENTITY
        ]

    def status(self) -> list[ProviderStatus]:
        return [
            ProviderStatus(
                name=provider.name,
                scope=provider.scope,
                content_types=provider.content_types,
            )
            for provider in self._providers.values()
        ]

    def __len__(self) -> int:
        return len(self._providers)


def build_default_registry(
    settings: Settings,
    store: ContentStore,
) -> ContentProviderRegistry:
    """Register the providers enabled in ``settings``."""

    registry = ContentProviderRegistry()
    registry.register(
        DailyContentProvider(
            store=store,
            content_types=settings.DAILY_CONTENT_TYPES,
            status=settings.CONTENT_STATUS,
        )
    )
    if settings.INCLUDE_PAGES:
        registry.register(
            EntityContentProvider(
                store=store,
                name=PAGES_PROVIDER,
                content_types=("page",),
                status=settings.CONTENT_STATUS,
                default_priority=0.6,
            )
        )
    if settings.INCLUDE_TAXONOMIES and settings.ENABLED_TAXONOMIES:
        registry.register(
            EntityContentProvider(
                store=store,
                name=TAXONOMY_PROVIDER,
                content_types=settings.ENABLED_TAXONOMIES,
                status=settings.CONTENT_STATUS,
                key_per_content_type=True,
            )
        )
    if settings.INCLUDE_AUTHORS:
        registry.register(
            EntityContentProvider(
                store=store,
                name=AUTHORS_PROVIDER,
                content_types=("author",),
                status=settings.CONTENT_STATUS,
            )
        )
    return registry


__all__ = [
    "AUTHORS_PROVIDER",
    "ContentProviderRegistrationError",
    "ContentProviderRegistry",
    "ContentSourceProvider",
    "DailyContentProvider",
    "EntityContentProvider",
    "PAGES_PROVIDER",
    "POSTS_PROVIDER",
    "ProviderScope",
    "ProviderStatus",
    "TAXONOMY_PROVIDER",
    "build_default_registry",
]
