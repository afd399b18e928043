"""Tests for content store queries and the provider registry."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import UTC, date, datetime
from typing import Any

import pytest

from incremental_sitemaps.config import Settings
from incremental_sitemaps.services.content_providers import (
    ContentProviderRegistrationError,
    ContentProviderRegistry,
    DailyContentProvider,
    EntityContentProvider,
    build_default_registry,
)
from incremental_sitemaps.services.content_store import (
    RecentlyModifiedRecord,
    SessionScopeFactory,
    SQLAlchemyContentStore,
)
from incremental_sitemaps.services.sitemap_keys import SitemapKey

AddContent = Callable[..., Awaitable[Any]]


async def _seed(add_content: AddContent) -> None:
    await add_content(
        "https://example.com/2023/06/old/",
        datetime(2023, 6, 15, 8, 0, tzinfo=UTC),
    )
    await add_content(
        "https://example.com/2024/03/morning/",
        datetime(2024, 3, 1, 8, 0, tzinfo=UTC),
        image_urls=("https://example.com/morning.png",),
    )
    await add_content(
        "https://example.com/2024/03/evening/",
        datetime(2024, 3, 1, 20, 0, tzinfo=UTC),
        modified_at=datetime(2024, 3, 14, 9, 0, tzinfo=UTC),
    )
    await add_content(
        "https://example.com/2024/03/draft/",
        datetime(2024, 3, 2, 8, 0, tzinfo=UTC),
        status="draft",
    )
    await add_content(
        "https://example.com/about/",
        datetime(2022, 1, 1, 8, 0, tzinfo=UTC),
        content_type="page",
    )
    await add_content(
        "https://example.com/category/news/",
        datetime(2022, 1, 1, 8, 0, tzinfo=UTC),
        content_type="category",
    )


@pytest.mark.asyncio
async def test_content_store_date_queries_respect_status_and_types(
    session_factory: SessionScopeFactory,
    add_content: AddContent,
) -> None:
    await _seed(add_content)
    store = SQLAlchemyContentStore(session_factory=session_factory)

    assert await store.find_content_dates_with_status("publish", ["post"]) == [
        date(2023, 6, 15),
        date(2024, 3, 1),
    ]
    assert await store.find_content_dates_with_status(
        "publish", ["post"], start=date(2024, 1, 1)
    ) == [date(2024, 3, 1)]
    assert await store.count_content_for_date(date(2024, 3, 1), ["post"], "publish") == 2
    assert await store.count_content_for_date(date(2024, 3, 2), ["post"], "publish") == 0
    assert await store.date_range_has_content(
        date(2023, 1, 1), date(2023, 12, 31), ["post"], "publish"
    )
    assert not await store.date_range_has_content(
        date(2022, 1, 1), date(2022, 12, 31), ["post"], "publish"
    )
    assert await store.earliest_content_date("publish", ["post"]) == date(2023, 6, 15)


@pytest.mark.asyncio
async def test_get_items_for_date_orders_by_publish_time_and_loads_images(
    session_factory: SessionScopeFactory,
    add_content: AddContent,
) -> None:
    await _seed(add_content)
    store = SQLAlchemyContentStore(session_factory=session_factory)

    items = await store.get_items_for_date(date(2024, 3, 1), ["post"], "publish")

    assert [item.url for item in items] == [
        "https://example.com/2024/03/morning/",
        "https://example.com/2024/03/evening/",
    ]
    assert items[0].images[0].loc == "https://example.com/morning.png"
    assert items[0].published_at.tzinfo is not None

    limited = await store.get_items_for_date(
        date(2024, 3, 1), ["post"], "publish", limit=1
    )
    assert len(limited) == 1


@pytest.mark.asyncio
async def test_find_recently_modified_returns_newest_first(
    session_factory: SessionScopeFactory,
    add_content: AddContent,
) -> None:
    await _seed(add_content)
    store = SQLAlchemyContentStore(session_factory=session_factory)

    records = await store.find_recently_modified(datetime(2024, 3, 1, 12, 0, tzinfo=UTC))

    assert [record.published_on for record in records] == [
        date(2024, 3, 1),
        date(2024, 3, 2),
    ]
    assert records[0].modified_at == datetime(2024, 3, 14, 9, 0, tzinfo=UTC)

    published_only = await store.find_recently_modified(
        datetime(2024, 3, 1, 12, 0, tzinfo=UTC), status="publish"
    )
    assert [record.published_on for record in published_only] == [date(2024, 3, 1)]


@pytest.mark.asyncio
async def test_earliest_content_date_is_cached_until_cleared(
    session_factory: SessionScopeFactory,
    add_content: AddContent,
) -> None:
    await _seed(add_content)
    now = [0.0]
    store = SQLAlchemyContentStore(
        session_factory=session_factory,
        earliest_date_cache_seconds=60,
        clock=lambda: now[0],
    )

    assert await store.earliest_content_date("publish", ["post"]) == date(2023, 6, 15)

    await add_content(
        "https://example.com/2020/01/older/",
        datetime(2020, 1, 5, 8, 0, tzinfo=UTC),
    )
    assert await store.earliest_content_date("publish", ["post"]) == date(2023, 6, 15)

    now[0] = 61.0
    assert await store.earliest_content_date("publish", ["post"]) == date(2020, 1, 5)

    await add_content(
        "https://example.com/2019/01/oldest/",
        datetime(2019, 1, 5, 8, 0, tzinfo=UTC),
    )
    store.clear_cache()
    assert await store.earliest_content_date("publish", ["post"]) == date(2019, 1, 5)


@pytest.mark.asyncio
async def test_entity_providers_list_keys_and_map_modified_records(
    session_factory: SessionScopeFactory,
    add_content: AddContent,
) -> None:
    await _seed(add_content)
    store = SQLAlchemyContentStore(session_factory=session_factory)
    pages = EntityContentProvider(store=store, name="pages", content_types=("page",))
    taxonomies = EntityContentProvider(
        store=store,
        name="taxonomies",
        content_types=("category", "post_tag"),
        key_per_content_type=True,
    )

    assert await pages.list_keys() == [SitemapKey.for_entity("pages")]
    assert await taxonomies.list_keys() == [
        SitemapKey.for_entity("taxonomies", "category")
    ]
    assert taxonomies.covers(SitemapKey.parse("taxonomies-category"))
    assert not taxonomies.covers(SitemapKey.parse("taxonomies-author"))
    assert not pages.covers(SitemapKey.parse("pages-about"))

    candidates = await taxonomies.get_candidates(SitemapKey.parse("taxonomies-category"))
    assert [item.url for item in candidates] == ["https://example.com/category/news/"]

    record = RecentlyModifiedRecord(
        id=1,
        content_type="post_tag",
        published_on=date(2024, 3, 1),
        modified_at=datetime(2024, 3, 1, tzinfo=UTC),
    )
    assert taxonomies.key_for_modified(record) == SitemapKey.parse("taxonomies-post_tag")
    assert pages.key_for_modified(record) is None


@pytest.mark.asyncio
async def test_registry_rejects_duplicate_provider_names(
    session_factory: SessionScopeFactory,
) -> None:
    store = SQLAlchemyContentStore(session_factory=session_factory)
    registry = ContentProviderRegistry([DailyContentProvider(store=store)])

    with pytest.raises(ContentProviderRegistrationError):
        registry.register(DailyContentProvider(store=store))

    assert registry.unregister("posts") is True
    assert registry.unregister("posts") is False
    with pytest.raises(LookupError):
        registry.get("posts")


@pytest.mark.asyncio
async def test_default_registry_follows_settings(
    session_factory: SessionScopeFactory,
) -> None:
    store = SQLAlchemyContentStore(session_factory=session_factory)
    settings = Settings(
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        DAILY_CONTENT_TYPES=["post", "recipe"],
        INCLUDE_PAGES=True,
        INCLUDE_TAXONOMIES=True,
        ENABLED_TAXONOMIES=["category"],
        INCLUDE_AUTHORS=True,
    )

    registry = build_default_registry(settings, store)

    assert [status.name for status in registry.status()] == [
        "posts",
        "pages",
        "taxonomies",
        "authors",
    ]
    assert registry.daily_content_types() == ("post", "recipe")
    assert [provider.name for provider in registry.entity_providers()] == [
        "pages",
        "taxonomies",
        "authors",
    ]
    assert [
        provider.name for provider in registry.providers_for(SitemapKey.parse("pages"))
    ] == ["pages"]
