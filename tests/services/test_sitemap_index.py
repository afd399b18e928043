"""Tests for the top-level sitemap index."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

import pytest
from lxml import etree  # type: ignore[import-untyped]

from incremental_sitemaps.services.content_store import SessionScopeFactory
from incremental_sitemaps.services.document_store import SQLAlchemyDocumentStore
from incremental_sitemaps.services.sitemap_index import SitemapIndexService
from incremental_sitemaps.services.sitemap_keys import SitemapKey
from incremental_sitemaps.services.sitemap_renderer import SITEMAP_NAMESPACE


async def _store_documents(store: SQLAlchemyDocumentStore) -> None:
    for raw_key in ("2024-01-01", "taxonomies-category", "2024-03-01", "pages"):
        await store.upsert(SitemapKey.parse(raw_key), "<urlset/>", 1)


@pytest.mark.asyncio
async def test_index_lists_entities_then_days_newest_first(
    session_factory: SessionScopeFactory,
    clock: Callable[[], datetime],
) -> None:
    store = SQLAlchemyDocumentStore(session_factory=session_factory, clock=clock)
    await _store_documents(store)
    index = SitemapIndexService(document_store=store, base_url="https://example.com/")

    entries = await index.build()

    assert [entry.loc for entry in entries] == [
        "https://example.com/sitemap-pages.xml",
        "https://example.com/sitemap-taxonomies-category.xml",
        "https://example.com/sitemap-2024-03-01.xml",
        "https://example.com/sitemap-2024-01-01.xml",
    ]
    assert {entry.lastmod for entry in entries} == {"2024-03-15T12:00:00+00:00"}


@pytest.mark.asyncio
async def test_index_is_capped_and_rendered(
    session_factory: SessionScopeFactory,
    clock: Callable[[], datetime],
) -> None:
    store = SQLAlchemyDocumentStore(session_factory=session_factory, clock=clock)
    await _store_documents(store)
    index = SitemapIndexService(
        document_store=store,
        base_url="https://example.com",
        max_entries=2,
    )

    entries = await index.build()
    assert len(entries) == 2
    assert entries.dropped_count == 2

    root = etree.fromstring((await index.render()).encode("utf-8"))
    assert root.tag == f"{{{SITEMAP_NAMESPACE}}}sitemapindex"
    assert len(root) == 2


@pytest.mark.asyncio
async def test_empty_store_renders_empty_index(
    session_factory: SessionScopeFactory,
) -> None:
    index = SitemapIndexService(
        document_store=SQLAlchemyDocumentStore(session_factory=session_factory),
        base_url="https://example.com",
    )

    root = etree.fromstring((await index.render()).encode("utf-8"))

    assert len(root) == 0
