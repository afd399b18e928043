"""Tests for the engine facade wiring."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import UTC, date, datetime
from typing import Any

import pytest
from lxml import etree  # type: ignore[import-untyped]

from incremental_sitemaps.config import Settings
from incremental_sitemaps.services.content_store import SessionScopeFactory
from incremental_sitemaps.services.engine import build_engine
from incremental_sitemaps.services.scheduler import ManualTickSource
from incremental_sitemaps.services.sitemap_keys import SitemapKey
from incremental_sitemaps.services.sitemap_renderer import SITEMAP_NAMESPACE

AddContent = Callable[..., Awaitable[Any]]


@pytest.mark.asyncio
async def test_engine_generates_serves_and_indexes_documents(
    session_factory: SessionScopeFactory,
    clock: Callable[[], datetime],
    add_content: AddContent,
) -> None:
    await add_content(
        "https://news.example/posts/hello/",
        datetime(2024, 3, 1, 9, 0, tzinfo=UTC),
    )
    await add_content(
        "https://news.example/about/",
        datetime(2023, 1, 1, 9, 0, tzinfo=UTC),
        content_type="page",
    )
    engine = build_engine(
        Settings(
            DATABASE_URL="sqlite+aiosqlite:///:memory:",
            SITE_URL="https://news.example",
            INCLUDE_TAXONOMIES=False,
            SITEMAP_CRON_ENABLED=False,
        ),
        session_factory=session_factory,
        tick_source=ManualTickSource(),
        clock=clock,
    )

    result = await engine.run_incremental_pass()
    assert result.summary()["generated"] == 2

    day_document = await engine.get_document(SitemapKey.for_date(date(2024, 3, 1)))
    assert day_document is not None
    assert "https://news.example/posts/hello/" in day_document.xml_body
    assert "https://news.example/about/" not in day_document.xml_body

    pages_document = await engine.get_document(SitemapKey.for_entity("pages"))
    assert pages_document is not None
    assert "https://news.example/about/" in pages_document.xml_body

    assert await engine.total_url_count() == 2

    index = etree.fromstring((await engine.render_index()).encode("utf-8"))
    locations = [
        element.text for element in index.iter(f"{{{SITEMAP_NAMESPACE}}}loc")
    ]
    assert locations == [
        "https://news.example/sitemap-pages.xml",
        "https://news.example/sitemap-2024-03-01.xml",
    ]

    await engine.reset_all_state()
    status = await engine.get_status()
    assert status.in_progress is False
    assert status.last_run is None
