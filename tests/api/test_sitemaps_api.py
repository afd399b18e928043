"""Tests for stored sitemap document API routes."""

from __future__ import annotations

import os
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.sqlite")

from incremental_sitemaps.api.sitemaps import router
from incremental_sitemaps.config import Settings
from incremental_sitemaps.services.content_store import SessionScopeFactory
from incremental_sitemaps.services.engine import build_engine
from incremental_sitemaps.services.scheduler import ManualTickSource

AddContent = Callable[..., Awaitable[Any]]


@pytest.mark.asyncio
async def test_sitemaps_api_generates_lists_and_totals_documents(
    session_factory: SessionScopeFactory,
    clock: Callable[[], datetime],
    add_content: AddContent,
) -> None:
    await add_content(
        "https://example.com/posts/first/",
        datetime(2024, 3, 1, 9, 0, tzinfo=UTC),
    )
    await add_content(
        "https://example.com/posts/second/",
        datetime(2024, 3, 1, 15, 0, tzinfo=UTC),
    )
    app = FastAPI()
    app.include_router(router)
    app.state.sitemap_engine = build_engine(
        Settings(
            DATABASE_URL="sqlite+aiosqlite:///:memory:",
            SITE_URL="https://news.example",
            INCLUDE_PAGES=False,
            INCLUDE_TAXONOMIES=False,
            SITEMAP_CRON_ENABLED=False,
        ),
        session_factory=session_factory,
        tick_source=ManualTickSource(),
        clock=clock,
    )

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        empty_response = await client.get("/api/sitemaps")
        assert empty_response.status_code == 200
        assert empty_response.json() == []

        created_response = await client.post("/api/sitemaps/2024-03-01/generate")
        assert created_response.status_code == 200
        assert created_response.json() == {
            "key": "2024-03-01",
            "outcome": "created",
            "entry_count": 2,
            "dropped_count": 0,
            "changed": True,
        }

        skipped_response = await client.post("/api/sitemaps/2024-03-01/generate")
        assert skipped_response.json()["outcome"] == "skipped"
        assert skipped_response.json()["changed"] is False

        forced_response = await client.post(
            "/api/sitemaps/2024-03-01/generate", params={"force": "true"}
        )
        assert forced_response.json()["outcome"] == "updated"

        list_response = await client.get("/api/sitemaps")
        documents = list_response.json()
        assert len(documents) == 1
        assert documents[0]["key"] == "2024-03-01"
        assert documents[0]["filename"] == "sitemap-2024-03-01.xml"
        assert (
            documents[0]["location"] == "https://news.example/sitemap-2024-03-01.xml"
        )
        assert documents[0]["sitemap_date"] == "2024-03-01"
        assert documents[0]["entry_count"] == 2

        totals_response = await client.get("/api/sitemaps/totals")
        assert totals_response.status_code == 200
        assert totals_response.json() == {"document_count": 1, "url_count": 2}

        invalid_response = await client.post("/api/sitemaps/2024-02-30/generate")
        assert invalid_response.status_code == 422
