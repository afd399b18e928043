"""Tests for generation control API routes."""

from __future__ import annotations

import os
from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.sqlite")

from incremental_sitemaps.api.generation import router
from incremental_sitemaps.config import Settings
from incremental_sitemaps.database import get_db_session
from incremental_sitemaps.services.content_store import SessionScopeFactory
from incremental_sitemaps.services.engine import SitemapEngine, build_engine
from incremental_sitemaps.services.scheduler import ManualTickSource
from incremental_sitemaps.services.sitemap_jobs import (
    FULL_GENERATION_TICK_JOB_ID,
    INCREMENTAL_SITEMAP_JOB_ID,
)

AddContent = Callable[..., Awaitable[Any]]


def _build_app(
    session_factory: SessionScopeFactory,
    clock: Callable[[], datetime],
) -> tuple[FastAPI, SitemapEngine]:
    engine = build_engine(
        Settings(
            DATABASE_URL="sqlite+aiosqlite:///:memory:",
            INCLUDE_PAGES=False,
            INCLUDE_TAXONOMIES=False,
            SITEMAP_CRON_ENABLED=False,
        ),
        session_factory=session_factory,
        tick_source=ManualTickSource(),
        clock=clock,
    )
    app = FastAPI()
    app.include_router(router)
    app.state.sitemap_engine = engine
    return app, engine


@pytest.mark.asyncio
async def test_generation_api_cron_controls(
    session_factory: SessionScopeFactory,
    clock: Callable[[], datetime],
) -> None:
    app, _ = _build_app(session_factory, clock)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        status_response = await client.get("/api/generation")
        assert status_response.status_code == 200
        assert status_response.json()["enabled"] is False
        assert status_response.json()["phase"] == "idle"
        assert "hourly" in status_response.json()["valid_frequencies"]

        enable_response = await client.post("/api/generation/cron/enable")
        assert enable_response.status_code == 200
        assert enable_response.json()["enabled"] is True

        repeat_response = await client.post("/api/generation/cron/enable")
        assert repeat_response.status_code == 409

        invalid_frequency_response = await client.put(
            "/api/generation/cron/frequency", json={"frequency": "weekly"}
        )
        assert invalid_frequency_response.status_code == 422

        frequency_response = await client.put(
            "/api/generation/cron/frequency", json={"frequency": "hourly"}
        )
        assert frequency_response.status_code == 200
        assert frequency_response.json()["current_frequency"] == "hourly"

        disable_response = await client.post("/api/generation/cron/disable")
        assert disable_response.status_code == 200
        assert disable_response.json()["enabled"] is False

        repeat_disable_response = await client.post("/api/generation/cron/disable")
        assert repeat_disable_response.status_code == 409

        reset_response = await client.post("/api/generation/cron/reset")
        assert reset_response.status_code == 200
        assert reset_response.json()["enabled"] is False


@pytest.mark.asyncio
async def test_generation_api_full_rebuild_halt_and_incremental_pass(
    session_factory: SessionScopeFactory,
    clock: Callable[[], datetime],
    add_content: AddContent,
) -> None:
    await add_content(
        "https://example.com/posts/hello/",
        datetime(2024, 3, 1, 9, 0, tzinfo=UTC),
    )
    app, _ = _build_app(session_factory, clock)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        start_response = await client.post("/api/generation/full")
        assert start_response.status_code == 202
        assert start_response.json() == {
            "outcome": "started",
            "pending_years": [2024],
        }

        tick_response = await client.post("/api/generation/tick")
        assert tick_response.status_code == 200
        assert tick_response.json()["action"] == "year_processed"
        assert tick_response.json()["year"] == 2024

        halt_response = await client.post("/api/generation/halt")
        assert halt_response.status_code == 200
        assert halt_response.json()["stop_requested"] is True

        halted_tick_response = await client.post("/api/generation/tick")
        assert halted_tick_response.status_code == 200
        assert halted_tick_response.json()["action"] == "halted"

        halted_status = (await client.get("/api/generation")).json()
        assert halted_status["in_progress"] is False
        assert halted_status["pending_months"] == [3]

        reset_response = await client.post("/api/generation/reset")
        assert reset_response.status_code == 200
        assert reset_response.json()["phase"] == "idle"
        assert reset_response.json()["pending_months"] == []

        incremental_response = await client.post("/api/generation/incremental")
        assert incremental_response.status_code == 200
        payload = incremental_response.json()
        assert payload["skipped"] is False
        assert payload["generated"] == 1
        assert payload["missing_dates"] == ["2024-03-01"]


@pytest.mark.asyncio
async def test_generation_api_returns_unavailable_without_engine() -> None:
    app = FastAPI()
    app.include_router(router)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        status_response = await client.get("/api/generation")
        tick_response = await client.post("/api/generation/tick")

    assert status_response.status_code == 503
    assert tick_response.status_code == 503


@pytest.mark.asyncio
async def test_generation_api_job_monitoring_and_history(
    session_factory: SessionScopeFactory,
    clock: Callable[[], datetime],
) -> None:
    app, engine = _build_app(session_factory, clock)
    await engine.jobs.run_incremental_job()

    async def _session_override() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = _session_override

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        monitoring_response = await client.get("/api/generation/jobs/monitoring")
        assert monitoring_response.status_code == 200
        monitoring = {item["job_id"]: item for item in monitoring_response.json()}
        assert set(monitoring) == {
            INCREMENTAL_SITEMAP_JOB_ID,
            FULL_GENERATION_TICK_JOB_ID,
        }
        assert monitoring[INCREMENTAL_SITEMAP_JOB_ID]["successful_runs"] == 1

        history_response = await client.get(
            "/api/generation/jobs/history",
            params={"job_id": INCREMENTAL_SITEMAP_JOB_ID, "status": "success"},
        )
        assert history_response.status_code == 200
        history = history_response.json()
        assert history["total_items"] == 1
        assert history["page"] == 1
        assert history["items"][0]["job_id"] == INCREMENTAL_SITEMAP_JOB_ID

        empty_history_response = await client.get(
            "/api/generation/jobs/history", params={"status": "failed"}
        )
        assert empty_history_response.json()["total_items"] == 0
        assert empty_history_response.json()["items"] == []
