"""Application entry point for the incremental sitemap engine."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime
import logging
import signal
from typing import Any

from fastapi import FastAPI, Request
from starlette.responses import Response
import uvicorn

from incremental_sitemaps.api.generation import router as generation_router
from incremental_sitemaps.api.sitemaps import router as sitemaps_router
from incremental_sitemaps.config import get_settings
from incremental_sitemaps.database import (
    close_database,
    initialize_database,
    run_startup_database_health_check,
)
from incremental_sitemaps.services.engine import SitemapEngine, build_engine
from incremental_sitemaps.services.scheduler import SchedulerService
from incremental_sitemaps.services.sitemap_jobs import set_sitemap_jobs_service
from incremental_sitemaps.utils.logging import (
    add_request_logging_middleware,
    setup_logging,
)

__all__ = ["app", "create_app", "main"]

_lifecycle_logger = logging.getLogger("incremental_sitemaps.lifecycle")


def _initialize_lifecycle_state(app: FastAPI) -> None:
    app.state.inflight_requests = 0
    app.state.requests_drained = asyncio.Event()
    app.state.requests_drained.set()
    app.state.shutdown_requested = asyncio.Event()
    app.state.shutdown_signal = None
    app.state.session_started_at = datetime.now(UTC)


def _handle_shutdown_signal(app: FastAPI, signum: int) -> None:
    if app.state.shutdown_requested.is_set():
        return

    app.state.shutdown_signal = signal.Signals(signum).name
    app.state.shutdown_requested.set()
    engine = getattr(app.state, "sitemap_engine", None)
    if isinstance(engine, SitemapEngine):
        engine.request_shutdown()
    _lifecycle_logger.warning(
        "shutdown_signal_received",
        extra={"signal": app.state.shutdown_signal},
    )


async def _log_startup_summary(
    engine: SitemapEngine,
    *,
    interrupted_jobs_detected: int,
    auto_resumed_jobs: int,
    cron_enabled: bool,
) -> None:
    documents = await engine.list_documents()
    state = await engine.full_generation.get_state()
    _lifecycle_logger.info(
        "startup_recovery_summary",
        extra={
            "document_count": len(documents),
            "url_count": sum(summary.entry_count for summary in documents),
            "phase": state.phase.value,
            "providers": [status.name for status in engine.registry.status()],
            "cron_enabled": cron_enabled,
            "interrupted_jobs_detected": interrupted_jobs_detected,
            "auto_resumed_jobs": auto_resumed_jobs,
        },
    )


async def _wait_for_inflight_requests(app: FastAPI, *, timeout_seconds: int) -> bool:
    if app.state.inflight_requests <= 0:
        return True

    try:
        await asyncio.wait_for(
            app.state.requests_drained.wait(), timeout=timeout_seconds
        )
    except TimeoutError:
        return False

    return True


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    _initialize_lifecycle_state(app)

    scheduler_service = SchedulerService.from_settings(settings)
    engine = build_engine(settings, tick_source=scheduler_service)
    engine.install_jobs()
    app.state.scheduler_service = scheduler_service
    app.state.sitemap_engine = engine

    previous_handlers: dict[signal.Signals, Any] = {}
    for handled_signal in (signal.SIGTERM, signal.SIGINT):
        previous_handlers[handled_signal] = signal.getsignal(handled_signal)

        def _signal_handler(signum: int, frame: object | None) -> None:
            _handle_shutdown_signal(app, signum)
            previous_handler = previous_handlers[signal.Signals(signum)]
            if callable(previous_handler):
                previous_handler(signum, frame)

        signal.signal(handled_signal, _signal_handler)

    await initialize_database()
    await run_startup_database_health_check()
    startup_recovery_result = await engine.recovery.handle_startup_recovery(
        auto_resume=settings.JOB_RECOVERY_AUTO_RESUME
    )
    await scheduler_service.start()
    cron_enabled = await engine.cron.sync_schedule()
    await _log_startup_summary(
        engine,
        interrupted_jobs_detected=startup_recovery_result.detected_count,
        auto_resumed_jobs=startup_recovery_result.auto_resumed,
        cron_enabled=cron_enabled,
    )

    try:
        yield
    finally:
        engine.request_shutdown()
        graceful_shutdown = await _wait_for_inflight_requests(
            app,
            timeout_seconds=settings.SHUTDOWN_GRACE_PERIOD_SECONDS,
        )
        await scheduler_service.shutdown()
        jobs_marked_interrupted = await engine.recovery.persist_shutdown_checkpoints()
        shutdown_summary = await engine.recovery.summarize_session(
            session_started_at=app.state.session_started_at
        )
        _lifecycle_logger.info(
            "shutdown_summary",
            extra={
                "jobs_completed": shutdown_summary.jobs_completed,
                "jobs_interrupted": shutdown_summary.jobs_interrupted,
                "documents_processed": shutdown_summary.documents_processed,
                "jobs_marked_interrupted": jobs_marked_interrupted,
                "graceful_shutdown": graceful_shutdown,
                "forced_timeout": not graceful_shutdown,
                "inflight_requests": app.state.inflight_requests,
                "signal": app.state.shutdown_signal,
            },
        )
        for handled_signal, previous_handler in previous_handlers.items():
            signal.signal(handled_signal, previous_handler)
        set_sitemap_jobs_service(None)
        await close_database()


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings)

    app = FastAPI(title="Incremental Sitemaps", lifespan=lifespan)
    _initialize_lifecycle_state(app)

    @app.middleware("http")
    async def track_inflight_requests(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        app.state.inflight_requests = (
            int(getattr(app.state, "inflight_requests", 0)) + 1
        )
        requests_drained = getattr(app.state, "requests_drained", None)
        if requests_drained is None:
            requests_drained = asyncio.Event()
            app.state.requests_drained = requests_drained
        requests_drained.clear()
        try:
            response = await call_next(request)
        finally:
            app.state.inflight_requests = max(0, app.state.inflight_requests - 1)
            if app.state.inflight_requests == 0:
                requests_drained.set()
        return response

    app.state.settings = settings
    add_request_logging_middleware(app)
    app.include_router(generation_router)
    app.include_router(sitemaps_router)

    @app.get("/health", tags=["health"])
    async def health_check() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "incremental_sitemaps.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
        reload=False,
    )
