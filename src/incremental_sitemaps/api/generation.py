"""Generation control API routes."""

from __future__ import annotations

from datetime import datetime
from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from incremental_sitemaps.database import get_db_session
from incremental_sitemaps.models import JobExecution
from incremental_sitemaps.schemas import (
    CronFrequencyUpdate,
    FullGenerationStartRead,
    FullGenerationTickRead,
    GenerationStatusRead,
    IncrementalRunRead,
    JobExecutionHistoryItem,
    JobExecutionHistoryResponse,
    JobMonitoringRead,
)
from incremental_sitemaps.services.engine import SitemapEngine
from incremental_sitemaps.services.full_generation import TickResult
from incremental_sitemaps.services.generation_state import GenerationStateError
from incremental_sitemaps.services.incremental_runner import IncrementalRunResult

router = APIRouter(prefix="/api/generation", tags=["generation"])


def _get_sitemap_engine(request: Request) -> SitemapEngine:
    engine = getattr(request.app.state, "sitemap_engine", None)
    if isinstance(engine, SitemapEngine):
        return engine

    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Sitemap engine is unavailable",
    )


def _raise_generation_error(error: Exception) -> NoReturn:
    if isinstance(error, GenerationStateError):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(error),
        ) from error

    if isinstance(error, ValueError):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(error),
        ) from error

    if isinstance(error, RuntimeError):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(error),
        ) from error

    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Unexpected generation operation failure",
    ) from error


async def _status_response(engine: SitemapEngine) -> GenerationStatusRead:
    cron_status = await engine.get_status()
    state = await engine.full_generation.get_state()
    return GenerationStatusRead(
        enabled=cron_status.enabled,
        in_progress=cron_status.in_progress,
        halted=cron_status.halted,
        stop_requested=cron_status.stop_requested,
        next_scheduled=cron_status.next_scheduled,
        last_run=cron_status.last_run,
        last_check=cron_status.last_check,
        last_update=cron_status.last_update,
        current_frequency=cron_status.current_frequency,
        valid_frequencies=list(cron_status.valid_frequencies),
        phase=state.phase.value,
        pending_years=state.pending_years,
        pending_months=state.pending_months,
        pending_days=state.pending_days,
        current_year=state.current_year,
        current_month=state.current_month,
    )


def _tick_response(result: TickResult) -> FullGenerationTickRead:
    generation = result.generation
    return FullGenerationTickRead(
        action=result.action.value,
        phase=result.phase.value,
        year=result.year,
        month=result.month,
        day=result.day,
        outcome=generation.outcome.value if generation is not None else None,
        entry_count=generation.entry_count if generation is not None else None,
        completed=result.completed,
        error=result.error,
    )


def _incremental_response(result: IncrementalRunResult) -> IncrementalRunRead:
    summary = result.summary()
    report = result.report
    return IncrementalRunRead(
        skipped=result.skipped,
        stopped=result.stopped,
        generated=summary["generated"],
        deleted=summary["deleted"],
        missing_dates=list(report.missing_dates) if report is not None else [],
        stale_dates=list(report.stale_dates) if report is not None else [],
        orphaned_dates=list(report.orphaned_dates) if report is not None else [],
    )


@router.get("", response_model=GenerationStatusRead, status_code=status.HTTP_200_OK)
async def get_generation_status(
    engine: SitemapEngine = Depends(_get_sitemap_engine),
) -> GenerationStatusRead:
    try:
        return await _status_response(engine)
    except Exception as error:
        _raise_generation_error(error)


@router.post(
    "/full",
    response_model=FullGenerationStartRead,
    status_code=status.HTTP_202_ACCEPTED,
)
async def start_full_generation(
    restart: bool = False,
    engine: SitemapEngine = Depends(_get_sitemap_engine),
) -> FullGenerationStartRead:
    try:
        result = await engine.start_full_generation(restart=restart)
    except Exception as error:
        _raise_generation_error(error)

    return FullGenerationStartRead(
        outcome=result.outcome.value,
        pending_years=list(result.pending_years),
    )


@router.post(
    "/tick", response_model=FullGenerationTickRead, status_code=status.HTTP_200_OK
)
async def run_full_generation_tick(
    engine: SitemapEngine = Depends(_get_sitemap_engine),
) -> FullGenerationTickRead:
    try:
        result = await engine.tick()
    except Exception as error:
        _raise_generation_error(error)

    return _tick_response(result)


@router.post(
    "/halt", response_model=GenerationStatusRead, status_code=status.HTTP_200_OK
)
async def halt_generation(
    engine: SitemapEngine = Depends(_get_sitemap_engine),
) -> GenerationStatusRead:
    try:
        await engine.halt_generation()
        return await _status_response(engine)
    except Exception as error:
        _raise_generation_error(error)


@router.post(
    "/reset", response_model=GenerationStatusRead, status_code=status.HTTP_200_OK
)
async def reset_generation_state(
    engine: SitemapEngine = Depends(_get_sitemap_engine),
) -> GenerationStatusRead:
    try:
        await engine.reset_all_state()
        return await _status_response(engine)
    except Exception as error:
        _raise_generation_error(error)


@router.post(
    "/incremental", response_model=IncrementalRunRead, status_code=status.HTTP_200_OK
)
async def run_incremental_pass(
    engine: SitemapEngine = Depends(_get_sitemap_engine),
) -> IncrementalRunRead:
    try:
        result = await engine.run_incremental_pass()
    except Exception as error:
        _raise_generation_error(error)

    return _incremental_response(result)


@router.post(
    "/cron/enable", response_model=GenerationStatusRead, status_code=status.HTTP_200_OK
)
async def enable_cron(
    engine: SitemapEngine = Depends(_get_sitemap_engine),
) -> GenerationStatusRead:
    try:
        await engine.enable_cron()
        return await _status_response(engine)
    except Exception as error:
        _raise_generation_error(error)


@router.post(
    "/cron/disable",
    response_model=GenerationStatusRead,
    status_code=status.HTTP_200_OK,
)
async def disable_cron(
    engine: SitemapEngine = Depends(_get_sitemap_engine),
) -> GenerationStatusRead:
    try:
        await engine.disable_cron()
        return await _status_response(engine)
    except Exception as error:
        _raise_generation_error(error)


@router.post(
    "/cron/reset", response_model=GenerationStatusRead, status_code=status.HTTP_200_OK
)
async def reset_cron(
    engine: SitemapEngine = Depends(_get_sitemap_engine),
) -> GenerationStatusRead:
    try:
        await engine.cron.reset_cron()
        return await _status_response(engine)
    except Exception as error:
        _raise_generation_error(error)


@router.put(
    "/cron/frequency",
    response_model=GenerationStatusRead,
    status_code=status.HTTP_200_OK,
)
async def update_cron_frequency(
    payload: CronFrequencyUpdate,
    engine: SitemapEngine = Depends(_get_sitemap_engine),
) -> GenerationStatusRead:
    try:
        await engine.update_frequency(payload.frequency)
        return await _status_response(engine)
    except Exception as error:
        _raise_generation_error(error)


@router.get(
    "/jobs/monitoring",
    response_model=list[JobMonitoringRead],
    status_code=status.HTTP_200_OK,
)
async def list_job_monitoring(
    engine: SitemapEngine = Depends(_get_sitemap_engine),
) -> list[JobMonitoringRead]:
    return [
        JobMonitoringRead(
            job_id=metrics.job_id,
            name=metrics.name,
            total_runs=metrics.total_runs,
            successful_runs=metrics.successful_runs,
            failed_runs=metrics.failed_runs,
            overlap_skips=metrics.overlap_skips,
            running=metrics.running,
            last_started_at=metrics.last_started_at,
            last_finished_at=metrics.last_finished_at,
            last_duration_ms=metrics.last_duration_ms,
            last_error=metrics.last_error,
        )
        for metrics in engine.jobs.monitoring_snapshot()
    ]


@router.get(
    "/jobs/history",
    response_model=JobExecutionHistoryResponse,
    status_code=status.HTTP_200_OK,
)
async def list_job_history(
    page: int = 1,
    page_size: int = 20,
    job_id: str | None = None,
    status_filter: str | None = Query(default=None, alias="status"),
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    session: AsyncSession = Depends(get_db_session),
) -> JobExecutionHistoryResponse:
    safe_page = max(page, 1)
    safe_page_size = min(max(page_size, 1), 100)

    statement = select(JobExecution)
    if job_id:
        statement = statement.where(JobExecution.job_id == job_id.strip())
    if status_filter:
        statement = statement.where(
            JobExecution.status == status_filter.strip().lower()
        )
    if date_from is not None:
        statement = statement.where(JobExecution.started_at >= date_from)
    if date_to is not None:
        statement = statement.where(JobExecution.started_at <= date_to)

    total_items = int(
        (await session.scalar(select(func.count()).select_from(statement.subquery())))
        or 0
    )
    total_pages = max(1, ((total_items - 1) // safe_page_size) + 1)
    bounded_page = min(safe_page, total_pages)

    rows = (
        await session.scalars(
            statement.order_by(JobExecution.started_at.desc())
            .offset((bounded_page - 1) * safe_page_size)
            .limit(safe_page_size)
        )
    ).all()

    return JobExecutionHistoryResponse(
        page=bounded_page,
        page_size=safe_page_size,
        total_items=total_items,
        total_pages=total_pages,
        items=[
            JobExecutionHistoryItem(
                job_id=row.job_id,
                job_name=row.job_name,
                started_at=row.started_at,
                finished_at=row.finished_at,
                status=row.status,
                documents_processed=row.documents_processed,
                error_message=row.error_message,
            )
            for row in rows
        ],
    )


__all__ = ["router"]
