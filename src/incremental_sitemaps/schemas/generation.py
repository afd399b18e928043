"""Pydantic schemas for generation control and status."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field

from incremental_sitemaps.config import CronFrequency


class GenerationStatusRead(BaseModel):
    """Scheduling and full-rebuild status."""

    enabled: bool
    in_progress: bool
    halted: bool
    stop_requested: bool
    next_scheduled: datetime | None = None
    last_run: datetime | None = None
    last_check: datetime | None = None
    last_update: datetime | None = None
    current_frequency: str
    valid_frequencies: list[str]
    phase: str
    pending_years: list[int] = Field(default_factory=list)
    pending_months: list[int] = Field(default_factory=list)
    pending_days: list[int] = Field(default_factory=list)
    current_year: int | None = None
    current_month: int | None = None


class FullGenerationStartRead(BaseModel):
    outcome: str
    pending_years: list[int]


class FullGenerationTickRead(BaseModel):
    """One full-rebuild transition."""

    action: str
    phase: str
    year: int | None = None
    month: int | None = None
    day: date | None = None
    outcome: str | None = None
    entry_count: int | None = None
    completed: bool
    error: str | None = None


class IncrementalRunRead(BaseModel):
    """Summary of one incremental pass."""

    skipped: bool
    stopped: bool
    generated: int
    deleted: int
    missing_dates: list[date] = Field(default_factory=list)
    stale_dates: list[date] = Field(default_factory=list)
    orphaned_dates: list[date] = Field(default_factory=list)


class CronFrequencyUpdate(BaseModel):
    frequency: CronFrequency


class JobExecutionHistoryItem(BaseModel):
    """Persisted sitemap job execution item."""

    job_id: str
    job_name: str
    started_at: datetime
    finished_at: datetime | None
    status: str
    documents_processed: int
    error_message: str | None


class JobExecutionHistoryResponse(BaseModel):
    page: int
    page_size: int
    total_items: int
    total_pages: int
    items: list[JobExecutionHistoryItem]


class JobMonitoringRead(BaseModel):
    """In-memory runtime metrics for one sitemap job."""

    job_id: str
    name: str
    total_runs: int
    successful_runs: int
    failed_runs: int
    overlap_skips: int
    running: bool
    last_started_at: datetime | None
    last_finished_at: datetime | None
    last_duration_ms: float | None
    last_error: str | None


__all__ = [
    "CronFrequencyUpdate",
    "FullGenerationStartRead",
    "FullGenerationTickRead",
    "GenerationStatusRead",
    "IncrementalRunRead",
    "JobExecutionHistoryItem",
    "JobExecutionHistoryResponse",
    "JobMonitoringRead",
]
