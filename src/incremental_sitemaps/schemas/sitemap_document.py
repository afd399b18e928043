"""Pydantic schemas for stored sitemap documents."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel


class SitemapDocumentRead(BaseModel):
    """Stored document metadata without the XML body."""

    key: str
    filename: str
    location: str
    sitemap_date: date | None = None
    entity_type: str | None = None
    entity_key: str | None = None
    entry_count: int
    last_built_at: datetime


class SitemapTotalsRead(BaseModel):
    """Aggregate counters across every stored document."""

    document_count: int
    url_count: int


class SitemapKeyGenerationRead(BaseModel):
    """Result of regenerating one sitemap key."""

    key: str
    outcome: str
    entry_count: int
    dropped_count: int
    changed: bool


__all__ = ["SitemapDocumentRead", "SitemapKeyGenerationRead", "SitemapTotalsRead"]
