"""Stored sitemap document API routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from incremental_sitemaps.api.generation import (
    _get_sitemap_engine,
    _raise_generation_error,
)
from incremental_sitemaps.schemas import (
    SitemapDocumentRead,
    SitemapKeyGenerationRead,
    SitemapTotalsRead,
)
from incremental_sitemaps.services.engine import SitemapEngine
from incremental_sitemaps.services.sitemap_keys import SitemapKey, SitemapKeyError

router = APIRouter(prefix="/api/sitemaps", tags=["sitemaps"])


def _parse_key_or_422(raw_key: str) -> SitemapKey:
    try:
        return SitemapKey.parse(raw_key)
    except SitemapKeyError as error:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(error),
        ) from error


@router.get(
    "", response_model=list[SitemapDocumentRead], status_code=status.HTTP_200_OK
)
async def list_sitemap_documents(
    engine: SitemapEngine = Depends(_get_sitemap_engine),
) -> list[SitemapDocumentRead]:
    summaries = await engine.list_documents()
    return [
        SitemapDocumentRead(
            key=str(summary.key),
            filename=summary.key.filename,
            location=engine.index_service.location_for(summary),
            sitemap_date=summary.key.sitemap_date,
            entity_type=summary.key.entity_type,
            entity_key=summary.key.entity_key,
            entry_count=summary.entry_count,
            last_built_at=summary.last_built_at,
        )
        for summary in summaries
    ]


@router.get(
    "/totals", response_model=SitemapTotalsRead, status_code=status.HTTP_200_OK
)
async def get_sitemap_totals(
    engine: SitemapEngine = Depends(_get_sitemap_engine),
) -> SitemapTotalsRead:
    summaries = await engine.list_documents()
    return SitemapTotalsRead(
        document_count=len(summaries),
        url_count=await engine.total_url_count(),
    )


@router.post(
    "/{sitemap_key}/generate",
    response_model=SitemapKeyGenerationRead,
    status_code=status.HTTP_200_OK,
)
async def generate_sitemap_document(
    sitemap_key: str,
    force: bool = False,
    engine: SitemapEngine = Depends(_get_sitemap_engine),
) -> SitemapKeyGenerationRead:
    key = _parse_key_or_422(sitemap_key)
    try:
        result = await engine.generate_for_key(key, force=force)
    except Exception as error:
        _raise_generation_error(error)

    return SitemapKeyGenerationRead(
        key=str(result.key),
        outcome=result.outcome.value,
        entry_count=result.entry_count,
        dropped_count=result.dropped_count,
        changed=result.changed,
    )


__all__ = ["router"]
