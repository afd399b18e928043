"""Persistence interface for rendered sitemap documents."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime
from typing import Protocol

from sqlalchemy import delete, func, select

from incremental_sitemaps.models import SitemapDocument
from incremental_sitemaps.services.content_store import SessionScopeFactory
from incremental_sitemaps.services.sitemap_keys import SitemapKey
from incremental_sitemaps.utils.dates import ensure_utc, utc_now

_document_logger = logging.getLogger("incremental_sitemaps.documents")


@dataclass(slots=True, frozen=True)
class StoredDocument:
    """A sitemap document as persisted by the store."""

    key: SitemapKey
    xml_body: str
    entry_count: int
    last_built_at: datetime


@dataclass(slots=True, frozen=True)
class DocumentSummary:
    """Document metadata without the XML body."""

    key: SitemapKey
    entry_count: int
    last_built_at: datetime


class DocumentStore(Protocol):
    """Stores one sitemap document per logical key."""

    async def get(self, key: SitemapKey) -> StoredDocument | None: ...

    async def upsert(self, key: SitemapKey, xml_body: str, entry_count: int) -> bool: ...

    async def delete(self, key: SitemapKey) -> bool: ...

    async def list_keys(self) -> list[SitemapKey]: ...

    async def list_summaries(self) -> list[DocumentSummary]: ...

    async def list_dates(
        self,
        *,
        start: date | None = None,
        end: date | None = None,
    ) -> list[date]: ...

    async def count_entries(self) -> int: ...


class SQLAlchemyDocumentStore:
    """Document store backed by the ``sitemap_documents`` table."""

    def __init__(
        self,
        *,
        session_factory: SessionScopeFactory | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if session_factory is None:
            from incremental_sitemaps.database import session_scope

            session_factory = session_scope

        self._session_factory = session_factory
        self._clock = clock

    async def get(self, key: SitemapKey) -> StoredDocument | None:
        async with self._session_factory() as session:
            document = await session.scalar(
                select(SitemapDocument).where(SitemapDocument.key == str(key))
            )
            if document is None:
                return None
            return StoredDocument(
                key=key,
                xml_body=document.xml_body,
                entry_count=document.entry_count,
                last_built_at=ensure_utc(document.last_built_at),
            )

    async def upsert(self, key: SitemapKey, xml_body: str, entry_count: int) -> bool:
        """Insert or overwrite the document for ``key``; return ``True`` if created."""

        if entry_count <= 0:
            raise ValueError("Empty sitemap documents are deleted, not stored")

        built_at = self._clock()
        async with self._session_factory() as session:
            document = await session.scalar(
                select(SitemapDocument).where(SitemapDocument.key == str(key))
            )
            created = document is None
            if document is None:
                document = SitemapDocument(
                    key=str(key),
                    sitemap_date=key.sitemap_date,
                    entity_type=key.entity_type,
                    entity_key=key.entity_key,
                    xml_body=xml_body,
                    entry_count=entry_count,
                    last_built_at=built_at,
                )
                session.add(document)
            else:
                document.xml_body = xml_body
                document.entry_count = entry_count
                document.last_built_at = built_at

        _document_logger.info(
            "sitemap_document_upserted",
            extra={
                "sitemap_key": str(key),
                "entry_count": entry_count,
                "outcome": "created" if created else "updated",
            },
        )
        return created

    async def delete(self, key: SitemapKey) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                delete(SitemapDocument).where(SitemapDocument.key == str(key))
            )
            deleted = bool(result.rowcount)

        if deleted:
            _document_logger.info(
                "sitemap_document_deleted", extra={"sitemap_key": str(key)}
            )
        return deleted

    async def list_keys(self) -> list[SitemapKey]:
        async with self._session_factory() as session:
            raw_keys = (
                await session.execute(
                    select(SitemapDocument.key).order_by(SitemapDocument.key.asc())
                )
            ).scalars()
            return [SitemapKey.parse(raw_key) for raw_key in raw_keys.all()]

    async def list_summaries(self) -> list[DocumentSummary]:
        async with self._session_factory() as session:
            rows = (
                await session.execute(
                    select(
                        SitemapDocument.key,
                        SitemapDocument.entry_count,
                        SitemapDocument.last_built_at,
                    ).order_by(SitemapDocument.key.asc())
                )
            ).all()

        return [
            DocumentSummary(
                key=SitemapKey.parse(row[0]),
                entry_count=int(row[1]),
                last_built_at=ensure_utc(row[2]),
            )
            for row in rows
        ]

    async def list_dates(
        self,
        *,
        start: date | None = None,
        end: date | None = None,
    ) -> list[date]:
        statement = (
            select(SitemapDocument.sitemap_date)
            .where(SitemapDocument.sitemap_date.is_not(None))
            .order_by(SitemapDocument.sitemap_date.asc())
        )
        if start is not None:
            statement = statement.where(SitemapDocument.sitemap_date >= start)
        if end is not None:
            statement = statement.where(SitemapDocument.sitemap_date <= end)

        async with self._session_factory() as session:
            return [
                value
                for value in (await session.execute(statement)).scalars().all()
                if value is not None
            ]

    async def count_entries(self) -> int:
        async with self._session_factory() as session:
            total = await session.scalar(
                select(func.coalesce(func.sum(SitemapDocument.entry_count), 0))
            )
        return int(total or 0)


__all__ = [
    "DocumentStore",
    "DocumentSummary",
    "SQLAlchemyDocumentStore",
    "StoredDocument",
]
