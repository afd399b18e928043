"""Read-only query interface over the content store."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from datetime import date, datetime
from time import monotonic
from typing import Protocol

from sqlalchemy import exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from incremental_sitemaps.models import ContentItem
from incremental_sitemaps.utils.dates import ensure_utc

SessionScopeFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]

DEFAULT_EARLIEST_DATE_CACHE_SECONDS = 604_800

_content_logger = logging.getLogger("incremental_sitemaps.content_store")


@dataclass(slots=True, frozen=True)
class ContentImageRecord:
    """Image metadata attached to a content record."""

    loc: str
    caption: str | None = None
    title: str | None = None
    geo_location: str | None = None
    license: str | None = None


@dataclass(slots=True, frozen=True)
class ContentItemRecord:
    """Detached snapshot of one content item."""

    id: int
    content_type: str
    url: str
    published_at: datetime
    published_on: date
    modified_at: datetime
    title: str | None = None
    status: str = "publish"
    noindex: bool = False
    images: tuple[ContentImageRecord, ...] = ()


@dataclass(slots=True, frozen=True)
class RecentlyModifiedRecord:
    """Content item touched after a given timestamp."""

    id: int
    content_type: str
    published_on: date
    modified_at: datetime


class ContentStore(Protocol):
    """Queries the generation engine runs against the content store."""

    async def find_content_dates_with_status(
        self,
        status: str,
        content_types: Sequence[str],
        *,
        start: date | None = None,
        end: date | None = None,
    ) -> list[date]: ...

    async def count_content_for_date(
        self,
        day: date,
        content_types: Sequence[str],
        status: str,
    ) -> int: ...

    async def find_recently_modified(
        self,
        since: datetime,
        *,
        status: str | None = None,
        limit: int | None = None,
    ) -> list[RecentlyModifiedRecord]: ...

    async def earliest_content_date(
        self,
        status: str,
        content_types: Sequence[str],
    ) -> date | None: ...

    async def date_range_has_content(
        self,
        start: date,
        end: date,
        content_types: Sequence[str],
        status: str,
    ) -> bool: ...

    async def get_items_for_date(
        self,
        day: date,
        content_types: Sequence[str],
        status: str,
        *,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[ContentItemRecord]: ...

    async def get_items_for_types(
        self,
        content_types: Sequence[str],
        status: str,
        *,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[ContentItemRecord]: ...

    async def list_content_types_present(
        self,
        content_types: Sequence[str],
        status: str,
    ) -> list[str]: ...


def _to_record(item: ContentItem) -> ContentItemRecord:
    return ContentItemRecord(
        id=item.id,
        content_type=item.content_type,
        url=item.url,
        title=item.title,
        status=item.status,
        published_at=ensure_utc(item.published_at),
        published_on=item.published_on,
        modified_at=ensure_utc(item.modified_at),
        noindex=bool(item.noindex),
        images=tuple(
            ContentImageRecord(
                loc=image.loc,
                caption=image.caption,
                title=image.title,
                geo_location=image.geo_location,
                license=image.license,
            )
            for image in item.images
        ),
    )


class SQLAlchemyContentStore:
    """Content store backed by the ``content_items`` table."""

    def __init__(
        self,
        *,
        session_factory: SessionScopeFactory | None = None,
        earliest_date_cache_seconds: int = DEFAULT_EARLIEST_DATE_CACHE_SECONDS,
        clock: Callable[[], float] = monotonic,
    ) -> None:
        if session_factory is None:
            from incremental_sitemaps.database import session_scope

            session_factory = session_scope

        self._session_factory = session_factory
        self._earliest_date_cache_seconds = earliest_date_cache_seconds
        self._clock = clock
        self._earliest_date_cache: dict[
            tuple[str, tuple[str, ...]], tuple[date | None, float]
        ] = {}

    def clear_cache(self) -> None:
        self._earliest_date_cache.clear()

    async def find_content_dates_with_status(
        self,
        status: str,
        content_types: Sequence[str],
        *,
        start: date | None = None,
        end: date | None = None,
    ) -> list[date]:
        statement = (
            select(ContentItem.published_on)
            .where(ContentItem.status == status)
            .where(ContentItem.content_type.in_(tuple(content_types)))
            .distinct()
            .order_by(ContentItem.published_on.asc())
        )
        if start is not None:
            statement = statement.where(ContentItem.published_on >= start)
        if end is not None:
            statement = statement.where(ContentItem.published_on <= end)

        async with self._session_factory() as session:
            return list((await session.execute(statement)).scalars().all())

    async def count_content_for_date(
        self,
        day: date,
        content_types: Sequence[str],
        status: str,
    ) -> int:
        async with self._session_factory() as session:
            count = await session.scalar(
                select(func.count(ContentItem.id))
                .where(ContentItem.published_on == day)
                .where(ContentItem.status == status)
                .where(ContentItem.content_type.in_(tuple(content_types)))
            )
        return int(count or 0)

    async def find_recently_modified(
        self,
        since: datetime,
        *,
        status: str | None = None,
        limit: int | None = None,
    ) -> list[RecentlyModifiedRecord]:
        """Return every item modified after ``since``, newest first.

        Stale detection needs the complete set, so no limit applies unless the
        caller passes one.
        """

        statement = (
            select(
                ContentItem.id,
                ContentItem.content_type,
                ContentItem.published_on,
                ContentItem.modified_at,
            )
            .where(ContentItem.modified_at > ensure_utc(since))
            .order_by(ContentItem.modified_at.desc(), ContentItem.id.asc())
        )
        if status is not None:
            statement = statement.where(ContentItem.status == status)
        if limit is not None:
            statement = statement.limit(limit)

        async with self._session_factory() as session:
            rows = (await session.execute(statement)).all()

        return [
            RecentlyModifiedRecord(
                id=int(row[0]),
                content_type=row[1],
                published_on=row[2],
                modified_at=ensure_utc(row[3]),
            )
            for row in rows
        ]

    async def earliest_content_date(
        self,
        status: str,
        content_types: Sequence[str],
    ) -> date | None:
        """Return the oldest publish date, memoized for the configured TTL."""

        cache_key = (status, tuple(sorted(content_types)))
        cached = self._earliest_date_cache.get(cache_key)
        now = self._clock()
        if cached is not None and now - cached[1] < self._earliest_date_cache_seconds:
            return cached[0]

        async with self._session_factory() as session:
            earliest = await session.scalar(
                select(func.min(ContentItem.published_on))
                .where(ContentItem.status == status)
                .where(ContentItem.content_type.in_(cache_key[1]))
            )

        self._earliest_date_cache[cache_key] = (earliest, now)
        _content_logger.debug(
            "earliest_content_date_computed",
            extra={"sitemap_date": earliest.isoformat() if earliest else None},
        )
        return earliest

    async def date_range_has_content(
        self,
        start: date,
        end: date,
        content_types: Sequence[str],
        status: str,
    ) -> bool:
        async with self._session_factory() as session:
            found = await session.scalar(
                select(
                    exists()
                    .where(ContentItem.published_on >= start)
                    .where(ContentItem.published_on <= end)
                    .where(ContentItem.status == status)
                    .where(ContentItem.content_type.in_(tuple(content_types)))
                )
            )
        return bool(found)

    async def get_items_for_date(
        self,
        day: date,
        content_types: Sequence[str],
        status: str,
        *,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[ContentItemRecord]:
        statement = (
            select(ContentItem)
            .where(ContentItem.published_on == day)
            .where(ContentItem.status == status)
            .where(ContentItem.content_type.in_(tuple(content_types)))
            .order_by(ContentItem.published_at.asc(), ContentItem.id.asc())
        )
        if offset:
            statement = statement.offset(offset)
        if limit is not None:
            statement = statement.limit(limit)

        async with self._session_factory() as session:
            items = (await session.execute(statement)).scalars().all()
            return [_to_record(item) for item in items]

    async def get_items_for_types(
        self,
        content_types: Sequence[str],
        status: str,
        *,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[ContentItemRecord]:
        statement = (
            select(ContentItem)
            .where(ContentItem.status == status)
            .where(ContentItem.content_type.in_(tuple(content_types)))
            .order_by(ContentItem.published_at.asc(), ContentItem.id.asc())
        )
        if offset:
            statement = statement.offset(offset)
        if limit is not None:
            statement = statement.limit(limit)

        async with self._session_factory() as session:
            items = (await session.execute(statement)).scalars().all()
            return [_to_record(item) for item in items]

    async def list_content_types_present(
        self,
        content_types: Sequence[str],
        status: str,
    ) -> list[str]:
        async with self._session_factory() as session:
            rows = (
                await session.execute(
                    select(ContentItem.content_type)
                    .where(ContentItem.status == status)
                    .where(ContentItem.content_type.in_(tuple(content_types)))
                    .distinct()
                    .order_by(ContentItem.content_type.asc())
                )
            ).scalars()
            return list(rows.all())


__all__ = [
    "ContentImageRecord",
    "ContentItemRecord",
    "ContentStore",
    "RecentlyModifiedRecord",
    "SQLAlchemyContentStore",
    "SessionScopeFactory",
]
