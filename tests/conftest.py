"""Shared fixtures for sitemap engine tests."""

from __future__ import annotations

import os
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.sqlite")

from incremental_sitemaps.models import Base, ContentImage, ContentItem
from incremental_sitemaps.services.content_store import SessionScopeFactory

AddContent = Callable[..., Awaitable[ContentItem]]


class FixedClock:
    """Settable UTC clock injected wherever services read the current time."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2024, 3, 15, 12, 0, tzinfo=UTC))


@pytest_asyncio.fixture
async def session_factory(tmp_path: Path) -> AsyncIterator[SessionScopeFactory]:
    database_url = f"sqlite+aiosqlite:///{tmp_path / 'sitemaps.sqlite'}"
    engine = create_async_engine(database_url)
    factory = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )

    @asynccontextmanager
    async def scoped_session() -> AsyncIterator[AsyncSession]:
        session = factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.create_all)

    yield scoped_session

    await engine.dispose()


@pytest.fixture
def add_content(session_factory: SessionScopeFactory) -> AddContent:
    """Insert one content item; ``modified_at`` defaults to ``published_at``."""

    async def _add(
        url: str,
        published_at: datetime,
        *,
        content_type: str = "post",
        modified_at: datetime | None = None,
        status: str = "publish",
        noindex: bool = False,
        image_urls: tuple[str, ...] = (),
    ) -> ContentItem:
        item = ContentItem(
            content_type=content_type,
            url=url,
            status=status,
            published_at=published_at,
            modified_at=modified_at or published_at,
            noindex=noindex,
            images=[
                ContentImage(position=position, loc=image_url)
                for position, image_url in enumerate(image_urls)
            ],
        )
        async with session_factory() as session:
            session.add(item)
            await session.flush()
        return item

    return _add
