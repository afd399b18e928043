"""Async engine, session scope and startup checks for the sitemap database."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any

from sqlalchemy import event, text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncConnection,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool

from incremental_sitemaps.config import Settings, get_settings
from incremental_sitemaps.models import Base
from incremental_sitemaps.services.url_entries import SITEMAP_PROTOCOL_MAX_ENTRIES
from incremental_sitemaps.utils.dates import utc_now

DEFAULT_POOL_SIZE = 5
DEFAULT_MAX_OVERFLOW = 10
SQLITE_BUSY_TIMEOUT_SECONDS = 30
SQLITE_PRAGMAS = (
    "PRAGMA journal_mode=WAL;",
    "PRAGMA foreign_keys=ON;",
    "PRAGMA synchronous=NORMAL;",
)

_database_health_logger = logging.getLogger("incremental_sitemaps.database.health")


@dataclass(slots=True, frozen=True)
class StoredInvariantCheck:
    """A ``SELECT COUNT(*)`` that must return zero on a healthy database."""

    name: str
    query: str
    bound_to_today: bool = False


STORED_INVARIANT_CHECKS: tuple[StoredInvariantCheck, ...] = (
    StoredInvariantCheck(
        name="content_images_without_item",
        query="""
            SELECT COUNT(*)
            FROM content_images AS i
            LEFT JOIN content_items AS c ON c.id = i.content_item_id
            WHERE c.id IS NULL
        """,
    ),
    StoredInvariantCheck(
        name="empty_sitemap_documents",
        query="SELECT COUNT(*) FROM sitemap_documents WHERE entry_count <= 0",
    ),
    StoredInvariantCheck(
        name="oversized_sitemap_documents",
        query=(
            "SELECT COUNT(*) FROM sitemap_documents "
            f"WHERE entry_count > {SITEMAP_PROTOCOL_MAX_ENTRIES}"
        ),
    ),
    StoredInvariantCheck(
        name="future_dated_sitemap_documents",
        query="SELECT COUNT(*) FROM sitemap_documents WHERE sitemap_date > :today",
        bound_to_today=True,
    ),
)


@dataclass(slots=True, frozen=True)
class DatabaseHealthReport:
    """Integrity result plus row counts for every violated storage invariant."""

    integrity_ok: bool
    violation_counts: dict[str, int] = field(default_factory=dict)

    @property
    def violations(self) -> int:
        return sum(self.violation_counts.values())

    @property
    def is_healthy(self) -> bool:
        return self.integrity_ok and self.violations == 0


def _is_sqlite_url(database_url: str) -> bool:
    return make_url(database_url).get_backend_name() == "sqlite"


def _ensure_sqlite_parent_directory(database_url: str) -> None:
    parsed_url = make_url(database_url)
    database_path = parsed_url.database
    if parsed_url.get_backend_name() != "sqlite" or not database_path:
        return
    if database_path == ":memory:" or database_path.startswith("file:"):
        return

    resolved_path = Path(database_path)
    if not resolved_path.is_absolute():
        resolved_path = Path.cwd() / resolved_path
    resolved_path.parent.mkdir(parents=True, exist_ok=True)


def build_async_engine(database_url: str) -> AsyncEngine:
    """Create the application engine; SQLite gets WAL and a busy timeout."""

    if not _is_sqlite_url(database_url):
        return create_async_engine(
            database_url,
            poolclass=AsyncAdaptedQueuePool,
            pool_pre_ping=True,
            pool_size=DEFAULT_POOL_SIZE,
            max_overflow=DEFAULT_MAX_OVERFLOW,
        )

    _ensure_sqlite_parent_directory(database_url)
    sqlite_engine = create_async_engine(
        database_url,
        pool_pre_ping=True,
        connect_args={"timeout": SQLITE_BUSY_TIMEOUT_SECONDS},
    )

    @event.listens_for(sqlite_engine.sync_engine, "connect")
    def apply_sqlite_pragmas(dbapi_connection: Any, _: Any) -> None:
        cursor = dbapi_connection.cursor()
        for pragma in SQLITE_PRAGMAS:
            cursor.execute(pragma)
        cursor.close()

    return sqlite_engine


settings: Settings = get_settings()
engine = build_async_engine(settings.DATABASE_URL)

AsyncSessionFactory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    autoflush=False,
    expire_on_commit=False,
)


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Yield a transaction-scoped session with automatic commit/rollback."""

    session = AsyncSessionFactory()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def get_db_session() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency that provides an async database session."""

    async with session_scope() as session:
        yield session


async def initialize_database(bind: AsyncEngine | None = None) -> None:
    """Create missing tables; on SQLite also confirm WAL journaling took effect."""

    target = bind or engine
    async with target.begin() as connection:
        await connection.run_sync(Base.metadata.create_all)

        if not _is_sqlite_url(str(target.url)):
            return

        journal_mode = (
            await connection.execute(text("PRAGMA journal_mode;"))
        ).scalar_one()
        # In-memory databases report "memory" and cannot use WAL.
        if str(journal_mode).lower() not in {"wal", "memory"}:
            raise RuntimeError(
                f"SQLite WAL mode was not enabled. Current mode: {journal_mode}"
            )


async def _sqlite_integrity_ok(connection: AsyncConnection) -> bool:
    rows = (
        (await connection.execute(text("PRAGMA integrity_check;"))).scalars().all()
    )
    if rows == ["ok"]:
        _database_health_logger.info("database_integrity_check_ok")
        return True

    _database_health_logger.error(
        "database_integrity_check_failed",
        extra={"integrity_rows": list(rows)},
    )
    return False


async def run_startup_database_health_check(
    *,
    bind: AsyncEngine | None = None,
    today: date | None = None,
    fail_fast_on_integrity_error: bool = True,
) -> DatabaseHealthReport:
    """Check SQLite integrity and count rows breaking stored-document invariants.

    Violations are logged, not repaired.
    """

    target = bind or engine
    check_date = today or utc_now().date()
    violation_counts: dict[str, int] = {}

    async with target.connect() as connection:
        integrity_ok = True
        if _is_sqlite_url(str(target.url)):
            integrity_ok = await _sqlite_integrity_ok(connection)

        for check in STORED_INVARIANT_CHECKS:
            statement = text(check.query)
            if check.bound_to_today:
                statement = statement.bindparams(today=check_date.isoformat())
            count = (await connection.execute(statement)).scalar_one()
            if int(count) > 0:
                violation_counts[check.name] = int(count)

    report = DatabaseHealthReport(
        integrity_ok=integrity_ok,
        violation_counts=violation_counts,
    )
    if report.violations:
        _database_health_logger.warning(
            "database_invariant_violations_detected",
            extra={
                "violation_counts": report.violation_counts,
                "violations": report.violations,
            },
        )
    _database_health_logger.info(
        "database_startup_health_check_completed",
        extra={"integrity_ok": report.integrity_ok, "healthy": report.is_healthy},
    )

    if fail_fast_on_integrity_error and not report.integrity_ok:
        raise RuntimeError(
            "Database integrity check failed. Review logs before restarting."
        )

    return report


async def close_database() -> None:
    """Dispose database engine and release pooled connections."""

    await engine.dispose()


__all__ = [
    "AsyncSessionFactory",
    "DatabaseHealthReport",
    "STORED_INVARIANT_CHECKS",
    "StoredInvariantCheck",
    "build_async_engine",
    "close_database",
    "engine",
    "get_db_session",
    "initialize_database",
    "run_startup_database_health_check",
    "session_scope",
]
