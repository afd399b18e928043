"""Key-value option persistence for process-wide generation state."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, Protocol

from sqlalchemy import delete, select

from incremental_sitemaps.models import SitemapOption
from incremental_sitemaps.services.content_store import SessionScopeFactory


class OptionStore(Protocol):
    """Named JSON values; ``set_many`` writes all keys in one transaction."""

    async def get(self, name: str, default: Any = None) -> Any: ...

    async def get_many(self, names: Iterable[str]) -> dict[str, Any]: ...

    async def set_many(self, values: Mapping[str, Any]) -> None: ...

    async def delete_many(self, names: Iterable[str]) -> None: ...


class SQLAlchemyOptionStore:
    """Option store backed by the ``sitemap_options`` table."""

    def __init__(self, *, session_factory: SessionScopeFactory | None = None) -> None:
        if session_factory is None:
            from incremental_sitemaps.database import session_scope

            session_factory = session_scope

        self._session_factory = session_factory

    async def get(self, name: str, default: Any = None) -> Any:
        values = await self.get_many([name])
        return values.get(name, default)

    async def get_many(self, names: Iterable[str]) -> dict[str, Any]:
        requested = list(names)
        if not requested:
            return {}

        async with self._session_factory() as session:
            rows = (
                await session.execute(
                    select(SitemapOption.name, SitemapOption.value).where(
                        SitemapOption.name.in_(requested)
                    )
                )
            ).all()
        return {row[0]: row[1] for row in rows}

    async def set_many(self, values: Mapping[str, Any]) -> None:
        if not values:
            return

        async with self._session_factory() as session:
            existing = {
                option.name: option
                for option in (
                    await session.execute(
                        select(SitemapOption).where(
                            SitemapOption.name.in_(list(values))
                        )
                    )
                )
                .scalars()
                .all()
            }
            for name, value in values.items():
                option = existing.get(name)
                if option is None:
                    session.add(SitemapOption(name=name, value=value))
                else:
                    option.value = value

    async def delete_many(self, names: Iterable[str]) -> None:
        requested = list(names)
        if not requested:
            return

        async with self._session_factory() as session:
            await session.execute(
                delete(SitemapOption).where(SitemapOption.name.in_(requested))
            )


__all__ = ["OptionStore", "SQLAlchemyOptionStore"]
