"""Rendered sitemap document ORM model."""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID, uuid4

from sqlalchemy import (
    Date,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from incremental_sitemaps.models.base import Base


class SitemapDocument(Base):
    """One stored sitemap document keyed by day or by entity."""

    __tablename__ = "sitemap_documents"
    __table_args__ = (
        UniqueConstraint("key", name="uq_sitemap_documents_key"),
        Index("ix_sitemap_documents_sitemap_date", "sitemap_date"),
        Index("ix_sitemap_documents_entity", "entity_type", "entity_key"),
    )

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid4
    )
    key: Mapped[str] = mapped_column(String(191), nullable=False)
    sitemap_date: Mapped[date | None] = mapped_column(Date)
    entity_type: Mapped[str | None] = mapped_column(String(32))
    entity_key: Mapped[str | None] = mapped_column(String(128))
    xml_body: Mapped[str] = mapped_column(Text, nullable=False)
    entry_count: Mapped[int] = mapped_column(Integer, nullable=False)
    last_built_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )


__all__ = ["SitemapDocument"]
