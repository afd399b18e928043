"""Content store ORM models for indexable items and their images."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from incremental_sitemaps.models.base import Base
from incremental_sitemaps.utils.dates import ensure_utc


def _published_on_default(context: Any) -> date | None:
    published_at = context.get_current_parameters().get("published_at")
    if published_at is None:
        return None
    return ensure_utc(published_at).date()


class ContentItem(Base):
    """One unit of indexable content such as a post, page, term or author."""

    __tablename__ = "content_items"
    __table_args__ = (
        Index(
            "ix_content_items_status_type_published_on",
            "status",
            "content_type",
            "published_on",
        ),
        Index("ix_content_items_modified_at", "modified_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    content_type: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default="publish",
        server_default="publish",
    )
    url: Mapped[str] = mapped_column(String(2048), nullable=False)
    title: Mapped[str | None] = mapped_column(String(512))
    published_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    published_on: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        default=_published_on_default,
    )
    modified_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    noindex: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("0"),
    )

    images: Mapped[list[ContentImage]] = relationship(
        back_populates="content_item",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ContentImage.position",
    )

    @validates("published_at")
    def _sync_published_on(self, key: str, value: datetime) -> datetime:
        # Moving an item to another day re-files it under the new date.
        if value is not None:
            self.published_on = ensure_utc(value).date()
        return value


class ContentImage(Base):
    """Image attached to a content item for image sitemap extensions."""

    __tablename__ = "content_images"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    content_item_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("content_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
    )
    loc: Mapped[str] = mapped_column(String(2048), nullable=False)
    caption: Mapped[str | None] = mapped_column(String(4096))
    title: Mapped[str | None] = mapped_column(String(4096))
    geo_location: Mapped[str | None] = mapped_column(String(4096))
    license: Mapped[str | None] = mapped_column(String(4096))

    content_item: Mapped[ContentItem] = relationship(back_populates="images")


__all__ = ["ContentImage", "ContentItem"]
