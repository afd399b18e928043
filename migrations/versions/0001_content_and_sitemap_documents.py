"""Content items, sitemap documents and options.

Revision ID: 0001_content_and_documents
Revises:
Create Date: 2026-10-19 09:00:00

"""
from __future__ import annotations

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa

revision: str = "0001_content_and_documents"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "content_items",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("content_type", sa.String(length=32), nullable=False),
        sa.Column(
            "status", sa.String(length=32), server_default="publish", nullable=False
        ),
        sa.Column("url", sa.String(length=2048), nullable=False),
        sa.Column("title", sa.String(length=512), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("published_on", sa.Date(), nullable=False),
        sa.Column("modified_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("noindex", sa.Boolean(), server_default=sa.text("0"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_content_items_status_type_published_on",
        "content_items",
        ["status", "content_type", "published_on"],
    )
    op.create_index("ix_content_items_modified_at", "content_items", ["modified_at"])

    op.create_table(
        "content_images",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("content_item_id", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("loc", sa.String(length=2048), nullable=False),
        sa.Column("caption", sa.String(length=4096), nullable=True),
        sa.Column("title", sa.String(length=4096), nullable=True),
        sa.Column("geo_location", sa.String(length=4096), nullable=True),
        sa.Column("license", sa.String(length=4096), nullable=True),
        sa.ForeignKeyConstraint(
            ["content_item_id"], ["content_items.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_content_images_content_item_id", "content_images", ["content_item_id"]
    )

    op.create_table(
        "sitemap_documents",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("key", sa.String(length=191), nullable=False),
        sa.Column("sitemap_date", sa.Date(), nullable=True),
        sa.Column("entity_type", sa.String(length=32), nullable=True),
        sa.Column("entity_key", sa.String(length=128), nullable=True),
        sa.Column("xml_body", sa.Text(), nullable=False),
        sa.Column("entry_count", sa.Integer(), nullable=False),
        sa.Column("last_built_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("key", name="uq_sitemap_documents_key"),
    )
    op.create_index(
        "ix_sitemap_documents_sitemap_date", "sitemap_documents", ["sitemap_date"]
    )
    op.create_index(
        "ix_sitemap_documents_entity",
        "sitemap_documents",
        ["entity_type", "entity_key"],
    )

    op.create_table(
        "sitemap_options",
        sa.Column("name", sa.String(length=191), nullable=False),
        sa.Column("value", sa.JSON(), nullable=True),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("name"),
    )


def downgrade() -> None:
    op.drop_table("sitemap_options")
    op.drop_index("ix_sitemap_documents_entity", table_name="sitemap_documents")
    op.drop_index("ix_sitemap_documents_sitemap_date", table_name="sitemap_documents")
    op.drop_table("sitemap_documents")
    op.drop_index("ix_content_images_content_item_id", table_name="content_images")
    op.drop_table("content_images")
    op.drop_index("ix_content_items_modified_at", table_name="content_items")
    op.drop_index(
        "ix_content_items_status_type_published_on", table_name="content_items"
    )
    op.drop_table("content_items")
