"""Asset table: standalone assets, carousels and carousel items."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from assetflow.db.base import Base


class AssetRecord(Base):
    """One row per asset.

    A carousel is a row with ``type = 'CAROUSEL'``; its items point at it
    through ``parent_carousel_id``. The carousel's ``status`` column is a
    stored copy of the aggregate of its items, rewritten after every item
    change and never read back as the source of truth.
    """

    __tablename__ = "assets"
    __table_args__ = (
        Index("ix_assets_parent_position", "parent_carousel_id", "position"),
        Index("ix_assets_status_visibility", "status", "visibility"),
    )

    type: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="DRAFT", index=True)
    visibility: Mapped[str] = mapped_column(String(32), nullable=False, default="UPLOADER_ONLY")
    allowed_role: Mapped[str | None] = mapped_column(String(32), nullable=True)

    title: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    storage_ref: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    uploader_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    company_id: Mapped[UUID | None] = mapped_column(nullable=True, index=True)

    # Carousel membership; NULL on standalone assets and on carousels themselves
    parent_carousel_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("assets.id"), nullable=True, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Shared metadata, copied from a carousel to its items at creation
    target_platforms: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    campaign_name: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    # Review outcome
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
