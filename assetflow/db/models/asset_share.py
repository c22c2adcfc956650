"""Explicit per-user shares backing SELECTED_USERS visibility."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from assetflow.db.base import Base


class AssetShare(Base):
    """Grants one user view access to one asset."""

    __tablename__ = "asset_shares"
    __table_args__ = (
        UniqueConstraint("asset_id", "shared_with_id", name="uq_asset_share_target"),
    )

    asset_id: Mapped[UUID] = mapped_column(
        ForeignKey("assets.id", ondelete="CASCADE"), nullable=False, index=True
    )
    shared_with_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    shared_by_id: Mapped[UUID] = mapped_column(nullable=False)
