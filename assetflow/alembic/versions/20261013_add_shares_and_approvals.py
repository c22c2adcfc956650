"""Add asset_shares and asset_approvals tables.

Revision ID: b2c3d4e5f6a7
Revises: a1b2c3d4e5f6
Create Date: 2026-10-13
"""

from alembic import op
import sqlalchemy as sa

revision = "b2c3d4e5f6a7"
down_revision = "a1b2c3d4e5f6"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "asset_shares",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("asset_id", sa.Uuid(), nullable=False),
        sa.Column("shared_with_id", sa.Uuid(), nullable=False),
        sa.Column("shared_by_id", sa.Uuid(), nullable=False),
        sa.Column("sa_orm_sentinel", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["asset_id"], ["assets.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("asset_id", "shared_with_id", name="uq_asset_share_target"),
    )
    op.create_index("ix_asset_shares_asset_id", "asset_shares", ["asset_id"])
    op.create_index("ix_asset_shares_shared_with_id", "asset_shares", ["shared_with_id"])

    op.create_table(
        "asset_approvals",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("asset_id", sa.Uuid(), nullable=False),
        sa.Column("reviewer_id", sa.Uuid(), nullable=False),
        sa.Column("action", sa.String(16), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("sa_orm_sentinel", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["asset_id"], ["assets.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_asset_approvals_asset_id", "asset_approvals", ["asset_id"])
    op.create_index("ix_asset_approvals_reviewer_id", "asset_approvals", ["reviewer_id"])


def downgrade() -> None:
    op.drop_index("ix_asset_approvals_reviewer_id", table_name="asset_approvals")
    op.drop_index("ix_asset_approvals_asset_id", table_name="asset_approvals")
    op.drop_table("asset_approvals")
    op.drop_index("ix_asset_shares_shared_with_id", table_name="asset_shares")
    op.drop_index("ix_asset_shares_asset_id", table_name="asset_shares")
    op.drop_table("asset_shares")
