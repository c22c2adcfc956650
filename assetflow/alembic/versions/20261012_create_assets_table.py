"""Create assets table for standalone assets, carousels and carousel items.

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-12
"""

from alembic import op
import sqlalchemy as sa

revision = "a1b2c3d4e5f6"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "assets",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default="DRAFT"),
        sa.Column("visibility", sa.String(32), nullable=False, server_default="UPLOADER_ONLY"),
        sa.Column("allowed_role", sa.String(32), nullable=True),
        sa.Column("title", sa.String(500), nullable=False, server_default=""),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("storage_ref", sa.String(1024), nullable=True),
        sa.Column("uploader_id", sa.Uuid(), nullable=False),
        sa.Column("company_id", sa.Uuid(), nullable=True),
        sa.Column("parent_carousel_id", sa.Uuid(), nullable=True),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("target_platforms", sa.JSON(), nullable=False),
        sa.Column("campaign_name", sa.String(255), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_by_id", sa.Uuid(), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_by_id", sa.Uuid(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("sa_orm_sentinel", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["parent_carousel_id"], ["assets.id"]),
    )
    op.create_index("ix_assets_type", "assets", ["type"])
    op.create_index("ix_assets_status", "assets", ["status"])
    op.create_index("ix_assets_uploader_id", "assets", ["uploader_id"])
    op.create_index("ix_assets_company_id", "assets", ["company_id"])
    op.create_index("ix_assets_parent_carousel_id", "assets", ["parent_carousel_id"])
    op.create_index("ix_assets_campaign_name", "assets", ["campaign_name"])
    op.create_index("ix_assets_parent_position", "assets", ["parent_carousel_id", "position"])
    op.create_index("ix_assets_status_visibility", "assets", ["status", "visibility"])


def downgrade() -> None:
    op.drop_index("ix_assets_status_visibility", table_name="assets")
    op.drop_index("ix_assets_parent_position", table_name="assets")
    op.drop_index("ix_assets_campaign_name", table_name="assets")
    op.drop_index("ix_assets_parent_carousel_id", table_name="assets")
    op.drop_index("ix_assets_company_id", table_name="assets")
    op.drop_index("ix_assets_uploader_id", table_name="assets")
    op.drop_index("ix_assets_status", table_name="assets")
    op.drop_index("ix_assets_type", table_name="assets")
    op.drop_table("assets")
