"""model merge audits and listing options/remarks

Revision ID: 20261016_0003
Revises: 20261014_0002
Create Date: 2026-10-16 00:00:03
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261016_0003"
down_revision: str | None = "20261014_0002"
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "model_merge_audits",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("survivor_model_id", sa.Integer(), nullable=False),
        sa.Column("merged_model_ids_json", sa.JSON(), nullable=False),
        sa.Column("reason", sa.String(length=255), nullable=False),
        sa.Column("relinked_listing_count", sa.Integer(), nullable=False),
        sa.Column("details_json", sa.JSON(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_model_merge_audits_survivor_model_id",
        "model_merge_audits",
        ["survivor_model_id"],
        unique=False,
    )

    op.create_table(
        "listing_options",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("listing_id", sa.Integer(), nullable=False),
        sa.Column("item", sa.String(length=255), nullable=False),
        sa.Column("certainty", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["listing_id"], ["listings.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("listing_id", "item", name="uq_listing_options_listing_item"),
    )
    op.create_index("ix_listing_options_listing_id", "listing_options", ["listing_id"], unique=False)

    op.create_table(
        "listing_remarks",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("listing_id", sa.Integer(), nullable=False),
        sa.Column("item", sa.String(length=255), nullable=False),
        sa.Column("remark", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["listing_id"], ["listings.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_listing_remarks_listing_id", "listing_remarks", ["listing_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_listing_remarks_listing_id", table_name="listing_remarks")
    op.drop_table("listing_remarks")
    op.drop_index("ix_listing_options_listing_id", table_name="listing_options")
    op.drop_table("listing_options")
    op.drop_index("ix_model_merge_audits_survivor_model_id", table_name="model_merge_audits")
    op.drop_table("model_merge_audits")
