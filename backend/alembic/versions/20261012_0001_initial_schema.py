"""initial schema

Revision ID: 20261012_0001
Revises:
Create Date: 2026-10-12 00:00:01
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261012_0001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "brands",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("slug", sa.String(length=128), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("verified", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("slug"),
    )

    op.create_table(
        "vehicle_models",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("canonical_key", sa.String(length=512), nullable=False),
        sa.Column("brand_slug", sa.String(length=128), nullable=True),
        sa.Column("model_name_slug", sa.String(length=255), nullable=True),
        sa.Column("manufacturer_code_slug", sa.String(length=128), nullable=True),
        sa.Column("output_bucket", sa.Integer(), nullable=True),
        sa.Column("power_type", sa.String(length=64), nullable=True),
        sa.Column("body_type", sa.String(length=64), nullable=True),
        sa.Column("brand_name", sa.String(length=128), nullable=True),
        sa.Column("model_name", sa.String(length=255), nullable=True),
        sa.Column("detail_model_name", sa.String(length=255), nullable=True),
        sa.Column("detail_model_name_slug", sa.String(length=255), nullable=True),
        sa.Column("manufacturer_code", sa.String(length=128), nullable=True),
        sa.Column("model_slug", sa.String(length=512), nullable=True),
        sa.Column("output_decimal", sa.String(length=8), nullable=True),
        sa.Column("engine_cc", sa.Integer(), nullable=True),
        sa.Column("power_kw", sa.Integer(), nullable=True),
        sa.Column("horse_power_ps", sa.Integer(), nullable=True),
        sa.Column("range_text", sa.String(length=64), nullable=True),
        sa.Column("turbo", sa.String(length=32), nullable=True),
        sa.Column("facelift", sa.String(length=16), nullable=True),
        sa.Column("transmission", sa.String(length=64), nullable=True),
        sa.Column("transmission_gears", sa.Integer(), nullable=True),
        sa.Column("manufacturer_color_name", sa.String(length=128), nullable=True),
        sa.Column("generic_color_name", sa.String(length=64), nullable=True),
        sa.Column("generic_color_code", sa.String(length=16), nullable=True),
        sa.Column("raw_json", sa.JSON(), nullable=False),
        sa.Column("resolver_version", sa.String(length=64), nullable=True),
        sa.Column("merged_into_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["merged_into_id"], ["vehicle_models.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("canonical_key"),
    )
    op.create_index("ix_vehicle_models_brand_slug", "vehicle_models", ["brand_slug"], unique=False)
    op.create_index("ix_vehicle_models_model_name_slug", "vehicle_models", ["model_name_slug"], unique=False)
    op.create_index("ix_vehicle_models_model_slug", "vehicle_models", ["model_slug"], unique=False)
    op.create_index("ix_vehicle_models_merged_into_id", "vehicle_models", ["merged_into_id"], unique=False)

    op.create_table(
        "listings",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("site", sa.String(length=64), nullable=False),
        sa.Column("external_id", sa.String(length=128), nullable=False),
        sa.Column("brand", sa.String(length=128), nullable=True),
        sa.Column("brand_slug", sa.String(length=128), nullable=True),
        sa.Column("model", sa.String(length=255), nullable=True),
        sa.Column("year", sa.Integer(), nullable=True),
        sa.Column("price", sa.Integer(), nullable=True),
        sa.Column("mileage_km", sa.Integer(), nullable=True),
        sa.Column("engine_cc", sa.Integer(), nullable=True),
        sa.Column("transmission", sa.String(length=64), nullable=True),
        sa.Column("fuel", sa.String(length=64), nullable=True),
        sa.Column("seats", sa.Integer(), nullable=True),
        sa.Column("color", sa.String(length=64), nullable=True),
        sa.Column("body_type", sa.String(length=64), nullable=True),
        sa.Column("vehicle_type", sa.String(length=64), nullable=True),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("remark", sa.Text(), nullable=True),
        sa.Column("photos_json", sa.JSON(), nullable=False),
        sa.Column("resolution_status", sa.String(length=16), nullable=False),
        sa.Column("model_id", sa.Integer(), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("manufacturer_color_name", sa.String(length=128), nullable=True),
        sa.Column("generic_color_name", sa.String(length=64), nullable=True),
        sa.Column("generic_color_code", sa.String(length=16), nullable=True),
        sa.Column("ai_mileage_km", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["model_id"], ["vehicle_models.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("site", "external_id", name="uq_listings_site_external_id"),
    )
    op.create_index("ix_listings_site", "listings", ["site"], unique=False)
    op.create_index("ix_listings_resolution_status", "listings", ["resolution_status"], unique=False)
    op.create_index("ix_listings_model_id", "listings", ["model_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_listings_model_id", table_name="listings")
    op.drop_index("ix_listings_resolution_status", table_name="listings")
    op.drop_index("ix_listings_site", table_name="listings")
    op.drop_table("listings")
    op.drop_index("ix_vehicle_models_merged_into_id", table_name="vehicle_models")
    op.drop_index("ix_vehicle_models_model_slug", table_name="vehicle_models")
    op.drop_index("ix_vehicle_models_model_name_slug", table_name="vehicle_models")
    op.drop_index("ix_vehicle_models_brand_slug", table_name="vehicle_models")
    op.drop_table("vehicle_models")
    op.drop_table("brands")
