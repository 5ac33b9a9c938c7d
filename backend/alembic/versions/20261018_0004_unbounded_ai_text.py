"""store AI-derived text without length limits

Revision ID: 20261018_0004
Revises: 20261016_0003
Create Date: 2026-10-18 00:00:04
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261018_0004"
down_revision: str | None = "20261016_0003"
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None

_TEXT_COLUMNS: dict[str, list[tuple[str, int]]] = {
    "brands": [("slug", 128), ("name", 128)],
    "vehicle_models": [
        ("canonical_key", 512),
        ("brand_slug", 128),
        ("model_name_slug", 255),
        ("manufacturer_code_slug", 128),
        ("power_type", 64),
        ("body_type", 64),
        ("brand_name", 128),
        ("model_name", 255),
        ("detail_model_name", 255),
        ("detail_model_name_slug", 255),
        ("manufacturer_code", 128),
        ("model_slug", 512),
        ("output_decimal", 8),
        ("range_text", 64),
        ("turbo", 32),
        ("facelift", 16),
        ("transmission", 64),
        ("manufacturer_color_name", 128),
        ("generic_color_name", 64),
        ("generic_color_code", 16),
    ],
    "listings": [
        ("manufacturer_color_name", 128),
        ("generic_color_name", 64),
        ("generic_color_code", 16),
    ],
    "listing_options": [("item", 255), ("certainty", 64)],
    "listing_remarks": [("item", 255)],
}


def upgrade() -> None:
    for table, columns in _TEXT_COLUMNS.items():
        for column, length in columns:
            op.alter_column(table, column, existing_type=sa.String(length=length), type_=sa.Text())


def downgrade() -> None:
    for table, columns in _TEXT_COLUMNS.items():
        for column, length in columns:
            op.alter_column(table, column, existing_type=sa.Text(), type_=sa.String(length=length))
