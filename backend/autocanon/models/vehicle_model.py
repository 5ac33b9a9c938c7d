"""Canonical vehicle model ORM model."""

from typing import Any

from sqlalchemy import JSON, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from autocanon.models.base import Base, IdMixin, TimestampMixin


class VehicleModel(Base, IdMixin, TimestampMixin):
    """One canonical brand, variant and drivetrain combination shared by many listings."""

    __tablename__ = "vehicle_models"

    # Encoded (brand_slug, model_name_slug, manufacturer_code_slug, output_bucket,
    # power_type, body_type); NULL fields are empty segments so they still collide.
    canonical_key: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    brand_slug: Mapped[str | None] = mapped_column(Text, index=True, nullable=True)
    model_name_slug: Mapped[str | None] = mapped_column(Text, index=True, nullable=True)
    manufacturer_code_slug: Mapped[str | None] = mapped_column(Text, nullable=True)
    output_bucket: Mapped[int | None] = mapped_column(Integer, nullable=True)
    power_type: Mapped[str | None] = mapped_column(Text, nullable=True)
    body_type: Mapped[str | None] = mapped_column(Text, nullable=True)

    brand_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    model_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    detail_model_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    detail_model_name_slug: Mapped[str | None] = mapped_column(Text, nullable=True)
    manufacturer_code: Mapped[str | None] = mapped_column(Text, nullable=True)
    model_slug: Mapped[str | None] = mapped_column(Text, index=True, nullable=True)
    output_decimal: Mapped[str | None] = mapped_column(Text, nullable=True)
    engine_cc: Mapped[int | None] = mapped_column(Integer, nullable=True)
    power_kw: Mapped[int | None] = mapped_column(Integer, nullable=True)
    horse_power_ps: Mapped[int | None] = mapped_column(Integer, nullable=True)
    range_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    turbo: Mapped[str | None] = mapped_column(Text, nullable=True)
    facelift: Mapped[str | None] = mapped_column(Text, nullable=True)
    transmission: Mapped[str | None] = mapped_column(Text, nullable=True)
    transmission_gears: Mapped[int | None] = mapped_column(Integer, nullable=True)
    manufacturer_color_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    generic_color_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    generic_color_code: Mapped[str | None] = mapped_column(Text, nullable=True)
    raw_json: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    resolver_version: Mapped[str | None] = mapped_column(String(64), nullable=True)

    merged_into_id: Mapped[int | None] = mapped_column(
        ForeignKey("vehicle_models.id", ondelete="SET NULL"),
        index=True,
        nullable=True,
    )
