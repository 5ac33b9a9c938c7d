"""Scraped vehicle listing ORM model."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from autocanon.models.base import Base, IdMixin, TimestampMixin

LISTING_UNRESOLVED = "unresolved"
LISTING_RESOLVED = "resolved"
LISTING_FAILED = "failed"
LISTING_RESOLUTION_STATUSES = (LISTING_UNRESOLVED, LISTING_RESOLVED, LISTING_FAILED)


class Listing(Base, IdMixin, TimestampMixin):
    """One scraped advertisement awaiting or having undergone model resolution."""

    __tablename__ = "listings"
    __table_args__ = (UniqueConstraint("site", "external_id", name="uq_listings_site_external_id"),)

    site: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    external_id: Mapped[str] = mapped_column(String(128), nullable=False)

    # Scraper-supplied inputs.
    brand: Mapped[str | None] = mapped_column(String(128), nullable=True)
    brand_slug: Mapped[str | None] = mapped_column(String(128), nullable=True)
    model: Mapped[str | None] = mapped_column(String(255), nullable=True)
    year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    price: Mapped[int | None] = mapped_column(Integer, nullable=True)
    mileage_km: Mapped[int | None] = mapped_column(Integer, nullable=True)
    engine_cc: Mapped[int | None] = mapped_column(Integer, nullable=True)
    transmission: Mapped[str | None] = mapped_column(String(64), nullable=True)
    fuel: Mapped[str | None] = mapped_column(String(64), nullable=True)
    seats: Mapped[int | None] = mapped_column(Integer, nullable=True)
    color: Mapped[str | None] = mapped_column(String(64), nullable=True)
    body_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    vehicle_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    remark: Mapped[str | None] = mapped_column(Text, nullable=True)
    photos_json: Mapped[list[Any]] = mapped_column(JSON, default=list, nullable=False)

    resolution_status: Mapped[str] = mapped_column(
        String(16),
        default=LISTING_UNRESOLVED,
        index=True,
        nullable=False,
    )
    model_id: Mapped[int | None] = mapped_column(
        ForeignKey("vehicle_models.id", ondelete="SET NULL"),
        index=True,
        nullable=True,
    )
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Written once when the listing is linked to a model.
    manufacturer_color_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    generic_color_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    generic_color_code: Mapped[str | None] = mapped_column(Text, nullable=True)
    ai_mileage_km: Mapped[int | None] = mapped_column(Integer, nullable=True)
