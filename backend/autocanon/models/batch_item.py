"""Per-listing membership of an enrichment batch job."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey, Index, String, Text, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column

from autocanon.models.base import Base, IdMixin, TimestampMixin

BATCH_ITEM_PENDING = "pending"
BATCH_ITEM_SUBMITTED = "submitted"
BATCH_ITEM_RUNNING = "running"
BATCH_ITEM_COMPLETED = "completed"
BATCH_ITEM_FAILED = "failed"
ACTIVE_BATCH_ITEM_STATUSES = (BATCH_ITEM_PENDING, BATCH_ITEM_SUBMITTED, BATCH_ITEM_RUNNING)

_ACTIVE_ITEM_PREDICATE = "status IN ('pending', 'submitted', 'running')"


class BatchItem(Base, IdMixin, TimestampMixin):
    """One listing's request inside a batch job."""

    __tablename__ = "batch_items"
    __table_args__ = (
        UniqueConstraint("batch_job_id", "custom_id", name="uq_batch_items_job_custom_id"),
        # At most one in-flight request per listing across all jobs.
        Index(
            "ux_batch_items_active_listing",
            "listing_id",
            unique=True,
            postgresql_where=text(_ACTIVE_ITEM_PREDICATE),
            sqlite_where=text(_ACTIVE_ITEM_PREDICATE),
        ),
    )

    batch_job_id: Mapped[int] = mapped_column(
        ForeignKey("batch_jobs.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    listing_id: Mapped[int] = mapped_column(
        ForeignKey("listings.id", ondelete="CASCADE"),
        nullable=False,
    )
    site: Mapped[str] = mapped_column(String(64), nullable=False)
    external_id: Mapped[str] = mapped_column(String(128), nullable=False)
    custom_id: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(16), index=True, nullable=False)
    result_json: Mapped[dict[str, Any] | None] = mapped_column(JSON(none_as_null=True), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    requeued_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
