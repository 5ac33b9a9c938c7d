"""Vehicle model merge audit log model."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from autocanon.models.base import Base, IdMixin


class ModelMergeAudit(Base, IdMixin):
    """One administrator merge of duplicate vehicle models into a survivor."""

    __tablename__ = "model_merge_audits"

    survivor_model_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)
    merged_model_ids_json: Mapped[list[int]] = mapped_column(JSON, default=list, nullable=False)
    reason: Mapped[str] = mapped_column(String(255), nullable=False)
    relinked_listing_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    details_json: Mapped[dict[str, object]] = mapped_column(JSON, default=dict, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
