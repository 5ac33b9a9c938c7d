"""AI-extracted listing options and remarks."""

from sqlalchemy import ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from autocanon.models.base import Base, CreatedAtMixin, IdMixin


class ListingOption(Base, IdMixin, CreatedAtMixin):
    """Equipment option the AI saw or read in a listing."""

    __tablename__ = "listing_options"
    __table_args__ = (UniqueConstraint("listing_id", "item", name="uq_listing_options_listing_item"),)

    listing_id: Mapped[int] = mapped_column(
        ForeignKey("listings.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    item: Mapped[str] = mapped_column(Text, nullable=False)
    certainty: Mapped[str | None] = mapped_column(Text, nullable=True)


class ListingRemark(Base, IdMixin, CreatedAtMixin):
    """Free-text AI remark attached to one listing attribute."""

    __tablename__ = "listing_remarks"

    listing_id: Mapped[int] = mapped_column(
        ForeignKey("listings.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    item: Mapped[str] = mapped_column(Text, nullable=False)
    remark: Mapped[str] = mapped_column(Text, nullable=False)
