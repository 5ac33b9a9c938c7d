"""Brand directory ORM model."""

from sqlalchemy import Boolean, Text, true
from sqlalchemy.orm import Mapped, mapped_column

from autocanon.models.base import Base, CreatedAtMixin, IdMixin


class Brand(Base, IdMixin, CreatedAtMixin):
    """Vehicle brand; unverified rows are placeholders created during resolution."""

    __tablename__ = "brands"

    slug: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    verified: Mapped[bool] = mapped_column(Boolean, default=True, server_default=true(), nullable=False)
