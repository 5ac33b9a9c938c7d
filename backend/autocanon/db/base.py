"""SQLAlchemy metadata registry import for Alembic."""

from autocanon.models import (
    BatchItem,
    BatchJob,
    Brand,
    Listing,
    ListingOption,
    ListingRemark,
    ModelMergeAudit,
    VehicleModel,
)
from autocanon.models.base import Base

__all__ = [
    "Base",
    "Brand",
    "Listing",
    "ListingOption",
    "ListingRemark",
    "VehicleModel",
    "ModelMergeAudit",
    "BatchJob",
    "BatchItem",
]
