"""ORM models package exports."""

from autocanon.models.batch_item import BatchItem
from autocanon.models.batch_job import BatchJob
from autocanon.models.brand import Brand
from autocanon.models.listing import Listing
from autocanon.models.listing_detail import ListingOption, ListingRemark
from autocanon.models.model_merge_audit import ModelMergeAudit
from autocanon.models.vehicle_model import VehicleModel

__all__ = [
    "Brand",
    "Listing",
    "ListingOption",
    "ListingRemark",
    "VehicleModel",
    "ModelMergeAudit",
    "BatchJob",
    "BatchItem",
]
