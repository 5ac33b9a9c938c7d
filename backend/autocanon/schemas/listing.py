"""Listing endpoint schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ListingRead(BaseModel):
    """Listing response payload."""

    model_config = ConfigDict(from_attributes=True, protected_namespaces=())

    id: int
    site: str
    external_id: str
    brand: str | None
    model: str | None
    year: int | None
    resolution_status: str
    model_id: int | None
    resolved_at: datetime | None
    manufacturer_color_name: str | None
    generic_color_name: str | None
    generic_color_code: str | None
    ai_mileage_km: int | None
    created_at: datetime


class ListingCheckResult(BaseModel):
    """Existence check for one listing identity."""

    exists: bool
    listing: ListingRead | None = None


class RequeueRequest(BaseModel):
    """Optional site filter for requeueing failed listings."""

    site: str | None = Field(default=None, min_length=1)


class RequeueResult(BaseModel):
    """Outcome of requeueing failed listings."""

    items_requeued: int
    listings_reset: int
