"""Vehicle model catalog and merge schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class VehicleModelRead(BaseModel):
    """Canonical vehicle model response payload."""

    model_config = ConfigDict(from_attributes=True, protected_namespaces=())

    id: int
    canonical_key: str
    brand_slug: str | None
    brand_name: str | None
    model_name: str | None
    model_name_slug: str | None
    detail_model_name: str | None
    manufacturer_code: str | None
    model_slug: str | None
    output_bucket: int | None
    output_decimal: str | None
    power_type: str | None
    body_type: str | None
    merged_into_id: int | None
    created_at: datetime
    listing_count: int = 0


class ModelMergeRequest(BaseModel):
    """Merge duplicate models into one surviving model."""

    target_model_id: int = Field(ge=1)
    merge_model_ids: list[int] = Field(min_length=1)
    reason: str = Field(default="admin_merge", min_length=1, max_length=255)


class ModelMergeResult(BaseModel):
    """Outcome of one administrative merge."""

    audit_id: int
    target_model_id: int
    merged_model_ids: list[int]
    relinked_listings: int
    redirects_flattened: int
