"""Vehicle model catalog queries."""

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from autocanon.models.listing import Listing
from autocanon.models.vehicle_model import VehicleModel
from autocanon.schemas.vehicle_model import VehicleModelRead


def list_models(
    db: Session,
    *,
    brand_slug: str | None = None,
    include_merged: bool = False,
    limit: int = 100,
    offset: int = 0,
) -> list[VehicleModelRead]:
    """Return models with the number of listings linked to each."""

    listing_count = (
        select(Listing.model_id, func.count(Listing.id).label("listing_count"))
        .where(Listing.model_id.is_not(None))
        .group_by(Listing.model_id)
        .subquery()
    )
    stmt = select(VehicleModel, func.coalesce(listing_count.c.listing_count, 0)).outerjoin(
        listing_count, listing_count.c.model_id == VehicleModel.id
    )
    if brand_slug:
        stmt = stmt.where(VehicleModel.brand_slug == brand_slug)
    if not include_merged:
        stmt = stmt.where(VehicleModel.merged_into_id.is_(None))
    stmt = stmt.order_by(VehicleModel.brand_slug.asc(), VehicleModel.model_name_slug.asc(), VehicleModel.id.asc())
    rows = db.execute(stmt.limit(limit).offset(offset)).all()

    models: list[VehicleModelRead] = []
    for model, count in rows:
        item = VehicleModelRead.model_validate(model)
        item.listing_count = int(count or 0)
        models.append(item)
    return models
