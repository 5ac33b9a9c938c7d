"""Link listings to canonical models and record item outcomes."""

from datetime import datetime, timezone
import logging
from typing import Any

from sqlalchemy import delete, update
from sqlalchemy.orm import Session

from autocanon.models.batch_item import BATCH_ITEM_COMPLETED, BATCH_ITEM_FAILED, BatchItem
from autocanon.models.listing import LISTING_FAILED, LISTING_RESOLVED, LISTING_UNRESOLVED, Listing
from autocanon.models.listing_detail import ListingOption, ListingRemark
from autocanon.resolution.types import NormalizedVehicleAttributes

logger = logging.getLogger(__name__)


def link_listing(
    db: Session,
    *,
    listing_id: int,
    model_id: int,
    attributes: NormalizedVehicleAttributes,
    batch_item_id: int | None = None,
    result_payload: dict[str, Any] | None = None,
) -> bool:
    """Resolve an unresolved listing to ``model_id``; returns False when already resolved.

    Options and remarks are replaced only when this call performed the link.
    The owning batch item is completed either way.
    """

    now = datetime.now(timezone.utc)
    result = db.execute(
        update(Listing)
        .where(Listing.id == listing_id, Listing.resolution_status == LISTING_UNRESOLVED)
        .values(
            resolution_status=LISTING_RESOLVED,
            model_id=model_id,
            resolved_at=now,
            manufacturer_color_name=attributes.manufacturer_color_name,
            generic_color_name=attributes.generic_color_name,
            generic_color_code=attributes.generic_color_code,
            ai_mileage_km=attributes.mileage_km,
        )
        .execution_options(synchronize_session=False)
    )
    linked = bool(result.rowcount)

    if linked:
        db.execute(delete(ListingOption).where(ListingOption.listing_id == listing_id))
        db.execute(delete(ListingRemark).where(ListingRemark.listing_id == listing_id))
        seen_options: set[str] = set()
        for option in attributes.options:
            if option.item in seen_options:
                continue
            seen_options.add(option.item)
            db.add(ListingOption(listing_id=listing_id, item=option.item, certainty=option.certainty))
        for remark in attributes.remarks:
            db.add(ListingRemark(listing_id=listing_id, item=remark.item, remark=remark.remark))

    if batch_item_id is not None:
        db.execute(
            update(BatchItem)
            .where(BatchItem.id == batch_item_id)
            .values(status=BATCH_ITEM_COMPLETED, result_json=result_payload, error_message=None)
            .execution_options(synchronize_session=False)
        )
    db.commit()

    if linked:
        logger.info("listings.linked listing_id=%s model_id=%s", listing_id, model_id)
    else:
        logger.info("listings.link_skipped listing_id=%s reason=not_unresolved", listing_id)
    return linked


def mark_listing_failed(db: Session, listing_id: int) -> bool:
    """Move an unresolved listing to failed; the caller commits."""

    result = db.execute(
        update(Listing)
        .where(Listing.id == listing_id, Listing.resolution_status == LISTING_UNRESOLVED)
        .values(resolution_status=LISTING_FAILED)
        .execution_options(synchronize_session=False)
    )
    return bool(result.rowcount)


def mark_batch_item_failed(
    db: Session,
    item_id: int,
    message: str,
    *,
    result_payload: dict[str, Any] | None = None,
) -> None:
    """Record a failed item outcome; the caller commits."""

    values: dict[str, Any] = {"status": BATCH_ITEM_FAILED, "error_message": message}
    if result_payload is not None:
        values["result_json"] = result_payload
    db.execute(
        update(BatchItem)
        .where(BatchItem.id == item_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
