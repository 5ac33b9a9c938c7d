"""Listing store queries and operator actions."""

from datetime import datetime, timezone
import logging

from sqlalchemy import exists, select, update
from sqlalchemy.orm import Session

from autocanon.models.batch_item import BATCH_ITEM_FAILED, BatchItem
from autocanon.models.listing import (
    LISTING_FAILED,
    LISTING_RESOLVED,
    LISTING_UNRESOLVED,
    Listing,
)
from autocanon.schemas.listing import RequeueResult

logger = logging.getLogger(__name__)


def select_unresolved_listings(db: Session, *, site: str | None = None, limit: int) -> list[Listing]:
    """Return unresolved listings that have never been sent, newest first.

    Requeued batch items no longer block a listing.
    """

    blocking_item = exists().where(
        BatchItem.listing_id == Listing.id,
        BatchItem.requeued_at.is_(None),
    )
    stmt = select(Listing).where(
        Listing.resolution_status == LISTING_UNRESOLVED,
        ~blocking_item,
    )
    if site:
        stmt = stmt.where(Listing.site == site)
    stmt = stmt.order_by(Listing.created_at.desc(), Listing.id.desc()).limit(limit)
    return list(db.scalars(stmt).all())


def get_listing_by_identity(db: Session, site: str, external_id: str) -> Listing | None:
    stmt = select(Listing).where(Listing.site == site, Listing.external_id == external_id)
    return db.scalar(stmt)


def list_listings(
    db: Session,
    *,
    site: str | None = None,
    status: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Listing]:
    """Return recent listings, optionally filtered by site and resolution status."""

    stmt = select(Listing)
    if site:
        stmt = stmt.where(Listing.site == site)
    if status:
        stmt = stmt.where(Listing.resolution_status == status)
    stmt = stmt.order_by(Listing.created_at.desc(), Listing.id.desc()).limit(limit).offset(offset)
    return list(db.scalars(stmt).all())


def requeue_failed_listings(db: Session, *, site: str | None = None) -> RequeueResult:
    """Make failed work eligible for a new batch.

    Failed batch items of listings that are not resolved are stamped as
    requeued so they stop blocking selection, and listings marked failed go
    back to unresolved.
    """

    now = datetime.now(timezone.utc)
    unresolved_listing_ids = select(Listing.id).where(Listing.resolution_status != LISTING_RESOLVED)
    if site:
        unresolved_listing_ids = unresolved_listing_ids.where(Listing.site == site)

    item_result = db.execute(
        update(BatchItem)
        .where(
            BatchItem.status == BATCH_ITEM_FAILED,
            BatchItem.requeued_at.is_(None),
            BatchItem.listing_id.in_(unresolved_listing_ids),
        )
        .values(requeued_at=now)
        .execution_options(synchronize_session=False)
    )

    listing_stmt = update(Listing).where(Listing.resolution_status == LISTING_FAILED)
    if site:
        listing_stmt = listing_stmt.where(Listing.site == site)
    listing_result = db.execute(
        listing_stmt.values(resolution_status=LISTING_UNRESOLVED).execution_options(synchronize_session=False)
    )
    db.commit()

    result = RequeueResult(
        items_requeued=item_result.rowcount or 0,
        listings_reset=listing_result.rowcount or 0,
    )
    logger.info(
        "listings.requeued site=%s items_requeued=%d listings_reset=%d",
        site,
        result.items_requeued,
        result.listings_reset,
    )
    return result
