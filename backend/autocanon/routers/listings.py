"""Listing routes."""

from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from autocanon.db.dependencies import get_db
from autocanon.schemas.common import ApiResponse
from autocanon.schemas.listing import ListingCheckResult, ListingRead, RequeueRequest, RequeueResult
from autocanon.services.listings import get_listing_by_identity, list_listings, requeue_failed_listings

router = APIRouter(prefix="/listings")


@router.get("", response_model=ApiResponse[list[ListingRead]])
def get_listings(
    site: str | None = Query(default=None, min_length=1),
    status: Literal["unresolved", "resolved", "failed"] | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
) -> ApiResponse[list[ListingRead]]:
    """List recent listings by site and resolution status."""

    listings = list_listings(db, site=site, status=status, limit=limit, offset=offset)
    return ApiResponse(data=[ListingRead.model_validate(listing) for listing in listings])


@router.get("/check", response_model=ApiResponse[ListingCheckResult])
def check_listing(
    site: str = Query(..., min_length=1),
    external_id: str = Query(..., min_length=1, alias="id"),
    db: Session = Depends(get_db),
) -> ApiResponse[ListingCheckResult]:
    """Report whether a listing with this site and id exists."""

    listing = get_listing_by_identity(db, site, external_id)
    if listing is None:
        return ApiResponse(data=ListingCheckResult(exists=False))
    return ApiResponse(data=ListingCheckResult(exists=True, listing=ListingRead.model_validate(listing)))


@router.post("/requeue-failed", response_model=ApiResponse[RequeueResult])
def requeue_failed(
    payload: RequeueRequest | None = None,
    db: Session = Depends(get_db),
) -> ApiResponse[RequeueResult]:
    """Make failed listings eligible for the next batch."""

    return ApiResponse(data=requeue_failed_listings(db, site=payload.site if payload else None))
