"""Vehicle model catalog and merge routes."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from autocanon.db.dependencies import get_db
from autocanon.schemas.common import ApiResponse
from autocanon.schemas.vehicle_model import ModelMergeRequest, ModelMergeResult, VehicleModelRead
from autocanon.services.model_merge import ModelMergeError, ModelNotFoundError, merge_models
from autocanon.services.vehicle_models import list_models

router = APIRouter(prefix="/models")


@router.get("", response_model=ApiResponse[list[VehicleModelRead]])
def get_models(
    brand_slug: str | None = Query(default=None, min_length=1),
    include_merged: bool = Query(default=False),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
) -> ApiResponse[list[VehicleModelRead]]:
    """List canonical models with listing counts."""

    return ApiResponse(
        data=list_models(
            db,
            brand_slug=brand_slug,
            include_merged=include_merged,
            limit=limit,
            offset=offset,
        )
    )


@router.post("/merge", response_model=ApiResponse[ModelMergeResult])
def merge(
    payload: ModelMergeRequest,
    db: Session = Depends(get_db),
) -> ApiResponse[ModelMergeResult]:
    """Merge duplicate models into one surviving model."""

    try:
        result = merge_models(
            db,
            payload.target_model_id,
            payload.merge_model_ids,
            reason=payload.reason,
        )
    except ModelNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ModelMergeError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return ApiResponse(data=result)
