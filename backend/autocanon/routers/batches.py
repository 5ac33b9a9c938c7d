"""Batch enrichment routes."""

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy.orm import Session

from autocanon.db.dependencies import get_db
from autocanon.enrichment.openai_batch_client import EnrichmentServiceError
from autocanon.schemas.batch import (
    BatchJobDetail,
    BatchJobRead,
    BatchPollResult,
    BatchPollSummary,
    BatchSubmissionResult,
    BatchSubmitRequest,
    RerunRequest,
    RerunResult,
    UsageSummary,
)
from autocanon.schemas.common import ApiResponse
from autocanon.services.batch_submission import (
    NoEligibleListingsError,
    get_default_enrichment_client,
    submit_enrichment_batch,
)
from autocanon.services.batch_tracking import (
    get_batch_job,
    list_batch_jobs,
    poll_batch_job,
    poll_pending_batch_jobs,
    rerun_stored_results,
)
from autocanon.services.usage import get_usage_summary

router = APIRouter(prefix="/batches")


@router.post("", response_model=ApiResponse[BatchSubmissionResult])
def create_batch(
    payload: BatchSubmitRequest | None = None,
    db: Session = Depends(get_db),
) -> ApiResponse[BatchSubmissionResult]:
    """Submit unresolved listings as a new enrichment batch."""

    try:
        result = submit_enrichment_batch(
            db,
            site=payload.site if payload else None,
            limit=payload.limit if payload else None,
        )
    except NoEligibleListingsError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except EnrichmentServiceError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return ApiResponse(data=result)


@router.get("", response_model=ApiResponse[list[BatchJobRead]])
def get_batches(
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
) -> ApiResponse[list[BatchJobRead]]:
    """List batch jobs, newest first."""

    return ApiResponse(data=list_batch_jobs(db, limit=limit, offset=offset))


@router.get("/usage", response_model=ApiResponse[UsageSummary])
def get_usage(db: Session = Depends(get_db)) -> ApiResponse[UsageSummary]:
    """Token usage and estimated cost across completed jobs."""

    return ApiResponse(data=get_usage_summary(db))


@router.post("/poll", response_model=ApiResponse[BatchPollSummary])
def poll_batches(
    limit: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
) -> ApiResponse[BatchPollSummary]:
    """Poll all unfinished batch jobs."""

    try:
        summary = poll_pending_batch_jobs(db, limit=limit)
    except EnrichmentServiceError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return ApiResponse(data=summary)


@router.post("/rerun", response_model=ApiResponse[RerunResult])
def rerun_batches(
    payload: RerunRequest | None = None,
    db: Session = Depends(get_db),
) -> ApiResponse[RerunResult]:
    """Re-apply stored results for listings still missing a model."""

    return ApiResponse(data=rerun_stored_results(db, limit=payload.limit if payload else None))


@router.get("/{job_id}", response_model=ApiResponse[BatchJobDetail])
def get_batch(
    job_id: str = Path(..., min_length=1),
    db: Session = Depends(get_db),
) -> ApiResponse[BatchJobDetail]:
    """Fetch one batch job with its items."""

    detail = get_batch_job(db, job_id)
    if detail is None:
        raise HTTPException(status_code=404, detail="Batch job not found")
    return ApiResponse(data=detail)


@router.post("/{job_id}/poll", response_model=ApiResponse[BatchPollResult])
def poll_batch(
    job_id: str = Path(..., min_length=1),
    db: Session = Depends(get_db),
) -> ApiResponse[BatchPollResult]:
    """Poll one batch job and apply its results when it is finished."""

    try:
        result = poll_batch_job(db, get_default_enrichment_client(), job_id)
    except EnrichmentServiceError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    if result is None:
        raise HTTPException(status_code=404, detail="Batch job not found")
    return ApiResponse(data=result)
