"""Batch request building and submission."""

from __future__ import annotations

from datetime import datetime, timezone
from functools import lru_cache
import json
import logging
from pathlib import Path
from time import perf_counter
from typing import Any

from sqlalchemy.orm import Session

from autocanon.config import get_settings
from autocanon.db.upsert import insert_ignoring_conflicts
from autocanon.enrichment.openai_batch_client import EnrichmentServiceError, OpenAIBatchClient
from autocanon.enrichment.service_interface import EnrichmentServiceInterface
from autocanon.enrichment.types import BatchJobSnapshot, EnrichmentRequest, map_job_status_to_item_status
from autocanon.models.batch_item import BatchItem
from autocanon.models.batch_job import BatchJob
from autocanon.models.listing import Listing
from autocanon.schemas.batch import BatchSubmissionResult
from autocanon.services.listings import select_unresolved_listings

logger = logging.getLogger(__name__)

ENRICHMENT_PROMPT_VERSION = "vehicle.v1"
_PROMPT_FILES: dict[str, Path] = {
    "vehicle.v1": Path(__file__).resolve().parents[1] / "enrichment" / "prompts" / "vehicle_v1.txt",
}
_INSTRUCTIONS = "You are a vehicle data normalizer. Return only JSON."
_TEMPERATURE = 0.2
_SUBMISSION_METADATA = {"source": "create_batch"}


class NoEligibleListingsError(ValueError):
    """Raised when no unresolved, unsent listing matches the selection."""


def get_default_enrichment_client() -> EnrichmentServiceInterface:
    """Return the OpenAI batch client built from settings."""

    settings = get_settings()
    if not settings.openai_api_key:
        raise EnrichmentServiceError(
            "OPENAI_API_KEY is not configured. Set it in backend/.env before submitting batches."
        )
    return OpenAIBatchClient(
        api_key=settings.openai_api_key,
        model=settings.openai_batch_model,
        base_url=settings.openai_base_url,
        timeout_seconds=settings.openai_timeout_seconds,
        organization=settings.openai_organization,
        project=settings.openai_project,
    )


def clamp_batch_limit(limit: int | None) -> int:
    settings = get_settings()
    requested = settings.batch_default_limit if limit is None else limit
    return min(max(1, int(requested)), settings.batch_max_items)


def build_custom_id(site: str, external_id: str) -> str:
    return f"{site}-{external_id}"


def extract_photo_urls(photos: Any, *, max_photos: int) -> list[str]:
    """Return up to ``max_photos`` URLs from plain strings or ``{"orig": url}`` objects."""

    if not isinstance(photos, list):
        return []
    urls: list[str] = []
    for entry in photos:
        if isinstance(entry, str) and entry.strip():
            urls.append(entry.strip())
        elif isinstance(entry, dict) and isinstance(entry.get("orig"), str) and entry["orig"].strip():
            urls.append(entry["orig"].strip())
        if len(urls) >= max_photos:
            break
    return urls


def build_enrichment_request(
    listing: Listing,
    *,
    model: str,
    prompt: str,
    max_photos: int,
) -> EnrichmentRequest:
    """Build one responses-API batch line for a listing."""

    known_attributes = {
        "site": listing.site,
        "id": listing.external_id,
        "year": listing.year,
        "mileage_km": listing.mileage_km,
        "engine_cc": listing.engine_cc,
        "transmission": listing.transmission,
        "fuel": listing.fuel,
        "brand": listing.brand,
        "brand_slug": listing.brand_slug,
        "model": listing.model,
        "seats": listing.seats,
        "color": listing.color,
        "body_type": listing.body_type,
        "summary": listing.summary,
        "remark": listing.remark,
        "vehicle_type": listing.vehicle_type,
    }
    content: list[dict[str, Any]] = [
        {
            "type": "input_text",
            "text": f"{prompt}\n{json.dumps(known_attributes, indent=2, ensure_ascii=False)}",
        }
    ]
    content.extend(
        {"type": "input_image", "image_url": url}
        for url in extract_photo_urls(listing.photos_json, max_photos=max_photos)
    )
    return EnrichmentRequest(
        custom_id=build_custom_id(listing.site, listing.external_id),
        body={
            "model": model,
            "instructions": _INSTRUCTIONS,
            "input": [{"role": "user", "content": content}],
            "text": {"format": {"type": "json_object"}},
            "temperature": _TEMPERATURE,
            "store": False,
        },
    )


def submit_enrichment_batch(
    db: Session,
    client: EnrichmentServiceInterface | None = None,
    *,
    site: str | None = None,
    limit: int | None = None,
) -> BatchSubmissionResult:
    """Submit unresolved listings as one enrichment batch and record it.

    Nothing is written when the service rejects the submission.
    """

    settings = get_settings()
    started = perf_counter()
    effective_limit = clamp_batch_limit(limit)
    listings = select_unresolved_listings(db, site=site, limit=effective_limit)
    if not listings:
        raise NoEligibleListingsError("No listings found for batch")

    active_client = client or get_default_enrichment_client()
    prompt = get_enrichment_prompt()
    requests = [
        build_enrichment_request(
            listing,
            model=active_client.model,
            prompt=prompt,
            max_photos=settings.batch_max_photos,
        )
        for listing in listings
    ]

    try:
        snapshot = active_client.submit_batch(
            requests,
            metadata=dict(_SUBMISSION_METADATA),
            completion_window=settings.batch_completion_window,
        )
    except EnrichmentServiceError:
        logger.exception(
            "batches.submit_failed site=%s requested=%d elapsed_ms=%.2f",
            site,
            len(requests),
            (perf_counter() - started) * 1000.0,
        )
        raise

    try:
        created = _persist_submission(
            db,
            snapshot,
            listings,
            requests,
            model_name=active_client.model,
            request_json={
                "model": active_client.model,
                "site": site,
                "limit": effective_limit,
                "prompt_version": ENRICHMENT_PROMPT_VERSION,
                "completion_window": settings.batch_completion_window,
                "metadata": dict(_SUBMISSION_METADATA),
                "custom_ids": [request.custom_id for request in requests],
            },
        )
    except Exception:
        db.rollback()
        logger.exception(
            "batches.persist_failed job_id=%s input_file_id=%s requested=%d",
            snapshot.job_id,
            snapshot.input_file_id,
            len(requests),
        )
        raise

    result = BatchSubmissionResult(
        job_id=snapshot.job_id,
        status=snapshot.status,
        model_name=active_client.model,
        input_file_id=snapshot.input_file_id,
        requested=len(requests),
        items_created=created,
        items_skipped=len(requests) - created,
    )
    logger.info(
        "batches.submitted job_id=%s status=%s site=%s requested=%d items_created=%d elapsed_ms=%.2f",
        result.job_id,
        result.status,
        site,
        result.requested,
        result.items_created,
        (perf_counter() - started) * 1000.0,
    )
    return result


def _persist_submission(
    db: Session,
    snapshot: BatchJobSnapshot,
    listings: list[Listing],
    requests: list[EnrichmentRequest],
    *,
    model_name: str,
    request_json: dict[str, Any],
) -> int:
    """Record an accepted job and its items; returns the number of items created."""

    item_status = map_job_status_to_item_status(snapshot.status)
    job = BatchJob(
        job_id=snapshot.job_id,
        status=snapshot.status,
        model_name=model_name,
        input_file_id=snapshot.input_file_id,
        submitted_at=datetime.now(timezone.utc),
        request_json=request_json,
        response_json=snapshot.raw,
    )
    db.add(job)
    db.flush()

    created = 0
    for listing, request in zip(listings, requests):
        inserted = insert_ignoring_conflicts(
            db,
            BatchItem,
            {
                "batch_job_id": job.id,
                "listing_id": listing.id,
                "site": listing.site,
                "external_id": listing.external_id,
                "custom_id": request.custom_id,
                "status": item_status,
            },
        )
        if inserted:
            created += 1
        else:
            logger.warning(
                "batches.item_skipped job_id=%s listing_id=%s reason=active_item_exists",
                snapshot.job_id,
                listing.id,
            )
    db.commit()
    return created


@lru_cache(maxsize=4)
def get_enrichment_prompt(version: str = ENRICHMENT_PROMPT_VERSION) -> str:
    prompt_file = _PROMPT_FILES.get(version)
    if prompt_file is None:
        raise EnrichmentServiceError(f"Enrichment prompt version is not registered: {version}")
    try:
        prompt_text = prompt_file.read_text(encoding="utf-8").strip()
    except OSError as exc:
        raise EnrichmentServiceError(f"Failed to load enrichment prompt file: {prompt_file}") from exc
    if not prompt_text:
        raise EnrichmentServiceError(f"Enrichment prompt file is empty: {prompt_file}")
    return prompt_text
