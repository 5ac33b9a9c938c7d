"""Batch job polling and result application."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import json
import logging
from time import perf_counter
from typing import Any, Iterator

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from autocanon.config import get_settings
from autocanon.enrichment.openai_batch_client import EnrichmentServiceError
from autocanon.enrichment.service_interface import EnrichmentServiceInterface
from autocanon.enrichment.types import (
    FAILED_JOB_STATUSES,
    BatchJobSnapshot,
    BatchResultLine,
    extract_output_text,
    map_job_status_to_item_status,
)
from autocanon.models.batch_item import (
    ACTIVE_BATCH_ITEM_STATUSES,
    BATCH_ITEM_COMPLETED,
    BATCH_ITEM_FAILED,
    BatchItem,
)
from autocanon.models.batch_job import BatchJob
from autocanon.models.listing import LISTING_UNRESOLVED, Listing
from autocanon.resolution.normalizer import normalize_vehicle_payload
from autocanon.resolution.resolver import ModelResolutionError, ModelResolver
from autocanon.schemas.batch import (
    BatchItemRead,
    BatchJobDetail,
    BatchJobRead,
    BatchPollResult,
    BatchPollSummary,
    RerunResult,
)
from autocanon.services.batch_submission import get_default_enrichment_client
from autocanon.services.listing_linker import link_listing, mark_batch_item_failed, mark_listing_failed

logger = logging.getLogger(__name__)

NO_RESULT_LINE_MESSAGE = "No result line returned for request"
DOWNLOAD_FAILED_MESSAGE = "Failed to download/process batch file"


@dataclass(slots=True)
class ApplyOutcome:
    """Result of applying one stored or downloaded result line."""

    completed: bool
    model_created: bool = False
    listing_linked: bool = False
    error_message: str | None = None


@dataclass(slots=True)
class _PollCounters:
    lines_processed: int = 0
    items_completed: int = 0
    items_failed: int = 0
    models_created: int = 0
    listings_resolved: int = 0

    def record(self, outcome: ApplyOutcome) -> None:
        if outcome.completed:
            self.items_completed += 1
        else:
            self.items_failed += 1
        if outcome.model_created:
            self.models_created += 1
        if outcome.listing_linked:
            self.listings_resolved += 1


def list_batch_jobs(db: Session, *, limit: int = 50, offset: int = 0) -> list[BatchJobRead]:
    stmt = (
        select(BatchJob)
        .order_by(BatchJob.submitted_at.desc(), BatchJob.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return [BatchJobRead.model_validate(job) for job in db.scalars(stmt).all()]


def get_batch_job(db: Session, job_id: str) -> BatchJobDetail | None:
    """Return one job with its items, or None when unknown."""

    job = db.scalar(select(BatchJob).where(BatchJob.job_id == job_id))
    if job is None:
        return None
    items = db.scalars(
        select(BatchItem).where(BatchItem.batch_job_id == job.id).order_by(BatchItem.id.asc())
    ).all()
    counts: dict[str, int] = {}
    for item in items:
        counts[item.status] = counts.get(item.status, 0) + 1
    detail = BatchJobDetail.model_validate(job)
    detail.item_counts = counts
    detail.items = [BatchItemRead.model_validate(item) for item in items]
    return detail


def poll_pending_batch_jobs(
    db: Session,
    client: EnrichmentServiceInterface | None = None,
    *,
    limit: int | None = None,
) -> BatchPollSummary:
    """Poll every unfinished job, newest submission first; one job's failure never stops the sweep."""

    settings = get_settings()
    max_jobs = settings.poll_max_jobs if limit is None else min(max(1, limit), settings.poll_max_jobs)
    job_ids = list(
        db.scalars(
            select(BatchJob.job_id)
            .where(BatchJob.completed_at.is_(None), BatchJob.failed_at.is_(None))
            .order_by(BatchJob.submitted_at.desc(), BatchJob.id.desc())
            .limit(max_jobs)
        ).all()
    )
    if not job_ids:
        return BatchPollSummary(jobs_polled=0, jobs_errored=0)

    active_client = client or get_default_enrichment_client()
    results: list[BatchPollResult] = []
    errored = 0
    for job_id in job_ids:
        try:
            result = poll_batch_job(db, active_client, job_id)
        except Exception:
            db.rollback()
            errored += 1
            logger.exception("batches.poll_job_failed job_id=%s", job_id)
            continue
        if result is not None:
            results.append(result)
            if result.error_message:
                errored += 1
    return BatchPollSummary(jobs_polled=len(job_ids), jobs_errored=errored, results=results)


def poll_batch_job(
    db: Session,
    client: EnrichmentServiceInterface,
    job_id: str,
) -> BatchPollResult | None:
    """Refresh one job and, once it is terminal, apply its result files.

    Returns None when the job is unknown.
    """

    started = perf_counter()
    job = db.scalar(select(BatchJob).where(BatchJob.job_id == job_id))
    if job is None:
        return None
    if job.completed_at is not None or job.failed_at is not None:
        return BatchPollResult(job_id=job.job_id, status=job.status, terminal=True, finalized=True)

    try:
        snapshot = client.get_job(job_id)
    except EnrichmentServiceError as exc:
        message = f"Failed to fetch batch status: {exc}"
        job.error_message = message
        failed = _fail_in_flight_items(db, job.id, message)
        db.commit()
        logger.warning("batches.status_fetch_failed job_id=%s items_failed=%d error=%s", job_id, failed, exc)
        return BatchPollResult(
            job_id=job_id,
            status=job.status,
            terminal=False,
            items_failed=failed,
            error_message=message,
        )

    _apply_snapshot(job, snapshot)
    if not snapshot.is_terminal:
        db.execute(
            update(BatchItem)
            .where(BatchItem.batch_job_id == job.id, BatchItem.status.in_(ACTIVE_BATCH_ITEM_STATUSES))
            .values(status=map_job_status_to_item_status(snapshot.status))
            .execution_options(synchronize_session=False)
        )
        db.commit()
        logger.info("batches.polled job_id=%s status=%s terminal=false", job_id, snapshot.status)
        return BatchPollResult(job_id=job_id, status=snapshot.status, terminal=False)
    job_pk = job.id
    db.commit()

    counters = _PollCounters()
    try:
        output_text = client.download_file(snapshot.output_file_id) if snapshot.output_file_id else ""
        error_text = client.download_file(snapshot.error_file_id) if snapshot.error_file_id else ""
    except EnrichmentServiceError as exc:
        job = db.get(BatchJob, job_pk)
        job.error_message = f"{DOWNLOAD_FAILED_MESSAGE}: {exc}"
        failed = _fail_in_flight_items(db, job_pk, DOWNLOAD_FAILED_MESSAGE)
        db.commit()
        logger.warning("batches.download_failed job_id=%s items_failed=%d error=%s", job_id, failed, exc)
        return BatchPollResult(
            job_id=job_id,
            status=snapshot.status,
            terminal=True,
            items_failed=failed,
            error_message=job.error_message,
        )

    resolver = ModelResolver()
    for line in _iter_result_lines(output_text, job_id=job_id):
        counters.lines_processed += 1
        _process_line(db, job_pk, line, resolver, counters)
    for line in _iter_result_lines(error_text, job_id=job_id):
        counters.lines_processed += 1
        _process_line(db, job_pk, line, resolver, counters)

    leftovers = _fail_in_flight_items(db, job_pk, NO_RESULT_LINE_MESSAGE)
    counters.items_failed += leftovers

    job = db.get(BatchJob, job_pk)
    now = datetime.now(timezone.utc)
    job.status = snapshot.status
    if snapshot.status in FAILED_JOB_STATUSES:
        job.failed_at = now
    else:
        job.completed_at = now
    db.commit()

    result = BatchPollResult(
        job_id=job_id,
        status=snapshot.status,
        terminal=True,
        finalized=True,
        lines_processed=counters.lines_processed,
        items_completed=counters.items_completed,
        items_failed=counters.items_failed,
        models_created=counters.models_created,
        listings_resolved=counters.listings_resolved,
    )
    logger.info(
        (
            "batches.finalized job_id=%s status=%s lines=%d completed=%d failed=%d "
            "models_created=%d listings_resolved=%d elapsed_ms=%.2f"
        ),
        job_id,
        result.status,
        result.lines_processed,
        result.items_completed,
        result.items_failed,
        result.models_created,
        result.listings_resolved,
        (perf_counter() - started) * 1000.0,
    )
    return result


def apply_model_output(
    db: Session,
    item: BatchItem,
    result_payload: dict[str, Any],
    resolver: ModelResolver,
) -> ApplyOutcome:
    """Normalize, resolve and link one successful result line for ``item``."""

    item_id = item.id
    response = result_payload.get("response") if isinstance(result_payload.get("response"), dict) else {}
    output_text = extract_output_text(response.get("body"))
    if output_text is None:
        return _fail_item(db, item_id, "Response contained no output text", result_payload)
    try:
        decoded = json.loads(output_text)
    except json.JSONDecodeError:
        return _fail_item(db, item_id, "Output text is not valid JSON", result_payload)

    attributes = normalize_vehicle_payload(decoded)
    if attributes is None:
        return _fail_item(db, item_id, "Output is not a parseable vehicle record", result_payload)
    if (attributes.site, attributes.external_id) != (item.site, item.external_id):
        return _fail_item(
            db,
            item_id,
            (
                f"Correlation mismatch: output is for {attributes.site}-{attributes.external_id}, "
                f"expected {item.site}-{item.external_id}"
            ),
            result_payload,
        )

    listing_id = item.listing_id
    listing = db.get(Listing, listing_id)
    fallback_brand = listing.brand if listing is not None else None
    try:
        resolution = resolver.resolve(db, attributes, fallback_brand=fallback_brand)
    except ModelResolutionError as exc:
        db.rollback()
        mark_listing_failed(db, listing_id)
        outcome = _fail_item(db, item_id, str(exc), result_payload)
        logger.warning("batches.listing_unresolvable listing_id=%s error=%s", listing_id, exc)
        return outcome

    linked = link_listing(
        db,
        listing_id=listing_id,
        model_id=resolution.model_id,
        attributes=attributes,
        batch_item_id=item_id,
        result_payload=result_payload,
    )
    return ApplyOutcome(completed=True, model_created=resolution.created, listing_linked=linked)


def rerun_stored_results(db: Session, *, limit: int | None = None) -> RerunResult:
    """Re-apply stored successful results for listings still waiting on a model."""

    effective_limit = limit or get_settings().rerun_default_limit
    stmt = (
        select(BatchItem)
        .join(Listing, Listing.id == BatchItem.listing_id)
        .where(
            BatchItem.status.in_((BATCH_ITEM_COMPLETED, BATCH_ITEM_FAILED)),
            BatchItem.result_json.is_not(None),
            Listing.resolution_status == LISTING_UNRESOLVED,
            Listing.model_id.is_(None),
        )
        .order_by(BatchItem.id.asc())
        .limit(effective_limit)
    )
    items = list(db.scalars(stmt).all())
    resolver = ModelResolver()
    resolved = failed = skipped = 0
    for item in items:
        item_id = item.id
        stored = item.result_json
        line = BatchResultLine.from_payload(stored) if isinstance(stored, dict) else None
        if line is None or not line.ok:
            skipped += 1
            continue
        try:
            outcome = apply_model_output(db, item, stored, resolver)
        except Exception as exc:
            db.rollback()
            logger.warning("batches.rerun_item_failed item_id=%s error=%s", item_id, exc, exc_info=True)
            mark_batch_item_failed(db, item_id, f"Failed to apply stored result: {exc}")
            db.commit()
            failed += 1
            continue
        if outcome.listing_linked:
            resolved += 1
        elif not outcome.completed:
            failed += 1
        else:
            skipped += 1

    result = RerunResult(examined=len(items), resolved=resolved, failed=failed, skipped=skipped)
    logger.info(
        "batches.rerun examined=%d resolved=%d failed=%d skipped=%d",
        result.examined,
        result.resolved,
        result.failed,
        result.skipped,
    )
    return result


def _process_line(
    db: Session,
    job_pk: int,
    line: BatchResultLine,
    resolver: ModelResolver,
    counters: _PollCounters,
) -> None:
    item = db.scalar(
        select(BatchItem).where(BatchItem.batch_job_id == job_pk, BatchItem.custom_id == line.custom_id)
    )
    if item is None:
        logger.warning("batches.unknown_custom_id batch_job_id=%s custom_id=%s", job_pk, line.custom_id)
        return
    if item.status == BATCH_ITEM_COMPLETED:
        return

    item_id = item.id
    try:
        if not line.ok:
            outcome = _fail_item(db, item_id, line.error_detail, line.raw)
        else:
            outcome = apply_model_output(db, item, line.raw, resolver)
    except Exception as exc:
        db.rollback()
        logger.warning(
            "batches.line_failed batch_job_id=%s custom_id=%s error=%s",
            job_pk,
            line.custom_id,
            exc,
            exc_info=True,
        )
        mark_batch_item_failed(db, item_id, f"Failed to process result line: {exc}", result_payload=line.raw)
        db.commit()
        outcome = ApplyOutcome(completed=False, error_message=str(exc))
    counters.record(outcome)


def _fail_item(
    db: Session,
    item_id: int,
    message: str,
    result_payload: dict[str, Any] | None,
) -> ApplyOutcome:
    mark_batch_item_failed(db, item_id, message, result_payload=result_payload)
    db.commit()
    return ApplyOutcome(completed=False, error_message=message)


def _fail_in_flight_items(db: Session, job_pk: int, message: str) -> int:
    result = db.execute(
        update(BatchItem)
        .where(BatchItem.batch_job_id == job_pk, BatchItem.status.in_(ACTIVE_BATCH_ITEM_STATUSES))
        .values(status=BATCH_ITEM_FAILED, error_message=message)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0


def _apply_snapshot(job: BatchJob, snapshot: BatchJobSnapshot) -> None:
    job.status = snapshot.status
    job.response_json = snapshot.raw
    job.error_message = None
    if snapshot.output_file_id:
        job.output_file_id = snapshot.output_file_id
    if snapshot.error_file_id:
        job.error_file_id = snapshot.error_file_id
    if snapshot.usage.input_tokens is not None:
        job.usage_input_tokens = snapshot.usage.input_tokens
    if snapshot.usage.output_tokens is not None:
        job.usage_output_tokens = snapshot.usage.output_tokens
    if snapshot.usage.total_tokens is not None:
        job.usage_total_tokens = snapshot.usage.total_tokens


def _iter_result_lines(text: str, *, job_id: str) -> Iterator[BatchResultLine]:
    for number, raw_line in enumerate(text.splitlines(), start=1):
        stripped = raw_line.strip()
        if not stripped:
            continue
        try:
            payload = json.loads(stripped)
        except json.JSONDecodeError:
            logger.warning("batches.bad_result_line job_id=%s line=%d reason=invalid_json", job_id, number)
            continue
        line = BatchResultLine.from_payload(payload) if isinstance(payload, dict) else None
        if line is None:
            logger.warning("batches.bad_result_line job_id=%s line=%d reason=missing_custom_id", job_id, number)
            continue
        yield line
