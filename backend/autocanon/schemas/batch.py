"""Batch enrichment endpoint schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class BatchSubmitRequest(BaseModel):
    """Selection filters for a new enrichment batch."""

    site: str | None = Field(default=None, min_length=1)
    limit: int | None = Field(default=None, ge=1)


class BatchSubmissionResult(BaseModel):
    """Outcome of submitting one enrichment batch."""

    model_config = ConfigDict(protected_namespaces=())

    job_id: str
    status: str
    model_name: str
    input_file_id: str | None = None
    requested: int
    items_created: int
    items_skipped: int


class BatchPollResult(BaseModel):
    """Outcome of polling one batch job."""

    job_id: str
    status: str
    terminal: bool
    finalized: bool = False
    lines_processed: int = 0
    items_completed: int = 0
    items_failed: int = 0
    models_created: int = 0
    listings_resolved: int = 0
    error_message: str | None = None


class BatchPollSummary(BaseModel):
    """Outcome of one sweep over pending batch jobs."""

    jobs_polled: int
    jobs_errored: int
    results: list[BatchPollResult] = Field(default_factory=list)


class BatchItemRead(BaseModel):
    """Batch item response payload."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    listing_id: int
    site: str
    external_id: str
    custom_id: str
    status: str
    error_message: str | None
    requeued_at: datetime | None
    updated_at: datetime


class BatchJobRead(BaseModel):
    """Batch job response payload."""

    model_config = ConfigDict(from_attributes=True, protected_namespaces=())

    id: int
    job_id: str
    status: str
    model_name: str
    input_file_id: str | None
    output_file_id: str | None
    error_file_id: str | None
    submitted_at: datetime
    completed_at: datetime | None
    failed_at: datetime | None
    usage_input_tokens: int | None
    usage_output_tokens: int | None
    usage_total_tokens: int | None
    error_message: str | None


class BatchJobDetail(BatchJobRead):
    """Batch job with its items and per-status counts."""

    item_counts: dict[str, int] = Field(default_factory=dict)
    items: list[BatchItemRead] = Field(default_factory=list)


class RerunRequest(BaseModel):
    """Bound on stored results to re-apply."""

    limit: int | None = Field(default=None, ge=1, le=1000)


class RerunResult(BaseModel):
    """Outcome of re-applying stored batch results."""

    examined: int
    resolved: int
    failed: int
    skipped: int


class UsageSummary(BaseModel):
    """Token usage and estimated cost over completed batch jobs."""

    jobs: int
    input_tokens: int
    output_tokens: int
    total_tokens: int
    resolved_listings: int
    currency: str
    cost: float
    cost_per_record: float | None
    cost_per_thousand_records: float | None
