"""Token usage and cost reporting."""

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from autocanon.config import get_settings
from autocanon.models.batch_job import BatchJob
from autocanon.models.listing import LISTING_RESOLVED, Listing
from autocanon.schemas.batch import UsageSummary


def estimate_cost(input_tokens: int, output_tokens: int) -> float:
    """Cost in the configured currency for the given token counts."""

    settings = get_settings()
    usd = (
        input_tokens * settings.usage_input_cost_per_million
        + output_tokens * settings.usage_output_cost_per_million
    ) / 1_000_000
    return usd * settings.usage_currency_rate


def get_usage_summary(db: Session) -> UsageSummary:
    """Sum token usage over completed jobs and spread the cost over resolved listings."""

    jobs, input_tokens, output_tokens, total_tokens = db.execute(
        select(
            func.count(BatchJob.id),
            func.coalesce(func.sum(BatchJob.usage_input_tokens), 0),
            func.coalesce(func.sum(BatchJob.usage_output_tokens), 0),
            func.coalesce(func.sum(BatchJob.usage_total_tokens), 0),
        ).where(BatchJob.completed_at.is_not(None))
    ).one()
    resolved = db.scalar(
        select(func.count(Listing.id)).where(Listing.resolution_status == LISTING_RESOLVED)
    ) or 0

    cost = estimate_cost(int(input_tokens), int(output_tokens))
    per_record = cost / resolved if resolved else None
    return UsageSummary(
        jobs=int(jobs),
        input_tokens=int(input_tokens),
        output_tokens=int(output_tokens),
        total_tokens=int(total_tokens),
        resolved_listings=int(resolved),
        currency=get_settings().usage_currency,
        cost=round(cost, 6),
        cost_per_record=round(per_record, 6) if per_record is not None else None,
        cost_per_thousand_records=round(per_record * 1000, 6) if per_record is not None else None,
    )
