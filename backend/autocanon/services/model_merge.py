"""Administrative merging of duplicate vehicle models."""

import logging

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from autocanon.models.listing import Listing
from autocanon.models.model_merge_audit import ModelMergeAudit
from autocanon.models.vehicle_model import VehicleModel
from autocanon.schemas.vehicle_model import ModelMergeResult

logger = logging.getLogger(__name__)


class ModelMergeError(ValueError):
    """Raised when a merge request is invalid."""


class ModelNotFoundError(ModelMergeError):
    """Raised when the target or a merged model does not exist."""


def merge_models(
    db: Session,
    target_model_id: int,
    merge_model_ids: list[int],
    *,
    reason: str = "admin_merge",
) -> ModelMergeResult:
    """Redirect ``merge_model_ids`` to ``target_model_id`` and relink their listings.

    Redirects always point at a root: the target must not itself be merged,
    and models already redirected to a merged-away model are re-pointed at
    the target in the same transaction.
    """

    merged_ids = sorted({model_id for model_id in merge_model_ids if model_id != target_model_id})
    try:
        target = _lock_models(db, target_model_id, merged_ids)
        flattened = db.execute(
            update(VehicleModel)
            .where(VehicleModel.merged_into_id.in_(merged_ids))
            .values(merged_into_id=target_model_id)
            .execution_options(synchronize_session=False)
        ).rowcount or 0
        db.execute(
            update(VehicleModel)
            .where(VehicleModel.id.in_(merged_ids))
            .values(merged_into_id=target_model_id)
            .execution_options(synchronize_session=False)
        )
        relinked = db.execute(
            update(Listing)
            .where(Listing.model_id.in_(merged_ids))
            .values(model_id=target_model_id)
            .execution_options(synchronize_session=False)
        ).rowcount or 0

        audit = ModelMergeAudit(
            survivor_model_id=target_model_id,
            merged_model_ids_json=merged_ids,
            reason=reason,
            relinked_listing_count=relinked,
            details_json={
                "target_canonical_key": target.canonical_key,
                "redirects_flattened": flattened,
            },
        )
        db.add(audit)
        db.commit()
    except ModelMergeError:
        db.rollback()
        raise
    except Exception:
        db.rollback()
        logger.exception(
            "models.merge_failed target_model_id=%s merge_model_ids=%s",
            target_model_id,
            merged_ids,
        )
        raise

    logger.info(
        "models.merged target_model_id=%s merged=%s relinked_listings=%d redirects_flattened=%d",
        target_model_id,
        merged_ids,
        relinked,
        flattened,
    )
    return ModelMergeResult(
        audit_id=audit.id,
        target_model_id=target_model_id,
        merged_model_ids=merged_ids,
        relinked_listings=relinked,
        redirects_flattened=flattened,
    )


def _lock_models(db: Session, target_model_id: int, merged_ids: list[int]) -> VehicleModel:
    """Row-lock the target and merged models, then validate them against fresh state.

    A concurrent merge that redirected the target commits before the lock is
    granted, so the re-read ``merged_into_id`` keeps every redirect pointing
    at a root.
    """

    if not merged_ids:
        raise ModelMergeError("No models to merge besides the target")
    rows = db.scalars(
        select(VehicleModel)
        .where(VehicleModel.id.in_([target_model_id, *merged_ids]))
        .order_by(VehicleModel.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).all()
    by_id = {row.id: row for row in rows}

    target = by_id.get(target_model_id)
    if target is None:
        raise ModelNotFoundError(f"Target model {target_model_id} not found")
    if target.merged_into_id is not None:
        raise ModelMergeError(
            f"Target model {target_model_id} is already merged into {target.merged_into_id}"
        )
    missing = [model_id for model_id in merged_ids if model_id not in by_id]
    if missing:
        raise ModelNotFoundError(f"Models not found: {missing}")
    return target
