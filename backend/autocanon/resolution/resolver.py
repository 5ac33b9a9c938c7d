"""Canonical vehicle model resolution."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from autocanon.db.upsert import insert_ignoring_conflicts
from autocanon.models.vehicle_model import VehicleModel
from autocanon.resolution.types import CanonicalModelKey, ModelResolution, NormalizedVehicleAttributes
from autocanon.services.brands import resolve_or_create_unverified

RESOLVER_VERSION = "models-v1"

logger = logging.getLogger(__name__)


class ModelResolutionError(ValueError):
    """Raised when an attribute bundle can never map to a model (no brand)."""


class ModelResolver:
    """Find or create the canonical model for a normalized attribute bundle.

    Every call reads current rows; nothing is cached between calls so that
    administrator merges are visible to the next resolution immediately.
    """

    def resolve(
        self,
        db: Session,
        attributes: NormalizedVehicleAttributes,
        *,
        fallback_brand: str | None = None,
    ) -> ModelResolution:
        brand_slug = resolve_or_create_unverified(db, attributes.brand)
        if brand_slug is None:
            brand_slug = resolve_or_create_unverified(db, fallback_brand)
        if brand_slug is None:
            raise ModelResolutionError(
                f"No brand for listing site={attributes.site} id={attributes.external_id}"
            )

        canonical_key = CanonicalModelKey.from_attributes(attributes, brand_slug=brand_slug).as_string()
        created = False
        row = self._find_by_key(db, canonical_key)
        if row is None:
            created = insert_ignoring_conflicts(
                db,
                VehicleModel,
                self._insert_values(attributes, brand_slug=brand_slug, canonical_key=canonical_key),
                index_elements=["canonical_key"],
            )
            db.commit()
            row = self._find_by_key(db, canonical_key)
            if row is None:
                raise RuntimeError(f"Vehicle model vanished after insert canonical_key={canonical_key}")
        else:
            # Placeholder brand inserts still need to land.
            db.commit()

        matched_model_id, merged_into_id = row
        model_id = merged_into_id if merged_into_id is not None else matched_model_id
        if created:
            logger.info(
                "models.created model_id=%s canonical_key=%s site=%s external_id=%s",
                model_id,
                canonical_key,
                attributes.site,
                attributes.external_id,
            )
        return ModelResolution(
            model_id=model_id,
            matched_model_id=matched_model_id,
            canonical_key=canonical_key,
            brand_slug=brand_slug,
            created=created,
            redirected=merged_into_id is not None,
        )

    def _find_by_key(self, db: Session, canonical_key: str) -> tuple[int, int | None] | None:
        stmt = select(VehicleModel.id, VehicleModel.merged_into_id).where(
            VehicleModel.canonical_key == canonical_key
        )
        row = db.execute(stmt).first()
        if row is None:
            return None
        return row[0], row[1]

    @staticmethod
    def _insert_values(
        attributes: NormalizedVehicleAttributes,
        *,
        brand_slug: str,
        canonical_key: str,
    ) -> dict[str, Any]:
        return {
            "canonical_key": canonical_key,
            "brand_slug": brand_slug,
            "model_name_slug": attributes.model_name_slug,
            "manufacturer_code_slug": attributes.manufacturer_code_slug,
            "output_bucket": attributes.output_bucket,
            "power_type": attributes.power_type,
            "body_type": attributes.body_type,
            "brand_name": attributes.brand,
            "model_name": attributes.model_name,
            "detail_model_name": attributes.detail_model_name,
            "detail_model_name_slug": attributes.detail_model_name_slug,
            "manufacturer_code": attributes.manufacturer_code,
            "model_slug": attributes.model_slug,
            "output_decimal": attributes.output_decimal,
            "engine_cc": attributes.engine_cc,
            "power_kw": attributes.power_kw,
            "horse_power_ps": attributes.horse_power_ps,
            "range_text": attributes.range_text,
            "turbo": attributes.turbo,
            "facelift": attributes.facelift,
            "transmission": attributes.transmission,
            "transmission_gears": attributes.transmission_gears,
            "manufacturer_color_name": attributes.manufacturer_color_name,
            "generic_color_name": attributes.generic_color_name,
            "generic_color_code": attributes.generic_color_code,
            "raw_json": attributes.raw_json,
            "resolver_version": RESOLVER_VERSION,
        }
