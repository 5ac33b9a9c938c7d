"""Typed resolution inputs and outputs independent of persistence."""

from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class ListingOptionItem:
    """Equipment option reported by the AI."""

    item: str
    certainty: str | None = None


@dataclass(slots=True)
class ListingRemarkItem:
    """Free-text AI remark about one attribute."""

    item: str
    remark: str


@dataclass(slots=True)
class NormalizedVehicleAttributes:
    """Sanitized attribute bundle derived from one AI output record."""

    site: str
    external_id: str
    brand: str | None = None
    brand_slug: str | None = None
    model_name: str | None = None
    model_name_slug: str | None = None
    detail_model_name: str | None = None
    detail_model_name_slug: str | None = None
    manufacturer_code: str | None = None
    manufacturer_code_slug: str | None = None
    model_slug: str | None = None
    body_type: str | None = None
    power_type: str | None = None
    engine_cc: int | None = None
    power_kw: int | None = None
    horse_power_ps: int | None = None
    output_bucket: int | None = None
    output_decimal: str | None = None
    range_text: str | None = None
    turbo: str | None = None
    facelift: str | None = None
    transmission: str | None = None
    transmission_gears: int | None = None
    mileage_km: int | None = None
    manufacturer_color_name: str | None = None
    generic_color_name: str | None = None
    generic_color_code: str | None = None
    options: list[ListingOptionItem] = field(default_factory=list)
    remarks: list[ListingRemarkItem] = field(default_factory=list)
    raw_json: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class CanonicalModelKey:
    """Dedup identity of a canonical vehicle model."""

    brand_slug: str | None
    model_name_slug: str | None
    manufacturer_code_slug: str | None
    output_bucket: int | None
    power_type: str | None
    body_type: str | None

    @classmethod
    def from_attributes(cls, attributes: NormalizedVehicleAttributes, *, brand_slug: str) -> "CanonicalModelKey":
        return cls(
            brand_slug=brand_slug,
            model_name_slug=attributes.model_name_slug,
            manufacturer_code_slug=attributes.manufacturer_code_slug,
            output_bucket=attributes.output_bucket,
            power_type=attributes.power_type,
            body_type=attributes.body_type,
        )

    def as_string(self) -> str:
        """Encode the tuple as one comparable string; None becomes an empty segment."""

        parts = (
            self.brand_slug,
            self.model_name_slug,
            self.manufacturer_code_slug,
            self.output_bucket,
            self.power_type,
            self.body_type,
        )
        return "|".join("" if part is None else str(part) for part in parts)


@dataclass(slots=True)
class ModelResolution:
    """Outcome of resolving one attribute bundle to a canonical model."""

    model_id: int
    matched_model_id: int
    canonical_key: str
    brand_slug: str
    created: bool
    redirected: bool
