"""Pure attribute normalization for raw AI vehicle output."""

from __future__ import annotations

import math
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from autocanon.resolution.types import ListingOptionItem, ListingRemarkItem, NormalizedVehicleAttributes

_PARENTHETICAL_RE = re.compile(r"\([^)]*\)")
_MULTISPACE_RE = re.compile(r"\s+")
_THOUSANDS_SEPARATOR_RE = re.compile(r"(?<=\d),(?=\d)")
_NUMBER_TOKEN_RE = re.compile(r"[-+]?\d+(?:\.\d+)?")
_NON_SLUG_RE = re.compile(r"[^a-z0-9]+")
_SEGMENT_SEPARATOR_RE = re.compile(r"\s*[/|,;]\s*")

_ELECTRIC_POWER_TYPE = "electric"
_MAX_UNSPACED_CODE_LENGTH = 10

# Upper bounds of what the model columns can hold.
MAX_TEXT_LENGTH = 255
MAX_STORED_INTEGER = 2_147_483_647


def sanitize_text(value: Any) -> str | None:
    """Strip parenthetical annotations, collapse whitespace, and drop empties.

    Results are cut to ``MAX_TEXT_LENGTH`` characters.
    """

    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return str(int(value)) if value.is_integer() else str(value)
    if not isinstance(value, str):
        return None
    cleaned = _MULTISPACE_RE.sub(" ", _PARENTHETICAL_RE.sub(" ", value)).strip()
    return cleaned[:MAX_TEXT_LENGTH].rstrip() or None


def extract_number(value: Any, *, integer: bool = True) -> int | float | None:
    """Return the first numeric token in ``value``.

    ``" 1,980 cc "`` -> 1980, ``"9.56kW"`` -> 9 (or 9.56 with ``integer=False``),
    ``"unknown"`` -> None. Integers beyond ``MAX_STORED_INTEGER`` are None. Never raises.
    """

    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        return _stored_integer(value) if integer else value
    if not isinstance(value, str):
        return None

    text = _PARENTHETICAL_RE.sub(" ", value)
    text = _THOUSANDS_SEPARATOR_RE.sub("", text).strip()
    if not text:
        return None
    match = _NUMBER_TOKEN_RE.search(text)
    if match is None:
        return None
    number = float(match.group(0))
    if not math.isfinite(number):
        return None
    return _stored_integer(number) if integer else number


def _stored_integer(value: int | float) -> int | None:
    truncated = int(value)
    if abs(truncated) > MAX_STORED_INTEGER:
        return None
    return truncated


def round_to_hundred(value: int | float | None) -> int | None:
    """Round to the nearest hundred with halves rounding up (1950 -> 2000)."""

    if value is None or not math.isfinite(value):
        return None
    return int(math.floor(value / 100 + 0.5) * 100)


def compute_output_bucket(
    *,
    power_type: str | None,
    engine_cc: int | None,
    power_kw: int | None,
) -> int | None:
    """Bucket displacement (or power for electric vehicles) to the nearest hundred."""

    if power_type == _ELECTRIC_POWER_TYPE:
        source = power_kw
    else:
        source = engine_cc if engine_cc is not None else power_kw
    bucket = round_to_hundred(source)
    if bucket is None or bucket <= 0:
        return None
    return bucket


def format_output_decimal(bucket: int | None) -> str | None:
    """Express a bucket in thousands with one decimal place (2000 -> "2.0")."""

    if bucket is None:
        return None
    return f"{bucket / 1000:.1f}"


def strip_output_decimal(name: str | None, decimal: str | None) -> str | None:
    """Remove ``"<decimal>t"`` and ``"<decimal>"`` tokens re-embedded in a model name."""

    if name is None:
        return None
    if not decimal:
        return name
    pattern = re.compile(rf"(?<![\d.]){re.escape(decimal)}(?:t(?![a-z]))?(?!\d)", re.IGNORECASE)
    stripped = _MULTISPACE_RE.sub(" ", pattern.sub(" ", name)).strip()
    return stripped or None


def slugify(value: str | None) -> str | None:
    """Lowercase and collapse runs of non-alphanumerics to single hyphens."""

    if not value:
        return None
    slug = _NON_SLUG_RE.sub("-", value.lower()).strip("-")
    return slug or None


def first_segment_lower(value: str | None) -> str | None:
    """Return the first ``, / ; |`` separated segment, lowercased."""

    if not value:
        return None
    collapsed = _MULTISPACE_RE.sub(" ", value).strip()
    if not collapsed:
        return None
    first = _SEGMENT_SEPARATOR_RE.split(collapsed)[0].strip()
    return first.lower() or None


def clean_manufacturer_code(
    code: str | None,
    model_name: str | None,
    detail_model_name: str | None,
) -> str | None:
    """Drop manufacturer codes that are placeholders or just repeat the model name."""

    candidate = first_segment_lower(sanitize_text(code))
    if candidate is None:
        return None
    if "unknown" in candidate:
        return None
    for name in (model_name, detail_model_name):
        if name and name.lower() in candidate:
            return None
    if len(candidate) > _MAX_UNSPACED_CODE_LENGTH and " " in candidate:
        return None
    return candidate


def build_model_slug(
    *,
    model_name_slug: str | None,
    manufacturer_code_slug: str | None,
    power_type: str | None,
    output_bucket: int | None,
    body_type: str | None,
) -> str | None:
    """Public URL slug for a model; None without a model name."""

    if not model_name_slug:
        return None
    parts = [
        model_name_slug,
        manufacturer_code_slug,
        power_type,
        str(output_bucket) if output_bucket is not None else None,
        body_type,
    ]
    return slugify("-".join(part for part in parts if part))


class _RawOption(BaseModel):
    item: str
    certainty: str | None = None

    @field_validator("certainty", mode="before")
    @classmethod
    def _scalar_text(cls, value: Any) -> str | None:
        return sanitize_text(value)


class _RawRemark(BaseModel):
    item: str
    remark: str


_SCALAR_FIELDS = (
    "site",
    "id",
    "brand",
    "manu_model_code",
    "body_type",
    "engine_cc",
    "power_kw",
    "horse_power_ps",
    "facelift",
    "transmission",
    "transmission_type",
    "transmission_gears",
    "range_",
    "power",
    "turbo",
    "mileage_km",
    "model_name",
    "detail_model_name",
    "manu_color_name",
    "gen_color_name",
    "gen_color_code",
)


class _RawVehiclePayload(BaseModel):
    """Lenient view of the AI record; every field is optional and scalar."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    site: str | int | None = None
    id: str | int | None = None
    brand: str | int | float | None = None
    manu_model_code: str | int | float | None = None
    body_type: str | int | float | None = None
    engine_cc: str | int | float | None = None
    power_kw: str | int | float | None = None
    horse_power_ps: str | int | float | None = None
    facelift: str | int | float | None = None
    transmission: str | int | float | None = None
    transmission_type: str | int | float | None = None
    transmission_gears: str | int | float | None = None
    range_: str | int | float | None = Field(default=None, alias="range")
    power: str | int | float | None = None
    turbo: str | int | float | None = None
    mileage_km: str | int | float | None = None
    model_name: str | int | float | None = None
    detail_model_name: str | int | float | None = None
    manu_color_name: str | int | float | None = None
    gen_color_name: str | int | float | None = None
    gen_color_code: str | int | float | None = None
    options: list[_RawOption] = Field(default_factory=list)
    remark: list[_RawRemark] = Field(default_factory=list)

    @field_validator(*_SCALAR_FIELDS, mode="before")
    @classmethod
    def _drop_non_scalars(cls, value: Any) -> Any:
        if isinstance(value, bool) or not isinstance(value, (str, int, float)):
            return None
        return value

    @field_validator("options", mode="before")
    @classmethod
    def _keep_named_options(cls, value: Any) -> list[dict[str, Any]]:
        if not isinstance(value, list):
            return []
        return [
            {"item": item, "certainty": entry.get("certainty")}
            for entry in value
            if isinstance(entry, dict) and (item := sanitize_text(entry.get("item")))
        ]

    @field_validator("remark", mode="before")
    @classmethod
    def _keep_complete_remarks(cls, value: Any) -> list[dict[str, str]]:
        if not isinstance(value, list):
            return []
        remarks: list[dict[str, str]] = []
        for entry in value:
            if not isinstance(entry, dict):
                continue
            item = sanitize_text(entry.get("item"))
            remark = entry.get("remark").strip() if isinstance(entry.get("remark"), str) else None
            if item and remark:
                remarks.append({"item": item, "remark": remark})
        return remarks


def _identity_text(value: str | int | None) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def normalize_vehicle_payload(payload: Any) -> NormalizedVehicleAttributes | None:
    """Turn one raw AI output record into a normalized attribute bundle.

    Returns None when the payload is not an object or lacks its listing
    identity (``site`` and ``id``).
    """

    if not isinstance(payload, dict):
        return None
    try:
        raw = _RawVehiclePayload.model_validate(payload)
    except ValidationError:
        return None

    site = _identity_text(raw.site)
    external_id = _identity_text(raw.id)
    if not site or not external_id:
        return None

    brand = sanitize_text(raw.brand)
    power_type = first_segment_lower(sanitize_text(raw.power))
    body_type = first_segment_lower(sanitize_text(raw.body_type))
    engine_cc = extract_number(raw.engine_cc)
    power_kw = extract_number(raw.power_kw)
    output_bucket = compute_output_bucket(power_type=power_type, engine_cc=engine_cc, power_kw=power_kw)
    output_decimal = format_output_decimal(output_bucket)

    detail_model_name = strip_output_decimal(sanitize_text(raw.detail_model_name), output_decimal)
    model_name = strip_output_decimal(sanitize_text(raw.model_name), output_decimal) or detail_model_name
    model_name_slug = slugify(model_name)

    manufacturer_code = clean_manufacturer_code(
        sanitize_text(raw.manu_model_code),
        model_name,
        detail_model_name,
    )
    manufacturer_code_slug = slugify(manufacturer_code)

    return NormalizedVehicleAttributes(
        site=site,
        external_id=external_id,
        brand=brand,
        brand_slug=slugify(brand),
        model_name=model_name,
        model_name_slug=model_name_slug,
        detail_model_name=detail_model_name,
        detail_model_name_slug=slugify(detail_model_name),
        manufacturer_code=manufacturer_code,
        manufacturer_code_slug=manufacturer_code_slug,
        model_slug=build_model_slug(
            model_name_slug=model_name_slug,
            manufacturer_code_slug=manufacturer_code_slug,
            power_type=power_type,
            output_bucket=output_bucket,
            body_type=body_type,
        ),
        body_type=body_type,
        power_type=power_type,
        engine_cc=engine_cc,
        power_kw=power_kw,
        horse_power_ps=extract_number(raw.horse_power_ps),
        output_bucket=output_bucket,
        output_decimal=output_decimal,
        range_text=sanitize_text(raw.range_),
        turbo=sanitize_text(raw.turbo),
        facelift=sanitize_text(raw.facelift),
        transmission=sanitize_text(raw.transmission) or sanitize_text(raw.transmission_type),
        transmission_gears=extract_number(raw.transmission_gears),
        mileage_km=extract_number(raw.mileage_km),
        manufacturer_color_name=sanitize_text(raw.manu_color_name),
        generic_color_name=sanitize_text(raw.gen_color_name),
        generic_color_code=sanitize_text(raw.gen_color_code),
        options=[ListingOptionItem(item=option.item, certainty=option.certainty) for option in raw.options],
        remarks=[ListingRemarkItem(item=entry.item, remark=entry.remark) for entry in raw.remark],
        raw_json=dict(payload),
    )
