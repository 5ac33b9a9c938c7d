"""Brand directory lookups."""

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from autocanon.db.upsert import insert_ignoring_conflicts
from autocanon.models.brand import Brand
from autocanon.resolution.normalizer import sanitize_text, slugify

logger = logging.getLogger(__name__)


def get_brand_by_slug(db: Session, slug: str) -> Brand | None:
    return db.scalar(select(Brand).where(Brand.slug == slug))


def resolve_or_create_unverified(db: Session, brand_name: str | None) -> str | None:
    """Return the slug for ``brand_name``, creating an unverified placeholder brand when unknown.

    The placeholder insert is flushed, not committed; the caller owns the transaction.
    """

    name = sanitize_text(brand_name)
    slug = slugify(name)
    if slug is None:
        return None
    existing = db.scalar(select(Brand.id).where(Brand.slug == slug))
    if existing is not None:
        return slug

    created = insert_ignoring_conflicts(
        db,
        Brand,
        {"slug": slug, "name": name or slug, "verified": False},
        index_elements=["slug"],
    )
    if created:
        logger.info("brands.placeholder_created slug=%s name=%s", slug, name)
    return slug
