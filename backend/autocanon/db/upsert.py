"""Dialect-aware INSERT ... ON CONFLICT DO NOTHING."""

from typing import Any

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session


def insert_ignoring_conflicts(
    db: Session,
    model: type[Any],
    values: dict[str, Any],
    *,
    index_elements: list[str] | None = None,
) -> bool:
    """Insert one row unless it collides with a unique constraint.

    Returns True when a row was written and False when a concurrent or earlier
    writer already owns the conflicting key. The caller commits.
    """

    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        stmt = pg_insert(model).values(**values)
    elif dialect == "sqlite":
        stmt = sqlite_insert(model).values(**values)
    else:
        raise NotImplementedError(f"ON CONFLICT insert is not supported for dialect {dialect!r}")

    stmt = stmt.on_conflict_do_nothing(index_elements=index_elements)
    result = db.execute(stmt)
    return bool(result.rowcount and result.rowcount > 0)
