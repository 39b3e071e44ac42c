"""
Module: kpi_kernel.db.upsert
Responsibility: Dialect-aware ``INSERT ... ON CONFLICT`` construction.

PostgreSQL and SQLite both implement ``ON CONFLICT (cols) DO UPDATE`` and
SQLAlchemy exposes the same ``on_conflict_do_update`` / ``excluded`` API for
both, so the stores build their statements once and pick the dialect's
``insert`` at execution time.
"""

from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def dialect_insert(session: Session, table: Any):
    """
    Return a dialect-specific ``insert(table)`` supporting ON CONFLICT.

    Raises:
        NotImplementedError: For dialects without ON CONFLICT support.
    """
    name = session.get_bind().dialect.name
    try:
        factory = _INSERTS[name]
    except KeyError:
        raise NotImplementedError(
            f"Upsert is not supported on dialect '{name}'"
        ) from None
    return factory(table)
