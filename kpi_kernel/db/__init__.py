"""Database layer - engine, base classes, column types, upsert and retry helpers."""

from kpi_kernel.db.base import UUID, Base, TimestampedBase, UUIDString
from kpi_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)
from kpi_kernel.db.retry import run_with_retry
from kpi_kernel.db.types import JobNo, Minutes, Money, OwnerId, Rate

__all__ = [
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "run_with_retry",
    "Base",
    "TimestampedBase",
    "UUIDString",
    "UUID",
    "Money",
    "Rate",
    "Minutes",
    "JobNo",
    "OwnerId",
]
