"""
Module: kpi_kernel.db.errors
Responsibility: Classify SQLAlchemy / DBAPI errors into the kernel taxonomy.
Architecture position: Kernel > DB.  Imports only exceptions and SQLAlchemy.

PostgreSQL errors are classified by SQLSTATE (``pgcode``); SQLite does not
expose SQLSTATE, so its messages are matched instead.

    SQLSTATE  | Meaning                 | Kernel class
    ----------|-------------------------|----------------------
    42P01     | undefined_table         | SchemaAbsenceError
    42703     | undefined_column        | SchemaAbsenceError
    3F000     | invalid_schema_name     | SchemaAbsenceError
    23505     | unique_violation        | (integrity, handled by caller)
    57014     | query_canceled (timeout)| TransientStoreError
    40001     | serialization_failure   | TransientStoreError
    40P01     | deadlock_detected       | TransientStoreError
    08xxx     | connection exceptions   | TransientStoreError
"""

from sqlalchemy.exc import DBAPIError, IntegrityError

_SCHEMA_ABSENT_CODES = frozenset({"42P01", "42703", "3F000"})
_TRANSIENT_CODES = frozenset({"57014", "40001", "40P01", "57P01", "53300"})

_SCHEMA_ABSENT_MARKERS = (
    "no such table",
    "no such column",
    "does not exist",
)
_TRANSIENT_MARKERS = (
    "connection reset",
    "connection refused",
    "server closed the connection",
    "terminating connection",
    "connection terminated",
    "could not connect",
    "timeout",
    "timed out",
    "database is locked",
    "deadlock",
    "ssl syscall error",
)


def _pgcode(exc: DBAPIError) -> str | None:
    orig = getattr(exc, "orig", None)
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def _message(exc: BaseException) -> str:
    return str(getattr(exc, "orig", None) or exc).lower()


def is_schema_absence(exc: BaseException) -> bool:
    """True if the error means a relation or column is missing."""
    if not isinstance(exc, DBAPIError) or isinstance(exc, IntegrityError):
        return False
    code = _pgcode(exc)
    if code is not None:
        return code in _SCHEMA_ABSENT_CODES
    return any(marker in _message(exc) for marker in _SCHEMA_ABSENT_MARKERS)


def is_transient(exc: BaseException) -> bool:
    """True if the error is a connection reset, timeout, or lock contention."""
    if not isinstance(exc, DBAPIError) or isinstance(exc, IntegrityError):
        return False
    if exc.connection_invalidated:
        return True
    code = _pgcode(exc)
    if code is not None:
        return code in _TRANSIENT_CODES or code.startswith("08")
    return any(marker in _message(exc) for marker in _TRANSIENT_MARKERS)


def is_unique_violation(exc: BaseException) -> bool:
    """True if the error is a unique constraint violation."""
    if not isinstance(exc, IntegrityError):
        return False
    code = _pgcode(exc)
    if code is not None:
        return code == "23505"
    return "unique constraint" in _message(exc)
