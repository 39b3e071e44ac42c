"""
Value normalization for owner ids, days, job names and employee names.

Every service normalizes its inputs through these functions so that the
same tenant, day, or employee is keyed identically no matter which
collaborator produced the row.
"""

import re
from datetime import date, datetime, timezone

from kpi_kernel.exceptions import InvalidDayError, InvalidOwnerIdError

_NON_DIGITS = re.compile(r"\D+")
_WHITESPACE = re.compile(r"\s+")


def normalize_owner_id(owner_id: object) -> str:
    """
    Reduce an owner id (typically a phone number) to its digits.

    Raises:
        InvalidOwnerIdError: Nothing but non-digits (or nothing at all).
    """
    if owner_id is None or isinstance(owner_id, bool):
        raise InvalidOwnerIdError(owner_id)
    digits = _NON_DIGITS.sub("", str(owner_id))
    if not digits:
        raise InvalidOwnerIdError(owner_id)
    return digits


def parse_day(day: object) -> date:
    """
    Coerce a ``date``, ``datetime`` or ``YYYY-MM-DD`` string to a ``date``.

    Raises:
        InvalidDayError: The value is not a calendar date.
    """
    if isinstance(day, datetime):
        return day.date()
    if isinstance(day, date):
        return day
    if isinstance(day, str):
        try:
            return date.fromisoformat(day.strip()[:10])
        except ValueError:
            raise InvalidDayError(day) from None
    raise InvalidDayError(day)


def normalize_job_name(name: str | None) -> str:
    """Trim and collapse internal whitespace; '' for blank input."""
    if name is None:
        return ""
    return _WHITESPACE.sub(" ", str(name)).strip()


def name_key(name: str | None) -> str:
    """Case-insensitive lookup key for a job name."""
    return normalize_job_name(name).casefold()


def normalize_employee(name: str | None) -> str:
    """Trimmed, case-folded employee name; '' for blank input."""
    return normalize_job_name(name).casefold()


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` in UTC; naive values are taken to already be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
