"""
Typed Exception Hierarchy for the KPI Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

The recompute worker decides what to do with a failure by its TYPE, never by
parsing a message: a dropped connection is retried, a missing ledger relation
degrades one metric to null, a malformed owner id fails only its own
(owner, day) group.  Every exception therefore carries:
  1. A typed class (catch by type, not message)
  2. A ``code`` class attribute (machine-readable, log-safe)
  3. Structured attributes (owner_id, relation, attempts, ...)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    KpiKernelError (base)
    |
    +-- StoreError
    |   +-- TransientStoreError
    |   +-- SchemaAbsenceError
    |   +-- EngineNotInitializedError
    |
    +-- AllocationError
    |   +-- AllocationConflictError
    |
    +-- FatalInputError
    |   +-- InvalidOwnerIdError
    |   +-- InvalidDayError
    |   +-- InvalidTimeEventError
    |   +-- InvalidTimezoneError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                     | When Raised
-------------|--------------------------|----------------------------------------
Store        | TRANSIENT_STORE_ERROR    | Connection reset/timeout after retries
             | SCHEMA_ABSENT            | Optional relation/column missing
             | ENGINE_NOT_INITIALIZED   | get_session() before init_engine_from_url
-------------|--------------------------|----------------------------------------
Allocation   | ALLOCATION_CONFLICT      | Unique violation and no winner row found
-------------|--------------------------|----------------------------------------
Input        | INVALID_OWNER_ID         | Owner id has no usable digits
             | INVALID_DAY              | Day is not a calendar date
             | INVALID_TIME_EVENT       | Unknown time event type
             | INVALID_TIMEZONE         | Owner policy names an unknown timezone
-------------|--------------------------|----------------------------------------
Config       | CONFIGURATION_ERROR      | Bad YAML value or environment override

===============================================================================
HANDLING PATTERNS
===============================================================================

1. SCHEMA ABSENCE IS NOT A FAILURE:

    try:
        value = source.sum(session, owner_id, job_no, window)
    except SchemaAbsenceError:
        continue  # try the next candidate relation

2. TRANSIENT ERRORS ARE RETRIED AT THE UNIT-OF-WORK LEVEL:

    run_with_retry(lambda: recompute(group), attempts=3)

3. FATAL INPUT ONLY FAILS ITS OWN GROUP:

    except FatalInputError as e:
        log.error("group_failed", extra={"code": e.code})
        # continue with the next (owner, day) group

===============================================================================
"""


class KpiKernelError(Exception):
    """
    Base exception for all KPI kernel errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "KPI_KERNEL_ERROR"


# Store-related exceptions


class StoreError(KpiKernelError):
    """Base exception for relational store errors."""

    code: str = "STORE_ERROR"


class TransientStoreError(StoreError):
    """Connection reset, timeout, or other retryable store failure."""

    code: str = "TRANSIENT_STORE_ERROR"

    def __init__(self, operation: str, attempts: int, reason: str):
        self.operation = operation
        self.attempts = attempts
        self.reason = reason
        super().__init__(
            f"Transient store failure in {operation} after {attempts} "
            f"attempt(s): {reason}"
        )


class SchemaAbsenceError(StoreError):
    """
    An optional relation or column does not exist in this deployment.

    Never surfaced to callers of the finance enricher: the affected metric
    becomes ``None`` and computation proceeds.
    """

    code: str = "SCHEMA_ABSENT"

    def __init__(self, relation: str, reason: str):
        self.relation = relation
        self.reason = reason
        super().__init__(f"Relation {relation} unavailable: {reason}")


class EngineNotInitializedError(StoreError):
    """Session requested before the engine was initialized."""

    code: str = "ENGINE_NOT_INITIALIZED"

    def __init__(self) -> None:
        super().__init__(
            "Engine not initialized. Call init_engine_from_url() first."
        )


# Allocation exceptions


class AllocationError(KpiKernelError):
    """Base exception for job number allocation errors."""

    code: str = "ALLOCATION_ERROR"


class AllocationConflictError(AllocationError):
    """
    Concurrent job creation hit a uniqueness violation and the winning row
    could not be re-selected.

    The allocator resolves ordinary conflicts by returning the winner; this
    is only raised when the violation was on something other than the name.
    """

    code: str = "ALLOCATION_CONFLICT"

    def __init__(self, owner_id: str, name: str):
        self.owner_id = owner_id
        self.name = name
        super().__init__(
            f"Could not allocate or resolve job '{name}' for owner {owner_id}"
        )


# Input exceptions


class FatalInputError(KpiKernelError):
    """Malformed input that aborts a single (owner, day) group."""

    code: str = "FATAL_INPUT_ERROR"


class InvalidOwnerIdError(FatalInputError):
    """Owner id is empty or has no digits after normalization."""

    code: str = "INVALID_OWNER_ID"

    def __init__(self, owner_id: object):
        self.owner_id = repr(owner_id)
        super().__init__(f"Invalid owner id: {owner_id!r}")


class InvalidDayError(FatalInputError):
    """Day is not a parseable calendar date."""

    code: str = "INVALID_DAY"

    def __init__(self, day: object):
        self.day = repr(day)
        super().__init__(f"Invalid day: {day!r}")


class InvalidTimeEventError(FatalInputError):
    """Time event carries an unknown type."""

    code: str = "INVALID_TIME_EVENT"

    def __init__(self, event_type: str):
        self.event_type = event_type
        super().__init__(f"Unknown time event type: {event_type!r}")


class InvalidTimezoneError(FatalInputError):
    """Owner policy names a timezone the tz database does not know."""

    code: str = "INVALID_TIMEZONE"

    def __init__(self, tz_name: str):
        self.tz_name = tz_name
        super().__init__(f"Unknown timezone: {tz_name!r}")


# Configuration


class ConfigurationError(KpiKernelError):
    """Invalid configuration file or environment override."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, key: str, value: object, reason: str):
        self.key = key
        self.value = repr(value)
        self.reason = reason
        super().__init__(f"Invalid configuration {key}={value!r}: {reason}")
