"""
Module: kpi_kernel.db.retry
Responsibility: Bounded retry with exponential backoff for transient store
    failures (connection reset, statement timeout, deadlock).
Architecture position: Kernel > DB.

Retries wrap a whole unit of work, not a single statement: the callable
opens its own session/transaction, so a retry starts from a clean slate.
This is only safe because every write the worker performs is an idempotent
upsert of a pure function of source rows.

Failure modes:
    - TransientStoreError after ``attempts`` failed tries (chained to the
      last underlying error).
    - Non-transient errors propagate immediately, unchanged.
"""

import time
from typing import Callable, TypeVar

from kpi_kernel.db.errors import is_transient
from kpi_kernel.exceptions import TransientStoreError
from kpi_kernel.logging_config import get_logger

logger = get_logger("db.retry")

T = TypeVar("T")

DEFAULT_ATTEMPTS = 3
DEFAULT_BACKOFF_SECONDS = 0.2


def run_with_retry(
    operation: str,
    fn: Callable[[], T],
    attempts: int = DEFAULT_ATTEMPTS,
    backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Run ``fn`` and retry it while it fails with a transient store error.

    Args:
        operation: Name used in logs and in the raised error.
        fn: Zero-argument unit of work.
        attempts: Total tries, including the first (>= 1).
        backoff_seconds: Base delay; attempt n waits base * 2**(n-1).
        sleep: Injected for tests.

    Raises:
        TransientStoreError: All attempts failed transiently.
    """
    attempts = max(1, attempts)
    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except TransientStoreError as exc:
            last: BaseException = exc
        except Exception as exc:
            if not is_transient(exc):
                raise
            last = exc

        if attempt == attempts:
            raise TransientStoreError(operation, attempts, str(last)) from last

        delay = backoff_seconds * (2 ** (attempt - 1))
        logger.warning(
            "transient_store_retry",
            extra={
                "operation": operation,
                "attempt": attempt,
                "max_attempts": attempts,
                "delay_seconds": delay,
                "reason": str(last),
            },
        )
        sleep(delay)

    raise AssertionError("unreachable")  # pragma: no cover
