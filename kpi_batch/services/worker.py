"""
KpiRefreshWorker -- one-shot batch worker for KPI recomputes.

Contract:
    ``run_once()`` claims up to ``batch_limit`` touches in its own committed
    transaction, coalesces them by (owner, day), and recomputes each group
    in its own session and transaction.  Intended to be run by a scheduler
    (cron) every few minutes.

Invariants enforced:
    - Failure isolation per group: one tenant's bad data or a failed
      transaction never blocks another group.
    - Transient store errors are retried per group with bounded
      exponential backoff; the whole unit of work is replayed.
    - Claimed touches are never re-enqueued.  A failed group stays stale
      until a later write touches it again.
    - Bounded fan-out: at most ``max_workers`` groups run concurrently, each
      on its own session.
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable
from uuid import uuid4

from sqlalchemy.orm import Session

from kpi_batch.domain.types import (
    GroupResult,
    GroupStatus,
    RecomputeRunResult,
    RunStatus,
)
from kpi_batch.services.recompute import OwnerDayRecomputer
from kpi_config.schema import LedgerCandidates, WorkerSettings
from kpi_kernel.db.retry import run_with_retry
from kpi_kernel.domain.clock import Clock, SystemClock
from kpi_kernel.domain.types import TouchGroup
from kpi_kernel.exceptions import KpiKernelError
from kpi_kernel.logging_config import LogContext, get_logger
from kpi_kernel.services.touch_queue import TouchQueue, group_touches

logger = get_logger("batch.worker")


class KpiRefreshWorker:
    """
    Claims touches and recomputes (owner, day) groups.

    Non-goals:
        - Does NOT loop or sleep between batches; the scheduler invokes it.
        - Does NOT re-enqueue failed groups.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        settings: WorkerSettings | None = None,
        ledger: LedgerCandidates | None = None,
        clock: Clock | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._session_factory = session_factory
        self._settings = settings or WorkerSettings()
        self._ledger = ledger or LedgerCandidates()
        self._clock = clock or SystemClock()
        self._sleep = sleep

    # -------------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------------

    def run_once(self, limit: int | None = None) -> RecomputeRunResult:
        """Claim one batch of touches and process every group in it."""
        run_id = str(uuid4())
        limit = self._settings.batch_limit if limit is None else limit
        started_at = self._clock.now_utc()
        start = time.monotonic()

        with LogContext.bind(run_id=run_id):
            touches = self._retry("claim_batch", lambda: self._claim(limit))
            groups = group_touches(touches)
            logger.info(
                "kpi_batch_claimed",
                extra={
                    "claimed": len(touches),
                    "groups": len(groups),
                    "max_workers": self._settings.max_workers,
                },
            )

            if self._settings.max_workers > 1 and len(groups) > 1:
                with ThreadPoolExecutor(
                    max_workers=min(self._settings.max_workers, len(groups)),
                    thread_name_prefix="kpi-refresh",
                ) as pool:
                    futures = [
                        pool.submit(self._process_in_context, run_id, g) for g in groups
                    ]
                    results = tuple(f.result() for f in futures)
            else:
                results = tuple(self.process_group(g) for g in groups)

            applied = sum(1 for r in results if r.status == GroupStatus.APPLIED)
            failed = len(results) - applied
            if not results:
                status = RunStatus.IDLE
            elif failed == 0:
                status = RunStatus.COMPLETED
            elif applied == 0:
                status = RunStatus.FAILED
            else:
                status = RunStatus.PARTIALLY_COMPLETED

            run_result = RecomputeRunResult(
                run_id=run_id,
                status=status,
                claimed=len(touches),
                groups=len(groups),
                applied=applied,
                failed=failed,
                group_results=results,
                started_at=started_at,
                completed_at=self._clock.now_utc(),
                duration_ms=int((time.monotonic() - start) * 1000),
            )
            logger.info(
                "kpi_batch_completed",
                extra={
                    "status": status.value,
                    "applied": applied,
                    "failed": failed,
                    "duration_ms": run_result.duration_ms,
                },
            )
            return run_result

    def process_group(self, group: TouchGroup) -> GroupResult:
        """Recompute one group in its own transaction; never raises."""
        start = time.monotonic()
        with LogContext.bind(owner_id=group.owner_id, day=group.day.isoformat()):
            try:
                summary = self._retry(
                    "recompute_owner_day", lambda: self._recompute(group)
                )
            except KpiKernelError as exc:
                return self._failed(group, exc.code, exc, start)
            except Exception as exc:
                return self._failed(group, "UNHANDLED_EXCEPTION", exc, start)

            return GroupResult(
                owner_id=group.owner_id,
                day=group.day,
                status=GroupStatus.APPLIED,
                job_nos=group.job_nos,
                touch_count=group.touch_count,
                summary=summary,
                duration_ms=int((time.monotonic() - start) * 1000),
            )

    # -------------------------------------------------------------------------
    # Units of work
    # -------------------------------------------------------------------------

    def _claim(self, limit: int):
        session = self._session_factory()
        try:
            touches = TouchQueue(session, self._clock).claim_batch(limit)
            session.commit()
            return touches
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _recompute(self, group: TouchGroup):
        session = self._session_factory()
        try:
            summary = OwnerDayRecomputer(
                session,
                clock=self._clock,
                finance_enabled=self._settings.finance_enabled,
                ledger_relations=self._ledger.as_mapping(),
                ledger_schema=self._ledger.schema,
            ).recompute(group)
            session.commit()
            return summary
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _retry(self, operation: str, fn):
        return run_with_retry(
            operation,
            fn,
            attempts=self._settings.retry_attempts,
            backoff_seconds=self._settings.retry_backoff_seconds,
            sleep=self._sleep,
        )

    def _process_in_context(self, run_id: str, group: TouchGroup) -> GroupResult:
        # Pool threads do not inherit the caller's context variables
        with LogContext.bind(run_id=run_id):
            return self.process_group(group)

    def _failed(
        self,
        group: TouchGroup,
        code: str,
        exc: BaseException,
        start: float,
    ) -> GroupResult:
        logger.error(
            "owner_day_failed",
            extra={
                "owner_id": group.owner_id,
                "day": group.day,
                "error_code": code,
                "touch_count": group.touch_count,
            },
            exc_info=exc,
        )
        return GroupResult(
            owner_id=group.owner_id,
            day=group.day,
            status=GroupStatus.FAILED,
            job_nos=group.job_nos,
            touch_count=group.touch_count,
            error_code=code,
            error_message=str(exc),
            duration_ms=int((time.monotonic() - start) * 1000),
        )
