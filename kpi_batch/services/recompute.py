"""
OwnerDayRecomputer -- recompute every KPI row of one (owner, day).

Contract:
    Given a TouchGroup, rebuild the day's timesheet rollups from raw
    punches, aggregate them per job, enrich the affected jobs with finance
    metrics, and merge everything into job_kpis_daily.  Runs inside the
    caller's transaction; the worker commits or rolls back.

Invariants enforced:
    - Deterministic and idempotent: the result is a pure function of the
      source rows, so a rerun (or a retry after a transient failure)
      converges to the same rows.
    - Time fields are written for every job with time that day, and zeroed
      for jobs whose stored row no longer has any.
    - Touched job ids are resolved to job numbers through the jobs table.
    - Finance fields are written for the touched jobs plus the jobs with
      time that day; if that set is empty, for the jobs already holding a
      KPI row.  Finance writes never touch time fields.
"""

from __future__ import annotations

from typing import Mapping, Sequence

from sqlalchemy.orm import Session

from kpi_batch.domain.types import RecomputeSummary
from kpi_kernel.domain.clock import Clock, SystemClock
from kpi_kernel.domain.types import DayWindow, TouchGroup
from kpi_kernel.domain.values import normalize_owner_id, parse_day
from kpi_kernel.logging_config import LogContext, get_logger
from kpi_kernel.models.job_kpi_daily import TIME_FIELDS
from kpi_kernel.selectors.reference_selector import ReferenceSelector
from kpi_kernel.services.finance_enricher import FinanceEnricher
from kpi_kernel.services.interval_reconstructor import IntervalReconstructor
from kpi_kernel.services.job_allocator import JobAllocator
from kpi_kernel.services.job_day_aggregator import JobDayAggregator
from kpi_kernel.services.job_kpi_store import JobKpiStore
from kpi_kernel.services.timesheet_rollup_store import TimesheetRollupStore

logger = get_logger("batch.recompute")

_ZERO_TIME_FIELDS = {name: 0 for name in TIME_FIELDS}


def _ordered_union(*groups) -> tuple[int, ...]:
    seen: dict[int, None] = {}
    for group in groups:
        for item in group:
            seen.setdefault(item, None)
    return tuple(seen)


class OwnerDayRecomputer:
    """Recompute pipeline for one (owner, day) group."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        finance_enabled: bool = True,
        ledger_relations: Mapping[str, Sequence[str]] | None = None,
        ledger_schema: str | None = None,
    ) -> None:
        self._session = session
        self._clock = clock or SystemClock()
        self._finance_enabled = finance_enabled
        self._ledger_relations = ledger_relations
        self._ledger_schema = ledger_schema

    def recompute(self, group: TouchGroup) -> RecomputeSummary:
        """
        Raises:
            FatalInputError: Malformed owner id, day, or owner timezone.
            TransientStoreError / DBAPIError: Store failures (retryable or not).
        """
        session, clock = self._session, self._clock
        owner_id = normalize_owner_id(group.owner_id)
        day = parse_day(group.day)

        policy = ReferenceSelector(session).owner_policy(owner_id)
        window = DayWindow.for_day(day, policy.timezone)

        # Time: punches -> rollups -> per-job totals
        rollups = IntervalReconstructor(session, clock).reconstruct(owner_id, window)
        written = TimesheetRollupStore(session, clock).replace_day(owner_id, day, rollups)
        aggregate = JobDayAggregator(session, clock).aggregate(
            owner_id, day, rollups=rollups, policy=policy
        )

        kpis = JobKpiStore(session, clock)
        existing = kpis.job_numbers_for_day(owner_id, day)
        for totals in aggregate.jobs:
            kpis.merge(owner_id, day, totals.job_no, totals.as_fields())
        for job_no in existing:
            if aggregate.for_job(job_no) is None:
                kpis.merge(owner_id, day, job_no, _ZERO_TIME_FIELDS)

        touched = _ordered_union(group.job_nos, self._resolve_job_ids(owner_id, group))
        self._warn_unknown_jobs(owner_id, _ordered_union(touched, aggregate.job_numbers))

        # Finance
        finance_jobs: tuple[int, ...] = ()
        if self._finance_enabled:
            finance_jobs = _ordered_union(touched, aggregate.job_numbers)
            if not finance_jobs:
                finance_jobs = tuple(existing)
            enricher = FinanceEnricher(
                session,
                relations=self._ledger_relations,
                schema=self._ledger_schema,
                clock=clock,
            )
            for job_no in finance_jobs:
                with LogContext.bind(job_no=job_no):
                    finance = enricher.enrich(owner_id, job_no, window)
                    kpis.merge(owner_id, day, job_no, finance.as_fields())

        summary = RecomputeSummary(
            rollups_written=written,
            kpi_jobs=_ordered_union(aggregate.job_numbers, existing, finance_jobs),
            finance_jobs=finance_jobs,
            unattributed_minutes=aggregate.unattributed_minutes,
        )
        logger.info(
            "owner_day_recomputed",
            extra={
                "owner_id": owner_id,
                "day": day,
                "timezone": window.tz_name,
                "rollups": written,
                "kpi_jobs": list(summary.kpi_jobs),
                "finance_jobs": list(finance_jobs),
            },
        )
        return summary

    def _resolve_job_ids(self, owner_id: str, group: TouchGroup) -> tuple[int, ...]:
        if not group.job_ids:
            return ()
        resolved = JobAllocator(self._session, self._clock).job_numbers_for_ids(
            owner_id, list(group.job_ids)
        )
        missing = [job_id for job_id in group.job_ids if job_id not in resolved]
        if missing:
            logger.warning(
                "unknown_job_ids",
                extra={"owner_id": owner_id, "job_ids": missing},
            )
        return tuple(resolved[job_id] for job_id in group.job_ids if job_id in resolved)

    def _warn_unknown_jobs(self, owner_id: str, job_nos: tuple[int, ...]) -> None:
        known = JobAllocator(self._session, self._clock).known_job_numbers(
            owner_id, list(job_nos)
        )
        unknown = [job_no for job_no in job_nos if job_no not in known]
        if unknown:
            logger.warning(
                "unknown_job_numbers",
                extra={"owner_id": owner_id, "job_nos": unknown},
            )
