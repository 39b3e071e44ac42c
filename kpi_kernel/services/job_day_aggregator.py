"""
JobDayAggregator -- per-job labour totals for an (owner, day).

Loads hourly rates, applies the owner's OT threshold, and delegates the
arithmetic to ``kpi_kernel.domain.aggregation``.  Unattributed time is
reported in the logs; it never reaches a KPI row.
"""

from datetime import date

from kpi_kernel.domain.aggregation import aggregate_job_day
from kpi_kernel.domain.types import EmployeeDayRollup, JobDayAggregate, OwnerPolicyView
from kpi_kernel.logging_config import get_logger
from kpi_kernel.selectors.reference_selector import ReferenceSelector
from kpi_kernel.services.base import BaseService
from kpi_kernel.services.timesheet_rollup_store import TimesheetRollupStore

logger = get_logger("services.job_day_aggregator")


class JobDayAggregator(BaseService):
    def aggregate(
        self,
        owner_id: str,
        day: date,
        rollups: tuple[EmployeeDayRollup, ...] | None = None,
        policy: OwnerPolicyView | None = None,
    ) -> JobDayAggregate:
        """
        Sum the day's rollups into per-job totals.

        Args:
            owner_id: Normalized owner id.
            day: Local day.
            rollups: Freshly reconstructed rollups; read from the store when
                omitted.
            policy: Owner policy; read when omitted.
        """
        selector = ReferenceSelector(self.session)
        if rollups is None:
            rollups = tuple(TimesheetRollupStore(self.session).rows_for_day(owner_id, day))
        if policy is None:
            policy = selector.owner_policy(owner_id)

        result = aggregate_job_day(
            rollups,
            selector.hourly_rates(owner_id),
            policy.daily_ot_minutes,
        )

        if result.unattributed_minutes:
            logger.warning(
                "unattributed_time",
                extra={
                    "owner_id": owner_id,
                    "day": day,
                    "unattributed_minutes": result.unattributed_minutes,
                    "employees": list(result.unattributed_employees),
                },
            )
        logger.debug(
            "job_day_aggregated",
            extra={"owner_id": owner_id, "day": day, "jobs": len(result.jobs)},
        )
        return result
