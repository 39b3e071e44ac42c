"""
Job/day labour aggregation -- pure functions over employee rollups.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - labour_cost is summed from per-employee costs each rounded to cents,
      so the total matches what payroll export shows line by line.
    - A missing hourly rate contributes 0, never an error.
    - Rollups with no job are excluded from job totals and reported as
      unattributed minutes.
"""

from collections import defaultdict
from decimal import Decimal
from typing import Iterable, Mapping

from kpi_kernel.db.types import round_money
from kpi_kernel.domain.types import (
    EmployeeDayRollup,
    JobDayAggregate,
    JobLabourTotals,
)
from kpi_kernel.domain.values import normalize_employee

_SIXTY = Decimal(60)
_ZERO = Decimal("0")


def labour_cost(paid_minutes: int, hourly_rate: Decimal | None) -> Decimal:
    """Cost of ``paid_minutes`` at ``hourly_rate``, rounded to cents."""
    if hourly_rate is None or paid_minutes <= 0:
        return round_money(_ZERO)
    return round_money(Decimal(paid_minutes) / _SIXTY * Decimal(hourly_rate))


def ot_minutes(paid_minutes: int, daily_threshold: int | None) -> int:
    """Minutes over the daily OT threshold; 0 when no threshold is set."""
    if not daily_threshold or daily_threshold <= 0:
        return 0
    return max(0, paid_minutes - daily_threshold)


def aggregate_job_day(
    rollups: Iterable[EmployeeDayRollup],
    rates: Mapping[str, Decimal],
    daily_ot_minutes: int | None = None,
) -> JobDayAggregate:
    """
    Sum employee rollups into per-job labour totals.

    Args:
        rollups: The day's employee rollups.
        rates: Hourly rate keyed by normalized employee name.
        daily_ot_minutes: Owner-level OT threshold applied to the job's
            paid minutes; None or 0 disables OT.

    Returns:
        JobDayAggregate with jobs ordered by job number.
    """
    paid: dict[int, int] = defaultdict(int)
    drive: dict[int, int] = defaultdict(int)
    cost: dict[int, Decimal] = defaultdict(lambda: round_money(_ZERO))
    employees: dict[int, set[str]] = defaultdict(set)
    unattributed_minutes = 0
    unattributed: list[str] = []

    for rollup in rollups:
        if rollup.job_no is None:
            unattributed_minutes += rollup.paid_minutes
            unattributed.append(rollup.employee_name)
            continue
        job_no = rollup.job_no
        paid[job_no] += rollup.paid_minutes
        drive[job_no] += rollup.drive_minutes
        rate = rates.get(normalize_employee(rollup.employee_name))
        cost[job_no] += labour_cost(rollup.paid_minutes, rate)
        employees[job_no].add(rollup.employee_name)

    jobs = tuple(
        JobLabourTotals(
            job_no=job_no,
            paid_minutes=paid[job_no],
            drive_minutes=drive[job_no],
            labour_cost=cost[job_no],
            ot_minutes=ot_minutes(paid[job_no], daily_ot_minutes),
            employee_count=len(employees[job_no]),
        )
        for job_no in sorted(paid)
    )
    return JobDayAggregate(
        jobs=jobs,
        unattributed_minutes=unattributed_minutes,
        unattributed_employees=tuple(sorted(set(unattributed))),
    )
