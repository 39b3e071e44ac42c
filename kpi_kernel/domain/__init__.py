"""Pure domain layer: value normalization, DTOs, interval and finance math."""

from kpi_kernel.domain.aggregation import aggregate_job_day
from kpi_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from kpi_kernel.domain.finance import derive_finance
from kpi_kernel.domain.intervals import reconstruct_day
from kpi_kernel.domain.types import (
    DayWindow,
    EmployeeDayRollup,
    FinanceKpis,
    JobDayAggregate,
    JobLabourTotals,
    JobRef,
    OwnerPolicyView,
    TimeEvent,
    TimeEventType,
    Touch,
    TouchGroup,
)
from kpi_kernel.domain.values import normalize_owner_id, parse_day

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "DayWindow",
    "EmployeeDayRollup",
    "FinanceKpis",
    "JobDayAggregate",
    "JobLabourTotals",
    "JobRef",
    "OwnerPolicyView",
    "TimeEvent",
    "TimeEventType",
    "Touch",
    "TouchGroup",
    "aggregate_job_day",
    "derive_finance",
    "reconstruct_day",
    "normalize_owner_id",
    "parse_day",
]
