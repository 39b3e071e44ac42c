"""ORM models for the KPI kernel."""

from kpi_kernel.models.employee_rate import EmployeeRate
from kpi_kernel.models.job import Job
from kpi_kernel.models.job_kpi_daily import (
    FINANCE_FIELDS,
    KPI_FIELDS,
    TIME_FIELDS,
    JobKpiDaily,
)
from kpi_kernel.models.owner_policy import OwnerPolicy
from kpi_kernel.models.time_entry import TimeEntry
from kpi_kernel.models.timesheet_rollup import TimesheetRollup
from kpi_kernel.models.touch import KpiTouch

__all__ = [
    "KpiTouch",
    "Job",
    "TimeEntry",
    "EmployeeRate",
    "OwnerPolicy",
    "TimesheetRollup",
    "JobKpiDaily",
    "TIME_FIELDS",
    "FINANCE_FIELDS",
    "KPI_FIELDS",
]
