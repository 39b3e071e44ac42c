"""Kernel services: the imperative shell around the pure domain."""

from kpi_kernel.services.finance_enricher import FinanceEnricher
from kpi_kernel.services.interval_reconstructor import IntervalReconstructor
from kpi_kernel.services.job_allocator import JobAllocator
from kpi_kernel.services.job_day_aggregator import JobDayAggregator
from kpi_kernel.services.job_kpi_store import JobKpiStore
from kpi_kernel.services.ledger_sources import LedgerSource, build_ledger_sources
from kpi_kernel.services.timesheet_rollup_store import TimesheetRollupStore
from kpi_kernel.services.touch_queue import TouchQueue, group_touches

__all__ = [
    "FinanceEnricher",
    "IntervalReconstructor",
    "JobAllocator",
    "JobDayAggregator",
    "JobKpiStore",
    "LedgerSource",
    "TimesheetRollupStore",
    "TouchQueue",
    "build_ledger_sources",
    "group_touches",
]
