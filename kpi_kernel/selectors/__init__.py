"""Read-only selectors for the KPI kernel."""

from kpi_kernel.selectors.base import BaseSelector
from kpi_kernel.selectors.reference_selector import ReferenceSelector
from kpi_kernel.selectors.time_entry_selector import TimeEntrySelector

__all__ = ["BaseSelector", "ReferenceSelector", "TimeEntrySelector"]
