"""
IntervalReconstructor -- load an owner's punches and rebuild the day.

Thin shell around ``kpi_kernel.domain.intervals``: the selector fetches
events for the widened window, the pure core pairs and clips them.
"""

from kpi_kernel.domain.intervals import reconstruct_day
from kpi_kernel.domain.types import DayWindow, EmployeeDayRollup
from kpi_kernel.logging_config import get_logger
from kpi_kernel.selectors.time_entry_selector import TimeEntrySelector
from kpi_kernel.services.base import BaseService

logger = get_logger("services.interval_reconstructor")


class IntervalReconstructor(BaseService):
    def reconstruct(
        self, owner_id: str, window: DayWindow
    ) -> tuple[EmployeeDayRollup, ...]:
        events = TimeEntrySelector(self.session).events_for_window(owner_id, window)
        rollups = reconstruct_day(events, window)
        logger.debug(
            "day_reconstructed",
            extra={
                "owner_id": owner_id,
                "day": window.day,
                "timezone": window.tz_name,
                "events": len(events),
                "employees": len(rollups),
            },
        )
        return rollups
