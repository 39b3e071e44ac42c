"""
Module: kpi_kernel.selectors.time_entry_selector
Responsibility: Read raw labour-clock events for an owner and a time range.
Architecture position: Kernel > Selectors.
"""

from datetime import datetime

from sqlalchemy import select

from kpi_kernel.domain.types import DayWindow, TimeEvent, TimeEventType
from kpi_kernel.domain.values import ensure_utc
from kpi_kernel.exceptions import InvalidTimeEventError
from kpi_kernel.logging_config import get_logger
from kpi_kernel.models.time_entry import TimeEntry
from kpi_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.time_entry")


class TimeEntrySelector(BaseSelector):
    """Time events as immutable TimeEvent DTOs, ordered by timestamp."""

    def events_between(
        self,
        owner_id: str,
        start: datetime,
        end: datetime,
    ) -> list[TimeEvent]:
        """
        Events with ``start <= timestamp < end``.

        Rows with an unknown type are skipped with a warning; one bad punch
        does not prevent the rest of the day from being recomputed.
        """
        rows = self.session.execute(
            select(
                TimeEntry.employee_name,
                TimeEntry.type,
                TimeEntry.timestamp,
                TimeEntry.job_no,
            )
            .where(
                TimeEntry.owner_id == owner_id,
                TimeEntry.timestamp >= ensure_utc(start),
                TimeEntry.timestamp < ensure_utc(end),
            )
            .order_by(TimeEntry.timestamp, TimeEntry.id)
        ).all()

        events: list[TimeEvent] = []
        for employee_name, event_type, timestamp, job_no in rows:
            try:
                parsed = TimeEventType.parse(event_type)
            except InvalidTimeEventError as exc:
                logger.warning(
                    "time_event_skipped",
                    extra={
                        "owner_id": owner_id,
                        "employee": employee_name,
                        "event_type": exc.event_type,
                    },
                )
                continue
            events.append(
                TimeEvent(
                    employee_name=employee_name,
                    event_type=parsed,
                    timestamp=ensure_utc(timestamp),
                    job_no=job_no,
                )
            )
        return events

    def events_for_window(self, owner_id: str, window: DayWindow) -> list[TimeEvent]:
        """Events in the window's widened fetch range."""
        return self.events_between(owner_id, window.fetch_start, window.fetch_end)
