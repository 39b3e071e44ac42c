"""
Module: kpi_kernel.models.time_entry
Responsibility: ORM mapping for raw labour-clock events.
Architecture position: Kernel > Models.  May import from db/base.py only.

The clock command handler appends these rows; the KPI kernel only reads
them.  They are the sole source of truth for labour time.
"""

from datetime import datetime

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from kpi_kernel.db.base import Base
from kpi_kernel.db.types import JobNo, OwnerId


class TimeEntry(Base):
    """One clock_in / clock_out / break_* / drive_* punch."""

    __tablename__ = "time_entries"

    __table_args__ = (
        Index("idx_time_entry_owner_ts", "owner_id", "timestamp"),
    )

    owner_id: Mapped[OwnerId] = mapped_column(nullable=False)

    employee_name: Mapped[str] = mapped_column(String(255), nullable=False)

    # One of kpi_kernel.domain.types.TimeEventType values
    type: Mapped[str] = mapped_column(String(32), nullable=False)

    timestamp: Mapped[datetime] = mapped_column(nullable=False)

    job_no: Mapped[JobNo | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<TimeEntry {self.employee_name} {self.type} {self.timestamp}>"
