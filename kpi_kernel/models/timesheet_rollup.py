"""
Module: kpi_kernel.models.timesheet_rollup
Responsibility: ORM persistence for derived per-employee, per-job, per-day
    labour minutes.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Unique (owner_id, day, employee_name, job_no).
    - Rows are recomputed from TimeEntry on every touch and fully replaced;
      stale keys for the (owner, day) are deleted.
    - paid_minutes = max(0, shift_minutes - break_minutes).
"""

from datetime import date

from sqlalchemy import Date, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from kpi_kernel.db.base import TimestampedBase
from kpi_kernel.db.types import JobNo, Minutes, OwnerId


class TimesheetRollup(TimestampedBase):
    """Minutes one employee spent on one job on one local day."""

    __tablename__ = "timesheet_rollups"

    __table_args__ = (
        UniqueConstraint(
            "owner_id",
            "day",
            "employee_name",
            "job_no",
            name="uq_timesheet_rollup_key",
        ),
        Index("idx_timesheet_rollup_owner_day", "owner_id", "day"),
    )

    owner_id: Mapped[OwnerId] = mapped_column(nullable=False)

    day: Mapped[date] = mapped_column(Date, nullable=False)

    # Normalized (trimmed, case-folded)
    employee_name: Mapped[str] = mapped_column(String(255), nullable=False)

    # None when no punch carried a job
    job_no: Mapped[JobNo | None] = mapped_column(nullable=True)

    shift_minutes: Mapped[Minutes] = mapped_column(nullable=False, default=0)
    break_minutes: Mapped[Minutes] = mapped_column(nullable=False, default=0)
    drive_minutes: Mapped[Minutes] = mapped_column(nullable=False, default=0)
    paid_minutes: Mapped[Minutes] = mapped_column(nullable=False, default=0)

    def __repr__(self) -> str:
        return (
            f"<TimesheetRollup {self.owner_id} {self.day} "
            f"{self.employee_name} job={self.job_no} paid={self.paid_minutes}>"
        )
