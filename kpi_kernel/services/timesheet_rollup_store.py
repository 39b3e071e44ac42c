"""
TimesheetRollupStore -- idempotent persistence of employee day rollups.

Responsibility:
    Replace the stored rollups of an (owner, day) with a freshly computed
    set, so that reruns converge to the current truth after a backfilled or
    corrected punch.

Architecture position:
    Kernel > Services.

Invariants enforced:
    - One row per (owner, day, employee, job).  Attributed rows are upserted
      with full replacement of every minute column on conflict.
    - Rows for the (owner, day) whose key is no longer produced are deleted.
      Unattributed rows (job_no NULL) cannot be matched by ON CONFLICT, so
      they are always deleted and re-inserted.
"""

from datetime import date
from uuid import uuid4

from sqlalchemy import delete, select

from kpi_kernel.db.upsert import dialect_insert
from kpi_kernel.domain.types import EmployeeDayRollup
from kpi_kernel.logging_config import get_logger
from kpi_kernel.models.timesheet_rollup import TimesheetRollup
from kpi_kernel.services.base import BaseService

logger = get_logger("services.timesheet_rollup_store")

_KEY_COLUMNS = ("owner_id", "day", "employee_name", "job_no")
_MINUTE_COLUMNS = ("shift_minutes", "break_minutes", "drive_minutes", "paid_minutes")


class TimesheetRollupStore(BaseService):
    def replace_day(
        self,
        owner_id: str,
        day: date,
        rollups: tuple[EmployeeDayRollup, ...] | list[EmployeeDayRollup],
    ) -> int:
        """
        Make the stored rollups for (owner, day) equal ``rollups``.

        Returns:
            Number of rows written.
        """
        now = self.clock.now_utc()
        rows = [self._row(owner_id, day, r, now) for r in rollups]
        attributed = [row for row in rows if row["job_no"] is not None]
        unattributed = [row for row in rows if row["job_no"] is None]
        produced = {(row["employee_name"], row["job_no"]) for row in attributed}

        if attributed:
            table = TimesheetRollup.__table__
            stmt = dialect_insert(self.session, table).values(attributed)
            stmt = stmt.on_conflict_do_update(
                index_elements=[table.c[name] for name in _KEY_COLUMNS],
                set_={
                    **{name: stmt.excluded[name] for name in _MINUTE_COLUMNS},
                    "updated_at": stmt.excluded.updated_at,
                },
            )
            self.session.execute(stmt)

        stored = self.session.execute(
            select(
                TimesheetRollup.id,
                TimesheetRollup.employee_name,
                TimesheetRollup.job_no,
            ).where(
                TimesheetRollup.owner_id == owner_id,
                TimesheetRollup.day == day,
            )
        ).all()
        stale = [
            row.id
            for row in stored
            if row.job_no is None or (row.employee_name, row.job_no) not in produced
        ]
        if stale:
            self.session.execute(
                delete(TimesheetRollup)
                .where(TimesheetRollup.id.in_(stale))
                .execution_options(synchronize_session=False)
            )

        if unattributed:
            self.session.execute(TimesheetRollup.__table__.insert(), unattributed)

        logger.info(
            "timesheet_rollups_replaced",
            extra={
                "owner_id": owner_id,
                "day": day,
                "written": len(rows),
                "removed": len(stale),
            },
        )
        return len(rows)

    def rows_for_day(self, owner_id: str, day: date) -> list[EmployeeDayRollup]:
        """Stored rollups for (owner, day), ordered by employee then job."""
        rows = self.session.execute(
            select(TimesheetRollup)
            .where(TimesheetRollup.owner_id == owner_id, TimesheetRollup.day == day)
            .order_by(TimesheetRollup.employee_name, TimesheetRollup.job_no)
            .execution_options(populate_existing=True)
        ).scalars()
        return [
            EmployeeDayRollup(
                employee_name=row.employee_name,
                job_no=row.job_no,
                shift_minutes=row.shift_minutes,
                break_minutes=row.break_minutes,
                drive_minutes=row.drive_minutes,
            )
            for row in rows
        ]

    @staticmethod
    def _row(owner_id, day, rollup, now) -> dict:
        return {
            "id": uuid4(),
            "owner_id": owner_id,
            "day": day,
            "employee_name": rollup.employee_name,
            "job_no": rollup.job_no,
            "shift_minutes": rollup.shift_minutes,
            "break_minutes": rollup.break_minutes,
            "drive_minutes": rollup.drive_minutes,
            "paid_minutes": rollup.paid_minutes,
            "created_at": now,
            "updated_at": now,
        }
