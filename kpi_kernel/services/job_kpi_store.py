"""
JobKpiStore -- field-level merge of per-job, per-day KPI rows.

Responsibility:
    Write time-derived and finance-derived KPI fields into one row per
    (owner, day, job) with a single upsert.

Architecture position:
    Kernel > Services.

Invariants enforced:
    - Fields present in the mapping overwrite the stored value, including
      an explicit None for a metric that is currently unavailable.
    - Fields absent from the mapping keep their stored value, so a
      finance-only write never erases time fields and vice versa.

Failure modes:
    - ValueError for a field name that is not a KPI column.
"""

from datetime import date
from typing import Any, Mapping
from uuid import uuid4

from sqlalchemy import select

from kpi_kernel.db.upsert import dialect_insert
from kpi_kernel.logging_config import get_logger
from kpi_kernel.models.job_kpi_daily import KPI_FIELDS, JobKpiDaily
from kpi_kernel.services.base import BaseService

logger = get_logger("services.job_kpi_store")

_KEY_COLUMNS = ("owner_id", "day", "job_no")


class JobKpiStore(BaseService):
    def merge(
        self,
        owner_id: str,
        day: date,
        job_no: int,
        fields: Mapping[str, Any],
    ) -> None:
        """
        Upsert the KPI row, overwriting only the given fields.

        Raises:
            ValueError: ``fields`` names something other than a KPI column.
        """
        unknown = sorted(set(fields) - set(KPI_FIELDS))
        if unknown:
            raise ValueError(f"Unknown KPI field(s): {', '.join(unknown)}")

        now = self.clock.now_utc()
        table = JobKpiDaily.__table__
        stmt = dialect_insert(self.session, table).values(
            id=uuid4(),
            owner_id=owner_id,
            day=day,
            job_no=job_no,
            created_at=now,
            updated_at=now,
            **fields,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c[name] for name in _KEY_COLUMNS],
            set_={
                **{name: stmt.excluded[name] for name in fields},
                "updated_at": stmt.excluded.updated_at,
            },
        )
        self.session.execute(stmt)
        logger.debug(
            "job_kpi_merged",
            extra={
                "owner_id": owner_id,
                "day": day,
                "job_no": job_no,
                "fields": sorted(fields),
            },
        )

    def get(self, owner_id: str, day: date, job_no: int) -> dict[str, Any] | None:
        """The stored KPI fields for one job/day, or None if no row exists."""
        row = self.session.execute(
            select(JobKpiDaily)
            .where(
                JobKpiDaily.owner_id == owner_id,
                JobKpiDaily.day == day,
                JobKpiDaily.job_no == job_no,
            )
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if row is None:
            return None
        return {name: getattr(row, name) for name in KPI_FIELDS}

    def job_numbers_for_day(self, owner_id: str, day: date) -> list[int]:
        """Job numbers that already have a KPI row for (owner, day)."""
        return list(
            self.session.execute(
                select(JobKpiDaily.job_no)
                .where(JobKpiDaily.owner_id == owner_id, JobKpiDaily.day == day)
                .order_by(JobKpiDaily.job_no)
            ).scalars()
        )
