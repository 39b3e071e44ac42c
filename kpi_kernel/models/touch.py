"""
Module: kpi_kernel.models.touch
Responsibility: ORM persistence for the KPI touch queue, the change
    notification buffer that drives every recompute.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - At-least-once: a touch is deleted when claimed, never acknowledged.
    - FIFO claim order by (created_at, id).

Failure modes:
    - A group that fails after its touches were claimed stays stale until a
      later write touches it again.  Failed touches are not re-enqueued.
"""

from datetime import date, datetime
from uuid import UUID as PyUUID

from sqlalchemy import Date, Index
from sqlalchemy.orm import Mapped, mapped_column

from kpi_kernel.db.base import Base
from kpi_kernel.db.types import JobNo, OwnerId


class KpiTouch(Base):
    """
    One "(owner, job?, day) needs recompute" signal.

    Touches for the same (owner, day) are coalesced by the worker, so
    collaborators may enqueue freely without deduplicating.
    """

    __tablename__ = "kpi_touches"

    __table_args__ = (
        Index("idx_kpi_touch_created", "created_at"),
        Index("idx_kpi_touch_owner_day", "owner_id", "day"),
    )

    owner_id: Mapped[OwnerId] = mapped_column(nullable=False)

    # Explicit job hint; None means "whatever the day's data says"
    job_no: Mapped[JobNo | None] = mapped_column(nullable=True)

    # Job row id hint, resolved to a job number at recompute time
    job_id: Mapped[PyUUID | None] = mapped_column(nullable=True)

    day: Mapped[date] = mapped_column(Date, nullable=False)

    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<KpiTouch {self.owner_id} {self.day} job={self.job_no or self.job_id}>"
