"""
Module: kpi_kernel.models.job
Responsibility: ORM persistence for jobs and their owner-scoped sequence
    numbers.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - No two jobs of one owner share a job_no   (uq_job_owner_no).
    - No two jobs of one owner share a name_key (uq_job_owner_name_key);
      name lookup is case-insensitive through name_key.
    - job_no is allocated only by JobAllocator, under a per-owner lock.
"""

from sqlalchemy import Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from kpi_kernel.db.base import TimestampedBase
from kpi_kernel.db.types import JobNo, OwnerId


class Job(TimestampedBase):
    """
    A job (project, site) a tenant tracks labour and money against.

    Guarantees:
        - (owner_id, job_no) is unique.
        - (owner_id, name_key) is unique.
    """

    __tablename__ = "jobs"

    __table_args__ = (
        UniqueConstraint("owner_id", "job_no", name="uq_job_owner_no"),
        UniqueConstraint("owner_id", "name_key", name="uq_job_owner_name_key"),
        Index("idx_job_owner_active", "owner_id", "active"),
    )

    owner_id: Mapped[OwnerId] = mapped_column(nullable=False)

    job_no: Mapped[JobNo] = mapped_column(nullable=False)

    # Display name as first entered
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Case-folded, whitespace-collapsed name used for lookup
    name_key: Mapped[str] = mapped_column(String(255), nullable=False)

    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Job {self.owner_id}#{self.job_no} {self.name!r}>"
