"""
Module: kpi_kernel.models.job_kpi_daily
Responsibility: ORM persistence for the merged per-job, per-day KPI record
    read by reporting, dashboards and payroll export.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Unique (owner_id, day, job_no).
    - Field-level merge: a write only overwrites the fields it carries, so a
      finance-only recompute never erases time fields and vice versa.
    - NULL means "metric unavailable", never zero.
"""

from datetime import date

from sqlalchemy import Date, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from kpi_kernel.db.base import TimestampedBase
from kpi_kernel.db.types import JobNo, Minutes, Money, OwnerId

TIME_FIELDS = ("paid_minutes", "drive_minutes", "labour_cost", "ot_minutes")

FINANCE_FIELDS = (
    "revenue",
    "cogs",
    "gross_profit",
    "gross_margin_pct",
    "change_order_amount",
    "holdback_amount",
    "ar_total",
    "ap_total",
    "estimate_revenue",
    "estimate_cogs",
    "slippage",
)

KPI_FIELDS = TIME_FIELDS + FINANCE_FIELDS


class JobKpiDaily(TimestampedBase):
    """KPI snapshot for one job on one local day."""

    __tablename__ = "job_kpis_daily"

    __table_args__ = (
        UniqueConstraint("owner_id", "day", "job_no", name="uq_job_kpi_daily_key"),
        Index("idx_job_kpi_daily_owner_day", "owner_id", "day"),
    )

    owner_id: Mapped[OwnerId] = mapped_column(nullable=False)
    day: Mapped[date] = mapped_column(Date, nullable=False)
    job_no: Mapped[JobNo] = mapped_column(nullable=False)

    # Labour
    paid_minutes: Mapped[Minutes | None] = mapped_column(nullable=True)
    drive_minutes: Mapped[Minutes | None] = mapped_column(nullable=True)
    labour_cost: Mapped[Money | None] = mapped_column(nullable=True)
    ot_minutes: Mapped[Minutes | None] = mapped_column(nullable=True)

    # Finance
    revenue: Mapped[Money | None] = mapped_column(nullable=True)
    cogs: Mapped[Money | None] = mapped_column(nullable=True)
    gross_profit: Mapped[Money | None] = mapped_column(nullable=True)
    gross_margin_pct: Mapped[Money | None] = mapped_column(nullable=True)
    change_order_amount: Mapped[Money | None] = mapped_column(nullable=True)
    holdback_amount: Mapped[Money | None] = mapped_column(nullable=True)
    ar_total: Mapped[Money | None] = mapped_column(nullable=True)
    ap_total: Mapped[Money | None] = mapped_column(nullable=True)
    estimate_revenue: Mapped[Money | None] = mapped_column(nullable=True)
    estimate_cogs: Mapped[Money | None] = mapped_column(nullable=True)
    slippage: Mapped[Money | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<JobKpiDaily {self.owner_id} {self.day} job={self.job_no}>"
