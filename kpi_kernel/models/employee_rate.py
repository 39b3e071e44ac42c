"""
Module: kpi_kernel.models.employee_rate
Responsibility: ORM mapping for employee hourly rates (read-only reference
    data maintained outside the KPI kernel).
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from kpi_kernel.db.base import Base
from kpi_kernel.db.types import OwnerId, Rate


class EmployeeRate(Base):
    """Hourly rate for one employee of one owner."""

    __tablename__ = "employee_rates"

    __table_args__ = (
        UniqueConstraint("owner_id", "employee_name", name="uq_employee_rate"),
    )

    owner_id: Mapped[OwnerId] = mapped_column(nullable=False)

    employee_name: Mapped[str] = mapped_column(String(255), nullable=False)

    hourly_rate: Mapped[Rate] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<EmployeeRate {self.employee_name} {self.hourly_rate}>"
