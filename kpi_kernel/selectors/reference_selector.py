"""
Module: kpi_kernel.selectors.reference_selector
Responsibility: Read owner reference data (hourly rates, timezone and OT
    policy) maintained outside the KPI kernel.
Architecture position: Kernel > Selectors.
"""

from decimal import Decimal

from sqlalchemy import select

from kpi_kernel.domain.types import DEFAULT_TIMEZONE, OwnerPolicyView
from kpi_kernel.domain.values import normalize_employee
from kpi_kernel.models.employee_rate import EmployeeRate
from kpi_kernel.models.owner_policy import OwnerPolicy
from kpi_kernel.selectors.base import BaseSelector


class ReferenceSelector(BaseSelector):
    def hourly_rates(self, owner_id: str) -> dict[str, Decimal]:
        """Hourly rate per normalized employee name."""
        rows = self.session.execute(
            select(EmployeeRate.employee_name, EmployeeRate.hourly_rate)
            .where(EmployeeRate.owner_id == owner_id)
            .order_by(EmployeeRate.employee_name)
        ).all()
        return {
            normalize_employee(name): Decimal(rate)
            for name, rate in rows
            if rate is not None
        }

    def owner_policy(self, owner_id: str) -> OwnerPolicyView:
        """The owner's policy, or UTC with no OT threshold if none is stored."""
        row = self.session.execute(
            select(OwnerPolicy.timezone, OwnerPolicy.daily_ot_minutes).where(
                OwnerPolicy.owner_id == owner_id
            )
        ).first()
        if row is None:
            return OwnerPolicyView(owner_id=owner_id)
        tz_name, daily_ot = row
        return OwnerPolicyView(
            owner_id=owner_id,
            timezone=tz_name or DEFAULT_TIMEZONE,
            daily_ot_minutes=daily_ot,
        )
