"""
Module: kpi_kernel.models.owner_policy
Responsibility: ORM mapping for owner-level settings the recompute needs:
    the tenant's IANA timezone (day boundaries) and daily OT threshold.
Architecture position: Kernel > Models.  May import from db/base.py only.

Owners without a row use UTC and no OT threshold.
"""

from sqlalchemy import Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from kpi_kernel.db.base import Base
from kpi_kernel.db.types import OwnerId


class OwnerPolicy(Base):
    """Per-owner timezone and overtime policy."""

    __tablename__ = "owner_policies"

    __table_args__ = (UniqueConstraint("owner_id", name="uq_owner_policy_owner"),)

    owner_id: Mapped[OwnerId] = mapped_column(nullable=False)

    # IANA name, e.g. "America/Toronto"
    timezone: Mapped[str] = mapped_column(
        String(64), nullable=False, default="UTC", server_default="UTC"
    )

    # Paid minutes per job/day above which time counts as overtime
    daily_ot_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)

    def __repr__(self) -> str:
        return f"<OwnerPolicy {self.owner_id} tz={self.timezone}>"
