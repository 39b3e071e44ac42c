"""
kpi_kernel.domain.types -- Pure frozen dataclasses for the KPI kernel.

ZERO I/O.  Frozen dataclasses with enum type fields and tuples for
immutable collections; services translate ORM rows into these before any
computation so that the interval and aggregation code never touches a
session.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from enum import Enum
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from kpi_kernel.exceptions import InvalidTimeEventError, InvalidTimezoneError

# Events are fetched this far either side of the local day so that shifts
# crossing midnight are paired before clipping.
FETCH_MARGIN = timedelta(hours=12)

DEFAULT_TIMEZONE = "UTC"


# =============================================================================
# Time events
# =============================================================================


class IntervalKind(str, Enum):
    """What an interval measures."""

    CLOCK = "clock"
    BREAK = "break"
    DRIVE = "drive"


class TimeEventType(str, Enum):
    """Raw labour-clock event types, as appended by the clock handler."""

    CLOCK_IN = "clock_in"
    CLOCK_OUT = "clock_out"
    BREAK_START = "break_start"
    BREAK_STOP = "break_stop"
    DRIVE_START = "drive_start"
    DRIVE_STOP = "drive_stop"

    @classmethod
    def parse(cls, value: str | TimeEventType) -> TimeEventType:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidTimeEventError(str(value)) from None

    @property
    def kind(self) -> IntervalKind:
        return _EVENT_KIND[self]

    @property
    def is_start(self) -> bool:
        return self in _STARTS


_EVENT_KIND = {
    TimeEventType.CLOCK_IN: IntervalKind.CLOCK,
    TimeEventType.CLOCK_OUT: IntervalKind.CLOCK,
    TimeEventType.BREAK_START: IntervalKind.BREAK,
    TimeEventType.BREAK_STOP: IntervalKind.BREAK,
    TimeEventType.DRIVE_START: IntervalKind.DRIVE,
    TimeEventType.DRIVE_STOP: IntervalKind.DRIVE,
}

_STARTS = frozenset(
    {TimeEventType.CLOCK_IN, TimeEventType.BREAK_START, TimeEventType.DRIVE_START}
)


@dataclass(frozen=True)
class TimeEvent:
    """One immutable labour-clock punch."""

    employee_name: str
    event_type: TimeEventType
    timestamp: datetime  # timezone-aware
    job_no: int | None = None


@dataclass(frozen=True)
class Interval:
    """A closed ``[start, end)`` span of one kind, before clipping."""

    kind: IntervalKind
    start: datetime
    end: datetime


# =============================================================================
# Day window
# =============================================================================


@dataclass(frozen=True)
class DayWindow:
    """The owner's local calendar day expressed as UTC instants.

    ``start``/``end`` bound the half-open day ``[start, end)``; a DST
    transition day is 23 or 25 hours long.  ``fetch_start``/``fetch_end``
    widen it by FETCH_MARGIN for event retrieval.
    """

    day: date
    tz_name: str
    start: datetime
    end: datetime

    @classmethod
    def for_day(cls, day: date, tz_name: str | None = None) -> DayWindow:
        tz_name = tz_name or DEFAULT_TIMEZONE
        try:
            tz = ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError):
            raise InvalidTimezoneError(tz_name) from None
        start_local = datetime.combine(day, time.min, tzinfo=tz)
        end_local = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
        return cls(
            day=day,
            tz_name=tz_name,
            start=start_local.astimezone(timezone.utc),
            end=end_local.astimezone(timezone.utc),
        )

    @property
    def fetch_start(self) -> datetime:
        return self.start - FETCH_MARGIN

    @property
    def fetch_end(self) -> datetime:
        return self.end + FETCH_MARGIN

    @property
    def hours(self) -> float:
        return (self.end - self.start).total_seconds() / 3600


# =============================================================================
# Rollups and labour totals
# =============================================================================


@dataclass(frozen=True)
class EmployeeDayRollup:
    """One employee's minutes for one day, attributed to a single job."""

    employee_name: str
    job_no: int | None
    shift_minutes: int
    break_minutes: int
    drive_minutes: int

    @property
    def paid_minutes(self) -> int:
        return max(0, self.shift_minutes - self.break_minutes)

    @property
    def key(self) -> tuple[str, int | None]:
        return (self.employee_name, self.job_no)


@dataclass(frozen=True)
class JobLabourTotals:
    """Labour totals for one job on one day."""

    job_no: int
    paid_minutes: int
    drive_minutes: int
    labour_cost: Decimal
    ot_minutes: int
    employee_count: int = 0

    def as_fields(self) -> dict[str, object]:
        return {
            "paid_minutes": self.paid_minutes,
            "drive_minutes": self.drive_minutes,
            "labour_cost": self.labour_cost,
            "ot_minutes": self.ot_minutes,
        }


@dataclass(frozen=True)
class JobDayAggregate:
    """All per-job labour totals for an (owner, day), plus unattributed time."""

    jobs: tuple[JobLabourTotals, ...] = ()
    unattributed_minutes: int = 0
    unattributed_employees: tuple[str, ...] = ()

    def for_job(self, job_no: int) -> JobLabourTotals | None:
        for totals in self.jobs:
            if totals.job_no == job_no:
                return totals
        return None

    @property
    def job_numbers(self) -> tuple[int, ...]:
        return tuple(t.job_no for t in self.jobs)


# =============================================================================
# Finance
# =============================================================================


@dataclass(frozen=True)
class FinanceKpis:
    """Finance metrics for one (owner, job, day).

    ``None`` means the metric is unavailable in this deployment, never zero.
    """

    revenue: Decimal | None = None
    cogs: Decimal | None = None
    gross_profit: Decimal | None = None
    gross_margin_pct: Decimal | None = None
    change_order_amount: Decimal | None = None
    holdback_amount: Decimal | None = None
    ar_total: Decimal | None = None
    ap_total: Decimal | None = None
    estimate_revenue: Decimal | None = None
    estimate_cogs: Decimal | None = None
    slippage: Decimal | None = None

    def as_fields(self) -> dict[str, Decimal | None]:
        return asdict(self)


# =============================================================================
# Reference data
# =============================================================================


@dataclass(frozen=True)
class OwnerPolicyView:
    """Owner-level settings consumed by the recompute."""

    owner_id: str
    timezone: str = DEFAULT_TIMEZONE
    daily_ot_minutes: int | None = None


@dataclass(frozen=True)
class Touch:
    """A claimed "(owner, job?, day) needs recompute" signal."""

    owner_id: str
    day: date
    job_no: int | None = None
    # Job row id, for collaborators that do not know the job number
    job_id: UUID | None = None


@dataclass(frozen=True)
class TouchGroup:
    """Touches collapsed by (owner, day); explicit job numbers and ids unioned."""

    owner_id: str
    day: date
    job_nos: tuple[int, ...] = field(default_factory=tuple)
    touch_count: int = 1
    job_ids: tuple[UUID, ...] = field(default_factory=tuple)

    @property
    def key(self) -> str:
        return f"{self.owner_id}:{self.day.isoformat()}"


@dataclass(frozen=True)
class JobRef:
    """A resolved job."""

    owner_id: str
    job_no: int
    name: str
    active: bool = True
    id: UUID | None = None
