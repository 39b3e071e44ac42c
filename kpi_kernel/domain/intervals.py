"""
Interval reconstruction -- pure functions from raw punches to day rollups.

Responsibility:
    Pair loose start/stop events into intervals, clip them to the owner's
    local day, and attribute the day's minutes to one job.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Every clipped interval lies within ``[window.start, window.end)``.
    - ``paid_minutes = max(0, shift_minutes - break_minutes)``.
    - Output depends only on the input events and the window, never on
      input order beyond timestamp ties.

Pairing rules:
    - Each kind (clock/break/drive) has its own stack.
    - A ``*_start`` is pushed; a ``*_stop`` pops the most recent open start
      of the same kind and emits ``[start, stop)``.
    - A stop with no open start is ignored.
    - Starts still open at the end of the fetched events are dropped; the
      shift is picked up on a later recompute once it closes.
"""

from collections import Counter, defaultdict
from datetime import datetime, timedelta
from typing import Iterable, Sequence

from kpi_kernel.domain.types import (
    DayWindow,
    EmployeeDayRollup,
    Interval,
    IntervalKind,
    TimeEvent,
)
from kpi_kernel.domain.values import ensure_utc, normalize_employee

_MINUTE = timedelta(minutes=1)
_HALF_MINUTE = timedelta(seconds=30)


def pair_intervals(events: Sequence[TimeEvent]) -> list[Interval]:
    """
    Pair one employee's events into intervals.

    ``events`` must already be ordered by timestamp.  Stops earlier than
    their start (clock skew) yield no interval.
    """
    open_starts: dict[IntervalKind, list[datetime]] = defaultdict(list)
    intervals: list[Interval] = []

    for event in events:
        kind = event.event_type.kind
        stamp = ensure_utc(event.timestamp)
        if event.event_type.is_start:
            open_starts[kind].append(stamp)
            continue
        stack = open_starts[kind]
        if not stack:
            continue
        start = stack.pop()
        if stamp > start:
            intervals.append(Interval(kind=kind, start=start, end=stamp))

    return intervals


def round_minutes(delta: timedelta) -> int:
    """Whole minutes in ``delta``, half-up on the remainder."""
    if delta <= timedelta(0):
        return 0
    minutes, remainder = divmod(delta, _MINUTE)
    if remainder >= _HALF_MINUTE:
        minutes += 1
    return minutes


def clip_minutes(interval: Interval, window: DayWindow) -> int:
    """Minutes of ``interval`` inside ``[window.start, window.end)``."""
    start = max(interval.start, window.start)
    end = min(interval.end, window.end)
    if end <= start:
        return 0
    return round_minutes(end - start)


def majority_job(events: Iterable[TimeEvent]) -> int | None:
    """
    Most frequent non-null job number; ties go to the first seen.

    A heuristic: an employee who worked two jobs in a day has all of the
    day's minutes attributed to the one they punched most often.
    """
    counts: Counter[int] = Counter(
        e.job_no for e in events if e.job_no is not None
    )
    if not counts:
        return None
    # Counter keeps first-insertion order and max() returns the first maximum
    return max(counts, key=counts.__getitem__)


def reconstruct_employee_day(
    employee_name: str,
    events: Sequence[TimeEvent],
    window: DayWindow,
) -> EmployeeDayRollup | None:
    """
    Rollup for one employee, or None if nothing falls inside the day.
    """
    ordered = sorted(events, key=lambda e: ensure_utc(e.timestamp))
    totals = {kind: 0 for kind in IntervalKind}
    for interval in pair_intervals(ordered):
        totals[interval.kind] += clip_minutes(interval, window)

    if not any(totals.values()):
        return None

    return EmployeeDayRollup(
        employee_name=employee_name,
        job_no=majority_job(ordered),
        shift_minutes=totals[IntervalKind.CLOCK],
        break_minutes=totals[IntervalKind.BREAK],
        drive_minutes=totals[IntervalKind.DRIVE],
    )


def group_by_employee(
    events: Iterable[TimeEvent],
) -> dict[str, list[TimeEvent]]:
    """Group events by normalized employee name; blank names are skipped."""
    grouped: dict[str, list[TimeEvent]] = defaultdict(list)
    for event in events:
        name = normalize_employee(event.employee_name)
        if name:
            grouped[name].append(event)
    return dict(grouped)


def reconstruct_day(
    events: Iterable[TimeEvent],
    window: DayWindow,
) -> tuple[EmployeeDayRollup, ...]:
    """
    Rollups for every employee with time inside the day, ordered by name.

    Args:
        events: Events fetched for ``[window.fetch_start, window.fetch_end)``.
        window: The owner's local day.
    """
    rollups = []
    for name, employee_events in sorted(group_by_employee(events).items()):
        rollup = reconstruct_employee_day(name, employee_events, window)
        if rollup is not None:
            rollups.append(rollup)
    return tuple(rollups)
