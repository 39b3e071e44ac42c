"""
TouchQueue -- change-notification buffer driving KPI recomputes.

Responsibility:
    Collaborators that mutate a job, a time entry, or a ledger row for an
    (owner, job, day) enqueue a touch.  The worker claims the oldest touches
    in one atomic DELETE ... RETURNING and coalesces them by (owner, day).

Architecture position:
    Kernel > Services.

Invariants enforced:
    - At-least-once delivery: claiming deletes; there is no acknowledgment.
    - Concurrent claimers never receive the same touch (PostgreSQL
      ``FOR UPDATE SKIP LOCKED``; SQLite serializes writers).
    - Claimed touches are returned oldest first.

Failure modes:
    - InvalidOwnerIdError / InvalidDayError on enqueue of malformed input.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import delete, func, select

from kpi_kernel.db.engine import is_postgres
from kpi_kernel.domain.types import Touch, TouchGroup
from kpi_kernel.domain.values import ensure_utc, normalize_owner_id, parse_day
from kpi_kernel.logging_config import get_logger
from kpi_kernel.models.touch import KpiTouch
from kpi_kernel.services.base import BaseService

logger = get_logger("services.touch_queue")


def group_touches(touches: list[Touch]) -> tuple[TouchGroup, ...]:
    """
    Collapse touches by (owner, day).

    Explicit job numbers and job ids are unioned; groups, job numbers and
    ids keep the order in which they were first seen.
    """
    order: list[tuple[str, date]] = []
    jobs: dict[tuple[str, date], list[int]] = {}
    counts: dict[tuple[str, date], int] = {}
    ids: dict[tuple[str, date], list[UUID]] = {}

    for touch in touches:
        key = (touch.owner_id, touch.day)
        if key not in jobs:
            order.append(key)
            jobs[key] = []
            counts[key] = 0
            ids[key] = []
        counts[key] += 1
        if touch.job_no is not None and touch.job_no not in jobs[key]:
            jobs[key].append(touch.job_no)
        if touch.job_id is not None and touch.job_id not in ids[key]:
            ids[key].append(touch.job_id)

    return tuple(
        TouchGroup(
            owner_id=owner_id,
            day=day,
            job_nos=tuple(jobs[(owner_id, day)]),
            touch_count=counts[(owner_id, day)],
            job_ids=tuple(ids[(owner_id, day)]),
        )
        for owner_id, day in order
    )


class TouchQueue(BaseService):
    """
    Enqueue and claim KPI touches.

    Usage:
        with session_scope() as session:
            TouchQueue(session).enqueue("+1 555 123 4567", "2024-03-04", job_no=8)
    """

    def enqueue(
        self,
        owner_id: object,
        day: object,
        job_no: int | None = None,
        job_id: UUID | str | None = None,
    ) -> Touch:
        """
        Record that (owner, job?, day) needs a recompute.

        Raises:
            InvalidOwnerIdError: Owner id has no digits.
            InvalidDayError: Day is not a calendar date.
            ValueError: job_id is not a UUID.
        """
        touch = Touch(
            owner_id=normalize_owner_id(owner_id),
            day=parse_day(day),
            job_no=int(job_no) if job_no is not None else None,
            job_id=UUID(str(job_id)) if job_id is not None else None,
        )
        self.session.add(
            KpiTouch(
                owner_id=touch.owner_id,
                day=touch.day,
                job_no=touch.job_no,
                job_id=touch.job_id,
                created_at=ensure_utc(self.clock.now_utc()),
            )
        )
        self.session.flush()
        logger.debug(
            "kpi_touch_enqueued",
            extra={
                "owner_id": touch.owner_id,
                "day": touch.day,
                "job_no": touch.job_no,
                "job_id": touch.job_id,
            },
        )
        return touch

    def claim_batch(self, limit: int) -> list[Touch]:
        """
        Atomically delete and return up to ``limit`` of the oldest touches.

        The deletion is visible to other workers once the caller's
        transaction commits; commit before processing so that a slow batch
        does not hold row locks.
        """
        if limit <= 0:
            return []

        oldest = (
            select(KpiTouch.id)
            .order_by(KpiTouch.created_at, KpiTouch.id)
            .limit(limit)
        )
        if is_postgres(self.session):
            oldest = oldest.with_for_update(skip_locked=True)

        rows = self.session.execute(
            delete(KpiTouch)
            .where(KpiTouch.id.in_(oldest.scalar_subquery()))
            .returning(
                KpiTouch.owner_id,
                KpiTouch.day,
                KpiTouch.job_no,
                KpiTouch.job_id,
                KpiTouch.created_at,
                KpiTouch.id,
            )
            .execution_options(synchronize_session=False)
        ).all()

        # RETURNING order is unspecified
        rows = sorted(rows, key=lambda r: (ensure_utc(r.created_at), str(r.id)))
        touches = [
            Touch(owner_id=r.owner_id, day=r.day, job_no=r.job_no, job_id=r.job_id)
            for r in rows
        ]
        logger.info(
            "kpi_touches_claimed",
            extra={"requested": limit, "claimed": len(touches)},
        )
        return touches

    def pending_count(self) -> int:
        """Number of touches waiting to be claimed."""
        return self.session.execute(
            select(func.count()).select_from(KpiTouch)
        ).scalar_one()
