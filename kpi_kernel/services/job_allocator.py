"""
JobAllocator -- per-owner job number allocation by name.

Responsibility:
    Resolve a job name to a stable owner-scoped ``job_no``, creating the job
    on first use.  Exactly one job exists per (owner, case-insensitive name),
    no matter how many callers race to create it.

Architecture position:
    Kernel > Services.  Called by collaborators that accept free-text job
    names and by the recompute to verify touched job numbers.

Invariants enforced:
    - job_no is unique per owner (uq_job_owner_no).
    - name_key is unique per owner (uq_job_owner_name_key).
    - Allocation for one owner is serialized by a transaction-scoped
      advisory lock keyed by a hash of the owner id, so unrelated owners
      never block each other.  On dialects without advisory locks (SQLite)
      the database serializes writers itself.

Failure modes:
    - IntegrityError during insert: a concurrent caller created the job
      first.  Handled by rolling back the SAVEPOINT and returning the
      winning row.
    - AllocationConflictError: the violation persisted across
      MAX_ALLOCATION_ATTEMPTS and no row with this name exists.
"""

from uuid import UUID

from sqlalchemy import func, select, text
from sqlalchemy.exc import IntegrityError

from kpi_kernel.db.engine import is_postgres
from kpi_kernel.db.errors import is_unique_violation
from kpi_kernel.domain.types import JobRef
from kpi_kernel.domain.values import name_key, normalize_job_name, normalize_owner_id
from kpi_kernel.exceptions import AllocationConflictError
from kpi_kernel.logging_config import get_logger
from kpi_kernel.models.job import Job
from kpi_kernel.services.base import BaseService

logger = get_logger("services.job_allocator")

MAX_ALLOCATION_ATTEMPTS = 3

_ADVISORY_LOCK_SQL = text("SELECT pg_advisory_xact_lock(hashtext(:owner_id))")


def _to_ref(job: Job) -> JobRef:
    return JobRef(
        owner_id=job.owner_id,
        job_no=job.job_no,
        name=job.name,
        active=job.active,
        id=job.id,
    )


class JobAllocator(BaseService):
    """
    Service for resolving and allocating owner-scoped job numbers.

    Contract:
        ``ensure_job_by_name`` is idempotent: repeated or concurrent calls
        with the same (owner, name) all return the same job_no.

    Non-goals:
        - Does NOT commit.  The advisory lock is released when the
          caller's transaction ends, so keep that transaction short.
        - job numbers are max+1, not gap-free: a rolled-back allocation
          leaves no gap, but a deleted job's number is reused only if it
          was the highest.
    """

    def ensure_job_by_name(self, owner_id: object, name: str | None) -> JobRef | None:
        """
        Find the owner's job with this name, creating it if absent.

        Blank names return None.

        Raises:
            InvalidOwnerIdError: Owner id has no digits.
            AllocationConflictError: See module docstring.
        """
        owner = normalize_owner_id(owner_id)
        display = normalize_job_name(name)
        if not display:
            return None
        key = name_key(display)

        existing = self._find_by_key(owner, key)
        if existing is not None:
            return _to_ref(existing)

        self._lock_owner(owner)

        for attempt in range(1, MAX_ALLOCATION_ATTEMPTS + 1):
            # Re-check under the lock; another transaction may have committed
            existing = self._find_by_key(owner, key)
            if existing is not None:
                return _to_ref(existing)

            job_no = self._next_job_no(owner)
            savepoint = self.session.begin_nested()
            try:
                job = Job(
                    owner_id=owner,
                    job_no=job_no,
                    name=display,
                    name_key=key,
                    active=True,
                )
                self.session.add(job)
                self.session.flush()
                savepoint.commit()
            except IntegrityError as exc:
                savepoint.rollback()
                if not is_unique_violation(exc):
                    raise
                logger.info(
                    "job_allocation_race",
                    extra={
                        "owner_id": owner,
                        "job_no": job_no,
                        "attempt": attempt,
                    },
                )
                continue

            logger.info(
                "job_allocated",
                extra={"owner_id": owner, "job_no": job_no, "job_name": display},
            )
            return _to_ref(job)

        winner = self._find_by_key(owner, key)
        if winner is not None:
            return _to_ref(winner)
        raise AllocationConflictError(owner, display)

    def find_job_by_name(self, owner_id: object, name: str | None) -> JobRef | None:
        """Case-insensitive lookup without allocation."""
        key = name_key(name)
        if not key:
            return None
        job = self._find_by_key(normalize_owner_id(owner_id), key)
        return _to_ref(job) if job is not None else None

    def get_job(self, owner_id: object, job_no: int) -> JobRef | None:
        job = self.session.execute(
            select(Job).where(
                Job.owner_id == normalize_owner_id(owner_id),
                Job.job_no == job_no,
            )
        ).scalar_one_or_none()
        return _to_ref(job) if job is not None else None

    def known_job_numbers(self, owner_id: str, job_nos: list[int]) -> set[int]:
        """The subset of ``job_nos`` that exist for the owner."""
        if not job_nos:
            return set()
        return set(
            self.session.execute(
                select(Job.job_no).where(
                    Job.owner_id == owner_id,
                    Job.job_no.in_(job_nos),
                )
            ).scalars()
        )

    def job_numbers_for_ids(self, owner_id: str, job_ids: list[UUID]) -> dict[UUID, int]:
        """
        Map job row ids to the owner's job numbers.

        Ids that do not exist, or belong to another owner, are omitted.
        """
        if not job_ids:
            return {}
        rows = self.session.execute(
            select(Job.id, Job.job_no).where(
                Job.owner_id == owner_id,
                Job.id.in_(job_ids),
            )
        ).all()
        return {row.id: row.job_no for row in rows}

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _find_by_key(self, owner_id: str, key: str) -> Job | None:
        return self.session.execute(
            select(Job)
            .where(Job.owner_id == owner_id, Job.name_key == key)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _next_job_no(self, owner_id: str) -> int:
        return self.session.execute(
            select(func.coalesce(func.max(Job.job_no), 0) + 1).where(
                Job.owner_id == owner_id
            )
        ).scalar_one()

    def _lock_owner(self, owner_id: str) -> None:
        if is_postgres(self.session):
            self.session.execute(_ADVISORY_LOCK_SQL, {"owner_id": owner_id})
