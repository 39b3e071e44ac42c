"""
True concurrency tests against PostgreSQL.

Each thread uses its own session (and connection).  A barrier releases all
threads at once so that they genuinely race for the advisory lock and the
touch queue rows.

Run with: DATABASE_URL=postgresql+psycopg2://... pytest tests/concurrency -v
Skipped when DATABASE_URL is unset or unreachable.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date

import pytest
from sqlalchemy import func, select

from kpi_kernel.models import Job
from kpi_kernel.services.job_allocator import JobAllocator
from kpi_kernel.services.touch_queue import TouchQueue

pytestmark = pytest.mark.postgres

OWNER = "15551234567"
THREADS = 10


def _race(factory, n, fn):
    barrier = threading.Barrier(n)

    def run(i):
        session = factory()
        try:
            barrier.wait(timeout=10)
            result = fn(session, i)
            session.commit()
            return result
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=n) as pool:
        return [f.result() for f in [pool.submit(run, i) for i in range(n)]]


class TestAllocatorUniqueness:
    def test_same_name_allocates_exactly_one_job(self, pg_session_factory):
        job_nos = _race(
            pg_session_factory,
            THREADS,
            lambda s, i: JobAllocator(s).ensure_job_by_name(OWNER, "Same Name").job_no,
        )

        assert set(job_nos) == {1}
        with pg_session_factory() as s:
            count = s.execute(
                select(func.count()).select_from(Job).where(Job.owner_id == OWNER)
            ).scalar_one()
        assert count == 1

    def test_distinct_names_get_distinct_numbers(self, pg_session_factory):
        job_nos = _race(
            pg_session_factory,
            THREADS,
            lambda s, i: JobAllocator(s).ensure_job_by_name(OWNER, f"Job {i}").job_no,
        )

        assert sorted(job_nos) == list(range(1, THREADS + 1))

    def test_owners_do_not_share_numbers(self, pg_session_factory):
        job_nos = _race(
            pg_session_factory,
            THREADS,
            lambda s, i: JobAllocator(s).ensure_job_by_name(str(1000 + i), "Deck").job_no,
        )

        assert job_nos == [1] * THREADS


class TestClaimSkipLocked:
    def test_concurrent_claims_are_disjoint(self, pg_session_factory):
        with pg_session_factory() as s:
            queue = TouchQueue(s)
            for n in range(1, 51):
                queue.enqueue(OWNER, date(2024, 3, 4), job_no=n)
            s.commit()

        claimed = _race(
            pg_session_factory,
            5,
            lambda s, i: [t.job_no for t in TouchQueue(s).claim_batch(20)],
        )

        all_claimed = [job_no for batch in claimed for job_no in batch]
        assert len(all_claimed) == len(set(all_claimed)) == 50
