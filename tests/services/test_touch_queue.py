"""
Tests for kpi_kernel.services.touch_queue -- enqueue, claim and coalescing.

Uses in-memory SQLite (no PostgreSQL required).  SKIP LOCKED behaviour is
covered by tests/concurrency.
"""

from datetime import date
from uuid import uuid4

import pytest

from kpi_kernel.domain.types import Touch, TouchGroup
from kpi_kernel.exceptions import InvalidDayError, InvalidOwnerIdError
from kpi_kernel.services.touch_queue import TouchQueue, group_touches

OWNER = "15551234567"
OTHER = "15559876543"
DAY = date(2024, 3, 4)


@pytest.fixture
def queue(session, deterministic_clock):
    return TouchQueue(session, deterministic_clock)


class TestEnqueue:
    def test_normalizes_owner_and_day(self, queue):
        touch = queue.enqueue("+1 (555) 123-4567", "2024-03-04", job_no="8")

        assert touch == Touch(owner_id=OWNER, day=DAY, job_no=8)
        assert queue.pending_count() == 1

    def test_job_is_optional(self, queue):
        assert queue.enqueue(OWNER, DAY).job_no is None

    def test_rejects_bad_owner(self, queue):
        with pytest.raises(InvalidOwnerIdError):
            queue.enqueue("n/a", DAY)
        assert queue.pending_count() == 0

    def test_rejects_bad_day(self, queue):
        with pytest.raises(InvalidDayError):
            queue.enqueue(OWNER, "not-a-day")

    def test_job_id_survives_claim(self, queue):
        job_id = uuid4()
        queue.enqueue(OWNER, DAY, job_id=str(job_id))

        (claimed,) = queue.claim_batch(10)

        assert claimed == Touch(owner_id=OWNER, day=DAY, job_no=None, job_id=job_id)

    def test_rejects_malformed_job_id(self, queue):
        with pytest.raises(ValueError):
            queue.enqueue(OWNER, DAY, job_id="job-eight")
        assert queue.pending_count() == 0


class TestClaimBatch:
    def test_claims_oldest_first_and_deletes(self, queue, deterministic_clock):
        for job_no in (1, 2, 3):
            queue.enqueue(OWNER, DAY, job_no)
            deterministic_clock.advance(5)

        claimed = queue.claim_batch(2)

        assert [t.job_no for t in claimed] == [1, 2]
        assert queue.pending_count() == 1
        assert [t.job_no for t in queue.claim_batch(10)] == [3]
        assert queue.pending_count() == 0

    def test_empty_queue(self, queue):
        assert queue.claim_batch(10) == []

    def test_non_positive_limit_claims_nothing(self, queue):
        queue.enqueue(OWNER, DAY)
        assert queue.claim_batch(0) == []
        assert queue.pending_count() == 1

    def test_claim_is_logged(self, queue, captured_logs):
        queue.enqueue(OWNER, DAY)
        queue.claim_batch(5)

        (record,) = [r for r in captured_logs() if r["message"] == "kpi_touches_claimed"]
        assert record["requested"] == 5
        assert record["claimed"] == 1


class TestGroupTouches:
    def test_three_touches_collapse_into_one_group(self):
        touches = [Touch(OWNER, DAY, 8)] * 3

        assert group_touches(touches) == (
            TouchGroup(owner_id=OWNER, day=DAY, job_nos=(8,), touch_count=3),
        )

    def test_groups_by_owner_and_day_in_first_seen_order(self):
        touches = [
            Touch(OTHER, DAY, 1),
            Touch(OWNER, DAY, None),
            Touch(OWNER, date(2024, 3, 5), 4),
            Touch(OTHER, DAY, 2),
            Touch(OWNER, DAY, 9),
            Touch(OTHER, DAY, 1),
        ]

        groups = group_touches(touches)

        assert [(g.owner_id, g.day, g.job_nos, g.touch_count) for g in groups] == [
            (OTHER, DAY, (1, 2), 3),
            (OWNER, DAY, (9,), 2),
            (OWNER, date(2024, 3, 5), (4,), 1),
        ]

    def test_job_ids_are_unioned(self):
        a, b = uuid4(), uuid4()
        touches = [
            Touch(OWNER, DAY, job_id=a),
            Touch(OWNER, DAY, 8, job_id=b),
            Touch(OWNER, DAY, job_id=a),
        ]

        (group,) = group_touches(touches)

        assert group.job_ids == (a, b)
        assert group.job_nos == (8,)
        assert group.touch_count == 3

    def test_group_key(self):
        assert TouchGroup(OWNER, DAY).key == f"{OWNER}:2024-03-04"

    def test_nothing_to_group(self):
        assert group_touches([]) == ()
