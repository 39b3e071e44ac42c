"""
kpi_batch.domain.types -- Pure frozen dataclasses for the recompute worker.

ZERO I/O.  Frozen dataclasses with enum status fields and tuples for
immutable collections.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum


class GroupStatus(str, Enum):
    """Outcome of one (owner, day) group.

    A touch moves Pending -> Claimed when the batch is claimed, then to
    Applied or Failed here.  Failed groups are logged, not re-enqueued.
    """

    APPLIED = "applied"
    FAILED = "failed"


class RunStatus(str, Enum):
    """Outcome of one worker invocation."""

    IDLE = "idle"  # Nothing to claim
    COMPLETED = "completed"  # Every group applied
    PARTIALLY_COMPLETED = "partially_completed"  # Some groups failed
    FAILED = "failed"  # Every group failed


@dataclass(frozen=True)
class RecomputeSummary:
    """What a successful recompute of one (owner, day) wrote."""

    rollups_written: int = 0
    kpi_jobs: tuple[int, ...] = ()
    finance_jobs: tuple[int, ...] = ()
    unattributed_minutes: int = 0


@dataclass(frozen=True)
class GroupResult:
    """Immutable result of processing one (owner, day) group."""

    owner_id: str
    day: date
    status: GroupStatus
    job_nos: tuple[int, ...] = ()
    touch_count: int = 0
    summary: RecomputeSummary | None = None
    error_code: str | None = None
    error_message: str | None = None
    duration_ms: int = 0

    @property
    def key(self) -> str:
        return f"{self.owner_id}:{self.day.isoformat()}"


@dataclass(frozen=True)
class RecomputeRunResult:
    """Immutable result of one ``KpiRefreshWorker.run_once()``."""

    run_id: str
    status: RunStatus
    claimed: int
    groups: int
    applied: int
    failed: int
    group_results: tuple[GroupResult, ...] = ()
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int = 0

    def to_dict(self) -> dict:
        """JSON-friendly summary (the CLI prints this)."""
        return {
            "run_id": self.run_id,
            "status": self.status.value,
            "claimed": self.claimed,
            "groups": self.groups,
            "applied": self.applied,
            "failed": self.failed,
            "duration_ms": self.duration_ms,
            "failures": [
                {
                    "group": r.key,
                    "error_code": r.error_code,
                    "error_message": r.error_message,
                }
                for r in self.group_results
                if r.status == GroupStatus.FAILED
            ],
        }
