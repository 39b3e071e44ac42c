"""Pure DTOs for the recompute worker."""

from kpi_batch.domain.types import (
    GroupResult,
    GroupStatus,
    RecomputeRunResult,
    RecomputeSummary,
    RunStatus,
)

__all__ = [
    "GroupResult",
    "GroupStatus",
    "RecomputeRunResult",
    "RecomputeSummary",
    "RunStatus",
]
