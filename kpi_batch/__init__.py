"""
kpi_batch -- one-shot KPI recompute worker.

Claims touches from the queue, coalesces them by (owner, day), and
recomputes each group in its own transaction with per-group failure
isolation.

Architecture:
    kpi_batch/ is a top-level package.  Nothing in kpi_kernel/ or
    kpi_config/ imports from kpi_batch.
"""
