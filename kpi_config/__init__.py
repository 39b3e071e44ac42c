"""
kpi_config -- worker configuration.

Responsibility:
    The single place the recompute worker reads settings from: a YAML file
    (``kpi_config.loader``) parsed into frozen dataclasses
    (``kpi_config.schema``), with environment overrides on top.

Architecture position:
    Sits above ``kpi_kernel`` and below ``kpi_batch``.  The kernel never
    imports from this package; the worker passes the parsed values in.
"""

from kpi_config.loader import compute_checksum, load_config, load_yaml_file
from kpi_config.schema import KpiConfig, LedgerCandidates, WorkerSettings

__all__ = [
    "KpiConfig",
    "LedgerCandidates",
    "WorkerSettings",
    "compute_checksum",
    "load_config",
    "load_yaml_file",
]
