"""Recompute worker services."""

from kpi_batch.services.recompute import OwnerDayRecomputer
from kpi_batch.services.worker import KpiRefreshWorker

__all__ = ["KpiRefreshWorker", "OwnerDayRecomputer"]
