"""
KpiOrchestrator -- DI container for the recompute worker.

Contract:
    Composes the engine, session factory, clock and configuration into a
    ready-to-run KpiRefreshWorker.  Single place where worker dependencies
    are wired; the CLI and tests both go through it.

Invariants enforced:
    - Clock injection: every service receives the same Clock.
    - No kernel module imports from kpi_batch.
"""

from __future__ import annotations

from typing import Callable

from sqlalchemy.orm import Session

from kpi_batch.domain.types import RecomputeRunResult
from kpi_batch.services.worker import KpiRefreshWorker
from kpi_config.loader import compute_checksum
from kpi_config.schema import KpiConfig
from kpi_kernel.db.engine import create_tables, get_session_factory, init_engine_from_url
from kpi_kernel.domain.clock import Clock, SystemClock
from kpi_kernel.exceptions import ConfigurationError
from kpi_kernel.logging_config import get_logger
from kpi_kernel.services.touch_queue import TouchQueue

logger = get_logger("batch.orchestrator")


class KpiOrchestrator:
    """DI container for the KPI recompute worker.

    Contract:
        - ``from_config()`` initializes the engine and returns a wired
          orchestrator.
        - ``create_worker()`` returns a KpiRefreshWorker.
        - ``run_once()`` runs a single batch.

    Non-goals:
        - Does NOT schedule runs -- cron (or any scheduler) calls the CLI.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        config: KpiConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._config = config or KpiConfig()
        self._clock = clock or SystemClock()

    # -------------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------------

    @classmethod
    def from_config(
        cls,
        config: KpiConfig,
        clock: Clock | None = None,
        create_schema: bool = False,
    ) -> KpiOrchestrator:
        """Initialize the engine from ``config.database_url`` and wire the worker.

        Raises:
            ConfigurationError: No database URL configured.
        """
        if not config.database_url:
            raise ConfigurationError(
                "database_url", None, "set DATABASE_URL or database_url in the config file"
            )
        engine = init_engine_from_url(
            config.database_url,
            statement_timeout_ms=config.worker.statement_timeout_ms or None,
            pool_size=max(config.worker.max_workers, 1),
        )
        if create_schema:
            create_tables(engine)

        logger.info(
            "kpi_config_trace",
            extra={
                "checksum": compute_checksum(config),
                "config": config.to_dict(),
            },
        )
        return cls(get_session_factory(), config=config, clock=clock)

    # -------------------------------------------------------------------------
    # Components
    # -------------------------------------------------------------------------

    def create_worker(self) -> KpiRefreshWorker:
        return KpiRefreshWorker(
            self._session_factory,
            settings=self._config.worker,
            ledger=self._config.ledger,
            clock=self._clock,
        )

    def touch_queue(self, session: Session) -> TouchQueue:
        return TouchQueue(session, self._clock)

    def run_once(self, limit: int | None = None) -> RecomputeRunResult:
        return self.create_worker().run_once(limit)

    @property
    def config(self) -> KpiConfig:
        return self._config

    @property
    def clock(self) -> Clock:
        return self._clock
