"""
Configuration schema (``kpi_config.schema``).

Frozen dataclasses describing everything the recompute worker can be
configured with.  Defaults are production defaults; a YAML file and the
environment only override them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from kpi_kernel.services.ledger_sources import DEFAULT_LEDGER_CANDIDATES

LEDGER_FAMILIES = tuple(DEFAULT_LEDGER_CANDIDATES)


@dataclass(frozen=True)
class WorkerSettings:
    """Batch worker knobs."""

    batch_limit: int = 200
    finance_enabled: bool = True
    max_workers: int = 1
    statement_timeout_ms: int = 9000
    retry_attempts: int = 3
    retry_backoff_seconds: float = 0.2


@dataclass(frozen=True)
class LedgerCandidates:
    """Candidate relation names per ledger family, highest priority first."""

    revenue: tuple[str, ...] = DEFAULT_LEDGER_CANDIDATES["revenue"]
    expenses: tuple[str, ...] = DEFAULT_LEDGER_CANDIDATES["expenses"]
    invoices: tuple[str, ...] = DEFAULT_LEDGER_CANDIDATES["invoices"]
    bills: tuple[str, ...] = DEFAULT_LEDGER_CANDIDATES["bills"]
    change_orders: tuple[str, ...] = DEFAULT_LEDGER_CANDIDATES["change_orders"]
    estimates: tuple[str, ...] = DEFAULT_LEDGER_CANDIDATES["estimates"]
    schema: str | None = None

    def as_mapping(self) -> dict[str, tuple[str, ...]]:
        return {family: getattr(self, family) for family in LEDGER_FAMILIES}


@dataclass(frozen=True)
class KpiConfig:
    """Complete worker configuration."""

    database_url: str | None = None
    log_level: str = "INFO"
    worker: WorkerSettings = field(default_factory=WorkerSettings)
    ledger: LedgerCandidates = field(default_factory=LedgerCandidates)

    def to_dict(self) -> dict[str, Any]:
        """Plain representation for logging and checksums (URL redacted)."""
        return {
            "database_url": _redact(self.database_url),
            "log_level": self.log_level,
            "worker": {
                "batch_limit": self.worker.batch_limit,
                "finance_enabled": self.worker.finance_enabled,
                "max_workers": self.worker.max_workers,
                "statement_timeout_ms": self.worker.statement_timeout_ms,
                "retry_attempts": self.worker.retry_attempts,
                "retry_backoff_seconds": self.worker.retry_backoff_seconds,
            },
            "ledger": {
                **{k: list(v) for k, v in self.ledger.as_mapping().items()},
                "schema": self.ledger.schema,
            },
        }


def _redact(url: str | None) -> str | None:
    if not url or "@" not in url or "://" not in url:
        return url
    scheme, rest = url.split("://", 1)
    credentials, host = rest.rsplit("@", 1)
    user = credentials.split(":", 1)[0]
    return f"{scheme}://{user}:***@{host}"
