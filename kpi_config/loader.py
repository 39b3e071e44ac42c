"""
Configuration Loader (``kpi_config.loader``).

Responsibility
--------------
Loads the worker's YAML configuration file, parses it into the frozen
``kpi_config.schema`` dataclasses, and applies environment overrides.

Invariants enforced
-------------------
* Every parse or validation problem raises ``ConfigurationError`` naming
  the offending key; no silent fallback for a value that was given.
* Precedence: defaults < YAML file < environment.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Bad value  -> ``ConfigurationError``.

Environment overrides
---------------------
    DATABASE_URL               database_url (POSTGRES_URL as fallback)
    KPI_BATCH_LIMIT            worker.batch_limit
    FEATURE_FINANCE_KPIS       worker.finance_enabled
    KPI_MAX_WORKERS            worker.max_workers
    KPI_STATEMENT_TIMEOUT_MS   worker.statement_timeout_ms
"""

from __future__ import annotations

import hashlib
import json
import os
from dataclasses import replace
from pathlib import Path
from typing import Any, Mapping

import yaml

from kpi_config.schema import LEDGER_FAMILIES, KpiConfig, LedgerCandidates, WorkerSettings
from kpi_kernel.exceptions import ConfigurationError

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off"})
_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ConfigurationError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(str(path), type(data).__name__, "top level must be a mapping")
    return data


def parse_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConfigurationError(key, value, "expected a boolean")


def parse_int(key: str, value: Any, minimum: int = 0) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(key, value, "expected an integer")
    try:
        number = int(str(value).strip())
    except ValueError:
        raise ConfigurationError(key, value, "expected an integer") from None
    if number < minimum:
        raise ConfigurationError(key, value, f"must be >= {minimum}")
    return number


def parse_float(key: str, value: Any, minimum: float = 0.0) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(key, value, "expected a number") from None
    if number < minimum:
        raise ConfigurationError(key, value, f"must be >= {minimum}")
    return number


def parse_relations(key: str, value: Any) -> tuple[str, ...]:
    """A relation list: a YAML sequence or a comma-separated string."""
    if isinstance(value, str):
        items = [part.strip() for part in value.split(",")]
    elif isinstance(value, (list, tuple)):
        items = [str(part).strip() for part in value]
    else:
        raise ConfigurationError(key, value, "expected a list of relation names")
    items = [item for item in items if item]
    if not items:
        raise ConfigurationError(key, value, "at least one relation is required")
    return tuple(items)


def parse_worker(data: Mapping[str, Any]) -> WorkerSettings:
    """Parse the ``worker:`` section; absent keys keep their defaults."""
    defaults = WorkerSettings()
    return WorkerSettings(
        batch_limit=parse_int(
            "worker.batch_limit", data.get("batch_limit", defaults.batch_limit), 1
        ),
        finance_enabled=parse_bool(
            "worker.finance_enabled",
            data.get("finance_enabled", defaults.finance_enabled),
        ),
        max_workers=parse_int(
            "worker.max_workers", data.get("max_workers", defaults.max_workers), 1
        ),
        statement_timeout_ms=parse_int(
            "worker.statement_timeout_ms",
            data.get("statement_timeout_ms", defaults.statement_timeout_ms),
        ),
        retry_attempts=parse_int(
            "worker.retry_attempts",
            data.get("retry_attempts", defaults.retry_attempts),
            1,
        ),
        retry_backoff_seconds=parse_float(
            "worker.retry_backoff_seconds",
            data.get("retry_backoff_seconds", defaults.retry_backoff_seconds),
        ),
    )


def parse_ledger(data: Mapping[str, Any]) -> LedgerCandidates:
    """Parse the ``ledger:`` section; unknown families are rejected."""
    unknown = sorted(set(data) - set(LEDGER_FAMILIES) - {"schema"})
    if unknown:
        raise ConfigurationError(
            "ledger", unknown, f"unknown ledger families (known: {', '.join(LEDGER_FAMILIES)})"
        )
    overrides: dict[str, Any] = {
        family: parse_relations(f"ledger.{family}", data[family])
        for family in LEDGER_FAMILIES
        if family in data
    }
    schema = data.get("schema")
    if schema is not None:
        overrides["schema"] = str(schema).strip() or None
    return replace(LedgerCandidates(), **overrides)


def _section(data: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigurationError(key, value, "section must be a mapping")
    return value


def parse_config(data: Mapping[str, Any]) -> KpiConfig:
    """Parse a whole configuration mapping."""
    log_level = str(data.get("log_level", "INFO")).upper()
    if log_level not in _LOG_LEVELS:
        raise ConfigurationError("log_level", log_level, "unknown log level")
    return KpiConfig(
        database_url=data.get("database_url") or None,
        log_level=log_level,
        worker=parse_worker(_section(data, "worker")),
        ledger=parse_ledger(_section(data, "ledger")),
    )


def apply_env_overrides(config: KpiConfig, env: Mapping[str, str]) -> KpiConfig:
    """Return ``config`` with environment overrides applied."""
    database_url = (
        (env.get("DATABASE_URL") or "").strip()
        or (env.get("POSTGRES_URL") or "").strip()
        or config.database_url
    )

    worker = config.worker
    updates: dict[str, Any] = {}
    if env.get("KPI_BATCH_LIMIT"):
        updates["batch_limit"] = parse_int("KPI_BATCH_LIMIT", env["KPI_BATCH_LIMIT"], 1)
    if env.get("FEATURE_FINANCE_KPIS"):
        updates["finance_enabled"] = parse_bool(
            "FEATURE_FINANCE_KPIS", env["FEATURE_FINANCE_KPIS"]
        )
    if env.get("KPI_MAX_WORKERS"):
        updates["max_workers"] = parse_int("KPI_MAX_WORKERS", env["KPI_MAX_WORKERS"], 1)
    if env.get("KPI_STATEMENT_TIMEOUT_MS"):
        updates["statement_timeout_ms"] = parse_int(
            "KPI_STATEMENT_TIMEOUT_MS", env["KPI_STATEMENT_TIMEOUT_MS"]
        )
    if updates:
        worker = replace(worker, **updates)

    return replace(config, database_url=database_url, worker=worker)


def load_config(
    path: Path | str | None = None,
    env: Mapping[str, str] | None = None,
) -> KpiConfig:
    """
    Build the effective configuration.

    Args:
        path: Optional YAML file; defaults apply when omitted.
        env: Environment mapping; ``os.environ`` when omitted.
    """
    data = load_yaml_file(Path(path)) if path is not None else {}
    config = parse_config(data)
    return apply_env_overrides(config, os.environ if env is None else env)


def compute_checksum(config: KpiConfig) -> str:
    """Deterministic SHA-256 of the effective configuration (URL redacted)."""
    canonical = json.dumps(config.to_dict(), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
