"""
Run one KPI recompute batch: claim touches, recompute each (owner, day), exit.

Intended to be invoked by cron (or any scheduler) every few minutes.  The
configuration comes from an optional YAML file, then the environment, then
the flags below (highest precedence).

Usage:
    kpi-refresh [--config worker.yaml] [options]

Examples:
    # Defaults + DATABASE_URL from the environment
    kpi-refresh

    # Larger batch, four groups in parallel, no finance metrics
    kpi-refresh --limit 1000 --max-workers 4 --no-finance

    # Local SQLite smoke run
    kpi-refresh --database-url sqlite:///kpi.db --create-tables

Exit status is 0 when the batch ran (even if some groups failed; see the
JSON summary on stdout) and 1 when the worker could not start or claim.
"""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import replace
from pathlib import Path
from typing import Sequence

from sqlalchemy.exc import SQLAlchemyError

from kpi_batch.orchestrator import KpiOrchestrator
from kpi_config.loader import compute_checksum, load_config, parse_int
from kpi_config.schema import KpiConfig
from kpi_kernel.exceptions import KpiKernelError
from kpi_kernel.logging_config import configure_logging, get_logger

logger = get_logger("batch.cli")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="kpi-refresh",
        description="Recompute per-job daily KPIs for touched (owner, day) pairs.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML configuration file (default: built-in defaults).",
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="Database URL (default: config file, then DATABASE_URL / POSTGRES_URL).",
    )
    parser.add_argument(
        "--limit",
        default=None,
        help="Maximum touches to claim in this run (default: worker.batch_limit).",
    )
    parser.add_argument(
        "--max-workers",
        default=None,
        help="Groups to recompute concurrently (default: worker.max_workers).",
    )
    parser.add_argument(
        "--no-finance",
        action="store_true",
        help="Skip finance metrics; write time-derived fields only.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (default: config log_level).",
    )
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create the kernel tables before running (ledger relations are not created).",
    )
    return parser.parse_args(argv)


def _apply_flags(config: KpiConfig, args: argparse.Namespace) -> KpiConfig:
    worker = config.worker
    if args.limit is not None:
        worker = replace(worker, batch_limit=parse_int("--limit", args.limit, 1))
    if args.max_workers is not None:
        worker = replace(
            worker, max_workers=parse_int("--max-workers", args.max_workers, 1)
        )
    if args.no_finance:
        worker = replace(worker, finance_enabled=False)
    return replace(
        config,
        database_url=args.database_url or config.database_url,
        log_level=args.log_level or config.log_level,
        worker=worker,
    )


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    try:
        config = _apply_flags(load_config(args.config), args)
    except (KpiKernelError, OSError, ValueError) as e:
        configure_logging(level=args.log_level or "INFO")
        logger.error("kpi_config_invalid", extra={"error": str(e)})
        print(f"ERROR: Failed to load config: {e}", file=sys.stderr)
        return 1

    configure_logging(level=config.log_level)
    logger.info(
        "kpi_config_loaded",
        extra={
            "checksum": compute_checksum(config),
            "config_path": str(args.config) if args.config else None,
        },
    )

    try:
        orchestrator = KpiOrchestrator.from_config(
            config, create_schema=args.create_tables
        )
        result = orchestrator.run_once()
    except (KpiKernelError, SQLAlchemyError) as e:
        logger.error("kpi_worker_fatal", extra={"error": str(e)}, exc_info=True)
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    print(json.dumps(result.to_dict(), sort_keys=True))
    return 0


if __name__ == "__main__":
    sys.exit(main())
