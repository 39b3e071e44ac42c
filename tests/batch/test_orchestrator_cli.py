"""
Tests for kpi_batch.orchestrator and the kpi-refresh entry point.

These go through the module-level engine in kpi_kernel.db.engine, so each
test resets it afterwards.
"""

import json

import pytest

from kpi_batch.cli import main
from kpi_batch.domain.types import RunStatus
from kpi_batch.orchestrator import KpiOrchestrator
from kpi_config.schema import KpiConfig, WorkerSettings
from kpi_kernel.db.engine import reset_engine
from kpi_kernel.domain.clock import DeterministicClock
from kpi_kernel.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def _reset_global_engine(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("POSTGRES_URL", raising=False)
    yield
    reset_engine()


@pytest.fixture
def sqlite_url(tmp_path):
    return f"sqlite:///{tmp_path / 'kpi.db'}"


class TestOrchestrator:
    def test_from_config_requires_database_url(self):
        with pytest.raises(ConfigurationError) as exc_info:
            KpiOrchestrator.from_config(KpiConfig())
        assert exc_info.value.key == "database_url"

    def test_wires_worker_with_config_and_clock(self, sqlite_url, captured_logs):
        clock = DeterministicClock()
        config = KpiConfig(database_url=sqlite_url, worker=WorkerSettings(batch_limit=7))

        orchestrator = KpiOrchestrator.from_config(config, clock=clock, create_schema=True)
        result = orchestrator.run_once()

        assert orchestrator.clock is clock
        assert orchestrator.config.worker.batch_limit == 7
        assert result.status == RunStatus.IDLE
        assert result.started_at == clock.now_utc()
        (trace,) = [r for r in captured_logs() if r["message"] == "kpi_config_trace"]
        assert trace["config"]["worker"]["batch_limit"] == 7

    def test_touch_queue_shares_clock(self, session):
        clock = DeterministicClock()
        queue = KpiOrchestrator(lambda: session, clock=clock).touch_queue(session)
        assert queue.clock is clock


class TestCli:
    def test_idle_run_prints_summary(self, sqlite_url, capsys):
        exit_code = main(["--database-url", sqlite_url, "--create-tables", "--limit", "5"])

        assert exit_code == 0
        summary = json.loads(capsys.readouterr().out)
        assert summary["status"] == "idle"
        assert summary["claimed"] == 0
        assert summary["failures"] == []

    def test_config_file_and_flags(self, sqlite_url, tmp_path, capsys, captured_logs):
        config_path = tmp_path / "worker.yaml"
        config_path.write_text(f"database_url: {sqlite_url}\nworker:\n  batch_limit: 3\n")

        exit_code = main(["--config", str(config_path), "--create-tables", "--no-finance"])

        assert exit_code == 0
        (loaded,) = [r for r in captured_logs() if r["message"] == "kpi_config_loaded"]
        assert loaded["config_path"] == str(config_path)
        assert len(loaded["checksum"]) == 64

    def test_missing_database_url_exits_1(self, capsys):
        assert main([]) == 1
        assert "database_url" in capsys.readouterr().err

    def test_invalid_flag_value_exits_1(self, sqlite_url, capsys):
        assert main(["--database-url", sqlite_url, "--max-workers", "0"]) == 1
        assert "--max-workers" in capsys.readouterr().err

    def test_missing_tables_exit_1(self, sqlite_url, capsys):
        assert main(["--database-url", sqlite_url]) == 1
