"""Tests for apicensus.pipeline -- end-to-end runs."""

from __future__ import annotations

import json
import subprocess
from pathlib import Path
from typing import Any

import httpx
import pytest
from openpyxl import load_workbook

from apicensus.exceptions import ConfigurationError, SourceTreeError
from apicensus.models import MonitoringConfig, RepositoryConfig, RunConfig
from apicensus.pipeline import collect_usage_report, run_audit

TIMESTAMP = "20250301_090000"


@pytest.fixture(autouse=True)
def _no_git(monkeypatch: pytest.MonkeyPatch) -> None:
    """Answer every git invocation with a single commit."""

    def run(args: list[str], **kwargs: Any) -> subprocess.CompletedProcess:
        return subprocess.CompletedProcess(args, 0, stdout="2025-01-02|kim|init\n", stderr="")

    monkeypatch.setattr(subprocess, "run", run)


def _monitoring_transport(calls: list[dict] | None = None) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        if calls is not None:
            calls.append(body)
        return httpx.Response(
            200,
            json={
                "records": [
                    {"service": "/api/orders/{id}", "count": 4},
                    {"service": "/api/not-in-source", "count": 2},
                ]
            },
        )

    return httpx.MockTransport(handler)


def _run_config(
    tmp_path: Path,
    repository_config: RepositoryConfig,
    monitoring: MonitoringConfig,
) -> RunConfig:
    return RunConfig(
        output_dir=str(tmp_path / "out"),
        monitoring=monitoring,
        repository=repository_config,
    )


class TestRunAudit:
    def test_full_run(
        self,
        quiet_output,
        tmp_path: Path,
        repository_config: RepositoryConfig,
        monitoring_config: MonitoringConfig,
    ) -> None:
        config = _run_config(tmp_path, repository_config, monitoring_config)
        summary = run_audit(config, timestamp=TIMESTAMP, transport=_monitoring_transport())

        base = "api-inventory_orders-api_controllers-3_apis-8_" + TIMESTAMP
        assert summary.file_count == 3
        assert summary.endpoint_count == 8
        assert summary.monitored_paths == 2
        assert summary.unused_count == 7
        assert summary.workbook_path == tmp_path / "out" / f"{base}.xlsx"
        assert summary.log_path == tmp_path / "out" / f"{base}.log"
        assert summary.workbook_path.is_file()
        assert summary.log_path.is_file()
        assert not (tmp_path / "out" / f"apicensus_{TIMESTAMP}.log").exists()

        wb = load_workbook(summary.workbook_path)
        assert wb.sheetnames == ["API_orders-api", "Usage_payments"]
        rows = list(wb["API_orders-api"].iter_rows(min_row=2, values_only=True))
        by_path = {row[2]: row for row in rows}
        # Two segments with four calls each.
        assert by_path["/api/orders/{id}"][17] == 8
        assert by_path["/health"][17] == 0

    def test_run_log_contents(
        self,
        quiet_output,
        tmp_path: Path,
        repository_config: RepositoryConfig,
        monitoring_config: MonitoringConfig,
    ) -> None:
        config = _run_config(tmp_path, repository_config, monitoring_config)
        summary = run_audit(config, timestamp=TIMESTAMP, transport=_monitoring_transport())

        text = summary.log_path.read_text(encoding="utf-8")
        assert "COOKIE" in text
        assert "abc123" not in text
        assert "[HTTP REQUEST]" in text
        assert "[Found-Regex]" in text
        assert "Elapsed:" in text

    def test_collection_config_error_degrades(
        self,
        quiet_output,
        tmp_path: Path,
        repository_config: RepositoryConfig,
    ) -> None:
        monitoring = MonitoringConfig(enabled=True, start_date="20250101", end_date="20250102")
        config = _run_config(tmp_path, repository_config, monitoring)
        summary = run_audit(config, timestamp=TIMESTAMP)

        assert summary.monitored_paths == 0
        assert summary.unused_count == summary.endpoint_count == 8
        wb = load_workbook(summary.workbook_path)
        assert wb.sheetnames == ["API_orders-api"]
        assert "Usage collection skipped" in summary.log_path.read_text(encoding="utf-8")

    def test_without_output_dir(
        self,
        quiet_output,
        repository_config: RepositoryConfig,
    ) -> None:
        config = RunConfig(repository=repository_config)
        summary = run_audit(config, timestamp=TIMESTAMP)
        assert summary.workbook_path is None
        assert summary.log_path is None
        assert summary.endpoint_count == 8

    def test_dry_run_writes_nothing(
        self,
        quiet_output,
        tmp_path: Path,
        repository_config: RepositoryConfig,
        monitoring_config: MonitoringConfig,
    ) -> None:
        calls: list[dict] = []
        config = _run_config(tmp_path, repository_config, monitoring_config)
        summary = run_audit(
            config, dry_run=True, timestamp=TIMESTAMP, transport=_monitoring_transport(calls)
        )
        assert calls == []
        assert summary.workbook_path is None
        assert not (tmp_path / "out").exists()

    def test_missing_source_root_aborts(
        self,
        quiet_output,
        tmp_path: Path,
    ) -> None:
        config = RunConfig(
            output_dir=str(tmp_path / "out"),
            repository=RepositoryConfig(name="x", root_path=str(tmp_path / "missing")),
        )
        with pytest.raises(SourceTreeError):
            run_audit(config, timestamp=TIMESTAMP)
        # The provisional run log is kept and closed.
        assert (tmp_path / "out" / f"apicensus_{TIMESTAMP}.log").is_file()


class TestCollectUsageReport:
    def test_writes_usage_workbook(
        self,
        quiet_output,
        tmp_path: Path,
        monitoring_config: MonitoringConfig,
    ) -> None:
        config = RunConfig(
            output_dir=str(tmp_path / "out"),
            monitoring=monitoring_config.model_copy(update={"enabled": False}),
        )
        summary = collect_usage_report(config, timestamp=TIMESTAMP, transport=_monitoring_transport())

        base = f"usage-stats_payments_20250125-20250205_{TIMESTAMP}"
        assert summary.workbook_path == tmp_path / "out" / f"{base}.xlsx"
        assert summary.log_path == tmp_path / "out" / f"{base}.log"
        assert summary.monitored_paths == 2

        ws = load_workbook(summary.workbook_path).active
        assert ws.title == "Usage_payments"
        assert [row[:2] for row in ws.iter_rows(min_row=2, values_only=True)] == [
            ("/api/orders/{id}", 8),
            ("/api/not-in-source", 4),
        ]

    def test_invalid_dates_raise(self, quiet_output, tmp_path: Path) -> None:
        config = RunConfig(
            output_dir=str(tmp_path / "out"),
            monitoring=MonitoringConfig(url="https://monitoring.test"),
        )
        with pytest.raises(ConfigurationError):
            collect_usage_report(config, timestamp=TIMESTAMP)
