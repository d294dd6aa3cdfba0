"""Tests for apicensus.inventory -- building the endpoint inventory."""

from __future__ import annotations

from pathlib import Path

import pytest

from apicensus.exceptions import SourceTreeError
from apicensus.inventory import build_inventory
from apicensus.models import PLACEHOLDER_COMMIT, CommitEntry, RepositoryConfig


class FakeHistory:
    """Records lookups and answers with one commit per file."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, int]] = []

    def lookup(self, relative_path: str, count: int = 3) -> list[CommitEntry]:
        self.calls.append((relative_path, count))
        commit = CommitEntry(date="2025-01-02", author="kim", subject=f"edit {relative_path}")
        return [commit] + [PLACEHOLDER_COMMIT] * (count - 1)


class TestBuildInventory:
    def test_collects_all_controllers(
        self, quiet_output, repository_config: RepositoryConfig
    ) -> None:
        inventory = build_inventory(repository_config, history=FakeHistory(), max_workers=2)

        assert inventory.file_count == 3
        assert [e.path for e in inventory.endpoints] == [
            "/api/orders",
            "/api/orders",
            "/api/orders/legacy",
            "/api/orders/search",
            "/api/orders/{id}",
            "/api/users/{id}",
            "/api/users/{id}",
            "/health",
        ]
        assert inventory.strategy_counts == {"parsed": 2, "fallback": 1}

    def test_history_attached(self, quiet_output, repository_config: RepositoryConfig) -> None:
        history = FakeHistory()
        inventory = build_inventory(repository_config, history=history)

        health = next(e for e in inventory.endpoints if e.path == "/health")
        assert health.source_file == "main/java/com/example/health/HealthConrtoller.java"
        assert health.controller_name == "HealthConrtoller.java"
        assert len(health.commit_history) == 3
        assert health.commit_history[0].subject == f"edit {health.source_file}"
        assert sorted(count for _, count in history.calls) == [3, 3, 3]

    def test_progress_lines(
        self, repository_config: RepositoryConfig, tmp_path: Path
    ) -> None:
        from apicensus.output import OutputFormat, OutputManager, set_output

        output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
        set_output(output)
        log = tmp_path / "run.log"
        output.attach_log_file(log)
        build_inventory(repository_config, history=FakeHistory())
        output.detach_log_file()

        text = log.read_text(encoding="utf-8")
        assert "[1/3]" in text and "[3/3]" in text
        assert "(latest commit: 2025-01-02 | kim)" in text
        assert "[Found] /health" in text
        assert "[Found-Regex] /api/users/{id}" in text

    def test_unreadable_file_is_skipped(
        self, quiet_output, repository_config: RepositoryConfig, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        original = Path.read_text

        def read_text(self: Path, *args, **kwargs) -> str:
            if self.name == "HealthConrtoller.java":
                raise PermissionError("denied")
            return original(self, *args, **kwargs)

        monkeypatch.setattr(Path, "read_text", read_text)
        inventory = build_inventory(repository_config, history=FakeHistory())
        assert "/health" not in [e.path for e in inventory.endpoints]
        assert inventory.strategy_counts["failed"] == 1

    def test_missing_root(self, quiet_output, tmp_path: Path) -> None:
        config = RepositoryConfig(name="x", root_path=str(tmp_path / "missing"))
        with pytest.raises(SourceTreeError):
            build_inventory(config, history=FakeHistory())
