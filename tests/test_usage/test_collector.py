"""Tests for apicensus.usage.collector -- parallel usage collection."""

from __future__ import annotations

import json
import threading
import time
from typing import Any

import httpx
import pytest

from apicensus.exceptions import ConfigurationError
from apicensus.models import MonitoringConfig
from apicensus.segments import plan_segments
from apicensus.usage import collect, collect_for_config


def _handler_by_window(counts: dict[int, list[dict[str, Any]]], calls: list[dict] | None = None):
    """Answer with the records registered for the request's ``stime``."""
    lock = threading.Lock()

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        with lock:
            if calls is not None:
                calls.append(body)
        return httpx.Response(200, json={"records": counts.get(body["stime"], [])})

    return handler


class TestCollect:
    def test_accumulates_per_segment(
        self, quiet_output, monitoring_config: MonitoringConfig
    ) -> None:
        segments = plan_segments("20250125", "20250205")
        counts = {
            segments[0].start_ms: [{"service": "/a", "count": 3}, {"service": "/b", "count": 1}],
            segments[1].start_ms: [{"service": "/a", "count": 5}],
        }
        table = collect(
            segments,
            [""],
            monitoring_config,
            transport=httpx.MockTransport(_handler_by_window(counts)),
        )
        assert table.frozen
        assert table.counts("/a")[:2] == [3, 5]
        assert table.total("/b") == 1

    def test_one_query_per_segment_and_filter(
        self, quiet_output, monitoring_config: MonitoringConfig
    ) -> None:
        calls: list[dict] = []
        segments = plan_segments("20250101", "20250131")
        collect(
            segments,
            ["/app", "/api"],
            monitoring_config,
            transport=httpx.MockTransport(_handler_by_window({}, calls)),
        )
        assert len(calls) == 6
        pairs = {(c["stime"], c["params"]["filter"]["service"]) for c in calls}
        assert pairs == {(s.start_ms, f) for s in segments for f in ("/app", "/api")}

    def test_filters_sum_into_same_slot(
        self, quiet_output, monitoring_config: MonitoringConfig
    ) -> None:
        segments = plan_segments("20250101", "20250105")
        counts = {segments[0].start_ms: [{"service": "/a", "count": 2}]}
        table = collect(
            segments,
            ["/x", "/y"],
            monitoring_config,
            transport=httpx.MockTransport(_handler_by_window(counts)),
        )
        assert table.total("/a") == 4

    def test_failed_pair_contributes_nothing(
        self, quiet_output, monitoring_config: MonitoringConfig
    ) -> None:
        segments = plan_segments("20250101", "20250120")
        failing = segments[1].start_ms

        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            if body["stime"] == failing:
                return httpx.Response(500, text="boom")
            return httpx.Response(200, json={"records": [{"service": "/a", "count": 1}]})

        table = collect(segments, [""], monitoring_config, transport=httpx.MockTransport(handler))
        assert table.counts("/a")[:2] == [1, 0]

    def test_disabled_sends_nothing(self, quiet_output) -> None:
        calls: list[dict] = []
        config = MonitoringConfig(enabled=False, url="https://monitoring.test")
        table = collect(
            plan_segments("20250101", "20250105"),
            [""],
            config,
            transport=httpx.MockTransport(_handler_by_window({}, calls)),
        )
        assert calls == []
        assert len(table) == 0
        assert table.frozen

    def test_missing_url(self, quiet_output) -> None:
        config = MonitoringConfig(enabled=True)
        with pytest.raises(ConfigurationError, match="url"):
            collect(plan_segments("20250101", "20250105"), [""], config)

    def test_dry_run_sends_nothing(self, quiet_output) -> None:
        calls: list[dict] = []
        config = MonitoringConfig(enabled=True)
        table = collect(
            plan_segments("20250101", "20250105"),
            [""],
            config,
            dry_run=True,
            transport=httpx.MockTransport(_handler_by_window({}, calls)),
        )
        assert calls == []
        assert len(table) == 0


class TestWorkerPool:
    def test_requests_bounded_by_max_workers(
        self, quiet_output, monitoring_config: MonitoringConfig
    ) -> None:
        segments = plan_segments("20250101", "20250331")
        assert len(segments) == 9
        lock = threading.Lock()
        state = {"active": 0, "peak": 0, "calls": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            with lock:
                state["active"] += 1
                state["calls"] += 1
                state["peak"] = max(state["peak"], state["active"])
            time.sleep(0.05)
            with lock:
                state["active"] -= 1
            return httpx.Response(200, json={"records": [{"service": "/a", "count": 1}]})

        config = monitoring_config.model_copy(update={"max_workers": 3})
        table = collect(segments, [""], config, transport=httpx.MockTransport(handler))

        assert state["calls"] == 9
        assert 2 <= state["peak"] <= 3
        assert table.total("/a") == 9


class TestPagination:
    def _paged_handler(self, pages: list[list[dict[str, Any]]], calls: list[dict]):
        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            calls.append(body)
            index = body["params"]["skip"] // body["params"]["psize"]
            records = pages[index] if index < len(pages) else []
            return httpx.Response(200, json={"records": records})

        return handler

    def test_full_page_without_paginate_stops(
        self, quiet_output, monitoring_config: MonitoringConfig
    ) -> None:
        config = monitoring_config.model_copy(update={"page_size": 2})
        pages = [
            [{"service": "/a", "count": 1}, {"service": "/b", "count": 1}],
            [{"service": "/c", "count": 1}],
        ]
        calls: list[dict] = []
        table = collect(
            plan_segments("20250101", "20250105"),
            [""],
            config,
            transport=httpx.MockTransport(self._paged_handler(pages, calls)),
        )
        assert len(calls) == 1
        assert "/c" not in table

    def test_paginate_follows_pages(
        self, quiet_output, monitoring_config: MonitoringConfig
    ) -> None:
        config = monitoring_config.model_copy(update={"page_size": 2, "paginate": True})
        pages = [
            [{"service": "/a", "count": 1}, {"service": "/b", "count": 1}],
            [{"service": "/a", "count": 4}],
        ]
        calls: list[dict] = []
        table = collect(
            plan_segments("20250101", "20250105"),
            [""],
            config,
            transport=httpx.MockTransport(self._paged_handler(pages, calls)),
        )
        assert [c["params"]["skip"] for c in calls] == [0, 2]
        assert table.total("/a") == 5

    def test_server_ignoring_skip_stops_on_repeated_page(
        self, quiet_output, monitoring_config: MonitoringConfig
    ) -> None:
        config = monitoring_config.model_copy(update={"page_size": 2, "paginate": True})
        full_page = [{"service": "/a", "count": 1}, {"service": "/b", "count": 1}]
        calls: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(json.loads(request.content))
            return httpx.Response(200, json={"records": full_page})

        table = collect(
            plan_segments("20250101", "20250105"),
            [""],
            config,
            transport=httpx.MockTransport(handler),
        )
        assert len(calls) == 2
        assert table.total("/a") == 1
        assert table.total("/b") == 1

    def test_paging_capped_at_page_total(
        self, quiet_output, monitoring_config: MonitoringConfig
    ) -> None:
        config = monitoring_config.model_copy(
            update={"page_size": 2, "paginate": True, "page_total": 3}
        )
        calls: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            calls.append(body)
            skip = body["params"]["skip"]
            records = [{"service": f"/p{skip + i}", "count": 1} for i in range(2)]
            return httpx.Response(200, json={"records": records})

        table = collect(
            plan_segments("20250101", "20250105"),
            [""],
            config,
            transport=httpx.MockTransport(handler),
        )
        assert [c["params"]["skip"] for c in calls] == [0, 2, 4]
        assert len(table) == 6


class TestCollectForConfig:
    def test_plans_configured_range(
        self, quiet_output, monitoring_config: MonitoringConfig
    ) -> None:
        segments, table = collect_for_config(
            monitoring_config,
            transport=httpx.MockTransport(_handler_by_window({})),
        )
        assert [s.label for s in segments] == ["2025-01-25~31", "2025-02-01~5"]
        assert table.segment_count == 2

    def test_disabled_returns_empty(self, quiet_output) -> None:
        segments, table = collect_for_config(MonitoringConfig())
        assert segments == []
        assert len(table) == 0

    def test_bad_dates(self, quiet_output, monitoring_config: MonitoringConfig) -> None:
        config = monitoring_config.model_copy(update={"start_date": "2025"})
        with pytest.raises(ConfigurationError):
            collect_for_config(config)
