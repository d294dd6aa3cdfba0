"""Tests for apicensus.usage.query -- statistics request bodies."""

from __future__ import annotations

from apicensus.models import MonitoringConfig
from apicensus.segments import plan_segments
from apicensus.usage import build_query_body


def test_body_shape(monitoring_config: MonitoringConfig) -> None:
    segment = plan_segments("20250105", "20250108")[0]
    body = build_query_body(segment, "/api", monitoring_config)

    assert body["type"] == "stat"
    assert body["path"] == "ap"
    assert body["pcode"] == 8
    assert body["stime"] == segment.start_ms
    assert body["etime"] == segment.end_ms

    params = body["params"]
    assert params["stime"] == body["stime"]
    assert params["etime"] == body["etime"]
    assert params["ptotal"] == 100
    assert params["psize"] == 10000
    assert params["skip"] == 0
    assert params["filter"] == {"service": "/api"}
    assert params["okinds"] == [101, 102]
    assert params["order"] == "countTotal"
    assert params["type"] == "service"


def test_window_is_four_days(monitoring_config: MonitoringConfig) -> None:
    segment = plan_segments("20250105", "20250108")[0]
    body = build_query_body(segment, "", monitoring_config)
    assert body["etime"] - body["stime"] == 4 * 24 * 3600 * 1000


def test_skip_passed_through(monitoring_config: MonitoringConfig) -> None:
    segment = plan_segments("20250105", "20250108")[0]
    assert build_query_body(segment, "", monitoring_config, skip=20000)["params"]["skip"] == 20000
