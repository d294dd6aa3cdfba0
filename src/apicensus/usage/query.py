"""Request bodies for the monitoring ``stat`` endpoint."""

from __future__ import annotations

from typing import Any

from apicensus.models import DateSegment, MonitoringConfig


def build_query_body(
    segment: DateSegment,
    service_filter: str,
    config: MonitoringConfig,
    skip: int = 0,
) -> dict[str, Any]:
    """Build the JSON body of one statistics query.

    The time window is ``[segment.start, segment.end)`` in epoch
    milliseconds and is sent twice, inside ``params`` and at the top level,
    as the endpoint expects.

    Args:
        segment: Query window.
        service_filter: Service-name substring; ``""`` means no filter.
        config: Supplies the project code, agent groups and paging sizes.
        skip: Records to skip (non-zero only when paginating).
    """
    stime = segment.start_ms
    etime = segment.end_ms
    return {
        "type": "stat",
        "path": "ap",
        "pcode": config.project_code,
        "params": {
            "stime": stime,
            "etime": etime,
            "ptotal": config.page_total,
            "skip": skip,
            "psize": config.page_size,
            "filter": {"service": service_filter},
            "okinds": list(config.okinds),
            "order": "countTotal",
            "type": "service",
        },
        "stime": stime,
        "etime": etime,
    }
