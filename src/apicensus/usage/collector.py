"""Parallel collection of per-endpoint call counts.

:func:`collect` issues one statistics query per (segment, filter) pair on a
small fixed worker pool and accumulates the returned counts into a
:class:`~apicensus.usage.table.UsageTable`, indexed by the segment's
position. Each pair is independent: a failed query is logged and
contributes zero, and its siblings carry on. A pair's counts are merged
only after all of its pages arrived, so a pair never contributes a partial
result.

The pool is deliberately small (three workers by default) to stay within
the monitoring API's rate limits.
"""

from __future__ import annotations

from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import httpx

from apicensus.client import MonitoringClient, sum_records
from apicensus.exceptions import CollectionRequestError, ConfigurationError
from apicensus.models import DateSegment, MonitoringConfig
from apicensus.output import debug, error, info, warning
from apicensus.segments import plan_segments
from apicensus.usage.query import build_query_body
from apicensus.usage.table import UsageTable


def collect(
    segments: Sequence[DateSegment],
    filters: Sequence[str],
    config: MonitoringConfig,
    *,
    dry_run: bool = False,
    transport: Optional[httpx.BaseTransport] = None,
) -> UsageTable:
    """Collect usage counts for every (segment, filter) pair.

    Args:
        segments: Query windows; slot ``i`` of every path belongs to
            ``segments[i]``.
        filters: Service-name filters, one query per segment each. An empty
            sequence is treated as ``[""]`` (no filter).
        config: Monitoring settings.
        dry_run: Print the queries instead of sending them.
        transport: Optional :mod:`httpx` transport (tests).

    Returns:
        The frozen table. Empty, without any request, when collection is
        disabled.

    Raises:
        ConfigurationError: If collection is enabled but no URL is set.
    """
    table = UsageTable(len(segments))
    if not config.enabled:
        debug("Usage collection disabled; skipping monitoring queries.")
        return table.freeze()
    if not config.url and not dry_run:
        raise ConfigurationError("monitoring.url is not set")

    service_filters = list(filters) or [""]
    pairs = [
        (index, segment, service_filter)
        for index, segment in enumerate(segments)
        for service_filter in service_filters
    ]
    info(
        f"Collecting usage for {config.okinds_name}: {len(segments)} segments x "
        f"{len(service_filters)} filters = {len(pairs)} queries "
        f"({config.max_workers} workers)"
    )

    with MonitoringClient(config, dry_run=dry_run, transport=transport) as client:
        with ThreadPoolExecutor(
            max_workers=max(1, config.max_workers),
            thread_name_prefix="usage",
        ) as pool:
            futures = [
                pool.submit(_collect_pair, client, config, table, index, segment, service_filter)
                for index, segment, service_filter in pairs
            ]
            succeeded = sum(1 for future in futures if future.result())

    failed = len(pairs) - succeeded
    if failed:
        warning(f"{failed}/{len(pairs)} usage queries failed; their counts are missing.")
    info(f"Usage collection finished: {len(table)} distinct paths.")
    return table.freeze()


def collect_for_config(
    config: MonitoringConfig,
    *,
    dry_run: bool = False,
    transport: Optional[httpx.BaseTransport] = None,
) -> tuple[list[DateSegment], UsageTable]:
    """Plan the configured date range and collect it.

    Returns:
        ``(segments, table)``. Both are empty when collection is disabled.

    Raises:
        ConfigurationError: If the date range or URL is invalid.
    """
    if not config.enabled:
        return [], collect([], config.effective_filters, config)
    segments = plan_segments(config.start_date, config.end_date)
    table = collect(
        segments,
        config.effective_filters,
        config,
        dry_run=dry_run,
        transport=transport,
    )
    return segments, table


def _collect_pair(
    client: MonitoringClient,
    config: MonitoringConfig,
    table: UsageTable,
    index: int,
    segment: DateSegment,
    service_filter: str,
) -> bool:
    """Run one (segment, filter) query and merge it. Returns success."""
    shown_filter = service_filter or "(none)"
    info(f">>> [HTTP REQUEST] segment {segment.label} (filter: {shown_filter})")
    try:
        totals, record_count = _fetch_pair(client, config, segment, service_filter)
    except CollectionRequestError as exc:
        error(f"[{segment.label} / {shown_filter}] usage query failed: {exc}")
        return False

    table.merge(index, totals)
    info(f"  - [INFO] {segment.label} (filter: {shown_filter}) collected ({record_count} records)")
    return True


def _fetch_pair(
    client: MonitoringClient,
    config: MonitoringConfig,
    segment: DateSegment,
    service_filter: str,
) -> tuple[dict[str, int], int]:
    """Fetch every page of one pair into ``path -> count`` totals.

    Paging stops at the first short page, at a page identical to the one
    before it (a server ignoring ``skip``), or after ``page_total`` pages.
    """
    totals: dict[str, int] = {}
    record_count = 0
    skip = 0
    previous: Optional[list] = None
    for page in range(1, config.page_total + 1):
        body = build_query_body(segment, service_filter, config, skip=skip)
        debug(f"Payload: {body}")
        records = client.query(body)
        if records and records == previous:
            warning(
                f"[{segment.label}] page {page} repeats page {page - 1}; "
                "the server ignores skip, stopping here."
            )
            break
        for path, count in sum_records(records).items():
            totals[path] = totals.get(path, 0) + count
        record_count += len(records)

        if len(records) < config.page_size:
            break
        if not config.paginate:
            warning(
                f"[{segment.label}] page of {len(records)} records is full; counts may "
                "be truncated (set monitoring.paginate to follow further pages)."
            )
            break
        previous = records
        skip += config.page_size
    else:
        warning(
            f"[{segment.label}] stopped after {config.page_total} full pages "
            "(monitoring.page_total); counts may be truncated."
        )
    return totals, record_count
