"""Joins the endpoint inventory with the usage table.

Pure functions: the inputs are read, never modified.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from apicensus.models import DateSegment, EndpointRecord, ReportRow, UsageRow
from apicensus.usage.table import UsageTable


def month_groups(segments: Sequence[DateSegment]) -> dict[str, list[int]]:
    """Map each month key to the indices of its segments, in segment order.

    Example::

        >>> groups = month_groups(plan_segments("20250125", "20250205"))
        >>> groups
        {'25.01': [0], '25.02': [1]}
    """
    groups: dict[str, list[int]] = {}
    for index, segment in enumerate(segments):
        groups.setdefault(segment.month_key, []).append(index)
    return groups


def _slot_counts(
    usage: UsageTable,
    path: str,
    segments: Sequence[DateSegment],
    groups: dict[str, list[int]],
) -> tuple[list[int], dict[str, int], int]:
    slots = usage.counts(path)
    segment_counts = slots[: len(segments)]
    subtotals = {key: sum(slots[i] for i in indices) for key, indices in groups.items()}
    return segment_counts, subtotals, sum(slots)


def assemble_report(
    endpoints: Iterable[EndpointRecord],
    usage: UsageTable,
    segments: Sequence[DateSegment],
) -> list[ReportRow]:
    """Build one report row per endpoint, sorted by path.

    The sort is stable, so endpoints sharing a path keep their input order.
    An endpoint whose path was never monitored has all-zero counts and is
    flagged ``suspected_unused``.
    """
    groups = month_groups(segments)
    rows: list[ReportRow] = []
    for index, endpoint in enumerate(sorted(endpoints, key=lambda e: e.path), start=1):
        segment_counts, subtotals, total = _slot_counts(usage, endpoint.path, segments, groups)
        rows.append(
            ReportRow(
                index=index,
                endpoint=endpoint,
                segment_counts=segment_counts,
                month_subtotals=subtotals,
                total_calls=total,
                suspected_unused=total == 0,
            )
        )
    return rows


def rank_usage(usage: UsageTable, segments: Sequence[DateSegment]) -> list[UsageRow]:
    """Every monitored path, busiest first (ties broken by path)."""
    groups = month_groups(segments)
    rows = []
    for path in usage.paths():
        segment_counts, subtotals, total = _slot_counts(usage, path, segments, groups)
        rows.append(
            UsageRow(
                path=path,
                segment_counts=segment_counts,
                month_subtotals=subtotals,
                total_calls=total,
            )
        )
    rows.sort(key=lambda row: (-row.total_calls, row.path))
    return rows
