"""Usage statistics collection.

1. **Planning** -- :func:`~apicensus.segments.plan_segments` splits the
   configured date range into query windows.
2. **Collection** (:mod:`~apicensus.usage.collector`) -- one monitoring
   query per (segment, filter) pair on a bounded worker pool.
3. **Aggregation** (:mod:`~apicensus.usage.table`) -- counts land in a
   per-path, per-segment :class:`UsageTable` with per-path locking.
"""

from __future__ import annotations

from apicensus.usage.collector import collect as collect, collect_for_config as collect_for_config
from apicensus.usage.query import build_query_body as build_query_body
from apicensus.usage.table import UsageTable as UsageTable
