"""HTTP client module for apicensus.

Provides :class:`MonitoringClient`, a blocking client backed by
:class:`httpx.Client` that posts statistics queries to the monitoring API
with the configured session cookie, and the response helpers in
:mod:`apicensus.client.response`.

Example::

    from apicensus.client import MonitoringClient

    with MonitoringClient(config.monitoring) as client:
        records = client.query(body)
"""

from apicensus.client.response import extract_records, sum_records
from apicensus.client.sync_client import MonitoringClient

__all__ = ["MonitoringClient", "extract_records", "sum_records"]
