"""Synchronous monitoring API client with cookie auth, dry-run and error mapping.

This module provides :class:`MonitoringClient`, the blocking HTTP client
used by the usage collector. It wraps :class:`httpx.Client` and layers on:

- **Cookie injection** -- the pre-obtained session cookie from
  :class:`~apicensus.models.MonitoringConfig` is sent as a ``Cookie``
  header on every request. There is no login flow.
- **Bounded timeouts** -- connect and read timeouts come from the config
  (20 s connect by default).
- **Dry-run mode** -- prints the request to stderr and returns a synthetic
  empty result without sending traffic.
- **Error mapping** -- transport errors, timeouts, non-200 statuses and
  malformed bodies all surface as
  :class:`~apicensus.exceptions.CollectionRequestError`.

Requests are never retried: a failed query contributes nothing and a fresh
run is the recovery path. A single client is shared by all collector
threads; :class:`httpx.Client` is safe for concurrent use.
"""

from __future__ import annotations

import json
from typing import Any, Optional

import httpx

from apicensus.client.response import extract_records
from apicensus.exceptions import CollectionRequestError
from apicensus.models import MonitoringConfig
from apicensus.output import get_output


class MonitoringClient:
    """Synchronous client for the monitoring statistics endpoint.

    Must be used as a context manager so that the underlying connection
    pool is properly opened and closed.

    Args:
        config: Monitoring settings (URL, cookie, timeouts).
        dry_run: When ``True``, requests are printed to stderr and an empty
            record list is returned without network I/O.
        transport: Optional :mod:`httpx` transport, e.g.
            :class:`httpx.MockTransport` in tests.

    Example::

        with MonitoringClient(config) as client:
            records = client.query(body)
    """

    def __init__(
        self,
        config: MonitoringConfig,
        dry_run: bool = False,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._config = config
        self._dry_run = dry_run
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> MonitoringClient:
        timeout = httpx.Timeout(
            self._config.read_timeout,
            connect=self._config.connect_timeout,
        )
        self._client = httpx.Client(
            timeout=timeout,
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    def __exit__(self, *args: object) -> None:
        if self._client:
            self._client.close()
            self._client = None

    # ------------------------------------------------------------------ #
    # Public request methods
    # ------------------------------------------------------------------ #

    def query(self, body: dict[str, Any]) -> list[dict[str, Any]]:
        """POST one statistics query and return its ``records``.

        Args:
            body: JSON request body built by
                :func:`~apicensus.usage.query.build_query_body`.

        Returns:
            The list of record objects from the response (possibly empty).

        Raises:
            CollectionRequestError: On network/timeout errors, a non-200
                status, or a body that is not a JSON object.
        """
        headers = self._build_headers()

        if self._dry_run:
            self._print_dry_run(headers, body)
            return []

        assert self._client is not None, "Client not initialised -- use as context manager"

        try:
            response = self._client.post(self._config.url, headers=headers, json=body)
        except httpx.TimeoutException as exc:
            raise CollectionRequestError(f"Request timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise CollectionRequestError(f"Request failed: {exc}") from exc

        self._map_response_error(response)
        return extract_records(response)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _build_headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if self._config.cookie:
            headers["Cookie"] = self._config.cookie
        return headers

    def _map_response_error(self, response: httpx.Response) -> None:
        """Raise :class:`CollectionRequestError` for anything but HTTP 200."""
        status = response.status_code
        if status == 200:
            return
        detail = response.text[:200] if response.text else ""
        message = f"HTTP {status}"
        if status in (401, 403):
            message += " (session cookie rejected or expired)"
        raise CollectionRequestError(f"{message}: {detail}" if detail else message)

    def _print_dry_run(self, headers: dict[str, str], body: dict[str, Any]) -> None:
        """Print request details to stderr instead of sending them."""
        output = get_output()
        output.info(f"[dry-run] POST {self._config.url or '<url not set>'}")
        for key, value in headers.items():
            shown = f"<{len(value)} chars>" if key == "Cookie" else value
            output.info(f"  Header: {key}: {shown}")
        output.info(f"  Body (JSON): {json.dumps(body, indent=2)}")
