"""Response decoding for the monitoring API.

The statistics endpoint answers with a JSON object whose ``records`` array
holds ``{"service": <path>, "count": <calls>}`` objects. This module turns an
:class:`httpx.Response` into that list and into ``path -> count`` totals,
rejecting anything else as a
:class:`~apicensus.exceptions.CollectionRequestError`.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import httpx

from apicensus.exceptions import CollectionRequestError


def extract_records(response: httpx.Response) -> list[dict[str, Any]]:
    """Return the ``records`` array of a statistics response.

    A body without a ``records`` key is treated as an empty result.

    Raises:
        CollectionRequestError: If the body is not JSON, is not an object,
            or ``records`` is not an array.
    """
    try:
        data = response.json()
    except ValueError as exc:
        raise CollectionRequestError(f"Malformed JSON body: {exc}") from exc

    if not isinstance(data, dict):
        raise CollectionRequestError(
            f"Expected a JSON object, got {type(data).__name__}"
        )
    records = data.get("records")
    if records is None:
        return []
    if not isinstance(records, list):
        raise CollectionRequestError(
            f"'records' must be an array, got {type(records).__name__}"
        )
    return records


def sum_records(records: Iterable[Any]) -> dict[str, int]:
    """Aggregate records into ``service -> total count``.

    Records without a ``service`` are skipped; a missing ``count`` counts
    as zero.

    Raises:
        CollectionRequestError: If a record is not an object or its count is
            not numeric.
    """
    totals: dict[str, int] = {}
    for record in records:
        if not isinstance(record, dict):
            raise CollectionRequestError(f"Malformed record: {record!r}")
        service = record.get("service")
        if service is None or service == "":
            continue
        try:
            count = int(record.get("count") or 0)
        except (TypeError, ValueError) as exc:
            raise CollectionRequestError(
                f"Non-numeric count for {service!r}: {record.get('count')!r}"
            ) from exc
        key = str(service)
        totals[key] = totals.get(key, 0) + count
    return totals
