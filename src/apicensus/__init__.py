"""apicensus -- Inventory Spring MVC endpoints and join them with live usage.

This package walks a Java source tree, extracts every declared route from
the controllers it finds, attaches the last commits that touched each
controller, pulls per-endpoint call counts from a monitoring API, and
writes the joined result to an ``.xlsx`` workbook with a matching run log.

Typical workflow::

    apicensus segments 20250101 20250331   # preview the query windows
    apicensus routes ./src/main/java       # extraction only
    apicensus run --config apicensus.yaml  # full audit

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the package.
    config: Configuration loading and precedence resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting with run-log mirroring.
    segments: Calendar-month-third query windows.
    client: Monitoring API HTTP client.
    usage: Concurrent usage-statistics collection.
    extraction: Route extraction from Java controllers.
    history: Git history lookup for controller files.
    inventory: Parallel per-file inventory building.
    report: Usage/endpoint join and workbook rendering.
    pipeline: End-to-end run orchestration.
"""

__version__ = "0.3.0"
