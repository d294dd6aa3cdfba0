"""End-to-end audit runs.

:func:`run_audit` chains the stages of a full audit::

    config -> usage collection -> inventory -> report rows -> workbook

and mirrors every diagnostic line into a run log next to the workbook.
:func:`collect_usage_report` is the collection-only variant.

Stage failures degrade rather than abort, with one exception: a source root
that cannot be walked ends the run with
:class:`~apicensus.exceptions.SourceTreeError`.
"""

from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Optional

import httpx

from apicensus.config import describe_config
from apicensus.exceptions import ConfigurationError
from apicensus.inventory import build_inventory
from apicensus.models import DateSegment, RunConfig, RunSummary
from apicensus.output import error, get_output, info, success, warning
from apicensus.report import (
    assemble_report,
    inventory_base_name,
    rank_usage,
    usage_base_name,
    write_inventory_workbook,
    write_usage_workbook,
)
from apicensus.usage import UsageTable, collect_for_config

TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"


class _RunLog:
    """Run log opened under a provisional name and renamed once known."""

    def __init__(self, output_dir: Optional[Path], timestamp: str, enabled: bool) -> None:
        self.path: Optional[Path] = None
        self.final_base: Optional[str] = None
        self.final_path: Optional[Path] = None
        if output_dir is not None and enabled:
            self.path = output_dir / f"apicensus_{timestamp}.log"

    def close(self) -> Optional[Path]:
        if self.path is None:
            return None
        get_output().detach_log_file()
        if self.final_base is None:
            return self.path
        target = self.path.with_name(f"{self.final_base}.log")
        try:
            self.path.replace(target)
        except OSError as exc:
            warning(f"Cannot rename run log to {target.name}: {exc}")
            return self.path
        return target


@contextmanager
def _run_log(output_dir: Optional[Path], timestamp: str, enabled: bool) -> Iterator[_RunLog]:
    log = _RunLog(output_dir, timestamp, enabled)
    if log.path is not None:
        try:
            get_output().attach_log_file(log.path)
        except OSError as exc:
            warning(f"Cannot open run log {log.path}: {exc}")
            log.path = None
    try:
        yield log
    finally:
        log.final_path = log.close()


def _log_header(title: str, config: RunConfig, timestamp: str) -> None:
    info("==============================================")
    info(f"  {title} ({timestamp})")
    info("==============================================")
    for line in describe_config(config):
        info(line)
    info("----------------------------------------------")


def _collect_or_skip(
    config: RunConfig,
    dry_run: bool,
    transport: Optional[httpx.BaseTransport],
) -> tuple[list[DateSegment], UsageTable]:
    try:
        return collect_for_config(config.monitoring, dry_run=dry_run, transport=transport)
    except ConfigurationError as exc:
        warning(f"Usage collection skipped: {exc}")
        return [], UsageTable(0).freeze()


def run_audit(
    config: RunConfig,
    *,
    dry_run: bool = False,
    timestamp: Optional[str] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> RunSummary:
    """Run the full audit and write the inventory workbook.

    Args:
        config: Effective run configuration.
        dry_run: Print the monitoring queries instead of sending them. No
            workbook or run log is written.
        timestamp: Run timestamp used in file names (defaults to now).
        transport: Optional :mod:`httpx` transport for the monitoring API.

    Returns:
        What the run produced. ``workbook_path`` is ``None`` when no
        ``output_dir`` is configured or in dry-run mode.

    Raises:
        SourceTreeError: If the source root is missing or cannot be walked.
        ReportError: If the workbook cannot be written.
    """
    started = time.monotonic()
    timestamp = timestamp or datetime.now().strftime(TIMESTAMP_FORMAT)
    output_dir = Path(config.output_dir) if config.output_dir else None
    repo = config.repository

    with _run_log(output_dir, timestamp, enabled=not dry_run) as log:
        _log_header("API inventory & usage audit", config, timestamp)

        segments, usage = _collect_or_skip(config, dry_run, transport)
        inventory = build_inventory(repo)
        rows = assemble_report(inventory.endpoints, usage, segments)
        unused = sum(1 for row in rows if row.suspected_unused)
        usage_rows = rank_usage(usage, segments) if segments else None

        base = inventory_base_name(repo.name, inventory.file_count, len(rows), timestamp)
        log.final_base = base

        workbook_path: Optional[Path] = None
        if dry_run:
            info("Dry run: no workbook written.")
        elif output_dir is None:
            error("output_dir is not set; no workbook written.")
        else:
            workbook_path = write_inventory_workbook(
                output_dir / f"{base}.xlsx",
                rows,
                segments,
                repo_name=repo.name,
                domain=repo.domain,
                usage_rows=usage_rows,
                usage_group=config.monitoring.okinds_name,
            )
            success(f"Workbook saved: {workbook_path.name}")

        elapsed = time.monotonic() - started
        info(
            f"Controllers: {inventory.file_count}, APIs: {len(rows)}, "
            f"monitored paths: {len(usage)}, suspected unused: {unused}"
        )
        if inventory.strategy_counts:
            counts = ", ".join(f"{k}={v}" for k, v in sorted(inventory.strategy_counts.items()))
            info(f"Extraction: {counts}")
        info(f"Elapsed: {elapsed:.2f}s")

    return RunSummary(
        timestamp=timestamp,
        elapsed_seconds=elapsed,
        file_count=inventory.file_count,
        endpoint_count=len(rows),
        monitored_paths=len(usage),
        unused_count=unused,
        workbook_path=workbook_path,
        log_path=log.final_path,
    )


def collect_usage_report(
    config: RunConfig,
    *,
    dry_run: bool = False,
    timestamp: Optional[str] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> RunSummary:
    """Collect usage only and write the ranked usage workbook.

    Collection runs even if ``monitoring.enabled`` is false.

    Raises:
        ConfigurationError: If the date range or monitoring URL is invalid.
        ReportError: If the workbook cannot be written.
    """
    started = time.monotonic()
    timestamp = timestamp or datetime.now().strftime(TIMESTAMP_FORMAT)
    output_dir = Path(config.output_dir) if config.output_dir else None
    monitoring = config.monitoring.model_copy(update={"enabled": True})

    with _run_log(output_dir, timestamp, enabled=not dry_run) as log:
        _log_header("API usage statistics", config, timestamp)

        segments, usage = collect_for_config(monitoring, dry_run=dry_run, transport=transport)
        usage_rows = rank_usage(usage, segments)
        unused = sum(1 for row in usage_rows if row.total_calls == 0)

        base = usage_base_name(
            monitoring.okinds_name, monitoring.start_date, monitoring.end_date, timestamp
        )
        log.final_base = base

        workbook_path: Optional[Path] = None
        if dry_run:
            info("Dry run: no workbook written.")
        elif output_dir is None:
            error("output_dir is not set; no workbook written.")
        else:
            workbook_path = write_usage_workbook(
                output_dir / f"{base}.xlsx",
                usage_rows,
                segments,
                usage_group=monitoring.okinds_name,
            )
            success(f"Workbook saved: {workbook_path.name}")

        elapsed = time.monotonic() - started
        info(f"Segments: {len(segments)}, monitored paths: {len(usage)}")
        info(f"Elapsed: {elapsed:.2f}s")

    return RunSummary(
        timestamp=timestamp,
        elapsed_seconds=elapsed,
        monitored_paths=len(usage),
        unused_count=unused,
        workbook_path=workbook_path,
        log_path=log.final_path,
    )
