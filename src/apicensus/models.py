"""Canonical Pydantic models shared across all apicensus modules.

This is the single source of truth for data shapes in the project. Every other
module imports from here rather than defining its own models. The models fall
into three groups:

**Configuration models** -- loaded from ``apicensus.yaml``/``apicensus.json``
by :mod:`apicensus.config` and passed explicitly into every entry point:
    :class:`MonitoringConfig`, :class:`RepositoryConfig`, :class:`RunConfig`.

**Collection and extraction models** -- produced by the segment planner,
the route extractor and the history lookup:
    :class:`DateSegment`, :class:`CommitEntry`, :class:`EndpointRecord`,
    :class:`ExtractionStrategy`, :class:`ExtractionResult`,
    :class:`Inventory`.

**Report models** -- derived by :mod:`apicensus.report.assembler` and
rendered by :mod:`apicensus.report.workbook`:
    :class:`ReportRow`, :class:`UsageRow`, :class:`RunSummary`.

Configuration and record models are frozen: a run never mutates its
configuration, and an endpoint record is immutable once created.
"""

from __future__ import annotations

import enum
from datetime import date, datetime
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _split_csv(value: Any) -> Any:
    """Split a comma-separated string into trimmed, non-empty parts."""
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return value


# --- Configuration ---


class MonitoringConfig(BaseModel):
    """Monitoring API settings used by the usage collector.

    ``filters`` and ``okinds`` accept either a list or a comma-separated
    string, matching how they are usually copied out of the monitoring
    console. An empty filter list means "no filter" and is expanded to
    ``[""]`` by :attr:`effective_filters`.

    Example::

        MonitoringConfig(
            enabled=True,
            url="https://monitoring.example.com/yard/api",
            cookie="JSESSIONID=abc",
            start_date="20250101",
            end_date="20250331",
            okinds="101,102",
            filters="/app,/api",
        )
    """

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(default=False, description="Collect usage statistics")
    url: str = Field(default="", description="Statistics endpoint (POST)")
    cookie: str = Field(default="", description="Pre-obtained session cookie header")
    start_date: str = Field(default="", description="First day, YYYYMMDD (inclusive)")
    end_date: str = Field(default="", description="Last day, YYYYMMDD (inclusive)")
    okinds: list[int] = Field(
        default_factory=list, description="Monitoring agent-group identifiers"
    )
    okinds_name: str = Field(
        default="Unknown", description="Display name of the agent group"
    )
    filters: list[str] = Field(
        default_factory=list, description="Service-name substrings, one query each"
    )
    project_code: int = Field(default=8, description="Monitoring project code (pcode)")
    page_size: int = Field(default=10000, gt=0, description="Records requested per page (psize)")
    page_total: int = Field(
        default=100, gt=0, description="Page-count hint sent as ptotal; caps paging"
    )
    paginate: bool = Field(
        default=False, description="Follow skip/psize paging until a short page"
    )
    max_workers: int = Field(default=3, ge=1, description="Concurrent monitoring requests")
    connect_timeout: float = Field(default=20.0, description="Connect timeout in seconds")
    read_timeout: float = Field(default=60.0, description="Read timeout in seconds")

    @field_validator("okinds", "filters", mode="before")
    @classmethod
    def _split_lists(cls, value: Any) -> Any:
        return _split_csv(value)

    @field_validator("cookie", mode="before")
    @classmethod
    def _unquote_cookie(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
                value = value[1:-1]
        return value

    @field_validator("start_date", "end_date", "url", "okinds_name", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        if isinstance(value, (int, date)):
            value = str(value).replace("-", "")
        return value.strip() if isinstance(value, str) else value

    @property
    def effective_filters(self) -> list[str]:
        """Configured filters, or ``[""]`` when none are configured."""
        return list(self.filters) or [""]


class RepositoryConfig(BaseModel):
    """The Java repository being audited."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(default="", description="Repository name shown in the report")
    domain: str = Field(default="", description="Base URL prefixed to every API path")
    root_path: str = Field(default="", description="Local path of the Java source root")
    git_bin: str = Field(default="git", description="Git executable")
    history_depth: int = Field(default=3, description="Commits listed per controller")
    controller_markers: list[str] = Field(
        default_factory=lambda: ["Controller", "Conrtoller"],
        description="Substrings that mark a .java file as a controller",
    )

    @field_validator("controller_markers", mode="before")
    @classmethod
    def _split_markers(cls, value: Any) -> Any:
        return _split_csv(value)


class RunConfig(BaseModel):
    """Effective configuration of one run.

    Built by :func:`~apicensus.config.load_run_config` after applying the
    precedence chain, then handed to the pipeline. Never mutated; use
    ``model_copy(update=...)`` to derive an override.
    """

    model_config = ConfigDict(frozen=True)

    output_dir: str = Field(default="", description="Directory for workbook and run log")
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)
    repository: RepositoryConfig = Field(default_factory=RepositoryConfig)
    source: Optional[str] = Field(
        default=None, description="Config file the values were read from"
    )


# --- Collection ---


class DateSegment(BaseModel):
    """One query window: a calendar-month third clipped to the run range.

    ``start`` and ``end`` are timezone-aware local-midnight instants; ``end``
    is exclusive (the day after ``last_day``) so that range checks are
    half-open.
    """

    model_config = ConfigDict(frozen=True)

    label: str
    start: datetime
    end: datetime
    month_key: str
    first_day: date
    last_day: date

    @property
    def start_ms(self) -> int:
        """Start instant in epoch milliseconds."""
        return int(self.start.timestamp() * 1000)

    @property
    def end_ms(self) -> int:
        """Exclusive end instant in epoch milliseconds."""
        return int(self.end.timestamp() * 1000)


# --- Extraction ---


class CommitEntry(BaseModel):
    """A single ``date|author|subject`` line from ``git log``."""

    model_config = ConfigDict(frozen=True)

    date: str = "-"
    author: str = "-"
    subject: str = "No History"

    @property
    def is_placeholder(self) -> bool:
        return self == PLACEHOLDER_COMMIT


PLACEHOLDER_COMMIT = CommitEntry()
"""Entry used where fewer commits exist than were requested."""


class EndpointRecord(BaseModel):
    """A declared route discovered in one controller file.

    ``path`` is normalised by :func:`~apicensus.extraction.paths.join_route`:
    it starts with exactly one ``/`` and has no repeated slashes.
    ``commit_history`` is empty until the inventory builder attaches it.
    """

    model_config = ConfigDict(frozen=True)

    path: str
    handler_name: str
    deprecated: bool = False
    source_file: str = Field(description="Path relative to the source root, '/' separated")
    controller_name: str = ""
    commit_history: tuple[CommitEntry, ...] = ()

    def with_history(self, history: list[CommitEntry]) -> EndpointRecord:
        """Return a copy carrying *history*."""
        return self.model_copy(update={"commit_history": tuple(history)})


class ExtractionStrategy(str, enum.Enum):
    """Which strategy produced an :class:`ExtractionResult`."""

    PARSED = "parsed"
    FALLBACK = "fallback"
    FAILED = "failed"


class ExtractionResult(BaseModel):
    """Tagged outcome of extracting one file.

    ``PARSED`` and ``FALLBACK`` carry the endpoints of exactly one strategy;
    ``FAILED`` carries none and the reason in ``error``.
    """

    strategy: ExtractionStrategy
    endpoints: list[EndpointRecord] = Field(default_factory=list)
    error: Optional[str] = None


class Inventory(BaseModel):
    """All endpoints of a source tree, sorted by path."""

    endpoints: list[EndpointRecord] = Field(default_factory=list)
    file_count: int = 0
    strategy_counts: dict[str, int] = Field(default_factory=dict)


# --- Report ---


class ReportRow(BaseModel):
    """An endpoint joined with its usage counts."""

    index: int
    endpoint: EndpointRecord
    segment_counts: list[int] = Field(default_factory=list)
    month_subtotals: dict[str, int] = Field(default_factory=dict)
    total_calls: int = 0
    suspected_unused: bool = False


class UsageRow(BaseModel):
    """A monitored path with its counts, independent of the source tree."""

    path: str
    segment_counts: list[int] = Field(default_factory=list)
    month_subtotals: dict[str, int] = Field(default_factory=dict)
    total_calls: int = 0


class RunSummary(BaseModel):
    """What a pipeline run produced."""

    timestamp: str
    elapsed_seconds: float = 0.0
    file_count: int = 0
    endpoint_count: int = 0
    monitored_paths: int = 0
    unused_count: int = 0
    workbook_path: Optional[Path] = None
    log_path: Optional[Path] = None
