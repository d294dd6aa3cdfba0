"""Typer application and CLI entry point for apicensus.

Commands:

* ``run`` -- the full audit: usage collection, route inventory, workbook.
* ``usage`` -- usage collection only, ranked by call volume.
* ``routes PATH`` -- route extraction only, printed as a table or JSON.
* ``segments START END`` -- the query windows for a date range.

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs a SIGINT handler, invokes the Typer app and
writes a crash log under the data directory for unexpected exceptions.

See Also:
    :mod:`apicensus.config`: Configuration file and precedence resolution.
    :mod:`apicensus.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import typer

from apicensus import __version__
from apicensus.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="apicensus",
    help="Inventory Spring MVC routes and join them with monitoring usage counts.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"apicensus {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(
        False, "--json", help="JSON output format."
    ),
    plain_output: bool = typer.Option(
        False, "--plain", help="Plain text output."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~apicensus.output.OutputManager` from
    CLI flags.
    """
    from apicensus.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(
        OutputManager(
            format=fmt,
            no_color=no_color,
            quiet=quiet,
            verbose=verbose,
        )
    )
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


# ------------------------------------------------------------------ #
# Shared options
# ------------------------------------------------------------------ #

_CONFIG_OPTION = typer.Option(
    None, "--config", "-c", help="Config file (default: ./apicensus.yaml)."
)
_OUTPUT_DIR_OPTION = typer.Option(
    None, "--output-dir", "-o", help="Directory for the workbook and run log."
)
_START_OPTION = typer.Option(None, "--start", help="First day, YYYYMMDD.")
_END_OPTION = typer.Option(None, "--end", help="Last day, YYYYMMDD.")
_DRY_RUN_OPTION = typer.Option(
    False, "--dry-run", "-n", help="Print monitoring queries instead of sending them."
)


def _load_config(
    config_path: Optional[Path],
    output_dir: Optional[str],
    start: Optional[str],
    end: Optional[str],
) -> Any:
    from apicensus.config import load_run_config
    from apicensus.exceptions import ConfigurationError
    from apicensus.output import error

    try:
        return load_run_config(
            config_path=config_path,
            cli_output_dir=output_dir,
            cli_start_date=start,
            cli_end_date=end,
        )
    except ConfigurationError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


def _print_summary(summary: Any) -> None:
    from apicensus.output import OutputFormat, get_output, print_data

    out = get_output()
    if out.format == OutputFormat.JSON:
        out.print_json(summary.model_dump(mode="json"))
        return
    if summary.workbook_path is not None:
        print_data(str(summary.workbook_path))


# ------------------------------------------------------------------ #
# Commands
# ------------------------------------------------------------------ #


@app.command("run")
def run_command(
    config_path: Optional[Path] = _CONFIG_OPTION,
    output_dir: Optional[str] = _OUTPUT_DIR_OPTION,
    start: Optional[str] = _START_OPTION,
    end: Optional[str] = _END_OPTION,
    dry_run: bool = _DRY_RUN_OPTION,
) -> None:
    """Run the full audit and write the inventory workbook.

    Prints the workbook path on stdout (or the run summary with ``--json``).
    """
    from apicensus.exceptions import ApicensusError
    from apicensus.output import error
    from apicensus.pipeline import run_audit

    config = _load_config(config_path, output_dir, start, end)
    try:
        summary = run_audit(config, dry_run=dry_run)
    except ApicensusError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    _print_summary(summary)


@app.command("usage")
def usage_command(
    config_path: Optional[Path] = _CONFIG_OPTION,
    output_dir: Optional[str] = _OUTPUT_DIR_OPTION,
    start: Optional[str] = _START_OPTION,
    end: Optional[str] = _END_OPTION,
    dry_run: bool = _DRY_RUN_OPTION,
) -> None:
    """Collect usage statistics only and write the usage workbook."""
    from apicensus.exceptions import ApicensusError
    from apicensus.output import error
    from apicensus.pipeline import collect_usage_report

    config = _load_config(config_path, output_dir, start, end)
    try:
        summary = collect_usage_report(config, dry_run=dry_run)
    except ApicensusError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    _print_summary(summary)


@app.command("routes")
def routes_command(
    path: Path = typer.Argument(..., help="Java source root to scan."),
) -> None:
    """List the routes declared under PATH (no history, no usage)."""
    from apicensus.exceptions import SourceTreeError
    from apicensus.extraction import discover_controller_files, extract
    from apicensus.models import ExtractionStrategy
    from apicensus.output import OutputFormat, error, get_output, info, print_table, warning

    try:
        files = discover_controller_files(path)
    except SourceTreeError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    rows: list[dict[str, Any]] = []
    for file in files:
        relative = file.relative_to(path).as_posix()
        try:
            contents = file.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            error(f"Cannot read {relative}: {exc}")
            continue
        result = extract(contents, relative, file.name)
        if result.strategy is ExtractionStrategy.FAILED:
            error(f"{relative}: {result.error}")
            continue
        if result.strategy is ExtractionStrategy.FALLBACK:
            warning(f"{relative}: {result.error}; used pattern fallback")
        for endpoint in result.endpoints:
            rows.append(
                {
                    "path": endpoint.path,
                    "handler": endpoint.handler_name,
                    "deprecated": endpoint.deprecated,
                    "file": endpoint.source_file,
                    "strategy": result.strategy.value,
                }
            )
    rows.sort(key=lambda r: (r["path"], r["file"], r["handler"]))
    info(f"{len(rows)} routes in {len(files)} controller files")

    out = get_output()
    if out.format == OutputFormat.JSON:
        out.print_json(rows)
        return
    print_table(
        ["Path", "Handler", "Deprecated", "File", "Strategy"],
        [
            [r["path"], r["handler"], "Y" if r["deprecated"] else "N", r["file"], r["strategy"]]
            for r in rows
        ],
        title="Routes",
    )


@app.command("segments")
def segments_command(
    start: str = typer.Argument(..., help="First day, YYYYMMDD."),
    end: str = typer.Argument(..., help="Last day, YYYYMMDD."),
) -> None:
    """Show the query windows for START..END."""
    from apicensus.exceptions import ConfigurationError
    from apicensus.output import OutputFormat, error, get_output, print_table
    from apicensus.segments import plan_segments

    try:
        segments = plan_segments(start, end)
    except ConfigurationError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    out = get_output()
    if out.format == OutputFormat.JSON:
        out.print_json(
            [
                {
                    "label": s.label,
                    "month": s.month_key,
                    "first_day": s.first_day.isoformat(),
                    "last_day": s.last_day.isoformat(),
                    "stime": s.start_ms,
                    "etime": s.end_ms,
                }
                for s in segments
            ]
        )
        return
    print_table(
        ["Segment", "Month", "First day", "Last day"],
        [[s.label, s.month_key, s.first_day.isoformat(), s.last_day.isoformat()] for s in segments],
        title="Segments",
    )


# ------------------------------------------------------------------ #
# Entry point
# ------------------------------------------------------------------ #


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from apicensus.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``apicensus`` console script.

    :class:`~apicensus.exceptions.ApicensusError` instances that escape a
    command cause a clean exit with the error's ``exit_code``. All other
    exceptions produce a crash log and a generic failure exit.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from apicensus.exceptions import ApicensusError
        from apicensus.output import error

        if isinstance(exc, ApicensusError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
