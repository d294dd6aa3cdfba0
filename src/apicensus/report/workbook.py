"""Spreadsheet rendering of the audit with :mod:`openpyxl`.

One workbook per run. The inventory sheet lists every declared endpoint with
its commit history, usage counts and empty management columns for the
review that follows the audit. When usage was collected, a second sheet
ranks every monitored path by call volume, independently of the source
tree.

Count columns are laid out per segment, with a month-subtotal column after
the last segment of each month::

    2025-01-21~31 | 25.01 total | 2025-02-01~10 | 2025-02-11~14 | 25.02 total
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from pathlib import Path
from typing import Optional, Union

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE, Cell
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from apicensus.exceptions import ReportError
from apicensus.models import DateSegment, ReportRow, UsageRow
from apicensus.report.assembler import month_groups

MAX_SHEET_NAME = 31
NUMBER_FORMAT = "#,##0"
HISTORY_COLUMNS = 3

LEADING_HEADERS = [
    "No.",
    "Repository",
    "API path",
    "Full URL",
    "Repository path",
    "Controller",
    "Handler",
    "Deprecated",
]
MANAGEMENT_HEADERS = [
    "Program ID",
    "Owner",
    "Suspected unused",
    "Review result",
    "Planned fix date",
    "Fix date",
    "Ticket",
    "Assignee",
    "Notes",
]

_THIN = Side(style="thin")
_THICK = Side(style="thick")
_BORDER = Border(left=_THIN, right=_THIN, top=_THIN, bottom=_THIN)
_CENTER = Alignment(horizontal="center", vertical="center", wrap_text=True)
_LINK_FONT = Font(color="0000FF", underline="single")
_BOLD = Font(bold=True)

_GREY = PatternFill("solid", fgColor="D9D9D9")
_YELLOW = PatternFill("solid", fgColor="FFFF00")
_ORANGE = PatternFill("solid", fgColor="FFC000")
_GREEN = PatternFill("solid", fgColor="CCFFCC")
_BLUE = PatternFill("solid", fgColor="99CCFF")
_IVORY = PatternFill("solid", fgColor="FFFACD")
_SEGMENT = PatternFill("solid", fgColor="DDEBF7")
_SUBTOTAL = PatternFill("solid", fgColor="9BC2E6")

_UNSAFE_FILENAME_RE = re.compile(r'[\\/:*?"<>|\s]+')
_UNSAFE_SHEET_RE = re.compile(r"[\\/*?:\[\]]")


# ------------------------------------------------------------------ #
# Names
# ------------------------------------------------------------------ #


def _safe(part: object) -> str:
    return _UNSAFE_FILENAME_RE.sub("-", str(part)).strip("-") or "unnamed"


def inventory_base_name(repo_name: str, controllers: int, apis: int, timestamp: str) -> str:
    """File name, without extension, of the inventory workbook and its log."""
    return f"api-inventory_{_safe(repo_name)}_controllers-{controllers}_apis-{apis}_{timestamp}"


def usage_base_name(group_name: str, start_date: str, end_date: str, timestamp: str) -> str:
    """File name, without extension, of the usage-only workbook and its log."""
    return f"usage-stats_{_safe(group_name)}_{start_date}-{end_date}_{timestamp}"


def sheet_title(prefix: str, name: str) -> str:
    """``<prefix><name>`` cleaned of forbidden characters, cut to 31 chars."""
    return _UNSAFE_SHEET_RE.sub("_", f"{prefix}{name}")[:MAX_SHEET_NAME]


def encode_url(url: str) -> str:
    """Percent-encode the braces of path templates for use as a hyperlink."""
    return url.replace("{", "%7B").replace("}", "%7D")


# ------------------------------------------------------------------ #
# Count columns
# ------------------------------------------------------------------ #


def count_headers(segments: Sequence[DateSegment]) -> list[tuple[str, Union[int, str]]]:
    """Header and source of every count column.

    The source is a segment index (``int``) or a month key (``str``) for a
    subtotal column.
    """
    columns: list[tuple[str, Union[int, str]]] = []
    for key, indices in month_groups(segments).items():
        for index in indices:
            columns.append((segments[index].label, index))
        columns.append((f"{key} total", key))
    return columns


def _count_values(
    segment_counts: Sequence[int],
    month_subtotals: dict[str, int],
    columns: Sequence[tuple[str, Union[int, str]]],
) -> list[int]:
    values = []
    for _, source in columns:
        if isinstance(source, int):
            values.append(segment_counts[source] if source < len(segment_counts) else 0)
        else:
            values.append(month_subtotals.get(source, 0))
    return values


# ------------------------------------------------------------------ #
# Sheets
# ------------------------------------------------------------------ #


def _write_header(ws: Worksheet, headers: Sequence[str], fills: Sequence[PatternFill]) -> None:
    for col, (title, fill) in enumerate(zip(headers, fills), start=1):
        cell = ws.cell(row=1, column=col, value=title)
        cell.font = _BOLD
        cell.fill = fill
        cell.border = _BORDER
        cell.alignment = _CENTER
    ws.auto_filter.ref = f"A1:{get_column_letter(len(headers))}1"


def _text_cell(ws: Worksheet, row: int, col: int, value: object) -> Cell:
    """Write *value* as literal text: illegal XML characters removed, no formulas."""
    if isinstance(value, str):
        value = ILLEGAL_CHARACTERS_RE.sub("", value)
    cell = ws.cell(row=row, column=col, value=value)
    if isinstance(value, str) and value.startswith("="):
        cell.data_type = "s"
    return cell


def _number_cell(ws: Worksheet, row: int, col: int, value: int, thick: bool = False) -> None:
    cell = ws.cell(row=row, column=col, value=value)
    cell.number_format = NUMBER_FORMAT
    cell.border = Border(left=_THIN, right=_THICK if thick else _THIN, top=_THIN, bottom=_THIN)


def _inventory_fills(count_columns: Sequence[tuple[str, Union[int, str]]]) -> list[PatternFill]:
    fills = [_GREY] * 4 + [_YELLOW] * 3 + [_ORANGE] * (1 + HISTORY_COLUMNS * 3 + 1)
    fills += [_SUBTOTAL if isinstance(src, str) else _SEGMENT for _, src in count_columns]
    fills += [_GREEN] * 2 + [_BLUE] * 2 + [_IVORY] * (len(MANAGEMENT_HEADERS) - 4)
    return fills


def write_inventory_sheet(
    ws: Worksheet,
    rows: Sequence[ReportRow],
    segments: Sequence[DateSegment],
    repo_name: str,
    domain: str,
) -> None:
    """Fill *ws* with one line per report row."""
    count_columns = count_headers(segments)
    history_headers = [
        f"{field} {n}"
        for n in range(1, HISTORY_COLUMNS + 1)
        for field in ("Commit date", "Committer", "Commit message")
    ]
    headers = (
        LEADING_HEADERS
        + history_headers
        + ["Total calls"]
        + [title for title, _ in count_columns]
        + MANAGEMENT_HEADERS
    )
    _write_header(ws, headers, _inventory_fills(count_columns))
    ws.freeze_panes = "D2"

    total_col = len(LEADING_HEADERS) + len(history_headers) + 1
    for offset, row in enumerate(rows, start=2):
        endpoint = row.endpoint
        full_url = f"{domain}{endpoint.path}"
        history = list(endpoint.commit_history)[:HISTORY_COLUMNS]
        history_values: list[str] = []
        for commit in history:
            history_values += [commit.date, commit.author, commit.subject]
        history_values += [""] * (HISTORY_COLUMNS * 3 - len(history_values))

        text_values = [
            row.index,
            repo_name,
            endpoint.path,
            full_url,
            f"{repo_name}/{endpoint.source_file}",
            endpoint.controller_name,
            endpoint.handler_name,
            "Y" if endpoint.deprecated else "N",
            *history_values,
        ]
        for col, value in enumerate(text_values, start=1):
            cell = _text_cell(ws, offset, col, value)
            cell.border = _BORDER
        link = ws.cell(row=offset, column=4)
        link.hyperlink = encode_url(ILLEGAL_CHARACTERS_RE.sub("", full_url))
        link.font = _LINK_FONT
        if endpoint.deprecated:
            ws.cell(row=offset, column=8).fill = _GREY

        _number_cell(ws, offset, total_col, row.total_calls)
        counts = _count_values(row.segment_counts, row.month_subtotals, count_columns)
        for col, ((_, source), value) in enumerate(zip(count_columns, counts), start=total_col + 1):
            _number_cell(ws, offset, col, value, thick=isinstance(source, str))

        management = ["", "", "O" if row.suspected_unused else "", "", "", "", "", "", ""]
        first = total_col + len(count_columns) + 1
        for col, value in enumerate(management, start=first):
            cell = _text_cell(ws, offset, col, value)
            cell.border = _BORDER
            cell.alignment = _CENTER

    widths = {3: 56, 4: 33, 5: 45, 6: 21, 7: 21}
    for col in range(1, len(headers) + 1):
        ws.column_dimensions[get_column_letter(col)].width = widths.get(col, 16)


def write_usage_sheet(
    ws: Worksheet,
    rows: Sequence[UsageRow],
    segments: Sequence[DateSegment],
) -> None:
    """Fill *ws* with the ranked usage rows."""
    count_columns = count_headers(segments)
    headers = ["API", "Total"] + [title for title, _ in count_columns]
    fills = [_GREY, _GREY] + [
        _SUBTOTAL if isinstance(src, str) else _SEGMENT for _, src in count_columns
    ]
    _write_header(ws, headers, fills)
    ws.freeze_panes = "C2"

    for offset, row in enumerate(rows, start=2):
        api = _text_cell(ws, offset, 1, row.path)
        api.border = Border(right=_THICK)
        _number_cell(ws, offset, 2, row.total_calls, thick=True)
        counts = _count_values(row.segment_counts, row.month_subtotals, count_columns)
        for col, ((_, source), value) in enumerate(zip(count_columns, counts), start=3):
            _number_cell(ws, offset, col, value, thick=isinstance(source, str))

    ws.column_dimensions["A"].width = 60
    for col in range(2, len(headers) + 1):
        ws.column_dimensions[get_column_letter(col)].width = 16


# ------------------------------------------------------------------ #
# Workbooks
# ------------------------------------------------------------------ #


def _save(workbook: Workbook, path: Path) -> Path:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        workbook.save(path)
    except OSError as exc:
        raise ReportError(f"Cannot write workbook {path}: {exc}") from exc
    return path


def write_inventory_workbook(
    path: Path,
    rows: Sequence[ReportRow],
    segments: Sequence[DateSegment],
    *,
    repo_name: str,
    domain: str = "",
    usage_rows: Optional[Sequence[UsageRow]] = None,
    usage_group: str = "",
) -> Path:
    """Write the inventory sheet and, if *usage_rows* is given, the usage sheet.

    Raises:
        ReportError: If the file cannot be written.
    """
    workbook = Workbook()
    inventory_ws = workbook.active
    inventory_ws.title = sheet_title("API_", repo_name)
    write_inventory_sheet(inventory_ws, rows, segments, repo_name, domain)

    if usage_rows is not None:
        usage_ws = workbook.create_sheet(sheet_title("Usage_", usage_group))
        write_usage_sheet(usage_ws, usage_rows, segments)
    return _save(workbook, path)


def write_usage_workbook(
    path: Path,
    rows: Sequence[UsageRow],
    segments: Sequence[DateSegment],
    *,
    usage_group: str,
) -> Path:
    """Write a workbook holding only the usage sheet.

    Raises:
        ReportError: If the file cannot be written.
    """
    workbook = Workbook()
    ws = workbook.active
    ws.title = sheet_title("Usage_", usage_group)
    write_usage_sheet(ws, rows, segments)
    return _save(workbook, path)
