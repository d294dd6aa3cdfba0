"""Report assembly and spreadsheet output."""

from __future__ import annotations

from apicensus.report.assembler import (
    assemble_report as assemble_report,
    month_groups as month_groups,
    rank_usage as rank_usage,
)
from apicensus.report.workbook import (
    inventory_base_name as inventory_base_name,
    usage_base_name as usage_base_name,
    write_inventory_workbook as write_inventory_workbook,
    write_usage_workbook as write_usage_workbook,
)
