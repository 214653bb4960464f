"""`licitaflow_io` exports the filesystem and Excel helpers used by the pipeline."""

# Module responsibilities:
# - Re-export inbox handling plus workbook reading and failure-report writing.

from __future__ import annotations

from .excel_reader import SheetData, read_records
from .excel_writer import REPORT_COLUMNS, REPORT_SHEET, write_failure_report
from .inbox import InboxDirectories

__all__ = [
    "InboxDirectories",
    "REPORT_COLUMNS",
    "REPORT_SHEET",
    "SheetData",
    "read_records",
    "write_failure_report",
]
