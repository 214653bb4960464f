"""Excel input helpers."""

# Module responsibilities:
# - Provide a thin wrapper around pandas.read_excel returning header list and raw rows.
# - Normalize cell values to plain Python types and skip blank rows.

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Union

import pandas as pd

from licitaflow.core.errors import WorkbookReadError

from .utils.log import get_logger

logger = get_logger("excel_reader")

SheetType = Union[str, int]


@dataclass(slots=True)
class SheetData:
    """Header row and non-empty data rows of one worksheet.

    ``indexes`` holds the zero-based data-row position of each entry in
    ``rows`` (blank rows are skipped, so positions may have gaps).
    """

    headers: List[str]
    rows: List[Dict[str, Any]] = field(default_factory=list)
    indexes: List[int] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rows)


def _cell_value(value: Any) -> Any:
    if value is None or isinstance(value, str):
        return value
    if pd.isna(value):
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    return value


def _is_blank(values: Dict[str, Any]) -> bool:
    for value in values.values():
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return False
    return True


def read_records(path: Path, sheet: SheetType = 0) -> SheetData:
    """Load the header row and data rows of a workbook sheet.

    Args:
        path: Path to the workbook (``.xlsx`` via openpyxl, ``.xls`` via xlrd).
        sheet: Sheet name or index; defaults to the first sheet.

    Returns:
        SheetData with original header strings and one mapping per non-empty row.

    Raises:
        FileNotFoundError: When the workbook does not exist.
        WorkbookReadError: When the file cannot be parsed or the sheet is missing.
    """

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Source workbook not found: {path}")

    logger.info("excel.read start path=%s sheet=%s", path, sheet)
    try:
        df = pd.read_excel(path, sheet_name=sheet, dtype=object)
    except Exception as exc:
        logger.error("excel.read failed path=%s error=%s", path, exc)
        raise WorkbookReadError(f"Cannot read workbook {path.name}: {exc}") from exc

    if isinstance(df, dict):
        # pandas returns a dict when sheet_name is a list; this API expects a single sheet.
        raise WorkbookReadError("read_records expects a single sheet; received multiple sheets")

    headers = [str(column).strip() for column in df.columns]
    data = SheetData(headers=headers)
    for position, raw in enumerate(df.itertuples(index=False, name=None)):
        values = {header: _cell_value(cell) for header, cell in zip(headers, raw)}
        if _is_blank(values):
            continue
        data.rows.append(values)
        data.indexes.append(position)

    logger.info(
        "excel.read done path=%s rows=%d skipped_blank=%d columns=%s",
        path.name,
        len(data.rows),
        len(df.index) - len(data.rows),
        headers,
    )
    return data


__all__ = ["SheetData", "read_records"]
