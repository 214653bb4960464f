"""Excel output helpers for failure reports."""

# Module responsibilities:
# - Write the records that could not be submitted into a standalone workbook.
# - Keep report headers re-ingestible: data columns use spellings the header alias table accepts.

from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence

from openpyxl import Workbook
from openpyxl.styles import Font

from licitaflow.services.schema.models import FailedRecord

from .utils.log import get_logger

logger = get_logger("excel_writer")

REPORT_SHEET = "Registros fallidos"
REPORT_COLUMNS: tuple[str, ...] = (
    "Fila",
    "ID",
    "Nombre",
    "Fecha de Publicación",
    "Fecha de Cierre",
    "Organismo",
    "Unidad",
    "Monto Disponible",
    "Moneda",
    "Estado",
    "Error",
    "Código HTTP",
)
REPORT_TIMESTAMP_FORMAT = "%Y-%m-%dT%H-%M-%S"


def report_path(source_name: str, output_dir: Path, now: Optional[datetime] = None) -> Path:
    """Return ``<output_dir>/<stem>_failed_<YYYY-MM-DDTHH-MM-SS>.xlsx``."""

    stamp = (now or datetime.now()).strftime(REPORT_TIMESTAMP_FORMAT)
    return Path(output_dir) / f"{Path(source_name).stem}_failed_{stamp}.xlsx"


def _report_row(record: FailedRecord) -> List[Any]:
    payload = record.payload
    return [
        record.row_number,
        payload.licitacion_id,
        payload.nombre,
        payload.fecha_publicacion,
        payload.fecha_cierre,
        payload.organismo,
        payload.unidad,
        payload.monto_disponible,
        payload.moneda,
        payload.estado,
        record.error,
        record.status_code if record.status_code is not None else "",
    ]


def _tmp_path(path: Path) -> Path:
    return path.with_name(path.name + ".tmp")


def _atomic_save(workbook: Workbook, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = _tmp_path(path)
    workbook.save(tmp_path)
    os.replace(tmp_path, path)


def _autosize(ws, rows: Sequence[Sequence[Any]]) -> None:
    for idx, header in enumerate(REPORT_COLUMNS, start=1):
        width = max([len(str(header))] + [len(str(row[idx - 1])) for row in rows])
        ws.column_dimensions[ws.cell(row=1, column=idx).column_letter].width = min(60, width + 2)


def write_failure_report(
    failed: Iterable[FailedRecord],
    source_name: str,
    output_dir: Path,
    *,
    now: Optional[datetime] = None,
) -> Path:
    """Write failed records to a new workbook and return its path.

    Args:
        failed: Records that could not be submitted.
        source_name: File name of the workbook the records came from.
        output_dir: Directory receiving the report.
        now: Timestamp used in the file name; defaults to the current time.

    Returns:
        Path of the written report.
    """

    rows = [_report_row(record) for record in failed]
    out_path = report_path(source_name, output_dir, now)

    wb = Workbook()
    ws = wb.active
    ws.title = REPORT_SHEET
    ws.append(list(REPORT_COLUMNS))
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for row in rows:
        ws.append(row)
    _autosize(ws, rows)

    _atomic_save(wb, out_path)
    logger.info("excel.report written path=%s rows=%d", out_path, len(rows))
    return out_path


__all__ = ["REPORT_COLUMNS", "REPORT_SHEET", "report_path", "write_failure_report"]
