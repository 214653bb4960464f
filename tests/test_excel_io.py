from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest
from openpyxl import load_workbook

from conftest import HEADERS, tender_row, write_workbook
from licitaflow.core.errors import WorkbookReadError
from licitaflow.services.schema.mapping import map_headers
from licitaflow.services.schema.models import FailedRecord, SubmissionPayload
from licitaflow_io.excel_reader import read_records
from licitaflow_io.excel_writer import REPORT_COLUMNS, REPORT_SHEET, report_path, write_failure_report


def test_read_records_returns_headers_and_rows(tmp_path: Path) -> None:
    blank = ["  "] * len(HEADERS)
    path = write_workbook(tmp_path / "tenders.xlsx", [tender_row("A-1"), blank, tender_row("A-2")])

    sheet = read_records(path)

    assert sheet.headers == HEADERS
    assert len(sheet) == 2
    assert [row["ID"] for row in sheet.rows] == ["A-1", "A-2"]
    assert sheet.indexes == [0, 2]
    assert sheet.rows[0]["Monto Disponible"] == 1500000


def test_read_records_converts_empty_cells_to_none(tmp_path: Path) -> None:
    path = write_workbook(tmp_path / "tenders.xlsx", [tender_row("A-1", Organismo=None)])
    sheet = read_records(path)
    assert sheet.rows[0]["Organismo"] is None


def test_read_records_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        read_records(tmp_path / "absent.xlsx")


def test_read_records_corrupt_workbook(tmp_path: Path) -> None:
    path = tmp_path / "broken.xlsx"
    path.write_bytes(b"definitely not a zip archive")
    with pytest.raises(WorkbookReadError):
        read_records(path)


def test_read_records_missing_sheet(tmp_path: Path) -> None:
    path = write_workbook(tmp_path / "tenders.xlsx", [tender_row("A-1")])
    with pytest.raises(WorkbookReadError):
        read_records(path, sheet="Hoja inexistente")


def _failed(row_index: int, status: int | None) -> FailedRecord:
    payload = SubmissionPayload(
        licitacion_id=f"ID-{row_index}",
        nombre="Compra de insumos",
        fecha_publicacion="2024-03-01 00:00",
        fecha_cierre="",
        organismo="Hospital Regional",
        unidad="Abastecimiento",
        monto_disponible=1250.5,
        moneda="CLP",
        estado="Publicada",
    )
    return FailedRecord({"ID": f"ID-{row_index}"}, payload, "HTTP 422: invalid", row_index=row_index, status_code=status)


def test_write_failure_report_layout(tmp_path: Path) -> None:
    now = datetime(2024, 5, 6, 7, 8, 9)
    out = write_failure_report([_failed(0, 422), _failed(3, None)], "lote.xlsx", tmp_path / "error", now=now)

    assert out == tmp_path / "error" / "lote_failed_2024-05-06T07-08-09.xlsx"
    assert out == report_path("lote.xlsx", tmp_path / "error", now)
    assert not out.with_name(out.name + ".tmp").exists()

    wb = load_workbook(out)
    ws = wb[REPORT_SHEET]
    rows = list(ws.iter_rows(values_only=True))
    assert list(rows[0]) == list(REPORT_COLUMNS)
    assert rows[1][0] == 2
    assert rows[1][1] == "ID-0"
    assert rows[1][-1] == 422
    assert rows[2][0] == 5
    assert rows[2][-1] in ("", None)


def test_report_headers_map_back_to_canonical_fields() -> None:
    mapping = map_headers(REPORT_COLUMNS)
    assert set(mapping.canonical_fields) == {
        "id",
        "title",
        "publication_date",
        "closing_date",
        "issuing_body",
        "unit",
        "available_amount",
        "currency",
        "status",
    }
    assert mapping.unmapped == ["Fila", "Error", "Código HTTP"]
