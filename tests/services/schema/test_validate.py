from __future__ import annotations

import pytest

from licitaflow.services.schema.models import CanonicalRecord
from licitaflow.services.schema.validate import validate_data, validate_headers, validate_row


def _record(**overrides: object) -> CanonicalRecord:
    values: dict[str, object] = {
        "id": "1234-56-LE24",
        "title": "Servicio de aseo",
        "publication_date": "2024-03-01",
        "closing_date": "2024-03-15 12:00",
        "issuing_body": "Municipalidad",
        "unit": "Compras",
        "available_amount": 1000,
        "source_row": 2,
    }
    values.update(overrides)
    return CanonicalRecord(**values)


def test_validate_headers_accepts_required_fields() -> None:
    result = validate_headers(["ID", "Nombre", "Fecha de Cierre", "Notas"])
    assert result.is_valid
    assert result.mapped_headers == ["id", "title", "closing_date"]
    assert result.missing_headers == []
    assert result.extra_headers == ["Notas"]


def test_validate_headers_reports_missing_id() -> None:
    result = validate_headers(["Nombre", "Fecha de Cierre"])
    assert not result.is_valid
    assert result.missing_headers == ["id"]


def test_valid_row_has_no_errors_or_warnings() -> None:
    result = validate_row(_record())
    assert result.is_valid
    assert result.errors == [] and result.warnings == []


def test_row_collects_every_error() -> None:
    result = validate_row(
        _record(
            id=None,
            title="  ",
            publication_date="2024-13-45",
            closing_date="whenever",
            available_amount="-10",
            issuing_body=None,
            unit="",
            source_row=9,
        )
    )
    assert not result.is_valid
    assert len(result.errors) == 3
    assert all(message.startswith("Row 9:") for message in result.errors + result.warnings)
    assert len(result.warnings) == 4


def test_blank_amount_is_not_an_error() -> None:
    assert validate_row(_record(available_amount="")).warnings == []
    result = validate_row(_record(available_amount="sin monto"))
    assert result.is_valid
    assert result.warnings == ["Row 2: available amount 'sin monto' is not a number"]


def test_negative_amount_is_an_error() -> None:
    result = validate_row(_record(available_amount="-10"))
    assert result.errors == ["Row 2: available amount must be a non-negative number"]


@pytest.mark.parametrize(
    "overrides",
    [
        {"closing_date": "pronto"},
        {"publication_date": "2024-02-30"},
        {"publication_date": "ayer", "closing_date": "cuando se pueda"},
        {"available_amount": "sin monto"},
        {"available_amount": float("nan")},
        {"available_amount": True, "issuing_body": None, "unit": "  "},
        {"publication_date": None, "closing_date": None, "available_amount": None},
    ],
)
def test_record_with_id_and_title_has_no_errors(overrides: dict[str, object]) -> None:
    result = validate_row(_record(**overrides))
    assert result.errors == []
    assert result.is_valid


def test_validate_data_empty_input() -> None:
    result = validate_data([])
    assert not result.is_valid
    assert len(result.errors) == 1


def test_validate_data_adds_summary_warning() -> None:
    result = validate_data([_record(), _record(title=None, source_row=3), _record(id="", source_row=4)])
    assert not result.is_valid
    assert len(result.errors) == 2
    assert result.warnings[-1] == "2 of 3 rows have validation errors"
