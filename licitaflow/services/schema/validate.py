"""Header and row validation for tender spreadsheets.

Validation is informational: the pipeline logs the findings but submission
is decided per record by eligibility and the remote endpoint's answer.
"""

from __future__ import annotations

from typing import Iterable, List, Mapping, Sequence

from .mapping import map_headers
from .models import (
    REQUIRED_FIELDS,
    CanonicalRecord,
    HeaderMapping,
    HeaderValidationResult,
    ValidationResult,
    is_missing,
)
from .transform import parse_amount, parse_date


def validate_headers(
    headers: Iterable[object],
    aliases: Mapping[str, str] | None = None,
    *,
    mapping: HeaderMapping | None = None,
) -> HeaderValidationResult:
    """Check that the spreadsheet headers cover every required field.

    Pass an already computed ``mapping`` to avoid matching the headers twice.
    """

    header_mapping = mapping if mapping is not None else map_headers(headers, aliases)
    mapped = header_mapping.canonical_fields
    missing = [name for name in REQUIRED_FIELDS if name not in mapped]
    return HeaderValidationResult(
        is_valid=not missing,
        mapped_headers=mapped,
        missing_headers=missing,
        extra_headers=list(header_mapping.unmapped),
    )


def _row_label(record: CanonicalRecord, position: int) -> str:
    row = record.source_row if record.source_row is not None else position + 2
    return f"Row {row}"


def validate_row(record: CanonicalRecord, position: int = 0) -> ValidationResult:
    """Collect every problem of one record; never stops at the first."""

    label = _row_label(record, position)
    errors: List[str] = []
    warnings: List[str] = []

    if is_missing(record.id):
        errors.append(f"{label}: id is required")
    if is_missing(record.title):
        errors.append(f"{label}: title is required")

    # unparseable optional values are sent empty (dates) or as 0 (amount)
    if not is_missing(record.publication_date) and parse_date(record.publication_date) is None:
        warnings.append(f"{label}: invalid publication date {record.publication_date!r}")
    if not is_missing(record.closing_date) and parse_date(record.closing_date) is None:
        warnings.append(f"{label}: invalid closing date {record.closing_date!r}")

    if not is_missing(record.available_amount):
        amount = parse_amount(record.available_amount)
        if amount is None or amount != amount:
            warnings.append(f"{label}: available amount {record.available_amount!r} is not a number")
        elif amount < 0:
            errors.append(f"{label}: available amount must be a non-negative number")

    if is_missing(record.issuing_body):
        warnings.append(f"{label}: issuing body is empty")
    if is_missing(record.unit):
        warnings.append(f"{label}: unit is empty")

    return ValidationResult(is_valid=not errors, errors=errors, warnings=warnings)


def validate_data(records: Sequence[CanonicalRecord]) -> ValidationResult:
    """Aggregate row validation over a whole sheet."""

    if not records:
        return ValidationResult(is_valid=False, errors=["no data rows to validate"])

    errors: List[str] = []
    warnings: List[str] = []
    invalid = 0
    for position, record in enumerate(records):
        result = validate_row(record, position)
        errors.extend(result.errors)
        warnings.extend(result.warnings)
        if not result.is_valid:
            invalid += 1

    if invalid:
        warnings.append(f"{invalid} of {len(records)} rows have validation errors")
    return ValidationResult(is_valid=not errors, errors=errors, warnings=warnings)


__all__ = ["validate_data", "validate_headers", "validate_row"]
