"""Header mapping, validation and payload transformation for tender sheets."""

from .mapping import load_header_aliases, map_headers, normalize_header, to_canonical
from .models import (
    CanonicalRecord,
    FailedRecord,
    HeaderMapping,
    HeaderValidationResult,
    SubmissionPayload,
    ValidationResult,
)
from .transform import format_date_for_api, parse_amount, parse_date, to_payload
from .validate import validate_data, validate_headers, validate_row

__all__ = [
    "CanonicalRecord",
    "FailedRecord",
    "HeaderMapping",
    "HeaderValidationResult",
    "SubmissionPayload",
    "ValidationResult",
    "format_date_for_api",
    "load_header_aliases",
    "map_headers",
    "normalize_header",
    "parse_amount",
    "parse_date",
    "to_canonical",
    "to_payload",
    "validate_data",
    "validate_headers",
    "validate_row",
]
