"""Data models shared by the schema mapper, validator and pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

RawRecord = Mapping[str, Any]

REQUIRED_FIELDS: tuple[str, ...] = ("id", "title")
CANONICAL_FIELDS: tuple[str, ...] = (
    "id",
    "title",
    "publication_date",
    "closing_date",
    "issuing_body",
    "unit",
    "available_amount",
    "currency",
    "status",
)


@dataclass(slots=True)
class CanonicalRecord:
    """Normalized representation of one spreadsheet row.

    Values keep their cell type (dates may still be text); coercion to wire
    types happens in :func:`licitaflow.services.schema.transform.to_payload`.
    """

    id: Optional[str] = None
    title: Optional[str] = None
    publication_date: Any = None
    closing_date: Any = None
    issuing_body: Optional[str] = None
    unit: Optional[str] = None
    available_amount: Any = None
    currency: Optional[str] = None
    status: Optional[str] = None
    source_row: Optional[int] = None

    @property
    def is_eligible(self) -> bool:
        """True when the record carries the fields the remote endpoint requires."""

        return _has_text(self.id) and _has_text(self.title)


@dataclass(slots=True)
class SubmissionPayload:
    """Exact wire object posted to the ingestion endpoint."""

    licitacion_id: str
    nombre: str
    fecha_publicacion: str
    fecha_cierre: str
    organismo: str
    unidad: str
    monto_disponible: float
    moneda: str
    estado: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class FailedRecord:
    """A record that could not be submitted during the current run."""

    original_row: Dict[str, Any]
    payload: SubmissionPayload
    error: str
    row_index: int
    status_code: Optional[int] = None

    @property
    def row_number(self) -> int:
        # header occupies row 1
        return self.row_index + 2


@dataclass(slots=True)
class HeaderMapping:
    """Outcome of matching spreadsheet headers against the alias table."""

    mapping: Dict[str, str]
    unmapped: List[str] = field(default_factory=list)

    @property
    def canonical_fields(self) -> List[str]:
        return list(self.mapping.values())


@dataclass(slots=True)
class HeaderValidationResult:
    is_valid: bool
    mapped_headers: List[str]
    missing_headers: List[str]
    extra_headers: List[str]


@dataclass(slots=True)
class ValidationResult:
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def _has_text(value: object) -> bool:
    return isinstance(value, str) and value.strip() != ""


def is_missing(value: object) -> bool:
    """Return True for None, NaN/NaT and blank strings."""

    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, float) and value != value:
        return True
    if isinstance(value, datetime):
        # pandas.NaT is a datetime subclass that compares unequal to itself
        return value != value
    return False


__all__ = [
    "CANONICAL_FIELDS",
    "CanonicalRecord",
    "FailedRecord",
    "HeaderMapping",
    "HeaderValidationResult",
    "RawRecord",
    "REQUIRED_FIELDS",
    "SubmissionPayload",
    "ValidationResult",
    "is_missing",
]
