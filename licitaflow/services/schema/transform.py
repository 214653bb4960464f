"""Value coercion from canonical records to the ingestion wire format."""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from typing import Optional

import pandas as pd

from .models import CanonicalRecord, SubmissionPayload, is_missing

API_DATE_FORMAT = "%Y-%m-%d %H:%M"
DEFAULT_CURRENCY = "CLP"

# Excel's day zero (accounts for the 1900 leap-year bug)
_EXCEL_EPOCH = datetime(1899, 12, 30)
_EXCEL_SERIAL_RANGE = (1, 2_958_465)

_STRICT_FORMATS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"^\d{4}-\d{2}-\d{2}$"), "%Y-%m-%d"),
    (re.compile(r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}$"), "%Y-%m-%d %H:%M"),
    (re.compile(r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}$"), "%Y-%m-%d %H:%M:%S"),
    (re.compile(r"^\d{2}/\d{2}/\d{4}$"), "%d/%m/%Y"),
    (re.compile(r"^\d{2}/\d{2}/\d{4} \d{2}:\d{2}$"), "%d/%m/%Y %H:%M"),
    (re.compile(r"^\d{4}/\d{2}/\d{2}$"), "%Y/%m/%d"),
)
_ISO_WITH_T = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}")
_NON_NUMERIC = re.compile(r"[^\d.\-]")
_LEADING_NUMBER = re.compile(r"^-?(?:\d+(?:\.\d*)?|\.\d+)")


def _to_local_naive(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def parse_date(value: object) -> Optional[datetime]:
    """Parse a cell into a naive local datetime, or None when it is not a date.

    Shapes that match a known pattern but name an impossible day
    (``"2024-02-30"``) are rejected rather than handed to the lenient fallback.
    """

    if is_missing(value):
        return None
    if isinstance(value, pd.Timestamp):
        return _to_local_naive(value.to_pydatetime())
    if isinstance(value, datetime):
        return _to_local_naive(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if not _EXCEL_SERIAL_RANGE[0] <= value <= _EXCEL_SERIAL_RANGE[1]:
            return None
        return _EXCEL_EPOCH + timedelta(days=float(value))

    text = str(value).strip()
    for pattern, fmt in _STRICT_FORMATS:
        if pattern.match(text):
            try:
                return datetime.strptime(text, fmt)
            except ValueError:
                return None
    if _ISO_WITH_T.match(text):
        try:
            return _to_local_naive(datetime.fromisoformat(text.replace("Z", "+00:00")))
        except ValueError:
            return None

    parsed = pd.to_datetime(text, errors="coerce", dayfirst=True)
    if pd.isna(parsed):
        return None
    return _to_local_naive(parsed.to_pydatetime())


def format_date_for_api(value: datetime) -> str:
    return value.strftime(API_DATE_FORMAT)


def parse_amount(value: object) -> Optional[float]:
    """Coerce an amount cell to a float.

    Strings keep only digits, ``.`` and ``-`` and then the leading numeric
    prefix is read, so ``"$1,234.56"`` gives ``1234.56`` and ``"abc123"``
    gives ``123.0``. Returns None when nothing numeric remains.
    """

    if is_missing(value) or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    cleaned = _NON_NUMERIC.sub("", str(value))
    match = _LEADING_NUMBER.match(cleaned)
    if match is None:
        return None
    return float(match.group(0))


def _text(value: object) -> str:
    if is_missing(value):
        return ""
    return str(value).strip()


def _api_date(value: object) -> str:
    parsed = parse_date(value)
    return format_date_for_api(parsed) if parsed is not None else ""


def to_payload(record: CanonicalRecord, *, default_currency: str = DEFAULT_CURRENCY) -> SubmissionPayload:
    """Build the wire payload; every field is present and typed."""

    amount = parse_amount(record.available_amount)
    return SubmissionPayload(
        licitacion_id=_text(record.id),
        nombre=_text(record.title),
        fecha_publicacion=_api_date(record.publication_date),
        fecha_cierre=_api_date(record.closing_date),
        organismo=_text(record.issuing_body),
        unidad=_text(record.unit),
        monto_disponible=amount if amount is not None else 0,
        moneda=_text(record.currency) or default_currency,
        estado=_text(record.status),
    )


__all__ = [
    "API_DATE_FORMAT",
    "DEFAULT_CURRENCY",
    "format_date_for_api",
    "parse_amount",
    "parse_date",
    "to_payload",
]
