"""Exceptions and result models for the ingestion endpoint client."""

from __future__ import annotations

import json
import unicodedata
from dataclasses import dataclass, field
from typing import Any, List

RETRYABLE_STATUS = {429, 500, 502, 503, 504}
DUPLICATE_STATUS = {400, 409}
DUPLICATE_MARKERS = ("ya existe", "already exist", "duplicad", "duplicate")
MAX_BATCH_ERRORS = 5


class SubmissionError(RuntimeError):
    """Base error raised for ingestion endpoint failures."""

    def __init__(self, message: str, *, status_code: int | None = None, payload: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload if payload is not None else {}


class SubmissionRetryableError(SubmissionError):
    """Raised for retryable I/O issues (network, timeout, throttling, server errors)."""


class SubmissionRequestError(SubmissionError):
    """Raised for non-retryable HTTP or protocol errors."""


@dataclass(slots=True)
class BatchResult:
    """Tally of a sequential batch submission."""

    success: int = 0
    errors: int = 0
    messages: List[str] = field(default_factory=list)

    def record_error(self, message: str) -> None:
        self.errors += 1
        if len(self.messages) < MAX_BATCH_ERRORS:
            self.messages.append(message)


def _fold(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).lower()


def body_text(body: Any) -> str:
    """Flatten a response body (parsed JSON or raw text) into searchable text."""

    if body is None:
        return ""
    if isinstance(body, (bytes, bytearray)):
        return body.decode("utf-8", errors="replace")
    if isinstance(body, str):
        return body
    try:
        return json.dumps(body, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return str(body)


def is_duplicate_signal(status_code: int | None, body: Any) -> bool:
    """True when the endpoint rejected a record because it already holds it."""

    if status_code not in DUPLICATE_STATUS:
        return False
    haystack = _fold(body_text(body))
    return any(marker in haystack for marker in DUPLICATE_MARKERS)


__all__ = [
    "BatchResult",
    "DUPLICATE_MARKERS",
    "MAX_BATCH_ERRORS",
    "RETRYABLE_STATUS",
    "SubmissionError",
    "SubmissionRequestError",
    "SubmissionRetryableError",
    "body_text",
    "is_duplicate_signal",
]
