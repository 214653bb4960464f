"""Client for the remote tender ingestion endpoint."""

from .client import SubmissionClient, safe_body
from .models import (
    BatchResult,
    SubmissionError,
    SubmissionRequestError,
    SubmissionRetryableError,
    is_duplicate_signal,
)

__all__ = [
    "BatchResult",
    "SubmissionClient",
    "SubmissionError",
    "SubmissionRequestError",
    "SubmissionRetryableError",
    "is_duplicate_signal",
    "safe_body",
]
