"""HTTP client for the tender ingestion endpoint."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Iterable, Mapping, TypeVar

import requests
from requests import Response
from requests.exceptions import ConnectionError, RequestException, Timeout

from licitaflow.config import ApiSettings
from licitaflow.core.logger import get_logger
from licitaflow.services.schema.models import SubmissionPayload

from .models import (
    RETRYABLE_STATUS,
    BatchResult,
    SubmissionError,
    SubmissionRequestError,
    SubmissionRetryableError,
)

LOGGER = get_logger().getChild("submission")

USER_AGENT = "LicitaFlow/1.0"
HEALTHY_STATUS = {200, 400}

T = TypeVar("T")


class SubmissionClient:
    """Posts payloads one at a time, retrying transient failures with backoff."""

    def __init__(
        self,
        settings: ApiSettings,
        *,
        session: requests.Session | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._settings = settings
        self._session = session or requests.Session()
        self._session.headers.setdefault("User-Agent", USER_AGENT)
        self._logger = logger or LOGGER

    @property
    def settings(self) -> ApiSettings:
        return self._settings

    @property
    def ingest_url(self) -> str:
        return self._compose_url(self._settings.ingest_path)

    # Public API -------------------------------------------------------

    def send_one(self, payload: SubmissionPayload | Mapping[str, Any]) -> Response:
        """POST one payload and return the response whatever its status.

        Raises :class:`SubmissionRetryableError` on connection errors and
        timeouts, :class:`SubmissionRequestError` on other transport errors.
        """

        body = payload.to_dict() if isinstance(payload, SubmissionPayload) else dict(payload)
        url = self.ingest_url
        try:
            response = self._session.request(
                "POST",
                url,
                json=body,
                headers=self._headers(),
                timeout=self._settings.timeout_sec,
            )
        except (ConnectionError, Timeout) as exc:
            self._logger.warning(
                "submission.http connection_error url=%s id=%s error=%s",
                url,
                body.get("licitacion_id"),
                type(exc).__name__,
            )
            raise SubmissionRetryableError(
                f"{type(exc).__name__}: {exc}", payload={"url": url}
            ) from exc
        except RequestException as exc:
            raise SubmissionRequestError(f"{type(exc).__name__}: {exc}", payload={"url": url}) from exc

        self._logger.debug(
            "submission.http response url=%s id=%s status=%d",
            url,
            body.get("licitacion_id"),
            response.status_code,
        )
        return response

    def submit(self, payload: SubmissionPayload | Mapping[str, Any]) -> Response:
        """Send one payload, retrying throttling, server errors and network failures."""

        def attempt() -> Response:
            response = self.send_one(payload)
            if response.status_code in RETRYABLE_STATUS:
                raise SubmissionRetryableError(
                    f"Retryable status {response.status_code}",
                    status_code=response.status_code,
                    payload=safe_body(response),
                )
            return response

        return self.execute_with_retry(attempt)

    def execute_with_retry(self, operation: Callable[[], T], max_retries: int | None = None) -> T:
        """Run *operation*, retrying only :class:`SubmissionRetryableError`.

        *max_retries* is the total number of attempts and defaults to the
        configured ``max_attempts``. The last error is raised once they are
        exhausted; any other exception propagates immediately.
        """

        retries = self._settings.retries
        attempts = max(1, max_retries if max_retries is not None else retries.max_attempts)
        base = max(0.0, retries.delay_ms / 1000.0)
        maximum = max(base, retries.max_delay_ms / 1000.0)

        for attempt in range(1, attempts + 1):
            try:
                return operation()
            except SubmissionRetryableError as exc:
                if attempt >= attempts:
                    self._logger.error(
                        "submission.retry exhausted attempts=%d status=%s error=%s",
                        attempts,
                        exc.status_code,
                        exc,
                    )
                    raise
                delay = min(maximum, base * (2 ** (attempt - 1)))
                self._logger.warning(
                    "submission.retry attempt=%d/%d delay=%.2fs status=%s error=%s",
                    attempt,
                    attempts,
                    delay,
                    exc.status_code,
                    exc,
                )
                time.sleep(delay)
        raise SubmissionRetryableError("Exhausted retries")  # pragma: no cover - loop always returns or raises

    def send_batch(self, payloads: Iterable[SubmissionPayload | Mapping[str, Any]]) -> BatchResult:
        """Submit payloads sequentially with the inter-send delay between them."""

        result = BatchResult()
        for index, payload in enumerate(payloads):
            if index:
                self.pause()
            label = _payload_id(payload)
            try:
                response = self.submit(payload)
            except SubmissionError as exc:
                result.record_error(f"{label}: {exc}")
                continue
            if response.status_code == 200:
                result.success += 1
            else:
                result.record_error(f"{label}: HTTP {response.status_code}")
        self._logger.info(
            "submission.batch done success=%d errors=%d", result.success, result.errors
        )
        return result

    def pause(self) -> None:
        delay = self._settings.send_delay_ms / 1000.0
        if delay > 0:
            time.sleep(delay)

    def check_health(self) -> bool:
        """Probe the endpoint with an empty payload; never raises."""

        url = self.ingest_url
        try:
            response = self._session.request(
                "POST",
                url,
                json={},
                headers=self._headers(),
                timeout=self._settings.timeout_sec,
            )
        except RequestException as exc:
            self._logger.warning("submission.health unreachable url=%s error=%s", url, type(exc).__name__)
            return False
        healthy = response.status_code in HEALTHY_STATUS
        self._logger.info(
            "submission.health url=%s status=%d healthy=%s", url, response.status_code, healthy
        )
        return healthy

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "SubmissionClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # Internal helpers -------------------------------------------------

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._settings.api_key:
            headers["Authorization"] = f"Bearer {self._settings.api_key}"
        return headers

    def _compose_url(self, path: str) -> str:
        base = self._settings.base_url.rstrip("/")
        if path.startswith("http://") or path.startswith("https://"):
            return path
        if not path.startswith("/"):
            path = f"/{path}"
        return f"{base}{path}"


def safe_body(response: Response) -> Any:
    """Return the parsed JSON body, or a truncated text body."""

    try:
        return response.json()
    except ValueError:
        text = response.text or ""
        if len(text) > 500:
            text = text[:500] + "..."
        return text


def _payload_id(payload: SubmissionPayload | Mapping[str, Any]) -> str:
    if isinstance(payload, SubmissionPayload):
        return payload.licitacion_id
    return str(payload.get("licitacion_id", ""))


__all__ = ["SubmissionClient", "safe_body"]
