from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import pytest
from requests.exceptions import ConnectionError as RequestsConnectionError
from requests.exceptions import Timeout

from licitaflow.config import ApiSettings, RetrySettings
from licitaflow.services.schema.models import SubmissionPayload
from licitaflow.services.submission import client as client_module
from licitaflow.services.submission.client import SubmissionClient
from licitaflow.services.submission.models import (
    SubmissionRequestError,
    SubmissionRetryableError,
    is_duplicate_signal,
)


@dataclass
class MockResponse:
    status_code: int = 200
    json_data: Any = None
    text_data: str | None = None

    def json(self) -> Any:
        if self.json_data is None:
            raise ValueError("JSON body not set")
        return self.json_data

    @property
    def text(self) -> str:
        if self.text_data is not None:
            return self.text_data
        if self.json_data is not None:
            return json.dumps(self.json_data)
        return ""


class FakeSession:
    def __init__(self, responses: list[MockResponse | Exception]) -> None:
        self._responses = responses
        self.headers: dict[str, str] = {}
        self.calls: list[tuple[str, str]] = []
        self.call_kwargs: list[dict[str, Any]] = []
        self.closed = False

    def request(self, method: str, url: str, **kwargs: Any) -> MockResponse:
        if not self._responses:
            raise AssertionError("No more responses queued")
        self.calls.append((method, url))
        self.call_kwargs.append(kwargs)
        item = self._responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def sleeps(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    recorded: list[float] = []
    monkeypatch.setattr(client_module.time, "sleep", lambda seconds: recorded.append(seconds))
    return recorded


def _settings(**overrides: Any) -> ApiSettings:
    values: dict[str, Any] = {
        "base_url": "https://registry.example.cl/api/",
        "api_key": "secret-token",
        "timeout_ms": 1500,
        "send_delay_ms": 100,
        "retries": RetrySettings(max_attempts=3, delay_ms=1000, max_delay_ms=1500),
    }
    values.update(overrides)
    return ApiSettings(**values)


def _build_client(responses: list[MockResponse | Exception], **overrides: Any) -> tuple[SubmissionClient, FakeSession]:
    session = FakeSession(responses)
    return SubmissionClient(_settings(**overrides), session=session), session


def _payload(licitacion_id: str = "1234-56-LE24") -> SubmissionPayload:
    return SubmissionPayload(
        licitacion_id=licitacion_id,
        nombre="Servicio de aseo",
        fecha_publicacion="2024-03-01 00:00",
        fecha_cierre="",
        organismo="Municipalidad",
        unidad="Compras",
        monto_disponible=1500.0,
        moneda="CLP",
        estado="Publicada",
    )


def test_send_one_posts_json_with_bearer_token(sleeps: list[float]) -> None:
    client, session = _build_client([MockResponse(status_code=200, json_data={"ok": True})])

    response = client.send_one(_payload())

    assert response.status_code == 200
    assert session.calls == [("POST", "https://registry.example.cl/api/up_compra.php")]
    kwargs = session.call_kwargs[0]
    assert kwargs["json"]["licitacion_id"] == "1234-56-LE24"
    assert kwargs["headers"]["Authorization"] == "Bearer secret-token"
    assert kwargs["headers"]["Content-Type"] == "application/json"
    assert kwargs["timeout"] == 1.5
    assert sleeps == []


def test_send_one_omits_authorization_without_key() -> None:
    client, session = _build_client([MockResponse(status_code=200)], api_key=None)
    client.send_one({"licitacion_id": "X"})
    assert "Authorization" not in session.call_kwargs[0]["headers"]


def test_send_one_returns_error_statuses() -> None:
    client, _ = _build_client([MockResponse(status_code=500, text_data="boom")])
    assert client.send_one(_payload()).status_code == 500


def test_send_one_maps_network_errors_to_retryable() -> None:
    client, _ = _build_client([Timeout("read timed out")])
    with pytest.raises(SubmissionRetryableError):
        client.send_one(_payload())


def test_submit_retries_server_errors_with_capped_backoff(sleeps: list[float]) -> None:
    client, session = _build_client(
        [
            MockResponse(status_code=503, text_data="unavailable"),
            RequestsConnectionError("reset"),
            MockResponse(status_code=200, json_data={"ok": True}),
        ]
    )

    response = client.submit(_payload())

    assert response.status_code == 200
    assert len(session.calls) == 3
    assert sleeps == [1.0, 1.5]


def test_submit_raises_last_error_when_attempts_exhausted(sleeps: list[float]) -> None:
    client, session = _build_client([MockResponse(status_code=502)] * 3)

    with pytest.raises(SubmissionRetryableError) as excinfo:
        client.submit(_payload())

    assert excinfo.value.status_code == 502
    assert len(session.calls) == 3
    assert len(sleeps) == 2


def test_submit_does_not_retry_client_errors(sleeps: list[float]) -> None:
    client, session = _build_client([MockResponse(status_code=422, json_data={"error": "invalid"})])

    response = client.submit(_payload())

    assert response.status_code == 422
    assert len(session.calls) == 1
    assert sleeps == []


def test_execute_with_retry_propagates_terminal_errors(sleeps: list[float]) -> None:
    client, _ = _build_client([])
    calls: list[int] = []

    def operation() -> None:
        calls.append(1)
        raise SubmissionRequestError("bad request", status_code=400)

    with pytest.raises(SubmissionRequestError):
        client.execute_with_retry(operation, max_retries=5)
    assert calls == [1]
    assert sleeps == []


def test_send_batch_tallies_and_caps_messages(sleeps: list[float]) -> None:
    responses: list[MockResponse | Exception] = [MockResponse(status_code=200)]
    responses += [MockResponse(status_code=422, text_data="invalid") for _ in range(6)]
    client, _ = _build_client(responses)

    result = client.send_batch([_payload(f"ID-{i}") for i in range(7)])

    assert result.success == 1
    assert result.errors == 6
    assert len(result.messages) == 5
    assert result.messages[0] == "ID-1: HTTP 422"
    assert sleeps == [0.1] * 6


@pytest.mark.parametrize(
    "response, healthy",
    [
        (MockResponse(status_code=200), True),
        (MockResponse(status_code=400, json_data={"error": "missing fields"}), True),
        (MockResponse(status_code=500), False),
        (RequestsConnectionError("refused"), False),
    ],
)
def test_check_health(response: MockResponse | Exception, healthy: bool) -> None:
    client, session = _build_client([response])
    assert client.check_health() is healthy
    assert session.call_kwargs[0]["json"] == {}


def test_context_manager_closes_session() -> None:
    client, session = _build_client([])
    with client:
        pass
    assert session.closed


@pytest.mark.parametrize(
    "status, body, expected",
    [
        (409, {"error": "La licitación YA EXISTE"}, True),
        (400, "Record already exists", True),
        (400, {"message": "Registro duplicado"}, True),
        (409, "duplicate key", True),
        (400, {"error": "campo nombre requerido"}, False),
        (500, "already exists", False),
        (200, "ya existe", False),
        (None, "duplicate", False),
    ],
)
def test_is_duplicate_signal(status: int | None, body: object, expected: bool) -> None:
    assert is_duplicate_signal(status, body) is expected
