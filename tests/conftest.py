from __future__ import annotations

import faulthandler
import os
import socket
import sys
import tempfile
from pathlib import Path
from typing import Any, Sequence

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# The application logger binds its file handler on first use.
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="licitaflow-test-logs-"))

faulthandler.enable()  # Ensure crashes emit tracebacks.
socket.setdefaulttimeout(10)

import pandas as pd

HEADERS = [
    "ID",
    "Nombre",
    "Fecha de Publicación",
    "Fecha de Cierre",
    "Organismo",
    "Unidad",
    "Monto Disponible",
    "Moneda",
    "Estado",
]


def tender_row(licitacion_id: Any, nombre: Any = "Servicio de aseo", **overrides: Any) -> list[Any]:
    values = {
        "ID": licitacion_id,
        "Nombre": nombre,
        "Fecha de Publicación": "2024-03-01",
        "Fecha de Cierre": "15/03/2024 12:30",
        "Organismo": "Municipalidad de Valparaíso",
        "Unidad": "Adquisiciones",
        "Monto Disponible": 1500000,
        "Moneda": "CLP",
        "Estado": "Publicada",
    }
    values.update(overrides)
    return [values[h] for h in HEADERS]


def write_workbook(path: Path, rows: Sequence[Sequence[Any]], headers: Sequence[str] = HEADERS) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    frame = pd.DataFrame(list(rows), columns=list(headers))
    frame.to_excel(path, index=False)
    return path


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer environment variables out of the tests."""

    for key in (
        "EXCEL_DIRECTORY",
        "PROCESSED_DIRECTORY",
        "ERROR_DIRECTORY",
        "DEDUP_STORE_PATH",
        "BATCH_SIZE",
        "API_BASE_URL",
        "API_KEY",
        "API_TIMEOUT",
        "API_INGEST_PATH",
        "API_RETRY_ATTEMPTS",
        "API_RETRY_DELAY_MS",
        "API_RETRY_MAX_DELAY_MS",
        "API_SEND_DELAY_MS",
        "DEFAULT_CURRENCY",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(key, raising=False)
