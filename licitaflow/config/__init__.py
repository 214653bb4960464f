"""Runtime settings for licitaflow.

Settings resolve in three layers: dataclass defaults, an optional YAML profile
file, then environment variables (a ``.env`` in the working directory is loaded
first via python-dotenv and never overrides variables already set).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping

import yaml
from dotenv import find_dotenv, load_dotenv

from licitaflow.core.errors import ConfigError

CONFIG_DIR = Path(__file__).resolve().parent
HEADER_ALIASES_PATH = CONFIG_DIR / "header_aliases.yaml"

DEFAULT_INBOX_DIR = "./excel-files"
DEFAULT_PROCESSED_DIR = "./processed-files"
DEFAULT_ERROR_DIR = "./error-files"
DEFAULT_STORE_PATH = "./data/processed_records.json"
DEFAULT_BASE_URL = "http://localhost:3000/api"
DEFAULT_INGEST_PATH = "/up_compra.php"
DEFAULT_TIMEOUT_MS = 60_000
DEFAULT_BATCH_SIZE = 100
DEFAULT_CURRENCY = "CLP"

INBOX_DIR_ENV = "EXCEL_DIRECTORY"
PROCESSED_DIR_ENV = "PROCESSED_DIRECTORY"
ERROR_DIR_ENV = "ERROR_DIRECTORY"
STORE_PATH_ENV = "DEDUP_STORE_PATH"
BATCH_SIZE_ENV = "BATCH_SIZE"
BASE_URL_ENV = "API_BASE_URL"
API_KEY_ENV = "API_KEY"
TIMEOUT_ENV = "API_TIMEOUT"
INGEST_PATH_ENV = "API_INGEST_PATH"
RETRY_ATTEMPTS_ENV = "API_RETRY_ATTEMPTS"
RETRY_DELAY_MS_ENV = "API_RETRY_DELAY_MS"
RETRY_MAX_DELAY_MS_ENV = "API_RETRY_MAX_DELAY_MS"
SEND_DELAY_MS_ENV = "API_SEND_DELAY_MS"
CURRENCY_ENV = "DEFAULT_CURRENCY"
LOG_DIR_ENV = "LOG_DIR"
LOG_LEVEL_ENV = "LOG_LEVEL"


@dataclass(slots=True)
class RetrySettings:
    """Backoff parameters for ingestion requests."""

    max_attempts: int = 3
    delay_ms: int = 1000
    max_delay_ms: int = 10_000

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "RetrySettings":
        if not data:
            return cls()
        return cls(
            max_attempts=_as_int(data.get("max_attempts", 3), "retries.max_attempts"),
            delay_ms=_as_int(data.get("delay_ms", 1000), "retries.delay_ms"),
            max_delay_ms=_as_int(data.get("max_delay_ms", 10_000), "retries.max_delay_ms"),
        )


@dataclass(slots=True)
class ApiSettings:
    """Remote ingestion endpoint configuration."""

    base_url: str = DEFAULT_BASE_URL
    api_key: str | None = None
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    ingest_path: str = DEFAULT_INGEST_PATH
    send_delay_ms: int = 100
    retries: RetrySettings = field(default_factory=RetrySettings)

    @property
    def timeout_sec(self) -> float:
        return self.timeout_ms / 1000.0


@dataclass(slots=True)
class AppSettings:
    """Resolved process-wide configuration injected into the pipeline."""

    inbox_dir: Path = Path(DEFAULT_INBOX_DIR)
    processed_dir: Path = Path(DEFAULT_PROCESSED_DIR)
    error_dir: Path = Path(DEFAULT_ERROR_DIR)
    store_path: Path = Path(DEFAULT_STORE_PATH)
    batch_size: int = DEFAULT_BATCH_SIZE
    default_currency: str = DEFAULT_CURRENCY
    log_dir: Path = Path("logs")
    log_level: str = "INFO"
    api: ApiSettings = field(default_factory=ApiSettings)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "AppSettings":
        """Create settings from a profile mapping (unknown keys are ignored)."""

        directories = _ensure_mapping(data.get("directories")) or {}
        api_raw = _ensure_mapping(data.get("api")) or {}
        defaults = cls()
        api = ApiSettings(
            base_url=str(_expand_env(api_raw.get("base_url", DEFAULT_BASE_URL))),
            api_key=_expand_env(api_raw.get("api_key")) or None,
            timeout_ms=_as_int(api_raw.get("timeout_ms", DEFAULT_TIMEOUT_MS), "api.timeout_ms"),
            ingest_path=str(api_raw.get("ingest_path", DEFAULT_INGEST_PATH)),
            send_delay_ms=_as_int(api_raw.get("send_delay_ms", 100), "api.send_delay_ms"),
            retries=RetrySettings.from_mapping(_ensure_mapping(api_raw.get("retries"))),
        )
        return cls(
            inbox_dir=Path(_expand_env(directories.get("inbox", defaults.inbox_dir))),
            processed_dir=Path(_expand_env(directories.get("processed", defaults.processed_dir))),
            error_dir=Path(_expand_env(directories.get("error", defaults.error_dir))),
            store_path=Path(_expand_env(data.get("store_path", defaults.store_path))),
            batch_size=_as_int(data.get("batch_size", DEFAULT_BATCH_SIZE), "batch_size"),
            default_currency=str(data.get("default_currency", DEFAULT_CURRENCY)),
            log_dir=Path(_expand_env(data.get("log_dir", defaults.log_dir))),
            log_level=str(data.get("log_level", defaults.log_level)),
            api=api,
        )

    def redacted(self) -> dict[str, Any]:
        """Return a printable view with the API key masked."""

        key = self.api.api_key
        return {
            "inbox_dir": str(self.inbox_dir),
            "processed_dir": str(self.processed_dir),
            "error_dir": str(self.error_dir),
            "store_path": str(self.store_path),
            "batch_size": self.batch_size,
            "default_currency": self.default_currency,
            "log_dir": str(self.log_dir),
            "log_level": self.log_level,
            "api_base_url": self.api.base_url,
            "api_ingest_path": self.api.ingest_path,
            "api_key": f"***{key[-4:]}" if key and len(key) > 4 else ("***" if key else None),
            "api_timeout_ms": self.api.timeout_ms,
            "api_retry_attempts": self.api.retries.max_attempts,
            "api_send_delay_ms": self.api.send_delay_ms,
        }


def _read_env(key: str) -> str | None:
    value = os.getenv(key)
    if value is None:
        return None
    return value.strip()


def _read_env_int(key: str) -> int | None:
    value = _read_env(key)
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError as exc:
        raise ConfigError(f"Environment variable {key} must be an integer") from exc


def _as_int(value: Any, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Setting {name} must be an integer, got {value!r}") from exc


def _ensure_mapping(value: Any) -> Mapping[str, Any] | None:
    if isinstance(value, Mapping):
        return value
    return None


def _expand_env(value: Any) -> Any:
    if isinstance(value, str):
        expanded = os.path.expandvars(value)
        if "${" in value and "}" in value and expanded == value:
            raise ConfigError(f"Environment variable not set for value: {value}")
        return expanded
    return value


def load_profile(path: str | Path, profile: str | None = None) -> AppSettings:
    """Load settings from a YAML file holding a ``profiles`` section."""

    cfg_path = Path(path)
    if not cfg_path.exists():
        raise ConfigError(f"settings file not found: {cfg_path}")
    with cfg_path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, Mapping):
        raise ConfigError("settings file must contain a mapping")
    profiles = _ensure_mapping(data.get("profiles"))
    if profiles is None:
        return AppSettings.from_mapping(data)
    name = profile or str(data.get("default_profile") or "default")
    raw = profiles.get(name)
    if not isinstance(raw, Mapping):
        raise ConfigError(f"profile '{name}' not found in {cfg_path}")
    return AppSettings.from_mapping(raw)


def apply_env_overrides(base: AppSettings) -> AppSettings:
    """Return a copy of *base* with environment variables applied on top."""

    retries = base.api.retries
    api = replace(
        base.api,
        base_url=_read_env(BASE_URL_ENV) or base.api.base_url,
        api_key=_read_env(API_KEY_ENV) or base.api.api_key,
        timeout_ms=_read_env_int(TIMEOUT_ENV) or base.api.timeout_ms,
        ingest_path=_read_env(INGEST_PATH_ENV) or base.api.ingest_path,
        send_delay_ms=_first_int(_read_env_int(SEND_DELAY_MS_ENV), base.api.send_delay_ms),
        retries=RetrySettings(
            max_attempts=_read_env_int(RETRY_ATTEMPTS_ENV) or retries.max_attempts,
            delay_ms=_first_int(_read_env_int(RETRY_DELAY_MS_ENV), retries.delay_ms),
            max_delay_ms=_first_int(_read_env_int(RETRY_MAX_DELAY_MS_ENV), retries.max_delay_ms),
        ),
    )
    return replace(
        base,
        inbox_dir=Path(_read_env(INBOX_DIR_ENV) or base.inbox_dir),
        processed_dir=Path(_read_env(PROCESSED_DIR_ENV) or base.processed_dir),
        error_dir=Path(_read_env(ERROR_DIR_ENV) or base.error_dir),
        store_path=Path(_read_env(STORE_PATH_ENV) or base.store_path),
        batch_size=_read_env_int(BATCH_SIZE_ENV) or base.batch_size,
        default_currency=_read_env(CURRENCY_ENV) or base.default_currency,
        log_dir=Path(_read_env(LOG_DIR_ENV) or base.log_dir),
        log_level=_read_env(LOG_LEVEL_ENV) or base.log_level,
        api=api,
    )


def _first_int(value: int | None, fallback: int) -> int:
    # zero is a legitimate delay, so "or" cannot be used here
    return fallback if value is None else value


def resolve_settings(
    config_path: str | Path | None = None,
    *,
    profile: str | None = None,
    env_file: str | Path | None = None,
) -> AppSettings:
    """Resolve settings from defaults, an optional YAML profile and the environment."""

    dotenv_path = env_file or find_dotenv(usecwd=True)
    if dotenv_path:
        load_dotenv(dotenv_path=dotenv_path, override=False)
    base = load_profile(config_path, profile) if config_path else AppSettings()
    settings = apply_env_overrides(base)
    if settings.batch_size <= 0:
        raise ConfigError("batch_size must be a positive integer")
    if settings.api.retries.max_attempts <= 0:
        raise ConfigError("retry max_attempts must be a positive integer")
    return settings


__all__ = [
    "ApiSettings",
    "AppSettings",
    "CONFIG_DIR",
    "HEADER_ALIASES_PATH",
    "RetrySettings",
    "apply_env_overrides",
    "load_profile",
    "resolve_settings",
]
