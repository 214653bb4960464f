from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_DIR_ENV = "LOG_DIR"
DEFAULT_LOG_DIR = Path("logs")

_LOGGER: logging.Logger | None = None


def _resolve_log_dir(log_dir: Path | str | None) -> Path:
    if log_dir is not None:
        return Path(log_dir)
    env = os.getenv(LOG_DIR_ENV)
    if env:
        return Path(env)
    return DEFAULT_LOG_DIR


def get_logger(log_dir: Path | str | None = None) -> logging.Logger:
    """Return the application logger writing to <LOG_DIR>/licitaflow.log.

    Creates the directory if needed. Uses rotating file handler. The first call
    wins; later ``log_dir`` arguments are ignored.
    """
    global _LOGGER
    if _LOGGER is not None:
        return _LOGGER

    base = _resolve_log_dir(log_dir)
    base.mkdir(parents=True, exist_ok=True)
    log_path = base / "licitaflow.log"

    logger = logging.getLogger("licitaflow")
    logger.setLevel(logging.INFO)
    logger.propagate = False

    fmt = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    file_handler = RotatingFileHandler(log_path, maxBytes=2 * 1024 * 1024, backupCount=3, encoding="utf-8")
    file_handler.setFormatter(fmt)
    logger.addHandler(file_handler)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(fmt)
    logger.addHandler(console)

    _LOGGER = logger
    return logger


def set_level(level: str | int) -> int:
    """Apply a level name (``"debug"``, ``"INFO"``...) to the application logger."""

    if isinstance(level, str):
        value = getattr(logging, level.upper(), None)
        if not isinstance(value, int):
            raise ValueError(f"Unknown log level: {level}")
    else:
        value = level
    get_logger().setLevel(value)
    return value
