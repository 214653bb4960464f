"""Logging helper for the licitaflow_io package."""

# Module responsibilities:
# - Reuse the application logger so IO events land in the same rotating log file.
# - Namespace IO loggers under ``licitaflow.io``.

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from licitaflow.core.logger import get_logger as core_get_logger


def get_logger(name: str, log_dir: Optional[Path] = None) -> logging.Logger:
    """Return a logger scoped under ``licitaflow.io``.

    Args:
        name: Logger name suffix appended to the IO namespace.
        log_dir: Optional override for the logging directory (first call wins).

    Returns:
        Child logger of the application logger.
    """

    return core_get_logger(log_dir).getChild(f"io.{name}")
