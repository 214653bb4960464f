"""
RESPONSIBILITIES
- Provide a persistence-local logger helper reusing the core logging setup.
PROCESS OVERVIEW
1. Callers request get_logger(name).
2. The core licitaflow logger is reused and a ``persist.<name>`` child is returned.
"""

from __future__ import annotations

import logging
from pathlib import Path

from licitaflow.core.logger import get_logger as core_get_logger


def get_logger(name: str, log_dir: Path | None = None) -> logging.Logger:
    """Return a namespaced logger for persistence modules."""

    return core_get_logger(log_dir).getChild(f"persist.{name}")
