"""
RESPONSIBILITIES
- Define shared interfaces and exceptions for file-backed stores.
- Outline the init/load/persist/healthcheck workflow used by concrete stores.
PROCESS OVERVIEW
1. init_store -> resolve target path, ensure the parent directory exists.
2. load -> read the backing document into memory (once, at construction).
3. flush -> write the in-memory state back atomically when it changed.
4. healthcheck -> verify directory write access and document readability.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path


class StoreError(RuntimeError):
    """Base exception type for persistence-layer failures."""


class StoreInitializationError(StoreError):
    """Raised when a store cannot be initialized due to missing prerequisites."""


class StoreValidationError(StoreError):
    """Raised when input data fails validation rules."""


class StorePersistError(StoreError):
    """Raised when the in-memory state cannot be written to disk."""


@dataclass(slots=True)
class PersistHealth:
    """Structured report produced by health checks."""

    writable_paths: dict[str, bool]
    readable: bool = True
    record_count: int = 0
    issues: list[str] = field(default_factory=list)

    def is_healthy(self) -> bool:
        """Return True when no issues are observed."""

        return not self.issues and self.readable and all(self.writable_paths.values())


class BaseStore(ABC):
    """Abstract class shared by concrete file-backed stores."""

    path: Path

    def __init__(self, *, logger: logging.Logger | None = None) -> None:
        self.logger = logger or logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def init_store(self) -> Path:
        """Ensure the backing location is usable, returning its absolute path."""

    @abstractmethod
    def flush(self) -> bool:
        """Persist pending changes; return True when the document is up to date."""

    @abstractmethod
    def healthcheck(self) -> PersistHealth:
        """Run diagnostics for the store and return a structured report."""

    def close(self) -> None:
        self.flush()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
