"""
RESPONSIBILITIES
- Keep the set of tender ids already accepted by the ingestion endpoint.
- Serve membership checks from memory and persist the full set after each change.
PROCESS OVERVIEW
1. DedupStore(path) loads {"records": [...]} once; a missing or corrupt document yields an empty set.
2. has_id() answers from the in-memory index.
3. add_id()/add_many() insert new ids and flush the whole document atomically.
4. A failed flush is logged and leaves the store dirty so close() retries it.
5. healthcheck() reports directory write access and document readability.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, Iterable, Iterator, List

from licitaflow_persist.schemas.dedup import DedupEntry
from licitaflow_persist.stores.base_store import (
    BaseStore,
    PersistHealth,
    StoreInitializationError,
    StorePersistError,
    StoreValidationError,
)
from licitaflow_persist.utils.json_io import read_json, write_json
from licitaflow_persist.utils.log import get_logger

RECORDS_KEY = "records"


class DedupStore(BaseStore):
    """JSON-backed set of submitted tender ids."""

    def __init__(self, path: Path | str, *, logger: logging.Logger | None = None) -> None:
        super().__init__(logger=logger or get_logger("dedup_store"))
        self.path = Path(path).expanduser()
        self._entries: Dict[str, DedupEntry] = {}
        self._dirty = False
        self.init_store()
        self._load()

    # BaseStore API -----------------------------------------------------------------

    def init_store(self) -> Path:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StoreInitializationError(f"Cannot create store directory {self.path.parent}: {exc}") from exc
        return self.path.resolve()

    def flush(self) -> bool:
        if not self._dirty:
            return True
        try:
            self._persist()
        except StorePersistError as exc:
            self.logger.error("persist.dedup flush_failed path=%s error=%s", self.path, exc)
            return False
        self._dirty = False
        return True

    def healthcheck(self) -> PersistHealth:
        issues: List[str] = []
        directory = self.path.parent
        writable = directory.is_dir() and os.access(directory, os.W_OK | os.X_OK)
        if not writable:
            issues.append(f"Store directory is not writable: {directory}")
        readable = True
        if self.path.exists():
            try:
                self._parse(read_json(self.path))
            except (OSError, ValueError) as exc:
                readable = False
                issues.append(f"Store document is unreadable: {exc}")
        if self._dirty:
            issues.append("Store has unsaved changes")
        return PersistHealth(
            writable_paths={str(directory): writable},
            readable=readable,
            record_count=len(self._entries),
            issues=issues,
        )

    # Membership --------------------------------------------------------------------

    def has_id(self, licitacion_id: object) -> bool:
        if licitacion_id is None:
            return False
        return str(licitacion_id).strip() in self._entries

    def add_id(self, licitacion_id: object) -> bool:
        """Record one id; return True when it was new."""

        return self.add_many([licitacion_id]) == 1

    def add_many(self, ids: Iterable[object]) -> int:
        """Record several ids, persisting once; return how many were new."""

        keys = [self._key(raw) for raw in ids]
        added = 0
        for key in keys:
            if key in self._entries:
                continue
            self._entries[key] = DedupEntry.new(key)
            added += 1
        if added:
            self._dirty = True
            self.flush()
        return added

    @property
    def dirty(self) -> bool:
        return self._dirty

    def ids(self) -> List[str]:
        return list(self._entries)

    def __contains__(self, licitacion_id: object) -> bool:
        return self.has_id(licitacion_id)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))

    # Helpers ----------------------------------------------------------------------

    @staticmethod
    def _key(raw: object) -> str:
        key = "" if raw is None else str(raw).strip()
        if not key:
            raise StoreValidationError("licitacion_id is required")
        return key

    def _load(self) -> None:
        if not self.path.exists():
            self.logger.info("persist.dedup init path=%s records=0 (new store)", self.path)
            return
        try:
            entries = self._parse(read_json(self.path))
        except (OSError, ValueError) as exc:
            self.logger.error("persist.dedup load_failed path=%s error=%s -- starting empty", self.path, exc)
            return
        self._entries = {entry.licitacion_id: entry for entry in entries}
        self.logger.info("persist.dedup init path=%s records=%d", self.path, len(self._entries))

    @staticmethod
    def _parse(document: object) -> List[DedupEntry]:
        if not isinstance(document, dict) or not isinstance(document.get(RECORDS_KEY), list):
            raise ValueError(f"expected an object with a '{RECORDS_KEY}' list")
        entries: List[DedupEntry] = []
        for item in document[RECORDS_KEY]:
            if not isinstance(item, dict):
                continue
            entry = DedupEntry.from_mapping(item)
            if entry is not None:
                entries.append(entry)
        return entries

    def _persist(self) -> None:
        document = {RECORDS_KEY: [entry.to_dict() for entry in self._entries.values()]}
        try:
            write_json(self.path, document)
        except (OSError, TypeError, ValueError) as exc:
            raise StorePersistError(str(exc)) from exc
        self.logger.debug("persist.dedup saved path=%s records=%d", self.path, len(self._entries))


__all__ = ["DedupStore", "RECORDS_KEY"]
