"""
RESPONSIBILITIES
- Provide the typed container for entries of the submitted-id store.
PROCESS OVERVIEW
1. Stores create DedupEntry objects when an id is first recorded.
2. to_dict() prepares the JSON shape written to disk.
3. from_mapping() restores entries from a loaded document, rejecting blanks.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Mapping, MutableMapping


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


@dataclass(slots=True)
class DedupEntry:
    licitacion_id: str
    created_at: str

    @classmethod
    def new(cls, licitacion_id: str) -> "DedupEntry":
        return cls(licitacion_id=licitacion_id, created_at=utcnow_iso())

    @classmethod
    def from_mapping(cls, data: Mapping[str, object]) -> "DedupEntry | None":
        raw_id = data.get("licitacion_id")
        if raw_id is None or not str(raw_id).strip():
            return None
        created = str(data.get("created_at") or "").strip()
        return cls(licitacion_id=str(raw_id).strip(), created_at=created or utcnow_iso())

    def to_dict(self) -> MutableMapping[str, object]:
        return {"licitacion_id": self.licitacion_id, "created_at": self.created_at}
