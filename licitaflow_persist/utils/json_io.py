"""
RESPONSIBILITIES
- Read JSON documents backing the stores.
- Write them atomically via a temporary sibling file and os.replace.
PROCESS OVERVIEW
1. read_json() loads and parses a document, raising on malformed content.
2. write_json() serializes to <name>.tmp, fsyncs, then renames over the target.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any


def _tmp_path(path: Path) -> Path:
    return path.with_name(path.name + ".tmp")


def read_json(path: Path) -> Any:
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def write_json(path: Path, payload: Any) -> None:
    """Replace *path* with *payload*; the old document survives any failure."""

    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = _tmp_path(path)
    try:
        with tmp_path.open("w", encoding="utf-8") as handle:
            json.dump(payload, handle, ensure_ascii=False, indent=2)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        if tmp_path.exists():
            tmp_path.unlink()
        raise
