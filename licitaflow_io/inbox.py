"""Inbox, Processed and Error directory handling."""

# Module responsibilities:
# - Pick the most recently modified spreadsheet waiting in the inbox.
# - Relocate handled workbooks with a single atomic rename.

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, Optional

from .utils.log import get_logger

logger = get_logger("inbox")

SPREADSHEET_SUFFIXES = (".xlsx", ".xls")
LOCK_FILE_PREFIX = "~$"


def is_spreadsheet(path: Path) -> bool:
    """Return True for regular ``.xlsx``/``.xls`` files that are not Office lock files."""

    return (
        path.is_file()
        and path.suffix.lower() in SPREADSHEET_SUFFIXES
        and not path.name.startswith(LOCK_FILE_PREFIX)
    )


@dataclass(slots=True)
class InboxDirectories:
    """The three directories a workbook moves through."""

    inbox: Path
    processed: Path
    error: Path

    def ensure_directories(self) -> None:
        for directory in (self.inbox, self.processed, self.error):
            directory.mkdir(parents=True, exist_ok=True)

    def iter_spreadsheets(self, directory: Optional[Path] = None) -> Iterator[Path]:
        target = directory or self.inbox
        if not target.is_dir():
            return
        for entry in target.iterdir():
            if is_spreadsheet(entry):
                yield entry

    def find_latest(self) -> Optional[Path]:
        """Return the newest spreadsheet in the inbox, or None.

        Equal modification times are broken by the greater file name.
        """

        candidates = list(self.iter_spreadsheets())
        if not candidates:
            logger.info("inbox.scan empty dir=%s", self.inbox)
            return None
        latest = max(candidates, key=lambda p: (p.stat().st_mtime, p.name))
        logger.info("inbox.scan selected file=%s candidates=%d", latest.name, len(candidates))
        return latest

    def move_to_processed(self, path: Path) -> Path:
        return self._move(path, self.processed)

    def move_to_error(self, path: Path) -> Path:
        return self._move(path, self.error)

    def exists(self, path: Path) -> bool:
        return Path(path).exists()

    def stats(self) -> Dict[str, int]:
        """Count spreadsheets per directory."""

        return {
            "inbox": sum(1 for _ in self.iter_spreadsheets(self.inbox)),
            "processed": sum(1 for _ in self.iter_spreadsheets(self.processed)),
            "error": sum(1 for _ in self.iter_spreadsheets(self.error)),
        }

    def _move(self, path: Path, directory: Path) -> Path:
        source = Path(path)
        directory.mkdir(parents=True, exist_ok=True)
        target = directory / source.name
        os.replace(source, target)
        logger.info("inbox.move file=%s to=%s", source.name, directory)
        return target


__all__ = ["InboxDirectories", "SPREADSHEET_SUFFIXES", "is_spreadsheet"]
