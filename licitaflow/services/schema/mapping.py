"""Header normalization and alias matching for tender spreadsheets."""

from __future__ import annotations

import re
import unicodedata
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, List, Mapping

import yaml

from licitaflow.config import HEADER_ALIASES_PATH
from licitaflow.core.errors import ConfigError
from licitaflow.core.logger import get_logger

from .models import CANONICAL_FIELDS, CanonicalRecord, HeaderMapping, RawRecord

LOGGER = get_logger().getChild("schema")

_WHITESPACE = re.compile(r"\s+")
_PUNCTUATION = re.compile(r"[^\w\s]")


def normalize_header(header: object) -> str:
    """Return the comparison key for a spreadsheet header.

    ``"  Fecha   de Publicación "`` and ``"fecha_de_publicacion"`` both become
    ``"fecha de publicacion"``.
    """

    text = unicodedata.normalize("NFKD", str(header))
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    text = text.lower().replace("_", " ")
    text = _PUNCTUATION.sub("", text)
    return _WHITESPACE.sub(" ", text).strip()


@lru_cache(maxsize=8)
def load_header_aliases(path: str | Path = HEADER_ALIASES_PATH) -> Dict[str, str]:
    """Load the alias table as ``normalized spelling -> canonical field``."""

    with Path(path).open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, Mapping):
        raise ConfigError("header alias file must map canonical fields to lists")
    aliases: Dict[str, str] = {}
    for canonical, spellings in data.items():
        if canonical not in CANONICAL_FIELDS:
            raise ConfigError(f"unknown canonical field in alias file: {canonical}")
        if not isinstance(spellings, list):
            raise ConfigError(f"aliases for {canonical} must be a list")
        # the canonical name itself is always accepted
        for spelling in [canonical, *spellings]:
            key = normalize_header(spelling)
            owner = aliases.setdefault(key, canonical)
            if owner != canonical:
                raise ConfigError(f"alias '{spelling}' is claimed by both {owner} and {canonical}")
    return aliases


def map_headers(headers: Iterable[object], aliases: Mapping[str, str] | None = None) -> HeaderMapping:
    """Match original headers to canonical fields.

    The first header that resolves to a canonical field wins; later headers
    resolving to the same field are reported as unmapped together with headers
    that match nothing.
    """

    table = aliases if aliases is not None else load_header_aliases()
    mapping: Dict[str, str] = {}
    unmapped: List[str] = []
    taken: set[str] = set()
    for header in headers:
        original = str(header)
        canonical = table.get(normalize_header(original))
        if canonical is None or canonical in taken:
            unmapped.append(original)
            continue
        mapping[original] = canonical
        taken.add(canonical)
    if unmapped:
        LOGGER.warning("schema.mapping unmapped_headers count=%d headers=%s", len(unmapped), unmapped)
    return HeaderMapping(mapping=mapping, unmapped=unmapped)


def to_canonical(row: RawRecord, header_mapping: HeaderMapping, *, source_row: int | None = None) -> CanonicalRecord:
    """Project a raw row onto the canonical fields using a header mapping."""

    values: Dict[str, object] = {}
    for original, canonical in header_mapping.mapping.items():
        if original in row:
            values[canonical] = _clean_cell(canonical, row[original])
    return CanonicalRecord(source_row=source_row, **values)


_TEXT_FIELDS = {"id", "title", "issuing_body", "unit", "currency", "status"}


def _clean_cell(canonical: str, value: object) -> object:
    if value is None:
        return None
    if isinstance(value, float) and value != value:
        return None
    if canonical in _TEXT_FIELDS:
        if isinstance(value, float) and value.is_integer():
            # numeric ids read from Excel arrive as floats
            value = int(value)
        text = str(value).strip()
        return text or None
    if isinstance(value, str):
        return value.strip() or None
    return value


__all__ = ["load_header_aliases", "map_headers", "normalize_header", "to_canonical"]
