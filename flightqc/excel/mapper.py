from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from typing import Any

from ..models.column_mapping import IGNORED, ColumnMapping, MappingError
from ..models.flight_record import ALL_FIELDS
from .reader import is_blank

"""Column mapper: header labels -> canonical fields.

Auto-mapping is an exact match after normalization (trim, collapse internal
whitespace, upper-case). Anything else is left as IGNORED; an unmatched header
is never an error. The caller may edit the returned mapping before commit.
"""

__all__ = [
    "normalize_header",
    "auto_map_headers",
    "parse_override",
    "apply_overrides",
]

_WS = re.compile(r"\s+")


def normalize_header(value: Any) -> str:
    """Normalize a header cell for comparison ("" for blank cells)."""
    if is_blank(value):
        return ""
    return _WS.sub(" ", str(value).strip()).upper()


def auto_map_headers(headers: Sequence[Any], catalogue: Sequence[str] = ALL_FIELDS) -> ColumnMapping:
    """Build a positional ColumnMapping for one header row."""
    lookup = {normalize_header(name): name for name in catalogue}
    normalized = [normalize_header(h) for h in headers]
    targets = [lookup.get(h, IGNORED) if h else IGNORED for h in normalized]
    return ColumnMapping(headers=normalized, targets=targets, catalogue=tuple(catalogue))


def parse_override(spec: str) -> tuple[str, str]:
    """Parse a ``SOURCE=TARGET`` override; an empty target means ignore.

    Both sides are normalized the same way as headers, and the target is
    resolved against the catalogue by normalized name.
    """
    if "=" not in spec:
        raise MappingError(f"invalid mapping override (expected SOURCE=TARGET): {spec!r}")
    source, target = spec.rsplit("=", 1)
    return normalize_header(source), normalize_header(target)


def apply_overrides(mapping: ColumnMapping, overrides: Iterable[str]) -> ColumnMapping:
    """Apply ``SOURCE=TARGET`` overrides in order to ``mapping`` (in place)."""
    lookup = {normalize_header(name): name for name in mapping.catalogue}
    for spec in overrides:
        source, target = parse_override(spec)
        if target in ("", normalize_header(IGNORED)):
            mapping.set_by_header(source, IGNORED)
            continue
        if target not in lookup:
            raise MappingError(f"unknown target field: {target!r}")
        mapping.set_by_header(source, lookup[target])
    return mapping
