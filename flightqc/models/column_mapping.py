from __future__ import annotations

from dataclasses import dataclass, field

from .flight_record import ALL_FIELDS

"""ColumnMapping model.

Positional mapping from source column index to a canonical field label (or
IGNORED). One mapping belongs to one import session and is edited by a single
owner before commit.
"""

__all__ = [
    "IGNORED",
    "ColumnMapping",
    "MappingError",
]

IGNORED = "ignored"


class MappingError(Exception):
    """Raised on an invalid manual mapping edit."""


@dataclass
class ColumnMapping:
    headers: list[str]  # normalized source labels, one per column position
    targets: list[str]  # canonical label or IGNORED, same length as headers
    catalogue: tuple[str, ...] = field(default=ALL_FIELDS)

    def __post_init__(self) -> None:
        if len(self.headers) != len(self.targets):
            raise MappingError(
                f"headers/targets length mismatch: {len(self.headers)} != {len(self.targets)}"
            )

    def __len__(self) -> int:
        return len(self.targets)

    def __getitem__(self, position: int) -> str:
        return self.targets[position]

    def target_for(self, position: int) -> str:
        """Target for column ``position``; columns beyond the header are ignored."""
        if 0 <= position < len(self.targets):
            return self.targets[position]
        return IGNORED

    def set(self, position: int, target: str | None) -> None:
        """Manually override the target of one column (None/"" means ignore)."""
        if not 0 <= position < len(self.targets):
            raise MappingError(f"column position out of range: {position}")
        if not target or target == IGNORED:
            self.targets[position] = IGNORED
            return
        if target not in self.catalogue:
            raise MappingError(f"unknown target field: {target!r}")
        self.targets[position] = target

    def set_by_header(self, header: str, target: str | None) -> int:
        """Override every column whose normalized header equals ``header``.

        Returns the number of columns changed; raises MappingError if none match.
        """
        positions = [i for i, h in enumerate(self.headers) if h == header]
        if not positions:
            raise MappingError(f"no source column named {header!r}")
        for i in positions:
            self.set(i, target)
        return len(positions)

    def ignored_positions(self) -> list[int]:
        return [i for i, t in enumerate(self.targets) if t == IGNORED]

    def mapped_fields(self) -> list[str]:
        return [t for t in self.targets if t != IGNORED]

    def as_pairs(self) -> list[tuple[str, str]]:
        return list(zip(self.headers, self.targets, strict=True))
