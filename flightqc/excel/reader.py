from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pandas as pd

"""Workbook reader and header row detection.

Sheets are read raw (no header) so that the header row can be anywhere: the
first few non-empty rows are offered as header candidates and the caller picks
one explicitly. Nothing here guesses the "best" header.
"""

__all__ = [
    "SheetHeaderError",
    "RawSheet",
    "HeaderCandidate",
    "read_workbook",
    "list_sheet_names",
    "is_blank",
    "is_blank_row",
    "header_candidates",
    "split_at_header",
]

DEFAULT_CANDIDATE_LIMIT = 5


class SheetHeaderError(Exception):
    """Raised when the selected header row does not exist in the sheet."""


@dataclass
class RawSheet:
    sheet_name: str
    rows: list[list[Any]]  # 生セル値 (NaN -> None 済)


@dataclass(frozen=True)
class HeaderCandidate:
    row_index: int  # 0-based index in the sheet
    cells: list[Any]


def read_workbook(path: Path, target_sheets: Iterable[str] | None = None) -> dict[str, RawSheet]:
    """Read a workbook returning raw rows keyed by sheet name.

    Parameters
    ----------
    path: ワークブックのパス (.xlsx / .xls)
    target_sheets: 対象シート制限 (None なら全シート)
    """
    targets = set(target_sheets) if target_sheets is not None else None
    sheets: dict[str, RawSheet] = {}
    with pd.ExcelFile(path) as xls:
        for name in xls.sheet_names:
            if targets is not None and str(name) not in targets:
                continue
            df = xls.parse(name, header=None)
            sheets[str(name)] = RawSheet(sheet_name=str(name), rows=_frame_to_rows(df))
    return sheets


def list_sheet_names(path: Path) -> list[str]:
    with pd.ExcelFile(path) as xls:
        return [str(n) for n in xls.sheet_names]


def _frame_to_rows(df: pd.DataFrame) -> list[list[Any]]:
    # object 化してから NaN/NaT を None へ
    cleaned = df.astype(object).where(pd.notna(df), None)
    return [list(r) for r in cleaned.itertuples(index=False, name=None)]


def is_blank(cell: Any) -> bool:
    """True for None, NaN and whitespace-only strings."""
    if cell is None:
        return True
    if isinstance(cell, float) and math.isnan(cell):
        return True
    if isinstance(cell, str) and cell.strip() == "":
        return True
    return False


def is_blank_row(row: Sequence[Any] | None) -> bool:
    return not row or all(is_blank(c) for c in row)


def header_candidates(
    rows: Sequence[Sequence[Any] | None], limit: int = DEFAULT_CANDIDATE_LIMIT
) -> list[HeaderCandidate]:
    """Return the first ``limit`` rows that contain at least one non-empty cell.

    Original row indices are preserved so the caller can pass the chosen
    ``row_index`` to :func:`split_at_header`.
    """
    found: list[HeaderCandidate] = []
    for idx, row in enumerate(rows):
        if len(found) >= limit:
            break
        if is_blank_row(row):
            continue
        found.append(HeaderCandidate(row_index=idx, cells=list(row or [])))
    return found


def split_at_header(
    rows: Sequence[Sequence[Any] | None], header_index: int
) -> tuple[list[Any], list[list[Any]]]:
    """Split raw rows into (header cells, data rows after the header)."""
    if header_index < 0 or header_index >= len(rows):
        raise SheetHeaderError(
            f"header row {header_index} out of range (sheet has {len(rows)} rows)"
        )
    header = list(rows[header_index] or [])
    data = [list(r or []) for r in rows[header_index + 1:]]
    return header, data
