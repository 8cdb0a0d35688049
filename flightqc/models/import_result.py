from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

"""Import result models.

Aggregates per-sheet statistics of one workbook import; rendered as the
SUMMARY line by flightqc.services.summary.
"""


@dataclass(frozen=True)
class SheetImportStat:
    """Per-sheet import statistics."""
    sheet_name: str
    header_row: int  # 0-based index of the selected header row
    records: int  # records handed to the store
    skipped_rows: int  # all-empty data rows
    ignored_columns: int
    cell_errors: int  # cells replaced by a sentinel
    error: str | None = None  # sheet-level failure (store / header)


@dataclass(frozen=True)
class ImportResult:
    """Aggregated results for one import run."""
    sheets: list[SheetImportStat]
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float

    @property
    def total_records(self) -> int:
        return sum(s.records for s in self.sheets if s.error is None)

    @property
    def skipped_rows(self) -> int:
        return sum(s.skipped_rows for s in self.sheets)

    @property
    def ignored_columns(self) -> int:
        return sum(s.ignored_columns for s in self.sheets)

    @property
    def cell_errors(self) -> int:
        return sum(s.cell_errors for s in self.sheets)

    @property
    def failed_sheets(self) -> int:
        return sum(1 for s in self.sheets if s.error is not None)
