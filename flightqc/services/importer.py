from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from ..db.record_store import FlightRecordStore, StoreError
from ..excel.mapper import apply_overrides, auto_map_headers
from ..excel.reader import (
    HeaderCandidate,
    RawSheet,
    SheetHeaderError,
    header_candidates,
    is_blank_row,
    read_workbook,
    split_at_header,
)
from ..logging.error_log import ErrorLogBuffer
from ..models.column_mapping import IGNORED, ColumnMapping, MappingError
from ..models.config_models import AppConfig
from ..models.flight_record import FlightRecord
from ..models.import_result import ImportResult, SheetImportStat
from .normalizer import normalize_rows
from .progress import ProgressTracker

"""Workbook import session and multi-sheet import driver.

Flow per sheet:
1. header_candidates(): first non-empty rows offered to the user
2. select_header(row_index): split the sheet, auto-map the header labels
3. optional mapping edits (apply_overrides / set_mapping)
4. commit(store): normalize every data row and call bulk_create once

The session is the single owner of its mapping; once a sheet is committed the
session refuses to commit it again.
"""

__all__ = [
    "ImportSessionError",
    "ImportSession",
    "import_workbook",
]

logger = logging.getLogger(__name__)


class ImportSessionError(Exception):
    """Raised on an out-of-order session call (no sheet, no header, re-commit)."""


class ImportSession:
    def __init__(
        self,
        sheets: dict[str, RawSheet],
        *,
        config: AppConfig,
        file_name: str = "",
        error_log: ErrorLogBuffer | None = None,
    ) -> None:
        self.sheets = sheets
        self.config = config
        self.file_name = file_name
        self.error_log = error_log
        self._sheet: RawSheet | None = None
        self._header_index: int | None = None
        self._data_rows: list[list[Any]] = []
        self._mapping: ColumnMapping | None = None
        self._committed: set[str] = set()

    @classmethod
    def open(
        cls,
        path: Path,
        *,
        config: AppConfig,
        target_sheets: Iterable[str] | None = None,
        error_log: ErrorLogBuffer | None = None,
    ) -> ImportSession:
        sheets = read_workbook(path, target_sheets=target_sheets)
        return cls(sheets, config=config, file_name=path.name, error_log=error_log)

    @property
    def sheet_names(self) -> list[str]:
        return list(self.sheets)

    @property
    def sheet_name(self) -> str:
        if self._sheet is None:
            raise ImportSessionError("no sheet selected")
        return self._sheet.sheet_name

    @property
    def header_row(self) -> int:
        if self._header_index is None:
            raise ImportSessionError("no header row selected")
        return self._header_index

    @property
    def mapping(self) -> ColumnMapping:
        if self._mapping is None:
            raise ImportSessionError("no header row selected")
        return self._mapping

    def select_sheet(self, name: str) -> None:
        if name not in self.sheets:
            raise ImportSessionError(f"sheet not found: {name!r} (available: {self.sheet_names})")
        self._sheet = self.sheets[name]
        self._header_index = None
        self._data_rows = []
        self._mapping = None

    def header_candidates(self, limit: int | None = None) -> list[HeaderCandidate]:
        if self._sheet is None:
            raise ImportSessionError("no sheet selected")
        return header_candidates(self._sheet.rows, limit or self.config.header_candidate_limit)

    def select_header(self, row_index: int) -> ColumnMapping:
        """Use row ``row_index`` (0-based) as the header row and auto-map it."""
        if self._sheet is None:
            raise ImportSessionError("no sheet selected")
        header, data = split_at_header(self._sheet.rows, row_index)
        self._header_index = row_index
        self._data_rows = data
        self._mapping = auto_map_headers(header)
        unmapped = [h for h, t in self._mapping.as_pairs() if h and t == IGNORED]
        if unmapped:
            logger.debug(f"{self._sheet.sheet_name}: ignored headers {unmapped}")
        return self._mapping

    def apply_overrides(self, overrides: Iterable[str]) -> ColumnMapping:
        return apply_overrides(self.mapping, overrides)

    def set_mapping(self, position: int, target: str | None) -> None:
        self.mapping.set(position, target)

    @property
    def ignored_columns(self) -> int:
        """Ignored columns that carry a header label."""
        return sum(1 for h, t in self.mapping.as_pairs() if h and t == IGNORED)

    @property
    def skipped_rows(self) -> int:
        return sum(1 for r in self._data_rows if is_blank_row(r))

    def _normalize(
        self,
        rows: Sequence[Sequence[Any]],
        default_model: str | None,
        error_log: ErrorLogBuffer | None,
    ) -> list[FlightRecord]:
        return normalize_rows(
            rows,
            self.mapping,
            null_sentinels=self.config.null_sentinels,
            default_model=default_model,
            error_log=error_log,
            file_name=self.file_name,
            sheet_name=self.sheet_name,
            # ワークシート上の行番号 (1-based): ヘッダ行の次
            first_row_number=self.header_row + 2,
        )

    def preview(self, limit: int = 5, default_model: str | None = None) -> list[FlightRecord]:
        """Normalize the first ``limit`` data rows without logging cell errors."""
        return self._normalize(self._data_rows[:limit], default_model, None)

    def commit(self, store: FlightRecordStore, default_model: str | None = None) -> SheetImportStat:
        """Normalize the selected sheet and hand every record to the store at once.

        ``default_model`` (usually the sheet name) fills an empty DRONE MODEL.
        StoreError propagates unchanged; the sheet is then not marked committed
        and its cell errors are not written to the error log.
        """
        name = self.sheet_name
        if name in self._committed:
            raise ImportSessionError(f"sheet already committed: {name!r}")
        # store 成功後にのみ error_log へ転記
        pending = ErrorLogBuffer()
        records = self._normalize(self._data_rows, default_model, pending)
        created = store.bulk_create(records)
        self._committed.add(name)
        if self.error_log is not None:
            for record in pending.records:
                self.error_log.append(record)
        return SheetImportStat(
            sheet_name=name,
            header_row=self.header_row,
            records=len(created),
            skipped_rows=self.skipped_rows,
            ignored_columns=self.ignored_columns,
            cell_errors=len(pending),
        )


def import_workbook(
    path: Path,
    store: FlightRecordStore,
    *,
    config: AppConfig,
    header_row: int,
    sheets: Sequence[str] | None = None,
    overrides: Sequence[str] = (),
    model: str | None = None,
    error_log: ErrorLogBuffer | None = None,
) -> ImportResult:
    """Import ``sheets`` (all sheets when None) of one workbook.

    Every sheet uses the same header row and overrides. A sheet-level failure
    (bad header row, mapping error, store error) is recorded in its stat and
    the remaining sheets are still imported.
    """
    start_time = datetime.now(UTC)
    own_log = error_log is None
    error_log = error_log if error_log is not None else ErrorLogBuffer()
    session = ImportSession.open(path, config=config, target_sheets=sheets, error_log=error_log)
    if sheets is not None:
        missing = [s for s in sheets if s not in session.sheets]
        if missing:
            raise ImportSessionError(f"sheet not found: {missing} (available: {session.sheet_names})")

    stats: list[SheetImportStat] = []
    total = 0
    with ProgressTracker(len(session.sheet_names)) as progress:
        for name in session.sheet_names:
            progress.start_sheet(name)
            session.select_sheet(name)
            try:
                session.select_header(header_row)
                if overrides:
                    session.apply_overrides(overrides)
                stat = session.commit(store, default_model=model or name)
            except (SheetHeaderError, MappingError, StoreError) as e:
                logger.error(f"sheet {name!r}: {e}")
                stat = SheetImportStat(
                    sheet_name=name,
                    header_row=header_row,
                    records=0,
                    skipped_rows=0,
                    ignored_columns=0,
                    cell_errors=0,
                    error=str(e),
                )
            else:
                total += stat.records
                logger.info(
                    f"sheet={name} records={stat.records} skipped_rows={stat.skipped_rows} "
                    f"ignored_columns={stat.ignored_columns} cell_errors={stat.cell_errors}"
                )
            stats.append(stat)
            progress.set_postfix(records=total)
            progress.finish_sheet()

    if own_log:
        log_path = error_log.flush()
        if log_path is not None:
            logger.info(f"error log: {log_path}")

    end_time = datetime.now(UTC)
    return ImportResult(
        sheets=stats,
        start_time=start_time,
        end_time=end_time,
        elapsed_seconds=(end_time - start_time).total_seconds(),
    )
