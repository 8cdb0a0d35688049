from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, time, timedelta
from typing import Any

from ..excel.reader import is_blank, is_blank_row
from ..logging.error_log import ErrorLogBuffer
from ..models.column_mapping import IGNORED, ColumnMapping
from ..models.error_record import ErrorRecord
from ..models.flight_record import (
    B1_LANDING,
    B1_TAKEOFF,
    B1_USED,
    B2_LANDING,
    B2_TAKEOFF,
    B2_USED,
    DATE_FIELDS,
    DRONE_MODEL,
    FIELD_ATTRS,
    FIELD_LABELS,
    LANDING_TIME,
    NUMERIC_FIELDS,
    REQUIRED_MANUAL_FIELDS,
    TAKEOFF_TIME,
    TIME_FIELDS,
    TOTAL_FLIGHT_TIME,
    FlightRecord,
)
from .temporal import DateStatus, flight_time_between, format_duration, parse_date, parse_duration

"""Record normalizer: mapped rows -> FlightRecord.

normalize_rows is a pure function of (rows, mapping, options): the same inputs
always produce the same records in source row order. Malformed cells are
replaced by None and reported to the error log; they never drop the record.
"""

__all__ = [
    "MissingFieldError",
    "ERROR_INVALID_NUMBER",
    "ERROR_INVALID_DATE",
    "coerce_cell",
    "normalize_rows",
    "build_manual_record",
]

logger = logging.getLogger(__name__)

ERROR_INVALID_NUMBER = "INVALID_NUMBER"
ERROR_INVALID_DATE = "INVALID_DATE"


class MissingFieldError(Exception):
    """Raised when a manually entered record lacks a required field."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message


class _CellError(Exception):
    def __init__(self, error_type: str, message: str) -> None:
        super().__init__(message)
        self.error_type = error_type


def _to_float(value: Any) -> float:
    if isinstance(value, bool):
        raise _CellError(ERROR_INVALID_NUMBER, f"not a number: {value!r}")
    if isinstance(value, (int, float)):
        result = float(value)
    else:
        text = str(value).strip().replace(",", "")
        # "12.3V" のような単位付き表記を許容
        if text[-1:].upper() == "V":
            text = text[:-1].strip()
        try:
            result = float(text)
        except ValueError as e:
            raise _CellError(ERROR_INVALID_NUMBER, f"not a number: {value!r}") from e
    if not math.isfinite(result):
        raise _CellError(ERROR_INVALID_NUMBER, f"not a finite number: {value!r}")
    return result


def _to_text(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        # Excel が数値として持つ ID 等 (1.0 -> "1")
        return str(int(value))
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value).strip()


def coerce_cell(field: str, value: Any, null_sentinels: frozenset[str] | set[str] | None = None) -> Any:
    """Coerce one raw cell for ``field``.

    Blank cells and null sentinels become None. Raises _CellError for
    malformed numeric/date cells (handled by normalize_rows).
    """
    if is_blank(value):
        return None
    if isinstance(value, str):
        value = value.strip()
        if null_sentinels and value.upper() in null_sentinels:
            return None
    if field in NUMERIC_FIELDS:
        return _to_float(value)
    if field in DATE_FIELDS:
        info = parse_date(value)
        if info.status is DateStatus.INVALID:
            raise _CellError(ERROR_INVALID_DATE, f"unparseable date: {value!r}")
        return info.iso
    if field in TIME_FIELDS:
        if isinstance(value, datetime):
            value = value.time()
        if isinstance(value, (time, timedelta)):
            return format_duration(parse_duration(value))
    return _to_text(value)


def normalize_rows(
    rows: Iterable[Sequence[Any] | None],
    mapping: ColumnMapping,
    *,
    null_sentinels: Iterable[str] | None = None,
    default_model: str | None = None,
    error_log: ErrorLogBuffer | None = None,
    file_name: str = "",
    sheet_name: str = "",
    first_row_number: int = 1,
) -> list[FlightRecord]:
    """Build FlightRecords from data rows through a positional mapping.

    Parameters
    ----------
    rows: ヘッダ行より後のデータ行
    mapping: 列位置 -> canonical field
    null_sentinels: NULL 扱いする文字列 (大文字比較)
    default_model: DRONE MODEL 未マップ/空セル時の補完値 (通常シート名)
    error_log: 不正セルを記録するバッファ (None なら記録しない)
    first_row_number: rows[0] のワークシート上の行番号 (1-based, エラー記録用)
    """
    sentinels = frozenset(s.strip().upper() for s in null_sentinels) if null_sentinels else frozenset()
    records: list[FlightRecord] = []
    for offset, row in enumerate(rows):
        # 全セル空の行はスキップ
        if is_blank_row(row):
            continue
        row_number = first_row_number + offset
        values: dict[str, Any] = {}
        for position, cell in enumerate(row or []):
            target = mapping.target_for(position)
            if target == IGNORED:
                continue
            try:
                coerced = coerce_cell(target, cell, sentinels)
            except _CellError as e:
                coerced = None
                if error_log is not None:
                    error_log.append(ErrorRecord.create(
                        file=file_name,
                        sheet=sheet_name,
                        row=row_number,
                        field=target,
                        error_type=e.error_type,
                        message=str(e),
                    ))
                logger.debug(f"{sheet_name} row {row_number} {target}: {e}")
            # 同一 field に複数列がマップされた場合は最初の非空値を優先
            if values.get(target) is None:
                values[target] = coerced
        if default_model and values.get(DRONE_MODEL) is None:
            values[DRONE_MODEL] = default_model
        records.append(FlightRecord.from_fields(values))
    return records


def _voltage_used(takeoff: float | None, landing: float | None) -> float | None:
    if takeoff is None or landing is None:
        return None
    return round(takeoff - landing, 4)


def build_manual_record(
    values: Mapping[str, Any],
    *,
    null_sentinels: Iterable[str] | None = None,
    record_id: int | None = None,
) -> FlightRecord:
    """Validate and build a record from a manual entry form.

    Required fields (mission date, objective, flight id) must be non-blank;
    the first missing one raises MissingFieldError with a field-specific
    message. Total flight time is derived from take-off/landing times and
    each battery's voltage used from take-off minus landing, as the entry
    form does.
    """
    for field in REQUIRED_MANUAL_FIELDS:
        if is_blank(values.get(field)):
            raise MissingFieldError(field, f"{FIELD_LABELS[field]} is required.")

    sentinels = frozenset(s.strip().upper() for s in null_sentinels) if null_sentinels else frozenset()
    coerced: dict[str, Any] = {}
    for field in FIELD_ATTRS:
        try:
            coerced[field] = coerce_cell(field, values.get(field), sentinels)
        except _CellError as e:
            if field in DATE_FIELDS:
                # 必須の日付は不正値も拒否する
                raise MissingFieldError(field, f"{FIELD_LABELS[field]} is invalid: {e}") from e
            coerced[field] = None

    total = flight_time_between(coerced.get(TAKEOFF_TIME), coerced.get(LANDING_TIME))
    if total is not None:
        coerced[TOTAL_FLIGHT_TIME] = total
    for used, takeoff, landing in ((B1_USED, B1_TAKEOFF, B1_LANDING), (B2_USED, B2_TAKEOFF, B2_LANDING)):
        derived = _voltage_used(coerced.get(takeoff), coerced.get(landing))
        if derived is not None:
            coerced[used] = derived
    return FlightRecord.from_fields(coerced, record_id=record_id)
