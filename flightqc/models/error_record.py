from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for cell-level import problems.

Malformed cells never abort an import: the cell is replaced by its sentinel
value and one ErrorRecord is written to the JSON Lines error log. ``row`` is
the 1-based worksheet row number, or -1 when the problem is not tied to a row
(for example a whole-sheet warning).
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """One malformed cell, as written to the error log.

    Attributes:
        timestamp: UTC time the cell was rejected (ISO8601, Z suffix)
        file: Workbook filename being imported
        sheet: Sheet name within the workbook
        row: Row number (1-based). Use -1 when row is unknown
        field: Canonical field label the cell was mapped to ("" if none)
        error_type: INVALID_NUMBER or INVALID_DATE
        message: Description including the offending raw value
    """
    timestamp: str  # ISO8601 UTC
    file: str
    sheet: str
    row: int  # ワークシート行番号 (1-based), 不明時 -1
    field: str
    error_type: str
    message: str

    @staticmethod
    def create(
        file: str, sheet: str, row: int, field: str, error_type: str, message: str
    ) -> ErrorRecord:
        """Create a new ErrorRecord with current UTC timestamp."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            sheet=sheet,
            row=row,
            field=field,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        """Serialize ErrorRecord to JSON Lines format (fixed key set)."""
        return json.dumps(asdict(self), ensure_ascii=False)
