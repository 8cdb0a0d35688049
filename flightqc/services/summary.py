from __future__ import annotations

from ..models.import_result import ImportResult
from ..models.metrics import DashboardSnapshot

"""SUMMARY line rendering.

Formats (single line each, ``key=value`` pairs):

    SUMMARY sheets={n} failed_sheets={n} records={n} skipped_rows={n} ignored_columns={n} cell_errors={n} elapsed_sec={s}
    SUMMARY flights={n} issues={n} issue_rate={pct} score={0-100} health={band} replace={n} imbalanced={n}
"""

__all__ = [
    "format_number",
    "render_import_summary",
    "render_dashboard_summary",
]


def format_number(value: float, digits: int = 6) -> str:
    """Render a number without scientific notation or trailing zeros.

    Examples:
        >>> format_number(2.0)
        '2'
        >>> format_number(0.000123)
        '0.000123'
        >>> format_number(12.5)
        '12.5'
    """
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if abs(value) < 0.01:
        # Format very small numbers to avoid scientific notation
        return f"{value:.{digits}f}".rstrip("0").rstrip(".")
    return str(round(value, digits))


def render_import_summary(result: ImportResult) -> str:
    """Render the SUMMARY line of one import run.

    Examples:
        >>> from datetime import datetime, timezone
        >>> from flightqc.models.import_result import SheetImportStat
        >>> t = datetime(2025, 1, 1, tzinfo=timezone.utc)
        >>> r = ImportResult(
        ...     sheets=[SheetImportStat("S", 0, records=4, skipped_rows=1, ignored_columns=2, cell_errors=0)],
        ...     start_time=t, end_time=t, elapsed_seconds=0.5,
        ... )
        >>> render_import_summary(r)
        'SUMMARY sheets=1 failed_sheets=0 records=4 skipped_rows=1 ignored_columns=2 cell_errors=0 elapsed_sec=0.5'
    """
    return (
        f"SUMMARY sheets={len(result.sheets)} "
        f"failed_sheets={result.failed_sheets} "
        f"records={result.total_records} "
        f"skipped_rows={result.skipped_rows} "
        f"ignored_columns={result.ignored_columns} "
        f"cell_errors={result.cell_errors} "
        f"elapsed_sec={format_number(result.elapsed_seconds)}"
    )


def render_dashboard_summary(snapshot: DashboardSnapshot) -> str:
    return (
        f"SUMMARY flights={snapshot.total_flights} "
        f"issues={snapshot.flights_with_issues} "
        f"issue_rate={format_number(round(snapshot.issue_rate, 1))} "
        f"score={snapshot.performance.score} "
        f"health={snapshot.performance.health} "
        f"replace={snapshot.batteries_to_replace} "
        f"imbalanced={snapshot.batteries_imbalanced}"
    )
