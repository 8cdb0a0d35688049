from __future__ import annotations

import json
import re
from dataclasses import asdict
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from ..models.metrics import DashboardFilter, DashboardSnapshot, DateWindow

"""Dashboard export payload.

The payload is a plain JSON document (score, full metrics snapshot, active
filter description and timestamp). It is handed to a download/reporting
collaborator and not interpreted any further here.
"""

__all__ = [
    "date_range_label",
    "build_export_payload",
    "export_filename",
    "write_export",
]

_UNSAFE = re.compile(r"[^A-Za-z0-9_.-]+")


def date_range_label(window: DateWindow | str, now: datetime | None = None) -> str:
    """``All Time`` or ``Mar 3 - Apr 2, 2025`` for a relative window."""
    window = DateWindow.parse(window)
    if window is DateWindow.ALL:
        return "All Time"
    now = now or datetime.now()
    start = now - timedelta(days=window.days or 0)
    return f"{start:%b} {start.day} - {now:%b} {now.day}, {now.year}"


def build_export_payload(
    snapshot: DashboardSnapshot,
    dashboard_filter: DashboardFilter,
    now: datetime | None = None,
) -> dict[str, Any]:
    now = now or datetime.now()
    label = date_range_label(dashboard_filter.window, now)
    performance = asdict(snapshot.performance)
    metrics = asdict(snapshot)
    metrics.pop("performance")
    return {
        "performance_score": performance,
        "metrics": metrics,
        "date_range": {
            "selected": dashboard_filter.window.value,
            "label": label,
            "count": snapshot.total_flights,
        },
        "drone_model": dashboard_filter.model,
        "flight_id": dashboard_filter.flight_id,
        "export_date": now.isoformat(timespec="seconds"),
        "data_summary": {
            "date_range": label,
            "total_flights": snapshot.total_flights,
            "performance_score": snapshot.performance.score,
            "health_status": snapshot.performance.health,
        },
    }


def export_filename(model: str, now: datetime | None = None) -> str:
    now = now or datetime.now()
    safe_model = _UNSAFE.sub("-", model).strip("-") or "ALL"
    return f"flight-dashboard-{safe_model}-{now:%Y-%m-%d}.json"


def write_export(payload: dict[str, Any], path: Path) -> Path:
    """Write the payload as indented JSON (a directory path gets the default file name)."""
    if path.is_dir():
        path = path / export_filename(str(payload.get("drone_model") or "ALL"))
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    return path
