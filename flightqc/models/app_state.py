from __future__ import annotations

from dataclasses import dataclass, field, replace

from .battery import BatteryConfig
from .config_models import AppConfig
from .flight_record import FlightRecord
from .metrics import DashboardFilter

"""Explicit application state passed into the normalizer and aggregator.

Replaces process-wide state: whoever owns an AppState owns the record set and
the current selection. Instances are immutable; selection changes produce a
new state.
"""

__all__ = [
    "AppState",
]


@dataclass(frozen=True)
class AppState:
    config: AppConfig
    battery_configs: dict[str, BatteryConfig]
    records: tuple[FlightRecord, ...] = ()
    dashboard_filter: DashboardFilter = field(default_factory=DashboardFilter)

    def with_records(self, records: list[FlightRecord] | tuple[FlightRecord, ...]) -> AppState:
        return replace(self, records=tuple(records))

    def with_filter(self, dashboard_filter: DashboardFilter) -> AppState:
        return replace(self, dashboard_filter=dashboard_filter)
