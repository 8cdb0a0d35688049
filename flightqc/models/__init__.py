"""Domain models for the flight QC tool.

This package contains the record, mapping, battery, metric and configuration
models shared by the ingestion pipeline and the dashboard aggregator.
"""

from .app_state import AppState
from .battery import BatteryConfig, BatteryHealth, SlotHealth
from .column_mapping import IGNORED, ColumnMapping, MappingError
from .config_models import AppConfig, DatabaseConfig
from .flight_record import ALL_FIELDS, CANONICAL_FIELDS, EXTENDED_FIELDS, FlightRecord
from .metrics import DashboardFilter, DashboardSnapshot, DateWindow, DerivedMetrics

__all__ = [
    # Configuration models
    "AppConfig",
    "DatabaseConfig",
    "BatteryConfig",
    # Records & mapping
    "FlightRecord",
    "CANONICAL_FIELDS",
    "EXTENDED_FIELDS",
    "ALL_FIELDS",
    "ColumnMapping",
    "IGNORED",
    "MappingError",
    # Derived / dashboard
    "AppState",
    "BatteryHealth",
    "SlotHealth",
    "DashboardFilter",
    "DashboardSnapshot",
    "DateWindow",
    "DerivedMetrics",
]
