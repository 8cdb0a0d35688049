from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Any

"""FlightRecord domain model and the canonical field catalogue.

The catalogue labels are the column names a source spreadsheet column may be
mapped to. Each label corresponds to one FlightRecord attribute (the snake_case
names are also the column names of the ``flight_logs`` table).

Invariant: a blank source cell is stored as None, never as an empty string.
"""

__all__ = [
    "CANONICAL_FIELDS",
    "EXTENDED_FIELDS",
    "ALL_FIELDS",
    "FIELD_ATTRS",
    "NUMERIC_FIELDS",
    "TIME_FIELDS",
    "DATE_FIELDS",
    "REQUIRED_MANUAL_FIELDS",
    "FIELD_LABELS",
    "FlightRecord",
]

DRONE_MODEL = "DRONE MODEL"
MISSION_DATE = "MISSION DATE"
MISSION_OBJECTIVE = "MISSION OBJECTIVE"
FLIGHT_ID = "FLIGHT ID"
TAKEOFF_TIME = "TAKE-OFF TIME"
LANDING_TIME = "LANDING TIME"
TOTAL_FLIGHT_TIME = "TOTAL FLIGHT TIME"
ENGINE_TIME = "ENGINE TIME (HOURS)"
FUEL_BEFORE = "FUEL LEVEL BEFORE FLIGHT"
FUEL_AFTER = "FUEL LEVEL AFTER FLIGHT"
FUEL_USED = "FUEL USED"
B1_TAKEOFF = "BATTERY 1 (S) TAKE-OFF VOLTAGE"
B1_LANDING = "BATTERY 1 (S) LANDING VOLTAGE"
B1_USED = "BATTERY 1 (S) VOLTAGE USED"
B2_TAKEOFF = "BATTERY 2 (S) TAKE-OFF VOLTAGE"
B2_LANDING = "BATTERY 2 (S) LANDING VOLTAGE"
B2_USED = "BATTERY 2 (S) VOLTAGE USED"
COMMENT = "COMMENT"

# Ordered target catalogue (base schema)
CANONICAL_FIELDS: tuple[str, ...] = (
    DRONE_MODEL,
    MISSION_DATE,
    MISSION_OBJECTIVE,
    FLIGHT_ID,
    TAKEOFF_TIME,
    LANDING_TIME,
    TOTAL_FLIGHT_TIME,
    B1_TAKEOFF,
    B1_LANDING,
    B1_USED,
    B2_TAKEOFF,
    B2_LANDING,
    B2_USED,
    COMMENT,
)

# Engine / fuel columns (extended schema for fuel-powered airframes)
EXTENDED_FIELDS: tuple[str, ...] = (
    ENGINE_TIME,
    FUEL_BEFORE,
    FUEL_AFTER,
    FUEL_USED,
)

ALL_FIELDS: tuple[str, ...] = CANONICAL_FIELDS + EXTENDED_FIELDS

FIELD_ATTRS: dict[str, str] = {
    DRONE_MODEL: "drone_model",
    MISSION_DATE: "mission_date",
    MISSION_OBJECTIVE: "mission_objective",
    FLIGHT_ID: "flight_id",
    TAKEOFF_TIME: "takeoff_time",
    LANDING_TIME: "landing_time",
    TOTAL_FLIGHT_TIME: "total_flight_time",
    ENGINE_TIME: "engine_time_hours",
    FUEL_BEFORE: "fuel_level_before_flight",
    FUEL_AFTER: "fuel_level_after_flight",
    FUEL_USED: "fuel_used",
    B1_TAKEOFF: "battery1_takeoff_voltage",
    B1_LANDING: "battery1_landing_voltage",
    B1_USED: "battery1_voltage_used",
    B2_TAKEOFF: "battery2_takeoff_voltage",
    B2_LANDING: "battery2_landing_voltage",
    B2_USED: "battery2_voltage_used",
    COMMENT: "comment",
}

NUMERIC_FIELDS: frozenset[str] = frozenset({
    ENGINE_TIME, FUEL_BEFORE, FUEL_AFTER, FUEL_USED,
    B1_TAKEOFF, B1_LANDING, B1_USED,
    B2_TAKEOFF, B2_LANDING, B2_USED,
})
TIME_FIELDS: frozenset[str] = frozenset({TAKEOFF_TIME, LANDING_TIME, TOTAL_FLIGHT_TIME})
DATE_FIELDS: frozenset[str] = frozenset({MISSION_DATE})

# 手入力時の必須項目
REQUIRED_MANUAL_FIELDS: tuple[str, ...] = (MISSION_DATE, MISSION_OBJECTIVE, FLIGHT_ID)

# Human readable labels used in validation messages
FIELD_LABELS: dict[str, str] = {
    DRONE_MODEL: "Drone Model",
    MISSION_DATE: "Mission Date",
    MISSION_OBJECTIVE: "Mission Objective",
    FLIGHT_ID: "Flight ID",
    TAKEOFF_TIME: "Take-off Time",
    LANDING_TIME: "Landing Time",
    TOTAL_FLIGHT_TIME: "Total Flight Time",
    ENGINE_TIME: "Engine Time (Hours)",
    FUEL_BEFORE: "Fuel Level Before Flight",
    FUEL_AFTER: "Fuel Level After Flight",
    FUEL_USED: "Fuel Used",
    B1_TAKEOFF: "Battery 1 Take-off V",
    B1_LANDING: "Battery 1 Landing V",
    B1_USED: "Battery 1 Used V",
    B2_TAKEOFF: "Battery 2 Take-off V",
    B2_LANDING: "Battery 2 Landing V",
    B2_USED: "Battery 2 Used V",
    COMMENT: "Comment",
}


@dataclass(frozen=True)
class FlightRecord:
    """Canonical flight mission record.

    Records are replaced as a whole on edit; ``id`` is assigned by the record
    store and is None for records that have not been persisted yet.
    """
    drone_model: str | None = None
    mission_date: str | None = None  # ISO date (or datetime) string
    mission_objective: str | None = None
    flight_id: str | None = None  # not unique; duplicates allowed
    takeoff_time: str | None = None
    landing_time: str | None = None
    total_flight_time: str | None = None
    engine_time_hours: float | None = None
    fuel_level_before_flight: float | None = None
    fuel_level_after_flight: float | None = None
    fuel_used: float | None = None
    battery1_takeoff_voltage: float | None = None
    battery1_landing_voltage: float | None = None
    battery1_voltage_used: float | None = None
    battery2_takeoff_voltage: float | None = None
    battery2_landing_voltage: float | None = None
    battery2_voltage_used: float | None = None
    comment: str | None = None
    id: int | None = None

    @classmethod
    def from_fields(cls, values: dict[str, Any], record_id: int | None = None) -> FlightRecord:
        """Build a record from a catalogue-label keyed dict (unknown labels are ignored)."""
        kwargs = {FIELD_ATTRS[label]: value for label, value in values.items() if label in FIELD_ATTRS}
        return cls(**kwargs, id=record_id)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> FlightRecord:
        """Build a record from a store row keyed by column (attribute) name."""
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in row.items() if k in names})

    def to_fields(self) -> dict[str, Any]:
        """Return catalogue-label keyed values (store id excluded)."""
        return {label: getattr(self, attr) for label, attr in FIELD_ATTRS.items()}

    def to_columns(self) -> dict[str, Any]:
        """Return attribute keyed values without the store id."""
        data = asdict(self)
        data.pop("id")
        return data
