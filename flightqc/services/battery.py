from __future__ import annotations

from collections.abc import Mapping

from ..excel.mapper import normalize_header
from ..models.battery import (
    STATUS_FULLY_CHARGED,
    STATUS_LOW_VOLTAGE,
    STATUS_NOMINAL,
    STATUS_NOT_APPLICABLE,
    STATUS_UNKNOWN,
    BatteryConfig,
    BatteryHealth,
    SlotHealth,
)
from ..models.flight_record import FlightRecord

"""Battery health analyzer.

Per-cell voltage is the pack voltage divided by the series cell count of the
slot (from the model's BatteryConfig). Health is classified on the per-cell
landing voltage:

    <= 3.40 V          Low Voltage (replace)
    3.65 V .. 4.15 V   Nominal
    >= 4.15 V          Fully Charged
    anything else      Unknown  (includes the 3.40-3.65 V band)

Imbalance uses the per-cell take-off/landing delta as a proxy: the telemetry
carries no individual cell readings, so this is an approximation of real cell
imbalance.
"""

__all__ = [
    "LOW_VOLTAGE_MAX",
    "NOMINAL_MIN",
    "FULLY_CHARGED_MIN",
    "IMBALANCE_THRESHOLD",
    "REPLACE_WARNING",
    "per_cell_voltage",
    "classify_per_cell",
    "efficiency_percent",
    "analyze_slot",
    "find_config",
    "analyze_record",
]

LOW_VOLTAGE_MAX = 3.40
NOMINAL_MIN = 3.65
FULLY_CHARGED_MIN = 4.15
IMBALANCE_THRESHOLD = 0.006
REPLACE_WARNING = "Consider replacing battery"


def per_cell_voltage(total_voltage: float | None, cell_count: int | None) -> float | None:
    if total_voltage is None or not cell_count:
        return None
    return total_voltage / cell_count


def classify_per_cell(per_cell_landing: float | None) -> str:
    if per_cell_landing is None:
        return STATUS_UNKNOWN
    if per_cell_landing <= LOW_VOLTAGE_MAX:
        return STATUS_LOW_VOLTAGE
    if per_cell_landing >= FULLY_CHARGED_MIN:
        return STATUS_FULLY_CHARGED
    if per_cell_landing >= NOMINAL_MIN:
        return STATUS_NOMINAL
    # TODO: 3.40-3.65 V band is unclassified; confirm against the pack chemistry datasheet
    return STATUS_UNKNOWN


def efficiency_percent(takeoff: float | None, landing: float | None) -> float:
    """(takeoff - landing) / takeoff * 100; 0 when takeoff is missing or <= 0."""
    if takeoff is None or takeoff <= 0:
        return 0.0
    return (takeoff - (landing or 0.0)) / takeoff * 100


def analyze_slot(takeoff: float | None, landing: float | None, cell_count: int | None) -> SlotHealth:
    efficiency = efficiency_percent(takeoff, landing)
    if not cell_count:
        return SlotHealth(
            cell_count=None,
            per_cell_takeoff=None,
            per_cell_landing=None,
            status=STATUS_NOT_APPLICABLE,
            efficiency=efficiency,
        )
    pc_takeoff = per_cell_voltage(takeoff, cell_count)
    pc_landing = per_cell_voltage(landing, cell_count)
    status = classify_per_cell(pc_landing)
    imbalance = (
        pc_takeoff is not None
        and pc_landing is not None
        and abs(pc_takeoff - pc_landing) > IMBALANCE_THRESHOLD
    )
    return SlotHealth(
        cell_count=cell_count,
        per_cell_takeoff=pc_takeoff,
        per_cell_landing=pc_landing,
        status=status,
        warning=REPLACE_WARNING if status == STATUS_LOW_VOLTAGE else "",
        imbalance=imbalance,
        efficiency=efficiency,
    )


def find_config(model: str | None, configs: Mapping[str, BatteryConfig]) -> BatteryConfig | None:
    """Look up a model's config ignoring case and repeated whitespace.

    Sheet names are often upper-case copies of the model name ("ARSENIO 004").
    """
    if not model:
        return None
    exact = configs.get(model)
    if exact is not None:
        return exact
    key = normalize_header(model)
    for name, cfg in configs.items():
        if normalize_header(name) == key:
            return cfg
    return None


def analyze_record(record: FlightRecord, configs: Mapping[str, BatteryConfig]) -> BatteryHealth:
    cfg = find_config(record.drone_model, configs)
    slot1_cells = cfg.slot1_cells if cfg else None
    slot2_cells = cfg.slot2_cells if cfg else None
    return BatteryHealth(
        slot1=analyze_slot(record.battery1_takeoff_voltage, record.battery1_landing_voltage, slot1_cells),
        slot2=analyze_slot(record.battery2_takeoff_voltage, record.battery2_landing_voltage, slot2_cells),
    )
