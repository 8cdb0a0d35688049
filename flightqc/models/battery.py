from __future__ import annotations

from dataclasses import dataclass

"""Battery configuration and health result models.

BatteryConfig rows come from the battery configuration resource (one row per
drone model). SlotHealth / BatteryHealth are derived values and are never
persisted.
"""

__all__ = [
    "BatteryConfig",
    "SlotHealth",
    "BatteryHealth",
    "STATUS_LOW_VOLTAGE",
    "STATUS_NOMINAL",
    "STATUS_FULLY_CHARGED",
    "STATUS_UNKNOWN",
    "STATUS_NOT_APPLICABLE",
]

STATUS_LOW_VOLTAGE = "Low Voltage"
STATUS_NOMINAL = "Nominal"
STATUS_FULLY_CHARGED = "Fully Charged"
STATUS_UNKNOWN = "Unknown"
STATUS_NOT_APPLICABLE = "N/A"


@dataclass(frozen=True)
class BatteryConfig:
    """Series cell counts for the two battery slots of one drone model."""
    model: str
    slot1_cells: int | None
    slot2_cells: int | None = None  # single-battery airframes


@dataclass(frozen=True)
class SlotHealth:
    """Health classification for one battery slot of one flight."""
    cell_count: int | None
    per_cell_takeoff: float | None
    per_cell_landing: float | None
    status: str
    warning: str = ""
    imbalance: bool = False
    efficiency: float = 0.0

    @property
    def needs_replacement(self) -> bool:
        return self.status == STATUS_LOW_VOLTAGE


@dataclass(frozen=True)
class BatteryHealth:
    slot1: SlotHealth
    slot2: SlotHealth

    @property
    def needs_replacement(self) -> bool:
        return self.slot1.needs_replacement or self.slot2.needs_replacement

    @property
    def imbalanced(self) -> bool:
        return self.slot1.imbalance or self.slot2.imbalance
