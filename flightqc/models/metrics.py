from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from .battery import BatteryHealth

"""Dashboard metric models.

All of these are recomputed from the FlightRecord set on every call; nothing
here is cached or incrementally updated.
"""

__all__ = [
    "DateWindow",
    "DashboardFilter",
    "DerivedMetrics",
    "BucketStats",
    "HistogramBin",
    "PerformanceScore",
    "DashboardSnapshot",
    "ALL_MODELS",
]

ALL_MODELS = "ALL"


class DateWindow(Enum):
    """Relative date windows offered by the dashboard filter.

    Month/year windows are fixed day counts (6m = 180 days, 1y = 365 days).
    """
    ALL = "all"
    DAYS_30 = "30d"
    DAYS_90 = "90d"
    MONTHS_6 = "6m"
    YEAR_1 = "1y"

    @property
    def days(self) -> int | None:
        return _WINDOW_DAYS[self]

    @classmethod
    def parse(cls, value: str | DateWindow) -> DateWindow:
        if isinstance(value, DateWindow):
            return value
        key = str(value).strip().lower()
        if key == "6mo":
            key = "6m"
        for member in cls:
            if member.value == key:
                return member
        raise ValueError(f"unknown date window: {value!r}")


_WINDOW_DAYS: dict[DateWindow, int | None] = {
    DateWindow.ALL: None,
    DateWindow.DAYS_30: 30,
    DateWindow.DAYS_90: 90,
    DateWindow.MONTHS_6: 180,
    DateWindow.YEAR_1: 365,
}


@dataclass(frozen=True)
class DashboardFilter:
    """Active dashboard selection (date window + drone model + optional single flight)."""
    window: DateWindow = DateWindow.ALL
    model: str = ALL_MODELS
    flight_id: str | None = None


@dataclass(frozen=True)
class DerivedMetrics:
    """Per-flight values computed from one FlightRecord (never persisted)."""
    flight_id: str | None
    drone_model: str | None
    mission_objective: str | None
    flight_minutes: float
    battery1_efficiency: float
    battery2_efficiency: float
    battery1_used: float
    battery2_used: float
    has_issues: bool
    month: str
    quarter: str
    day_of_week: str
    mission_datetime: datetime | None
    engine_hours: float
    fuel_used: float
    battery: BatteryHealth


@dataclass(frozen=True)
class BucketStats:
    label: str
    count: int
    avg_minutes: float
    issues: int
    issue_rate: float  # percent
    avg_battery1_efficiency: float
    avg_battery2_efficiency: float
    avg_battery_efficiency: float


@dataclass(frozen=True)
class HistogramBin:
    label: str
    lower: float
    upper: float | None  # None = open ended
    count: int = 0
    battery1: int = 0
    battery2: int = 0


@dataclass(frozen=True)
class PerformanceScore:
    score: int  # 0..100
    health: str  # critical | poor | good | excellent | unknown
    trend: str = "neutral"


@dataclass(frozen=True)
class DashboardSnapshot:
    """Aggregate of DerivedMetrics over one filtered record set."""
    total_flights: int
    total_flight_minutes: float
    avg_flight_minutes: float
    avg_battery1_efficiency: float
    avg_battery2_efficiency: float
    avg_battery1_used: float
    avg_battery2_used: float
    total_battery1_used: float
    total_battery2_used: float
    flights_with_issues: int
    issue_rate: float
    batteries_to_replace: int
    batteries_imbalanced: int
    total_engine_hours: float
    total_fuel_used: float
    performance: PerformanceScore
    monthly: list[BucketStats] = field(default_factory=list)
    day_of_week: list[BucketStats] = field(default_factory=list)
    objectives: list[BucketStats] = field(default_factory=list)
    duration_histogram: list[HistogramBin] = field(default_factory=list)
    efficiency_histogram: list[HistogramBin] = field(default_factory=list)
    model_flight_counts: dict[str, int] = field(default_factory=dict)
