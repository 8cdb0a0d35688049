from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import datetime, timedelta

from ..excel.mapper import normalize_header
from ..models.app_state import AppState
from ..models.battery import BatteryConfig
from ..models.flight_record import FlightRecord
from ..models.metrics import (
    ALL_MODELS,
    BucketStats,
    DashboardFilter,
    DashboardSnapshot,
    DateWindow,
    DerivedMetrics,
    HistogramBin,
    PerformanceScore,
)
from .battery import analyze_record, efficiency_percent
from .temporal import UNKNOWN, parse_date, parse_duration

"""Metrics aggregator & performance scorer.

Every function here is a stateless transform over a FlightRecord (or
DerivedMetrics) sequence: the dashboard snapshot is rebuilt from scratch on
each call. Sums use math.fsum so that aggregate values, and therefore the
performance score, do not depend on record order.
"""

__all__ = [
    "WEEKDAYS",
    "DURATION_BINS",
    "EFFICIENCY_BINS",
    "has_issues",
    "filter_by_model",
    "filter_by_flight",
    "filter_by_date_range",
    "apply_filter",
    "derive_metrics",
    "average_efficiency",
    "monthly_breakdown",
    "day_of_week_breakdown",
    "objective_breakdown",
    "duration_histogram",
    "efficiency_histogram",
    "health_band",
    "performance_score",
    "build_snapshot",
]

logger = logging.getLogger(__name__)

WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

# (label, lower, upper) - lower inclusive, upper exclusive, None = open
DURATION_BINS: tuple[tuple[str, float, float | None], ...] = (
    ("0-5 min", 0, 5),
    ("5-10 min", 5, 10),
    ("10-15 min", 10, 15),
    ("15-20 min", 15, 20),
    ("20+ min", 20, None),
)

# (label, lower, upper) - upper inclusive (an efficiency of exactly 10% is in 0-10%)
EFFICIENCY_BINS: tuple[tuple[str, float, float | None], ...] = (
    ("0-10%", 0, 10),
    ("10-20%", 10, 20),
    ("20-30%", 20, 30),
    ("30-40%", 30, 40),
    ("40%+", 40, None),
)

TOP_OBJECTIVES = 5

ISSUE_WEIGHT = 0.4
BATTERY_WEIGHT = 0.4
EFFICIENCY_WEIGHT = 0.2


def _mean(values: Iterable[float]) -> float:
    vals = list(values)
    if not vals:
        return 0.0
    return math.fsum(vals) / len(vals)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def has_issues(comment: str | None, no_issue_sentinel: str) -> bool:
    """A comment flags an issue unless it is blank or equals the no-issue sentinel."""
    if comment is None:
        return False
    text = comment.strip()
    if not text:
        return False
    return text.lower() != no_issue_sentinel.strip().lower()


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------

def filter_by_model(records: Iterable[FlightRecord], model: str | None) -> list[FlightRecord]:
    if not model or model == ALL_MODELS:
        return list(records)
    key = normalize_header(model)
    return [r for r in records if normalize_header(r.drone_model) == key]


def filter_by_flight(records: Iterable[FlightRecord], flight_id: str | None) -> list[FlightRecord]:
    if not flight_id:
        return list(records)
    return [r for r in records if r.flight_id == flight_id]


def filter_by_date_range(
    records: Iterable[FlightRecord], window: DateWindow | str, now: datetime | None = None
) -> list[FlightRecord]:
    """Keep records dated within ``[now - window, now]``.

    Records with an absent or unparseable mission date are only kept for the
    ALL window.
    """
    window = DateWindow.parse(window)
    if window is DateWindow.ALL:
        return list(records)
    now = now or datetime.now()
    cutoff = now - timedelta(days=window.days or 0)
    kept: list[FlightRecord] = []
    for r in records:
        info = parse_date(r.mission_date)
        if info.value is not None and cutoff <= info.value <= now:
            kept.append(r)
    return kept


def apply_filter(
    records: Iterable[FlightRecord], dashboard_filter: DashboardFilter, now: datetime | None = None
) -> list[FlightRecord]:
    selected = filter_by_model(records, dashboard_filter.model)
    selected = filter_by_date_range(selected, dashboard_filter.window, now)
    return filter_by_flight(selected, dashboard_filter.flight_id)


# ---------------------------------------------------------------------------
# Per-flight metrics
# ---------------------------------------------------------------------------

def derive_metrics(
    record: FlightRecord, configs: Mapping[str, BatteryConfig], no_issue_sentinel: str
) -> DerivedMetrics:
    info = parse_date(record.mission_date)
    battery = analyze_record(record, configs)
    return DerivedMetrics(
        flight_id=record.flight_id,
        drone_model=record.drone_model,
        mission_objective=record.mission_objective,
        flight_minutes=parse_duration(record.total_flight_time),
        battery1_efficiency=efficiency_percent(record.battery1_takeoff_voltage, record.battery1_landing_voltage),
        battery2_efficiency=efficiency_percent(record.battery2_takeoff_voltage, record.battery2_landing_voltage),
        battery1_used=record.battery1_voltage_used or 0.0,
        battery2_used=record.battery2_voltage_used or 0.0,
        has_issues=has_issues(record.comment, no_issue_sentinel),
        month=info.month,
        quarter=info.quarter,
        day_of_week=info.day_of_week,
        mission_datetime=info.value,
        engine_hours=record.engine_time_hours or 0.0,
        fuel_used=record.fuel_used or 0.0,
        battery=battery,
    )


def average_efficiency(metrics: Sequence[DerivedMetrics], slot: int) -> float:
    """Mean efficiency of one slot over flights where it is positive."""
    attr = "battery1_efficiency" if slot == 1 else "battery2_efficiency"
    return _mean(v for v in (getattr(m, attr) for m in metrics) if v > 0)


# ---------------------------------------------------------------------------
# Buckets
# ---------------------------------------------------------------------------

def _bucket(label: str, items: Sequence[DerivedMetrics]) -> BucketStats:
    count = len(items)
    issues = sum(1 for m in items if m.has_issues)
    combined = [
        (m.battery1_efficiency + m.battery2_efficiency) / 2
        for m in items
        if m.battery1_efficiency > 0 or m.battery2_efficiency > 0
    ]
    return BucketStats(
        label=label,
        count=count,
        avg_minutes=_mean(m.flight_minutes for m in items),
        issues=issues,
        issue_rate=(issues / count * 100) if count else 0.0,
        avg_battery1_efficiency=average_efficiency(items, 1),
        avg_battery2_efficiency=average_efficiency(items, 2),
        avg_battery_efficiency=_mean(combined),
    )


def _group(
    metrics: Iterable[DerivedMetrics], key: Callable[[DerivedMetrics], str]
) -> dict[str, list[DerivedMetrics]]:
    groups: dict[str, list[DerivedMetrics]] = {}
    for m in metrics:
        groups.setdefault(key(m), []).append(m)
    return groups


def monthly_breakdown(metrics: Sequence[DerivedMetrics]) -> list[BucketStats]:
    """One bucket per calendar month, chronological; undated flights last."""
    groups = _group(metrics, lambda m: m.month)

    def sort_key(item: tuple[str, list[DerivedMetrics]]) -> tuple[int, int, int]:
        label, items = item
        first = items[0].mission_datetime
        if label == UNKNOWN or first is None:
            return (1, 0, 0)
        return (0, first.year, first.month)

    return [_bucket(label, items) for label, items in sorted(groups.items(), key=sort_key)]


def day_of_week_breakdown(metrics: Sequence[DerivedMetrics]) -> list[BucketStats]:
    """Seven buckets Mon..Sun (empty days included); undated flights are not counted."""
    groups = _group(metrics, lambda m: m.day_of_week)
    return [_bucket(day, groups.get(day, [])) for day in WEEKDAYS]


def objective_breakdown(metrics: Sequence[DerivedMetrics], top: int = TOP_OBJECTIVES) -> list[BucketStats]:
    """Top mission objectives by flight count; ties keep first-seen order."""
    groups = _group(metrics, lambda m: (m.mission_objective or "").strip() or UNKNOWN)
    ranked = sorted(groups.items(), key=lambda item: -len(item[1]))  # stable sort
    return [_bucket(label, items) for label, items in ranked[:top]]


# ---------------------------------------------------------------------------
# Histograms
# ---------------------------------------------------------------------------

def duration_histogram(metrics: Sequence[DerivedMetrics]) -> list[HistogramBin]:
    counts = [0] * len(DURATION_BINS)
    for m in metrics:
        for i, (_, lower, upper) in enumerate(DURATION_BINS):
            if m.flight_minutes >= lower and (upper is None or m.flight_minutes < upper):
                counts[i] += 1
                break
    return [
        HistogramBin(label=label, lower=lower, upper=upper, count=counts[i])
        for i, (label, lower, upper) in enumerate(DURATION_BINS)
    ]


def _efficiency_bin(value: float) -> int:
    for i, (_, _, upper) in enumerate(EFFICIENCY_BINS):
        if upper is None or value <= upper:
            return i
    return len(EFFICIENCY_BINS) - 1


def efficiency_histogram(metrics: Sequence[DerivedMetrics]) -> list[HistogramBin]:
    """Battery efficiency distribution, each slot counted independently.

    Only positive efficiencies are counted (0 means no usable voltage data).
    """
    b1 = [0] * len(EFFICIENCY_BINS)
    b2 = [0] * len(EFFICIENCY_BINS)
    for m in metrics:
        if m.battery1_efficiency > 0:
            b1[_efficiency_bin(m.battery1_efficiency)] += 1
        if m.battery2_efficiency > 0:
            b2[_efficiency_bin(m.battery2_efficiency)] += 1
    return [
        HistogramBin(label=label, lower=lower, upper=upper, count=b1[i] + b2[i], battery1=b1[i], battery2=b2[i])
        for i, (label, lower, upper) in enumerate(EFFICIENCY_BINS)
    ]


# ---------------------------------------------------------------------------
# Score
# ---------------------------------------------------------------------------

def health_band(score: int) -> str:
    if score < 60:
        return "critical"
    if score < 75:
        return "poor"
    if score < 85:
        return "good"
    return "excellent"


def performance_score(metrics: Sequence[DerivedMetrics]) -> PerformanceScore:
    """Weighted 0-100 composite of issue rate and battery efficiency.

    score = round(0.4 * issue + 0.4 * battery + 0.2 * efficiency) where
    issue = 100 - issue rate, battery = 2 * avg efficiency (uncapped, only the
    final score is clamped to 0-100), efficiency = min(100, avg efficiency);
    avg efficiency is the mean of the two per-slot averages.
    """
    total = len(metrics)
    if total == 0:
        return PerformanceScore(score=0, health="unknown")
    flights_with_issues = sum(1 for m in metrics if m.has_issues)
    avg_eff = (average_efficiency(metrics, 1) + average_efficiency(metrics, 2)) / 2

    issue_score = max(0.0, 100 - flights_with_issues / total * 100)
    battery_score = avg_eff * 2
    efficiency_score = min(100.0, avg_eff)

    raw = issue_score * ISSUE_WEIGHT + battery_score * BATTERY_WEIGHT + efficiency_score * EFFICIENCY_WEIGHT
    score = max(0, min(100, _round_half_up(raw)))
    return PerformanceScore(score=score, health=health_band(score))


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------

def _model_counts(records: Sequence[FlightRecord], configs: Mapping[str, BatteryConfig]) -> dict[str, int]:
    counts: dict[str, int] = {name: 0 for name in configs}
    canonical = {normalize_header(name): name for name in configs}
    for r in records:
        if not r.drone_model:
            continue
        name = canonical.get(normalize_header(r.drone_model), r.drone_model)
        counts[name] = counts.get(name, 0) + 1
    return counts


def build_snapshot(state: AppState, now: datetime | None = None) -> DashboardSnapshot:
    """Recompute the dashboard for the state's record set and filter."""
    selected = apply_filter(state.records, state.dashboard_filter, now)
    metrics = [
        derive_metrics(r, state.battery_configs, state.config.no_issue_sentinel) for r in selected
    ]
    total = len(metrics)
    total_minutes = math.fsum(m.flight_minutes for m in metrics)
    flights_with_issues = sum(1 for m in metrics if m.has_issues)
    logger.debug(f"snapshot: {total}/{len(state.records)} records after filter {state.dashboard_filter}")

    return DashboardSnapshot(
        total_flights=total,
        total_flight_minutes=total_minutes,
        avg_flight_minutes=(total_minutes / total) if total else 0.0,
        avg_battery1_efficiency=average_efficiency(metrics, 1),
        avg_battery2_efficiency=average_efficiency(metrics, 2),
        avg_battery1_used=_mean(m.battery1_used for m in metrics if m.battery1_used > 0),
        avg_battery2_used=_mean(m.battery2_used for m in metrics if m.battery2_used > 0),
        total_battery1_used=math.fsum(m.battery1_used for m in metrics),
        total_battery2_used=math.fsum(m.battery2_used for m in metrics),
        flights_with_issues=flights_with_issues,
        issue_rate=(flights_with_issues / total * 100) if total else 0.0,
        batteries_to_replace=sum(1 for m in metrics if m.battery.needs_replacement),
        batteries_imbalanced=sum(1 for m in metrics if m.battery.imbalanced),
        total_engine_hours=math.fsum(m.engine_hours for m in metrics),
        total_fuel_used=math.fsum(m.fuel_used for m in metrics),
        performance=performance_score(metrics),
        monthly=monthly_breakdown(metrics),
        day_of_week=day_of_week_breakdown(metrics),
        objectives=objective_breakdown(metrics),
        duration_histogram=duration_histogram(metrics),
        efficiency_histogram=efficiency_histogram(metrics),
        model_flight_counts=_model_counts(state.records, state.battery_configs),
    )
