from __future__ import annotations

import random
from datetime import datetime

import pytest

from flightqc.config.loader import load_battery_configs
from flightqc.models.app_state import AppState
from flightqc.models.config_models import AppConfig
from flightqc.models.flight_record import FlightRecord
from flightqc.models.metrics import DashboardFilter, DateWindow
from flightqc.services.metrics import (
    apply_filter,
    build_snapshot,
    day_of_week_breakdown,
    derive_metrics,
    duration_histogram,
    efficiency_histogram,
    filter_by_date_range,
    filter_by_model,
    has_issues,
    health_band,
    monthly_breakdown,
    objective_breakdown,
    performance_score,
)

SENTINEL = "no issues."
NOW = datetime(2025, 4, 7, 12, 0)


@pytest.fixture(scope="module")
def configs():
    return load_battery_configs()


def _metrics(records, configs):
    return [derive_metrics(r, configs, SENTINEL) for r in records]


@pytest.mark.parametrize(
    "comment,expected",
    [
        (None, False),
        ("", False),
        ("No issues.", False),
        ("  NO ISSUES.  ", False),
        ("No issues", True),
        ("Prop damage", True),
    ],
)
def test_has_issues(comment, expected):
    assert has_issues(comment, SENTINEL) is expected


def test_date_window_parse():
    assert DateWindow.parse("30d") is DateWindow.DAYS_30
    assert DateWindow.parse("6mo") is DateWindow.MONTHS_6
    assert DateWindow.MONTHS_6.days == 180
    assert DateWindow.YEAR_1.days == 365
    assert DateWindow.ALL.days is None
    with pytest.raises(ValueError):
        DateWindow.parse("2w")


def test_filter_by_date_range_30d_boundary():
    records = [
        FlightRecord(flight_id="edge", mission_date="2025-03-08T12:00:00"),
        FlightRecord(flight_id="just-out", mission_date="2025-03-08T11:59:59"),
        FlightRecord(flight_id="recent", mission_date="2025-04-01"),
        FlightRecord(flight_id="future", mission_date="2025-04-08"),
        FlightRecord(flight_id="undated", mission_date=None),
        FlightRecord(flight_id="bad", mission_date="garbage"),
    ]
    kept = filter_by_date_range(records, DateWindow.DAYS_30, now=NOW)
    assert [r.flight_id for r in kept] == ["edge", "recent"]
    assert len(filter_by_date_range(records, "all", now=NOW)) == len(records)


def test_filter_by_model_all_and_normalized():
    records = [FlightRecord(drone_model="Arsenio 004"), FlightRecord(drone_model="ARSENIO 004"), FlightRecord()]
    assert len(filter_by_model(records, "ALL")) == 3
    assert len(filter_by_model(records, "arsenio 004")) == 2


def test_apply_filter_combines_model_window_and_flight():
    records = [
        FlightRecord(drone_model="Arsenio 004", flight_id="F1", mission_date="2025-04-01"),
        FlightRecord(drone_model="Arsenio 004", flight_id="F2", mission_date="2025-04-02"),
        FlightRecord(drone_model="Xander 001", flight_id="F1", mission_date="2025-04-01"),
        FlightRecord(drone_model="Arsenio 004", flight_id="F1", mission_date="2024-01-01"),
    ]
    selected = apply_filter(records, DashboardFilter(DateWindow.DAYS_30, "Arsenio 004", "F1"), now=NOW)
    assert selected == [records[0]]


def test_objective_breakdown_top5_ties_keep_first_seen(configs):
    objectives = ["A", "B", "C", "A", "D", "E", "F", "G", "G"]
    records = [FlightRecord(mission_objective=o) for o in objectives]
    buckets = objective_breakdown(_metrics(records, configs))
    assert [(b.label, b.count) for b in buckets] == [("A", 2), ("G", 2), ("B", 1), ("C", 1), ("D", 1)]


def test_objective_breakdown_blank_is_unknown(configs):
    records = [FlightRecord(mission_objective="  "), FlightRecord()]
    (bucket,) = objective_breakdown(_metrics(records, configs))
    assert bucket.label == "Unknown"
    assert bucket.count == 2


def test_monthly_breakdown_chronological_unknown_last(configs):
    records = [
        FlightRecord(mission_date="2025-04-02", comment="Prop damage"),
        FlightRecord(mission_date=None),
        FlightRecord(mission_date="2025-03-08", comment="No issues."),
        FlightRecord(mission_date="2024-12-31"),
        FlightRecord(mission_date="2025-04-20"),
    ]
    buckets = monthly_breakdown(_metrics(records, configs))
    assert [b.label for b in buckets] == ["Dec 2024", "Mar 2025", "Apr 2025", "Unknown"]
    april = buckets[2]
    assert april.count == 2
    assert april.issues == 1
    assert april.issue_rate == pytest.approx(50.0)


def test_day_of_week_breakdown_has_seven_buckets(configs):
    records = [FlightRecord(mission_date="2025-03-08"), FlightRecord(mission_date="2025-03-10")]
    buckets = day_of_week_breakdown(_metrics(records, configs))
    assert [b.label for b in buckets] == ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    assert {b.label: b.count for b in buckets}["Sat"] == 1
    assert {b.label: b.count for b in buckets}["Mon"] == 1
    assert sum(b.count for b in buckets) == 2


def test_duration_histogram_half_open_bins(configs):
    minutes = ["0", "4.99", "5", "10", "19.9", "20", "100"]
    records = [FlightRecord(total_flight_time=m) for m in minutes]
    bins = duration_histogram(_metrics(records, configs))
    assert [b.label for b in bins] == ["0-5 min", "5-10 min", "10-15 min", "15-20 min", "20+ min"]
    assert [b.count for b in bins] == [2, 1, 1, 1, 2]


def test_efficiency_histogram_positive_only_upper_inclusive(configs):
    records = [
        FlightRecord(battery1_takeoff_voltage=100.0, battery1_landing_voltage=90.0),  # 10%
        FlightRecord(battery1_takeoff_voltage=100.0, battery1_landing_voltage=89.5),  # 10.5%
        FlightRecord(battery1_takeoff_voltage=100.0, battery1_landing_voltage=100.0),  # 0% not counted
        FlightRecord(
            battery1_takeoff_voltage=100.0, battery1_landing_voltage=55.0,  # 45%
            battery2_takeoff_voltage=100.0, battery2_landing_voltage=75.0,  # 25%
        ),
    ]
    bins = efficiency_histogram(_metrics(records, configs))
    assert [b.battery1 for b in bins] == [1, 1, 0, 0, 1]
    assert [b.battery2 for b in bins] == [0, 0, 1, 0, 0]
    assert [b.count for b in bins] == [1, 1, 1, 0, 1]


@pytest.mark.parametrize(
    "score,band",
    [(0, "critical"), (59, "critical"), (60, "poor"), (74, "poor"), (75, "good"), (84, "good"), (85, "excellent"), (100, "excellent")],
)
def test_health_band(score, band):
    assert health_band(score) == band


def test_performance_score_empty():
    perf = performance_score([])
    assert perf.score == 0
    assert perf.health == "unknown"


def _flight(eff1: float, eff2: float, comment: str = "No issues.") -> FlightRecord:
    return FlightRecord(
        battery1_takeoff_voltage=100.0,
        battery1_landing_voltage=100.0 - eff1,
        battery2_takeoff_voltage=100.0,
        battery2_landing_voltage=100.0 - eff2,
        comment=comment,
    )


def test_performance_score_weighted(configs):
    # issue 100, battery 2*50 = 100, efficiency 50
    perf = performance_score(_metrics([_flight(50, 50), _flight(50, 50)], configs))
    assert perf.score == 90
    assert perf.health == "excellent"
    assert perf.trend == "neutral"


def test_performance_score_clamps_only_final_score(configs):
    # 0.4*100 + 0.4*160 + 0.2*80 = 120 -> 100
    perf = performance_score(_metrics([_flight(80, 80)], configs))
    assert perf.score == 100


def test_performance_score_battery_component_uncapped(configs):
    # issue 50, battery 2*75 = 150, efficiency 75 -> round(20 + 60 + 15)
    records = [_flight(75, 75), _flight(75, 75, comment="prop strike")]
    perf = performance_score(_metrics(records, configs))
    assert perf.score == 95
    assert perf.health == "excellent"


def test_performance_score_all_issues_no_efficiency(configs):
    records = [FlightRecord(comment="crash"), FlightRecord(comment="crash")]
    perf = performance_score(_metrics(records, configs))
    assert perf.score == 0
    assert perf.health == "critical"


def test_performance_score_bounded_and_order_independent(configs):
    rng = random.Random(7)
    records = [
        _flight(rng.uniform(0, 95), rng.uniform(0, 95), rng.choice(["No issues.", "GPS drift", ""]))
        for _ in range(60)
    ]
    metrics = _metrics(records, configs)
    base = performance_score(metrics)
    assert 0 <= base.score <= 100
    for _ in range(5):
        shuffled = metrics[:]
        rng.shuffle(shuffled)
        assert performance_score(shuffled) == base


def test_build_snapshot(configs):
    records = [
        FlightRecord(drone_model="Arsenio 004", mission_date="2025-04-01", mission_objective="Survey",
                     total_flight_time="0:25:00", battery1_takeoff_voltage=12.32, battery1_landing_voltage=12.26,
                     comment="No issues."),
        FlightRecord(drone_model="ARSENIO 004", mission_date="2025-03-20", mission_objective="Mapping",
                     total_flight_time="0:35:00", battery1_takeoff_voltage=12.4, battery1_landing_voltage=10.0,
                     comment="Low battery alarm"),
        FlightRecord(drone_model="Arsenio 004", mission_date="2024-01-01", mission_objective="Survey",
                     total_flight_time="0:10:00"),
        FlightRecord(drone_model="Xander 001", mission_date="2025-04-02", total_flight_time="1:00:00"),
    ]
    state = AppState(config=AppConfig(), battery_configs=configs).with_records(records)

    everything = build_snapshot(state, now=NOW)
    assert everything.total_flights == 4
    assert everything.model_flight_counts["Arsenio 004"] == 3
    assert everything.model_flight_counts["Xander 001"] == 1
    assert everything.model_flight_counts["Argini 001"] == 0

    state = state.with_filter(DashboardFilter(window=DateWindow.DAYS_30, model="Arsenio 004"))
    snap = build_snapshot(state, now=NOW)
    assert snap.total_flights == 2
    assert snap.total_flight_minutes == pytest.approx(60.0)
    assert snap.avg_flight_minutes == pytest.approx(30.0)
    assert snap.flights_with_issues == 1
    assert snap.issue_rate == pytest.approx(50.0)
    assert snap.batteries_to_replace == 1
    assert snap.batteries_imbalanced == 2
    assert len(snap.day_of_week) == 7
    assert [b.label for b in snap.monthly] == ["Mar 2025", "Apr 2025"]
    # counts ignore the filter
    assert snap.model_flight_counts["Arsenio 004"] == 3
    assert 0 <= snap.performance.score <= 100
