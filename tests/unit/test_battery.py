from __future__ import annotations

import pytest

from flightqc.config.loader import load_battery_configs
from flightqc.models.battery import (
    STATUS_FULLY_CHARGED,
    STATUS_LOW_VOLTAGE,
    STATUS_NOMINAL,
    STATUS_NOT_APPLICABLE,
    STATUS_UNKNOWN,
)
from flightqc.models.flight_record import FlightRecord
from flightqc.services.battery import (
    REPLACE_WARNING,
    analyze_record,
    analyze_slot,
    classify_per_cell,
    efficiency_percent,
    find_config,
    per_cell_voltage,
)


@pytest.fixture(scope="module")
def configs():
    return load_battery_configs()


def test_arsenio_004_nominal_with_imbalance(configs):
    rec = FlightRecord(
        drone_model="Arsenio 004",
        battery1_takeoff_voltage=12.32,
        battery1_landing_voltage=12.26,
    )
    health = analyze_record(rec, configs)
    slot1 = health.slot1
    assert slot1.cell_count == 3
    assert slot1.per_cell_takeoff == pytest.approx(4.1067, abs=1e-4)
    assert slot1.per_cell_landing == pytest.approx(4.0867, abs=1e-4)
    assert slot1.status == STATUS_NOMINAL
    assert slot1.imbalance is True
    assert slot1.warning == ""
    assert health.imbalanced
    assert not health.needs_replacement
    # slot 2 configured (7 cells) but no readings
    assert health.slot2.cell_count == 7
    assert health.slot2.status == STATUS_UNKNOWN


def test_low_voltage_recommends_replacement(configs):
    rec = FlightRecord(drone_model="ARSENIO 004", battery1_takeoff_voltage=12.4, battery1_landing_voltage=10.0)
    health = analyze_record(rec, configs)
    assert health.slot1.status == STATUS_LOW_VOLTAGE
    assert health.slot1.warning == REPLACE_WARNING
    assert health.needs_replacement


@pytest.mark.parametrize(
    "per_cell,status",
    [
        (3.0, STATUS_LOW_VOLTAGE),
        (3.40, STATUS_LOW_VOLTAGE),
        (3.50, STATUS_UNKNOWN),  # unclassified band
        (3.65, STATUS_NOMINAL),
        (4.0, STATUS_NOMINAL),
        (4.15, STATUS_FULLY_CHARGED),
        (4.3, STATUS_FULLY_CHARGED),
        (None, STATUS_UNKNOWN),
    ],
)
def test_classify_per_cell(per_cell, status):
    assert classify_per_cell(per_cell) == status


def test_imbalance_threshold():
    # per-cell delta 0.005 <= 0.006
    assert analyze_slot(12.015, 12.0, 3).imbalance is False
    # per-cell delta 0.01
    assert analyze_slot(12.03, 12.0, 3).imbalance is True


def test_unknown_model_is_not_applicable(configs):
    rec = FlightRecord(drone_model="Prototype X", battery1_takeoff_voltage=12.0, battery1_landing_voltage=9.0)
    health = analyze_record(rec, configs)
    assert health.slot1.status == STATUS_NOT_APPLICABLE
    assert health.slot2.status == STATUS_NOT_APPLICABLE
    assert health.slot1.efficiency == pytest.approx(25.0)
    assert not health.needs_replacement


def test_single_battery_model_slot2_not_applicable(configs):
    rec = FlightRecord(drone_model="Xander 001", battery1_takeoff_voltage=25.0, battery1_landing_voltage=23.4)
    health = analyze_record(rec, configs)
    assert health.slot1.cell_count == 6
    assert health.slot1.status == STATUS_NOMINAL
    assert health.slot2.status == STATUS_NOT_APPLICABLE


def test_efficiency_percent():
    assert efficiency_percent(12.0, 9.0) == pytest.approx(25.0)
    assert efficiency_percent(12.0, None) == pytest.approx(100.0)
    assert efficiency_percent(None, 9.0) == 0.0
    assert efficiency_percent(0.0, 0.0) == 0.0


def test_per_cell_voltage():
    assert per_cell_voltage(12.0, 3) == pytest.approx(4.0)
    assert per_cell_voltage(None, 3) is None
    assert per_cell_voltage(12.0, None) is None


def test_find_config_is_case_and_space_insensitive(configs):
    assert find_config("arsenio   004", configs).slot2_cells == 7
    assert find_config("Argini 001", configs).slot2_cells == 12
    assert find_config(None, configs) is None
    assert find_config("Nope", configs) is None
