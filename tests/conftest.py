# Shared pytest fixtures
from __future__ import annotations
import tempfile
from collections.abc import Callable
from pathlib import Path

import pandas as pd
import pytest

from flightqc.logging.init import reset_logging

HEADER = [
    "DRONE MODEL",
    "MISSION DATE",
    "MISSION OBJECTIVE",
    "FLIGHT ID",
    "TAKE-OFF TIME",
    "LANDING TIME",
    "TOTAL FLIGHT TIME",
    "BATTERY 1 (S) TAKE-OFF VOLTAGE",
    "BATTERY 1 (S) LANDING VOLTAGE",
    "BATTERY 1 (S) VOLTAGE USED",
    "BATTERY 2 (S) TAKE-OFF VOLTAGE",
    "BATTERY 2 (S) LANDING VOLTAGE",
    "BATTERY 2 (S) VOLTAGE USED",
    "PILOT",
    "COMMENT",
]


@pytest.fixture(autouse=True)
def _clean_logging():
    # ハンドラが前テストの stdout (capsys) を掴んだままにならないように
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        monkeypatch.setenv("DISABLE_DB_CONNECT", "1")
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """no_issue_sentinel: "no issues."
null_sentinels: ["NIL", "N/A"]
header_candidate_limit: 5
table: flight_logs
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: flights
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "flightqc.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def make_workbook(temp_workdir: Path) -> Callable[[str, dict[str, list[list[object]]]], Path]:
    """Write raw rows (no pandas header) per sheet into data/<name>."""
    def _make(name: str, sheets: dict[str, list[list[object]]]) -> Path:
        path = temp_workdir / "data" / name
        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            for sheet_name, rows in sheets.items():
                pd.DataFrame(rows).to_excel(writer, sheet_name=sheet_name, header=False, index=False)
        return path
    return _make


@pytest.fixture()
def flight_sheet_rows() -> list[list[object]]:
    """Title row, header row and three flights (one with a NIL landing time)."""
    return [
        ["Arsenio 004 Flight Log"] + [None] * (len(HEADER) - 1),
        list(HEADER),
        ["Arsenio 004", "2025-03-08", "Survey", "ARS-001", "08:00", "08:25", "0:25:00",
         12.32, 12.26, 0.06, 28.5, 27.9, 0.6, "A. Bello", "No issues."],
        ["Arsenio 004", "2025-03-09", "Mapping", "ARS-002", "09:10", "NIL", "0:12:30",
         12.4, 10.0, 2.4, 28.0, 25.0, 3.0, "A. Bello", "GPS drift"],
        [None] * len(HEADER),
        [None, "2025-03-10", "Survey", "ARS-003", "10:00", "10:40", "0:40:00",
         12.5, "bad", None, None, None, None, "C. Okafor", "No issues."],
    ]
