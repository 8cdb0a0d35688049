#!/usr/bin/env python3
"""Sample flight log workbook generator.

Generates synthetic drone flight logs in the layout the importer expects from
field workbooks:
- Row 1: Title row (skipped by choosing the header row)
- Row 2: Header row with canonical column labels (plus one unrelated column)
- Row 3+: Data rows, one sheet per drone model

Voltages are generated per cell count of the model so that the battery
analysis produces a realistic mix of Nominal / Low Voltage results.
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

import numpy as np
import pandas as pd

# model -> (slot1 cells, slot2 cells or None)
MODELS: dict[str, tuple[int, int | None]] = {
    "Argini 001": (3, 12),
    "Arsenio 004": (3, 7),
    "Xander 002": (6, None),
}

OBJECTIVES = ["Survey", "Mapping", "Inspection", "Training", "Delivery", "Search"]
COMMENTS = ["No issues.", "No issues.", "No issues.", "GPS drift", "Motor vibration", "Late landing"]

HEADERS = [
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


def _clock(minutes: int) -> str:
    return f"{(minutes // 60) % 24:02d}:{minutes % 60:02d}"


def generate_flights(model: str, rows: int, rng: np.random.Generator, end: pd.Timestamp) -> list[list[object]]:
    """Generate ``rows`` flights of one model within the year before ``end``."""
    slot1, slot2 = MODELS[model]
    name, number = model.split()
    prefix = name[:3].upper() + number
    days = rng.integers(0, 365, rows)
    starts = rng.integers(6 * 60, 17 * 60, rows)
    durations = rng.integers(5, 75, rows)
    out: list[list[object]] = []
    for i in range(rows):
        takeoff1 = round(float(rng.uniform(4.0, 4.2)) * slot1, 2)
        landing1 = round(takeoff1 - float(rng.uniform(0.05, 0.9)) * slot1, 2)
        if slot2 is not None:
            takeoff2 = round(float(rng.uniform(4.0, 4.2)) * slot2, 2)
            landing2: float | None = round(takeoff2 - float(rng.uniform(0.05, 0.9)) * slot2, 2)
        else:
            takeoff2, landing2 = None, None
        minutes = int(durations[i])
        out.append([
            model,
            (end - pd.Timedelta(days=int(days[i]))).strftime("%Y-%m-%d"),
            str(rng.choice(OBJECTIVES)),
            f"{prefix}-{i + 1:04d}",
            _clock(int(starts[i])),
            _clock(int(starts[i]) + minutes),
            f"{minutes // 60}:{minutes % 60:02d}:00",
            takeoff1,
            landing1,
            round(takeoff1 - landing1, 2),
            takeoff2,
            landing2,
            round(takeoff2 - landing2, 2) if takeoff2 is not None and landing2 is not None else None,
            str(rng.choice(["A. Bello", "C. Okafor", "T. Musa"])),
            str(rng.choice(COMMENTS)),
        ])
    return out


def create_workbook(output_path: Path, rows: int, seed: int = 42, title: str = "Flight Log") -> None:
    rng = np.random.default_rng(seed)
    end = pd.Timestamp.today().normalize()
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
        for model in MODELS:
            sheet_data: list[list[object]] = [[f"{title} - {model}"] + [""] * (len(HEADERS) - 1), list(HEADERS)]
            sheet_data.extend(generate_flights(model, rows, rng, end))
            pd.DataFrame(sheet_data).to_excel(writer, sheet_name=model.upper(), header=False, index=False)

    print(f"Created workbook: {output_path}")
    print(f"  Sheets: {len(MODELS)} ({', '.join(m.upper() for m in MODELS)})")
    print(f"  Flights per sheet: {rows} (header row index 1)")


def main() -> int:
    parser = argparse.ArgumentParser(description="Generate a sample drone flight log workbook")
    parser.add_argument("output", type=Path, help="Output .xlsx path")
    parser.add_argument("--rows", type=int, default=50, help="Flights per sheet (default: 50)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    parser.add_argument("--title", default="Flight Log", help="Title row text")
    args = parser.parse_args()

    if args.rows <= 0:
        print("Error: --rows must be positive", file=sys.stderr)
        return 1
    if args.output.suffix.lower() != ".xlsx":
        print("Error: output file must have .xlsx extension", file=sys.stderr)
        return 1

    try:
        create_workbook(args.output, args.rows, seed=args.seed, title=args.title)
    except OSError as e:
        print(f"Error creating workbook: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
