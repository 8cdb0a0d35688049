from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import pandas as pd
import yaml
from jsonschema.exceptions import ValidationError

from ..models.battery import BatteryConfig
from ..models.config_models import (
    DEFAULT_HEADER_CANDIDATE_LIMIT,
    DEFAULT_NO_ISSUE_SENTINEL,
    DEFAULT_TABLE,
    AppConfig,
    DatabaseConfig,
)

"""Config loader.

Responsibilities:
- Load YAML config (config/flightqc.yml)
- Validate against the packaged JSON schema
- Apply defaults for omitted keys
- Load the battery configuration table (CSV, one row per drone model)
"""

__all__ = [
    "ConfigError",
    "SCHEMA_PATH",
    "DEFAULT_BATTERY_CONFIG_PATH",
    "load_config",
    "load_battery_configs",
]

_here = Path(__file__).parent
SCHEMA_PATH = _here / "config_schema.json"
DEFAULT_BATTERY_CONFIG_PATH = _here / "battery_configs.csv"

BATTERY_COLUMNS = ("model", "slot1_cells", "slot2_cells")


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against JSON schema.

    Raises:
        ConfigError: If the schema file is missing or not valid JSON, or the
            config data fails schema validation (unknown keys, wrong types).
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def load_config(path: Path) -> AppConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping: {path}")

    _validate_config_schema(data)

    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    return AppConfig(
        no_issue_sentinel=data.get("no_issue_sentinel", DEFAULT_NO_ISSUE_SENTINEL),
        null_sentinels=frozenset(s.strip().upper() for s in data.get("null_sentinels", [])),
        header_candidate_limit=data.get("header_candidate_limit", DEFAULT_HEADER_CANDIDATE_LIMIT),
        battery_config_path=data.get("battery_config_path"),
        table=data.get("table", DEFAULT_TABLE),
        database=db,
    )


def _cell_count(value: Any, model: str, column: str) -> int | None:
    if pd.isna(value):
        return None
    try:
        count = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"battery config {model!r}: {column} is not an integer: {value!r}") from e
    if count != value and str(count) != str(value).strip():
        raise ConfigError(f"battery config {model!r}: {column} is not an integer: {value!r}")
    if count <= 0:
        raise ConfigError(f"battery config {model!r}: {column} must be positive: {value!r}")
    return count


def load_battery_configs(path: Path | str | None = None) -> dict[str, BatteryConfig]:
    """Load the model -> BatteryConfig table.

    ``path`` None loads the packaged default table. Adding a drone model is a
    data change: append a row to the CSV.
    """
    csv_path = Path(path) if path is not None else DEFAULT_BATTERY_CONFIG_PATH
    if not csv_path.exists():
        raise ConfigError(f"battery config file not found: {csv_path}")
    try:
        df = pd.read_csv(csv_path, dtype={"model": str}, skipinitialspace=True)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise ConfigError(f"invalid battery config file {csv_path}: {e}") from e

    missing = [c for c in BATTERY_COLUMNS if c not in df.columns]
    if missing:
        raise ConfigError(f"battery config missing columns: {missing}")

    configs: dict[str, BatteryConfig] = {}
    for raw in df.to_dict(orient="records"):
        model = raw["model"]
        if pd.isna(model) or not str(model).strip():
            raise ConfigError("battery config row without model name")
        model = str(model).strip()
        if model in configs:
            raise ConfigError(f"duplicate battery config for model {model!r}")
        configs[model] = BatteryConfig(
            model=model,
            slot1_cells=_cell_count(raw["slot1_cells"], model, "slot1_cells"),
            slot2_cells=_cell_count(raw["slot2_cells"], model, "slot2_cells"),
        )
    return configs
