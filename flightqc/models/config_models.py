from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the flight QC tool.

Loaded by flightqc.config.loader from YAML; every field has a default so that
the CLI can run without a config file.
"""

DEFAULT_NO_ISSUE_SENTINEL = "no issues."
DEFAULT_HEADER_CANDIDATE_LIMIT = 5
DEFAULT_TABLE = "flight_logs"


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class AppConfig:
    """Root configuration object."""
    # comment equal to this (case-insensitive) does not count as an issue
    no_issue_sentinel: str = DEFAULT_NO_ISSUE_SENTINEL
    # cell strings treated as empty (compared upper-cased), e.g. NIL
    null_sentinels: frozenset[str] = field(default_factory=frozenset)
    header_candidate_limit: int = DEFAULT_HEADER_CANDIDATE_LIMIT
    battery_config_path: str | None = None  # None = packaged battery_configs.csv
    table: str = DEFAULT_TABLE
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
