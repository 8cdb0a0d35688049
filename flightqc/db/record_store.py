from __future__ import annotations

import os
import time
from collections.abc import Callable, Iterable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, fields, replace
from typing import Any, Protocol

import psycopg2
from psycopg2.extras import RealDictCursor, execute_values

from ..models.config_models import DEFAULT_TABLE, DatabaseConfig
from ..models.flight_record import FlightRecord

"""Flight record store adapters.

The store is an external collaborator: it owns durability and identifier
assignment. Failures are surfaced as StoreError carrying the driver message
verbatim; nothing here retries.

- PostgresFlightRecordStore: psycopg2, bulk create via execute_values
- InMemoryFlightRecordStore: mock mode (tests / DISABLE_DB_CONNECT=1)
"""

__all__ = [
    "StoreError",
    "BatchMetrics",
    "FlightRecordStore",
    "InMemoryFlightRecordStore",
    "PostgresFlightRecordStore",
    "RECORD_COLUMNS",
    "resolve_dsn",
    "connect",
]

# 挿入/更新対象列 (id は store 採番)
RECORD_COLUMNS: tuple[str, ...] = tuple(f.name for f in fields(FlightRecord) if f.name != "id")
BULK_SAVEPOINT = "flightqc_bulk_create"


class StoreError(Exception):
    pass


@dataclass(frozen=True)
class BatchMetrics:
    """Timing of a single bulk create call."""
    batch_size: int
    elapsed_seconds: float
    start_time: float
    end_time: float


class FlightRecordStore(Protocol):
    def list_records(self) -> list[FlightRecord]: ...

    def get(self, record_id: int) -> FlightRecord | None: ...

    def create(self, record: FlightRecord) -> FlightRecord: ...

    def update(self, record_id: int, record: FlightRecord) -> FlightRecord: ...

    def delete(self, record_id: int) -> None: ...

    def bulk_create(self, records: Iterable[FlightRecord]) -> list[FlightRecord]: ...


class InMemoryFlightRecordStore:
    """Dict backed store; ids are assigned sequentially from 1."""

    def __init__(self, records: Iterable[FlightRecord] = ()) -> None:
        self._rows: dict[int, FlightRecord] = {}
        self._next_id = 1
        for r in records:
            self.create(r)

    def list_records(self) -> list[FlightRecord]:
        return list(self._rows.values())

    def get(self, record_id: int) -> FlightRecord | None:
        return self._rows.get(record_id)

    def create(self, record: FlightRecord) -> FlightRecord:
        stored = replace(record, id=self._next_id)
        self._rows[self._next_id] = stored
        self._next_id += 1
        return stored

    def update(self, record_id: int, record: FlightRecord) -> FlightRecord:
        if record_id not in self._rows:
            raise StoreError(f"Flight log not found: {record_id}")
        stored = replace(record, id=record_id)  # full overwrite
        self._rows[record_id] = stored
        return stored

    def delete(self, record_id: int) -> None:
        self._rows.pop(record_id, None)

    def bulk_create(self, records: Iterable[FlightRecord]) -> list[FlightRecord]:
        return [self.create(r) for r in records]


class PostgresFlightRecordStore:
    """Store backed by a ``flight_logs`` style PostgreSQL table.

    The cursor is expected to return dict rows (RealDictCursor); the caller
    owns the connection and its transaction boundaries.
    """

    def __init__(
        self,
        cursor: Any,
        table: str = DEFAULT_TABLE,
        page_size: int = 1000,
        metrics_callback: Callable[[BatchMetrics], None] | None = None,
    ) -> None:
        self.cursor = cursor
        self.table = table
        self.page_size = page_size
        self.metrics_callback = metrics_callback

    def _execute(self, sql: str, params: Sequence[Any] | None = None) -> None:
        try:
            self.cursor.execute(sql, params)
        except psycopg2.Error as e:
            raise StoreError(str(e)) from e

    def _fetchall(self) -> list[dict[str, Any]]:
        try:
            return list(self.cursor.fetchall())
        except psycopg2.Error as e:
            raise StoreError(str(e)) from e

    def _fetchone(self) -> dict[str, Any] | None:
        try:
            return self.cursor.fetchone()
        except psycopg2.Error as e:
            raise StoreError(str(e)) from e

    @staticmethod
    def _values(record: FlightRecord) -> list[Any]:
        cols = record.to_columns()
        return [cols[c] for c in RECORD_COLUMNS]

    def list_records(self) -> list[FlightRecord]:
        self._execute(f"SELECT * FROM {self.table} ORDER BY id")
        return [FlightRecord.from_row(dict(r)) for r in self._fetchall()]

    def get(self, record_id: int) -> FlightRecord | None:
        self._execute(f"SELECT * FROM {self.table} WHERE id = %s", (record_id,))
        row = self._fetchone()
        return FlightRecord.from_row(dict(row)) if row else None

    def create(self, record: FlightRecord) -> FlightRecord:
        cols_sql = ",".join(RECORD_COLUMNS)
        placeholders = ",".join(["%s"] * len(RECORD_COLUMNS))
        self._execute(
            f"INSERT INTO {self.table} ({cols_sql}) VALUES ({placeholders}) RETURNING *",
            self._values(record),
        )
        row = self._fetchone()
        if row is None:
            raise StoreError("insert returned no row")
        return FlightRecord.from_row(dict(row))

    def update(self, record_id: int, record: FlightRecord) -> FlightRecord:
        assignments = ",".join(f"{c}=%s" for c in RECORD_COLUMNS)
        self._execute(
            f"UPDATE {self.table} SET {assignments} WHERE id=%s RETURNING *",
            [*self._values(record), record_id],
        )
        row = self._fetchone()
        if row is None:
            raise StoreError(f"Flight log not found: {record_id}")
        return FlightRecord.from_row(dict(row))

    def delete(self, record_id: int) -> None:
        self._execute(f"DELETE FROM {self.table} WHERE id = %s", (record_id,))

    def bulk_create(self, records: Iterable[FlightRecord]) -> list[FlightRecord]:
        """Insert all records with one execute_values call (RETURNING *).

        The insert runs inside a savepoint: a failed batch is rolled back to it
        and the surrounding transaction stays usable for the next sheet.
        """
        rows = [self._values(r) for r in records]
        if not rows:
            return []
        cols_sql = ",".join(RECORD_COLUMNS)
        sql = f"INSERT INTO {self.table} ({cols_sql}) VALUES %s RETURNING *"
        self._execute(f"SAVEPOINT {BULK_SAVEPOINT}")
        start_time = time.time()
        try:
            returned = execute_values(self.cursor, sql, rows, page_size=self.page_size, fetch=True)
        except psycopg2.Error as e:
            self._execute(f"ROLLBACK TO SAVEPOINT {BULK_SAVEPOINT}")
            raise StoreError(str(e)) from e
        finally:
            end_time = time.time()
            if self.metrics_callback is not None:
                self.metrics_callback(BatchMetrics(
                    batch_size=len(rows),
                    elapsed_seconds=end_time - start_time,
                    start_time=start_time,
                    end_time=end_time,
                ))
        self._execute(f"RELEASE SAVEPOINT {BULK_SAVEPOINT}")
        return [FlightRecord.from_row(dict(r)) for r in returned or []]


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    """Connection string: environment first, config file as fallback.

    Precedence: DATABASE_URL / PGDSN, then config ``dsn``, then the individual
    PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE variables with config
    values as defaults.
    """
    dsn_env = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn_env:
        return dsn_env
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def connect(
    db_cfg: DatabaseConfig,
    table: str = DEFAULT_TABLE,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> Iterator[PostgresFlightRecordStore]:  # pragma: no cover (thin wrapper)
    """Open a connection and yield a store; commit on success, rollback on error."""
    try:
        conn = psycopg2.connect(resolve_dsn(db_cfg))
    except psycopg2.Error as e:
        raise StoreError(str(e)) from e
    try:
        with conn.cursor(cursor_factory=RealDictCursor) as cur:
            yield PostgresFlightRecordStore(cur, table=table, metrics_callback=metrics_callback)
        conn.commit()
    except BaseException:
        conn.rollback()
        raise
    finally:
        conn.close()
