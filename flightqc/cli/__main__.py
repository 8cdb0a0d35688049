from __future__ import annotations

import argparse
import logging
import os
import sys
import zipfile
from collections.abc import Iterator
from contextlib import ExitStack, contextmanager
from pathlib import Path

from dotenv import load_dotenv

from flightqc.config.loader import ConfigError, load_battery_configs, load_config
from flightqc.db.record_store import (
    BatchMetrics,
    FlightRecordStore,
    InMemoryFlightRecordStore,
    StoreError,
    connect,
)
from flightqc.excel.reader import header_candidates, list_sheet_names, read_workbook
from flightqc.logging.init import log_summary, setup_logging
from flightqc.models.app_state import AppState
from flightqc.models.column_mapping import MappingError
from flightqc.models.config_models import AppConfig
from flightqc.models.metrics import ALL_MODELS, DashboardFilter, DateWindow
from flightqc.services.export import build_export_payload, write_export
from flightqc.services.importer import ImportSessionError, import_workbook
from flightqc.services.metrics import build_snapshot
from flightqc.services.summary import format_number, render_dashboard_summary, render_import_summary

"""CLI entrypoint.

Subcommands:
- inspect WORKBOOK: header candidates (first non-empty rows) per sheet
- import WORKBOOK --header-row N: map, normalize and bulk create the records
- dashboard: aggregate stored records (or a workbook) and optionally export JSON

DB connection: `.env` (override) > environment > config `database` section.
DISABLE_DB_CONNECT=1 forces the in-memory store; a failed connection also
falls back to it.
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

DEFAULT_CONFIG_PATH = Path("config/flightqc.yml")

WINDOW_CHOICES = [w.value for w in DateWindow] + ["6mo"]

# openpyxl は壊れた xlsx で BadZipFile / KeyError を送出する
READ_ERRORS = (OSError, ValueError, KeyError, zipfile.BadZipFile)


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv.

    override=True: .env の値で既存環境変数を上書き (DB 接続情報を最優先化)
    """
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="flightqc", description="Drone flight log importer and QC dashboard")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--config", type=Path, default=None, help=f"YAML config (default: {DEFAULT_CONFIG_PATH})")
    p.add_argument("--env-file", type=Path, default=Path(".env"), help="dotenv file with DB settings")
    sub = p.add_subparsers(dest="command", required=True)

    ins = sub.add_parser("inspect", help="Show header row candidates per sheet")
    ins.add_argument("workbook", type=Path)
    ins.add_argument("--limit", type=int, default=None, help="Candidates per sheet")

    imp = sub.add_parser("import", help="Import flight logs from a workbook")
    imp.add_argument("workbook", type=Path)
    imp.add_argument("--header-row", type=int, required=True, help="0-based header row index (see inspect)")
    group = imp.add_mutually_exclusive_group()
    group.add_argument("--sheet", action="append", default=None, help="Sheet to import (repeatable)")
    group.add_argument("--all-sheets", action="store_true", help="Import every sheet")
    imp.add_argument("--map", action="append", default=[], metavar="SRC=FIELD", help="Mapping override")
    imp.add_argument("--model", default=None, help="Drone model for rows without one (default: sheet name)")

    dash = sub.add_parser("dashboard", help="Aggregate flight metrics")
    dash.add_argument("--window", choices=WINDOW_CHOICES, default=DateWindow.ALL.value)
    dash.add_argument("--model", default=ALL_MODELS)
    dash.add_argument("--flight-id", default=None)
    dash.add_argument("--export", type=Path, default=None, help="Write the JSON export (file or directory)")
    dash.add_argument("--workbook", type=Path, default=None, help="Aggregate a workbook instead of the store")
    dash.add_argument("--header-row", type=int, default=None)
    dash.add_argument("--map", action="append", default=[], metavar="SRC=FIELD")
    return p.parse_args(argv)


def _load_app_config(path: Path | None) -> AppConfig:
    if path is None:
        if not DEFAULT_CONFIG_PATH.exists():
            # 設定ファイル無しでも既定値で動作
            return AppConfig()
        path = DEFAULT_CONFIG_PATH
    return load_config(path)


def _log_batch_metrics(metrics: BatchMetrics) -> None:
    logging.getLogger(__name__).debug(
        f"bulk_create batch_size={metrics.batch_size} "
        f"elapsed_sec={format_number(round(metrics.elapsed_seconds, 3))}"
    )


@contextmanager
def _record_store(cfg: AppConfig) -> Iterator[tuple[FlightRecordStore, str]]:
    """Yield (store, mode) where mode is ``live`` or ``mock``."""
    logger = logging.getLogger(__name__)
    if os.getenv("DISABLE_DB_CONNECT") == "1":
        logger.debug("DB connect disabled via DISABLE_DB_CONNECT=1 -> mock mode")
        yield InMemoryFlightRecordStore(), "mock"
        return
    with ExitStack() as stack:
        store: FlightRecordStore
        try:
            store = stack.enter_context(connect(cfg.database, cfg.table, metrics_callback=_log_batch_metrics))
            mode = "live"
        except StoreError as e:
            logger.info(f"DB connection failed -> fallback to mock mode: {e}")
            store = InMemoryFlightRecordStore()
            mode = "mock"
        yield store, mode


def _inspect(args: argparse.Namespace, cfg: AppConfig, logger: logging.Logger) -> int:
    try:
        sheets = read_workbook(args.workbook)
    except READ_ERRORS as e:
        logger.error(f"inspect: cannot read {args.workbook}: {e}")
        return EXIT_FATAL
    limit = args.limit or cfg.header_candidate_limit
    for name, sheet in sheets.items():
        logger.info(f"SHEET {name} rows={len(sheet.rows)}")
        for cand in header_candidates(sheet.rows, limit):
            cells = ["" if c is None else str(c) for c in cand.cells]
            while cells and cells[-1] == "":
                cells.pop()
            logger.info(f"  row={cand.row_index} cells={cells}")
    return EXIT_SUCCESS_ALL


def _import(args: argparse.Namespace, cfg: AppConfig, logger: logging.Logger) -> int:
    try:
        if args.all_sheets:
            sheets = None
        elif args.sheet:
            sheets = args.sheet
        else:
            sheets = list_sheet_names(args.workbook)[:1]
    except READ_ERRORS as e:
        logger.error(f"import: cannot read {args.workbook}: {e}")
        return EXIT_FATAL

    with _record_store(cfg) as (store, mode):
        try:
            result = import_workbook(
                args.workbook,
                store,
                config=cfg,
                header_row=args.header_row,
                sheets=sheets,
                overrides=args.map,
                model=args.model,
            )
        except ImportSessionError as e:
            logger.error(f"import: {e}")
            return EXIT_FATAL
        except READ_ERRORS as e:
            logger.error(f"import: cannot read {args.workbook}: {e}")
            return EXIT_FATAL

    logger.info(f"mode={mode} total_records={result.total_records}")
    log_summary(render_import_summary(result)[len("SUMMARY "):])

    if result.sheets and result.failed_sheets == len(result.sheets):
        return EXIT_FATAL
    if result.failed_sheets or result.cell_errors:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


def _dashboard(args: argparse.Namespace, cfg: AppConfig, logger: logging.Logger) -> int:
    try:
        battery_configs = load_battery_configs(cfg.battery_config_path)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.workbook is not None:
        if args.header_row is None:
            logger.error("dashboard: --workbook requires --header-row")
            return EXIT_FATAL
        store = InMemoryFlightRecordStore()
        try:
            import_workbook(
                args.workbook, store, config=cfg, header_row=args.header_row, overrides=args.map
            )
        except (ImportSessionError, MappingError, *READ_ERRORS) as e:
            logger.error(f"dashboard: cannot read {args.workbook}: {e}")
            return EXIT_FATAL
        records = store.list_records()
    else:
        with _record_store(cfg) as (db_store, mode):
            try:
                records = db_store.list_records()
            except StoreError as e:
                logger.error(f"store: {e}")
                return EXIT_FATAL
        if mode == "mock":
            logger.warning("no database connection: dashboard has no records")

    dashboard_filter = DashboardFilter(
        window=DateWindow.parse(args.window),
        model=args.model,
        flight_id=args.flight_id,
    )
    state = AppState(config=cfg, battery_configs=battery_configs).with_records(records).with_filter(dashboard_filter)
    snapshot = build_snapshot(state)

    logger.info(
        f"flights={snapshot.total_flights} "
        f"avg_minutes={format_number(round(snapshot.avg_flight_minutes, 2))} "
        f"b1_eff={format_number(round(snapshot.avg_battery1_efficiency, 1))} "
        f"b2_eff={format_number(round(snapshot.avg_battery2_efficiency, 1))}"
    )
    for bucket in snapshot.objectives:
        logger.info(f"objective={bucket.label} flights={bucket.count} issues={bucket.issues}")
    for model, count in snapshot.model_flight_counts.items():
        logger.info(f"model={model} flights={count}")

    if args.export is not None:
        payload = build_export_payload(snapshot, dashboard_filter)
        try:
            out = write_export(payload, args.export)
        except OSError as e:
            logger.error(f"export: {e}")
            return EXIT_FATAL
        logger.info(f"export: {out}")

    log_summary(render_dashboard_summary(snapshot)[len("SUMMARY "):])
    return EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    # NOTE: 空リスト [] を渡された場合に sys.argv[1:] を混入させないため None のときのみ読む
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)

    # .env を最優先で読み込む (DB 接続パラメータ優先順位保証)
    _load_env_file(args.env_file, override=True)
    try:
        cfg = _load_app_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.command == "inspect":
        return _inspect(args, cfg, logger)
    if args.command == "import":
        return _import(args, cfg, logger)
    return _dashboard(args, cfg, logger)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
