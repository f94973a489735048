from __future__ import annotations

import argparse
import json
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from datetime import date
from pathlib import Path
from typing import Any

import psycopg2
from dotenv import load_dotenv

from ..config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from ..db.postgres_sink import PostgresRecordSink
from ..db.record_sink import MemoryRecordSink
from ..excel.reader import StructuralError, read_payroll_file
from ..logging.init import log_summary, setup_logging
from ..models.config_models import MODE_LEDGER, MODE_SNAPSHOT, IngestConfig
from ..models.processing_result import ProcessingResult
from ..services.orchestrator import PipelineOptions, ProcessingError, map_worksheet, process_all, scan_payroll_files
from ..services.row_parser import parse_worksheet
from ..services.summary import render_summary_line

"""CLI entrypoint: `payroll-ingest` / `python -m payroll_ingest.cli`.

Flow:
- Load .env (override) and the YAML config
- Connect to PostgreSQL, or fall back to the in-memory sink (mock mode)
- Ingest every payroll file of the source directory
- Print the SUMMARY line, optionally write the batch report JSON

Exit codes: 0 all files ok, 2 at least one file failed, 1 fatal.
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

INSPECT_SAMPLE_ROWS = 3


def _resolve_dsn(cfg: IngestConfig) -> str:
    """Connection string: DATABASE_URL / PGDSN, then PG* variables, then the config database section."""
    db_cfg = cfg.database
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


def _connect(cfg: IngestConfig) -> Any:
    conn = psycopg2.connect(_resolve_dsn(cfg))
    conn.autocommit = False  # one transaction per file, committed by the orchestrator
    return conn


@contextmanager
def _db_sink(conn: Any) -> Iterator[PostgresRecordSink]:  # pragma: no cover (needs a live database)
    sink = PostgresRecordSink(conn)
    try:
        sink.ensure_schema()
        yield sink
    finally:
        sink.close()
        conn.close()


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env with python-dotenv; its values win over the process environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"not an ISO date (YYYY-MM-DD): {value}") from e


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="payroll-ingest", description="Ingest payroll spreadsheets into normalized records")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="YAML config (default: config/ingest.yml)")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--mode", choices=[MODE_SNAPSHOT, MODE_LEDGER], help="Override the persistence mode")
    p.add_argument("--effective-date", type=_parse_date, help="Effective date (YYYY-MM-DD) used in content hashes")
    p.add_argument("--report", type=Path, help="Write the batch report JSON to this path")
    p.add_argument(
        "--inspect-data",
        action="store_true",
        help="Print detected header row, column mapping and first parsed rows per worksheet, then exit",
    )
    return p.parse_args(argv)


def _inspect_data(cfg: IngestConfig) -> int:
    try:
        paths = scan_payroll_files(Path(cfg.source_directory))
    except ProcessingError as e:
        print(f"inspect: {e}")
        return EXIT_FATAL
    if not paths:
        print("inspect: no payroll files")
        return EXIT_SUCCESS_ALL

    options = PipelineOptions.from_config(cfg)
    for path in paths:
        print(f"FILE: {path.name}")
        try:
            workbook = read_payroll_file(path)
        except StructuralError as e:
            print(f"  read_error: {e}")
            continue
        for ws in workbook.worksheets:
            if ws.is_empty():
                print(f"  SHEET: {ws.name} (empty)")
                continue
            mapping = map_worksheet(ws, options.limits)
            parsed = parse_worksheet(ws, mapping, limits=options.limits, effective_date=options.effective_date)
            header = mapping.header_row if not mapping.is_fallback else "none (cell scan)"
            print(f"  SHEET: {ws.name} header_row={header} columns={mapping.mapped_columns()}")
            print(f"    {parsed.scan.summary_line()}")
            for row in parsed.rows[:INSPECT_SAMPLE_ROWS]:
                print("    row=" + json.dumps(row.to_record(), ensure_ascii=False))
    return EXIT_SUCCESS_ALL


def _write_report(path: Path, result: ProcessingResult) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(result.to_dict(), ensure_ascii=False, indent=2, default=str), encoding="utf-8")


def main(argv: list[str] | None = None) -> int:
    # None -> sys.argv; an explicit [] must not pick up pytest's own arguments
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    if args.debug:
        logger.debug("debug mode enabled")

    _load_env_file(Path(".env"), override=True)
    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.mode:
        cfg = replace(cfg, mode=args.mode)
    if args.effective_date:
        cfg = replace(cfg, effective_date=args.effective_date)

    directory = Path(cfg.source_directory)
    if not directory.exists():
        logger.error(f"directory not found: {directory}")
        return EXIT_FATAL

    logger.info(f"Processing files from: {directory} (mode={cfg.mode})")

    if args.inspect_data:
        return _inspect_data(cfg)

    # DISABLE_DB_CONNECT=1 forces the in-memory sink (tests, dry runs)
    db_mode = "mock"
    conn = None
    if os.getenv("DISABLE_DB_CONNECT") == "1":
        logger.debug("DB connect disabled via DISABLE_DB_CONNECT=1 -> mock mode")
    else:
        try:
            conn = _connect(cfg)
            db_mode = "live"
        except psycopg2.OperationalError as db_e:
            logger.info(f"DB connection failed -> fallback to mock mode: {db_e}")

    try:
        if conn is not None:
            with _db_sink(conn) as sink:
                result = process_all(cfg, sink)
        else:
            result = process_all(cfg, MemoryRecordSink())
    except ProcessingError as e:
        logger.error(f"processing({db_mode}): {e}")
        return EXIT_FATAL

    logger.info(f"db={db_mode} rows_read={result.rows_read} inserted={result.inserted} updated={result.updated}")

    if args.report:
        try:
            _write_report(args.report, result)
            logger.info(f"report written to {args.report}")
        except OSError as e:
            logger.error(f"report: {e}")

    # log_summary adds the "SUMMARY " label itself
    summary_line = render_summary_line(result.total_files, result)
    log_summary(summary_line[len("SUMMARY ") :])

    if result.failed_files > 0:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
