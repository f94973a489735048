from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from pathlib import Path

from ..db.record_sink import RecordSink, SinkError
from ..excel.header import locate_header
from ..excel.reader import SUPPORTED_SUFFIXES, StructuralError, Workbook, Worksheet, read_payroll_file
from ..logging.error_log import (
    PERSISTENCE_ERROR,
    PROCESSING_ERROR,
    ROW_PARSE_ERROR,
    STRUCTURAL_ERROR,
    ErrorLogBuffer,
)
from ..models.column_mapping import ColumnMapping
from ..models.config_models import SAMPLE_LIMIT, HeuristicLimits, IngestConfig
from ..models.parsed_row import ParsedRow
from ..models.processing_result import ProcessingResult
from ..models.sheet_scan import SheetScan
from ..models.upload_outcome import FileStatus, UploadOutcome
from .dedup import PersistMode, persist_rows
from .progress import ProgressTracker, SheetProgressIndicator
from .row_parser import parse_worksheet

"""Pipeline orchestration: workbook -> worksheets -> parsed rows -> record sink.

Files are processed one after another, worksheets in workbook order and rows
in sheet order; nothing runs concurrently, so the last-write-wins tie-break
of the upsert planner is deterministic.

Failure scope:
- a row: counted skipped, message in the file outcome, batch continues
- a file (unreadable, no worksheet, no rows): outcome status failed, the
  file's writes are rolled back, batch continues
- the batch: only a missing/unreadable source directory (ProcessingError)
"""

__all__ = [
    "ProcessingError",
    "PipelineOptions",
    "map_worksheet",
    "process_workbook",
    "process_file",
    "process_files",
    "process_all",
    "scan_payroll_files",
]

logger = logging.getLogger(__name__)


class ProcessingError(Exception):
    """Fatal batch-level error (e.g. source directory missing)."""


@dataclass(frozen=True)
class PipelineOptions:
    mode: PersistMode = PersistMode.SNAPSHOT
    effective_date: date | None = None
    sample_limit: int = SAMPLE_LIMIT
    limits: HeuristicLimits = field(default_factory=HeuristicLimits)

    @classmethod
    def from_config(cls, config: IngestConfig) -> PipelineOptions:
        return cls(
            mode=PersistMode(config.mode),
            effective_date=config.effective_date,
            sample_limit=config.sample_limit,
            limits=config.heuristics,
        )


def map_worksheet(ws: Worksheet, limits: HeuristicLimits | None = None) -> ColumnMapping:
    """Header mapping of a worksheet, or the fallback mapping (header_row 0)."""
    limits = limits or HeuristicLimits()
    mapping = locate_header(ws, scan_rows=limits.header_scan_rows)
    if mapping is None:
        logger.info("sheet=%s no header row found, scanning cells", ws.name)
        return ColumnMapping.fallback()
    logger.info("sheet=%s header_row=%d columns=%s", ws.name, mapping.header_row, mapping.mapped_columns())
    return mapping


def _usable_worksheets(workbook: Workbook) -> list[Worksheet]:
    if not workbook.worksheets:
        raise StructuralError("No worksheet found")
    sheets: list[Worksheet] = []
    for ws in workbook.worksheets:
        if ws.is_empty():
            logger.info("sheet=%s empty, skipped", ws.name)
        else:
            sheets.append(ws)
    if not sheets:
        raise StructuralError("No rows found in any worksheet")
    return sheets


def _fail(outcome: UploadOutcome, message: str) -> UploadOutcome:
    outcome.status = FileStatus.FAILED
    outcome.errors.append(message)
    outcome.end_time = datetime.now(UTC)
    logger.error("file=%s %s", outcome.filename, message)
    return outcome


def process_workbook(
    workbook: Workbook,
    sink: RecordSink,
    options: PipelineOptions | None = None,
    error_log: ErrorLogBuffer | None = None,
    on_sheet: Callable[[SheetScan], None] | None = None,
    outcome: UploadOutcome | None = None,
) -> UploadOutcome:
    """Run the whole pipeline on an already-decoded workbook.

    Structural problems produce a failed outcome with one message; row and
    write problems are counted as skipped and listed in `errors`. Counters
    accumulate on `outcome` when one is passed, so a caller still sees the
    rows read if processing raises half way.
    """
    options = options or PipelineOptions()
    error_log = error_log if error_log is not None else ErrorLogBuffer()
    if outcome is None:
        outcome = UploadOutcome(filename=workbook.name, start_time=datetime.now(UTC))
    outcome.status = FileStatus.PROCESSING

    try:
        sheets = _usable_worksheets(workbook)
    except StructuralError as e:
        error_log.record(workbook.name, STRUCTURAL_ERROR, str(e))
        return _fail(outcome, str(e))

    parsed_rows: list[ParsedRow] = []
    for ws in sheets:
        mapping = map_worksheet(ws, options.limits)
        parsed = parse_worksheet(ws, mapping, limits=options.limits, effective_date=options.effective_date)
        scan = parsed.scan
        outcome.sheets.append(scan)
        outcome.rows_read += scan.rows_read
        outcome.skipped += scan.skipped_invalid + scan.parse_errors
        for err in parsed.errors:
            outcome.errors.append(str(err))
            error_log.record(workbook.name, ROW_PARSE_ERROR, str(err), sheet=err.sheet, row=err.row)
        parsed_rows.extend(parsed.rows)
        if on_sheet is not None:
            on_sheet(scan)

    stats = persist_rows(parsed_rows, sink, options.mode, source=workbook.name)
    outcome.inserted += stats.inserted
    outcome.updated += stats.updated
    outcome.skipped += stats.skipped
    outcome.errors.extend(stats.errors)
    for row, message in stats.failed_rows:
        if row is None:
            error_log.record(workbook.name, PERSISTENCE_ERROR, message)
        else:
            error_log.record(workbook.name, PERSISTENCE_ERROR, message, sheet=row.sheet_name, row=row.row_number)

    outcome.add_sample(parsed_rows, options.sample_limit)
    outcome.status = FileStatus.SUCCESS
    outcome.end_time = datetime.now(UTC)
    logger.info(
        "file=%s rows_read=%d inserted=%d updated=%d skipped=%d errors=%d",
        outcome.filename,
        outcome.rows_read,
        outcome.inserted,
        outcome.updated,
        outcome.skipped,
        len(outcome.errors),
    )
    return outcome


def _rolled_back(file_name: str, rows_read: int, start: datetime) -> UploadOutcome:
    # nothing of the file was kept: every row read counts as skipped
    return UploadOutcome(filename=file_name, rows_read=rows_read, skipped=rows_read, start_time=start)


def _rollback(sink: RecordSink, file_name: str, error_log: ErrorLogBuffer) -> None:
    try:
        sink.rollback()
    except SinkError as e:
        error_log.record(file_name, PROCESSING_ERROR, str(e))
        logger.warning("file=%s %s", file_name, e)


def process_file(
    path: Path,
    sink: RecordSink,
    options: PipelineOptions | None = None,
    error_log: ErrorLogBuffer | None = None,
) -> UploadOutcome:
    """Load and process one payroll file inside its own transaction."""
    options = options or PipelineOptions()
    error_log = error_log if error_log is not None else ErrorLogBuffer()
    start = datetime.now(UTC)

    try:
        workbook = read_payroll_file(path)
    except StructuralError as e:
        error_log.record(path.name, STRUCTURAL_ERROR, str(e))
        return _fail(UploadOutcome(filename=path.name, start_time=start), str(e))
    except OSError as e:
        error_log.record(path.name, PROCESSING_ERROR, str(e))
        return _fail(UploadOutcome(filename=path.name, start_time=start), f"Could not open file: {e}")

    sheet_progress = SheetProgressIndicator(file_name=path.name, total_sheets=len(workbook.worksheets))
    progress = UploadOutcome(filename=workbook.name, start_time=start)
    try:
        outcome = process_workbook(
            workbook,
            sink,
            options,
            error_log,
            on_sheet=lambda scan: sheet_progress.finish_sheet(scan.sheet_name, scan.parsed_rows, scan.header_row),
            outcome=progress,
        )
    except Exception as e:  # unexpected failure: drop this file's writes, keep the batch going
        logger.exception("file=%s processing failed", path.name)
        _rollback(sink, path.name, error_log)
        error_log.record(path.name, PROCESSING_ERROR, str(e))
        return _fail(_rolled_back(path.name, progress.rows_read, start), f"Processing failed: {e}")

    if outcome.status is FileStatus.FAILED:
        _rollback(sink, path.name, error_log)
        return outcome

    try:
        sink.commit()
    except SinkError as e:
        _rollback(sink, path.name, error_log)
        error_log.record(path.name, PROCESSING_ERROR, str(e))
        return _fail(_rolled_back(path.name, outcome.rows_read, start), str(e))
    outcome.start_time = start
    return outcome


def scan_payroll_files(directory: Path) -> list[Path]:
    """Supported payroll files in `directory` (non-recursive), sorted by name."""
    if not directory.exists():
        raise ProcessingError(f"Directory not found: {directory}")
    if not directory.is_dir():
        raise ProcessingError(f"Path is not a directory: {directory}")
    try:
        return sorted(
            p
            for p in directory.iterdir()
            if p.is_file() and p.suffix.lower() in SUPPORTED_SUFFIXES and not p.name.startswith("~$")
        )
    except OSError as e:
        raise ProcessingError(f"Error reading directory {directory}: {e}") from e


def process_files(
    paths: Sequence[Path],
    sink: RecordSink,
    options: PipelineOptions | None = None,
    error_log: ErrorLogBuffer | None = None,
) -> ProcessingResult:
    """Process files sequentially and aggregate their outcomes."""
    options = options or PipelineOptions()
    error_log = error_log if error_log is not None else ErrorLogBuffer()
    start_time = datetime.now(UTC)
    outcomes: list[UploadOutcome] = []

    with ProgressTracker(len(paths)) as progress:
        for path in paths:
            progress.start_file(path)
            outcome = process_file(path, sink, options, error_log)
            outcomes.append(outcome)
            progress.set_postfix(
                rows=sum(o.rows_read for o in outcomes),
                inserted=sum(o.inserted for o in outcomes),
                failed=sum(1 for o in outcomes if o.status is FileStatus.FAILED),
            )
            progress.finish_file(success=outcome.status is FileStatus.SUCCESS)

    return ProcessingResult.from_outcomes(outcomes, start_time, datetime.now(UTC))


def process_all(config: IngestConfig, sink: RecordSink, error_log: ErrorLogBuffer | None = None) -> ProcessingResult:
    """Process every payroll file of the configured source directory.

    Raises:
        ProcessingError: the source directory is missing or unreadable
    """
    directory = Path(config.source_directory)
    paths = scan_payroll_files(directory)
    logger.info("found %d payroll file(s) in %s", len(paths), directory)

    error_log = error_log if error_log is not None else ErrorLogBuffer()
    result = process_files(paths, sink, PipelineOptions.from_config(config), error_log)

    try:
        written = error_log.flush()
    except OSError as e:
        logger.warning("could not write error log: %s", e)
    else:
        if written is not None:
            logger.warning("errors written to %s", written)
    return result
