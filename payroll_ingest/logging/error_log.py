from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from ..models.error_record import FILE_LEVEL_SHEET, ErrorRecord

"""Structured error log: buffered JSON Lines.

One run writes at most one file, `logs/errors-YYYYMMDD-HHMMSS.log` (UTC),
relative to the working directory. Records follow
payroll_ingest/contracts/error_log_schema.json; no extra keys are written.
Nothing is written when the run produced no errors.
"""

__all__ = [
    "ErrorRecord",
    "ErrorLogBuffer",
    "STRUCTURAL_ERROR",
    "ROW_PARSE_ERROR",
    "PERSISTENCE_ERROR",
    "PROCESSING_ERROR",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"

STRUCTURAL_ERROR = "STRUCTURAL_ERROR"
ROW_PARSE_ERROR = "ROW_PARSE_ERROR"
PERSISTENCE_ERROR = "PERSISTENCE_ERROR"
PROCESSING_ERROR = "PROCESSING_ERROR"


class ErrorLogBuffer:
    """In-memory buffer of ErrorRecord; flush() appends them to the run's log file."""

    def __init__(self, logs_dir: Path | None = None) -> None:
        self._records: list[ErrorRecord] = []
        self._file_path: Path | None = None
        self._logs_dir = logs_dir or LOGS_DIR

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self._logs_dir / f"errors-{stamp}.log"
        return self._file_path

    @property
    def records(self) -> list[ErrorRecord]:
        return list(self._records)

    def append(self, record: ErrorRecord) -> None:
        self._records.append(record)

    def record(self, file: str, error_type: str, message: str, sheet: str = FILE_LEVEL_SHEET, row: int = -1) -> None:
        """Shortcut: build the ErrorRecord (current UTC time) and buffer it."""
        self.append(ErrorRecord.create(file=file, sheet=sheet, row=row, error_type=error_type, message=message))

    def __len__(self) -> int:
        return len(self._records)

    def flush(self) -> Path | None:
        """Write buffered records; returns the file written, or None if nothing was buffered."""
        if not self._records:
            return None
        fp = self.file_path
        fp.parent.mkdir(parents=True, exist_ok=True)
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._records.clear()
        return fp
