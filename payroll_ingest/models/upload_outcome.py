from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from .config_models import SAMPLE_LIMIT
from .parsed_row import ParsedRow
from .sheet_scan import SheetScan

"""UploadOutcome domain model and FileStatus enum.

UploadOutcome is the per-file aggregate handed back to callers: how many rows
were read and how each of them ended up (inserted, updated or skipped), the
error messages collected on the way and a sample of the normalized rows.

State transitions of a file: pending -> processing -> (success | failed)
"""


class FileStatus(Enum):
    """Status enum for per-file processing lifecycle.

    - PENDING: File discovered but not yet processed
    - PROCESSING: File is currently being processed
    - SUCCESS: File processed; row-level problems are reported in errors
    - FAILED: File rejected as a whole (unreadable, no worksheet, no rows)
    """
    PENDING = "pending"
    PROCESSING = "processing"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class UploadOutcome:
    filename: str
    rows_read: int = 0
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)
    records: list[dict[str, Any]] = field(default_factory=list)
    sheets: list[SheetScan] = field(default_factory=list)
    status: FileStatus = FileStatus.PENDING
    start_time: datetime | None = None
    end_time: datetime | None = None

    def add_sample(self, rows: list[ParsedRow], limit: int = SAMPLE_LIMIT) -> None:
        """Keep the first `limit` parsed rows (file order) as sampled records."""
        room = max(limit - len(self.records), 0)
        self.records.extend(r.to_record() for r in rows[:room])

    @property
    def elapsed_seconds(self) -> float:
        if self.start_time is None or self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    @property
    def is_balanced(self) -> bool:
        """Every row read is classified as exactly one of inserted/updated/skipped."""
        return self.rows_read == self.inserted + self.updated + self.skipped

    def to_dict(self) -> dict[str, Any]:
        return {
            "filename": self.filename,
            "rowsRead": self.rows_read,
            "inserted": self.inserted,
            "updated": self.updated,
            "skipped": self.skipped,
            "errors": list(self.errors),
            "records": list(self.records),
        }
