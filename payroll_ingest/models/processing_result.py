from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .upload_outcome import FileStatus, UploadOutcome

"""Processing result models for a multi-file ingestion batch.

FileStat is the compact per-file line kept for reporting; ProcessingResult
aggregates all files of one run and carries the full per-file outcomes.
"""


@dataclass(frozen=True)
class FileStat:
    """Per-file processing statistics (internal helper for ProcessingResult)."""
    file_name: str
    status: str  # success/failed
    rows_read: int
    inserted: int
    updated: int
    skipped: int
    elapsed_seconds: float

    @classmethod
    def from_outcome(cls, outcome: UploadOutcome) -> FileStat:
        return cls(
            file_name=outcome.filename,
            status=outcome.status.value,
            rows_read=outcome.rows_read,
            inserted=outcome.inserted,
            updated=outcome.updated,
            skipped=outcome.skipped,
            elapsed_seconds=outcome.elapsed_seconds,
        )


@dataclass(frozen=True)
class ProcessingResult:
    """Aggregated results and summary output for one ingestion run."""
    success_files: int
    failed_files: int
    rows_read: int
    inserted: int
    updated: int
    skipped: int
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    file_stats: list[FileStat] = field(default_factory=list)
    outcomes: list[UploadOutcome] = field(default_factory=list)

    @classmethod
    def from_outcomes(
        cls, outcomes: list[UploadOutcome], start_time: datetime, end_time: datetime
    ) -> ProcessingResult:
        success = [o for o in outcomes if o.status is FileStatus.SUCCESS]
        return cls(
            success_files=len(success),
            failed_files=len(outcomes) - len(success),
            rows_read=sum(o.rows_read for o in outcomes),
            inserted=sum(o.inserted for o in outcomes),
            updated=sum(o.updated for o in outcomes),
            skipped=sum(o.skipped for o in outcomes),
            start_time=start_time,
            end_time=end_time,
            elapsed_seconds=(end_time - start_time).total_seconds(),
            file_stats=[FileStat.from_outcome(o) for o in outcomes],
            outcomes=list(outcomes),
        )

    @property
    def total_files(self) -> int:
        return self.success_files + self.failed_files

    def to_dict(self) -> dict[str, Any]:
        """Batch report: totals over all files plus each file's outcome."""
        return {
            "filesProcessed": self.total_files,
            "totalRowsRead": self.rows_read,
            "totalInserted": self.inserted,
            "totalUpdated": self.updated,
            "totalSkipped": self.skipped,
            "files": [o.to_dict() for o in self.outcomes],
        }
