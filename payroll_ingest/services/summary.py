from __future__ import annotations

from ..models.processing_result import ProcessingResult

"""SUMMARY line rendering.

Format (one line, space separated key=value pairs, fixed order):

SUMMARY files=<total>/<total> success=<n> failed=<n> rows_read=<n>
inserted=<n> updated=<n> skipped=<n> elapsed_sec=<seconds>
"""

__all__ = [
    "format_seconds",
    "render_summary_line",
]


def format_seconds(seconds: float) -> str:
    """Render seconds without scientific notation ("0", "2", "0.0042", "1.5")."""
    if seconds == 0:
        return "0"
    if seconds == int(seconds):
        return str(int(seconds))
    if seconds < 0.01:
        return f"{seconds:.6f}".rstrip("0").rstrip(".")
    return f"{seconds:.3f}".rstrip("0").rstrip(".")


def render_summary_line(total_files: int, result: ProcessingResult) -> str:
    """Render the SUMMARY line for a finished batch.

    >>> from datetime import datetime, timezone
    >>> start = datetime(2024, 1, 1, 10, 0, 0, tzinfo=timezone.utc)
    >>> end = datetime(2024, 1, 1, 10, 0, 2, tzinfo=timezone.utc)
    >>> result = ProcessingResult(
    ...     success_files=1, failed_files=0, rows_read=10, inserted=8, updated=1,
    ...     skipped=1, start_time=start, end_time=end, elapsed_seconds=2.0,
    ... )
    >>> render_summary_line(1, result)
    'SUMMARY files=1/1 success=1 failed=0 rows_read=10 inserted=8 updated=1 skipped=1 elapsed_sec=2'
    """
    return (
        f"SUMMARY files={total_files}/{total_files} "
        f"success={result.success_files} "
        f"failed={result.failed_files} "
        f"rows_read={result.rows_read} "
        f"inserted={result.inserted} "
        f"updated={result.updated} "
        f"skipped={result.skipped} "
        f"elapsed_sec={format_seconds(result.elapsed_seconds)}"
    )
