from __future__ import annotations

from dataclasses import dataclass

"""SheetScan model: per-worksheet row accounting.

Collected while the row parser walks a worksheet and logged as the worksheet
summary once the sheet is done.
"""

__all__ = [
    "SheetScan",
]


@dataclass
class SheetScan:
    sheet_name: str
    header_row: int = 0  # 0 = fallback scan mode
    total_rows: int = 0
    skipped_before_header: int = 0
    skipped_header_like: int = 0
    skipped_no_identifier: int = 0
    skipped_invalid: int = 0  # identifier or amount failed validation
    parse_errors: int = 0
    parsed_rows: int = 0

    @property
    def rows_read(self) -> int:
        """Rows that produced an identifier and therefore count towards rowsRead."""
        return self.skipped_invalid + self.parse_errors + self.parsed_rows

    def summary_line(self) -> str:
        return (
            f"sheet={self.sheet_name} header_row={self.header_row} total={self.total_rows} "
            f"before_header={self.skipped_before_header} header_like={self.skipped_header_like} "
            f"no_identifier={self.skipped_no_identifier} invalid={self.skipped_invalid} "
            f"errors={self.parse_errors} parsed={self.parsed_rows}"
        )
