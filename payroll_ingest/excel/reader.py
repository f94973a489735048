from __future__ import annotations

import io
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pandas as pd
from openpyxl import load_workbook
from openpyxl.cell.rich_text import CellRichText, TextBlock

from .cells import FormulaCell, HyperlinkCell, RichTextCell, cell_text, is_empty_cell

"""Workbook loading: decode xlsx/xlsm/csv exports into a grid of typed cells.

The pipeline never touches openpyxl or pandas objects directly. It sees a
Workbook (ordered worksheets) whose Worksheet exposes the row count, 1-based
cell access and an iterator over the non-empty cells of a row.

xlsx/xlsm are opened twice with openpyxl: once with formulas (to know which
cells are formulas, plus rich text and hyperlinks) and once with data_only=True
(for the cached formula results). csv exports are read with pandas as text.
"""

__all__ = [
    "StructuralError",
    "Workbook",
    "Worksheet",
    "SUPPORTED_SUFFIXES",
    "read_payroll_file",
    "read_workbook",
    "read_csv_file",
    "worksheet_from_frame",
    "worksheet_from_rows",
]

SUPPORTED_SUFFIXES = (".xlsx", ".xlsm", ".csv")


class StructuralError(Exception):
    """Raised when a file cannot be processed at all (no worksheet, no rows, unreadable)."""


@dataclass
class Worksheet:
    name: str
    rows: list[list[Any]] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def cell(self, row: int, col: int) -> Any:
        """Typed value at 1-based (row, col); None outside the grid."""
        if row < 1 or col < 1 or row > len(self.rows):
            return None
        values = self.rows[row - 1]
        if col > len(values):
            return None
        return values[col - 1]

    def iter_cells(self, row: int) -> Iterator[tuple[int, Any]]:
        """Yield (column, value) for each non-empty cell of a row, left to right."""
        if row < 1 or row > len(self.rows):
            return
        for col, value in enumerate(self.rows[row - 1], start=1):
            if not is_empty_cell(value):
                yield col, value

    def is_empty(self) -> bool:
        return not any(True for r in range(1, self.row_count + 1) for _ in self.iter_cells(r))


@dataclass
class Workbook:
    name: str
    worksheets: list[Worksheet] = field(default_factory=list)


def _trim_trailing_empty(rows: list[list[Any]]) -> list[list[Any]]:
    end = len(rows)
    while end > 0 and all(is_empty_cell(v) for v in rows[end - 1]):
        end -= 1
    return rows[:end]


def worksheet_from_rows(name: str, rows: Sequence[Sequence[Any]]) -> Worksheet:
    """Build a worksheet from plain Python rows (row 1 first)."""
    return Worksheet(name=name, rows=_trim_trailing_empty([list(r) for r in rows]))


def worksheet_from_frame(df: pd.DataFrame, name: str) -> Worksheet:
    """Build a worksheet from a header-less DataFrame (NaN/NaT become empty cells)."""
    rows: list[list[Any]] = []
    for raw in df.itertuples(index=False, name=None):
        rows.append([None if pd.isna(v) else v for v in raw])
    return Worksheet(name=name, rows=_trim_trailing_empty(rows))


def _typed_value(formula_cell: Any, cached_value: Any) -> Any:
    value = formula_cell.value
    if value is None:
        return None
    if getattr(formula_cell, "data_type", None) == "f":
        text = getattr(value, "text", value)  # ArrayFormula keeps the formula in .text
        return FormulaCell(formula=str(text), result=cached_value)
    if isinstance(value, CellRichText):
        runs = tuple(run.text if isinstance(run, TextBlock) else str(run) for run in value)
        return RichTextCell(runs=runs)
    link = getattr(formula_cell, "hyperlink", None)
    if link is not None:
        return HyperlinkCell(text=cell_text(value), target=getattr(link, "target", None))
    return value


def _open(source: Path | bytes, **kwargs: Any) -> Any:
    if isinstance(source, bytes):
        return load_workbook(io.BytesIO(source), **kwargs)
    return load_workbook(source, **kwargs)


def read_workbook(source: Path | bytes, name: str | None = None) -> Workbook:
    """Decode an xlsx/xlsm workbook into typed grids, worksheets in workbook order."""
    wb_name = name or (source.name if isinstance(source, Path) else "upload.xlsx")
    try:
        wb_formulas = _open(source, data_only=False, rich_text=True)
        wb_values = _open(source, data_only=True)
    except Exception as e:
        raise StructuralError(f"Could not read workbook: {e}") from e

    sheets: list[Worksheet] = []
    for formula_ws in wb_formulas.worksheets:
        values_ws = wb_values[formula_ws.title]
        rows: list[list[Any]] = []
        for row in formula_ws.iter_rows(min_row=1, max_row=formula_ws.max_row):
            typed: list[Any] = []
            for c in row:
                cached = values_ws.cell(row=c.row, column=c.column).value
                typed.append(_typed_value(c, cached))
            rows.append(typed)
        sheets.append(Worksheet(name=str(formula_ws.title), rows=_trim_trailing_empty(rows)))
    return Workbook(name=wb_name, worksheets=sheets)


def read_csv_file(source: Path | bytes, name: str | None = None) -> Workbook:
    """Read a csv export as a single-worksheet workbook with every cell as text."""
    wb_name = name or (source.name if isinstance(source, Path) else "upload.csv")
    buffer: Any = io.BytesIO(source) if isinstance(source, bytes) else source
    try:
        df = pd.read_csv(
            buffer,
            header=None,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=False,
            encoding="utf-8-sig",
        )
    except pd.errors.EmptyDataError:
        df = pd.DataFrame()
    except (UnicodeDecodeError, pd.errors.ParserError) as e:
        raise StructuralError(f"Could not read csv: {e}") from e
    return Workbook(name=wb_name, worksheets=[worksheet_from_frame(df, Path(wb_name).stem)])


def read_payroll_file(path: Path) -> Workbook:
    """Load any supported payroll export by file suffix."""
    suffix = path.suffix.lower()
    if suffix == ".csv":
        return read_csv_file(path)
    if suffix in (".xlsx", ".xlsm"):
        return read_workbook(path)
    raise StructuralError(f"Unsupported file type: {path.suffix or '<none>'}")
