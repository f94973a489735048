from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any

from openpyxl.cell.cell import ERROR_CODES

"""Typed worksheet cells and the cell value extractor.

The workbook reader turns every decoded cell into one of:

- None (empty)
- str / int / float / Decimal / bool
- datetime / date / time
- FormulaCell      (formula text + cached result)
- RichTextCell     (ordered list of text runs)
- HyperlinkCell    (display text + target)

cell_text() flattens any of those into trimmed plain text. It never returns a
generic object placeholder: anything it does not understand becomes "".
"""

__all__ = [
    "FormulaCell",
    "RichTextCell",
    "HyperlinkCell",
    "cell_text",
    "is_empty_cell",
]


@dataclass(frozen=True)
class FormulaCell:
    formula: str
    result: Any = None  # cached value written by the spreadsheet application


@dataclass(frozen=True)
class RichTextCell:
    runs: tuple[str, ...]


@dataclass(frozen=True)
class HyperlinkCell:
    text: str
    target: str | None = None


_PRIMITIVES = (str, int, float, Decimal, bool)


def _number_text(value: int | float | Decimal) -> str:
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return ""
        # 12345.0 must read as "12345" or the digits of an identifier change
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, Decimal):
        if not value.is_finite():
            return ""
        if value == value.to_integral_value():
            return str(int(value))
        return str(value)
    return str(value)


def _primitive_text(value: Any) -> str:
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float, Decimal)):
        return _number_text(value)
    return str(value).strip()


def cell_text(value: Any) -> str:
    """Flatten one typed cell value into trimmed plain text."""
    if value is None:
        return ""
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, FormulaCell):
        result = value.result
        if result is None:
            return ""
        if isinstance(result, str) and result.strip() in ERROR_CODES:
            return ""
        if isinstance(result, (datetime, date, time)):
            return result.isoformat()
        if not isinstance(result, _PRIMITIVES):
            # nested object or error marker
            return ""
        return _primitive_text(result)
    if isinstance(value, RichTextCell):
        return "".join(value.runs).strip()
    if isinstance(value, HyperlinkCell):
        return value.text.strip()
    if isinstance(value, _PRIMITIVES):
        return _primitive_text(value)
    # pandas.Timestamp and other datetime-likes
    isoformat = getattr(value, "isoformat", None)
    if callable(isoformat):
        try:
            return str(isoformat())
        except (TypeError, ValueError):
            return ""
    return ""


def is_empty_cell(value: Any) -> bool:
    """None, NaN and whitespace-only strings are empty."""
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False
