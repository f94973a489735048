from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from ..models.column_mapping import ColumnMapping
from ..models.config_models import HEADER_SCAN_ROWS
from .cells import cell_text
from .reader import Worksheet

"""Header row detection and column classification.

Payroll exports put their header anywhere in the first rows (after titles,
office names and period lines) and spell it in Devanagari, English or in the
legacy Preeti font. COLUMN_SYNONYMS is the declarative field -> synonym table;
matches_any() is the pure match predicate (case-insensitive substring).

Column collision policy: fields claim columns in FIELD_PRIORITY order and a
column claimed by one field is never offered to a later field.
"""

__all__ = [
    "COLUMN_SYNONYMS",
    "FIELD_PRIORITY",
    "IDENTIFIER_FIELDS",
    "AMOUNT_FIELDS",
    "matches_any",
    "find_column",
    "read_header_cells",
    "classify_columns",
    "locate_header",
]

logger = logging.getLogger(__name__)

# Ordered synonym lists: Devanagari, English, Preeti-encoded spellings.
COLUMN_SYNONYMS: dict[str, tuple[str, ...]] = {
    "identifier": (
        "pan", "पान", "পান", "kfg", "kfg g", "kfg g+", "kfg g+=", "kfg g++=", "kfgg", "kfgg+",
        "kfgg+=", "pan no", "panno", "pan number", "पान नं", "पान नं.",
    ),
    "name": ("name", "gfdy", "gfdy/", "नाम", "employee", "sd{rf/L", "कर्मचारी"),
    "position": ("position", "kb", "पद", "pd", "designation", "post"),
    "department": (
        "department", "dept", "ward", "sfo", "sfo/t", "sfo{/t", "ljefu", "विभाग",
        "sfo{/t ljefu", "s}lkmot",
    ),
    "account": ("account", "vftf", "vftf g", "vftf g+", "vftf g+=", "खाता", "a/c", "bank", "खाता नं"),
    "duty1": (">fj)f", "efbl", "efb|", "sflt{s", "श्रावण", "भाद्र", "कार्तिक", "shrawan", "bhadra", "kartik", "month1"),
    "duty2": (
        "efbl", "efb|", "efb}", "cflZjg", "d+l;/", "भाद्र", "आश्विन", "मंसिर", "bhadra", "ashwin",
        "mangsir", "month2",
    ),
    "duty3": ("cflZjg", "kf}if", "df3", "आश्विन", "पौष", "माघ", "ashwin", "poush", "magh", "month3"),
    "duty_total": ("hDdf", "hDdf lbg", "जम्मा", "total", "total duty", "total days", "कुल दिन"),
    "rate": ("b/", "दर", "rate", "per day", "daily"),
    "gross": ("kfpg]/sd", "kfpg] /sd", "/sd", "पाउने रकम", "gross", "amount", "रकम"),
    "tax": ("kfl/>lds", "kfl/>lds s/", "कर", "tax", "tds", "deduction"),
    "net": ("s'n kfpg]", "s'n", "कुल पाउने", "net", "net salary", "net payable", "कुल तलब"),
}

# Claim order. Identifier and amount columns first so that the fields deciding
# header qualification are never starved by a looser synonym of another field.
FIELD_PRIORITY: tuple[str, ...] = (
    "identifier",
    "account",
    "net",
    "gross",
    "name",
    "position",
    "department",
    "rate",
    "tax",
    "duty_total",
    "duty1",
    "duty2",
    "duty3",
)

IDENTIFIER_FIELDS = ("identifier", "account")
AMOUNT_FIELDS = ("net", "gross")


def matches_any(text: str, synonyms: Iterable[str]) -> bool:
    """True if `text` contains any synonym, ignoring case."""
    lowered = text.lower()
    return any(s.lower() in lowered for s in synonyms)


def find_column(
    headers: Mapping[int, str], synonyms: Iterable[str], claimed: set[int] | None = None
) -> int | None:
    """First column (index order) whose header text contains a synonym and is not claimed."""
    synonyms = tuple(synonyms)
    for col in sorted(headers):
        if claimed and col in claimed:
            continue
        if matches_any(headers[col], synonyms):
            return col
    return None


def read_header_cells(ws: Worksheet, row: int) -> dict[int, str]:
    """column -> extracted text for every non-empty cell of a row."""
    headers: dict[int, str] = {}
    for col, value in ws.iter_cells(row):
        text = cell_text(value)
        if text:
            headers[col] = text
    return headers


def classify_columns(headers: Mapping[int, str], header_row: int) -> ColumnMapping:
    """Assign header columns to payroll fields (first claim wins)."""
    claimed: set[int] = set()
    found: dict[str, int] = {}
    for field_name in FIELD_PRIORITY:
        col = find_column(headers, COLUMN_SYNONYMS[field_name], claimed)
        if col is not None:
            found[field_name] = col
            claimed.add(col)
    return ColumnMapping(header_row=header_row, **found)


def _qualifies(headers: Mapping[int, str]) -> bool:
    has_identifier = any(find_column(headers, COLUMN_SYNONYMS[f]) is not None for f in IDENTIFIER_FIELDS)
    has_amount = any(find_column(headers, COLUMN_SYNONYMS[f]) is not None for f in AMOUNT_FIELDS)
    return has_identifier and has_amount


def locate_header(ws: Worksheet, scan_rows: int = HEADER_SCAN_ROWS) -> ColumnMapping | None:
    """Find the header row in the first `scan_rows` rows and classify its columns.

    Returns None when no row qualifies; the caller then scans in fallback mode.
    Never raises for odd cell content.
    """
    last = min(scan_rows, ws.row_count)
    for row in range(1, last + 1):
        headers = read_header_cells(ws, row)
        if not headers or not _qualifies(headers):
            continue
        mapping = classify_columns(headers, row)
        logger.debug("header row %d in sheet %s: %s", row, ws.name, mapping.mapped_columns())
        return mapping
    logger.debug("no header row in first %d rows of sheet %s", last, ws.name)
    return None
