from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date

from ..excel.cells import cell_text
from ..excel.reader import Worksheet
from ..models.column_mapping import ColumnMapping
from ..models.config_models import HeuristicLimits
from ..models.parsed_row import DutyDays, LocalizedText, ParsedRow
from ..models.sheet_scan import SheetScan
from ..text.transliterate import transliterate
from . import identifiers
from .dedup import content_hash

"""Row parsing with a cell-scanning fallback.

Mapped columns are used when the header locator found them. Whatever they do
not give (identifier, amount, name) is guessed by scanning the row's cells,
which is also the only strategy when the sheet has no header (header_row 0).

Row outcomes:

- stray header / total row: skipped, not counted
- no identifier: skipped, not counted in rows_read
- invalid identifier or amount: RowValidationError, counted skipped, no message
- unexpected failure: RowParseError, counted skipped, message recorded
"""

__all__ = [
    "RowParseError",
    "RowValidationError",
    "WorksheetParse",
    "STRAY_HEADER_KEYWORDS",
    "LEGACY_HEADER_MARKERS",
    "parse_amount",
    "parse_number",
    "is_stray_header",
    "extract_identifier",
    "extract_amount",
    "extract_name",
    "parse_row",
    "parse_worksheet",
]

logger = logging.getLogger(__name__)

STRAY_HEADER_KEYWORDS: tuple[str, ...] = (
    "s.n", "sn", "क्र.सं", "नाम", "name", "pan", "पान", "salary", "तलब", "total", "grand total", "जम्मा",
)
# Preeti spellings of the serial number heading (क्र.सं. / सि.नं.)
LEGACY_HEADER_MARKERS: tuple[str, ...] = ("l;=g++", "l;=g+", "qm=;+=")

_NUMERIC_TOKEN = re.compile(r"-?\d[\d,]*(?:\.\d+)?")
_DIGIT = re.compile(r"\d")
_HAS_LETTER = re.compile(r"[a-zA-Z\u0900-\u097F]")
_ONLY_NUMERIC = re.compile(r"^[\d,.\-\s]+$")


class RowValidationError(Exception):
    """Row has an identifier but fails validation (bad identifier, missing amount)."""


class RowParseError(Exception):
    """Unexpected failure while extracting one row."""

    def __init__(self, sheet: str, row: int, detail: str) -> None:
        self.sheet = sheet
        self.row = row
        self.detail = detail
        super().__init__(f"{sheet}: Row {row}: Parse error ({detail})")


@dataclass
class WorksheetParse:
    scan: SheetScan
    rows: list[ParsedRow] = field(default_factory=list)
    errors: list[RowParseError] = field(default_factory=list)


def _numeric_token(text: str) -> str:
    """The number in a cell without thousands separators; "" when there is none or more than one."""
    match = _NUMERIC_TOKEN.search(text)
    if match is None or _DIGIT.search(text, match.end()):
        return ""
    return match.group().replace(",", "")


def parse_amount(text: str) -> float | None:
    """Number from text like "35,000", "रु. 35,000" or "Rs. 1,200.50"; None if nothing parses.

    Currency prefixes and suffixes ("/-") are ignored. Text carrying a second
    number ("1.2.3", "10 - 20") does not parse.
    """
    token = _numeric_token(text)
    if not token:
        return None
    try:
        return float(token)
    except ValueError:
        return None


def parse_number(text: str) -> float | None:
    """Like parse_amount but 0 counts as absent (optional numeric fields)."""
    value = parse_amount(text)
    return value if value else None


def _text(ws: Worksheet, row: int, col: int | None) -> str:
    if col is None:
        return ""
    return cell_text(ws.cell(row, col))


def _row_texts(ws: Worksheet, row: int) -> list[str]:
    return [t for t in (cell_text(v) for _, v in ws.iter_cells(row)) if t]


def is_stray_header(texts: list[str], density: int) -> bool:
    """Repeated header or total row inside the data region."""
    joined = " ".join(texts)
    if any(marker in joined for marker in LEGACY_HEADER_MARKERS):
        return True
    lowered = joined.lower()
    hits = sum(1 for k in STRAY_HEADER_KEYWORDS if k in lowered)
    return hits >= density


def _scan_identifier_token(texts: list[str]) -> str:
    first = ""
    for text in texts:
        digits = identifiers.clean(text)
        if len(digits) == identifiers.TAX_ID_LENGTH:
            return digits
        if not first and 1 <= len(digits) <= identifiers.FLEXIBLE_MAX_LENGTH:
            first = digits
    return first


def extract_identifier(
    ws: Worksheet, row: int, mapping: ColumnMapping, texts: list[str], limits: HeuristicLimits
) -> tuple[str, str]:
    """(identifier, account) for a row; identifier is "" when none was found."""
    id_digits = identifiers.clean(_text(ws, row, mapping.identifier))
    acct_digits = identifiers.clean(_text(ws, row, mapping.account))

    usable = 0 < len(id_digits) <= identifiers.FLEXIBLE_MAX_LENGTH
    if not usable and not acct_digits:
        id_digits = _scan_identifier_token(texts)

    id_digits, acct_digits = identifiers.disambiguate(id_digits, acct_digits)
    identifier = identifiers.normalize(id_digits) if id_digits else ""

    # no personal id at all: a long account number stands in
    if not identifier and len(acct_digits) >= limits.account_identifier_min_length:
        identifier = acct_digits
    return identifier, acct_digits


def _identifier_is_valid(identifier: str, limits: HeuristicLimits) -> bool:
    if identifiers.validate_flexible(identifier):
        return True
    return (
        identifier.isdigit()
        and limits.account_identifier_min_length <= len(identifier) <= limits.account_identifier_max_length
    )


def extract_amount(
    ws: Worksheet, row: int, mapping: ColumnMapping, limits: HeuristicLimits
) -> tuple[float | None, float | None]:
    """(amount, gross_amount). Net column first, then gross, then the largest plausible cell."""
    gross = parse_amount(_text(ws, row, mapping.gross)) if mapping.gross is not None else None
    net = parse_amount(_text(ws, row, mapping.net)) if mapping.net is not None else None
    if net is not None and net > 0:
        return net, gross
    if gross is not None and gross > 0:
        return gross, gross

    best: float | None = None
    for _, value in ws.iter_cells(row):
        token = _numeric_token(cell_text(value))
        if not token or len(token) == identifiers.TAX_ID_LENGTH:
            continue
        amount = float(token)
        if limits.salary_min < amount < limits.salary_max and (best is None or amount > best):
            best = amount
    return best, gross


def extract_name(ws: Worksheet, row: int, mapping: ColumnMapping, limits: HeuristicLimits) -> str:
    """Name cell of a row, or the first text cell that reads like a name.

    Args:
        ws: Worksheet being parsed
        row: 1-based row index
        mapping: Column mapping of the sheet
        limits: Name length bounds for the cell scan

    Returns:
        The name text, "" when nothing qualifies
    """
    name = _text(ws, row, mapping.name)
    if name:
        return name
    for _, value in ws.iter_cells(row):
        text = cell_text(value)
        if (
            _HAS_LETTER.search(text)
            and not _ONLY_NUMERIC.match(text)
            and limits.name_min_length <= len(text) <= limits.name_max_length
        ):
            return text
    return ""


def _localized(text: str) -> LocalizedText | None:
    if not text:
        return None
    result = transliterate(text)
    return LocalizedText(original=result.original, native=result.converted)


def _duty_days(ws: Worksheet, row: int, mapping: ColumnMapping) -> DutyDays | None:
    duty = DutyDays(
        period1=parse_number(_text(ws, row, mapping.duty1)),
        period2=parse_number(_text(ws, row, mapping.duty2)),
        period3=parse_number(_text(ws, row, mapping.duty3)),
        total=parse_number(_text(ws, row, mapping.duty_total)),
    )
    if duty == DutyDays():
        return None
    return duty


def parse_row(
    ws: Worksheet,
    row: int,
    mapping: ColumnMapping,
    *,
    limits: HeuristicLimits,
    effective_date: date | None = None,
    texts: list[str] | None = None,
) -> ParsedRow | None:
    """Parse one data row. None means no identifier could be found."""
    if texts is None:
        texts = _row_texts(ws, row)
    identifier, account = extract_identifier(ws, row, mapping, texts, limits)
    if not identifier:
        return None
    if not _identifier_is_valid(identifier, limits):
        raise RowValidationError(f"invalid identifier {identifier!r}")

    amount, gross = extract_amount(ws, row, mapping, limits)
    if amount is None or amount <= 0:
        raise RowValidationError("no positive amount")

    name = _localized(extract_name(ws, row, mapping, limits))
    position = _localized(_text(ws, row, mapping.position))
    department = _localized(_text(ws, row, mapping.department))

    row_hash = content_hash(
        identifier,
        department.original if department else "",
        effective_date.isoformat() if effective_date else "",
        amount,
    )
    return ParsedRow(
        identifier=identifier,
        net_amount=amount,
        row_hash=row_hash,
        sheet_name=ws.name,
        row_number=row,
        name=name,
        position=position,
        department=department,
        account_number=account or None,
        duty_days=_duty_days(ws, row, mapping),
        rate=parse_number(_text(ws, row, mapping.rate)),
        gross_amount=gross or None,
        tax_deduction=parse_number(_text(ws, row, mapping.tax)),
    )


def parse_worksheet(
    ws: Worksheet,
    mapping: ColumnMapping,
    *,
    limits: HeuristicLimits | None = None,
    effective_date: date | None = None,
) -> WorksheetParse:
    """Parse every data row below the header; one bad row never stops the sheet."""
    limits = limits or HeuristicLimits()
    scan = SheetScan(sheet_name=ws.name, header_row=mapping.header_row, total_rows=ws.row_count)
    result = WorksheetParse(scan=scan)

    for row in range(1, ws.row_count + 1):
        if row <= mapping.header_row:
            scan.skipped_before_header += 1
            continue
        try:
            texts = _row_texts(ws, row)
            if not texts:
                continue
            if is_stray_header(texts, limits.header_keyword_density):
                scan.skipped_header_like += 1
                logger.debug("%s: Row %d: skipped (header-like)", ws.name, row)
                continue
            parsed = parse_row(ws, row, mapping, limits=limits, effective_date=effective_date, texts=texts)
        except RowValidationError as e:
            scan.skipped_invalid += 1
            logger.debug("%s: Row %d: skipped (%s)", ws.name, row, e)
            continue
        except Exception as e:  # one row must not stop the sheet
            err = RowParseError(ws.name, row, str(e) or type(e).__name__)
            scan.parse_errors += 1
            result.errors.append(err)
            logger.warning(str(err))
            continue

        if parsed is None:
            scan.skipped_no_identifier += 1
            logger.debug("%s: Row %d: skipped (no identifier)", ws.name, row)
            continue
        scan.parsed_rows += 1
        result.rows.append(parsed)

    logger.info(scan.summary_line())
    return result
