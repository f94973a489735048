from __future__ import annotations

import hashlib
import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from ..db.record_sink import PersistenceConflict, RecordSink, SinkError
from ..models.config_models import MODE_LEDGER, MODE_SNAPSHOT
from ..models.parsed_row import ParsedRow

"""Content hashing and the insert/update/skip decision per parsed row.

Two persistence modes:

- ledger: append a row only if its content hash is new; a known hash is a
  duplicate and counts as skipped, never as an error.
- snapshot: one record per identifier. Identity fields are written on insert
  only; mutable fields are overwritten by every later upload.

Tie-break inside one batch: rows are written strictly in file order
(worksheet order, then row order), so for a repeated identifier the last
row in that order wins the mutable fields. In ledger mode the first row
carrying a hash is kept and later copies are skipped.
"""

__all__ = [
    "PersistMode",
    "UpsertPlan",
    "PersistStats",
    "content_hash",
    "format_amount",
    "plan_upsert",
    "ledger_document",
    "persist_rows",
]

logger = logging.getLogger(__name__)


class PersistMode(Enum):
    LEDGER = MODE_LEDGER
    SNAPSHOT = MODE_SNAPSHOT


def format_amount(amount: float) -> str:
    """Stable text form of an amount: 35000.0 -> "35000", 35000.5 -> "35000.5"."""
    if isinstance(amount, float) and math.isfinite(amount) and amount.is_integer():
        return str(int(amount))
    return repr(amount) if isinstance(amount, float) else str(amount)


def content_hash(identifier: str, department: str | None, effective_date_iso: str | None, amount: float) -> str:
    """sha256 hex digest of "identifier|department|effective_date|amount"."""
    data = f"{identifier.strip()}|{department or ''}|{effective_date_iso or ''}|{format_amount(amount)}"
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class UpsertPlan:
    identifier: str
    set_fields: dict[str, Any]
    set_on_insert_fields: dict[str, Any]


@dataclass
class PersistStats:
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)
    # (row, message) pairs for the structured error log
    failed_rows: list[tuple[ParsedRow | None, str]] = field(default_factory=list)

    def fail(self, row: ParsedRow | None, message: str, count: int = 1) -> None:
        self.skipped += count
        self.errors.append(message)
        self.failed_rows.append((row, message))


def plan_upsert(row: ParsedRow, *, source: str, uploaded_at: datetime) -> UpsertPlan:
    """Split a row into always-written and insert-only fields."""
    duty = row.duty_days
    set_fields: dict[str, Any] = {
        "rate": row.rate,
        "gross_amount": row.gross_amount,
        "tax_deduction": row.tax_deduction,
        "net_amount": row.net_amount,
        "duty_period1": duty.period1 if duty else None,
        "duty_period2": duty.period2 if duty else None,
        "duty_period3": duty.period3 if duty else None,
        "duty_total": duty.total if duty else None,
        "row_hash": row.row_hash,
        "source": source,
        "uploaded_at": uploaded_at,
    }
    set_on_insert: dict[str, Any] = {
        "identifier": row.identifier,
        "name": row.name.original if row.name else None,
        "name_native": row.name.native if row.name else None,
        "position": row.position.original if row.position else None,
        "position_native": row.position.native if row.position else None,
        "department": row.department.original if row.department else None,
        "department_native": row.department.native if row.department else None,
        "account_number": row.account_number,
    }
    return UpsertPlan(identifier=row.identifier, set_fields=set_fields, set_on_insert_fields=set_on_insert)


def ledger_document(row: ParsedRow, *, source: str, uploaded_at: datetime) -> dict[str, Any]:
    """Flat ledger row: identity and mutable fields together."""
    plan = plan_upsert(row, source=source, uploaded_at=uploaded_at)
    doc = dict(plan.set_on_insert_fields)
    doc.update(plan.set_fields)
    return doc


def _row_label(row: ParsedRow) -> str:
    return f"{row.sheet_name}: Row {row.row_number}"


def _persist_ledger(
    rows: Sequence[ParsedRow], sink: RecordSink, source: str, uploaded_at: datetime, stats: PersistStats
) -> None:
    seen: set[str] = set()
    pending: list[ParsedRow] = []
    for row in rows:
        if row.row_hash in seen:
            stats.skipped += 1
            logger.debug("%s: duplicate hash within upload", _row_label(row))
            continue
        seen.add(row.row_hash)
        pending.append(row)
    if not pending:
        return

    docs = [ledger_document(r, source=source, uploaded_at=uploaded_at) for r in pending]
    try:
        results = sink.insert_many_if_absent(docs)
    except SinkError as e:
        logger.warning("bulk insert of %d rows failed: %s", len(pending), e)
        stats.fail(None, f"Bulk insert failed for {len(pending)} rows ({e})", count=len(pending))
        return

    for row, inserted in zip(pending, results, strict=True):
        if inserted:
            stats.inserted += 1
        else:
            stats.skipped += 1
            logger.debug("%s: hash already stored", _row_label(row))


def _persist_snapshot(
    rows: Sequence[ParsedRow], sink: RecordSink, source: str, uploaded_at: datetime, stats: PersistStats
) -> None:
    for row in rows:
        plan = plan_upsert(row, source=source, uploaded_at=uploaded_at)
        try:
            result = sink.upsert_by_identifier(plan.identifier, plan.set_fields, plan.set_on_insert_fields)
        except PersistenceConflict as e:
            stats.skipped += 1
            logger.debug("%s: conflict (%s)", _row_label(row), e)
            continue
        except SinkError as e:
            logger.warning("%s: write failed: %s", _row_label(row), e)
            stats.fail(row, f"{_row_label(row)}: Write failed ({e})")
            continue
        if result.inserted:
            stats.inserted += 1
        elif result.modified:
            stats.updated += 1
        else:
            stats.skipped += 1


def persist_rows(
    rows: Sequence[ParsedRow],
    sink: RecordSink,
    mode: PersistMode,
    *,
    source: str,
    uploaded_at: datetime | None = None,
) -> PersistStats:
    """Write parsed rows in file order; every row ends up inserted, updated or skipped."""
    stats = PersistStats()
    if not rows:
        return stats
    when = uploaded_at or datetime.now(UTC)
    if mode is PersistMode.LEDGER:
        _persist_ledger(rows, sink, source, when, stats)
    else:
        _persist_snapshot(rows, sink, source, when, stats)
    return stats
