from __future__ import annotations
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from payroll_ingest.db.record_sink import MemoryRecordSink, PersistenceConflict, SinkError, UpsertResult
from payroll_ingest.models.parsed_row import LocalizedText, ParsedRow
from payroll_ingest.services.dedup import (
    PersistMode,
    content_hash,
    format_amount,
    ledger_document,
    persist_rows,
    plan_upsert,
)

WHEN = datetime(2024, 7, 16, 10, 0, tzinfo=UTC)


def _row(identifier: str = "123456789", amount: float = 30000.0, row_number: int = 2, name: str = "Ram") -> ParsedRow:
    return ParsedRow(
        identifier=identifier,
        net_amount=amount,
        row_hash=content_hash(identifier, "Admin", "", amount),
        sheet_name="Sheet1",
        row_number=row_number,
        name=LocalizedText(original=name, native=name),
        department=LocalizedText(original="Admin", native="Admin"),
    )


def test_format_amount():
    assert format_amount(35000.0) == "35000"
    assert format_amount(35000.5) == "35000.5"
    assert format_amount(12) == "12"


def test_content_hash_is_stable_and_sensitive():
    """Test that the content hash changes with every hashed field."""
    a = content_hash("123456789", "Admin", "2024-07-16", 35000.0)
    assert a == content_hash("123456789", "Admin", "2024-07-16", 35000)
    assert len(a) == 64
    assert a != content_hash("123456789", "Admin", "2024-07-16", 35001.0)
    assert a != content_hash("123456789", "Admin", "2024-08-16", 35000.0)
    assert a != content_hash("123456789", "Accounts", "2024-07-16", 35000.0)


def test_plan_upsert_splits_identity_and_mutable_fields():
    plan = plan_upsert(_row(), source="a.xlsx", uploaded_at=WHEN)
    assert plan.identifier == "123456789"
    assert plan.set_fields["net_amount"] == 30000.0
    assert plan.set_fields["source"] == "a.xlsx"
    assert "name" not in plan.set_fields
    assert plan.set_on_insert_fields["name"] == "Ram"
    assert plan.set_on_insert_fields["department"] == "Admin"
    assert "net_amount" not in plan.set_on_insert_fields


def test_ledger_document_carries_all_fields():
    doc = ledger_document(_row(), source="a.xlsx", uploaded_at=WHEN)
    assert doc["identifier"] == "123456789"
    assert doc["row_hash"] == _row().row_hash
    assert doc["uploaded_at"] == WHEN


def test_snapshot_insert_then_update_keeps_identity_fields():
    """Test that a later upload never overwrites identity fields."""
    sink = MemoryRecordSink()
    first = persist_rows([_row(name="Ram")], sink, PersistMode.SNAPSHOT, source="a.xlsx", uploaded_at=WHEN)
    assert (first.inserted, first.updated, first.skipped) == (1, 0, 0)

    second = persist_rows(
        [_row(amount=32000.0, name="Ram B.")], sink, PersistMode.SNAPSHOT, source="b.xlsx", uploaded_at=WHEN
    )
    assert (second.inserted, second.updated, second.skipped) == (0, 1, 0)
    record = sink.records["123456789"]
    assert record["net_amount"] == 32000.0
    assert record["source"] == "b.xlsx"
    assert record["name"] == "Ram"


def test_snapshot_last_row_in_file_order_wins():
    """Test the last-write-wins tie-break for a repeated identifier."""
    sink = MemoryRecordSink()
    stats = persist_rows(
        [_row(amount=1000.0, row_number=2), _row(amount=2000.0, row_number=3)],
        sink,
        PersistMode.SNAPSHOT,
        source="a.xlsx",
        uploaded_at=WHEN,
    )
    assert (stats.inserted, stats.updated) == (1, 1)
    assert sink.records["123456789"]["net_amount"] == 2000.0


def test_snapshot_unchanged_row_counts_as_skipped():
    sink = MemoryRecordSink()
    persist_rows([_row()], sink, PersistMode.SNAPSHOT, source="a.xlsx", uploaded_at=WHEN)
    again = persist_rows([_row()], sink, PersistMode.SNAPSHOT, source="a.xlsx", uploaded_at=WHEN)
    assert (again.inserted, again.updated, again.skipped) == (0, 0, 1)


def test_ledger_skips_duplicates_in_batch_and_in_store():
    """Test ledger duplicate handling inside an upload and across uploads."""
    sink = MemoryRecordSink()
    rows = [_row(row_number=2), _row(row_number=3), _row(identifier="987654321", row_number=4)]
    stats = persist_rows(rows, sink, PersistMode.LEDGER, source="a.xlsx", uploaded_at=WHEN)
    assert (stats.inserted, stats.updated, stats.skipped) == (2, 0, 1)
    assert stats.errors == []

    again = persist_rows(rows[:1], sink, PersistMode.LEDGER, source="b.xlsx", uploaded_at=WHEN)
    assert (again.inserted, again.skipped) == (0, 1)
    assert len(sink.ledger) == 2


class FailingSink(MemoryRecordSink):
    def __init__(self, fail_identifier: str = "", conflict_identifier: str = "") -> None:
        super().__init__()
        self.fail_identifier = fail_identifier
        self.conflict_identifier = conflict_identifier

    def upsert_by_identifier(
        self, identifier: str, set_fields: Mapping[str, Any], set_on_insert_fields: Mapping[str, Any]
    ) -> UpsertResult:
        if identifier == self.fail_identifier:
            raise SinkError("connection reset")
        if identifier == self.conflict_identifier:
            raise PersistenceConflict("duplicate key")
        return super().upsert_by_identifier(identifier, set_fields, set_on_insert_fields)

    def insert_many_if_absent(self, documents: Sequence[Mapping[str, Any]]) -> list[bool]:
        raise SinkError("bulk write timeout")


def test_snapshot_write_failure_is_counted_and_reported():
    """Test that failed writes are skipped with a message and conflicts silently."""
    sink = FailingSink(fail_identifier="111111111", conflict_identifier="222222222")
    rows = [_row("111111111", row_number=2), _row("222222222", row_number=3), _row("333333333", row_number=4)]
    stats = persist_rows(rows, sink, PersistMode.SNAPSHOT, source="a.xlsx", uploaded_at=WHEN)
    assert (stats.inserted, stats.updated, stats.skipped) == (1, 0, 2)
    assert stats.errors == ["Sheet1: Row 2: Write failed (connection reset)"]
    assert stats.failed_rows[0][0].identifier == "111111111"


def test_ledger_bulk_failure_skips_whole_group():
    """Test that a failed bulk insert skips the whole group."""
    stats = persist_rows([_row(), _row("987654321")], FailingSink(), PersistMode.LEDGER, source="a.xlsx")
    assert stats.skipped == 2
    assert stats.inserted == 0
    assert stats.errors == ["Bulk insert failed for 2 rows (bulk write timeout)"]


def test_no_rows_no_writes():
    stats = persist_rows([], FailingSink(), PersistMode.LEDGER, source="a.xlsx")
    assert (stats.inserted, stats.updated, stats.skipped, stats.errors) == (0, 0, 0, [])
