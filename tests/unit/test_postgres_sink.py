from __future__ import annotations

import psycopg2
import pytest
from psycopg2 import errors as pg_errors

from payroll_ingest.db.postgres_sink import LEDGER_TABLE, RECORDS_TABLE, PostgresRecordSink
from payroll_ingest.db.record_sink import PersistenceConflict, SinkError
from payroll_ingest.excel.reader import Workbook, worksheet_from_rows
from payroll_ingest.logging.error_log import ErrorLogBuffer
from payroll_ingest.models.upload_outcome import FileStatus
from payroll_ingest.services.orchestrator import process_workbook


class DummyCursor:
    def __init__(self) -> None:
        self.executed: list[tuple[str, object]] = []
        self.next_row: tuple | None = None
        self.fail_on: str | None = None
        self.fail_with: Exception | None = None
        self.closed = False

    def execute(self, sql, params=None):
        self.executed.append((sql, params))
        if self.fail_on and self.fail_on in sql and self.fail_with is not None:
            raise self.fail_with

    def fetchone(self):
        return self.next_row

    def close(self):
        self.closed = True

    @property
    def statements(self) -> list[str]:
        return [sql for sql, _ in self.executed]


class DummyConnection:
    def __init__(self) -> None:
        self.cur = DummyCursor()
        self.commits = 0
        self.rollbacks = 0
        self.fail_commit = False

    def cursor(self):
        return self.cur

    def commit(self):
        if self.fail_commit:
            raise psycopg2.OperationalError("server closed the connection unexpectedly")
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1


@pytest.fixture()
def conn() -> DummyConnection:
    return DummyConnection()


def test_ensure_schema_creates_both_tables(conn):
    """Test schema creation for snapshot and ledger tables."""
    PostgresRecordSink(conn).ensure_schema()
    sql = conn.cur.statements[0]
    assert f"CREATE TABLE IF NOT EXISTS {RECORDS_TABLE}" in sql
    assert f"CREATE TABLE IF NOT EXISTS {LEDGER_TABLE}" in sql
    assert conn.commits == 1


def test_upsert_reports_insert(conn):
    """Test the upsert statement and its savepoint bracketing."""
    conn.cur.next_row = (True,)
    sink = PostgresRecordSink(conn)
    result = sink.upsert_by_identifier("123456789", {"net_amount": 1.0}, {"name": "Ram"})
    assert result.inserted and not result.modified
    statements = conn.cur.statements
    assert statements[0].startswith("SAVEPOINT")
    assert 'ON CONFLICT ("identifier") DO UPDATE SET "net_amount" = EXCLUDED."net_amount"' in statements[1]
    assert '"name" = EXCLUDED' not in statements[1]
    assert statements[2].startswith("RELEASE SAVEPOINT")


def test_upsert_reports_update(conn):
    conn.cur.next_row = (False,)
    result = PostgresRecordSink(conn).upsert_by_identifier("123456789", {"net_amount": 1.0}, {})
    assert result.modified and not result.inserted


def test_unique_violation_becomes_conflict(conn):
    """Test that a unique violation rolls back to the savepoint as a conflict."""
    conn.cur.fail_on = "INSERT INTO"
    conn.cur.fail_with = pg_errors.UniqueViolation("duplicate key value")
    with pytest.raises(PersistenceConflict):
        PostgresRecordSink(conn).upsert_by_identifier("123456789", {"net_amount": 1.0}, {})
    assert conn.cur.statements[-1].startswith("ROLLBACK TO SAVEPOINT")


def test_driver_error_becomes_sink_error(conn):
    conn.cur.fail_on = "INSERT INTO"
    conn.cur.fail_with = psycopg2.OperationalError("timeout")
    with pytest.raises(SinkError, match="timeout"):
        PostgresRecordSink(conn).upsert_by_identifier("123456789", {"net_amount": 1.0}, {})


def test_unknown_column_is_rejected(conn):
    with pytest.raises(SinkError, match="unknown columns"):
        PostgresRecordSink(conn).upsert_by_identifier("123456789", {"salary; DROP": 1}, {})


def test_exists_by_hash(conn):
    sink = PostgresRecordSink(conn)
    conn.cur.next_row = (1,)
    assert sink.exists_by_hash("abc")
    conn.cur.next_row = None
    assert not sink.exists_by_hash("abc")


def test_insert_many_first_copy_wins(conn, monkeypatch):
    """Test first-copy-wins flags for repeated hashes."""
    import payroll_ingest.db.batch_insert as bi

    def fake_execute_values(cursor, sql, rows, page_size=1000, fetch=False):
        # "old" is already stored; a hash sent twice is written once
        seen: set[str] = set()
        out = []
        for r in rows:
            h = r[0]
            if h == "old" or h in seen:
                continue
            seen.add(h)
            out.append((h,))
        return out

    monkeypatch.setattr(bi, "execute_values", fake_execute_values)
    sink = PostgresRecordSink(conn)
    docs = [{"row_hash": "a"}, {"row_hash": "old"}, {"row_hash": "a"}]
    assert sink.insert_many_if_absent(docs) == [True, False, False]
    assert sink.insert_if_hash_absent({"row_hash": "b"}) is True


def test_insert_many_requires_hash(conn):
    with pytest.raises(SinkError):
        PostgresRecordSink(conn).insert_many_if_absent([{"identifier": "123456789"}])
    assert PostgresRecordSink(conn).insert_many_if_absent([]) == []


def test_commit_failure_is_sink_error(conn):
    conn.fail_commit = True
    with pytest.raises(SinkError, match="commit failed"):
        PostgresRecordSink(conn).commit()


def test_rollback_and_close(conn):
    sink = PostgresRecordSink(conn)
    sink.rollback()
    sink.close()
    assert conn.rollbacks == 1
    assert conn.cur.closed


def test_savepoint_failure_is_sink_error(conn):
    """Test that a lost connection at SAVEPOINT surfaces as SinkError, not a driver error."""
    conn.cur.fail_on = "SAVEPOINT"
    conn.cur.fail_with = psycopg2.OperationalError("server closed the connection unexpectedly")
    sink = PostgresRecordSink(conn)
    with pytest.raises(SinkError, match="savepoint failed"):
        sink.upsert_by_identifier("123456789", {"net_amount": 1.0}, {})
    with pytest.raises(SinkError, match="savepoint failed"):
        sink.insert_many_if_absent([{"row_hash": "a"}])


def test_release_failure_is_sink_error(conn):
    conn.cur.next_row = (True,)
    conn.cur.fail_on = "RELEASE"
    conn.cur.fail_with = psycopg2.OperationalError("terminating connection")
    with pytest.raises(SinkError, match="release failed"):
        PostgresRecordSink(conn).upsert_by_identifier("123456789", {"net_amount": 1.0}, {})


def test_exists_by_hash_failure_is_sink_error(conn):
    conn.cur.fail_on = "SELECT 1"
    conn.cur.fail_with = psycopg2.InterfaceError("cursor already closed")
    with pytest.raises(SinkError, match="cursor already closed"):
        PostgresRecordSink(conn).exists_by_hash("abc")


def test_savepoint_failure_skips_rows_instead_of_aborting(conn, payroll_rows):
    """Test that driver errors on the write path are counted per row."""
    conn.cur.fail_on = "SAVEPOINT"
    conn.cur.fail_with = psycopg2.OperationalError("server closed the connection unexpectedly")
    book = Workbook(name="ward1.xlsx", worksheets=[worksheet_from_rows("Sheet1", payroll_rows)])
    log = ErrorLogBuffer()

    outcome = process_workbook(book, PostgresRecordSink(conn), error_log=log)

    assert outcome.status is FileStatus.SUCCESS
    assert (outcome.rows_read, outcome.inserted, outcome.skipped) == (1, 0, 1)
    assert outcome.errors[0].startswith("Sheet1: Row 4: Write failed (savepoint failed")
    assert log.records[0].error_type == "PERSISTENCE_ERROR"
