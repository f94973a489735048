from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Mapping, Sequence
from typing import Any

import psycopg2
from psycopg2 import errors as pg_errors

from .batch_insert import BatchInsertError, batch_insert_if_absent, quote_columns
from .record_sink import PersistenceConflict, SinkError, UpsertResult

"""PostgreSQL record sink (psycopg2).

Tables:

- payroll_records: one row per identifier (snapshot mode)
- payroll_ledger:  one row per content hash (ledger mode)

Every write runs under its own SAVEPOINT so a rejected row rolls back alone
and the file transaction stays usable. The caller commits once per file.
"""

__all__ = [
    "RECORDS_TABLE",
    "LEDGER_TABLE",
    "RECORD_COLUMNS",
    "PostgresRecordSink",
]

logger = logging.getLogger(__name__)

RECORDS_TABLE = "payroll_records"
LEDGER_TABLE = "payroll_ledger"

RECORD_COLUMNS: tuple[str, ...] = (
    "identifier",
    "name",
    "name_native",
    "position",
    "position_native",
    "department",
    "department_native",
    "account_number",
    "rate",
    "gross_amount",
    "tax_deduction",
    "net_amount",
    "duty_period1",
    "duty_period2",
    "duty_period3",
    "duty_total",
    "row_hash",
    "source",
    "uploaded_at",
)

_COLUMN_TYPES = """
    identifier        TEXT NOT NULL,
    name              TEXT,
    name_native       TEXT,
    position          TEXT,
    position_native   TEXT,
    department        TEXT,
    department_native TEXT,
    account_number    TEXT,
    rate              NUMERIC,
    gross_amount      NUMERIC,
    tax_deduction     NUMERIC,
    net_amount        NUMERIC NOT NULL,
    duty_period1      NUMERIC,
    duty_period2      NUMERIC,
    duty_period3      NUMERIC,
    duty_total        NUMERIC,
    row_hash          TEXT NOT NULL,
    source            TEXT,
    uploaded_at       TIMESTAMPTZ NOT NULL DEFAULT now()
"""

SCHEMA_SQL = f"""
CREATE TABLE IF NOT EXISTS {RECORDS_TABLE} ({_COLUMN_TYPES},
    PRIMARY KEY (identifier)
);
CREATE TABLE IF NOT EXISTS {LEDGER_TABLE} (
    id BIGSERIAL PRIMARY KEY,{_COLUMN_TYPES},
    UNIQUE (row_hash)
);
"""

_SAVEPOINT = "payroll_write"


def _check_columns(keys: Sequence[str]) -> None:
    unknown = [k for k in keys if k not in RECORD_COLUMNS]
    if unknown:
        raise SinkError(f"unknown columns: {unknown}")


class PostgresRecordSink:
    """RecordSink on top of an open psycopg2 connection (autocommit off)."""

    def __init__(self, connection: Any, page_size: int = 1000) -> None:
        self.connection = connection
        self.cursor = connection.cursor()
        self.page_size = page_size

    def ensure_schema(self) -> None:
        self.cursor.execute(SCHEMA_SQL)
        self.connection.commit()

    def commit(self) -> None:
        try:
            self.connection.commit()
        except psycopg2.Error as e:
            raise SinkError(f"commit failed: {str(e).strip()}") from e

    def rollback(self) -> None:
        try:
            self.connection.rollback()
        except psycopg2.Error as e:
            raise SinkError(f"rollback failed: {str(e).strip()}") from e

    def close(self) -> None:
        self.cursor.close()

    def _control(self, sql: str) -> None:
        try:
            self.cursor.execute(sql)
        except psycopg2.Error as e:
            raise SinkError(f"{sql.split()[0].lower()} failed: {str(e).strip()}") from e

    def _savepoint(self) -> None:
        self._control(f"SAVEPOINT {_SAVEPOINT}")

    def _release(self) -> None:
        self._control(f"RELEASE SAVEPOINT {_SAVEPOINT}")

    def _rollback_savepoint(self) -> None:
        try:
            self.cursor.execute(f"ROLLBACK TO SAVEPOINT {_SAVEPOINT}")
        except psycopg2.Error as e:  # connection gone; nothing left to undo
            logger.debug("rollback to savepoint failed: %s", e)

    def upsert_by_identifier(
        self,
        identifier: str,
        set_fields: Mapping[str, Any],
        set_on_insert_fields: Mapping[str, Any],
    ) -> UpsertResult:
        values = dict(set_on_insert_fields)
        values.update(set_fields)
        values["identifier"] = identifier
        columns = list(values)
        _check_columns(columns)

        updates = ", ".join(f'"{c}" = EXCLUDED."{c}"' for c in set_fields if c != "identifier")
        placeholders = ", ".join(["%s"] * len(columns))
        sql = (
            f"INSERT INTO {RECORDS_TABLE} ({quote_columns(columns)}) VALUES ({placeholders}) "
            f'ON CONFLICT ("identifier") DO UPDATE SET {updates} '
            "RETURNING (xmax = 0) AS inserted"
        )
        self._savepoint()
        try:
            self.cursor.execute(sql, [values[c] for c in columns])
            row = self.cursor.fetchone()
        except pg_errors.UniqueViolation as e:
            self._rollback_savepoint()
            raise PersistenceConflict(str(e).strip()) from e
        except psycopg2.Error as e:
            self._rollback_savepoint()
            raise SinkError(str(e).strip()) from e
        self._release()
        inserted = bool(row[0]) if row else False
        return UpsertResult(inserted=inserted, modified=not inserted)

    def exists_by_hash(self, row_hash: str) -> bool:
        try:
            self.cursor.execute(f"SELECT 1 FROM {LEDGER_TABLE} WHERE row_hash = %s", (row_hash,))
            return self.cursor.fetchone() is not None
        except psycopg2.Error as e:
            raise SinkError(str(e).strip()) from e

    def insert_if_hash_absent(self, document: Mapping[str, Any]) -> bool:
        return self.insert_many_if_absent([document])[0]

    def insert_many_if_absent(self, documents: Sequence[Mapping[str, Any]]) -> list[bool]:
        """Bulk insert; result[i] is True when documents[i] was new."""
        if not documents:
            return []
        columns = [c for c in RECORD_COLUMNS if any(c in d for d in documents)]
        if "row_hash" not in columns:
            raise SinkError("documents have no row_hash")
        _check_columns([k for d in documents for k in d])
        rows = [tuple(d.get(c) for c in columns) for d in documents]

        self._savepoint()
        try:
            result = batch_insert_if_absent(
                self.cursor,
                LEDGER_TABLE,
                columns,
                rows,
                conflict_column="row_hash",
                returning_column="row_hash",
                page_size=self.page_size,
            )
        except BatchInsertError as e:
            self._rollback_savepoint()
            raise SinkError(str(e).strip()) from e
        self._release()

        # a hash sent twice is inserted at most once: the first copy wins
        remaining = Counter(result.returned_values)
        flags: list[bool] = []
        for doc in documents:
            h = doc.get("row_hash")
            if remaining[h] > 0:
                remaining[h] -= 1
                flags.append(True)
            else:
                flags.append(False)
        return flags
