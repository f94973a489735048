from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from psycopg2.extras import execute_values

"""Batched INSERT ... ON CONFLICT DO NOTHING via psycopg2.extras.execute_values.

Used for the ledger table: a whole upload is sent as one bulk group and the
RETURNING column tells which rows were actually new. Rows that hit the
conflict target are silently left out of the returned values.
"""

__all__ = [
    "BatchInsertError",
    "InsertResult",
    "quote_columns",
    "batch_insert_if_absent",
]


class BatchInsertError(Exception):
    pass


@dataclass(frozen=True)
class InsertResult:
    inserted_rows: int  # rows actually written (conflicts excluded)
    returned_values: list[Any]


def quote_columns(columns: Sequence[str]) -> str:
    return ",".join(f'"{c}"' for c in columns)


def batch_insert_if_absent(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    conflict_column: str,
    returning_column: str,
    page_size: int = 1000,
) -> InsertResult:
    """Insert rows, skipping any whose `conflict_column` value already exists.

    Parameters
    ----------
    cursor: psycopg2 cursor
    table: target table (trusted name, not user input)
    columns: insert columns, in row tuple order
    rows: row tuples
    conflict_column: unique column used as the ON CONFLICT target
    returning_column: column returned for every row that was inserted
    page_size: execute_values page size
    """
    rows_list = list(rows)
    if not rows_list:
        return InsertResult(inserted_rows=0, returned_values=[])

    sql = (
        f"INSERT INTO {table} ({quote_columns(columns)}) VALUES %s "
        f'ON CONFLICT ("{conflict_column}") DO NOTHING RETURNING "{returning_column}"'
    )

    try:
        returned = execute_values(cursor, sql, rows_list, page_size=page_size, fetch=True)
    except Exception as e:
        raise BatchInsertError(str(e)) from e

    values = [r[0] for r in (returned or [])]
    return InsertResult(inserted_rows=len(values), returned_values=values)
