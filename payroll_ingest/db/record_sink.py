from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

"""Record sink contract used by the upsert planner.

The sink owns storage. The planner only relies on two atomic primitives:
insert-if-hash-absent (ledger mode) and upsert-by-identifier (snapshot mode).
Bulk inserts report per-document success and never require all-or-nothing.

MemoryRecordSink keeps everything in dicts. It backs the tests and the CLI
mock mode when no database is reachable.
"""

__all__ = [
    "SinkError",
    "PersistenceConflict",
    "UpsertResult",
    "RecordSink",
    "MemoryRecordSink",
]


class SinkError(Exception):
    """Write rejected by the storage layer (driver failure, constraint, timeout)."""


class PersistenceConflict(SinkError):
    """The write lost against an existing record (duplicate hash or identifier race)."""


@dataclass(frozen=True)
class UpsertResult:
    inserted: bool
    modified: bool


@runtime_checkable
class RecordSink(Protocol):
    """Storage seam for parsed rows; one transaction per file (commit/rollback)."""

    def upsert_by_identifier(
        self,
        identifier: str,
        set_fields: Mapping[str, Any],
        set_on_insert_fields: Mapping[str, Any],
    ) -> UpsertResult: ...

    def exists_by_hash(self, row_hash: str) -> bool: ...

    def insert_if_hash_absent(self, document: Mapping[str, Any]) -> bool: ...

    def insert_many_if_absent(self, documents: Sequence[Mapping[str, Any]]) -> list[bool]: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


@dataclass
class MemoryRecordSink:
    """Dict-backed sink: `records` keyed by identifier, `ledger` keyed by row hash."""
    records: dict[str, dict[str, Any]] = field(default_factory=dict)
    ledger: dict[str, dict[str, Any]] = field(default_factory=dict)

    def upsert_by_identifier(
        self,
        identifier: str,
        set_fields: Mapping[str, Any],
        set_on_insert_fields: Mapping[str, Any],
    ) -> UpsertResult:
        existing = self.records.get(identifier)
        if existing is None:
            doc = dict(set_on_insert_fields)
            doc.update(set_fields)
            doc["identifier"] = identifier
            self.records[identifier] = doc
            return UpsertResult(inserted=True, modified=False)
        before = dict(existing)
        existing.update(set_fields)
        return UpsertResult(inserted=False, modified=existing != before)

    def exists_by_hash(self, row_hash: str) -> bool:
        return row_hash in self.ledger

    def insert_if_hash_absent(self, document: Mapping[str, Any]) -> bool:
        row_hash = document.get("row_hash")
        if not row_hash:
            raise SinkError("document has no row_hash")
        if row_hash in self.ledger:
            return False
        self.ledger[row_hash] = dict(document)
        return True

    def insert_many_if_absent(self, documents: Sequence[Mapping[str, Any]]) -> list[bool]:
        return [self.insert_if_hash_absent(doc) for doc in documents]

    # writes are immediate; nothing to commit or undo
    def commit(self) -> None:
        pass

    def rollback(self) -> None:
        pass
