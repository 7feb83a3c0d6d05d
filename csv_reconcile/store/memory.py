from __future__ import annotations

import copy
import uuid
from collections.abc import Collection, Mapping, Sequence
from typing import Any

from .base import StoredRecord, StoreError

"""In-memory RecordStore.

Used for dry runs (CLI mock mode when no database is reachable) and by the
test-suite. Tables are plain lists of dicts; ids are uuid4 strings. Calls are
atomic per call like the real store: a failing call leaves no partial rows.
"""

__all__ = [
    "MemoryRecordStore",
]


class MemoryRecordStore:
    def __init__(self, tables: Mapping[str, Sequence[Mapping[str, Any]]] | None = None) -> None:
        self.tables: dict[str, list[StoredRecord]] = {}
        self.calls: list[tuple[str, str]] = []  # (operation, table) 呼び出し履歴
        for table, rows in (tables or {}).items():
            for row in rows:
                record = dict(row)
                record.setdefault("id", self._new_id())
                self.tables.setdefault(table, []).append(record)

    @staticmethod
    def _new_id() -> str:
        return str(uuid.uuid4())

    def rows(self, table: str) -> list[StoredRecord]:
        return self.tables.get(table, [])

    def _stored(self, table: str, record: Mapping[str, Any]) -> StoredRecord:
        stored = dict(record)
        stored.setdefault("id", self._new_id())
        return stored

    def lookup(
        self,
        table: str,
        match_fields: Sequence[str],
        values: Collection[str],
        *,
        casefold: bool = False,
    ) -> list[StoredRecord]:
        self.calls.append(("lookup", table))
        if casefold:
            wanted = {v.casefold() for v in values}
        else:
            wanted = set(values)
        found: list[StoredRecord] = []
        for record in self.rows(table):
            for field_name in match_fields:
                value = record.get(field_name)
                if value is None:
                    continue
                key = str(value).casefold() if casefold else str(value)
                if key in wanted:
                    found.append(copy.deepcopy(record))
                    break
        return found

    def create_entities(self, table: str, records: Sequence[Mapping[str, Any]]) -> list[StoredRecord]:
        self.calls.append(("create_entities", table))
        created = [self._stored(table, r) for r in records]
        self.tables.setdefault(table, []).extend(created)
        return [copy.deepcopy(r) for r in created]

    def insert_records(self, table: str, records: Sequence[Mapping[str, Any]]) -> int:
        self.calls.append(("insert_records", table))
        rows = [self._stored(table, r) for r in records]
        self.tables.setdefault(table, []).extend(rows)
        return len(rows)

    def insert_parent(self, table: str, record: Mapping[str, Any]) -> Any:
        self.calls.append(("insert_parent", table))
        stored = self._stored(table, record)
        self.tables.setdefault(table, []).append(stored)
        return stored["id"]

    def update_records(self, table: str, updates: Sequence[tuple[Any, Mapping[str, Any]]]) -> int:
        self.calls.append(("update_records", table))
        by_id = {r["id"]: r for r in self.rows(table)}
        missing = [record_id for record_id, _ in updates if record_id not in by_id]
        if missing:
            raise StoreError(f"{table}: records not found: {missing}")
        for record_id, changes in updates:
            by_id[record_id].update(changes)
        return len(updates)
