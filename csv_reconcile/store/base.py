from __future__ import annotations

from collections.abc import Collection, Mapping, Sequence
from typing import Any, Protocol

"""Record store boundary.

The import engine consumes the backing store only through this narrow
interface:
- lookup: bulk fetch of existing entities whose match fields hold any of the
  given natural keys
- create_entities: bulk insert returning the created rows (with ``id``)
- insert_records: bulk insert of independent flat records
- insert_parent: insert one parent record and return its id (children then go
  through insert_records)
- update_records: field-level updates for the merge policy

The store offers no transaction spanning calls. Each call either fully
succeeds or raises StoreError.
"""

__all__ = [
    "StoreError",
    "StoredRecord",
    "RecordStore",
]

StoredRecord = dict[str, Any]  # always carries "id"


class StoreError(Exception):
    """A store call failed (network, constraint violation, driver error)."""


class RecordStore(Protocol):
    def lookup(
        self,
        table: str,
        match_fields: Sequence[str],
        values: Collection[str],
        *,
        casefold: bool = False,
    ) -> list[StoredRecord]:
        ...

    def create_entities(self, table: str, records: Sequence[Mapping[str, Any]]) -> list[StoredRecord]:
        ...

    def insert_records(self, table: str, records: Sequence[Mapping[str, Any]]) -> int:
        ...

    def insert_parent(self, table: str, record: Mapping[str, Any]) -> Any:
        ...

    def update_records(self, table: str, updates: Sequence[tuple[Any, Mapping[str, Any]]]) -> int:
        ...
