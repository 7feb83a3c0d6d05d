from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from ..kinds.base import EntitySpec
from ..store.base import RecordStore, StoredRecord, StoreError

"""Entity resolution: natural keys -> store identifiers.

One bulk lookup per run fills an EntityCache; keys still missing can be
created in a single bulk call. The cache only grows, so a key is created at
most once per run and a key resolved once keeps its identifier.
"""

__all__ = [
    "EntityResolutionError",
    "EntityCache",
    "EntityResolver",
    "merge_fields",
]

logger = logging.getLogger(__name__)


class EntityResolutionError(Exception):
    """Raised when a referenced entity is neither stored nor creatable."""


class EntityCache:
    """EntityKey -> stored record. Monotone: entries are never replaced."""

    def __init__(self) -> None:
        self._records: dict[str, StoredRecord] = {}

    def add(self, key: str, record: StoredRecord) -> bool:
        if key in self._records:
            return False
        self._records[key] = record
        return True

    def add_record(self, record: StoredRecord, keys: list[str], position: int | None = None) -> None:
        selected = keys if position is None else keys[position:position + 1]
        for key in selected:
            self.add(key, record)

    def get(self, key: str) -> StoredRecord | None:
        return self._records.get(key)

    def id_of(self, key: str) -> Any:
        record = self._records.get(key)
        return None if record is None else record.get("id")

    def ids(self) -> dict[str, Any]:
        return {key: record.get("id") for key, record in self._records.items()}

    def __contains__(self, key: object) -> bool:
        return key in self._records

    def __len__(self) -> int:
        return len(self._records)


class EntityResolver:
    def __init__(self, store: RecordStore, spec: EntitySpec) -> None:
        self.store = store
        self.spec = spec
        self.cache = EntityCache()
        self.prefetched: set[str] = set()
        self._attempted: set[str] = set()

    def _remember(self, records: list[StoredRecord]) -> None:
        # 主キー位置 (primary email 等) を優先して登録する
        key_lists = [(record, self.spec.stored_keys(record)) for record in records]
        depth = max((len(keys) for _, keys in key_lists), default=0)
        for position in range(depth):
            for record, keys in key_lists:
                self.cache.add_record(record, keys, position)

    def prefetch(self, items: Iterable[Any]) -> int:
        """Bulk-load every stored entity referenced by ``items``.

        Returns the number of distinct referenced keys found in the store.

        Raises
        ------
        StoreError: the lookup call failed
        """
        keys: dict[str, None] = {}
        values: dict[str, None] = {}
        for item in items:
            keys.setdefault(self.spec.key_of(item), None)
            values.setdefault(self.spec.query_value(item), None)
        if not values:
            return 0
        records = self.store.lookup(
            self.spec.table,
            self.spec.match_fields,
            list(values),
            casefold=self.spec.casefold,
        )
        self._remember(records)
        self.prefetched = {key for key in keys if key in self.cache}
        logger.debug(
            "lookup table=%s keys=%d found=%d", self.spec.table, len(keys), len(self.prefetched)
        )
        return len(self.prefetched)

    def create_missing(self, items: Iterable[Any], build: Callable[[Any], dict[str, Any]]) -> list[str]:
        """Create one entity per distinct unresolved key in a single store call.

        The first item carrying a key supplies the entity fields. Returns the
        keys that remain unresolved.

        Raises
        ------
        StoreError: the create call failed (keys stay unresolved and are not retried)
        """
        pending: dict[str, Any] = {}
        for item in items:
            key = self.spec.key_of(item)
            if key in self.cache or key in self._attempted or key in pending:
                continue
            pending[key] = item
        if not pending:
            return []
        self._attempted.update(pending)
        created = self.store.create_entities(self.spec.table, [build(item) for item in pending.values()])
        self._remember(created)
        logger.debug("created table=%s count=%d", self.spec.table, len(created))
        return [key for key in pending if key not in self.cache]

    def existing(self, key: str) -> StoredRecord | None:
        return self.cache.get(key)

    def resolve(self, item: Any) -> Any:
        """Return the store id for ``item``'s entity.

        Raises
        ------
        EntityResolutionError: the key is not in the cache
        """
        key = self.spec.key_of(item)
        record_id = self.cache.id_of(key)
        if record_id is None:
            raise EntityResolutionError(f"Customer not found: {key}")
        return record_id


def merge_fields(existing: Mapping[str, Any], incoming: Mapping[str, Any], fields: Iterable[str]) -> dict[str, Any]:
    """Changes that merging ``incoming`` into ``existing`` produces.

    Incoming non-empty values win; empty incoming values keep what is stored.
    Only fields whose value actually changes are returned.
    """
    changes: dict[str, Any] = {}
    for name in fields:
        value = incoming.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        if existing.get(name) != value:
            changes[name] = value
    return changes
