from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from ..store.base import RecordStore, StoreError

"""Batch writer: chunked store writes with per-chunk failure isolation.

Flat records are written in chunks (default 50) with one store call per
chunk. A failing chunk is reported back with its error and the remaining
chunks still run; there is no transaction spanning chunks, so committed
chunks stay committed.

Documents are written parent first, then all of their children in one call
carrying the parent id. A failed children call leaves the parent in place.
"""

__all__ = [
    "DEFAULT_CHUNK_SIZE",
    "BatchMetrics",
    "WriteUnit",
    "ChunkOutcome",
    "DocumentOutcome",
    "BatchWriter",
]

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 50


@dataclass(frozen=True)
class BatchMetrics:
    """Timing for a single store write call."""
    operation: str  # insert_records / update_records / insert_parent
    table: str
    batch_size: int
    elapsed_seconds: float
    start_time: float  # time.time()
    end_time: float


@dataclass
class WriteUnit:
    """One record to write and the source rows folded into it.

    ``record_id`` is set for updates of an existing record.
    """
    rows: list[int]
    payload: dict[str, Any]
    record_id: Any = None
    duplicates: int = 0  # rows reconciled against an existing or earlier record


@dataclass(frozen=True)
class ChunkOutcome:
    units: Sequence[WriteUnit]
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def row_count(self) -> int:
        return sum(len(unit.rows) for unit in self.units)


@dataclass(frozen=True)
class DocumentOutcome:
    parent_id: Any = None
    parent_error: str | None = None
    children_error: str | None = None
    children_written: int = 0

    @property
    def ok(self) -> bool:
        return self.parent_error is None


@dataclass
class BatchWriter:
    store: RecordStore
    chunk_size: int = DEFAULT_CHUNK_SIZE
    metrics_callback: Callable[[BatchMetrics], None] | None = None
    calls: int = field(default=0, init=False)

    def __post_init__(self) -> None:
        if self.chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")

    def _timed(self, operation: str, table: str, size: int, fn: Callable[[], Any]) -> Any:
        self.calls += 1
        start_time = time.time()
        try:
            return fn()
        finally:
            end_time = time.time()
            if self.metrics_callback is not None:
                self.metrics_callback(
                    BatchMetrics(
                        operation=operation,
                        table=table,
                        batch_size=size,
                        elapsed_seconds=end_time - start_time,
                        start_time=start_time,
                        end_time=end_time,
                    )
                )

    def _chunks(self, units: Sequence[WriteUnit]) -> Iterator[Sequence[WriteUnit]]:
        for start in range(0, len(units), self.chunk_size):
            yield units[start:start + self.chunk_size]

    def insert_chunks(self, table: str, units: Sequence[WriteUnit]) -> Iterator[ChunkOutcome]:
        """Insert ``units`` chunk by chunk, yielding one outcome per chunk."""
        for index, chunk in enumerate(self._chunks(units), start=1):
            payloads = [unit.payload for unit in chunk]
            try:
                self._timed("insert_records", table, len(chunk), lambda: self.store.insert_records(table, payloads))
            except StoreError as e:
                logger.warning("insert chunk %d failed table=%s rows=%d: %s", index, table, len(chunk), e)
                yield ChunkOutcome(units=chunk, error=str(e))
                continue
            logger.debug("insert chunk %d ok table=%s rows=%d", index, table, len(chunk))
            yield ChunkOutcome(units=chunk)

    def update_chunks(self, table: str, units: Sequence[WriteUnit]) -> Iterator[ChunkOutcome]:
        """Apply merge updates chunk by chunk, yielding one outcome per chunk."""
        for index, chunk in enumerate(self._chunks(units), start=1):
            updates = [(unit.record_id, unit.payload) for unit in chunk]
            try:
                self._timed("update_records", table, len(chunk), lambda: self.store.update_records(table, updates))
            except StoreError as e:
                logger.warning("update chunk %d failed table=%s rows=%d: %s", index, table, len(chunk), e)
                yield ChunkOutcome(units=chunk, error=str(e))
                continue
            logger.debug("update chunk %d ok table=%s rows=%d", index, table, len(chunk))
            yield ChunkOutcome(units=chunk)

    def write_document(
        self,
        parent_table: str,
        parent: Mapping[str, Any],
        child_table: str,
        build_children: Callable[[Any], list[dict[str, Any]]],
    ) -> DocumentOutcome:
        """Insert one parent, then its children with the returned parent id."""
        try:
            parent_id = self._timed("insert_parent", parent_table, 1, lambda: self.store.insert_parent(parent_table, parent))
        except StoreError as e:
            logger.warning("parent insert failed table=%s: %s", parent_table, e)
            return DocumentOutcome(parent_error=str(e))

        children = build_children(parent_id)
        if not children:
            return DocumentOutcome(parent_id=parent_id)
        try:
            written = self._timed(
                "insert_records", child_table, len(children), lambda: self.store.insert_records(child_table, children)
            )
        except StoreError as e:
            logger.warning("children insert failed table=%s parent=%s: %s", child_table, parent_id, e)
            return DocumentOutcome(parent_id=parent_id, children_error=str(e))
        return DocumentOutcome(parent_id=parent_id, children_written=written)
