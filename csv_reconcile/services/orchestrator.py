from __future__ import annotations

import logging
import os
from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import Any

from ..config.loader import ImportConfig
from ..csvfile.columns import ColumnResolver
from ..csvfile.tokenizer import CsvData, FatalParseError, read_csv_file, read_csv_text
from ..kinds import FlatKind, GroupedKind, ImportKind, get_kind
from ..kinds.base import DuplicatePolicy
from ..models.document_group import DocumentGroup
from ..models.import_result import ImportResult, ResultAccumulator
from ..models.raw_row import RawRow
from ..models.row_error import RowError
from ..store.base import RecordStore, StoreError
from ..validation.rows import RowValidationError
from .batch_writer import DEFAULT_CHUNK_SIZE, BatchMetrics, BatchWriter, WriteUnit
from .entity_resolver import EntityResolutionError, EntityResolver, merge_fields
from .grouper import group_documents
from .progress import ProgressCallback, ProgressReporter

"""Import orchestration: one CSV file of one kind into the record store.

A run moves forward through PARSING -> RESOLVING -> GROUPING (grouped kinds
only) -> WRITING -> DONE. Fatal input problems (empty file, a header without
any required column) stop the run before anything is written; everything else
becomes a RowError on the result and the run carries on.

Flat kinds (donors, companies, partners): the unit is a row. Existing
entities are found with one bulk lookup, then skipped or merged per the
kind's duplicate policy; new records are inserted in chunks.

Grouped kinds (sales orders, invoices): the unit is a document. Customers are
resolved (bulk lookup + one bulk create), rows are grouped by document
number, and each document is written parent first, then its lines.
"""

__all__ = [
    "RunState",
    "ImportRun",
    "run_import",
]

logger = logging.getLogger(__name__)

Source = str | os.PathLike


class RunState(Enum):
    PARSING = 1
    RESOLVING = 2
    GROUPING = 3
    WRITING = 4
    DONE = 5


def _read_source(source: Source) -> CsvData:
    # str は CSV 本文, PathLike はファイルとして扱う
    if isinstance(source, os.PathLike):
        return read_csv_file(Path(source))
    return read_csv_text(source)


class ImportRun:
    """State for a single import run. Not reusable across runs."""

    def __init__(
        self,
        kind: ImportKind,
        store: RecordStore,
        *,
        progress: ProgressCallback | None = None,
        batch_size: int = DEFAULT_CHUNK_SIZE,
        metrics_callback: Callable[[BatchMetrics], None] | None = None,
    ) -> None:
        self.kind = kind
        self.store = store
        self.progress = progress
        self.writer = BatchWriter(store, chunk_size=batch_size, metrics_callback=metrics_callback)
        self.acc = ResultAccumulator()
        self.state = RunState.PARSING
        self.history: list[RunState] = [RunState.PARSING]

    def _enter(self, state: RunState) -> None:
        if state.value <= self.state.value:
            raise RuntimeError(f"invalid state transition {self.state.name} -> {state.name}")
        logger.debug("state %s -> %s", self.state.name, state.name)
        self.state = state
        self.history.append(state)

    def _parse(self, rows: list[RawRow], resolver: ColumnResolver) -> tuple[list[Any], list[RowError]]:
        parsed: list[Any] = []
        errors: list[RowError] = []
        for row in rows:
            try:
                parsed.append(self.kind.parse_row(row, resolver))
            except RowValidationError as e:
                errors.append(RowError.for_row(row.row_number, str(e)))
        return parsed, errors

    def execute(self, source: Source) -> ImportResult:
        """Run the import.

        Raises
        ------
        FatalParseError: empty file or no required column in the header
        """
        data = _read_source(source)
        resolver = ColumnResolver(data.header, self.kind.aliases)
        resolver.require_any(self.kind.required)
        missing = resolver.unbound(self.kind.required)
        if missing:
            logger.warning("kind=%s header lacks required columns: %s", self.kind.name, ", ".join(missing))
        rows = list(data.rows)

        if isinstance(self.kind, GroupedKind):
            self._run_grouped(self.kind, rows, resolver)
        elif isinstance(self.kind, FlatKind):
            self._run_flat(self.kind, rows, resolver)
        else:
            raise TypeError(f"unsupported import kind: {self.kind!r}")
        self._enter(RunState.DONE)
        return self.acc.freeze()

    # -- flat kinds -------------------------------------------------------

    def _run_flat(self, kind: FlatKind, rows: list[RawRow], resolver: ColumnResolver) -> None:
        acc = self.acc
        reporter = ProgressReporter(len(rows), self.progress)
        records, invalid = self._parse(rows, resolver)
        for error in invalid:
            acc.fail(error)
            reporter.advance(1, acc.success_count, acc.failure_count)

        self._enter(RunState.RESOLVING)
        entities = EntityResolver(self.store, kind.entity)
        try:
            entities.prefetch(records)
        except StoreError as e:
            logger.warning("lookup failed table=%s: %s", kind.entity.table, e)
            for record in records:
                acc.fail(RowError.for_row(record.row_number, f"Lookup failed: {e}"))
                reporter.advance(1, acc.success_count, acc.failure_count)
            records = []

        inserts: dict[str, WriteUnit] = {}
        updates: dict[Any, WriteUnit] = {}
        for record in records:
            key = kind.entity.key_of(record)
            existing = entities.existing(key)
            if existing is not None:
                if kind.policy is DuplicatePolicy.SKIP:
                    acc.succeed(duplicate=True)
                    reporter.advance(1, acc.success_count, acc.failure_count)
                    continue
                unit = updates.get(existing["id"])
                if unit is None:
                    unit = updates[existing["id"]] = WriteUnit(rows=[], payload={}, record_id=existing["id"])
                unit.payload.update(merge_fields({**existing, **unit.payload}, record.to_store(), kind.merge_fields))
                unit.rows.append(record.row_number)
                unit.duplicates += 1
            elif key in inserts:
                # 同一ファイル内の重複は最初の行と同じ書き込み結果になる
                unit = inserts[key]
                if kind.policy is DuplicatePolicy.MERGE:
                    unit.payload.update(merge_fields(unit.payload, record.to_store(), kind.merge_fields))
                unit.rows.append(record.row_number)
                unit.duplicates += 1
            else:
                inserts[key] = WriteUnit(rows=[record.row_number], payload=record.to_store())

        self._enter(RunState.WRITING)
        pending_updates = []
        for unit in updates.values():
            if unit.payload:
                pending_updates.append(unit)
            else:
                # 変更なし: 書き込み不要
                acc.succeed(len(unit.rows), duplicate=True)
                reporter.advance(len(unit.rows), acc.success_count, acc.failure_count)

        for outcome in self.writer.update_chunks(kind.entity.table, pending_updates):
            self._settle_chunk(outcome.units, outcome.error)
            reporter.advance(outcome.row_count, acc.success_count, acc.failure_count)
        for outcome in self.writer.insert_chunks(kind.entity.table, list(inserts.values())):
            self._settle_chunk(outcome.units, outcome.error)
            reporter.advance(outcome.row_count, acc.success_count, acc.failure_count)

        reporter.finish(acc.success_count, acc.failure_count)

    def _settle_chunk(self, units: Any, error: str | None) -> None:
        for unit in units:
            if error is None:
                fresh = len(unit.rows) - unit.duplicates
                if fresh:
                    self.acc.succeed(fresh)
                if unit.duplicates:
                    self.acc.succeed(unit.duplicates, duplicate=True)
                continue
            for row_number in unit.rows:
                self.acc.fail(RowError.for_row(row_number, error))

    # -- grouped kinds ----------------------------------------------------

    def _run_grouped(self, kind: GroupedKind, rows: list[RawRow], resolver: ColumnResolver) -> None:
        acc = self.acc
        lines, invalid = self._parse(rows, resolver)
        for error in invalid:
            acc.fail(error)

        self._enter(RunState.RESOLVING)
        customers = EntityResolver(self.store, kind.customer)
        lookup_error: str | None = None
        try:
            customers.prefetch(lines)
        except StoreError as e:
            logger.warning("customer lookup failed: %s", e)
            lookup_error = f"Customer lookup failed: {e}"
        if lookup_error is None:
            existing_rows = sum(1 for line in lines if kind.customer.key_of(line) in customers.prefetched)
            acc.mark_duplicates(existing_rows)
            try:
                customers.create_missing(lines, kind.new_customer)
            except StoreError as e:
                logger.warning("customer creation failed: %s", e)
                acc.note(RowError.file_level(f"Error creating customers: {e}"))

        item_ids: dict[str, Any] = {}
        if kind.item_lookup is not None and lines:
            items = EntityResolver(self.store, kind.item_lookup)
            try:
                items.prefetch(lines)
                item_ids = items.cache.ids()
            except StoreError as e:
                logger.warning("item lookup failed table=%s: %s", kind.item_lookup.table, e)

        self._enter(RunState.GROUPING)
        groups = group_documents(lines)

        self._enter(RunState.WRITING)
        reporter = ProgressReporter(len(groups), self.progress)
        for group in groups:
            self._write_group(kind, group, customers, lookup_error, item_ids)
            reporter.advance(1, acc.success_count, acc.failure_count)
        reporter.finish(acc.success_count, acc.failure_count)

    def _write_group(
        self,
        kind: GroupedKind,
        group: DocumentGroup,
        customers: EntityResolver,
        lookup_error: str | None,
        item_ids: dict[str, Any],
    ) -> None:
        document_id = kind.document_id(group.document_number)
        row_number = group.header.row_number
        if lookup_error is not None:
            self.acc.fail(RowError.for_document(document_id, lookup_error, row_number))
            return
        try:
            customer_id = customers.resolve(group.header)
        except EntityResolutionError as e:
            self.acc.fail(RowError.for_document(document_id, str(e), row_number))
            return

        outcome = self.writer.write_document(
            kind.parent_table,
            kind.build_parent(group, customer_id),
            kind.child_table,
            lambda parent_id: kind.children(group, parent_id, item_ids),
        )
        if not outcome.ok:
            self.acc.fail(RowError.for_document(document_id, outcome.parent_error or "", row_number))
            return
        self.acc.succeed()
        if outcome.children_error is not None:
            self.acc.note(RowError.for_document(document_id, f"Items: {outcome.children_error}", row_number))


def run_import(
    kind: ImportKind | str,
    source: Source,
    store: RecordStore,
    *,
    progress: ProgressCallback | None = None,
    config: ImportConfig | None = None,
    raise_on_fatal: bool = False,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> ImportResult:
    """Import one CSV source of ``kind`` into ``store``.

    Args:
        kind: import kind or its name (``donors``, ``sales_orders``, ...)
        source: CSV text (str) or a path to a CSV file (PathLike)
        store: backing RecordStore
        progress: ``(current, total, successful, failed)`` callback
        config: batch size and per-kind overrides
        raise_on_fatal: re-raise FatalParseError instead of returning it as
            a single file-level error
        metrics_callback: receives BatchMetrics for every store write call

    Returns:
        ImportResult; the only value handed back to callers
    """
    config = config or ImportConfig()
    if isinstance(kind, str):
        kind = get_kind(kind, config.kind(kind))
    run = ImportRun(
        kind,
        store,
        progress=progress,
        batch_size=config.batch_size,
        metrics_callback=metrics_callback,
    )
    try:
        result = run.execute(source)
    except FatalParseError as e:
        if raise_on_fatal:
            raise
        logger.error("kind=%s import aborted: %s", kind.name, e)
        return ImportResult(0, 0, 0, (RowError.file_level(str(e)),))
    logger.info(
        "kind=%s success=%d failed=%d duplicates=%d",
        kind.name,
        result.success_count,
        result.failure_count,
        result.duplicate_count,
    )
    return result
