# Shared pytest fixtures
from __future__ import annotations
import tempfile
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

import pytest

from csv_reconcile.logging.init import reset_logging
from csv_reconcile.store.base import StoreError
from csv_reconcile.store.memory import MemoryRecordStore


class FlakyStore(MemoryRecordStore):
    """MemoryRecordStore whose n-th call of an operation raises StoreError.

    ``fail_on={"insert_records": {2}}`` fails the second insert_records call.
    """
    def __init__(self, tables=None, fail_on: Mapping[str, set[int]] | None = None) -> None:
        super().__init__(tables)
        self.fail_on = {op: set(calls) for op, calls in (fail_on or {}).items()}
        self.counts: dict[str, int] = {}

    def _maybe_fail(self, op: str) -> None:
        self.counts[op] = self.counts.get(op, 0) + 1
        if self.counts[op] in self.fail_on.get(op, set()):
            raise StoreError(f"{op} call {self.counts[op]} rejected")

    def lookup(self, table, match_fields, values, *, casefold=False):
        self._maybe_fail("lookup")
        return super().lookup(table, match_fields, values, casefold=casefold)

    def create_entities(self, table: str, records: Sequence[Mapping[str, Any]]):
        self._maybe_fail("create_entities")
        return super().create_entities(table, records)

    def insert_records(self, table: str, records: Sequence[Mapping[str, Any]]) -> int:
        self._maybe_fail("insert_records")
        return super().insert_records(table, records)

    def insert_parent(self, table: str, record: Mapping[str, Any]) -> Any:
        self._maybe_fail("insert_parent")
        return super().insert_parent(table, record)

    def update_records(self, table: str, updates) -> int:
        self._maybe_fail("update_records")
        return super().update_records(table, updates)


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        monkeypatch.chdir(p)
        yield p

@pytest.fixture()
def sample_config_yaml() -> str:
    return """batch_size: 50
error_log_dir: ./logs
kinds:
  donors:
    match_alternate_email: true
  companies:
    skip_duplicates: true
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""

@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg

@pytest.fixture()
def write_csv(temp_workdir: Path):
    def _write(name: str, text: str) -> Path:
        path = temp_workdir / "data" / name
        path.write_text(text, encoding="utf-8")
        return path
    return _write

@pytest.fixture()
def store() -> MemoryRecordStore:
    return MemoryRecordStore()

@pytest.fixture()
def progress_calls() -> list[tuple[int, int, int, int]]:
    return []

@pytest.fixture()
def record_progress(progress_calls):
    def _record(current: int, total: int, successful: int, failed: int) -> None:
        progress_calls.append((current, total, successful, failed))
    return _record

@pytest.fixture(autouse=True)
def _clean_logging():
    reset_logging()
    yield
    reset_logging()

@pytest.fixture()
def flaky_store():
    """Factory: ``flaky_store(tables, fail_on={"insert_records": {2}})``."""
    def _make(tables=None, fail_on=None) -> FlakyStore:
        return FlakyStore(tables, fail_on=fail_on)
    return _make
