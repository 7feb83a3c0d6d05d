from __future__ import annotations

import pytest

from csv_reconcile.services.batch_writer import BatchMetrics, BatchWriter, WriteUnit
from csv_reconcile.store import MemoryRecordStore


def units(n):
    return [WriteUnit(rows=[i + 2], payload={"n": i}) for i in range(n)]


def test_insert_chunks_isolates_failing_chunk(flaky_store):
    store = flaky_store(fail_on={"insert_records": {2}})
    writer = BatchWriter(store, chunk_size=50)
    outcomes = list(writer.insert_chunks("donors", units(250)))
    assert [o.ok for o in outcomes] == [True, False, True, True, True]
    assert outcomes[1].row_count == 50
    assert "insert_records call 2 rejected" in outcomes[1].error
    assert len(store.rows("donors")) == 200


def test_update_chunks():
    store = MemoryRecordStore({"donors": [{"id": "d1", "phone": None}]})
    writer = BatchWriter(store, chunk_size=10)
    [outcome] = list(writer.update_chunks("donors", [WriteUnit(rows=[2], payload={"phone": "555"}, record_id="d1")]))
    assert outcome.ok
    assert store.rows("donors")[0]["phone"] == "555"


def test_metrics_callback_per_call():
    captured: list[BatchMetrics] = []
    writer = BatchWriter(MemoryRecordStore(), chunk_size=2, metrics_callback=captured.append)
    list(writer.insert_chunks("partners", units(5)))
    assert [m.batch_size for m in captured] == [2, 2, 1]
    assert all(m.operation == "insert_records" and m.elapsed_seconds >= 0 for m in captured)
    assert writer.calls == 3


def test_invalid_chunk_size():
    with pytest.raises(ValueError):
        BatchWriter(MemoryRecordStore(), chunk_size=0)


def test_write_document_parent_then_children():
    store = MemoryRecordStore()
    writer = BatchWriter(store)
    outcome = writer.write_document(
        "sales_orders", {"sales_order_number": "SO-1"}, "sales_order_items",
        lambda pid: [{"sales_order_id": pid, "item_name": "a"}, {"sales_order_id": pid, "item_name": "b"}],
    )
    assert outcome.ok and outcome.children_written == 2
    assert all(r["sales_order_id"] == outcome.parent_id for r in store.rows("sales_order_items"))


def test_write_document_parent_failure_skips_children(flaky_store):
    store = flaky_store(fail_on={"insert_parent": {1}})
    outcome = BatchWriter(store).write_document("invoices", {}, "invoice_items", lambda pid: [{"x": 1}])
    assert not outcome.ok
    assert store.rows("invoice_items") == []


def test_write_document_children_failure_leaves_orphan_parent(flaky_store):
    store = flaky_store(fail_on={"insert_records": {1}})
    outcome = BatchWriter(store).write_document("invoices", {"n": 1}, "invoice_items", lambda pid: [{"x": 1}])
    assert outcome.ok
    assert outcome.children_error == "insert_records call 1 rejected"
    assert len(store.rows("invoices")) == 1
