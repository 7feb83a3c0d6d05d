from __future__ import annotations

from types import SimpleNamespace

import pytest

from csv_reconcile.kinds.donors import donor_entity
from csv_reconcile.kinds.sales_orders import CUSTOMER_ENTITY
from csv_reconcile.services.entity_resolver import EntityCache, EntityResolutionError, EntityResolver, merge_fields
from csv_reconcile.store import MemoryRecordStore, StoreError


def line(name):
    return SimpleNamespace(customer_name=name)


def test_cache_is_monotone():
    cache = EntityCache()
    assert cache.add("acme", {"id": 1})
    assert not cache.add("acme", {"id": 2})
    assert cache.id_of("acme") == 1
    assert cache.ids() == {"acme": 1}
    assert "acme" in cache and len(cache) == 1


def test_prefetch_single_lookup_and_create_once():
    store = MemoryRecordStore({"customers": [{"id": "c1", "customer_name": "Acme"}]})
    resolver = EntityResolver(store, CUSTOMER_ENTITY)
    lines = [line("Acme"), line("Beta"), line("Beta"), line("Gamma")]

    assert resolver.prefetch(lines) == 1
    assert resolver.prefetched == {"Acme"}
    assert resolver.create_missing(lines, lambda l: {"customer_name": l.customer_name}) == []
    # already attempted: nothing new to create
    assert resolver.create_missing(lines, lambda l: {"customer_name": l.customer_name}) == []

    assert [op for op, _ in store.calls] == ["lookup", "create_entities"]
    assert len(store.rows("customers")) == 3
    assert resolver.resolve(line("Acme")) == "c1"
    assert resolver.resolve(line("Beta")) == store.rows("customers")[1]["id"]


def test_resolve_unknown_customer():
    resolver = EntityResolver(MemoryRecordStore(), CUSTOMER_ENTITY)
    with pytest.raises(EntityResolutionError, match="Customer not found: Nobody"):
        resolver.resolve(line("Nobody"))


def test_create_failure_is_not_retried():
    class FailingStore(MemoryRecordStore):
        def create_entities(self, table, records):
            self.calls.append(("create_entities", table))
            raise StoreError("rejected")

    store = FailingStore()
    resolver = EntityResolver(store, CUSTOMER_ENTITY)
    with pytest.raises(StoreError):
        resolver.create_missing([line("Acme")], lambda l: {"customer_name": l.customer_name})
    assert resolver.create_missing([line("Acme")], lambda l: {"customer_name": l.customer_name}) == []
    assert store.calls.count(("create_entities", "customers")) == 1


def test_primary_email_match_preferred_over_alternate():
    store = MemoryRecordStore({"donors": [
        {"id": "alt", "email": "bob@example.org", "alternate_email": "ann@example.org"},
        {"id": "primary", "email": "ann@example.org", "alternate_email": None},
    ]})
    resolver = EntityResolver(store, donor_entity())
    resolver.prefetch([SimpleNamespace(key="ann@example.org")])
    assert resolver.existing("ann@example.org")["id"] == "primary"
    assert resolver.existing("bob@example.org")["id"] == "alt"


def test_prefetch_nothing_to_do():
    store = MemoryRecordStore()
    assert EntityResolver(store, CUSTOMER_ENTITY).prefetch([]) == 0
    assert store.calls == []


def test_merge_fields_prefers_incoming_non_empty():
    existing = {"id": 1, "name": "Ann", "phone": "555-0100", "city": "Springfield"}
    incoming = {"name": "Ann Lee", "phone": None, "city": "Springfield", "state": ""}
    assert merge_fields(existing, incoming, ["name", "phone", "city", "state"]) == {"name": "Ann Lee"}
