from __future__ import annotations

import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..csvfile.columns import AliasTable, ColumnResolver
from ..models.document_group import DocumentGroup
from ..models.raw_row import RawRow
from ..store.base import StoredRecord
from ..validation.rows import RowCheck, RowValidationError, validate_row

"""Import kind definitions.

An import kind bundles everything the orchestrator needs for one kind of
spreadsheet: alias table, required fields, validation checks and a builder
that turns a validated draft into the kind's typed record. Two variants:

- FlatKind: every row is an independent record that is itself the entity
  being reconciled (donors, companies, partners)
- GroupedKind: rows are document lines folded into parent + children and
  referencing a customer entity by name (sales orders, invoices)
"""

__all__ = [
    "DuplicatePolicy",
    "EntitySpec",
    "ImportKind",
    "FlatKind",
    "GroupedKind",
    "fallback_identifier",
]


class DuplicatePolicy(Enum):
    """What to do with a row whose entity already exists.

    - SKIP: leave the existing record alone, count a duplicate
    - MERGE: update existing fields with incoming non-empty values
    """
    SKIP = "skip"
    MERGE = "merge"


def fallback_identifier(prefix: str) -> str:
    """Generate a unique secondary identifier (``CUST-1a2b3c4d5e6f``)."""
    return f"{prefix}-{uuid.uuid4().hex[:12].upper()}"


@dataclass(frozen=True)
class EntitySpec:
    """How a referenced entity is found in the store.

    ``key_of`` gives the EntityKey of an incoming record or line and
    ``lookup_value`` the value queried against ``match_fields`` (the key
    itself unless set). ``stored_keys`` maps a stored record back to every
    EntityKey it answers to.
    """
    table: str
    match_fields: tuple[str, ...]
    stored_keys: Callable[[StoredRecord], list[str]]
    key_of: Callable[[Any], str] = lambda item: item.key
    lookup_value: Callable[[Any], str] | None = None
    casefold: bool = False

    def query_value(self, item: Any) -> str:
        if self.lookup_value is None:
            return self.key_of(item)
        return self.lookup_value(item)


@dataclass(frozen=True, kw_only=True)
class ImportKind:
    name: str
    aliases: AliasTable
    required: tuple[str, ...]
    build: Callable[[Mapping[str, str], int], Any]
    email_fields: tuple[str, ...] = ()
    checks: tuple[RowCheck, ...] = ()
    derive: Callable[[dict[str, str]], None] | None = None
    template: str = ""

    @property
    def grouped(self) -> bool:
        return False

    def parse_row(self, row: RawRow, resolver: ColumnResolver) -> Any:
        """Project, validate and build one row.

        Raises
        ------
        RowValidationError: first missing or malformed field
        """
        draft = resolver.project(row)
        if self.derive is not None:
            self.derive(draft)
        error = validate_row(draft, self.required, self.email_fields, self.checks)
        if error is not None:
            raise RowValidationError(error)
        return self.build(draft, row.row_number)


@dataclass(frozen=True, kw_only=True)
class FlatKind(ImportKind):
    entity: EntitySpec
    policy: DuplicatePolicy = DuplicatePolicy.SKIP
    # 既存レコード一致時にマージ対象とする列
    merge_fields: tuple[str, ...] = ()


@dataclass(frozen=True, kw_only=True)
class GroupedKind(ImportKind):
    customer: EntitySpec
    new_customer: Callable[[Any], dict[str, Any]]
    parent_table: str
    child_table: str
    parent_fk: str
    document_label: str
    build_parent: Callable[[DocumentGroup, Any], dict[str, Any]]
    # children without the parent key; see children()
    build_children: Callable[[DocumentGroup, Mapping[str, Any]], list[dict[str, Any]]]
    item_lookup: EntitySpec | None = None

    @property
    def grouped(self) -> bool:
        return True

    def document_id(self, document_number: str) -> str:
        return f"{self.document_label} {document_number}"

    def children(self, group: DocumentGroup, parent_id: Any, item_ids: Mapping[str, Any]) -> list[dict[str, Any]]:
        """Child rows of ``group`` carrying ``parent_id`` under ``parent_fk``."""
        return [{self.parent_fk: parent_id, **child} for child in self.build_children(group, item_ids)]
