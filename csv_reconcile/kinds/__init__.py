"""Import kinds and the registry used by the CLI and the orchestrator."""

from __future__ import annotations

import dataclasses
from typing import TYPE_CHECKING

from ..csvfile.columns import merge_alias_tables
from .base import DuplicatePolicy, EntitySpec, FlatKind, GroupedKind, ImportKind, fallback_identifier
from .companies import COMPANIES
from .donors import DONORS, donor_entity
from .invoices import INVOICES
from .partners import PARTNERS
from .sales_orders import SALES_ORDERS

if TYPE_CHECKING:
    from ..config.loader import KindConfig

__all__ = [
    "DuplicatePolicy",
    "EntitySpec",
    "FlatKind",
    "GroupedKind",
    "ImportKind",
    "KINDS",
    "UnknownKindError",
    "fallback_identifier",
    "get_kind",
    "template_csv",
]

KINDS: dict[str, ImportKind] = {
    kind.name: kind
    for kind in (DONORS, SALES_ORDERS, INVOICES, COMPANIES, PARTNERS)
}


class UnknownKindError(KeyError):
    pass


def get_kind(name: str, kind_config: KindConfig | None = None) -> ImportKind:
    """Return the import kind ``name`` with per-kind config overrides applied."""
    try:
        kind = KINDS[name]
    except KeyError:
        raise UnknownKindError(f"unknown import kind: {name} (expected one of {', '.join(KINDS)})") from None
    if kind_config is None:
        return kind

    changes: dict = {}
    if kind_config.aliases:
        changes["aliases"] = merge_alias_tables(kind.aliases, kind_config.aliases)
    if isinstance(kind, FlatKind):
        if kind_config.skip_duplicates is not None:
            changes["policy"] = DuplicatePolicy.SKIP if kind_config.skip_duplicates else DuplicatePolicy.MERGE
        if kind.name == "donors" and kind_config.match_alternate_email is not None:
            changes["entity"] = donor_entity(kind_config.match_alternate_email)
    return dataclasses.replace(kind, **changes) if changes else kind


def template_csv(name: str) -> str:
    """Sample CSV (header plus example rows) for the given kind."""
    return get_kind(name).template
