from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence

from ..models.raw_row import RawRow
from .tokenizer import FatalParseError

"""Column resolver: header labels -> canonical field names.

Each import kind ships an alias table (canonical field -> ordered candidate
header labels). For each canonical field every candidate present in this
file's header is kept in alias order (case-sensitive exact match, as
spreadsheet tools export them); per row the first non-empty one wins.
Unbound fields are absent from every row.
"""

__all__ = [
    "AliasTable",
    "MissingColumnsError",
    "ColumnResolver",
    "merge_alias_tables",
]

AliasTable = Mapping[str, Sequence[str]]


class MissingColumnsError(FatalParseError):
    """Raised when the header binds none of the required canonical fields."""


def merge_alias_tables(base: AliasTable, extra: AliasTable | None) -> dict[str, list[str]]:
    """Return ``base`` with ``extra`` candidates tried first for each field."""
    merged = {name: list(candidates) for name, candidates in base.items()}
    if not extra:
        return merged
    for name, candidates in extra.items():
        current = merged.get(name, [])
        front = [c for c in candidates if c not in current]
        merged[name] = front + [c for c in current if c not in front]
    return merged


class ColumnResolver:
    """Binds canonical fields to header labels for one file."""

    def __init__(self, header: Sequence[str], aliases: AliasTable) -> None:
        present = set(header)
        # field -> header labels present, in alias order
        self.candidates: dict[str, list[str]] = {}
        for field_name, labels in aliases.items():
            found = [label for label in labels if label in present]
            if found:
                self.candidates[field_name] = found
        self.bindings: dict[str, str] = {name: labels[0] for name, labels in self.candidates.items()}

    def is_bound(self, field_name: str) -> bool:
        return field_name in self.bindings

    def unbound(self, fields: Iterable[str]) -> list[str]:
        return [f for f in fields if f not in self.bindings]

    def require_any(self, required: Sequence[str]) -> None:
        """Fail fast when the header carries none of the required fields.

        A header that binds only some of them is accepted; the missing ones
        surface as per-row validation errors.
        """
        if required and not any(f in self.bindings for f in required):
            raise MissingColumnsError(
                f"header is missing all required columns: {', '.join(required)}"
            )

    def project(self, row: RawRow) -> dict[str, str]:
        """Build the unvalidated draft (canonical field -> stripped cell).

        A blank cell falls back to the next candidate column of the same field.
        """
        draft: dict[str, str] = {}
        for field_name, labels in self.candidates.items():
            value = ""
            for label in labels:
                value = (row.get(label) or "").strip()
                if value:
                    break
            draft[field_name] = value
        return draft
