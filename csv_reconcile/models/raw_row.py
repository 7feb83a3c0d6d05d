from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

"""RawRow model for the CSV import engine.

A RawRow is one data line of a CSV file after tokenizing: header label (as it
appeared in the file) -> raw cell string. Row numbers are 1-based and
header-adjusted, so the first data row is row 2.
"""

__all__ = [
    "RawRow",
]


@dataclass(frozen=True)
class RawRow:
    """Immutable header -> cell mapping for a single CSV data line.

    ``values`` is wrapped in a read-only proxy on construction so that later
    stages cannot mutate what the tokenizer produced.
    """
    row_number: int  # 1-based, header row = 1
    values: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.values, MappingProxyType):
            object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    def get(self, header: str, default: str | None = None) -> str | None:
        return self.values.get(header, default)

    def __contains__(self, header: object) -> bool:
        return header in self.values
