from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar

"""DocumentGroup model: one parent document plus its ordered line rows."""

__all__ = [
    "DocumentGroup",
]

LineT = TypeVar("LineT")


@dataclass(frozen=True)
class DocumentGroup(Generic[LineT]):
    """Lines sharing a document number, in source order.

    The first line supplies the parent header fields. Lines are never
    deduplicated: two lines for the same item are independent quantities.
    """
    document_number: str
    lines: Sequence[LineT]

    @property
    def header(self) -> LineT:
        return self.lines[0]

    def __len__(self) -> int:
        return len(self.lines)
