from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import TypeVar

from ..models.document_group import DocumentGroup

"""Group document lines by document number (first-seen order)."""

__all__ = [
    "group_documents",
]

LineT = TypeVar("LineT")


def group_documents(
    lines: Iterable[LineT],
    key: Callable[[LineT], str] = lambda line: line.document_number,  # type: ignore[attr-defined]
) -> list[DocumentGroup[LineT]]:
    groups: dict[str, list[LineT]] = {}
    for line in lines:
        groups.setdefault(key(line), []).append(line)
    return [DocumentGroup(document_number=number, lines=tuple(members)) for number, members in groups.items()]
