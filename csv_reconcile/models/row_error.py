from __future__ import annotations

import json
from dataclasses import asdict, dataclass

"""RowError model for per-row / per-document import errors.

A RowError never aborts a run; the orchestrator appends it to the result's
error list. ``row_number`` 0 is reserved for file-level (fatal) errors where
no data row applies.
"""

__all__ = [
    "RowError",
    "FILE_LEVEL_ROW",
]

FILE_LEVEL_ROW = 0


@dataclass(frozen=True)
class RowError:
    """Structured error for one CSV row or one document group.

    Attributes:
        row_number: 1-based header-adjusted row number (0 = file level)
        message: human readable description
        document_id: document number for grouped imports (order/invoice number)
    """
    row_number: int
    message: str
    document_id: str | None = None

    @staticmethod
    def for_row(row_number: int, message: str) -> RowError:
        return RowError(row_number=row_number, message=message)

    @staticmethod
    def for_document(document_id: str, message: str, row_number: int) -> RowError:
        return RowError(row_number=row_number, message=message, document_id=document_id)

    @staticmethod
    def file_level(message: str) -> RowError:
        return RowError(row_number=FILE_LEVEL_ROW, message=message)

    def to_line(self) -> str:
        """Render the error in the plain-text export format.

        ``"<DocumentId>: <message>"`` for grouped errors, ``"Row <n>: <message>"``
        for row errors and the bare message for file-level errors.
        """
        if self.document_id is not None:
            return f"{self.document_id}: {self.message}"
        if self.row_number == FILE_LEVEL_ROW:
            return self.message
        return f"Row {self.row_number}: {self.message}"

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)
