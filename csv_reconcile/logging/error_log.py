from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path

from ..models.import_result import ImportResult
from ..models.row_error import RowError

"""Error log buffering and export.

The plain-text format is one error per line:
- ``Row <n>: <message>`` for row errors
- ``<DocumentId>: <message>`` for document errors (``Order SO-1: ...``)
- the bare message for file-level errors

ErrorLogBuffer collects RowErrors during a CLI run and writes them once to
``<log dir>/import-errors-YYYYMMDD-HHMMSS.txt`` (UTC).
"""

__all__ = [
    "ErrorLogBuffer",
    "export_errors",
    "LOGS_DIR",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


def export_errors(errors: ImportResult | Iterable[RowError], path: Path) -> Path:
    """Write ``errors`` (or a result's errors) to ``path`` in the export format."""
    items = errors.errors if isinstance(errors, ImportResult) else errors
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        for error in items:
            f.write(error.to_line() + "\n")
    return path


class ErrorLogBuffer:
    """In-memory buffer of RowErrors; flush appends them to the log file.

    The file path is fixed on first access; nothing is created while the
    buffer is empty.
    """
    def __init__(self, logs_dir: Path | None = None) -> None:
        self.logs_dir = logs_dir or LOGS_DIR
        self._records: list[RowError] = []
        self._file_path: Path | None = None

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self.logs_dir / f"import-errors-{stamp}.txt"
        return self._file_path

    def append(self, record: RowError) -> None:
        self._records.append(record)

    def extend(self, records: Iterable[RowError]) -> None:
        self._records.extend(records)

    def __len__(self) -> int:  # pragma: no cover (trivial)
        return len(self._records)

    def flush(self) -> Path | None:
        """Append buffered errors to the log file; None when there was nothing to write."""
        if not self._records:
            return None
        fp = self.file_path
        fp.parent.mkdir(parents=True, exist_ok=True)
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_line() + "\n")
        self._records.clear()
        return fp
