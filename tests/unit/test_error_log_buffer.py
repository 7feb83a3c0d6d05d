from __future__ import annotations

import re
from pathlib import Path

from csv_reconcile.logging.error_log import ErrorLogBuffer, export_errors
from csv_reconcile.models import ImportResult, RowError


def test_flush_writes_export_format(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path / "logs")
    buf.append(RowError.for_row(4, "Missing required field: email"))
    buf.extend([RowError.for_document("Order SO-9", "Customer not found: Acme", 7)])
    fp = buf.flush()
    assert fp is not None
    assert re.fullmatch(r"import-errors-\d{8}-\d{6}\.txt", fp.name)
    assert fp.read_text(encoding="utf-8").splitlines() == [
        "Row 4: Missing required field: email",
        "Order SO-9: Customer not found: Acme",
    ]
    assert len(buf) == 0


def test_flush_empty_creates_nothing(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path / "logs")
    assert buf.flush() is None
    assert not (tmp_path / "logs").exists()


def test_flush_appends_to_same_file(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path)
    buf.append(RowError.for_row(2, "a"))
    first = buf.flush()
    buf.append(RowError.for_row(3, "b"))
    assert buf.flush() == first
    assert first.read_text(encoding="utf-8") == "Row 2: a\nRow 3: b\n"


def test_export_errors_from_result(tmp_path: Path):
    result = ImportResult(0, 1, 0, (RowError.file_level("CSV file is empty"),))
    path = export_errors(result, tmp_path / "out" / "errors.txt")
    assert path.read_text(encoding="utf-8") == "CSV file is empty\n"


def test_export_errors_from_iterable(tmp_path: Path):
    path = export_errors([RowError.for_row(2, "x")], tmp_path / "e.txt")
    assert path.read_text(encoding="utf-8") == "Row 2: x\n"
