from __future__ import annotations

import re

from csv_reconcile.models import ImportResult, RowError
from csv_reconcile.services.summary import render_summary_line

SUMMARY_RE = re.compile(
    r"^SUMMARY kind=[a-z_]+ rows=\d+ success=\d+ failed=\d+ duplicates=\d+ errors=\d+$"
)


def test_render_summary_line():
    result = ImportResult(2, 1, 1, (RowError.for_row(3, "x"),))
    line = render_summary_line("donors", 3, result)
    assert line == "SUMMARY kind=donors rows=3 success=2 failed=1 duplicates=1 errors=1"
    assert SUMMARY_RE.match(line)


def test_render_summary_line_empty():
    assert render_summary_line("invoices", 0, ImportResult(0, 0, 0)) == (
        "SUMMARY kind=invoices rows=0 success=0 failed=0 duplicates=0 errors=0"
    )
