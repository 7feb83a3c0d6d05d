from __future__ import annotations

import re
from pathlib import Path

from csv_reconcile.cli.__main__ import main as cli_main
from csv_reconcile.models import ImportResult, RowError
from csv_reconcile.services.summary import render_summary_line

"""SUMMARY 行フォーマット契約テスト."""

SUMMARY_PATTERN = re.compile(
    r"^SUMMARY\s+kind=([a-z_]+)\s+rows=([0-9]+)\s+success=([0-9]+)\s+failed=([0-9]+)\s+"
    r"duplicates=([0-9]+)\s+errors=([0-9]+)$"
)


def test_summary_pattern_example_line():
    line = "SUMMARY kind=donors rows=3 success=2 failed=1 duplicates=1 errors=1"
    m = SUMMARY_PATTERN.match(line)
    assert m, "SUMMARY line should match contract regex"
    assert m.group(1) == "donors"


def test_rendered_line_matches_pattern():
    result = ImportResult(2, 1, 1, (RowError.for_row(3, "Missing required field: email"),))
    assert SUMMARY_PATTERN.match(render_summary_line("donors", 3, result))


def test_cli_prints_exactly_one_summary_line(temp_workdir: Path, write_config, write_csv, monkeypatch, capsys):
    monkeypatch.setenv("DISABLE_DB_CONNECT", "1")
    csv_path = write_csv("partners.csv", "Name,Postal Code\nA,1\nA,1\nB,\n")
    cli_main(["partners", str(csv_path)])
    lines = [line for line in capsys.readouterr().out.splitlines() if line.startswith("SUMMARY")]
    assert len(lines) == 1
    m = SUMMARY_PATTERN.match(lines[0])
    assert m
    assert m.groups() == ("partners", "3", "2", "1", "1", "1")


def test_cli_logs_batch_stats(temp_workdir: Path, write_config, write_csv, monkeypatch, capsys):
    monkeypatch.setenv("DISABLE_DB_CONNECT", "1")
    csv_path = write_csv("partners.csv", "Name,Postal Code\nA,1\nB,2\n")
    cli_main(["partners", str(csv_path)])
    assert re.search(r"INFO batches=1 avg=[0-9.]+s p95=[0-9.]+s", capsys.readouterr().out)
