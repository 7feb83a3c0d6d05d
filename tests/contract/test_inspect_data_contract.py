from __future__ import annotations

from pathlib import Path

from csv_reconcile.cli.__main__ import _with_update_duplicates, main as cli_main
from csv_reconcile.config.loader import ImportConfig, KindConfig

"""--inspect-data / --update-duplicates CLI options."""


def test_inspect_data_prints_bindings(temp_workdir: Path, write_config, write_csv, capsys):
    csv_path = write_csv("donors.csv", "Full Name,Email Address,Notes\nAnn,ann@example.org,x\n")
    code = cli_main(["donors", str(csv_path), "--inspect-data"])
    out = capsys.readouterr().out
    assert code == 0
    assert "FILE: donors.csv kind=donors" in out
    assert "'email': 'Email Address'" in out
    assert "missing_required=[]" in out
    assert "row 2:" in out
    assert "SUMMARY" not in out


def test_inspect_data_reports_missing_required(temp_workdir: Path, write_csv, capsys):
    csv_path = write_csv("donors.csv", "Name\nAnn\n")
    code = cli_main(["donors", str(csv_path), "--inspect-data"])
    assert code == 0
    assert "missing_required=['email']" in capsys.readouterr().out


def test_update_duplicates_flag_switches_policy():
    cfg = ImportConfig(kinds={"companies": KindConfig(aliases={"customer_name": ["Org"]})})
    updated = _with_update_duplicates(cfg, "companies")
    assert updated.kind("companies").skip_duplicates is False
    assert updated.kind("companies").aliases == {"customer_name": ["Org"]}
    assert cfg.kind("companies").skip_duplicates is None
