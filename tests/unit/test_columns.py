from __future__ import annotations

import pytest

from csv_reconcile.csvfile.columns import ColumnResolver, MissingColumnsError, merge_alias_tables
from csv_reconcile.models.raw_row import RawRow

ALIASES = {
    "email": ["Email", "EmailID", "Email Address"],
    "name": ["Name"],
    "phone": ["Phone"],
}


def test_first_present_candidate_wins():
    resolver = ColumnResolver(["Email Address", "EmailID", "Name"], ALIASES)
    assert resolver.bindings["email"] == "EmailID"
    assert resolver.bindings["name"] == "Name"


def test_matching_is_case_sensitive():
    resolver = ColumnResolver(["email", "Name"], ALIASES)
    assert not resolver.is_bound("email")
    assert resolver.unbound(["email", "name", "phone"]) == ["email", "phone"]


def test_project_strips_and_omits_unbound():
    resolver = ColumnResolver(["Name", "Email"], ALIASES)
    draft = resolver.project(RawRow(2, {"Name": "  Ann ", "Email": "a@b.co"}))
    assert draft == {"name": "Ann", "email": "a@b.co"}
    assert "phone" not in draft


def test_require_any_accepts_partial_header():
    resolver = ColumnResolver(["Name"], ALIASES)
    resolver.require_any(["name", "email"])  # does not raise


def test_require_any_rejects_header_without_required_fields():
    resolver = ColumnResolver(["Foo", "Bar"], ALIASES)
    with pytest.raises(MissingColumnsError, match="name, email"):
        resolver.require_any(["name", "email"])


def test_merge_alias_tables_puts_extra_candidates_first():
    merged = merge_alias_tables(ALIASES, {"email": ["E-mail", "Email"], "extra": ["X"]})
    assert merged["email"] == ["E-mail", "Email", "EmailID", "Email Address"]
    assert merged["extra"] == ["X"]
    assert merged["name"] == ["Name"]


def test_merge_alias_tables_without_extra_copies():
    merged = merge_alias_tables(ALIASES, None)
    assert merged == {k: list(v) for k, v in ALIASES.items()}


def test_blank_cell_falls_back_to_next_candidate():
    resolver = ColumnResolver(["Name", "Email", "EmailID"], ALIASES)
    assert resolver.candidates["email"] == ["Email", "EmailID"]
    draft = resolver.project(RawRow(2, {"Name": "Ann Lee", "Email": " ", "EmailID": "ann@example.org"}))
    assert draft["email"] == "ann@example.org"


def test_first_non_empty_candidate_wins_per_row():
    resolver = ColumnResolver(["Name", "Email", "EmailID"], ALIASES)
    first = resolver.project(RawRow(2, {"Name": "A", "Email": "a@x.org", "EmailID": "b@x.org"}))
    blank = resolver.project(RawRow(3, {"Name": "B", "Email": "", "EmailID": ""}))
    assert first["email"] == "a@x.org"
    assert blank["email"] == ""
