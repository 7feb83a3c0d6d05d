from __future__ import annotations

from pathlib import Path

import pytest

from csv_reconcile.csvfile.tokenizer import (
    FatalParseError,
    MalformedInputError,
    read_csv_file,
    read_csv_text,
    split_line,
    tokenize,
)


def test_split_line_quoted_comma():
    assert split_line('a,"b,c",d') == ["a", "b,c", "d"]


def test_split_line_doubled_quote():
    assert split_line('a,"b""c",d') == ["a", 'b"c', "d"]


def test_split_line_empty_cells():
    assert split_line(",,") == ["", "", ""]
    assert split_line('"",x') == ["", "x"]


def test_tokenize_skips_blank_lines_and_restarts():
    text = "h1,h2\n\n1,2\n   \n3,4\n"
    assert list(tokenize(text)) == [["h1", "h2"], ["1", "2"], ["3", "4"]]
    # a second call is a fresh pass
    assert next(tokenize(text)) == ["h1", "h2"]


def test_read_csv_text_row_numbers_skip_blank_lines():
    data = read_csv_text(" Name , Email \n\nAnn,ann@example.org\n\n Bob ,bob@example.org\n")
    assert data.header == ["Name", "Email"]
    rows = list(data.rows)
    assert [r.row_number for r in rows] == [2, 3]
    assert rows[0].get("Name") == "Ann"
    assert rows[1].get("Name") == "Bob"


def test_read_csv_text_pads_short_rows_and_ignores_extra_cells():
    rows = list(read_csv_text("a,b,c\n1\n1,2,3,4\n").rows)
    assert dict(rows[0].values) == {"a": "1", "b": "", "c": ""}
    assert dict(rows[1].values) == {"a": "1", "b": "2", "c": "3"}


def test_read_csv_text_header_only_has_no_rows():
    data = read_csv_text("a,b\n")
    assert list(data.rows) == []


@pytest.mark.parametrize("text", ["", "\n\n", "   \n \n"])
def test_read_csv_text_empty_is_malformed(text):
    with pytest.raises(MalformedInputError, match="CSV file is empty"):
        read_csv_text(text)


def test_malformed_input_is_fatal():
    assert issubclass(MalformedInputError, FatalParseError)


def test_read_csv_text_strips_bom():
    data = read_csv_text("\ufeffName,Email\nAnn,a@b.co\n")
    assert data.header == ["Name", "Email"]


def test_read_csv_file_utf8_sig(tmp_path: Path):
    path = tmp_path / "donors.csv"
    path.write_text("Name,Email\nAnn,a@b.co\n", encoding="utf-8-sig")
    data = read_csv_file(path)
    assert data.header == ["Name", "Email"]
    assert list(data.rows)[0].get("Email") == "a@b.co"


def test_read_csv_file_missing(tmp_path: Path):
    with pytest.raises(FatalParseError):
        read_csv_file(tmp_path / "nope.csv")


def test_raw_row_is_read_only():
    row = next(read_csv_text("a\n1\n").rows)
    with pytest.raises(TypeError):
        row.values["a"] = "2"  # type: ignore[index]
    assert "a" in row
    assert row.get("missing") is None


def test_tokenize_splits_on_newlines_only():
    text = 'Name,Notes\r\n"Ann","line\u2028two"\rBob,tab\x0bform\x0cfeed\x1e\n'
    assert list(tokenize(text)) == [
        ["Name", "Notes"],
        ["Ann", "line\u2028two"],
        ["Bob", "tab\x0bform\x0cfeed\x1e"],
    ]


def test_unicode_separator_in_cell_keeps_row_numbers():
    data = read_csv_text('Name,Notes\n"Ann","line\u2028two\x85end"\nBob,x\n')
    rows = list(data.rows)
    assert [r.row_number for r in rows] == [2, 3]
    assert rows[0].get("Notes") == "line\u2028two\x85end"
    assert rows[1].get("Name") == "Bob"
