from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from ..models.raw_row import RawRow

"""CSV tokenizer.

Turns raw CSV text into rows of string cells:
- lines are split first (quoted fields cannot span lines)
- a double quote toggles quoting unless it is a doubled quote inside a quoted
  field, which emits one literal quote
- a comma outside quotes ends the field
- blank lines (after strip) are skipped, including a blank final line

The first non-blank line is the header row. Cells and header labels are
stripped; short rows are padded with "" and extra cells are ignored.
"""

__all__ = [
    "FatalParseError",
    "MalformedInputError",
    "CsvData",
    "tokenize",
    "split_line",
    "read_csv_text",
    "read_csv_file",
]


class FatalParseError(Exception):
    """Raised when a file cannot be imported at all (no rows, unusable header)."""


class MalformedInputError(FatalParseError):
    """Raised when the file contains zero non-blank lines."""


_LINE_BREAK = re.compile(r"\r\n|\n|\r")


@dataclass
class CsvData:
    header: list[str]
    rows: Iterator[RawRow]  # lazy; call read_csv_text again to restart


def split_line(line: str) -> list[str]:
    """Split one CSV line into raw (unstripped) cells."""
    cells: list[str] = []
    current: list[str] = []
    in_quotes = False
    i = 0
    length = len(line)
    while i < length:
        char = line[i]
        if char == '"':
            if in_quotes and i + 1 < length and line[i + 1] == '"':
                current.append('"')
                i += 2
                continue
            in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            cells.append("".join(current))
            current = []
        else:
            current.append(char)
        i += 1
    cells.append("".join(current))
    return cells


def tokenize(text: str) -> Iterator[list[str]]:
    """Yield the cells of every non-blank line, header first.

    This is a generator: each call starts a fresh pass over ``text``.
    """
    for line in _LINE_BREAK.split(text):
        if not line.strip():
            continue
        yield split_line(line)


def _iter_rows(text: str, header: list[str]) -> Iterator[RawRow]:
    lines = tokenize(text)
    next(lines)  # header
    # 2 = ヘッダ行の次 (1-based)
    for row_number, cells in enumerate(lines, start=2):
        values: dict[str, str] = {}
        for index, label in enumerate(header):
            values[label] = cells[index].strip() if index < len(cells) else ""
        yield RawRow(row_number=row_number, values=values)


def read_csv_text(text: str) -> CsvData:
    """Tokenize ``text`` returning the stripped header and a lazy row iterator.

    Raises
    ------
    MalformedInputError: the text has no non-blank line
    """
    if text.startswith("\ufeff"):
        text = text[1:]
    first = next(tokenize(text), None)
    if first is None:
        raise MalformedInputError("CSV file is empty")
    header = [label.strip() for label in first]
    return CsvData(header=header, rows=_iter_rows(text, header))


def read_csv_file(path: Path, encoding: str = "utf-8-sig") -> CsvData:
    """Read a CSV file from disk and tokenize it."""
    try:
        text = path.read_text(encoding=encoding)
    except UnicodeDecodeError as e:
        raise MalformedInputError(f"cannot decode {path.name}: {e}") from e
    except OSError as e:
        raise FatalParseError(f"cannot read {path}: {e}") from e
    return read_csv_text(text)
