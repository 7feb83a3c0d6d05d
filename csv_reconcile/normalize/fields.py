from __future__ import annotations

import re
import warnings
from datetime import date
from decimal import Decimal, InvalidOperation

import pandas as pd

"""Field normalizers: cell strings -> typed values.

All functions are total: they never raise, and return a best-effort value
(None for "no date", Decimal(0) for unparsable numbers, False for unknown
booleans).
"""

__all__ = [
    "parse_date",
    "parse_decimal",
    "parse_bool",
    "clean_text",
    "MONTHS",
]

MONTHS: dict[str, int] = {
    "jan": 1, "january": 1,
    "feb": 2, "february": 2,
    "mar": 3, "march": 3,
    "apr": 4, "april": 4,
    "may": 5,
    "jun": 6, "june": 6,
    "jul": 7, "july": 7,
    "aug": 8, "august": 8,
    "sep": 9, "sept": 9, "september": 9,
    "oct": 10, "october": 10,
    "nov": 11, "november": 11,
    "dec": 12, "december": 12,
}

_DAY_MON_YEAR = re.compile(r"(\d{1,2})\s+([A-Za-z]+)\.?,?\s+(\d{4})")
_ISO = re.compile(r"(\d{4})-(\d{2})-(\d{2})")
_US = re.compile(r"(\d{1,2})/(\d{1,2})/(\d{4})")
_NON_NUMERIC = re.compile(r"[^0-9.\-]")
_NUMERIC_PREFIX = re.compile(r"-?(?:\d+\.?\d*|\.\d+)")
_TRUE_TOKENS = {"yes", "true", "1"}
# pandas はこれらを実行時刻として解釈する
_RELATIVE_WORDS = {"today", "now", "tomorrow", "yesterday"}


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _fallback_date(value: str) -> date | None:
    if value.lower() in _RELATIVE_WORDS:
        return None
    with warnings.catch_warnings():
        # pandas が推測フォーマット警告を出すため抑止
        warnings.simplefilter("ignore")
        try:
            parsed = pd.to_datetime(value, errors="coerce")
        except (ValueError, TypeError, OverflowError):
            return None
    if parsed is None or pd.isna(parsed):
        return None
    return parsed.date()


def parse_date(value: str | None) -> date | None:
    """Parse a date cell.

    Formats are tried in priority order, which also settles day/month
    ambiguity:
    1. ``D[D] Mon YYYY`` (abbreviated or full month, case-insensitive)
    2. ``YYYY-MM-DD``
    3. ``M[M]/D[D]/YYYY``
    4. generic parse via pandas
    Returns None for empty input or when nothing matches.
    """
    if value is None:
        return None
    text = value.strip()
    if not text:
        return None

    m = _DAY_MON_YEAR.search(text)
    if m:
        month = MONTHS.get(m.group(2).lower())
        if month is not None:
            parsed = _safe_date(int(m.group(3)), month, int(m.group(1)))
            if parsed is not None:
                return parsed

    m = _ISO.search(text)
    if m:
        parsed = _safe_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        if parsed is not None:
            return parsed

    m = _US.search(text)
    if m:
        parsed = _safe_date(int(m.group(3)), int(m.group(1)), int(m.group(2)))
        if parsed is not None:
            return parsed

    return _fallback_date(text)


def parse_decimal(value: str | None) -> Decimal:
    """Parse a currency/number cell leniently.

    Every character other than digits, ``.`` and ``-`` is stripped, then the
    leading numeric prefix is parsed. Empty or unparsable input yields 0.
    Accounting negatives such as ``(100.00)`` come out positive.
    """
    if not value:
        return Decimal(0)
    cleaned = _NON_NUMERIC.sub("", value)
    m = _NUMERIC_PREFIX.match(cleaned)
    if not m:
        return Decimal(0)
    try:
        return Decimal(m.group(0))
    except InvalidOperation:  # pragma: no cover - regex guarantees a valid literal
        return Decimal(0)


def parse_bool(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in _TRUE_TOKENS


def clean_text(value: str | None) -> str | None:
    """Strip a cell; empty strings become None."""
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None
