from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Mapping, Sequence

"""Row validation: presence checks, then format checks, first failure wins.

A row produces at most one error message. Presence checks run over the
required canonical fields in declaration order; format checks (email shape)
only run once every required field is present; kind-specific checks run
last.
"""

__all__ = [
    "RowValidationError",
    "EMAIL_PATTERN",
    "RowCheck",
    "is_blank",
    "validate_required",
    "validate_format",
    "validate_row",
]

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# kind-specific check: draft -> error message or None
RowCheck = Callable[[Mapping[str, str]], "str | None"]


class RowValidationError(Exception):
    """Raised when a single row cannot be turned into a record."""


def is_blank(value: str | None) -> bool:
    return value is None or value.strip() == ""


def validate_required(draft: Mapping[str, str], required: Sequence[str]) -> str | None:
    for field_name in required:
        if is_blank(draft.get(field_name)):
            return f"Missing required field: {field_name}"
    return None


def validate_format(draft: Mapping[str, str], email_fields: Iterable[str]) -> str | None:
    """Check the shape of every present email field (blank values are skipped)."""
    for field_name in email_fields:
        value = draft.get(field_name)
        if is_blank(value):
            continue
        if not EMAIL_PATTERN.match(value.strip()):  # type: ignore[union-attr]
            return f"Invalid email format: {field_name}"
    return None


def validate_row(
    draft: Mapping[str, str],
    required: Sequence[str],
    email_fields: Iterable[str] = (),
    checks: Sequence[RowCheck] = (),
) -> str | None:
    """Return the first problem with ``draft`` or None when it is valid."""
    error = validate_required(draft, required)
    if error is not None:
        return error
    error = validate_format(draft, email_fields)
    if error is not None:
        return error
    for check in checks:
        error = check(draft)
        if error is not None:
            return error
    return None
