from __future__ import annotations

from ..models.import_result import ImportResult

"""SUMMARY line rendering for the import CLI."""

__all__ = [
    "render_summary_line",
]


def render_summary_line(kind: str, rows: int, result: ImportResult) -> str:
    """Render the single SUMMARY line printed at the end of a CLI run.

    Format::

        SUMMARY kind={kind} rows={rows} success={success} failed={failed} duplicates={duplicates} errors={errors}

    ``rows`` is the number of data rows in the file; ``errors`` counts every
    error line including item-level notes and file-level errors.

    Examples:
        >>> render_summary_line("donors", 3, ImportResult(2, 1, 1, ()))
        'SUMMARY kind=donors rows=3 success=2 failed=1 duplicates=1 errors=0'
    """
    return (
        f"SUMMARY kind={kind} "
        f"rows={rows} "
        f"success={result.success_count} "
        f"failed={result.failure_count} "
        f"duplicates={result.duplicate_count} "
        f"errors={len(result.errors)}"
    )
