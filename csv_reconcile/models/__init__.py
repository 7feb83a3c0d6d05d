"""Domain models for the CSV import & reconciliation engine.

Rows, errors, document groups and run results shared by every stage of the
pipeline.
"""

from .document_group import DocumentGroup
from .import_result import BatchStatsAccumulator, ImportResult, ResultAccumulator
from .raw_row import RawRow
from .row_error import RowError

__all__ = [
    # Input models
    "RawRow",
    "DocumentGroup",
    # Result models
    "RowError",
    "ImportResult",
    "ResultAccumulator",
    "BatchStatsAccumulator",
]
