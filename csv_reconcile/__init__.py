"""Bulk CSV import & reconciliation engine.

Typical use::

    from csv_reconcile import MemoryRecordStore, run_import

    result = run_import("donors", Path("donors.csv"), MemoryRecordStore())
"""

from .kinds import KINDS, get_kind, template_csv
from .models import ImportResult, RowError
from .services.orchestrator import run_import
from .store import MemoryRecordStore, RecordStore, StoreError

__all__ = [
    "KINDS",
    "ImportResult",
    "MemoryRecordStore",
    "RecordStore",
    "RowError",
    "StoreError",
    "get_kind",
    "run_import",
    "template_csv",
]
