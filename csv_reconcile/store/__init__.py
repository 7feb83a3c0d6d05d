from .base import RecordStore, StoredRecord, StoreError
from .memory import MemoryRecordStore

__all__ = [
    "RecordStore",
    "StoredRecord",
    "StoreError",
    "MemoryRecordStore",
]
