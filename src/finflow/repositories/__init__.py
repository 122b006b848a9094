"""Record store implementations."""

from .base import RecordKind, RecordStore, record_key
from .memory import InMemoryRecordStore

__all__ = ["RecordKind", "RecordStore", "InMemoryRecordStore", "record_key"]
