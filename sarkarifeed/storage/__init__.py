"""
SarkariFeed Storage Layer
=========================

Record store contract and its SQLite implementation.
"""

from .record_store import RecordStore, SQLiteRecordStore, UpsertOutcome

__all__ = [
    "RecordStore",
    "SQLiteRecordStore",
    "UpsertOutcome",
]
