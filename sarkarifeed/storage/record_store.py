"""
Record Store
============

Store contract consumed by the ingestion pipeline, and its SQLite backend.

The contract is a single keyed replace-or-insert operation so any backend
(relational, document, key-value) can satisfy it. For a given
``(kind, external_key)`` the operation must be indivisible.
"""

import sqlite3
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from ..database.connection import DatabaseConnection
from ..database.models import ContentKind, NormalizedRecord, record_type_for
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import DatabaseError, ErrorCode


class UpsertOutcome(str, Enum):
    """What a successful upsert did."""
    INSERTED = "inserted"
    UPDATED = "updated"


class RecordStore(ABC):
    """Keyed record store contract."""

    @abstractmethod
    def upsert(
        self, kind: ContentKind, external_key: str, record: NormalizedRecord
    ) -> UpsertOutcome:
        """Replace the record stored under ``(kind, external_key)`` or insert it.

        Raises:
            DatabaseError: If the write fails
        """

    @abstractmethod
    def get(self, kind: ContentKind, external_key: str) -> Optional[NormalizedRecord]:
        """Fetch one record, or None."""

    @abstractmethod
    def count(self, kind: ContentKind) -> int:
        """Number of records stored for ``kind``."""

    @abstractmethod
    def list_records(self, kind: ContentKind, limit: int = 50) -> List[NormalizedRecord]:
        """Most recently updated records for ``kind``."""


class SQLiteRecordStore(RecordStore):
    """Record store backed by one SQLite table per content kind."""

    def __init__(self, db_connection: DatabaseConnection):
        """Initialize record store.

        Args:
            db_connection: Database connection manager
        """
        self.db = db_connection
        self.logger = get_logger_for_component("record_store")

    def _table_for(self, kind: ContentKind) -> str:
        try:
            return record_type_for(kind).table_name
        except KeyError:
            raise DatabaseError(
                f"No record table for content kind '{kind.value}'",
                error_code=ErrorCode.DATABASE_SCHEMA,
                recoverable=False,
            )

    def upsert(
        self, kind: ContentKind, external_key: str, record: NormalizedRecord
    ) -> UpsertOutcome:
        if record.external_key != external_key:
            raise DatabaseError(
                f"Record key {record.external_key!r} does not match {external_key!r}",
                error_code=ErrorCode.DATABASE_CONSTRAINT,
                recoverable=False,
            )
        if record.kind is not kind:
            raise DatabaseError(
                f"{type(record).__name__} cannot be stored as '{kind.value}'",
                error_code=ErrorCode.DATABASE_CONSTRAINT,
                recoverable=False,
            )

        table = self._table_for(kind)
        row = record.to_row()
        now = datetime.now(timezone.utc).isoformat()

        columns = list(row.keys())
        insert_columns = columns + ["created_at", "updated_at"]
        placeholders = ", ".join("?" for _ in insert_columns)
        # Whole-row replacement; created_at stays with the first insert
        assignments = ", ".join(
            f"{column} = excluded.{column}"
            for column in columns + ["updated_at"]
            if column != "external_key"
        )
        query = (
            f"INSERT INTO {table} ({', '.join(insert_columns)}) "
            f"VALUES ({placeholders}) "
            f"ON CONFLICT(external_key) DO UPDATE SET {assignments}"
        )
        params = tuple(row[column] for column in columns) + (now, now)

        try:
            with self.db.transaction() as conn:
                existing = conn.execute(
                    f"SELECT 1 FROM {table} WHERE external_key = ?", (external_key,)
                ).fetchone()
                conn.execute(query, params)
        except sqlite3.IntegrityError as e:
            raise DatabaseError(
                f"Constraint violation storing {external_key}: {e}",
                query=query,
                error_code=ErrorCode.DATABASE_CONSTRAINT,
                recoverable=False,
            ) from e
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to upsert {external_key}: {e}",
                query=query,
                error_code=ErrorCode.DATABASE_TRANSACTION,
            ) from e

        outcome = UpsertOutcome.UPDATED if existing else UpsertOutcome.INSERTED
        self.logger.debug(
            f"Upserted {kind.value} record ({outcome.value}): {external_key}"
        )
        return outcome

    def get(self, kind: ContentKind, external_key: str) -> Optional[NormalizedRecord]:
        table = self._table_for(kind)
        try:
            row = self.db.execute_one(
                f"SELECT * FROM {table} WHERE external_key = ?", (external_key,)
            )
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to read {external_key}: {e}") from e

        if row is None:
            return None
        return record_type_for(kind).from_row(dict(row))

    def count(self, kind: ContentKind) -> int:
        table = self._table_for(kind)
        try:
            row = self.db.execute_one(f"SELECT COUNT(*) FROM {table}")
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to count {table}: {e}") from e
        return row[0]

    def list_records(self, kind: ContentKind, limit: int = 50) -> List[NormalizedRecord]:
        table = self._table_for(kind)
        try:
            rows = self.db.execute_query(
                f"SELECT * FROM {table} ORDER BY updated_at DESC LIMIT ?", (limit,)
            )
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to list {table}: {e}") from e

        record_cls = record_type_for(kind)
        return [record_cls.from_row(dict(row)) for row in rows]
