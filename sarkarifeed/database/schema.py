"""
SarkariFeed Database Schema
==========================

SQLite schema for the canonical record store. One table per content kind,
each keyed by the item's external link:
- jobs: government job openings
- results: examination results, admit cards and answer keys
- admissions: course/institute admission notices
"""

import sqlite3
import logging
from pathlib import Path
from typing import List

from ..utils.exceptions import DatabaseError, ErrorCode

logger = logging.getLogger(__name__)


RECORD_TABLES: List[str] = ["jobs", "results", "admissions"]


class DatabaseSchema:
    """Database schema manager for the SarkariFeed SQLite database."""

    def __init__(self, db_path: str = "data/sarkarifeed.db"):
        """Initialize database schema manager.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def create_tables(self) -> None:
        """Create all record tables and indexes.

        Raises:
            DatabaseError: If the schema cannot be created
        """
        try:
            with sqlite3.connect(self.db_path) as conn:
                self._create_jobs_table(conn)
                self._create_results_table(conn)
                self._create_admissions_table(conn)
                self._create_indexes(conn)
                conn.commit()
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to create schema at {self.db_path}: {e}",
                error_code=ErrorCode.DATABASE_SCHEMA,
                recoverable=False,
            ) from e

        logger.info(f"Database schema ready at {self.db_path}")

    def _create_jobs_table(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS jobs (
                external_key TEXT PRIMARY KEY,
                title_en TEXT NOT NULL,
                title_hi TEXT NOT NULL DEFAULT '',
                description_en TEXT NOT NULL,
                description_hi TEXT NOT NULL DEFAULT '',
                department TEXT NOT NULL,
                category TEXT NOT NULL,
                start_date TIMESTAMP NOT NULL,
                end_date TIMESTAMP NOT NULL,
                status TEXT NOT NULL CHECK (status IN ('upcoming', 'active', 'closed')),
                created_at TIMESTAMP NOT NULL,
                updated_at TIMESTAMP NOT NULL
            )
        """
        )

    def _create_results_table(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS results (
                external_key TEXT PRIMARY KEY,
                title_en TEXT NOT NULL,
                title_hi TEXT NOT NULL DEFAULT '',
                description_en TEXT NOT NULL,
                description_hi TEXT NOT NULL DEFAULT '',
                organization TEXT NOT NULL,
                category TEXT NOT NULL,
                result_type TEXT NOT NULL CHECK (result_type IN ('result', 'admitCard', 'answerKey')),
                exam_date TIMESTAMP,
                result_date TIMESTAMP NOT NULL,
                status TEXT NOT NULL CHECK (status IN ('pending', 'published', 'archived')),
                created_at TIMESTAMP NOT NULL,
                updated_at TIMESTAMP NOT NULL
            )
        """
        )

    def _create_admissions_table(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS admissions (
                external_key TEXT PRIMARY KEY,
                title_en TEXT NOT NULL,
                title_hi TEXT NOT NULL DEFAULT '',
                description_en TEXT NOT NULL,
                description_hi TEXT NOT NULL DEFAULT '',
                institute TEXT NOT NULL,
                course TEXT NOT NULL,
                category TEXT NOT NULL,
                start_date TIMESTAMP NOT NULL,
                end_date TIMESTAMP NOT NULL,
                status TEXT NOT NULL CHECK (status IN ('upcoming', 'active', 'closed')),
                created_at TIMESTAMP NOT NULL,
                updated_at TIMESTAMP NOT NULL
            )
        """
        )

    def _create_indexes(self, conn: sqlite3.Connection) -> None:
        """Indexes for the catalog's browse and search queries."""
        indexes = [
            "CREATE INDEX IF NOT EXISTS idx_jobs_browse ON jobs(category, department, status)",
            "CREATE INDEX IF NOT EXISTS idx_jobs_dates ON jobs(start_date DESC, end_date DESC)",
            "CREATE INDEX IF NOT EXISTS idx_results_browse ON results(category, result_type, status)",
            "CREATE INDEX IF NOT EXISTS idx_results_date ON results(result_date DESC)",
            "CREATE INDEX IF NOT EXISTS idx_results_org ON results(organization)",
            "CREATE INDEX IF NOT EXISTS idx_admissions_browse ON admissions(category, status)",
            "CREATE INDEX IF NOT EXISTS idx_admissions_dates ON admissions(start_date DESC, end_date DESC)",
            "CREATE INDEX IF NOT EXISTS idx_admissions_institute ON admissions(institute, course)",
        ]

        for index_sql in indexes:
            conn.execute(index_sql)

    def verify_schema(self) -> bool:
        """Check that every record table exists."""
        try:
            with sqlite3.connect(self.db_path) as conn:
                rows = conn.execute(
                    "SELECT name FROM sqlite_master WHERE type='table'"
                ).fetchall()
        except sqlite3.Error as e:
            logger.error(f"Schema verification failed: {e}")
            return False

        existing = {row[0] for row in rows}
        missing = [table for table in RECORD_TABLES if table not in existing]
        if missing:
            logger.warning(f"Missing tables: {missing}")
            return False
        return True
