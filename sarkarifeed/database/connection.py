"""
SarkariFeed Database Connection Management
=========================================

Connection pool and transaction management for SQLite. Connections are
shareable across threads so store writes can be offloaded from the event
loop with ``asyncio.to_thread``.
"""

import sqlite3
import threading
import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Generator, Any, List, Dict
from queue import Queue, Empty, Full

from .schema import RECORD_TABLES

logger = logging.getLogger(__name__)


class DatabaseConnection:
    """Thread-safe SQLite connection pool.

    Connections are opened on demand up to ``pool_size`` and reused after
    that; a caller that finds the pool drained waits ``acquire_timeout``
    seconds before an overflow connection is opened.
    """

    def __init__(
        self,
        db_path: str = "data/sarkarifeed.db",
        pool_size: int = 5,
        acquire_timeout: float = 10.0,
    ):
        """Initialize database connection manager.

        Args:
            db_path: Path to SQLite database file
            pool_size: Maximum number of pooled connections
            acquire_timeout: Seconds to wait for a pooled connection
        """
        self.db_path = Path(db_path)
        self.pool_size = pool_size
        self.acquire_timeout = acquire_timeout
        self.pool: Queue = Queue(maxsize=pool_size)
        self.lock = threading.Lock()
        self._total_connections = 0

        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _create_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            self.db_path,
            check_same_thread=False,
            timeout=30.0,  # busy timeout for concurrent writers
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA synchronous = NORMAL")

        with self.lock:
            self._total_connections += 1
            count = self._total_connections

        logger.debug(f"Opened database connection #{count} to {self.db_path}")
        return conn

    def _acquire(self) -> sqlite3.Connection:
        try:
            return self.pool.get_nowait()
        except Empty:
            pass

        with self.lock:
            below_limit = self._total_connections < self.pool_size
        if below_limit:
            return self._create_connection()

        started = time.monotonic()
        try:
            conn = self.pool.get(timeout=self.acquire_timeout)
        except Empty:
            logger.warning(
                f"Connection pool exhausted after {self.acquire_timeout:.0f}s, "
                "opening overflow connection"
            )
            return self._create_connection()

        waited = time.monotonic() - started
        if waited > 1.0:
            logger.warning(f"Waited {waited:.2f}s for a pooled database connection")
        return conn

    @contextmanager
    def get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Borrow a pooled connection for the duration of the block.

        Usage:
            with db_manager.get_connection() as conn:
                rows = conn.execute("SELECT * FROM jobs").fetchall()
        """
        conn = self._acquire()
        try:
            yield conn
        except sqlite3.Error as e:
            logger.error(f"Database error on {self.db_path}: {e}")
            if conn.in_transaction:
                conn.rollback()
            raise
        finally:
            self._release(conn)

    def _release(self, conn: sqlite3.Connection) -> None:
        try:
            self.pool.put_nowait(conn)
        except Full:
            conn.close()
            with self.lock:
                self._total_connections -= 1

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """Run the block as one write transaction.

        ``BEGIN IMMEDIATE`` takes the write lock up front, so a read followed
        by a write inside the block cannot interleave with another writer.
        """
        with self.get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.rollback()
                logger.debug("Transaction rolled back")
                raise
            conn.commit()

    def execute_query(self, query: str, params: tuple = ()) -> List[sqlite3.Row]:
        with self.get_connection() as conn:
            return conn.execute(query, params).fetchall()

    def execute_one(self, query: str, params: tuple = ()) -> Optional[sqlite3.Row]:
        with self.get_connection() as conn:
            return conn.execute(query, params).fetchone()

    def get_database_info(self) -> Dict[str, Any]:
        """Database size and record counts for the tables that exist."""
        with self.get_connection() as conn:
            page_count = conn.execute("PRAGMA page_count").fetchone()[0]
            page_size = conn.execute("PRAGMA page_size").fetchone()[0]
            existing = {
                row[0]
                for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
            }
            table_counts = {
                table: (
                    conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
                    if table in existing
                    else 0
                )
                for table in RECORD_TABLES
            }

        return {
            "database_size_mb": page_count * page_size / (1024 * 1024),
            "table_counts": table_counts,
            "idle_connections": self.pool.qsize(),
            "open_connections": self._total_connections,
        }

    def close_all_connections(self) -> None:
        """Close every idle pooled connection."""
        closed = 0
        while True:
            try:
                conn = self.pool.get_nowait()
            except Empty:
                break
            conn.close()
            closed += 1

        with self.lock:
            self._total_connections -= closed
        logger.debug(f"Closed {closed} database connections")


# Global database manager instance
_db_manager: Optional[DatabaseConnection] = None


def get_db_manager(db_path: str = "data/sarkarifeed.db", pool_size: int = 5) -> DatabaseConnection:
    """Get global database manager instance (singleton pattern).

    Args:
        db_path: Path to database file
        pool_size: Connection pool size used on first creation

    Returns:
        Database connection manager instance
    """
    global _db_manager

    if _db_manager is None:
        _db_manager = DatabaseConnection(db_path, pool_size=pool_size)

    return _db_manager
