"""
FeedAlert Database Connection Management
========================================

A small pool of SQLite connections shared by the repositories.

Connections run in WAL mode so the reader-side queries (list, search) do
not block the refresh cycle's inserts. Rows come back as ``sqlite3.Row``.
"""

import logging
import sqlite3
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from queue import Empty, Full, Queue
from typing import Generator, Optional

logger = logging.getLogger(__name__)

POOL_WAIT_SECONDS = 10.0
BUSY_TIMEOUT_SECONDS = 30.0


class DatabaseConnection:
    """Thread-safe pool of SQLite connections for one database file."""

    def __init__(self, db_path: str = "data/feedalert.db", pool_size: int = 3):
        """Open ``pool_size`` connections to ``db_path``.

        Args:
            db_path: SQLite database file, parent directories are created
            pool_size: Connections kept open; extra demand opens overflow
                connections that are closed when returned
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.pool_size = pool_size
        self.pool: Queue = Queue(maxsize=pool_size)
        self._open_count = 0
        self._count_lock = threading.Lock()

        for _ in range(pool_size):
            self.pool.put(self._open())

    def _open(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=BUSY_TIMEOUT_SECONDS, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA synchronous = NORMAL")

        with self._count_lock:
            self._open_count += 1
        logger.debug(f"Opened connection {self._open_count} to {self.db_path}")
        return conn

    def _checkout(self) -> sqlite3.Connection:
        started = time.monotonic()
        try:
            conn = self.pool.get(timeout=POOL_WAIT_SECONDS)
        except Empty:
            logger.warning(f"All {self.pool_size} pooled connections busy, opening an overflow connection")
            return self._open()

        waited = time.monotonic() - started
        if waited > 1.0:
            logger.warning(f"Waited {waited:.2f}s for a database connection")
        return conn

    def _checkin(self, conn: sqlite3.Connection) -> None:
        try:
            self.pool.put_nowait(conn)
        except Full:
            conn.close()
            with self._count_lock:
                self._open_count -= 1

    @contextmanager
    def get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Borrow a connection; any open transaction is rolled back on sqlite errors.

        Usage:
            with db.get_connection() as conn:
                rows = conn.execute("SELECT * FROM feed_items").fetchall()
        """
        conn = self._checkout()
        try:
            yield conn
        except sqlite3.Error as e:
            logger.error(f"Database error on {self.db_path}: {e}")
            conn.rollback()
            raise
        finally:
            self._checkin(conn)

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """Borrow a connection inside ``BEGIN IMMEDIATE``; commit or roll back."""
        with self.get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except Exception as e:
                conn.rollback()
                logger.error(f"Transaction rolled back: {e}")
                raise
            conn.commit()

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

        with self._count_lock:
            self._open_count = max(0, self._open_count - closed)
        logger.info(f"Closed {closed} database connection(s) to {self.db_path}")


_db_manager: Optional[DatabaseConnection] = None


def get_db_manager(db_path: str = "data/feedalert.db", pool_size: int = 3) -> DatabaseConnection:
    """Process-wide connection pool used by the CLI."""
    global _db_manager

    if _db_manager is None:
        _db_manager = DatabaseConnection(db_path, pool_size=pool_size)

    return _db_manager
