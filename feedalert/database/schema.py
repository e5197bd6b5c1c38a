"""
FeedAlert Database Schema
=========================

SQLite schema for stored feed items and per-URL fetch state.

- feed_items: every item the pipeline inserted, with visibility and
  read flags mutated only by the reader UI
- fetch_state: last successful fetch per feed URL, used to build the
  If-Modified-Since header
"""

import sqlite3
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class DatabaseSchema:
    """Database schema manager for the FeedAlert SQLite database."""

    TABLES = ("feed_items", "fetch_state")

    def __init__(self, db_path: str = "data/feedalert.db"):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def create_tables(self) -> None:
        """Create all database tables and indexes."""
        with sqlite3.connect(self.db_path) as conn:
            self._create_feed_items_table(conn)
            self._create_fetch_state_table(conn)
            self._create_indexes(conn)
            conn.commit()
            logger.info("Database schema created successfully")

    def _create_feed_items_table(self, conn: sqlite3.Connection) -> None:
        # published_at holds "YYYY-MM-DD HH:MM:SS" in UTC so text order is time order
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS feed_items (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT,
                published_at TEXT NOT NULL,
                link TEXT,
                body TEXT,
                image BLOB,
                source_id INTEGER NOT NULL,
                deleted INTEGER NOT NULL DEFAULT 0 CHECK (deleted IN (0, 1)),
                read_flag INTEGER NOT NULL DEFAULT 1 CHECK (read_flag IN (0, 1, 2))
            )
        """
        )

    def _create_fetch_state_table(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS fetch_state (
                feed_url TEXT PRIMARY KEY,
                last_fetch_at TEXT NOT NULL
            )
        """
        )

    def _create_indexes(self, conn: sqlite3.Connection) -> None:
        indexes = [
            "CREATE INDEX IF NOT EXISTS idx_feed_items_title ON feed_items(title)",
            "CREATE INDEX IF NOT EXISTS idx_feed_items_visible_source ON feed_items(deleted, source_id)",
            "CREATE INDEX IF NOT EXISTS idx_feed_items_published ON feed_items(published_at)",
        ]

        for index_sql in indexes:
            conn.execute(index_sql)

    def drop_tables(self) -> None:
        """Drop all tables (for testing/reset purposes)."""
        with sqlite3.connect(self.db_path) as conn:
            for table in self.TABLES:
                conn.execute(f"DROP TABLE IF EXISTS {table}")
            conn.commit()
            logger.info("All database tables dropped")

    def verify_schema(self) -> bool:
        """Verify all expected tables exist."""
        try:
            with sqlite3.connect(self.db_path) as conn:
                cursor = conn.execute(
                    "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'"
                )
                tables = {row[0] for row in cursor.fetchall()}
        except sqlite3.Error as e:
            logger.error(f"Schema verification failed: {e}")
            return False

        missing = set(self.TABLES) - tables
        if missing:
            logger.error(f"Missing tables: {sorted(missing)}")
            return False

        logger.info("Database schema verification passed")
        return True


def create_tables(db_path: str = "data/feedalert.db") -> None:
    """Convenience function to create database tables."""
    DatabaseSchema(db_path).create_tables()
