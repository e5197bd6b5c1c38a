"""
Fetch State Repository
======================

Last successful fetch per feed URL. Two sources sharing a URL share one
row.
"""

from datetime import datetime
from typing import Optional

from ..database.connection import DatabaseConnection
from ..utils.dates import db_friendly_date, from_db_date
from ..utils.exceptions import DatabaseError, ErrorCode
from ..utils.logging import get_logger_for_component


class FetchStateRepository:
    """Repository for the fetch_state table."""

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection
        self.logger = get_logger_for_component("fetch_state_repository")

    def get_last_fetch(self, feed_url: str) -> Optional[datetime]:
        """Last successful fetch of ``feed_url``, or None if never fetched."""
        try:
            with self.db.get_connection() as conn:
                row = conn.execute(
                    "SELECT last_fetch_at FROM fetch_state WHERE feed_url = ?", (feed_url,)
                ).fetchone()
            return from_db_date(row["last_fetch_at"]) if row else None

        except Exception as e:
            raise DatabaseError(
                f"Failed to read fetch state for {feed_url}: {e}",
                error_code=ErrorCode.DATABASE_ERROR
            ) from e

    def set_last_fetch(self, feed_url: str, when: datetime) -> None:
        try:
            with self.db.transaction() as conn:
                conn.execute(
                    """
                    INSERT INTO fetch_state (feed_url, last_fetch_at) VALUES (?, ?)
                    ON CONFLICT(feed_url) DO UPDATE SET last_fetch_at = excluded.last_fetch_at
                    """,
                    (feed_url, db_friendly_date(when)),
                )
            self.logger.debug(f"Recorded fetch of {feed_url} at {when.isoformat()}")

        except Exception as e:
            raise DatabaseError(
                f"Failed to store fetch state for {feed_url}: {e}",
                error_code=ErrorCode.DATABASE_ERROR
            ) from e
