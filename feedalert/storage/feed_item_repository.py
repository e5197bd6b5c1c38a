"""
Feed Item Repository
====================

Store access for feed items: insert, title lookup for dedup, visible
listing, search and expunge.
"""

from datetime import datetime, timedelta
from typing import List, Optional

from ..database.connection import DatabaseConnection
from ..database.models import StoredFeedRecord, Visibility
from ..utils.dates import Clock, db_friendly_date, utc_now
from ..utils.exceptions import DatabaseError, DedupLookupError, ErrorCode, PersistError
from ..utils.logging import get_logger_for_component


class FeedItemRepository:
    """Repository for feed item rows."""

    def __init__(self, db_connection: DatabaseConnection, clock: Clock = utc_now):
        """Initialize feed item repository.

        Args:
            db_connection: Database connection manager
            clock: Source of the current time, used by expunge
        """
        self.db = db_connection
        self.clock = clock
        self.logger = get_logger_for_component("feed_item_repository")

    def insert(self, record: StoredFeedRecord) -> StoredFeedRecord:
        """Insert a record and return it with its assigned identity.

        Raises:
            PersistError: If the insert fails
        """
        try:
            with self.db.get_connection() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO feed_items (title, published_at, link, body, image,
                                            source_id, deleted, read_flag)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        record.title, record.published_at, record.link, record.body,
                        record.image, record.source_id, int(record.visibility),
                        int(record.read_flag),
                    ),
                )
                conn.commit()
                identity = cursor.lastrowid

            self.logger.debug(f"Inserted feed item {identity}: {record.title!r}")
            return record.with_identity(identity)

        except Exception as e:
            raise PersistError(f"Failed to insert feed item: {e}", title=record.title) from e

    def count_by_title(self, title: Optional[str]) -> int:
        """Count rows with exactly this title, visible or deleted.

        Raises:
            DedupLookupError: If the lookup fails
        """
        try:
            with self.db.get_connection() as conn:
                row = conn.execute(
                    "SELECT COUNT(*) FROM feed_items WHERE title IS ?", (title,)
                ).fetchone()
            return row[0]

        except Exception as e:
            raise DedupLookupError(f"Failed to look up title: {e}", title=title) from e

    def get(self, identity: int) -> Optional[StoredFeedRecord]:
        try:
            with self.db.get_connection() as conn:
                row = conn.execute(
                    "SELECT * FROM feed_items WHERE id = ?", (identity,)
                ).fetchone()
            return StoredFeedRecord.from_db_row(row) if row else None

        except Exception as e:
            raise DatabaseError(
                f"Failed to get feed item {identity}: {e}",
                error_code=ErrorCode.DATABASE_ERROR
            ) from e

    def get_visible(self, source_id: int, limit: Optional[int] = None) -> List[StoredFeedRecord]:
        """Visible records of a source, newest first."""
        query = """
            SELECT * FROM feed_items
            WHERE deleted = ? AND source_id = ?
            ORDER BY published_at DESC, id DESC
        """
        params: list = [int(Visibility.VISIBLE), source_id]
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        try:
            with self.db.get_connection() as conn:
                rows = conn.execute(query, params).fetchall()
            return [StoredFeedRecord.from_db_row(row) for row in rows]

        except Exception as e:
            raise DatabaseError(
                f"Failed to list feed items for source {source_id}: {e}",
                error_code=ErrorCode.DATABASE_ERROR
            ) from e

    def search(self, text: str) -> List[StoredFeedRecord]:
        """Visible records whose title or body contains ``text``."""
        pattern = f"%{text}%"
        try:
            with self.db.get_connection() as conn:
                rows = conn.execute(
                    """
                    SELECT * FROM feed_items
                    WHERE deleted = ? AND (title LIKE ? OR body LIKE ?)
                    ORDER BY published_at DESC, id DESC
                    """,
                    (int(Visibility.VISIBLE), pattern, pattern),
                ).fetchall()
            return [StoredFeedRecord.from_db_row(row) for row in rows]

        except Exception as e:
            raise DatabaseError(
                f"Failed to search feed items: {e}",
                error_code=ErrorCode.DATABASE_ERROR
            ) from e

    def delete_older_than(self, days: int, now: Optional[datetime] = None) -> int:
        """Remove records more than ``days`` whole days old.

        Same boundary as the ingestion age check, so a removed record could
        never be accepted as fresh again.

        Returns:
            Number of rows removed
        """
        cutoff = db_friendly_date((now or self.clock()) - timedelta(days=days + 1))
        try:
            with self.db.transaction() as conn:
                cursor = conn.execute(
                    "DELETE FROM feed_items WHERE published_at < ?", (cutoff,)
                )
                deleted_count = cursor.rowcount

            if deleted_count:
                self.logger.info(f"Expunged {deleted_count} feed items older than {cutoff}")
            return deleted_count

        except Exception as e:
            raise DatabaseError(
                f"Failed to expunge feed items: {e}",
                error_code=ErrorCode.DATABASE_ERROR
            ) from e

    def count(self) -> int:
        try:
            with self.db.get_connection() as conn:
                return conn.execute("SELECT COUNT(*) FROM feed_items").fetchone()[0]
        except Exception as e:
            raise DatabaseError(
                f"Failed to count feed items: {e}",
                error_code=ErrorCode.DATABASE_ERROR
            ) from e
