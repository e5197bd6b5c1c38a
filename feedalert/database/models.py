"""
FeedAlert Data Models
=====================

Pydantic models for records persisted by the pipeline, plus the transient
item and batch types that flow between ingestion and notification.
"""

import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import Iterator, List, Optional

from pydantic import BaseModel, Field


class Visibility(IntEnum):
    """Visibility flag of a stored record."""
    VISIBLE = 0
    DELETED = 1


class ReadFlag(IntEnum):
    """Read state of a stored record."""
    READ = 0
    NEW = 1
    FAVORITE = 2


@dataclass
class FeedItem:
    """An item as parsed from a feed document, before persistence."""
    title: Optional[str]
    body: Optional[str]
    published_raw: Optional[str]
    link: Optional[str]
    published_at: datetime
    image_url: Optional[str] = None


class StoredFeedRecord(BaseModel):
    """A feed item row.

    ``id`` is None until the store assigns it on insert; the record is
    frozen so the pipeline never mutates it afterwards.
    """
    id: Optional[int] = Field(default=None, description="Identity assigned by the store")
    title: Optional[str] = Field(default=None, description="Item title")
    published_at: str = Field(..., description="Canonical UTC date 'YYYY-MM-DD HH:MM:SS'")
    link: Optional[str] = Field(default=None, description="Item link")
    body: Optional[str] = Field(default=None, description="Item body, may contain markup")
    image: Optional[bytes] = Field(default=None, description="Rescaled PNG image")
    source_id: int = Field(..., description="Configured source tag")
    visibility: Visibility = Field(default=Visibility.VISIBLE)
    read_flag: ReadFlag = Field(default=ReadFlag.NEW)

    model_config = {"frozen": True}

    def with_identity(self, identity: int) -> "StoredFeedRecord":
        return self.model_copy(update={"id": identity})

    @classmethod
    def from_db_row(cls, row: sqlite3.Row) -> "StoredFeedRecord":
        return cls(
            id=row["id"],
            title=row["title"],
            published_at=row["published_at"],
            link=row["link"],
            body=row["body"],
            image=row["image"],
            source_id=row["source_id"],
            visibility=Visibility(row["deleted"]),
            read_flag=ReadFlag(row["read_flag"]),
        )

    def __str__(self) -> str:
        return f"StoredFeedRecord({self.id}:{self.title!r} @ {self.published_at})"


class FetchState(BaseModel):
    """Last successful fetch of a feed URL."""
    feed_url: str = Field(..., description="Feed URL")
    last_fetch_at: str = Field(..., description="Canonical UTC date of the last successful fetch")


@dataclass
class NewItemBatch:
    """Records inserted during one refresh cycle.

    ``records`` keeps insertion order. ``sorted_records`` is the stable
    ascending sort by canonical date string, so its last element is the
    most recent item.
    """
    records: List[StoredFeedRecord] = field(default_factory=list)

    def append(self, record: StoredFeedRecord) -> None:
        self.records.append(record)

    @property
    def sorted_records(self) -> List[StoredFeedRecord]:
        return sorted(self.records, key=lambda r: r.published_at)

    @property
    def latest(self) -> Optional[StoredFeedRecord]:
        ordered = self.sorted_records
        return ordered[-1] if ordered else None

    def merge(self, other: "NewItemBatch") -> "NewItemBatch":
        return NewItemBatch(records=self.records + other.records)

    def titles(self) -> List[Optional[str]]:
        return [r.title for r in self.sorted_records]

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[StoredFeedRecord]:
        """Insertion order, not date order."""
        return iter(self.records)

    def __bool__(self) -> bool:
        return bool(self.records)
