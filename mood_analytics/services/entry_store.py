"""
Entry store backends for mood observations.

Stores are append-only: there is no update or delete. Each user's history is
returned most-recent-first. Both backends expose awaitable operations so a
slow persistence layer never blocks other users' work on the event loop.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Set

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from mood_analytics.models import MoodEntryRecord
from mood_analytics.schemas import MoodEntry

logger = logging.getLogger(__name__)


class EntryStoreError(Exception):
    """Raised when the persistence layer rejects or fails an operation."""

    pass


def _in_range(
    timestamp: datetime, start: Optional[datetime], end: Optional[datetime]
) -> bool:
    if start is not None and timestamp < start:
        return False
    if end is not None and timestamp > end:
        return False
    return True


class EntryStore:
    """Interface shared by all entry store backends."""

    async def append(self, entry: MoodEntry) -> None:
        raise NotImplementedError

    async def query(
        self,
        user_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[MoodEntry]:
        """
        Get a user's entries with timestamps in [start, end].

        Args:
            user_id: Owner of the entries
            start: Inclusive lower bound (open if omitted)
            end: Inclusive upper bound (open if omitted)
            limit: Return at most this many of the most recent matches

        Returns:
            Entries ordered most-recent-first
        """
        raise NotImplementedError

    async def count(self, user_id: str) -> int:
        raise NotImplementedError


class InMemoryEntryStore(EntryStore):
    """Per-user lists held in process memory."""

    def __init__(self):
        self._entries: Dict[str, List[MoodEntry]] = {}
        self._ids: Dict[str, Set[str]] = {}

    async def append(self, entry: MoodEntry) -> None:
        ids = self._ids.setdefault(entry.user_id, set())
        if entry.id in ids:
            raise EntryStoreError(f"Entry {entry.id} already exists")

        entries = self._entries.setdefault(entry.user_id, [])
        # Newest first; a back-dated entry slots in behind anything later
        index = 0
        while index < len(entries) and entries[index].timestamp > entry.timestamp:
            index += 1
        entries.insert(index, entry)
        ids.add(entry.id)

    async def query(
        self,
        user_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[MoodEntry]:
        matches = [
            entry
            for entry in self._entries.get(user_id, [])
            if _in_range(entry.timestamp, start, end)
        ]
        if limit is not None:
            matches = matches[:limit]
        return matches

    async def count(self, user_id: str) -> int:
        return len(self._entries.get(user_id, []))


def _to_utc(value: datetime) -> datetime:
    return value.astimezone(timezone.utc)


def _record_to_entry(record: MoodEntryRecord) -> MoodEntry:
    timestamp = record.timestamp
    if timestamp.tzinfo is None:
        # SQLite drops tzinfo; everything is written as UTC
        timestamp = timestamp.replace(tzinfo=timezone.utc)

    return MoodEntry.model_validate(
        {
            "id": record.id,
            "user_id": record.user_id,
            "timestamp": timestamp,
            "mood_score": record.mood_score,
            "emoji": record.emoji or "",
            "emotion": record.emotion or "",
            "phrase": record.phrase,
            "voice_note": record.voice_note,
            "tags": record.tags or [],
            "context": record.context,
            "assessment_correlation": record.assessment_correlation,
        }
    )


def _entry_to_record(entry: MoodEntry) -> MoodEntryRecord:
    data = entry.model_dump(mode="json")
    return MoodEntryRecord(
        id=entry.id,
        user_id=entry.user_id,
        timestamp=_to_utc(entry.timestamp),
        mood_score=entry.mood_score,
        emoji=entry.emoji,
        emotion=entry.emotion,
        phrase=entry.phrase,
        tags=list(entry.tags),
        context=data["context"],
        voice_note=data["voice_note"],
        assessment_correlation=data["assessment_correlation"],
    )


class SqlAlchemyEntryStore(EntryStore):
    """
    Entry store backed by the ``mood_entries`` table.

    Session work is synchronous and runs in a worker thread.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    async def append(self, entry: MoodEntry) -> None:
        await asyncio.to_thread(self._append_sync, entry)

    async def query(
        self,
        user_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[MoodEntry]:
        return await asyncio.to_thread(self._query_sync, user_id, start, end, limit)

    async def count(self, user_id: str) -> int:
        return await asyncio.to_thread(self._count_sync, user_id)

    def _append_sync(self, entry: MoodEntry) -> None:
        with self.session_factory() as db:
            try:
                db.add(_entry_to_record(entry))
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error("Failed to append entry %s for user %s", entry.id, entry.user_id)
                raise EntryStoreError(f"Failed to append entry {entry.id}") from e

    def _query_sync(
        self,
        user_id: str,
        start: Optional[datetime],
        end: Optional[datetime],
        limit: Optional[int],
    ) -> List[MoodEntry]:
        with self.session_factory() as db:
            try:
                query = db.query(MoodEntryRecord).filter(MoodEntryRecord.user_id == user_id)
                if start is not None:
                    query = query.filter(MoodEntryRecord.timestamp >= _to_utc(start))
                if end is not None:
                    query = query.filter(MoodEntryRecord.timestamp <= _to_utc(end))
                query = query.order_by(
                    MoodEntryRecord.timestamp.desc(), MoodEntryRecord.seq.desc()
                )
                if limit is not None:
                    query = query.limit(limit)
                records = query.all()
            except SQLAlchemyError as e:
                raise EntryStoreError(f"Failed to query entries for user {user_id}") from e

            return [_record_to_entry(record) for record in records]

    def _count_sync(self, user_id: str) -> int:
        with self.session_factory() as db:
            try:
                return (
                    db.query(MoodEntryRecord)
                    .filter(MoodEntryRecord.user_id == user_id)
                    .count()
                )
            except SQLAlchemyError as e:
                raise EntryStoreError(f"Failed to count entries for user {user_id}") from e
