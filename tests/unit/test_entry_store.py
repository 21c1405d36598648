"""
Unit tests for the entry store backends.

The same behaviour is checked against the in-memory store and the
SQLAlchemy store over in-memory SQLite.
"""
import pytest
from datetime import timedelta, timezone
from unittest.mock import MagicMock

from sqlalchemy.exc import OperationalError

from mood_analytics.services.entry_store import (
    EntryStoreError,
    InMemoryEntryStore,
    SqlAlchemyEntryStore,
)
from tests.factories import DEFAULT_NOW, create_entry, screening


@pytest.fixture(params=["memory", "sqlalchemy"])
def store(request):
    if request.param == "memory":
        return InMemoryEntryStore()
    return SqlAlchemyEntryStore(request.getfixturevalue("session_factory"))


class TestAppendAndQuery:
    """Tests shared by every backend."""

    @pytest.mark.asyncio
    async def test_query_is_most_recent_first(self, store):
        for hours in (3, 1, 2):
            await store.append(create_entry(timestamp=DEFAULT_NOW - timedelta(hours=hours)))

        entries = await store.query("user-1")

        assert [e.timestamp for e in entries] == [
            DEFAULT_NOW - timedelta(hours=1),
            DEFAULT_NOW - timedelta(hours=2),
            DEFAULT_NOW - timedelta(hours=3),
        ]

    @pytest.mark.asyncio
    async def test_same_timestamp_newest_append_first(self, store):
        first = create_entry(mood_score=3)
        second = create_entry(mood_score=7)
        await store.append(first)
        await store.append(second)

        entries = await store.query("user-1")

        assert [e.id for e in entries] == [second.id, first.id]

    @pytest.mark.asyncio
    async def test_range_is_inclusive(self, store):
        for day in range(5):
            await store.append(create_entry(timestamp=DEFAULT_NOW - timedelta(days=day)))

        entries = await store.query(
            "user-1",
            start=DEFAULT_NOW - timedelta(days=3),
            end=DEFAULT_NOW - timedelta(days=1),
        )

        assert len(entries) == 3

    @pytest.mark.asyncio
    async def test_limit_keeps_most_recent(self, store):
        for day in range(5):
            await store.append(
                create_entry(mood_score=day + 1, timestamp=DEFAULT_NOW - timedelta(days=day))
            )

        entries = await store.query("user-1", limit=2)

        assert [e.mood_score for e in entries] == [1, 2]

    @pytest.mark.asyncio
    async def test_users_are_isolated(self, store):
        await store.append(create_entry(user_id="alice"))
        await store.append(create_entry(user_id="bob"))
        await store.append(create_entry(user_id="bob"))

        assert await store.count("alice") == 1
        assert await store.count("bob") == 2
        assert await store.query("carol") == []

    @pytest.mark.asyncio
    async def test_duplicate_id_rejected(self, store):
        entry = create_entry()
        await store.append(entry)

        with pytest.raises(EntryStoreError):
            await store.append(entry)

        assert await store.count("user-1") == 1

    @pytest.mark.asyncio
    async def test_round_trip_preserves_fields(self, store):
        entry = create_entry(
            mood_score=4,
            phrase="Long day",
            tags=["work"],
            context={"location": "office", "time_of_day": "evening"},
            voice_note={"id": "vn-1", "duration": 12.0, "transcript": "tired"},
            assessment_correlation=screening(phq4=5, gad7=8),
        )
        await store.append(entry)

        stored = (await store.query("user-1"))[0]

        assert stored == entry
        assert stored.timestamp.tzinfo is not None


class TestSqlAlchemyEntryStore:
    """Backend-specific behaviour of the SQLAlchemy store."""

    @pytest.mark.asyncio
    async def test_timestamps_normalized_to_utc(self, session_factory):
        from zoneinfo import ZoneInfo

        store = SqlAlchemyEntryStore(session_factory)
        local = DEFAULT_NOW.astimezone(ZoneInfo("Europe/Berlin"))
        await store.append(create_entry(timestamp=local))

        stored = (await store.query("user-1"))[0]

        assert stored.timestamp == DEFAULT_NOW
        assert stored.timestamp.tzinfo == timezone.utc

    @pytest.mark.asyncio
    async def test_database_errors_are_wrapped(self):
        session = MagicMock()
        session.__enter__.return_value = session
        session.query.side_effect = OperationalError("SELECT", {}, Exception("db down"))
        store = SqlAlchemyEntryStore(lambda: session)

        with pytest.raises(EntryStoreError) as exc_info:
            await store.query("user-1")

        assert isinstance(exc_info.value.__cause__, OperationalError)
