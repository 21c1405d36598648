"""
Test configuration and fixtures for the mood analytics engine.

- Fixed clock so trend windows and insight expiry are deterministic
- In-memory entry store and local event bus collecting published events
- In-memory SQLite session factory for the SQLAlchemy store
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Tuple

import pytest
from sqlalchemy.pool import StaticPool

from mood_analytics.config import Settings
from mood_analytics.database import make_session_factory
from mood_analytics.services.analytics_engine import MoodAnalyticsEngine
from mood_analytics.services.entry_store import InMemoryEntryStore
from mood_analytics.services.event_publisher import (
    ANALYSIS_ERROR,
    ENTRY_ADDED,
    INSIGHTS_GENERATED,
    LocalEventBus,
)

# A Wednesday, so weekday bucketing in tests is easy to reason about
FIXED_NOW = datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# Clock / Config Fixtures
# =============================================================================


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def config() -> Settings:
    """Default settings, isolated from any .env or MOOD_* environment."""
    return Settings(_env_file=None)


# =============================================================================
# Backend Fixtures
# =============================================================================


@pytest.fixture
def memory_store() -> InMemoryEntryStore:
    return InMemoryEntryStore()


@pytest.fixture
def session_factory():
    """
    Session factory over a private in-memory SQLite database.

    StaticPool keeps a single connection so worker threads share the data.
    """
    return make_session_factory("sqlite://", poolclass=StaticPool)


class RecordingBus(LocalEventBus):
    """LocalEventBus that records every event it delivers."""

    def __init__(self):
        super().__init__()
        self.events: List[Tuple[str, Dict[str, Any]]] = []
        for event_type in (ENTRY_ADDED, INSIGHTS_GENERATED, ANALYSIS_ERROR):
            self.subscribe(event_type, self._recorder(event_type))

    def _recorder(self, event_type: str):
        def record(data):
            self.events.append((event_type, data))

        return record

    def of_type(self, event_type: str) -> List[Dict[str, Any]]:
        return [data for kind, data in self.events if kind == event_type]


@pytest.fixture
def event_bus() -> RecordingBus:
    return RecordingBus()


@pytest.fixture
def engine(memory_store, event_bus, config, now) -> MoodAnalyticsEngine:
    """Engine over in-memory backends with a fixed clock."""
    return MoodAnalyticsEngine(
        store=memory_store,
        publisher=event_bus,
        config=config,
        clock=lambda: now,
    )
