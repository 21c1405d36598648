"""
Mood analytics engine: the in-process entry point for the UI and bot layers.

The engine holds no durable state of its own. Entries live in an injected
EntryStore and the latest insight set in an InsightStore; every analytic
call works on a snapshot of one user's entries. Appends for the same user
are serialized so the chronological ordering the trend fit depends on is
preserved; different users never wait on each other.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Set, Union

from mood_analytics.config import Settings, settings
from mood_analytics.database import make_session_factory
from mood_analytics.schemas import (
    AnalyticsSummary,
    Correlation,
    ExportSnapshot,
    Insight,
    MoodEntry,
    Pattern,
    Trend,
)
from mood_analytics.services.correlation_service import CorrelationAnalyzer
from mood_analytics.services.entry_store import (
    EntryStore,
    InMemoryEntryStore,
    SqlAlchemyEntryStore,
)
from mood_analytics.services.event_publisher import (
    EventPublisher,
    LocalEventBus,
    RedisEventPublisher,
)
from mood_analytics.services.export_service import ExportAssembler
from mood_analytics.services.insight_service import InsightGenerator, InsightStore
from mood_analytics.services.pattern_service import PatternDetector
from mood_analytics.services.trend_service import TrendCalculator

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class KeyedLock:
    """
    One asyncio.Lock per key, created on demand.

    A key's lock is dropped once no task holds or waits on it, so the map
    only grows with the number of users active at the same moment.
    """

    def __init__(self):
        # key -> [lock, holders + waiters]
        self._locks: Dict[str, list] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        slot = self._locks.get(key)
        if slot is None:
            slot = self._locks[key] = [asyncio.Lock(), 0]
        slot[1] += 1
        try:
            async with slot[0]:
                yield
        finally:
            slot[1] -= 1
            if slot[1] == 0:
                del self._locks[key]


class MoodAnalyticsEngine:
    """Coordinates ingestion, analysis, insight storage and events."""

    def __init__(
        self,
        store: Optional[EntryStore] = None,
        publisher: Optional[EventPublisher] = None,
        insight_store: Optional[InsightStore] = None,
        config: Settings = settings,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.config = config
        self.store = store or InMemoryEntryStore()
        self.publisher = publisher or LocalEventBus()
        self.insight_store = insight_store or InsightStore()
        self.clock = clock or utc_now

        self.trend_calculator = TrendCalculator(config)
        self.pattern_detector = PatternDetector(config)
        self.correlation_analyzer = CorrelationAnalyzer(config)
        self.insight_generator = InsightGenerator(
            config,
            trend_calculator=self.trend_calculator,
            pattern_detector=self.pattern_detector,
            correlation_analyzer=self.correlation_analyzer,
        )
        self.export_assembler = ExportAssembler(config)

        self._append_locks = KeyedLock()
        self._analysis_locks = KeyedLock()
        self._pending: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    async def add_entry(self, entry: Union[MoodEntry, Dict[str, Any]]) -> MoodEntry:
        """
        Validate and append an entry, then notify subscribers.

        When ``analyze_on_write`` is enabled, insight regeneration is started
        in the background. Its failures are reported as ``analysis_error``
        events and never undo the append.

        Args:
            entry: A MoodEntry or a dict of its fields

        Returns:
            The stored entry

        Raises:
            pydantic.ValidationError: The entry violates the entry invariants
            EntryStoreError: The store could not persist the entry
        """
        if not isinstance(entry, MoodEntry):
            entry = MoodEntry.model_validate(entry)

        async with self._append_locks.hold(entry.user_id):
            await self.store.append(entry)
        logger.info("Appended mood entry %s for user %s", entry.id, entry.user_id)

        try:
            await self.publisher.publish_entry_added(entry.user_id, entry, self.clock())
        except Exception:
            logger.exception("Failed to publish entry_added for user %s", entry.user_id)

        if self.config.analyze_on_write:
            task = asyncio.create_task(self._analyze_user(entry.user_id))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

        return entry

    async def get_entries(
        self,
        user_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[MoodEntry]:
        """Entries in [start, end], most-recent-first."""
        return await self.store.query(user_id, start, end)

    async def wait_for_analysis(self) -> None:
        """Wait for background analysis started by ``add_entry`` to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    async def _analyze_user(self, user_id: str) -> None:
        try:
            await self.generate_insights(user_id)
        except Exception as e:
            logger.exception("Insight generation failed for user %s", user_id)
            try:
                await self.publisher.publish_analysis_error(user_id, str(e), self.clock())
            except Exception:
                logger.exception("Failed to publish analysis_error for user %s", user_id)

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    async def _load_history(self, user_id: str) -> List[MoodEntry]:
        return await self.store.query(user_id, limit=self.config.analysis_max_entries)

    async def _trends(self, user_id: str, now: datetime) -> List[Trend]:
        cutoff = now - timedelta(days=self.trend_calculator.longest_lookback)
        entries = await self.store.query(user_id, start=cutoff, end=now)
        return self.trend_calculator.compute_trends(entries, now)

    async def compute_trends(self, user_id: str) -> List[Trend]:
        return await self._trends(user_id, self.clock())

    async def detect_patterns(self, user_id: str) -> List[Pattern]:
        return self.pattern_detector.detect_patterns(await self._load_history(user_id))

    async def compute_correlations(self, user_id: str) -> List[Correlation]:
        return self.correlation_analyzer.compute_correlations(await self._load_history(user_id))

    async def generate_insights(self, user_id: str) -> List[Insight]:
        """
        Recompute a user's insights and replace the stored set.

        Returns:
            The new insight set (empty with fewer than the minimum entries)
        """
        async with self._analysis_locks.hold(user_id):
            now = self.clock()
            entries = await self._load_history(user_id)
            insights = self.insight_generator.generate(entries, now)
            self.insight_store.replace(user_id, insights)

        logger.info("Generated %d insights for user %s", len(insights), user_id)
        await self.publisher.publish_insights_generated(user_id, insights, now)
        return insights

    def get_user_insights(self, user_id: str) -> List[Insight]:
        """The last generated insight set, without expired insights."""
        return self.insight_store.get(user_id, now=self.clock())

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    async def export_data(
        self,
        user_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> ExportSnapshot:
        """Snapshot of entries in range plus the user's current analytics."""
        now = self.clock()
        entries = await self.store.query(user_id, start, end)
        history = await self._load_history(user_id)

        return self.export_assembler.assemble(
            user_id=user_id,
            entries=entries,
            trends=await self._trends(user_id, now),
            patterns=self.pattern_detector.detect_patterns(history),
            correlations=self.correlation_analyzer.compute_correlations(history),
            insights=self.insight_store.get(user_id, now=now),
            now=now,
            start=start,
            end=end,
        )

    async def get_analytics_summary(self, user_id: str) -> AnalyticsSummary:
        now = self.clock()
        history = await self._load_history(user_id)
        summary = self.export_assembler.summarize_activity(
            entries=history,
            insights=self.insight_store.get(user_id, now=now),
            trends=await self._trends(user_id, now),
            patterns=self.pattern_detector.detect_patterns(history),
        )
        # History is bounded; report the true total
        return summary.model_copy(update={"entries_count": await self.store.count(user_id)})


def build_analytics_engine(config: Settings = settings) -> MoodAnalyticsEngine:
    """Create an engine with the store and event backends named in settings."""
    if config.entry_store_backend == "sqlalchemy":
        store: EntryStore = SqlAlchemyEntryStore(make_session_factory(config.database_url))
    elif config.entry_store_backend == "memory":
        store = InMemoryEntryStore()
    else:
        raise ValueError(f"Unknown entry store backend: {config.entry_store_backend}")

    if config.event_backend == "redis":
        publisher: EventPublisher = RedisEventPublisher(
            config.redis_url, config.event_channel_prefix
        )
    elif config.event_backend == "local":
        publisher = LocalEventBus()
    else:
        raise ValueError(f"Unknown event backend: {config.event_backend}")

    return MoodAnalyticsEngine(store=store, publisher=publisher, config=config)
