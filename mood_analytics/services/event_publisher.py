"""
Event publishing for mood analytics notifications.

Three events cross the boundary: ``entry_added``, ``insights_generated`` and
``analysis_error``. Every payload is a JSON-safe dict carrying ``user_id`` and
``timestamp`` plus event-specific fields.

LocalEventBus delivers to in-process subscribers. RedisEventPublisher fans
events out over Redis pub/sub for separate consumers such as a push
notification service watching for critical alerts.
"""

import asyncio
import inspect
import json
import logging
from collections import defaultdict
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

import redis

from mood_analytics.config import settings
from mood_analytics.schemas import Insight, MoodEntry

logger = logging.getLogger(__name__)

ENTRY_ADDED = "entry_added"
INSIGHTS_GENERATED = "insights_generated"
ANALYSIS_ERROR = "analysis_error"


class EventPublisher:
    """Base publisher; subclasses implement ``_publish``."""

    async def _publish(self, user_id: str, event_type: str, data: Dict[str, Any]) -> None:
        raise NotImplementedError

    async def publish_entry_added(
        self, user_id: str, entry: MoodEntry, timestamp: datetime
    ) -> None:
        """
        Publish an entry-added event.

        Args:
            user_id: Owner of the entry
            entry: The appended entry
            timestamp: When the append completed
        """
        await self._publish(user_id, ENTRY_ADDED, {
            "user_id": user_id,
            "timestamp": timestamp.isoformat(),
            "entry": entry.model_dump(mode="json"),
        })

    async def publish_insights_generated(
        self, user_id: str, insights: Sequence[Insight], timestamp: datetime
    ) -> None:
        """
        Publish the freshly generated insight set.

        Args:
            user_id: Owner of the insights
            insights: The full replacement set
            timestamp: Generation time
        """
        await self._publish(user_id, INSIGHTS_GENERATED, {
            "user_id": user_id,
            "timestamp": timestamp.isoformat(),
            "insights": [insight.model_dump(mode="json") for insight in insights],
            "critical_count": sum(1 for i in insights if i.priority == "critical"),
        })

    async def publish_analysis_error(
        self, user_id: str, message: str, timestamp: datetime
    ) -> None:
        await self._publish(user_id, ANALYSIS_ERROR, {
            "user_id": user_id,
            "timestamp": timestamp.isoformat(),
            "message": message,
        })

    def close(self) -> None:
        pass


Handler = Callable[[Dict[str, Any]], Any]


class LocalEventBus(EventPublisher):
    """In-process delivery to sync or async subscriber callables."""

    def __init__(self):
        self._subscribers: Dict[str, List[Handler]] = defaultdict(list)

    def subscribe(self, event_type: str, handler: Handler) -> Callable[[], None]:
        """
        Register a handler for an event type.

        Returns:
            A callable that removes the handler again
        """
        self._subscribers[event_type].append(handler)

        def unsubscribe():
            if handler in self._subscribers[event_type]:
                self._subscribers[event_type].remove(handler)

        return unsubscribe

    async def _publish(self, user_id: str, event_type: str, data: Dict[str, Any]) -> None:
        for handler in list(self._subscribers[event_type]):
            try:
                result = handler(data)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                # One subscriber must not break delivery to the rest
                logger.exception("Subscriber failed handling %s for user %s", event_type, user_id)


class RedisEventPublisher(EventPublisher):
    """Publishes events via Redis pub/sub, one channel per user."""

    def __init__(self, redis_url: Optional[str] = None, channel_prefix: Optional[str] = None):
        self.redis = redis.from_url(redis_url or settings.redis_url)
        self.channel_prefix = channel_prefix or settings.event_channel_prefix

    def _get_channel(self, user_id: str) -> str:
        """Get Redis pub/sub channel name for a user."""
        return f"{self.channel_prefix}:{user_id}"

    async def _publish(self, user_id: str, event_type: str, data: Dict[str, Any]) -> None:
        channel = self._get_channel(user_id)
        message = json.dumps({
            "event": event_type,
            "data": data
        })
        await asyncio.to_thread(self.redis.publish, channel, message)

    def close(self):
        """Close Redis connection."""
        self.redis.close()


class RedisEventSubscriber:
    """
    Subscribes to mood events from Redis pub/sub.

    With a user_id only that user's channel is followed; without one every
    user's channel is matched by pattern.
    """

    def __init__(
        self,
        user_id: Optional[str] = None,
        redis_url: Optional[str] = None,
        channel_prefix: Optional[str] = None,
    ):
        prefix = channel_prefix or settings.event_channel_prefix
        self.redis = redis.from_url(redis_url or settings.redis_url)
        self.pubsub = self.redis.pubsub()
        if user_id is None:
            self.channel = f"{prefix}:*"
            self.pubsub.psubscribe(self.channel)
        else:
            self.channel = f"{prefix}:{user_id}"
            self.pubsub.subscribe(self.channel)

    async def listen(self, max_events: Optional[int] = None):
        """
        Async generator that yields events.

        Args:
            max_events: Stop after this many events (runs until closed if None)

        Yields:
            Tuple of (event_type, data) for each event
        """
        received = 0
        while max_events is None or received < max_events:
            # Blocking poll runs off the event loop
            message = await asyncio.to_thread(self.pubsub.get_message, timeout=1.0)
            if message and message["type"] in ("message", "pmessage"):
                try:
                    payload = json.loads(message["data"])
                except json.JSONDecodeError:
                    logger.warning("Dropping malformed event on %s", message.get("channel"))
                    continue
                received += 1
                yield (payload.get("event", "message"), payload.get("data", {}))
            else:
                # Small delay to prevent busy-waiting
                await asyncio.sleep(0.1)

    def close(self):
        """Cleanup resources."""
        if self.channel.endswith("*"):
            self.pubsub.punsubscribe(self.channel)
        else:
            self.pubsub.unsubscribe(self.channel)
        self.pubsub.close()
        self.redis.close()
