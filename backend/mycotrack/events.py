"""In-process change feed.

The workflow publishes a topic after every successful write; views and
other consumers subscribe to keep themselves in sync.  Subscribers are
plain callables or coroutine functions.  A failing subscriber is logged
and skipped; it never breaks the write that published the event.

API requests publish through a DeferredFeed, which holds the events back
until the request transaction has committed.
"""

import inspect
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from mycotrack.utils.timeutil import utcnow

logger = logging.getLogger(__name__)

# ── Topics ───────────────────────────────────────────────────
STAGE_LOG_SAVED = "stage_log.saved"
ITEMS_UPDATED = "items.updated"
OBSERVATION_RECORDED = "observation.recorded"
DELIVERY_CREATED = "delivery.created"
DELIVERY_UPDATED = "delivery.updated"
HARVEST_RECORDED = "harvest.recorded"
STOCK_ADJUSTED = "stock.adjusted"

# Subscribe to every topic
ALL = "*"


@dataclass
class ChangeEvent:
    topic: str
    tenant_id: str
    payload: dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=utcnow)


Subscriber = Callable[[ChangeEvent], Any]


class ChangeFeed:
    def __init__(self):
        self._subscribers: dict[str, list[Subscriber]] = defaultdict(list)

    def subscribe(self, topic: str, callback: Subscriber) -> Callable[[], None]:
        """Register a callback; returns a function that unsubscribes it."""
        self._subscribers[topic].append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers[topic]:
                self._subscribers[topic].remove(callback)

        return unsubscribe

    async def publish(self, topic: str, tenant_id: str, **payload: Any) -> ChangeEvent:
        event = ChangeEvent(topic=topic, tenant_id=tenant_id, payload=payload)
        await self.deliver(event)
        return event

    async def deliver(self, event: ChangeEvent) -> None:
        for callback in [*self._subscribers[event.topic], *self._subscribers[ALL]]:
            try:
                result = callback(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Change feed subscriber failed for %s", event.topic)


class DeferredFeed:
    """Buffers events for one request until its transaction has committed.

    Services publish into it exactly as they would into a ChangeFeed; the
    request dependency calls `flush` after commit, or `discard` when the
    request fails, so subscribers never see a write that was rolled back.
    """

    def __init__(self, feed: ChangeFeed):
        self.feed = feed
        self.pending: list[ChangeEvent] = []

    def subscribe(self, topic: str, callback: Subscriber) -> Callable[[], None]:
        return self.feed.subscribe(topic, callback)

    async def publish(self, topic: str, tenant_id: str, **payload: Any) -> ChangeEvent:
        event = ChangeEvent(topic=topic, tenant_id=tenant_id, payload=payload)
        self.pending.append(event)
        return event

    async def flush(self) -> None:
        events, self.pending = self.pending, []
        for event in events:
            await self.feed.deliver(event)

    def discard(self) -> None:
        if self.pending:
            logger.info("Dropping %d unpublished change events", len(self.pending))
        self.pending = []


# Process-wide feed used by the API
change_feed = ChangeFeed()
