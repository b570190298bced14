"""
Event publisher that holds events until the surrounding transaction commits.

Use cases publish while they still hold row locks; nothing reaches the
broker until ``flush()`` is called after a successful commit.
"""
import structlog

from listing_lifecycle.application.interfaces.event_publisher import EventPublisher
from listing_lifecycle.domain.events.domain_events import DomainEvent

logger = structlog.get_logger(__name__)


class BufferedEventPublisher(EventPublisher):
    def __init__(self, inner: EventPublisher) -> None:
        self._inner = inner
        self._pending: list[DomainEvent] = []

    @property
    def pending(self) -> list[DomainEvent]:
        return list(self._pending)

    async def publish(self, event: DomainEvent) -> None:
        self._pending.append(event)

    async def flush(self) -> int:
        events, self._pending = self._pending, []
        if events:
            await self._inner.publish_many(events)
            logger.debug("buffered_events_flushed", count=len(events))
        return len(events)

    def discard(self) -> int:
        dropped = len(self._pending)
        self._pending = []
        if dropped:
            logger.info("buffered_events_discarded", count=dropped)
        return dropped
