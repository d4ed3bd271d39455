"""EventBus implementation for pub/sub between transport and consumers."""

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Awaitable, Callable, Protocol

from ..logging_config import get_logger
from ..models import BusEvent, EventType

logger = get_logger(__name__)


EventHandler = Callable[[BusEvent], Awaitable[None]]


class IEventBus(Protocol):
    """In-memory pub/sub for exchanging BusEvents."""

    def subscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """Subscribe a handler to an event type."""
        ...

    def unsubscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """Remove a previously subscribed handler."""
        ...

    async def publish(self, event: BusEvent) -> None:
        """Publish BusEvent: calls every subscriber of its type."""
        ...

    async def emit(
        self, event_type: EventType, payload: dict, source: str
    ) -> BusEvent:
        """Build and publish a BusEvent."""
        ...


class EventBus:
    """In-memory pub/sub event bus.

    Several consumers may subscribe to the same event type without
    replacing each other. publish() returns once every handler has run,
    so a publisher that awaits it delivers events in arrival order.
    """

    def __init__(self):
        self._subscribers: dict[EventType, list[EventHandler]] = {
            event_type: [] for event_type in EventType
        }

    def subscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """Subscribe a handler to an event type."""
        self._subscribers[event_type].append(handler)

    def unsubscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """Remove a previously subscribed handler."""
        handlers = self._subscribers[event_type]
        if handler in handlers:
            handlers.remove(handler)

    async def publish(self, event: BusEvent) -> None:
        """Publish BusEvent: calls every subscriber of its type."""
        if not event.id:
            event.id = str(uuid.uuid4())

        handlers = list(self._subscribers.get(event.type, []))

        if handlers:
            results = await asyncio.gather(
                *[handler(event) for handler in handlers],
                return_exceptions=True,
            )

            for i, result in enumerate(results):
                if isinstance(result, Exception):
                    logger.error(
                        "Error in %s handler %s: %s", event.type.value, i, result
                    )

    async def emit(
        self, event_type: EventType, payload: dict, source: str
    ) -> BusEvent:
        """Build and publish a BusEvent."""
        event = BusEvent(
            id=str(uuid.uuid4()),
            type=event_type,
            payload=payload,
            source=source,
            timestamp=datetime.now(timezone.utc),
        )
        await self.publish(event)
        return event
