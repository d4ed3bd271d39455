"""Tracker implementation for recording TraceEvents."""

import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Protocol

from ..event_bus import IEventBus
from ..logging_config import get_logger
from ..models import BusEvent, EventType, TraceEvent

logger = get_logger(__name__)


class ITracker(Protocol):
    """Recording TraceEvents. Two channels: EventBus subscription + direct calls."""

    async def track(self, event_type: str, actor: str, data: dict) -> None:
        """Create TraceEvent and add it to the history."""
        ...

    def events(
        self, event_type: str | None = None, limit: int = 100
    ) -> list[TraceEvent]:
        """Recorded events, newest first."""
        ...


class Tracker:
    """Keeps a bounded history of TraceEvents from the bus and direct track() calls."""

    def __init__(self, event_bus: IEventBus, history_size: int = 500):
        self._event_bus = event_bus
        self._history: deque[TraceEvent] = deque(maxlen=history_size)

    async def start(self) -> None:
        """Subscribe to all EventBus event types."""
        for event_type in EventType:
            self._event_bus.subscribe(event_type, self._handle_bus_event)

    async def stop(self) -> None:
        """Unsubscribe from the EventBus."""
        for event_type in EventType:
            self._event_bus.unsubscribe(event_type, self._handle_bus_event)

    async def _handle_bus_event(self, event: BusEvent) -> None:
        """Record a BusEvent with a payload summary."""
        payload_summary = str(event.payload)[:100]

        await self.track(
            event_type="bus_event",
            actor=event.source,
            data={
                "type": event.type.value,
                "payload_summary": payload_summary,
            },
        )

    async def track(self, event_type: str, actor: str, data: dict) -> None:
        """Create TraceEvent and add it to the history."""
        trace_event = TraceEvent(
            id=str(uuid.uuid4()),
            event_type=event_type,
            actor=actor,
            data=data,
            timestamp=datetime.now(timezone.utc),
        )
        self._history.append(trace_event)
        logger.debug("trace %s by %s", event_type, actor, extra={"context": data})

    def events(
        self, event_type: str | None = None, limit: int = 100
    ) -> list[TraceEvent]:
        """Recorded events, newest first."""
        selected = [
            event
            for event in reversed(self._history)
            if event_type is None or event.event_type == event_type
        ]
        return selected[:limit]
