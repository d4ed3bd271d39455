"""Transport client: the live event feed between this core and the server."""

import asyncio
from typing import Any, AsyncIterator, Protocol

from pydantic import ValidationError

from ..errors import TransportDisconnected
from ..event_bus import IEventBus
from ..logging_config import get_logger
from ..models import EventType, ThreadRef
from ..models.events import INBOUND_ALIASES, LOCAL_EVENTS, PAYLOAD_MODELS

logger = get_logger(__name__)

SOURCE = "transport"


class ITransportConnection(Protocol):
    """A single duplex connection carrying named JSON events."""

    async def connect(self) -> None:
        ...

    async def send(self, event: str, data: dict[str, Any]) -> None:
        ...

    def frames(self) -> AsyncIterator[tuple[str, dict[str, Any]]]:
        """Inbound (event, data) pairs until the connection drops."""
        ...

    async def close(self) -> None:
        ...


class ITransportClient(Protocol):
    """Live event feed. Inbound events are published on the EventBus."""

    @property
    def connected(self) -> bool:
        ...

    async def join_thread(self, thread_id: str) -> None:
        ...

    async def leave_thread(self, thread_id: str) -> None:
        ...

    async def send(self, event_type: EventType, payload: dict[str, Any]) -> None:
        """Send an event. Raises TransportDisconnected when offline."""
        ...


class TransportClient:
    """Owns the connection, reconnects, and dispatches inbound events.

    Room membership is remembered so every joined thread is re-joined
    after a reconnect.
    """

    def __init__(
        self,
        connection: ITransportConnection,
        event_bus: IEventBus,
        reconnect_delay: float = 1.0,
        max_reconnect_attempts: int = 5,
    ):
        self._connection = connection
        self._event_bus = event_bus
        self._reconnect_delay = reconnect_delay
        self._max_reconnect_attempts = max_reconnect_attempts
        self._rooms: set[str] = set()
        self._connected = False
        self._running = False
        self._task: asyncio.Task | None = None

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def rooms(self) -> set[str]:
        return set(self._rooms)

    async def start(self) -> None:
        """Start the connect/receive loop in the background."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the loop and close the connection."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self._connected = False
        await self._connection.close()

    async def _run(self) -> None:
        attempts = 0
        while self._running:
            try:
                await self._connection.connect()
            except Exception as e:
                attempts += 1
                logger.warning(
                    "Transport connect failed (%s/%s): %s",
                    attempts,
                    self._max_reconnect_attempts,
                    e,
                )
                if attempts >= self._max_reconnect_attempts:
                    logger.error("Transport giving up after %s attempts", attempts)
                    await self._event_bus.emit(
                        EventType.DISCONNECTED,
                        {"reason": str(e), "final": True},
                        SOURCE,
                    )
                    self._running = False
                    return
                await asyncio.sleep(self._reconnect_delay)
                continue

            attempts = 0
            self._connected = True
            await self._on_connected()

            reason = "closed"
            try:
                async for event_name, data in self._connection.frames():
                    await self.dispatch(event_name, data)
            except Exception as e:
                reason = str(e)
                logger.warning("Transport connection dropped: %s", e)

            self._connected = False
            if not self._running:
                return
            await self._event_bus.emit(
                EventType.DISCONNECTED, {"reason": reason, "final": False}, SOURCE
            )
            await asyncio.sleep(self._reconnect_delay)

    async def _on_connected(self) -> None:
        for thread_id in sorted(self._rooms):
            await self._send_join(thread_id)
        logger.info("Transport connected, rejoined %s thread(s)", len(self._rooms))
        await self._event_bus.emit(
            EventType.CONNECTED, {"rooms": sorted(self._rooms)}, SOURCE
        )

    async def dispatch(self, event_name: str, data: dict[str, Any]) -> None:
        """Validate an inbound event and publish it on the EventBus."""
        event_type = INBOUND_ALIASES.get(event_name)
        if event_type is None:
            try:
                event_type = EventType(event_name)
            except ValueError:
                logger.debug("Ignoring unknown transport event %s", event_name)
                return
        if event_type in LOCAL_EVENTS:
            logger.debug("Ignoring local-only event %s from transport", event_name)
            return

        model = PAYLOAD_MODELS.get(event_type)
        payload = data
        if model is not None:
            try:
                payload = model.model_validate(data).model_dump()
            except ValidationError as e:
                logger.warning("Dropping malformed %s event: %s", event_name, e)
                return

        await self._event_bus.emit(event_type, payload, SOURCE)

    async def join_thread(self, thread_id: str) -> None:
        """Join a thread room. Offline joins happen on the next connect."""
        self._rooms.add(thread_id)
        if self._connected:
            await self._send_join(thread_id)

    async def leave_thread(self, thread_id: str) -> None:
        self._rooms.discard(thread_id)
        if not self._connected:
            return
        try:
            await self.send(EventType.LEAVE_THREAD, ThreadRef(thread_id=thread_id).to_wire())
        except TransportDisconnected:
            logger.debug("Leave of %s not delivered, connection is down", thread_id)

    async def send(self, event_type: EventType, payload: dict[str, Any]) -> None:
        """Send an event. Raises TransportDisconnected when offline."""
        if not self._connected:
            raise TransportDisconnected()
        try:
            await self._connection.send(event_type.value, payload)
        except ConnectionError as e:
            raise TransportDisconnected() from e

    async def _send_join(self, thread_id: str) -> None:
        try:
            await self.send(EventType.JOIN_THREAD, ThreadRef(thread_id=thread_id).to_wire())
        except TransportDisconnected:
            logger.debug("Join of %s deferred until reconnect", thread_id)
