"""Tests for TransportClient."""

import asyncio

import pytest
import pytest_asyncio

from inbox_sync.errors import TransportDisconnected
from inbox_sync.models import BusEvent, EventType
from inbox_sync.transport import TransportClient

from fakes import FakeConnection


async def settle(condition, timeout: float = 1.0) -> None:
    """Wait until condition() holds."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not condition():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.005)


@pytest.fixture
def connection():
    return FakeConnection()


@pytest.fixture
def received(event_bus):
    events: list[BusEvent] = []

    async def handler(event: BusEvent):
        events.append(event)

    for event_type in EventType:
        event_bus.subscribe(event_type, handler)
    return events


@pytest_asyncio.fixture
async def transport(connection, event_bus, settings):
    client = TransportClient(
        connection,
        event_bus,
        reconnect_delay=settings.reconnect_delay,
        max_reconnect_attempts=settings.max_reconnect_attempts,
    )
    yield client
    await client.stop()


def of_type(events, event_type):
    return [e for e in events if e.type == event_type]


class TestConnection:
    """Tests for connect, reconnect and room membership."""

    @pytest.mark.asyncio
    async def test_connected_event(self, transport, received):
        """Test that a connect publishes a status event."""
        await transport.start()
        await settle(lambda: transport.connected)
        assert len(of_type(received, EventType.CONNECTED)) == 1

    @pytest.mark.asyncio
    async def test_rejoins_rooms_after_reconnect(self, transport, connection, received):
        """Test that joined threads are re-joined after a drop."""
        await transport.start()
        await settle(lambda: transport.connected)
        await transport.join_thread("t1")
        assert connection.sent == [("join_thread", {"threadId": "t1"})]

        connection.drop()
        await settle(lambda: len(of_type(received, EventType.CONNECTED)) == 2)

        assert of_type(received, EventType.DISCONNECTED)
        assert connection.sent[-1] == ("join_thread", {"threadId": "t1"})
        assert connection.connects == 2

    @pytest.mark.asyncio
    async def test_join_while_offline_is_deferred(self, transport, connection):
        """Test that a join before connect is sent on connect."""
        await transport.join_thread("t1")
        assert connection.sent == []
        await transport.start()
        await settle(lambda: connection.sent == [("join_thread", {"threadId": "t1"})])

    @pytest.mark.asyncio
    async def test_leave_forgets_room(self, transport, connection):
        """Test that a left room is not re-joined."""
        await transport.start()
        await settle(lambda: transport.connected)
        await transport.join_thread("t1")
        await transport.leave_thread("t1")
        assert transport.rooms == set()
        assert connection.sent[-1] == ("leave_thread", {"threadId": "t1"})

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, event_bus, received):
        """Test the final disconnected event when every connect fails."""
        connection = FakeConnection(connect_failures=10)
        client = TransportClient(
            connection, event_bus, reconnect_delay=0.001, max_reconnect_attempts=3
        )
        await client.start()
        await settle(lambda: of_type(received, EventType.DISCONNECTED))

        assert connection.connects == 3
        assert of_type(received, EventType.DISCONNECTED)[0].payload["final"] is True
        await client.stop()

    @pytest.mark.asyncio
    async def test_send_when_offline_raises(self, transport):
        """Test that sending without a connection raises."""
        with pytest.raises(TransportDisconnected):
            await transport.send(EventType.USER_TYPING, {"threadId": "t1"})


class TestDispatch:
    """Tests for inbound event dispatch."""

    @pytest.mark.asyncio
    async def test_valid_event_published(self, transport, received):
        """Test that a valid inbound event reaches the bus."""
        await transport.dispatch(
            "user_typing",
            {"threadId": "t1", "userId": "s1", "userName": "Sam", "isTyping": True},
        )
        events = of_type(received, EventType.USER_TYPING)
        assert len(events) == 1
        assert events[0].payload["thread_id"] == "t1"
        assert events[0].payload["is_typing"] is True

    @pytest.mark.asyncio
    async def test_alias_name(self, transport, received):
        """Test the alternate thread update spelling."""
        await transport.dispatch("thread_updated", {"threadId": "t1", "patch": {}})
        assert len(of_type(received, EventType.THREAD_UPDATE)) == 1

    @pytest.mark.asyncio
    async def test_malformed_payload_dropped(self, transport, received):
        """Test that an invalid payload is not published."""
        await transport.dispatch("user_typing", {"threadId": "t1"})
        assert received == []

    @pytest.mark.asyncio
    async def test_unknown_and_local_events_ignored(self, transport, received):
        """Test that unknown names and local-only names are ignored."""
        await transport.dispatch("server_banner", {})
        await transport.dispatch("connected", {})
        assert received == []

    @pytest.mark.asyncio
    async def test_frames_dispatched_in_order(self, transport, connection, received):
        """Test that frames from the connection are delivered in arrival order."""
        await transport.start()
        await settle(lambda: transport.connected)
        for n in range(3):
            connection.push("message_deleted", {"threadId": "t1", "messageId": f"m{n}"})
        await settle(lambda: len(of_type(received, EventType.MESSAGE_DELETED)) == 3)

        ids = [e.payload["message_id"] for e in of_type(received, EventType.MESSAGE_DELETED)]
        assert ids == ["m0", "m1", "m2"]
