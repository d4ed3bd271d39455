"""Tests for WebSocketConnection against a local aiohttp server."""

import json

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from inbox_sync.transport import WebSocketConnection


async def ws_handler(request: web.Request) -> web.WebSocketResponse:
    ws = web.WebSocketResponse()
    await ws.prepare(request)
    request.app["auth"].append(request.headers.get("Authorization"))
    async for msg in ws:
        frame = json.loads(msg.data)
        request.app["received"].append(frame)
        if frame["event"] == "join_thread":
            await ws.send_str("not json")
            await ws.send_json(
                {
                    "event": "user_typing",
                    "data": {"threadId": frame["data"]["threadId"], "userId": "s1", "isTyping": True},
                }
            )
            await ws.close()
    return ws


@pytest_asyncio.fixture
async def server():
    app = web.Application()
    app["auth"] = []
    app["received"] = []
    app.router.add_get("/ws", ws_handler)
    test_server = TestServer(app)
    await test_server.start_server()
    yield test_server
    await test_server.close()


class TestWebSocketConnection:
    """Tests for the aiohttp connection."""

    @pytest.mark.asyncio
    async def test_round_trip(self, server):
        """Test auth header, outbound frame and inbound frames."""
        connection = WebSocketConnection(str(server.make_url("/ws")), token="secret")
        await connection.connect()
        await connection.send("join_thread", {"threadId": "t1"})

        frames = [frame async for frame in connection.frames()]
        await connection.close()

        assert server.app["auth"] == ["Bearer secret"]
        assert server.app["received"] == [{"event": "join_thread", "data": {"threadId": "t1"}}]
        assert frames == [
            ("user_typing", {"threadId": "t1", "userId": "s1", "isTyping": True})
        ]

    @pytest.mark.asyncio
    async def test_send_before_connect(self):
        """Test that sending without a socket raises ConnectionError."""
        connection = WebSocketConnection("http://127.0.0.1:1/ws")
        with pytest.raises(ConnectionError):
            await connection.send("join_thread", {"threadId": "t1"})
