"""WebSocket connection to the messaging endpoint (aiohttp)."""

import json
from typing import Any, AsyncIterator

import aiohttp

from ..logging_config import get_logger

logger = get_logger(__name__)


class WebSocketConnection:
    """One duplex connection carrying JSON frames {"event": ..., "data": ...}."""

    def __init__(self, url: str, token: str = "", heartbeat: float = 30.0):
        self._url = url
        self._token = token
        self._heartbeat = heartbeat
        self._session: aiohttp.ClientSession | None = None
        self._ws: aiohttp.ClientWebSocketResponse | None = None

    async def connect(self) -> None:
        await self.close()
        headers = {"Authorization": f"Bearer {self._token}"} if self._token else None
        self._session = aiohttp.ClientSession(headers=headers)
        try:
            self._ws = await self._session.ws_connect(self._url, heartbeat=self._heartbeat)
        except Exception:
            await self._session.close()
            self._session = None
            raise
        logger.info("WebSocket connected to %s", self._url)

    async def send(self, event: str, data: dict[str, Any]) -> None:
        if self._ws is None or self._ws.closed:
            raise ConnectionError("WebSocket is not connected")
        await self._ws.send_json({"event": event, "data": data})

    async def frames(self) -> AsyncIterator[tuple[str, dict[str, Any]]]:
        """Yield (event, data) pairs until the socket closes."""
        ws = self._ws
        if ws is None:
            return
        async for msg in ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                try:
                    frame = json.loads(msg.data)
                except ValueError:
                    logger.warning("Dropping non-JSON frame")
                    continue
                if isinstance(frame, dict) and "event" in frame:
                    yield frame["event"], frame.get("data") or {}
            elif msg.type == aiohttp.WSMsgType.ERROR:
                raise ConnectionError(f"WebSocket error: {ws.exception()}")

    async def close(self) -> None:
        if self._ws is not None:
            await self._ws.close()
            self._ws = None
        if self._session is not None:
            await self._session.close()
            self._session = None
