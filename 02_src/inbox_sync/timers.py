"""Cancellable timers running on the event loop."""

import asyncio
import inspect
from typing import Awaitable, Callable

from .logging_config import get_logger

logger = get_logger(__name__)


TimerCallback = Callable[[], Awaitable[None] | None]


async def _invoke(callback: TimerCallback, name: str) -> None:
    try:
        result = callback()
        if inspect.isawaitable(result):
            await result
    except Exception as e:
        logger.error("Timer %s callback failed: %s", name, e, exc_info=True)


class Timer:
    """One-shot timer. start() on a running timer restarts the countdown."""

    def __init__(self, delay: float, callback: TimerCallback, name: str = "timer"):
        self._delay = delay
        self._callback = callback
        self._name = name
        self._task: asyncio.Task | None = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        self.cancel()
        self._task = asyncio.create_task(self._run())

    restart = start

    def cancel(self) -> None:
        if self._task and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _run(self) -> None:
        try:
            await asyncio.sleep(self._delay)
        except asyncio.CancelledError:
            return
        # Cleared before the callback so it may restart this timer
        self._task = None
        await _invoke(self._callback, self._name)


class Ticker:
    """Repeating timer firing every `interval` seconds until cancelled."""

    def __init__(self, interval: float, callback: TimerCallback, name: str = "ticker"):
        self._interval = interval
        self._callback = callback
        self._name = name
        self._task: asyncio.Task | None = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        self.cancel()
        self._task = asyncio.create_task(self._run())

    def cancel(self) -> None:
        if self._task and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _run(self) -> None:
        while True:
            try:
                await asyncio.sleep(self._interval)
            except asyncio.CancelledError:
                return
            await _invoke(self._callback, self._name)
