"""Tests for Timer and Ticker."""

import asyncio

import pytest

from inbox_sync.timers import Ticker, Timer


class TestTimer:
    """Tests for the one-shot timer."""

    @pytest.mark.asyncio
    async def test_fires_once(self):
        """Test that the callback runs once after the delay."""
        calls = []
        timer = Timer(0.01, lambda: calls.append(1))
        timer.start()
        assert timer.active
        await asyncio.sleep(0.05)
        assert calls == [1]
        assert not timer.active

    @pytest.mark.asyncio
    async def test_restart_postpones(self):
        """Test that restarting pushes the deadline back."""
        calls = []
        timer = Timer(0.05, lambda: calls.append(1))
        timer.start()
        await asyncio.sleep(0.03)
        timer.restart()
        await asyncio.sleep(0.03)
        assert calls == []
        await asyncio.sleep(0.05)
        assert calls == [1]

    @pytest.mark.asyncio
    async def test_cancel(self):
        """Test that a cancelled timer never fires."""
        calls = []
        timer = Timer(0.01, lambda: calls.append(1))
        timer.start()
        timer.cancel()
        await asyncio.sleep(0.03)
        assert calls == []

    @pytest.mark.asyncio
    async def test_async_callback_error_is_contained(self):
        """Test that a failing async callback does not escape."""

        async def failing():
            raise RuntimeError("boom")

        timer = Timer(0.01, failing)
        timer.start()
        await asyncio.sleep(0.03)
        assert not timer.active


class TestTicker:
    """Tests for the repeating ticker."""

    @pytest.mark.asyncio
    async def test_ticks_until_cancelled(self):
        """Test repeated firing and cancellation."""
        ticks = []
        ticker = Ticker(0.01, lambda: ticks.append(1))
        ticker.start()
        await asyncio.sleep(0.055)
        ticker.cancel()
        count = len(ticks)
        assert count >= 3
        await asyncio.sleep(0.03)
        assert len(ticks) == count
