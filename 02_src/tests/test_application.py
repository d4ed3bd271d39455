"""Tests for Application bootstrap."""

import asyncio

import pytest

from inbox_sync.app import Application

from fakes import FakeAudioOutput, FakeCaptureDevice, FakeConnection, make_thread


async def settle(condition, timeout: float = 1.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not condition():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.005)


class TestApplicationLifecycle:
    """Tests for start/stop and wiring."""

    @pytest.mark.asyncio
    async def test_properties_before_start(self, settings):
        """Test that components are unavailable before start()."""
        app = Application(settings)
        with pytest.raises(RuntimeError):
            app.controller

    @pytest.mark.asyncio
    async def test_end_to_end_over_fakes(self, settings, fake_api):
        """Test an inbound message flowing from the connection to the store."""
        fake_api.add_thread(make_thread("t1", minutes=1))
        fake_api.add_thread(make_thread("t2", minutes=2))
        connection = FakeConnection()
        app = Application(
            settings,
            api=fake_api,
            connection=connection,
            audio_device=FakeCaptureDevice(),
            audio_output=FakeAudioOutput(),
        )
        await app.start()
        try:
            await settle(lambda: app.transport.connected)
            await app.controller.load_threads()
            await app.controller.open_thread("t1")
            await settle(lambda: ("join_thread", {"threadId": "t1"}) in connection.sent)

            connection.push(
                "new_message",
                {
                    "threadId": "t1",
                    "message": {
                        "_id": "m1",
                        "senderId": "seller-1",
                        "senderType": "seller",
                        "content": "Quote attached",
                        "createdAt": "2024-05-01T13:00:00Z",
                    },
                },
            )
            await settle(lambda: app.store.get_message("t1", "m1") is not None)

            assert [t.id for t in app.store.threads] == ["t1", "t2"]
            assert app.tracker.events("thread_opened")
        finally:
            await app.stop()

        assert connection.closed

    @pytest.mark.asyncio
    async def test_counterpart_typing_reorders(self, settings, fake_api):
        """Test that an inbound typing event lifts its thread to the top."""
        fake_api.add_thread(make_thread("t1", minutes=9))
        fake_api.add_thread(make_thread("t2", minutes=1))
        connection = FakeConnection()
        app = Application(settings, api=fake_api, connection=connection)
        await app.start()
        try:
            await settle(lambda: app.transport.connected)
            await app.controller.load_threads()
            connection.push(
                "user_typing",
                {"threadId": "t2", "userId": "seller-1", "userName": "Sam", "isTyping": True},
            )
            await settle(lambda: app.store.threads[0].id == "t2")
        finally:
            await app.stop()
