"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))


@pytest.fixture
def settings():
    """Settings with shrunken timings."""
    from inbox_sync.config import Settings

    return Settings(
        user_id="buyer-1",
        user_role="buyer",
        user_name="Bob Buyer",
        typing_debounce=0.05,
        recording_tick=0.05,
        indicator_linger=0.05,
        remote_typing_timeout=0.3,
        remote_recording_timeout=0.5,
        self_test_timeout=0.1,
        autoplay_transition=0.02,
        reconnect_delay=0.01,
        max_reconnect_attempts=3,
        upload_wait_timeout=0.2,
    )


@pytest.fixture
def event_bus():
    """Create EventBus."""
    from inbox_sync.event_bus import EventBus

    return EventBus()


@pytest.fixture
def tracker(event_bus):
    """Create Tracker with event bus."""
    from inbox_sync.tracker import Tracker

    return Tracker(event_bus=event_bus)


@pytest.fixture
def store():
    from inbox_sync.store import ConversationStore

    return ConversationStore()


@pytest.fixture
def fake_api(settings):
    from fakes import FakeInboxApi

    return FakeInboxApi(user_id=settings.user_id)


@pytest.fixture
def fake_transport():
    from fakes import FakeTransport

    return FakeTransport()


@pytest_asyncio.fixture
async def indicators(settings, event_bus, fake_transport, store):
    """Create IndicatorEngine wired to the store's sort."""
    from inbox_sync.indicators import IndicatorEngine

    engine = IndicatorEngine(
        event_bus,
        fake_transport,
        settings.user_id,
        settings.user_name,
        typing_debounce=settings.typing_debounce,
        recording_tick=settings.recording_tick,
        linger=settings.indicator_linger,
        typing_timeout=settings.remote_typing_timeout,
        recording_timeout=settings.remote_recording_timeout,
    )
    await engine.start()
    store.set_indicator_lookup(engine.has_active)
    yield engine
    await engine.stop()


@pytest_asyncio.fixture
async def uploads(settings, fake_api):
    from inbox_sync.uploads import UploadPipeline

    pipeline = UploadPipeline(
        fake_api,
        max_attachments=settings.max_attachments,
        wait_timeout=settings.upload_wait_timeout,
    )
    yield pipeline
    await pipeline.stop()


@pytest.fixture
def capture_device():
    from fakes import FakeCaptureDevice

    return FakeCaptureDevice()


@pytest.fixture
def probe():
    from fakes import FakeProbe

    return FakeProbe()


@pytest.fixture
def capture(settings, capture_device, probe):
    from inbox_sync.voice import VoiceCaptureEngine

    return VoiceCaptureEngine(
        capture_device, probe, self_test_timeout=settings.self_test_timeout
    )


@pytest.fixture
def audio_output():
    from fakes import FakeAudioOutput

    return FakeAudioOutput()


@pytest_asyncio.fixture
async def playback(settings, audio_output, store):
    from inbox_sync.voice import PlaybackSequencer

    sequencer = PlaybackSequencer(
        audio_output, store, transition=settings.autoplay_transition
    )
    yield sequencer
    await sequencer.reset()


@pytest_asyncio.fixture
async def controller(
    settings,
    event_bus,
    store,
    fake_api,
    fake_transport,
    indicators,
    uploads,
    capture,
    playback,
    tracker,
):
    """Create a started ConversationController over fakes."""
    from inbox_sync.controller import ConversationController

    await tracker.start()
    ctrl = ConversationController(
        settings,
        event_bus,
        store,
        fake_api,
        fake_transport,
        indicators,
        uploads,
        capture,
        playback,
        tracker=tracker,
    )
    await ctrl.start()
    yield ctrl
    await ctrl.stop()
    await tracker.stop()
