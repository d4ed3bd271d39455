"""Application bootstrap and lifecycle management."""

from typing import Protocol

from .config import Settings
from .controller import ConversationController
from .event_bus import EventBus
from .indicators import IndicatorEngine
from .inbox_api import HttpInboxApi, IInboxApi
from .logging_config import get_logger
from .store import ConversationStore
from .tracker import Tracker
from .transport import ITransportConnection, TransportClient, WebSocketConnection
from .uploads import UploadPipeline
from .voice import (
    HeadlessAudioOutput,
    HeadlessCaptureDevice,
    IAudioCaptureDevice,
    IAudioOutput,
    IPlaybackProbe,
    PlaybackSequencer,
    VoiceCaptureEngine,
)

logger = get_logger(__name__)


class IApplication(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        ...


class Application:
    """Main application bootstrap.

    Collaborators that touch the outside world (Inbox API, transport
    connection, audio endpoints) can be injected; otherwise they are
    built from Settings.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        api: IInboxApi | None = None,
        connection: ITransportConnection | None = None,
        audio_device: IAudioCaptureDevice | None = None,
        audio_output: IAudioOutput | None = None,
        playback_probe: IPlaybackProbe | None = None,
    ):
        self._settings = settings or Settings.from_env()
        self._api_override = api
        self._connection = connection
        self._audio_device = audio_device
        self._audio_output = audio_output
        self._playback_probe = playback_probe

        # Components (will be initialized in start())
        self._event_bus: EventBus | None = None
        self._tracker: Tracker | None = None
        self._store: ConversationStore | None = None
        self._api: IInboxApi | None = None
        self._transport: TransportClient | None = None
        self._indicators: IndicatorEngine | None = None
        self._uploads: UploadPipeline | None = None
        self._capture: VoiceCaptureEngine | None = None
        self._playback: PlaybackSequencer | None = None
        self._controller: ConversationController | None = None

    async def start(self) -> None:
        """Initialize components in dependency order."""
        settings = self._settings
        logger.info("Starting application")

        # 1. EventBus (no dependencies)
        self._event_bus = EventBus()

        # 2. Tracker (depends on EventBus)
        self._tracker = Tracker(self._event_bus)
        await self._tracker.start()

        # 3. Store (no dependencies)
        self._store = ConversationStore()

        # 4. Inbox API
        self._api = self._api_override or HttpInboxApi(
            settings.api_url,
            token=settings.auth_token,
            prefix=settings.api_prefix,
            viewer_role=settings.user_role,
            timeout=settings.request_timeout,
        )

        # 5. Transport (depends on EventBus); connects last
        self._transport = TransportClient(
            self._connection or WebSocketConnection(settings.ws_url, settings.auth_token),
            self._event_bus,
            reconnect_delay=settings.reconnect_delay,
            max_reconnect_attempts=settings.max_reconnect_attempts,
        )

        # 6. Indicators (depend on EventBus + Transport); drive the thread sort
        self._indicators = IndicatorEngine(
            self._event_bus,
            self._transport,
            settings.user_id,
            settings.user_name,
            typing_debounce=settings.typing_debounce,
            recording_tick=settings.recording_tick,
            linger=settings.indicator_linger,
            typing_timeout=settings.remote_typing_timeout,
            recording_timeout=settings.remote_recording_timeout,
        )
        await self._indicators.start()
        self._store.set_indicator_lookup(self._indicators.has_active)

        # 7. Uploads (depend on Inbox API)
        self._uploads = UploadPipeline(
            self._api,
            max_attachments=settings.max_attachments,
            wait_timeout=settings.upload_wait_timeout,
        )

        # 8. Voice capture and playback
        self._capture = VoiceCaptureEngine(
            self._audio_device or HeadlessCaptureDevice(),
            self._playback_probe,
            self_test_timeout=settings.self_test_timeout,
        )
        self._playback = PlaybackSequencer(
            self._audio_output or HeadlessAudioOutput(),
            self._store,
            transition=settings.autoplay_transition,
        )

        # 9. Controller (depends on everything above)
        self._controller = ConversationController(
            settings,
            self._event_bus,
            self._store,
            self._api,
            self._transport,
            self._indicators,
            self._uploads,
            self._capture,
            self._playback,
            tracker=self._tracker,
        )
        await self._controller.start()

        await self._transport.start()
        logger.info("All components initialized successfully")

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        if self._transport:
            await self._transport.stop()
        if self._controller:
            await self._controller.stop()
        if self._playback:
            await self._playback.reset()
        if self._capture:
            await self._capture.cancel()
        if self._uploads:
            await self._uploads.stop()
        if self._indicators:
            await self._indicators.stop()
        if isinstance(self._api, HttpInboxApi) and self._api_override is None:
            await self._api.aclose()
        if self._tracker:
            await self._tracker.stop()
        logger.info("Application stopped")

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def controller(self) -> ConversationController:
        """Get controller instance."""
        if not self._controller:
            raise RuntimeError("Application not started")
        return self._controller

    @property
    def store(self) -> ConversationStore:
        if not self._store:
            raise RuntimeError("Application not started")
        return self._store

    @property
    def event_bus(self) -> EventBus:
        if not self._event_bus:
            raise RuntimeError("Application not started")
        return self._event_bus

    @property
    def tracker(self) -> Tracker:
        if not self._tracker:
            raise RuntimeError("Application not started")
        return self._tracker

    @property
    def transport(self) -> TransportClient:
        if not self._transport:
            raise RuntimeError("Application not started")
        return self._transport
