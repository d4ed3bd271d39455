"""Buyer-seller conversation synchronization core."""

from .app import Application, IApplication
from .config import Settings
from .controller import ComposerState, ConversationController, IConversationController
from .errors import (
    CaptureError,
    EmptyMessage,
    EmptyRecording,
    InboxApiError,
    InboxError,
    NoActiveThread,
    NoDevice,
    PermissionDenied,
    RecordingInProgress,
    SendFailed,
    TooManyAttachments,
    TransportDisconnected,
    UploadFailed,
)
from .event_bus import EventBus, IEventBus
from .indicators import IIndicatorEngine, IndicatorEngine
from .inbox_api import HttpInboxApi, IInboxApi, ThreadFilter
from .models import (
    Attachment,
    InboxStats,
    Indicator,
    Message,
    PendingFile,
    PlaybackState,
    Thread,
    TraceEvent,
    UploadTask,
    VoiceRecording,
)
from .store import ConversationStore, IConversationStore
from .tracker import ITracker, Tracker
from .transport import ITransportClient, TransportClient, WebSocketConnection
from .uploads import IUploadPipeline, UploadPipeline
from .voice import (
    IPlaybackSequencer,
    IVoiceCaptureEngine,
    PlaybackSequencer,
    VoiceCaptureEngine,
)

__all__ = [
    # Application
    "Application",
    "IApplication",
    "Settings",
    # Models
    "Attachment",
    "InboxStats",
    "Indicator",
    "Message",
    "PendingFile",
    "PlaybackState",
    "Thread",
    "TraceEvent",
    "UploadTask",
    "VoiceRecording",
    # Components
    "IEventBus",
    "EventBus",
    "ITracker",
    "Tracker",
    "IConversationStore",
    "ConversationStore",
    "IInboxApi",
    "HttpInboxApi",
    "ThreadFilter",
    "ITransportClient",
    "TransportClient",
    "WebSocketConnection",
    "IIndicatorEngine",
    "IndicatorEngine",
    "IUploadPipeline",
    "UploadPipeline",
    "IVoiceCaptureEngine",
    "VoiceCaptureEngine",
    "IPlaybackSequencer",
    "PlaybackSequencer",
    "IConversationController",
    "ConversationController",
    "ComposerState",
    # Errors
    "InboxError",
    "EmptyMessage",
    "TooManyAttachments",
    "UploadFailed",
    "CaptureError",
    "PermissionDenied",
    "NoDevice",
    "EmptyRecording",
    "RecordingInProgress",
    "TransportDisconnected",
    "SendFailed",
    "InboxApiError",
    "NoActiveThread",
]
