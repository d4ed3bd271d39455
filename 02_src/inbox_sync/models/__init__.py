"""Core data models for the conversation core."""

from .events import (
    BusEvent,
    EventType,
    MessageDeletedPayload,
    MessageReactedPayload,
    MessageUpdatedPayload,
    NewMessagePayload,
    RecordingPayload,
    ThreadRef,
    ThreadUpdatePayload,
    TypingPayload,
    UnreadCountPayload,
)
from .indicators import Indicator, IndicatorKind
from .messages import (
    Attachment,
    AttachmentKind,
    DeliveryStatus,
    ForwardedFrom,
    Message,
    MessagePatch,
    Reaction,
    SenderRole,
    build_preview,
    has_payload,
)
from .threads import InboxStats, Thread, ThreadStatus, ThreadType, UnreadCounts
from .tracing import TraceEvent
from .uploads import PendingFile, UploadState, UploadTask
from .voice import (
    CaptureState,
    PlaybackState,
    PlaybackStatus,
    VoiceCoordinate,
    VoiceRecording,
)

__all__ = [
    # Threads
    "InboxStats",
    "Thread",
    "ThreadStatus",
    "ThreadType",
    "UnreadCounts",
    # Messages
    "Attachment",
    "AttachmentKind",
    "DeliveryStatus",
    "ForwardedFrom",
    "Message",
    "MessagePatch",
    "Reaction",
    "SenderRole",
    "build_preview",
    "has_payload",
    # Indicators
    "Indicator",
    "IndicatorKind",
    # Uploads
    "PendingFile",
    "UploadState",
    "UploadTask",
    # Voice
    "CaptureState",
    "PlaybackState",
    "PlaybackStatus",
    "VoiceCoordinate",
    "VoiceRecording",
    # Events
    "BusEvent",
    "EventType",
    "MessageDeletedPayload",
    "MessageReactedPayload",
    "MessageUpdatedPayload",
    "NewMessagePayload",
    "RecordingPayload",
    "ThreadRef",
    "ThreadUpdatePayload",
    "TypingPayload",
    "UnreadCountPayload",
    # Tracing
    "TraceEvent",
]
