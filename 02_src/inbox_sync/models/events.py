"""Transport event types and their wire payloads."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class EventType(str, Enum):
    """Event kinds carried by the EventBus.

    Transport events keep their wire names. CONNECTED, DISCONNECTED and
    INDICATOR_CHANGED are produced locally and never leave the process.
    """

    JOIN_THREAD = "join_thread"
    LEAVE_THREAD = "leave_thread"
    NEW_MESSAGE = "new_message"
    THREAD_UPDATE = "thread_update"
    USER_TYPING = "user_typing"
    USER_RECORDING = "user_recording"
    MESSAGE_UPDATED = "message_updated"
    MESSAGE_DELETED = "message_deleted"
    MESSAGE_REACTED = "message_reacted"
    UNREAD_COUNT_UPDATE = "unread_count_update"

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    INDICATOR_CHANGED = "indicator_changed"


# Alternate spellings used by the server
INBOUND_ALIASES = {
    "thread_updated": EventType.THREAD_UPDATE,
}

LOCAL_EVENTS = frozenset(
    {EventType.CONNECTED, EventType.DISCONNECTED, EventType.INDICATOR_CHANGED}
)


@dataclass
class BusEvent:
    """An event exchanged through the EventBus."""

    id: str
    type: EventType
    payload: dict  # varies by type
    source: str  # component that published
    timestamp: datetime


class WirePayload(BaseModel):
    """Base for JSON payloads: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ThreadRef(WirePayload):
    thread_id: str = Field(alias="threadId")


class NewMessagePayload(ThreadRef):
    message: dict[str, Any]


class ThreadUpdatePayload(ThreadRef):
    patch: dict[str, Any] = Field(
        default_factory=dict, validation_alias=AliasChoices("patch", "update")
    )
    last_message: dict[str, Any] | None = Field(default=None, alias="lastMessage")


class TypingPayload(ThreadRef):
    user_id: str = Field(alias="userId")
    user_name: str | None = Field(default=None, alias="userName")
    is_typing: bool = Field(alias="isTyping")


class RecordingPayload(ThreadRef):
    user_id: str = Field(alias="userId")
    is_recording: bool = Field(alias="isRecording")
    duration: float | None = None


class MessageUpdatedPayload(ThreadRef):
    message: dict[str, Any]


class MessageDeletedPayload(ThreadRef):
    message_id: str = Field(alias="messageId")


class MessageReactedPayload(ThreadRef):
    message_id: str = Field(alias="messageId")
    reactions: list[dict[str, Any]] = Field(default_factory=list)


class UnreadCountPayload(WirePayload):
    count: int


PAYLOAD_MODELS: dict[EventType, type[WirePayload]] = {
    EventType.JOIN_THREAD: ThreadRef,
    EventType.LEAVE_THREAD: ThreadRef,
    EventType.NEW_MESSAGE: NewMessagePayload,
    EventType.THREAD_UPDATE: ThreadUpdatePayload,
    EventType.USER_TYPING: TypingPayload,
    EventType.USER_RECORDING: RecordingPayload,
    EventType.MESSAGE_UPDATED: MessageUpdatedPayload,
    EventType.MESSAGE_DELETED: MessageDeletedPayload,
    EventType.MESSAGE_REACTED: MessageReactedPayload,
    EventType.UNREAD_COUNT_UPDATE: UnreadCountPayload,
}
