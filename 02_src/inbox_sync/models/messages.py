"""Message-related data models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class AttachmentKind(str, Enum):
    """Attachment kinds."""

    IMAGE = "image"
    VOICE = "voice"
    FILE = "file"

    @classmethod
    def from_mimetype(cls, mimetype: str | None, hint: str | None = None) -> "AttachmentKind":
        """Infer the kind from a MIME type, falling back to an explicit hint."""
        if (mimetype or "").startswith("audio/") or hint == cls.VOICE.value:
            return cls.VOICE
        if (mimetype or "").startswith("image/") or hint == cls.IMAGE.value:
            return cls.IMAGE
        return cls.FILE


class DeliveryStatus(str, Enum):
    """Delivery status of a message. SENDING marks a local optimistic entry."""

    SENDING = "sending"
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"


class SenderRole(str, Enum):
    BUYER = "buyer"
    SELLER = "seller"


@dataclass
class Attachment:
    """An uploaded attachment (image, voice note, file) bound to a message."""

    kind: AttachmentKind
    path: str
    filename: str
    size: int = 0
    duration: float | None = None  # voice only, seconds
    mimetype: str = "application/octet-stream"


@dataclass(frozen=True)
class Reaction:
    emoji: str
    reactor_id: str


@dataclass(frozen=True)
class ForwardedFrom:
    """Where a forwarded message was copied from."""

    thread_id: str
    message_id: str
    original_sender_id: str | None = None


@dataclass
class Message:
    """A single message in a thread."""

    id: str
    thread_id: str
    sender_id: str
    sender_role: SenderRole
    content: str = ""
    attachments: list[Attachment] = field(default_factory=list)
    reply_to: str | None = None  # message id, lookup only
    status: DeliveryStatus = DeliveryStatus.SENT
    edited: bool = False
    deleted: bool = False
    reactions: set[Reaction] = field(default_factory=set)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    client_id: str | None = None  # correlation id of an optimistic send
    forwarded_from: ForwardedFrom | None = None

    def tombstone(self) -> None:
        """Clear body and attachments, keeping id and timestamp."""
        self.deleted = True
        self.content = ""
        self.attachments = []
        self.reactions = set()

    def toggle_reaction(self, emoji: str, reactor_id: str) -> bool:
        """Add the reaction, or remove it if already present. Returns True if added."""
        reaction = Reaction(emoji=emoji, reactor_id=reactor_id)
        if reaction in self.reactions:
            self.reactions.discard(reaction)
            return False
        self.reactions.add(reaction)
        return True

    def voice_attachment_indexes(self) -> list[int]:
        return [
            index
            for index, attachment in enumerate(self.attachments)
            if attachment.kind == AttachmentKind.VOICE
        ]


@dataclass
class MessagePatch:
    """Partial update of a message (edit, delete, reactions, delivery status)."""

    content: str | None = None
    deleted: bool = False
    reactions: set[Reaction] | None = None
    status: DeliveryStatus | None = None


def has_payload(content: str | None, attachment_count: int) -> bool:
    """A message needs trimmed text or at least one attachment."""
    return bool((content or "").strip()) or attachment_count > 0


PREVIEW_LIMIT = 200


def build_preview(content: str | None, attachments: list[Attachment]) -> str:
    """Thread-list preview for a message: text, or a label for its first attachment."""
    preview = (content or "").strip()
    if not preview and attachments:
        first = attachments[0]
        if first.kind == AttachmentKind.VOICE:
            preview = "\U0001f3a4 Voice note"
        elif first.kind == AttachmentKind.IMAGE:
            preview = "\U0001f4f7 Image"
        else:
            preview = f"\U0001f4ce {first.filename or 'File'}"
        if len(attachments) > 1:
            preview += f" (+{len(attachments) - 1} more)"
    if len(preview) > PREVIEW_LIMIT:
        preview = preview[:PREVIEW_LIMIT] + "..."
    return preview
