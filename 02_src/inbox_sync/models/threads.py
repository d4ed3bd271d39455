"""Thread-related data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class ThreadType(str, Enum):
    """What a conversation is about."""

    MESSAGE = "message"
    RFQ = "rfq"
    ORDER = "order"


class ThreadStatus(str, Enum):
    """Thread status as seen by this core."""

    OPEN = "open"
    RESOLVED = "resolved"

    @classmethod
    def from_wire(cls, value: str | None) -> "ThreadStatus":
        """Map backend status names onto open/resolved."""
        if value in ("resolved", "closed", "archived"):
            return cls.RESOLVED
        return cls.OPEN


@dataclass
class UnreadCounts:
    """Unread counters per viewer role."""

    buyer: int = 0
    seller: int = 0

    def for_role(self, role: str) -> int:
        return self.seller if role == "seller" else self.buyer

    def increment(self, role: str) -> None:
        if role == "seller":
            self.seller += 1
        else:
            self.buyer += 1

    def reset(self, role: str) -> None:
        if role == "seller":
            self.seller = 0
        else:
            self.buyer = 0


@dataclass
class Thread:
    """Summary of a buyer-seller conversation, as shown in the thread list."""

    id: str
    subject: str
    counterpart_id: str
    type: ThreadType = ThreadType.MESSAGE
    counterpart_name: str | None = None
    last_message_at: datetime | None = None
    last_message_preview: str = ""
    unread: UnreadCounts = field(default_factory=UnreadCounts)
    status: ThreadStatus = ThreadStatus.OPEN


@dataclass
class InboxStats:
    """Thread counts for the viewer's inbox."""

    total_threads: int = 0
    unread_threads: int = 0
    active_threads: int = 0
    archived_threads: int = 0
