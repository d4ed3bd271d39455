"""Upload-related data models."""

from dataclasses import dataclass
from enum import Enum

from .messages import Attachment, AttachmentKind


class UploadState(str, Enum):
    PENDING = "pending"
    UPLOADING = "uploading"
    DONE = "done"
    FAILED = "failed"


@dataclass
class PendingFile:
    """A file selected for sending but not yet bound to a message."""

    filename: str
    data: bytes
    mimetype: str = "application/octet-stream"
    duration: float | None = None  # voice only

    @property
    def kind(self) -> AttachmentKind:
        return AttachmentKind.from_mimetype(self.mimetype)

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class UploadTask:
    """Tracked lifecycle of one outgoing attachment."""

    id: str
    thread_id: str
    file: PendingFile
    progress: int = 0  # 0-100
    state: UploadState = UploadState.PENDING
    error: str | None = None
    attachment: Attachment | None = None

    @property
    def is_voice(self) -> bool:
        return self.file.kind == AttachmentKind.VOICE
