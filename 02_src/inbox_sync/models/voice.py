"""Voice capture and playback data models."""

from dataclasses import dataclass, field
from enum import Enum

from .uploads import PendingFile


class CaptureState(str, Enum):
    """States of the voice capture engine."""

    IDLE = "idle"
    REQUESTING_DEVICE = "requesting_device"
    RECORDING = "recording"
    STOPPING = "stopping"
    ASSEMBLING = "assembling"
    READY = "ready"
    REJECTED = "rejected"


@dataclass
class VoiceRecording:
    """An assembled, validated recording ready for the send path."""

    data: bytes
    mimetype: str
    duration: float
    filename: str
    self_test_passed: bool = True
    warning: str | None = None

    def to_pending_file(self) -> PendingFile:
        return PendingFile(
            filename=self.filename,
            data=self.data,
            mimetype=self.mimetype,
            duration=self.duration,
        )


@dataclass(frozen=True)
class VoiceCoordinate:
    """Position of one voice attachment within a thread."""

    thread_id: str
    message_id: str
    attachment_index: int


class PlaybackStatus(str, Enum):
    STOPPED = "stopped"
    PLAYING = "playing"
    PAUSED = "paused"


@dataclass
class PlaybackState:
    """What the viewer is listening to, plus the autoplay queue."""

    current: VoiceCoordinate | None = None
    status: PlaybackStatus = PlaybackStatus.STOPPED
    position: float = 0.0
    duration: float | None = None
    queue: list[VoiceCoordinate] = field(default_factory=list)
