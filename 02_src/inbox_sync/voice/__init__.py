"""Voice capture and playback module."""

from .capture import (
    ChunkBuffer,
    IAudioCaptureDevice,
    IPlaybackProbe,
    IVoiceCaptureEngine,
    VoiceCaptureEngine,
)
from .headless import HeadlessAudioOutput, HeadlessCaptureDevice
from .playback import IAudioOutput, IPlaybackSequencer, PlaybackSequencer

__all__ = [
    "ChunkBuffer",
    "HeadlessAudioOutput",
    "HeadlessCaptureDevice",
    "IAudioCaptureDevice",
    "IAudioOutput",
    "IPlaybackProbe",
    "IPlaybackSequencer",
    "IVoiceCaptureEngine",
    "PlaybackSequencer",
    "VoiceCaptureEngine",
]
