"""Audio endpoints for hosts without a microphone or speaker."""

from .capture import ChunkCallback
from .playback import EndedCallback


class HeadlessCaptureDevice:
    """Reports that no input device exists."""

    mimetype = "audio/webm"

    async def open(self, on_chunk: ChunkCallback) -> None:
        raise FileNotFoundError("No audio input device configured")

    async def flush(self) -> None:
        pass

    async def close(self) -> None:
        pass


class HeadlessAudioOutput:
    """Refuses playback."""

    async def start(self, source: str, on_ended: EndedCallback) -> float | None:
        raise RuntimeError("No audio output configured")

    async def pause(self) -> None:
        pass

    async def resume(self) -> None:
        pass

    async def seek(self, position: float) -> None:
        pass

    async def stop(self) -> None:
        pass
