"""Voice capture engine: exclusive device session, chunk buffer, assembly."""

import asyncio
import math
from datetime import datetime, timezone
from typing import Callable, Protocol

from ..errors import (
    CaptureError,
    EmptyRecording,
    NoDevice,
    PermissionDenied,
    RecordingInProgress,
)
from ..logging_config import get_logger
from ..models import CaptureState, VoiceRecording

logger = get_logger(__name__)


ChunkCallback = Callable[[bytes], None]


class IAudioCaptureDevice(Protocol):
    """Platform microphone.

    open() raises PermissionError when access is refused and
    FileNotFoundError when no input device exists.
    """

    mimetype: str

    async def open(self, on_chunk: ChunkCallback) -> None:
        ...

    async def flush(self) -> None:
        """Stop the stream and deliver the final chunk to on_chunk."""
        ...

    async def close(self) -> None:
        """Release the device."""
        ...


class IPlaybackProbe(Protocol):
    """Throwaway player used to check that a recording is readable."""

    async def probe_duration(self, data: bytes, mimetype: str) -> float | None:
        ...


class IVoiceCaptureEngine(Protocol):
    @property
    def state(self) -> CaptureState:
        ...

    @property
    def is_recording(self) -> bool:
        ...

    async def start(self) -> None:
        ...

    async def stop(self) -> VoiceRecording:
        ...

    async def cancel(self) -> None:
        ...


class ChunkBuffer:
    """Ordered audio chunks of one recording.

    Written only by the device callback and read once by assemble(),
    which seals the buffer.
    """

    def __init__(self):
        self._chunks: list[bytes] = []
        self._sealed = False

    def append(self, chunk: bytes) -> None:
        if self._sealed:
            logger.debug("Dropping %s bytes delivered after assembly", len(chunk))
            return
        if chunk:
            self._chunks.append(chunk)

    def __len__(self) -> int:
        return len(self._chunks)

    @property
    def size(self) -> int:
        return sum(len(chunk) for chunk in self._chunks)

    @property
    def sealed(self) -> bool:
        return self._sealed

    def assemble(self) -> bytes:
        self._sealed = True
        return b"".join(self._chunks)

    def discard(self) -> None:
        self._sealed = True
        self._chunks.clear()


def _extension(mimetype: str) -> str:
    subtype = mimetype.split("/", 1)[-1].split(";", 1)[0].strip()
    return subtype or "webm"


class VoiceCaptureEngine:
    """idle -> requesting_device -> recording -> stopping -> assembling -> ready | rejected"""

    def __init__(
        self,
        device: IAudioCaptureDevice,
        probe: IPlaybackProbe | None = None,
        self_test_timeout: float = 3.0,
    ):
        self._device = device
        self._probe = probe
        self._self_test_timeout = self_test_timeout
        self._lock = asyncio.Lock()
        self._state = CaptureState.IDLE
        self._buffer: ChunkBuffer | None = None
        self._started_at = 0.0

    @property
    def state(self) -> CaptureState:
        return self._state

    @property
    def is_recording(self) -> bool:
        return self._state == CaptureState.RECORDING

    @property
    def elapsed(self) -> float:
        if not self.is_recording:
            return 0.0
        return asyncio.get_running_loop().time() - self._started_at

    async def start(self) -> None:
        """Acquire the device and start buffering chunks.

        Raises RecordingInProgress, PermissionDenied, NoDevice or CaptureError.
        """
        if self._lock.locked():
            raise RecordingInProgress()
        await self._lock.acquire()

        self._state = CaptureState.REQUESTING_DEVICE
        self._buffer = ChunkBuffer()
        try:
            await self._device.open(self._buffer.append)
        except Exception as e:
            error = self._classify(e)
            logger.warning("Capture device unavailable (%s): %s", error.cause.value, e)
            await self._release()
            self._state = CaptureState.REJECTED
            raise error from e

        self._started_at = asyncio.get_running_loop().time()
        self._state = CaptureState.RECORDING
        logger.info("Recording started")

    @staticmethod
    def _classify(error: Exception) -> CaptureError:
        if isinstance(error, CaptureError):
            return error
        if isinstance(error, PermissionError):
            return PermissionDenied()
        if isinstance(error, FileNotFoundError):
            return NoDevice()
        return CaptureError(f"Could not start recording: {error}")

    async def stop(self) -> VoiceRecording:
        """Finish the recording. Raises EmptyRecording for a zero-byte capture."""
        if self._state != CaptureState.RECORDING or self._buffer is None:
            raise CaptureError("No recording in progress")

        self._state = CaptureState.STOPPING
        duration = asyncio.get_running_loop().time() - self._started_at
        try:
            await self._device.flush()
        except Exception as e:
            logger.warning("Final flush of the capture device failed: %s", e)

        self._state = CaptureState.ASSEMBLING
        buffer = self._buffer
        chunks = len(buffer)
        data = buffer.assemble()
        if not data:
            await self._release()
            self._state = CaptureState.REJECTED
            logger.warning("Recording produced no audio data")
            raise EmptyRecording()

        mimetype = self._device.mimetype
        stamp = int(datetime.now(timezone.utc).timestamp() * 1000)
        recording = VoiceRecording(
            data=data,
            mimetype=mimetype,
            duration=duration,
            filename=f"voice-message-{stamp}.{_extension(mimetype)}",
        )
        try:
            await self._self_test(recording)
        finally:
            await self._release()

        self._state = CaptureState.READY
        logger.info(
            "Recording ready: %s bytes in %s chunk(s), %.1fs",
            len(data),
            chunks,
            duration,
        )
        return recording

    async def _self_test(self, recording: VoiceRecording) -> None:
        """Load the recording into a throwaway player; failures only warn."""
        if self._probe is None:
            return
        try:
            probed = await asyncio.wait_for(
                self._probe.probe_duration(recording.data, recording.mimetype),
                timeout=self._self_test_timeout,
            )
        except asyncio.TimeoutError:
            probed = None
            recording.warning = "Playback test timed out"
        except Exception as e:
            probed = None
            recording.warning = f"Playback test failed: {e}"
        else:
            if probed is None or not math.isfinite(probed) or probed <= 0:
                recording.warning = "Playback test could not read a duration"

        if recording.warning:
            recording.self_test_passed = False
            logger.warning("%s, sending recording anyway", recording.warning)

    async def cancel(self) -> None:
        """Discard the recording and release the device."""
        if self._state != CaptureState.RECORDING:
            return
        if self._buffer is not None:
            self._buffer.discard()
        try:
            await self._device.flush()
        except Exception as e:
            logger.debug("Flush during cancel failed: %s", e)
        await self._release()
        self._state = CaptureState.IDLE
        logger.info("Recording cancelled")

    async def _release(self) -> None:
        try:
            await self._device.close()
        except Exception as e:
            logger.warning("Closing the capture device failed: %s", e)
        finally:
            self._buffer = None
            if self._lock.locked():
                self._lock.release()
