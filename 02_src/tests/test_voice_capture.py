"""Tests for VoiceCaptureEngine."""

import pytest

from inbox_sync.errors import (
    CaptureCause,
    CaptureError,
    EmptyRecording,
    NoDevice,
    PermissionDenied,
    RecordingInProgress,
)
from inbox_sync.models import AttachmentKind, CaptureState
from inbox_sync.voice import ChunkBuffer, VoiceCaptureEngine

from fakes import FakeCaptureDevice, FakeProbe


class TestChunkBuffer:
    """Tests for the recording buffer."""

    def test_assemble_in_order(self):
        """Test concatenation in arrival order."""
        buffer = ChunkBuffer()
        buffer.append(b"ab")
        buffer.append(b"")
        buffer.append(b"cd")
        assert len(buffer) == 2
        assert buffer.size == 4
        assert buffer.assemble() == b"abcd"

    def test_sealed_after_assemble(self):
        """Test that late chunks are dropped after assembly."""
        buffer = ChunkBuffer()
        buffer.append(b"ab")
        buffer.assemble()
        buffer.append(b"late")
        assert buffer.sealed
        assert buffer.size == 2


class TestRecording:
    """Tests for a normal recording session."""

    @pytest.mark.asyncio
    async def test_record_three_chunks(self, capture, capture_device, probe):
        """Test assembling 12,000 bytes from three chunks."""
        await capture.start()
        assert capture.state == CaptureState.RECORDING
        for _ in range(3):
            capture_device.emit(b"\x01" * 4000)

        recording = await capture.stop()

        assert capture.state == CaptureState.READY
        assert len(recording.data) == 12000
        assert recording.mimetype == "audio/webm;codecs=opus"
        assert recording.filename.endswith(".webm")
        assert recording.self_test_passed
        assert probe.probed == [12000]
        assert recording.to_pending_file().kind == AttachmentKind.VOICE

    @pytest.mark.asyncio
    async def test_final_chunk_flushed_before_stop(self, probe):
        """Test that trailing audio delivered by the flush is kept."""
        device = FakeCaptureDevice(final_chunk=b"tail")
        engine = VoiceCaptureEngine(device, probe)
        await engine.start()
        device.emit(b"head")

        recording = await engine.stop()

        assert recording.data == b"headtail"
        assert device.flushed == 1
        assert device.closed == 1

    @pytest.mark.asyncio
    async def test_second_start_rejected(self, capture):
        """Test exclusive device ownership."""
        await capture.start()
        with pytest.raises(RecordingInProgress):
            await capture.start()
        await capture.cancel()

    @pytest.mark.asyncio
    async def test_can_record_again_after_ready(self, capture, capture_device):
        """Test that the lock is released after a session."""
        await capture.start()
        capture_device.emit(b"x")
        await capture.stop()
        await capture.start()
        assert capture.state == CaptureState.RECORDING
        await capture.cancel()


class TestEmptyRecording:
    """Tests for zero-byte captures."""

    @pytest.mark.asyncio
    async def test_zero_bytes_is_empty_recording(self, capture, capture_device, probe):
        """Test that no audio yields EmptyRecording and no data."""
        await capture.start()
        with pytest.raises(EmptyRecording) as exc_info:
            await capture.stop()

        assert exc_info.value.cause == CaptureCause.EMPTY_RECORDING
        assert capture.state == CaptureState.REJECTED
        assert capture_device.closed == 1
        assert probe.probed == []

    @pytest.mark.asyncio
    async def test_lock_released_after_empty(self, capture):
        """Test that a new recording can start after EmptyRecording."""
        await capture.start()
        with pytest.raises(EmptyRecording):
            await capture.stop()
        await capture.start()
        await capture.cancel()


class TestDeviceErrors:
    """Tests for device acquisition failures."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "raised,expected",
        [
            (PermissionError("denied"), PermissionDenied),
            (FileNotFoundError("no mic"), NoDevice),
            (OSError("busy"), CaptureError),
        ],
    )
    async def test_typed_cause(self, probe, raised, expected):
        """Test mapping of device errors to typed causes with hints."""
        device = FakeCaptureDevice(open_error=raised)
        engine = VoiceCaptureEngine(device, probe)

        with pytest.raises(expected) as exc_info:
            await engine.start()

        assert engine.state == CaptureState.REJECTED
        assert device.closed == 1
        assert str(exc_info.value)
        if expected is PermissionDenied:
            assert "microphone" in exc_info.value.hint.lower()

    @pytest.mark.asyncio
    async def test_lock_released_after_rejection(self, probe):
        """Test that a rejected attempt does not hold the device."""
        device = FakeCaptureDevice(open_error=PermissionError("denied"))
        engine = VoiceCaptureEngine(device, probe)
        with pytest.raises(PermissionDenied):
            await engine.start()

        device.open_error = None
        await engine.start()
        assert engine.is_recording
        await engine.cancel()

    @pytest.mark.asyncio
    async def test_stop_without_recording(self, capture):
        """Test stopping an idle engine."""
        with pytest.raises(CaptureError):
            await capture.stop()


class TestSelfTest:
    """Tests for the playback self-test."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "probe",
        [
            FakeProbe(duration=None),
            FakeProbe(duration=float("inf")),
            FakeProbe(error=ValueError("codec")),
            FakeProbe(delay=1.0),
        ],
    )
    async def test_failure_only_warns(self, capture_device, probe):
        """Test that a failed self-test still yields the recording."""
        engine = VoiceCaptureEngine(capture_device, probe, self_test_timeout=0.05)
        await engine.start()
        capture_device.emit(b"audio")

        recording = await engine.stop()

        assert engine.state == CaptureState.READY
        assert recording.data == b"audio"
        assert not recording.self_test_passed
        assert recording.warning

    @pytest.mark.asyncio
    async def test_device_released_after_self_test(self, capture_device):
        """Test that the device closes only once the self-test is done."""
        events = []

        class OrderedProbe:
            async def probe_duration(self, data, mimetype):
                events.append(("probe", capture_device.closed))
                return 1.0

        engine = VoiceCaptureEngine(capture_device, OrderedProbe())
        await engine.start()
        capture_device.emit(b"audio")
        await engine.stop()

        assert events == [("probe", 0)]
        assert capture_device.closed == 1


class TestCancel:
    """Tests for cancelling a recording."""

    @pytest.mark.asyncio
    async def test_cancel_discards(self, capture, capture_device):
        """Test that cancel drops the audio and releases the device."""
        await capture.start()
        capture_device.emit(b"audio")
        await capture.cancel()

        assert capture.state == CaptureState.IDLE
        assert capture_device.closed == 1
        with pytest.raises(CaptureError):
            await capture.stop()
