"""Tests for PlaybackSequencer."""

import asyncio

import pytest

from inbox_sync.models import PlaybackStatus, VoiceCoordinate

from fakes import make_message, voice


@pytest.fixture
def voice_thread(store):
    """Thread t1 with voice notes a, b (two notes), a text message and c."""
    store.load_messages(
        "t1",
        [
            make_message("a", attachments=[voice("/uploads/a.webm")]),
            make_message("b", attachments=[voice("/uploads/b0.webm"), voice("/uploads/b1.webm")]),
            make_message("text"),
            make_message("c", attachments=[voice("/uploads/c.webm")]),
        ],
    )
    return store


def coord(message_id: str, index: int = 0) -> VoiceCoordinate:
    return VoiceCoordinate("t1", message_id, index)


class TestExclusivity:
    """Tests for single audible playback."""

    @pytest.mark.asyncio
    async def test_play_b_stops_a(self, playback, voice_thread, audio_output):
        """Test that playing B leaves A stopped and B playing."""
        await playback.play("t1", "a", 0)
        await playback.play("t1", "c", 0)

        assert playback.status_of(coord("a")) == PlaybackStatus.STOPPED
        assert playback.status_of(coord("c")) == PlaybackStatus.PLAYING
        assert audio_output.calls == ["start", "stop", "start"]

    @pytest.mark.asyncio
    async def test_stale_end_of_a_ignored(self, playback, voice_thread, audio_output):
        """Test that a late end callback from A does not touch B."""
        await playback.play("t1", "a", 0)
        ended_a = audio_output._on_ended
        await playback.play("t1", "c", 0)

        await ended_a()
        assert playback.status_of(coord("c")) == PlaybackStatus.PLAYING

    @pytest.mark.asyncio
    async def test_rejects_non_voice(self, playback, voice_thread):
        """Test that a message without that voice attachment is rejected."""
        with pytest.raises(IndexError):
            await playback.play("t1", "text", 0)


class TestQueue:
    """Tests for the autoplay sequence."""

    @pytest.mark.asyncio
    async def test_queue_in_message_order(self, playback, voice_thread):
        """Test that all other unplayed voice notes are queued in order."""
        state = await playback.play("t1", "b", 1, enqueue_remaining=True)
        assert state.queue == [coord("a"), coord("b", 0), coord("c")]

    @pytest.mark.asyncio
    async def test_played_notes_not_queued(self, playback, voice_thread):
        """Test that already played notes are skipped."""
        await playback.play("t1", "a", 0)
        state = await playback.play("t1", "b", 0, enqueue_remaining=True)
        assert state.queue == [coord("b", 1), coord("c")]

    @pytest.mark.asyncio
    async def test_auto_advance_on_completion(self, playback, voice_thread, audio_output):
        """Test advancing through the queue on natural completion."""
        await playback.play("t1", "b", 1, enqueue_remaining=True)
        await audio_output.finish()
        assert playback.state.status == PlaybackStatus.STOPPED

        await asyncio.sleep(0.05)
        assert playback.state.current == coord("a")
        assert playback.state.status == PlaybackStatus.PLAYING
        assert audio_output.started[-1] == "/uploads/a.webm"

    @pytest.mark.asyncio
    async def test_no_queue_stops_at_end(self, playback, voice_thread, audio_output):
        """Test that a single play ends without advancing."""
        await playback.play("t1", "a", 0)
        await audio_output.finish()
        await asyncio.sleep(0.05)
        assert audio_output.started == ["/uploads/a.webm"]
        assert playback.state.position == playback.state.duration


class TestControls:
    """Tests for pause, resume and seek."""

    @pytest.mark.asyncio
    async def test_pause_resume_keep_queue(self, playback, voice_thread, audio_output):
        """Test that pause and resume leave the queue untouched."""
        state = await playback.play("t1", "a", 0, enqueue_remaining=True)
        queue = list(state.queue)

        await playback.pause()
        assert playback.state.status == PlaybackStatus.PAUSED
        await playback.resume()
        assert playback.state.status == PlaybackStatus.PLAYING
        assert playback.state.queue == queue
        assert audio_output.calls[-2:] == ["pause", "resume"]

    @pytest.mark.asyncio
    async def test_scrub_cancels_pending_advance(self, playback, voice_thread, audio_output):
        """Test that seek-start suppresses an autoplay transition."""
        await playback.play("t1", "a", 0, enqueue_remaining=True)
        await audio_output.finish()
        playback.begin_seek()
        await playback.seek(1.0)
        await asyncio.sleep(0.05)

        assert audio_output.started == ["/uploads/a.webm"]
        assert "seek:1.0" in audio_output.calls
        playback.end_seek()

    @pytest.mark.asyncio
    async def test_end_while_scrubbing_does_not_advance(self, playback, voice_thread, audio_output):
        """Test that reaching the end during a scrub does not advance."""
        await playback.play("t1", "a", 0, enqueue_remaining=True)
        playback.begin_seek()
        await audio_output.finish()
        await asyncio.sleep(0.05)
        assert audio_output.started == ["/uploads/a.webm"]

    @pytest.mark.asyncio
    async def test_plain_seek_keeps_autoplay(self, playback, voice_thread, audio_output):
        """Test that a seek outside a scrub does not cancel advancing."""
        await playback.play("t1", "a", 0, enqueue_remaining=True)
        await playback.seek(0.5)
        await audio_output.finish()
        await asyncio.sleep(0.05)
        assert len(audio_output.started) == 2


class TestReset:
    """Tests for thread switches."""

    @pytest.mark.asyncio
    async def test_reset_stops_and_clears(self, playback, voice_thread, audio_output):
        """Test that reset stops playback and clears the queue."""
        await playback.play("t1", "a", 0, enqueue_remaining=True)
        await playback.reset()

        assert playback.state.current is None
        assert playback.state.queue == []
        assert playback.state.status == PlaybackStatus.STOPPED
        assert audio_output.calls[-1] == "stop"
