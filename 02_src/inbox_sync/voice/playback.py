"""Voice playback sequencer: one audible voice note at a time, with autoplay."""

from typing import Awaitable, Callable, Protocol

from ..logging_config import get_logger
from ..models import (
    Attachment,
    AttachmentKind,
    PlaybackState,
    PlaybackStatus,
    VoiceCoordinate,
)
from ..store import IConversationStore
from ..timers import Timer

logger = get_logger(__name__)


EndedCallback = Callable[[], Awaitable[None] | None]


class IAudioOutput(Protocol):
    """Platform audio player for a single source."""

    async def start(self, source: str, on_ended: EndedCallback) -> float | None:
        """Start playing; returns the duration if known."""
        ...

    async def pause(self) -> None:
        ...

    async def resume(self) -> None:
        ...

    async def seek(self, position: float) -> None:
        ...

    async def stop(self) -> None:
        ...


class IPlaybackSequencer(Protocol):
    async def play(
        self,
        thread_id: str,
        message_id: str,
        attachment_index: int,
        enqueue_remaining: bool = False,
    ) -> PlaybackState:
        ...

    async def pause(self) -> None:
        ...

    async def resume(self) -> None:
        ...

    def begin_seek(self) -> None:
        ...

    async def seek(self, position: float) -> None:
        ...

    async def reset(self) -> None:
        ...

    def end_seek(self) -> None:
        ...


class PlaybackSequencer:
    """Owns the audio output and the autoplay queue of the open thread."""

    def __init__(
        self,
        output: IAudioOutput,
        store: IConversationStore,
        transition: float = 0.15,
    ):
        self._output = output
        self._store = store
        self._state = PlaybackState()
        self._played: set[VoiceCoordinate] = set()
        self._scrubbing = False
        # Bumped on every start/stop so late on_ended callbacks are ignored
        self._generation = 0
        self._advance = Timer(transition, self._advance_queue, name="autoplay-advance")

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def scrubbing(self) -> bool:
        return self._scrubbing

    def status_of(self, coordinate: VoiceCoordinate) -> PlaybackStatus:
        if coordinate == self._state.current:
            return self._state.status
        return PlaybackStatus.STOPPED

    def _attachment(self, coordinate: VoiceCoordinate) -> Attachment:
        message = self._store.get_message(coordinate.thread_id, coordinate.message_id)
        if message is None:
            raise KeyError(f"Unknown message {coordinate.message_id}")
        if not 0 <= coordinate.attachment_index < len(message.attachments):
            raise IndexError(f"No attachment {coordinate.attachment_index}")
        attachment = message.attachments[coordinate.attachment_index]
        if attachment.kind != AttachmentKind.VOICE:
            raise ValueError("Attachment is not a voice note")
        return attachment

    async def play(
        self,
        thread_id: str,
        message_id: str,
        attachment_index: int,
        enqueue_remaining: bool = False,
    ) -> PlaybackState:
        """Stop whatever is playing and play the requested voice note.

        With enqueue_remaining, every other unplayed voice note of the
        thread is queued in message order.
        """
        coordinate = VoiceCoordinate(thread_id, message_id, attachment_index)
        self._attachment(coordinate)

        await self.stop()
        self._state.queue = (
            self._unplayed(coordinate) if enqueue_remaining else []
        )
        await self._start(coordinate)
        return self._state

    def _unplayed(self, exclude: VoiceCoordinate) -> list[VoiceCoordinate]:
        queue = []
        for message in self._store.messages(exclude.thread_id):
            if message.deleted:
                continue
            for index in message.voice_attachment_indexes():
                coordinate = VoiceCoordinate(exclude.thread_id, message.id, index)
                if coordinate != exclude and coordinate not in self._played:
                    queue.append(coordinate)
        return queue

    async def _start(self, coordinate: VoiceCoordinate) -> None:
        attachment = self._attachment(coordinate)
        self._generation += 1
        generation = self._generation

        duration = await self._output.start(
            attachment.path, lambda: self._on_ended(generation)
        )
        self._state.current = coordinate
        self._state.status = PlaybackStatus.PLAYING
        self._state.position = 0.0
        self._state.duration = duration if duration is not None else attachment.duration
        self._played.add(coordinate)
        logger.debug(
            "Playing %s[%s], %s queued",
            coordinate.message_id,
            coordinate.attachment_index,
            len(self._state.queue),
        )

    async def _on_ended(self, generation: int) -> None:
        if generation != self._generation:
            return
        self._state.status = PlaybackStatus.STOPPED
        if self._state.duration is not None:
            self._state.position = self._state.duration
        if self._state.queue and not self._scrubbing:
            self._advance.start()

    async def _advance_queue(self) -> None:
        if self._scrubbing:
            return
        while self._state.queue:
            coordinate = self._state.queue.pop(0)
            try:
                await self._start(coordinate)
                return
            except (KeyError, IndexError, ValueError) as e:
                logger.warning("Skipping queued voice note: %s", e)

    async def pause(self) -> None:
        if self._state.status != PlaybackStatus.PLAYING:
            return
        await self._output.pause()
        self._state.status = PlaybackStatus.PAUSED

    async def resume(self) -> None:
        if self._state.status != PlaybackStatus.PAUSED:
            return
        await self._output.resume()
        self._state.status = PlaybackStatus.PLAYING

    def begin_seek(self) -> None:
        """The user started scrubbing: hold back any autoplay advance."""
        self._scrubbing = True
        self._advance.cancel()

    async def seek(self, position: float) -> None:
        if self._state.current is None:
            return
        if self._scrubbing:
            self._advance.cancel()
        await self._output.seek(position)
        self._state.position = position

    def end_seek(self) -> None:
        self._scrubbing = False

    async def stop(self) -> None:
        """Stop the current voice note; the queue is kept."""
        self._advance.cancel()
        self._generation += 1
        if self._state.current is not None and self._state.status != PlaybackStatus.STOPPED:
            await self._output.stop()
        self._state.status = PlaybackStatus.STOPPED

    async def reset(self) -> None:
        """Thread switch: stop playback and forget the queue."""
        await self.stop()
        self._state = PlaybackState()
        self._played.clear()
        self._scrubbing = False
