"""Conversation controller: the programmatic surface of the conversation core."""

import uuid
from typing import Any, Protocol

from pydantic import BaseModel, ValidationError

from ..config import Settings
from ..errors import (
    EmptyMessage,
    InboxApiError,
    NoActiveThread,
    SendFailed,
    TooManyAttachments,
    UploadFailed,
)
from ..event_bus import IEventBus
from ..indicators import IIndicatorEngine
from ..inbox_api import (
    IInboxApi,
    ThreadFilter,
    parse_message,
    parse_thread,
    thread_changes,
)
from ..inbox_api.parsing import parse_reactions
from ..logging_config import get_logger
from ..models import (
    Attachment,
    BusEvent,
    EventType,
    InboxStats,
    Indicator,
    Message,
    MessageDeletedPayload,
    MessagePatch,
    MessageReactedPayload,
    MessageUpdatedPayload,
    NewMessagePayload,
    PendingFile,
    PlaybackState,
    SenderRole,
    Thread,
    ThreadStatus,
    ThreadType,
    ThreadUpdatePayload,
    UnreadCountPayload,
    UploadTask,
    has_payload,
)
from ..store import IConversationStore
from ..tracker import ITracker
from ..transport import ITransportClient
from ..uploads import IUploadPipeline
from ..voice import IPlaybackSequencer, IVoiceCaptureEngine
from .composer import ComposerState

logger = get_logger(__name__)

ACTOR = "controller"


class IConversationController(Protocol):
    async def open_thread(self, thread_id: str) -> Thread:
        ...

    async def send_message(self, content: str | None = None) -> Message:
        ...

    async def start_recording(self) -> None:
        ...

    async def stop_recording(self) -> Message | UploadTask:
        ...

    async def cancel_recording(self) -> None:
        ...

    async def play_voice_note(
        self, message_id: str, attachment_index: int, enqueue_remaining: bool = True
    ) -> PlaybackState:
        ...

    async def pause_playback(self) -> None:
        ...

    async def seek_to(self, position: float) -> None:
        ...

    def attach_files(self, files: list[PendingFile]) -> list[UploadTask]:
        ...

    async def retry_upload(self, task_id: str) -> UploadTask:
        ...


class ConversationController:
    """Orchestrates the store, transport, indicators, uploads and voice.

    The only writer to the transport connection. Inbound events arrive
    through the EventBus and are applied to the store here.
    """

    def __init__(
        self,
        settings: Settings,
        event_bus: IEventBus,
        store: IConversationStore,
        api: IInboxApi,
        transport: ITransportClient,
        indicators: IIndicatorEngine,
        uploads: IUploadPipeline,
        capture: IVoiceCaptureEngine,
        playback: IPlaybackSequencer,
        tracker: ITracker | None = None,
    ):
        self._settings = settings
        self._event_bus = event_bus
        self._store = store
        self._api = api
        self._transport = transport
        self._indicators = indicators
        self._uploads = uploads
        self._capture = capture
        self._playback = playback
        self._tracker = tracker

        self._active_thread_id: str | None = None
        self._composers: dict[str, ComposerState] = {}
        self._connected = False
        self._was_disconnected = False
        self.unread_total = 0

        self._handlers = {
            EventType.NEW_MESSAGE: self._on_new_message,
            EventType.THREAD_UPDATE: self._on_thread_update,
            EventType.MESSAGE_UPDATED: self._on_message_updated,
            EventType.MESSAGE_DELETED: self._on_message_deleted,
            EventType.MESSAGE_REACTED: self._on_message_reacted,
            EventType.UNREAD_COUNT_UPDATE: self._on_unread_count,
            EventType.INDICATOR_CHANGED: self._on_indicator_changed,
            EventType.CONNECTED: self._on_connected,
            EventType.DISCONNECTED: self._on_disconnected,
        }

    async def start(self) -> None:
        for event_type, handler in self._handlers.items():
            self._event_bus.subscribe(event_type, handler)
        logger.info("ConversationController started")

    async def stop(self) -> None:
        for event_type, handler in self._handlers.items():
            self._event_bus.unsubscribe(event_type, handler)
        logger.info("ConversationController stopped")

    @property
    def active_thread_id(self) -> str | None:
        return self._active_thread_id

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def role(self) -> str:
        return self._settings.user_role

    def composer(self, thread_id: str | None = None) -> ComposerState:
        thread_id = thread_id or self._require_active()
        return self._composers.setdefault(thread_id, ComposerState())

    def _require_active(self) -> str:
        if self._active_thread_id is None:
            raise NoActiveThread()
        return self._active_thread_id

    async def _track(self, event_type: str, data: dict[str, Any]) -> None:
        if self._tracker:
            await self._tracker.track(event_type, ACTOR, data)

    # Threads
    async def load_threads(self, filter: ThreadFilter | None = None) -> list[Thread]:
        threads = await self._api.get_threads(filter)
        return self._store.set_threads(threads)

    def thread_list(self) -> list[Thread]:
        return self._store.threads

    def messages(self) -> list[Message]:
        return self._store.messages(self._require_active())

    async def open_thread(self, thread_id: str) -> Thread:
        """Make a thread active: fetch, join its room, mark it read."""
        if self._active_thread_id and self._active_thread_id != thread_id:
            await self.leave_thread()

        fetched, messages = await self._api.get_thread(thread_id)
        thread = self._store.upsert_thread_summary(fetched)
        self._store.load_messages(thread_id, messages)
        self._active_thread_id = thread_id
        await self._transport.join_thread(thread_id)
        await self._mark_read(thread)
        await self._track(
            "thread_opened", {"thread_id": thread_id, "messages": len(messages)}
        )
        return thread

    async def leave_thread(self) -> None:
        """Release the active thread: indicators, playback, capture, room."""
        thread_id = self._active_thread_id
        if thread_id is None:
            return
        self._active_thread_id = None
        if self._capture.is_recording:
            await self._capture.cancel()
            await self._indicators.stop_recording(thread_id)
        await self._indicators.clear_thread(thread_id)
        await self._playback.reset()
        await self._transport.leave_thread(thread_id)
        await self._track("thread_left", {"thread_id": thread_id})

    async def _mark_read(self, thread: Thread) -> None:
        try:
            await self._api.mark_thread_as_read(thread.id)
        except InboxApiError as e:
            logger.warning("Could not mark %s as read: %s", thread.id, e)
            return
        thread.unread.reset(self.role)

    async def start_conversation(
        self,
        counterpart_id: str,
        subject: str,
        type: ThreadType = ThreadType.MESSAGE,
    ) -> Thread:
        thread = await self._api.create_thread(counterpart_id, subject, type)
        thread = self._store.upsert_thread_summary(thread)
        await self._track(
            "conversation_started", {"thread_id": thread.id, "type": type.value}
        )
        return thread

    async def update_thread_status(self, thread_id: str, status: ThreadStatus) -> Thread:
        updated = await self._api.update_thread(thread_id, status=status)
        return self._store.update_thread(thread_id, {"status": updated.status}) or updated

    async def counterparts(self) -> list[dict[str, Any]]:
        return await self._api.get_counterparts()

    async def inbox_stats(self) -> InboxStats:
        return await self._api.get_stats()

    # Composer
    async def input_changed(self, text: str) -> None:
        thread_id = self._require_active()
        self.composer(thread_id).text = text
        await self._indicators.input_changed(thread_id, text)

    def set_reply_to(self, message_id: str | None) -> None:
        self.composer().reply_to = message_id

    def composer_indicator(self) -> Indicator | None:
        """The counterpart's indicator for the open thread."""
        if self._active_thread_id is None:
            return None
        return self._indicators.get_indicator(self._active_thread_id)

    def own_indicator(self) -> Indicator | None:
        """What the counterpart currently sees the viewer doing."""
        if self._active_thread_id is None:
            return None
        return self._indicators.own_indicator(self._active_thread_id)

    def attach_files(self, files: list[PendingFile]) -> list[UploadTask]:
        thread_id = self._require_active()
        # A recording in progress holds one slot for its voice note
        if self._capture.is_recording:
            self._check_capacity(thread_id, len(files) + 1)
        return self._uploads.add_files(thread_id, files)

    def _check_capacity(self, thread_id: str, adding: int) -> None:
        limit = self._settings.max_attachments
        requested = len(self._uploads.tasks(thread_id)) + adding
        if requested > limit:
            raise TooManyAttachments(limit, requested)

    def pending_uploads(self) -> list[UploadTask]:
        return self._uploads.tasks(self._require_active())

    async def retry_upload(self, task_id: str) -> UploadTask:
        return await self._uploads.retry(task_id)

    def cancel_upload(self, task_id: str) -> None:
        self._uploads.cancel(task_id)

    # Sending
    async def send_message(self, content: str | None = None) -> Message:
        """Send the composer contents of the open thread.

        Raises EmptyMessage, UploadFailed or SendFailed. The composer is
        cleared only after the server accepts the message.
        """
        thread_id = self._require_active()
        composer = self.composer(thread_id)
        if content is None:
            content = composer.text
        content = content.strip()

        if not has_payload(content, len(self._uploads.tasks(thread_id))):
            raise EmptyMessage()

        try:
            attachments = await self._uploads.ensure_uploaded(thread_id)
        except UploadFailed as e:
            await self._track(
                "upload_failed", {"thread_id": thread_id, "task_id": e.task_id}
            )
            raise

        message = await self._deliver(thread_id, content, attachments, composer.reply_to)
        composer.clear()
        self._uploads.clear(thread_id)
        return message

    async def _deliver(
        self,
        thread_id: str,
        content: str,
        attachments: list[Attachment],
        reply_to: str | None,
    ) -> Message:
        if reply_to and self._store.get_message(thread_id, reply_to) is None:
            logger.warning(
                "Reply target %s not found", reply_to, extra={"thread_id": thread_id}
            )

        client_id = uuid.uuid4().hex
        self._store.add_optimistic(
            thread_id,
            Message(
                id="",
                thread_id=thread_id,
                sender_id=self._settings.user_id,
                sender_role=SenderRole(self.role),
                content=content,
                attachments=list(attachments),
                reply_to=reply_to,
                client_id=client_id,
            ),
        )
        await self._indicators.stop_typing(thread_id)

        try:
            sent = await self._api.send_message(
                thread_id, content, attachments, reply_to, client_id
            )
        except InboxApiError as e:
            self._store.discard_optimistic(thread_id, client_id)
            await self._track("send_failed", {"thread_id": thread_id, "error": str(e)})
            raise SendFailed(thread_id, str(e)) from e

        message = self._store.confirm_message(thread_id, client_id, sent)
        self._store.record_last_message(thread_id, message)
        await self._track(
            "message_sent",
            {"thread_id": thread_id, "message_id": message.id, "attachments": len(attachments)},
        )
        return message

    async def edit_message(self, message_id: str, content: str) -> Message | None:
        thread_id = self._require_active()
        if not content.strip():
            raise EmptyMessage("Message content cannot be empty")
        edited = await self._api.edit_message(thread_id, message_id, content.strip())
        return self._store.patch_message(
            thread_id, message_id, MessagePatch(content=edited.content)
        )

    async def delete_message(self, message_id: str) -> Message | None:
        thread_id = self._require_active()
        await self._api.delete_message(thread_id, message_id)
        return self._store.patch_message(thread_id, message_id, MessagePatch(deleted=True))

    async def react_to_message(self, message_id: str, emoji: str) -> Message | None:
        """Toggle the viewer's reaction."""
        thread_id = self._require_active()
        reactions = await self._api.react_to_message(thread_id, message_id, emoji)
        return self._store.patch_message(
            thread_id, message_id, MessagePatch(reactions=reactions)
        )

    async def forward_message(self, message_id: str, target_thread_id: str) -> Message:
        """Copy a message of the open thread into another thread."""
        thread_id = self._require_active()
        source = self._store.get_message(thread_id, message_id)
        if source is not None and source.deleted:
            raise ValueError("Cannot forward a deleted message")
        forwarded = await self._api.forward_message(thread_id, message_id, target_thread_id)
        await self._ensure_thread(target_thread_id)
        self._store.append_message(target_thread_id, forwarded)
        self._store.record_last_message(target_thread_id, forwarded)
        await self._track(
            "message_forwarded",
            {"thread_id": thread_id, "message_id": message_id, "target": target_thread_id},
        )
        return forwarded

    # Voice
    async def start_recording(self) -> None:
        """Acquire the capture device. Raises TooManyAttachments or CaptureError."""
        thread_id = self._require_active()
        self._check_capacity(thread_id, 1)
        await self._capture.start()
        await self._indicators.start_recording(thread_id)
        await self._track("recording_started", {"thread_id": thread_id})

    async def stop_recording(self) -> Message | UploadTask:
        """Finish the recording.

        With an empty composer body the voice note is sent on its own
        right away. Otherwise it joins the pending attachments.
        """
        thread_id = self._require_active()
        try:
            recording = await self._capture.stop()
        finally:
            await self._indicators.stop_recording(thread_id)

        composer = self.composer(thread_id)
        task = self._uploads.add_files(thread_id, [recording.to_pending_file()])[0]
        if composer.text.strip():
            return task

        await self._uploads.upload(task.id)
        message = await self._deliver(thread_id, "", [task.attachment], composer.reply_to)
        self._uploads.cancel(task.id)
        composer.reply_to = None
        await self._track(
            "voice_auto_sent", {"thread_id": thread_id, "message_id": message.id}
        )
        return message

    async def cancel_recording(self) -> None:
        thread_id = self._require_active()
        await self._capture.cancel()
        await self._indicators.stop_recording(thread_id)

    async def play_voice_note(
        self, message_id: str, attachment_index: int = 0, enqueue_remaining: bool = True
    ) -> PlaybackState:
        return await self._playback.play(
            self._require_active(), message_id, attachment_index, enqueue_remaining
        )

    async def pause_playback(self) -> None:
        await self._playback.pause()

    async def resume_playback(self) -> None:
        await self._playback.resume()

    def begin_seek(self) -> None:
        self._playback.begin_seek()

    async def seek_to(self, position: float) -> None:
        await self._playback.seek(position)

    def end_seek(self) -> None:
        self._playback.end_seek()

    # Inbound events
    @staticmethod
    def _parse(model: type[BaseModel], event: BusEvent) -> Any:
        try:
            return model.model_validate(event.payload)
        except ValidationError as e:
            logger.warning("Invalid %s payload: %s", event.type.value, e)
            return None

    async def _ensure_thread(
        self, thread_id: str, fallback: Thread | None = None
    ) -> tuple[Thread, bool]:
        """Summary for a thread an event refers to, fetching it if not listed yet.

        Returns the thread and whether its summary came from the server,
        whose unread counters already include the triggering message.
        """
        thread = self._store.get_thread(thread_id)
        if thread is not None:
            return thread, False
        try:
            fetched, _ = await self._api.get_thread(thread_id)
        except InboxApiError as e:
            logger.warning(
                "Could not fetch new thread: %s", e, extra={"thread_id": thread_id}
            )
            fetched = fallback or Thread(id=thread_id, subject="", counterpart_id="")
            return self._store.upsert_thread_summary(fetched), False
        logger.info("Thread appeared", extra={"thread_id": thread_id})
        return self._store.upsert_thread_summary(fetched), True

    async def _on_new_message(self, event: BusEvent) -> None:
        payload = self._parse(NewMessagePayload, event)
        if payload is None:
            return
        thread_id = payload.thread_id
        message = parse_message(payload.message, thread_id)
        own = message.sender_id == self._settings.user_id
        thread, from_server = await self._ensure_thread(
            thread_id,
            Thread(
                id=thread_id,
                subject="",
                counterpart_id="" if own else message.sender_id,
            ),
        )
        stored = self._store.append_message(thread_id, message)
        self._store.record_last_message(thread_id, message)
        if not stored or own:
            return
        if thread_id == self._active_thread_id:
            await self._mark_read(thread)
        elif not from_server:
            thread.unread.increment(self.role)

    async def _on_thread_update(self, event: BusEvent) -> None:
        payload = self._parse(ThreadUpdatePayload, event)
        if payload is None:
            return
        await self._ensure_thread(
            payload.thread_id,
            parse_thread({**payload.patch, "_id": payload.thread_id}, self.role),
        )
        changes = thread_changes(payload.patch)
        if changes:
            self._store.update_thread(payload.thread_id, changes)
        if payload.last_message:
            message = parse_message(payload.last_message, payload.thread_id)
            self._store.record_last_message(payload.thread_id, message)

    async def _on_message_updated(self, event: BusEvent) -> None:
        payload = self._parse(MessageUpdatedPayload, event)
        if payload is None:
            return
        message = parse_message(payload.message, payload.thread_id)
        self._store.patch_message(
            payload.thread_id,
            message.id,
            MessagePatch(
                content=message.content,
                deleted=message.deleted,
                reactions=message.reactions,
            ),
        )

    async def _on_message_deleted(self, event: BusEvent) -> None:
        payload = self._parse(MessageDeletedPayload, event)
        if payload is None:
            return
        self._store.patch_message(
            payload.thread_id, payload.message_id, MessagePatch(deleted=True)
        )

    async def _on_message_reacted(self, event: BusEvent) -> None:
        payload = self._parse(MessageReactedPayload, event)
        if payload is None:
            return
        self._store.patch_message(
            payload.thread_id,
            payload.message_id,
            MessagePatch(reactions=parse_reactions(payload.reactions)),
        )

    async def _on_unread_count(self, event: BusEvent) -> None:
        payload = self._parse(UnreadCountPayload, event)
        if payload is not None:
            self.unread_total = payload.count

    async def _on_indicator_changed(self, event: BusEvent) -> None:
        if not event.payload.get("local"):
            self._store.reorder_threads()

    async def _on_connected(self, event: BusEvent) -> None:
        self._connected = True
        if not self._was_disconnected:
            return
        self._was_disconnected = False
        thread_id = self._active_thread_id
        if thread_id is None:
            return
        # Catch up on messages missed while offline
        try:
            thread, messages = await self._api.get_thread(thread_id)
        except InboxApiError as e:
            logger.warning(
                "Resync after reconnect failed: %s", e, extra={"thread_id": thread_id}
            )
            return
        self._store.upsert_thread_summary(thread)
        self._store.load_messages(thread_id, messages)

    async def _on_disconnected(self, event: BusEvent) -> None:
        self._connected = False
        self._was_disconnected = True
        logger.warning("Connection lost: %s", event.payload.get("reason"))
