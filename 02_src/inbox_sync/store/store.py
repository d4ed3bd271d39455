"""Local cache of thread summaries and messages."""

from dataclasses import fields
from datetime import datetime, timezone
from functools import cmp_to_key
from typing import Any, Callable, Protocol

from ..logging_config import get_logger
from ..models import (
    DeliveryStatus,
    Message,
    MessagePatch,
    Thread,
    build_preview,
)

logger = get_logger(__name__)


ThreadComparator = Callable[[Thread, Thread], int]
IndicatorLookup = Callable[[str], bool]

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)
_THREAD_FIELDS = {f.name for f in fields(Thread)} - {"id"}


def _last_activity(thread: Thread) -> datetime:
    return thread.last_message_at or _OLDEST


def make_thread_comparator(has_active_indicator: IndicatorLookup) -> ThreadComparator:
    """Threads with an active indicator first, then newest last message first.

    Equal keys compare as 0 so a stable sort keeps their current order.
    """

    def compare(a: Thread, b: Thread) -> int:
        a_active = has_active_indicator(a.id)
        b_active = has_active_indicator(b.id)
        if a_active != b_active:
            return -1 if a_active else 1
        a_ts, b_ts = _last_activity(a), _last_activity(b)
        if a_ts > b_ts:
            return -1
        if a_ts < b_ts:
            return 1
        return 0

    return compare


class IConversationStore(Protocol):
    """Authoritative local cache of threads and messages."""

    def upsert_thread_summary(self, thread: Thread) -> Thread:
        """Insert a thread or refresh its summary fields."""
        ...

    def append_message(self, thread_id: str, message: Message) -> bool:
        """Append a message; duplicates by id are dropped. Returns True if stored."""
        ...

    def patch_message(
        self, thread_id: str, message_id: str, patch: MessagePatch
    ) -> Message | None:
        """Apply an edit/delete/reaction patch."""
        ...

    def reorder_threads(
        self, comparator: ThreadComparator | None = None
    ) -> list[Thread]:
        """Re-sort the thread list and return it."""
        ...


class ConversationStore:
    """In-memory store reconciling optimistic writes with server events."""

    def __init__(self, has_active_indicator: IndicatorLookup | None = None):
        self._has_active_indicator = has_active_indicator or (lambda _thread_id: False)
        self._threads: dict[str, Thread] = {}
        self._order: list[str] = []
        self._messages: dict[str, list[Message]] = {}
        self._index: dict[str, dict[str, Message]] = {}
        # client correlation id -> thread id, for optimistic entries awaiting ack
        self._pending: dict[str, str] = {}

    def set_indicator_lookup(self, has_active_indicator: IndicatorLookup) -> None:
        self._has_active_indicator = has_active_indicator

    # Threads
    @property
    def threads(self) -> list[Thread]:
        return [self._threads[thread_id] for thread_id in self._order]

    def get_thread(self, thread_id: str) -> Thread | None:
        return self._threads.get(thread_id)

    def upsert_thread_summary(self, thread: Thread) -> Thread:
        """Insert a thread or refresh its summary fields."""
        existing = self._threads.get(thread.id)
        if existing is None:
            self._threads[thread.id] = thread
            self._order.append(thread.id)
            existing = thread
        else:
            for name in _THREAD_FIELDS:
                setattr(existing, name, getattr(thread, name))
        self.reorder_threads()
        return existing

    def set_threads(self, threads: list[Thread]) -> list[Thread]:
        """Replace the thread list with a fresh fetch."""
        self._threads = {}
        self._order = []
        for thread in threads:
            self._threads[thread.id] = thread
            self._order.append(thread.id)
        return self.reorder_threads()

    def update_thread(self, thread_id: str, changes: dict[str, Any]) -> Thread | None:
        """Apply field changes to a thread summary. Unknown fields are ignored."""
        thread = self._threads.get(thread_id)
        if thread is None:
            return None
        for name, value in changes.items():
            if name in _THREAD_FIELDS:
                setattr(thread, name, value)
        self.reorder_threads()
        return thread

    def record_last_message(self, thread_id: str, message: Message) -> Thread | None:
        """Refresh preview and timestamp from a message without a list refetch."""
        thread = self._threads.get(thread_id)
        if thread is None:
            return None
        if thread.last_message_at and message.created_at < thread.last_message_at:
            return thread
        thread.last_message_at = message.created_at
        thread.last_message_preview = build_preview(message.content, message.attachments)
        self.reorder_threads()
        return thread

    def reorder_threads(
        self, comparator: ThreadComparator | None = None
    ) -> list[Thread]:
        """Re-sort the thread list and return it.

        The sort is stable, so threads with equal keys keep their order
        across repeated re-sorts.
        """
        compare = comparator or make_thread_comparator(self._has_active_indicator)
        ordered = sorted(self.threads, key=cmp_to_key(compare))
        self._order = [thread.id for thread in ordered]
        return ordered

    # Messages
    def messages(self, thread_id: str) -> list[Message]:
        return list(self._messages.get(thread_id, []))

    def get_message(self, thread_id: str, message_id: str) -> Message | None:
        return self._index.get(thread_id, {}).get(message_id)

    def load_messages(self, thread_id: str, messages: list[Message]) -> None:
        """Replace a thread's messages with a fetched page.

        Optimistic entries still awaiting their ack are kept at the end.
        """
        pending = [
            message
            for message in self._messages.get(thread_id, [])
            if message.client_id in self._pending
        ]
        self._messages[thread_id] = []
        self._index[thread_id] = {}
        for message in messages:
            self.append_message(thread_id, message)
        for message in pending:
            if message.id not in self._index[thread_id]:
                self._insert(thread_id, message)

    def append_message(self, thread_id: str, message: Message) -> bool:
        """Append a message; duplicates by id are dropped. Returns True if stored."""
        index = self._index.setdefault(thread_id, {})
        if message.id in index:
            logger.debug("Dropping duplicate message %s in %s", message.id, thread_id)
            return False

        optimistic = self._match_optimistic(thread_id, message)
        if optimistic is not None:
            message.client_id = optimistic.client_id
            self._replace(thread_id, optimistic, message)
            return True

        self._insert(thread_id, message)
        return True

    def _match_optimistic(self, thread_id: str, message: Message) -> Message | None:
        """The pending optimistic entry a server message confirms, if any.

        Messages carrying a correlation id match on it. Otherwise the
        oldest pending entry with the same sender, text and attachment
        paths is taken.
        """
        if message.client_id:
            if self._pending.get(message.client_id) != thread_id:
                return None
            return self._find_by_client_id(thread_id, message.client_id)

        paths = [attachment.path for attachment in message.attachments]
        for candidate in self._messages.get(thread_id, []):
            if (
                candidate.client_id in self._pending
                and candidate.status == DeliveryStatus.SENDING
                and candidate.sender_id == message.sender_id
                and candidate.content == message.content
                and [attachment.path for attachment in candidate.attachments] == paths
            ):
                return candidate
        return None

    def add_optimistic(self, thread_id: str, message: Message) -> Message:
        """Append a local message before the server acknowledges it."""
        if not message.client_id:
            raise ValueError("Optimistic messages need a client correlation id")
        if not message.id:
            message.id = f"local-{message.client_id}"
        message.status = DeliveryStatus.SENDING
        self._pending[message.client_id] = thread_id
        self._insert(thread_id, message)
        return message

    def confirm_message(
        self, thread_id: str, client_id: str, server_message: Message
    ) -> Message:
        """Reconcile an optimistic entry with the server-confirmed message.

        If the server message already arrived through the live feed, the
        optimistic entry is dropped instead of duplicated.
        """
        self._pending.pop(client_id, None)
        if server_message.client_id is None:
            server_message.client_id = client_id
        optimistic = self._find_by_client_id(thread_id, client_id)
        existing = self.get_message(thread_id, server_message.id)

        if existing is not None:
            if optimistic is not None and optimistic is not existing:
                self._remove(thread_id, optimistic)
            return existing

        if optimistic is not None:
            self._replace(thread_id, optimistic, server_message)
        else:
            self._insert(thread_id, server_message)
        return server_message

    def discard_optimistic(self, thread_id: str, client_id: str) -> None:
        """Drop an optimistic entry whose send failed."""
        self._pending.pop(client_id, None)
        optimistic = self._find_by_client_id(thread_id, client_id)
        if optimistic is not None and optimistic.status == DeliveryStatus.SENDING:
            self._remove(thread_id, optimistic)

    def patch_message(
        self, thread_id: str, message_id: str, patch: MessagePatch
    ) -> Message | None:
        """Apply an edit/delete/reaction patch."""
        message = self.get_message(thread_id, message_id)
        if message is None:
            logger.debug("Patch for unknown message %s in %s", message_id, thread_id)
            return None

        if patch.deleted:
            message.tombstone()
            return message
        if message.deleted:
            return message

        if patch.content is not None and patch.content != message.content:
            message.content = patch.content
            message.edited = True
        if patch.reactions is not None:
            message.reactions = set(patch.reactions)
        if patch.status is not None:
            message.status = patch.status
        return message

    def _insert(self, thread_id: str, message: Message) -> None:
        self._messages.setdefault(thread_id, []).append(message)
        self._index.setdefault(thread_id, {})[message.id] = message

    def _position(self, thread_id: str, message: Message) -> int | None:
        for position, candidate in enumerate(self._messages.get(thread_id, [])):
            if candidate is message:
                return position
        return None

    def _remove(self, thread_id: str, message: Message) -> None:
        position = self._position(thread_id, message)
        if position is not None:
            del self._messages[thread_id][position]
        index = self._index.get(thread_id, {})
        if index.get(message.id) is message:
            del index[message.id]

    def _replace(self, thread_id: str, old: Message, new: Message) -> None:
        position = self._position(thread_id, old)
        if position is None:
            self._insert(thread_id, new)
            return
        self._messages[thread_id][position] = new
        index = self._index[thread_id]
        index.pop(old.id, None)
        index[new.id] = new
        if new.client_id:
            self._pending.pop(new.client_id, None)

    def _find_by_client_id(self, thread_id: str, client_id: str) -> Message | None:
        for message in self._messages.get(thread_id, []):
            if message.client_id == client_id:
                return message
        return None
