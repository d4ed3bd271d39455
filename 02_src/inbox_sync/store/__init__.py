"""Conversation store module."""

from .store import (
    ConversationStore,
    IConversationStore,
    ThreadComparator,
    make_thread_comparator,
)

__all__ = [
    "ConversationStore",
    "IConversationStore",
    "ThreadComparator",
    "make_thread_comparator",
]
