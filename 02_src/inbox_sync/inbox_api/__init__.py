"""Inbox API module."""

from .client import HttpInboxApi, IInboxApi, ProgressCallback, ThreadFilter
from .parsing import parse_message, parse_thread, thread_changes

__all__ = [
    "HttpInboxApi",
    "IInboxApi",
    "ProgressCallback",
    "ThreadFilter",
    "parse_message",
    "parse_thread",
    "thread_changes",
]
