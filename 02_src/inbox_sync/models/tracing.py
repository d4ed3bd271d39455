"""Tracing and observability data models."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class TraceEvent:
    """A single diagnostic event recorded by the Tracker."""

    id: str
    event_type: str  # e.g. "message_sent", "bus_event"
    actor: str  # component that produced it
    data: dict
    timestamp: datetime
