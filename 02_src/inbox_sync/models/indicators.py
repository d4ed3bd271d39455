"""Indicator data models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class IndicatorKind(str, Enum):
    TYPING = "typing"
    RECORDING = "recording"


@dataclass
class Indicator:
    """Ephemeral typing/recording signal for a (thread, actor) pair. Never persisted."""

    thread_id: str
    actor_id: str
    kind: IndicatorKind
    active: bool = True
    duration: int | None = None  # recording only, seconds
    actor_name: str | None = None
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
