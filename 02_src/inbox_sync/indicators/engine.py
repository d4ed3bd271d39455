"""Typing/recording indicators: outbound debounce and inbound smoothing."""

import asyncio
from dataclasses import dataclass
from typing import Protocol

from pydantic import ValidationError

from ..errors import TransportDisconnected
from ..event_bus import IEventBus
from ..logging_config import get_logger
from ..models import (
    BusEvent,
    EventType,
    Indicator,
    IndicatorKind,
    RecordingPayload,
    TypingPayload,
)
from ..timers import Ticker, Timer
from ..transport import ITransportClient

logger = get_logger(__name__)

SOURCE = "indicators"


class IIndicatorEngine(Protocol):
    """Per-thread typing/recording state for the viewer and the counterpart."""

    async def input_changed(self, thread_id: str, text: str) -> None:
        """Composer input changed; drives the outbound typing state."""
        ...

    async def stop_typing(self, thread_id: str) -> None:
        ...

    async def start_recording(self, thread_id: str) -> None:
        ...

    async def stop_recording(self, thread_id: str) -> None:
        ...

    def has_active(self, thread_id: str) -> bool:
        """True if the counterpart has a visible indicator in the thread."""
        ...

    def get_indicator(self, thread_id: str) -> Indicator | None:
        ...

    def own_indicator(self, thread_id: str) -> Indicator | None:
        ...

    async def clear_thread(self, thread_id: str) -> None:
        ...


@dataclass
class _LocalState:
    typing: bool = False
    debounce: Timer | None = None
    recording: bool = False
    recording_started: float = 0.0
    ticker: Ticker | None = None


@dataclass
class _RemoteState:
    indicator: Indicator | None = None
    linger: Timer | None = None
    stale: Timer | None = None


class IndicatorEngine:
    """Explicit state machines for typing and recording indicators.

    Outbound: idle -> typing -> idle (one `true` per edit burst, `false`
    after the debounce) and idle -> recording(duration) -> idle.
    Inbound: one tracked actor per thread. A `false` event clears the
    indicator after a short linger; a stale indicator is dropped after a
    per-kind timeout.
    """

    def __init__(
        self,
        event_bus: IEventBus,
        transport: ITransportClient,
        user_id: str,
        user_name: str = "You",
        typing_debounce: float = 0.4,
        recording_tick: float = 1.0,
        linger: float = 0.5,
        typing_timeout: float = 3.0,
        recording_timeout: float = 10.0,
    ):
        self._event_bus = event_bus
        self._transport = transport
        self._user_id = user_id
        self._user_name = user_name
        self._typing_debounce = typing_debounce
        self._recording_tick = recording_tick
        self._linger = linger
        self._timeouts = {
            IndicatorKind.TYPING: typing_timeout,
            IndicatorKind.RECORDING: recording_timeout,
        }
        self._local: dict[str, _LocalState] = {}
        self._remote: dict[str, _RemoteState] = {}

    async def start(self) -> None:
        self._event_bus.subscribe(EventType.USER_TYPING, self._handle_typing)
        self._event_bus.subscribe(EventType.USER_RECORDING, self._handle_recording)
        logger.info("IndicatorEngine started")

    async def stop(self) -> None:
        self._event_bus.unsubscribe(EventType.USER_TYPING, self._handle_typing)
        self._event_bus.unsubscribe(EventType.USER_RECORDING, self._handle_recording)
        for state in self._local.values():
            if state.debounce:
                state.debounce.cancel()
            if state.ticker:
                state.ticker.cancel()
        for remote in self._remote.values():
            self._cancel_remote_timers(remote)
        self._local.clear()
        self._remote.clear()
        logger.info("IndicatorEngine stopped")

    # Outbound
    def _local_state(self, thread_id: str) -> _LocalState:
        state = self._local.get(thread_id)
        if state is None:
            state = _LocalState()
            state.debounce = Timer(
                self._typing_debounce,
                lambda: self.stop_typing(thread_id),
                name=f"typing-debounce:{thread_id}",
            )
            self._local[thread_id] = state
        return state

    async def input_changed(self, thread_id: str, text: str) -> None:
        """Composer input changed; drives the outbound typing state."""
        if not text.strip():
            await self.stop_typing(thread_id)
            return

        state = self._local_state(thread_id)
        if state.recording:
            return
        if not state.typing:
            state.typing = True
            await self._send_typing(thread_id, True)
        state.debounce.restart()

    async def stop_typing(self, thread_id: str) -> None:
        state = self._local.get(thread_id)
        if state is None:
            return
        state.debounce.cancel()
        if state.typing:
            state.typing = False
            await self._send_typing(thread_id, False)

    async def start_recording(self, thread_id: str) -> None:
        await self.stop_typing(thread_id)
        state = self._local_state(thread_id)
        if state.recording:
            return
        state.recording = True
        state.recording_started = asyncio.get_running_loop().time()
        state.ticker = Ticker(
            self._recording_tick,
            lambda: self._tick_recording(thread_id),
            name=f"recording-tick:{thread_id}",
        )
        state.ticker.start()
        await self._send_recording(thread_id, True, 0)

    async def stop_recording(self, thread_id: str) -> None:
        state = self._local.get(thread_id)
        if state is None or not state.recording:
            return
        if state.ticker:
            state.ticker.cancel()
            state.ticker = None
        state.recording = False
        await self._send_recording(thread_id, False, None)

    def recording_duration(self, thread_id: str) -> int:
        state = self._local.get(thread_id)
        if state is None or not state.recording:
            return 0
        return int(asyncio.get_running_loop().time() - state.recording_started)

    async def _tick_recording(self, thread_id: str) -> None:
        await self._send_recording(thread_id, True, self.recording_duration(thread_id))

    def own_indicator(self, thread_id: str) -> Indicator | None:
        """The viewer's own outbound indicator, if any."""
        state = self._local.get(thread_id)
        if state is None:
            return None
        if state.recording:
            return Indicator(
                thread_id=thread_id,
                actor_id=self._user_id,
                kind=IndicatorKind.RECORDING,
                duration=self.recording_duration(thread_id),
                actor_name=self._user_name,
            )
        if state.typing:
            return Indicator(
                thread_id=thread_id,
                actor_id=self._user_id,
                kind=IndicatorKind.TYPING,
                actor_name=self._user_name,
            )
        return None

    async def _send_typing(self, thread_id: str, is_typing: bool) -> None:
        payload = TypingPayload(
            thread_id=thread_id,
            user_id=self._user_id,
            user_name=self._user_name,
            is_typing=is_typing,
        )
        await self._send(EventType.USER_TYPING, payload.to_wire())
        await self._notify(thread_id, self._user_id, IndicatorKind.TYPING, is_typing)

    async def _send_recording(
        self, thread_id: str, is_recording: bool, duration: int | None
    ) -> None:
        payload = RecordingPayload(
            thread_id=thread_id,
            user_id=self._user_id,
            is_recording=is_recording,
            duration=duration,
        )
        await self._send(EventType.USER_RECORDING, payload.to_wire())
        await self._notify(
            thread_id, self._user_id, IndicatorKind.RECORDING, is_recording
        )

    async def _send(self, event_type: EventType, payload: dict) -> None:
        try:
            await self._transport.send(event_type, payload)
        except TransportDisconnected:
            logger.debug("Skipping %s while disconnected", event_type.value)

    # Inbound
    async def _handle_typing(self, event: BusEvent) -> None:
        try:
            payload = TypingPayload.model_validate(event.payload)
        except ValidationError as e:
            logger.warning("Invalid typing payload: %s", e)
            return
        await self.apply_remote(
            payload.thread_id,
            payload.user_id,
            IndicatorKind.TYPING,
            payload.is_typing,
            actor_name=payload.user_name,
        )

    async def _handle_recording(self, event: BusEvent) -> None:
        try:
            payload = RecordingPayload.model_validate(event.payload)
        except ValidationError as e:
            logger.warning("Invalid recording payload: %s", e)
            return
        duration = int(payload.duration) if payload.duration is not None else None
        await self.apply_remote(
            payload.thread_id,
            payload.user_id,
            IndicatorKind.RECORDING,
            payload.is_recording,
            duration=duration,
        )

    async def apply_remote(
        self,
        thread_id: str,
        actor_id: str,
        kind: IndicatorKind,
        active: bool,
        duration: int | None = None,
        actor_name: str | None = None,
    ) -> None:
        """Apply one inbound indicator transition in arrival order."""
        if actor_id == self._user_id:
            return

        remote = self._remote.setdefault(thread_id, _RemoteState())
        current = remote.indicator

        if not active:
            if current is None or current.actor_id != actor_id or current.kind != kind:
                return
            if remote.linger is None or not remote.linger.active:
                remote.linger = Timer(
                    self._linger,
                    lambda: self._clear_remote(thread_id),
                    name=f"indicator-linger:{thread_id}",
                )
                remote.linger.start()
            return

        # Recording wins over typing for the same actor
        if (
            current is not None
            and current.actor_id == actor_id
            and current.kind == IndicatorKind.RECORDING
            and kind == IndicatorKind.TYPING
            and not (remote.linger and remote.linger.active)
        ):
            return

        if remote.linger:
            remote.linger.cancel()
        changed = (
            current is None
            or current.actor_id != actor_id
            or current.kind != kind
        )
        remote.indicator = Indicator(
            thread_id=thread_id,
            actor_id=actor_id,
            kind=kind,
            duration=duration,
            actor_name=actor_name or (current.actor_name if current else None),
        )
        if remote.stale:
            remote.stale.cancel()
        remote.stale = Timer(
            self._timeouts[kind],
            lambda: self._expire_remote(thread_id),
            name=f"indicator-stale:{thread_id}",
        )
        remote.stale.start()
        if changed:
            await self._notify(thread_id, actor_id, kind, True)

    async def _expire_remote(self, thread_id: str) -> None:
        logger.debug("Indicator in %s went stale", thread_id)
        await self._clear_remote(thread_id)

    async def _clear_remote(self, thread_id: str) -> None:
        remote = self._remote.get(thread_id)
        if remote is None or remote.indicator is None:
            return
        indicator = remote.indicator
        remote.indicator = None
        self._cancel_remote_timers(remote)
        await self._notify(thread_id, indicator.actor_id, indicator.kind, False)

    @staticmethod
    def _cancel_remote_timers(remote: _RemoteState) -> None:
        if remote.linger:
            remote.linger.cancel()
        if remote.stale:
            remote.stale.cancel()

    async def clear_thread(self, thread_id: str) -> None:
        """Leaving a thread: stop own typing and drop the counterpart's indicator."""
        await self.stop_typing(thread_id)
        remote = self._remote.pop(thread_id, None)
        if remote is None:
            return
        self._cancel_remote_timers(remote)
        if remote.indicator is not None:
            await self._notify(
                thread_id, remote.indicator.actor_id, remote.indicator.kind, False
            )

    def has_active(self, thread_id: str) -> bool:
        """True if the counterpart has a visible indicator in the thread."""
        remote = self._remote.get(thread_id)
        return remote is not None and remote.indicator is not None

    def get_indicator(self, thread_id: str) -> Indicator | None:
        remote = self._remote.get(thread_id)
        return remote.indicator if remote else None

    async def _notify(
        self, thread_id: str, actor_id: str, kind: IndicatorKind, active: bool
    ) -> None:
        await self._event_bus.emit(
            EventType.INDICATOR_CHANGED,
            {
                "thread_id": thread_id,
                "actor_id": actor_id,
                "kind": kind.value,
                "active": active,
                "local": actor_id == self._user_id,
            },
            SOURCE,
        )
