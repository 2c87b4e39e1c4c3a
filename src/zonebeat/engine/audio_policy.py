"""Playback intent state machine with cancellable fades.

States move ``stopped -> waiting_for_zone -> fading_in -> playing ->
fading_out -> paused`` (or back to ``waiting_for_zone`` after a soft duck).
Fade completion is a delayed continuation scheduled with ``call_later``.
Each continuation carries the generation it was scheduled under, and any
later request bumps the generation, so a superseded fade can never land.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, List, Optional, Protocol

from ..core.models import AudioAction, AudioEngineState, PauseReason
from .settings import DEFAULT_FADE_DURATION

__all__ = [
    "ActionListener",
    "AudioPolicyEngine",
    "Scheduler",
    "TransitionListener",
]


logger = logging.getLogger(__name__)


TransitionListener = Callable[[AudioEngineState, AudioEngineState], None]
ActionListener = Callable[[AudioAction], None]


class _Cancellable(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Anything with ``call_later`` semantics, such as an asyncio loop."""

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> _Cancellable: ...


_ALREADY_PLAYING = frozenset({AudioEngineState.PLAYING, AudioEngineState.FADING_IN})


class AudioPolicyEngine:
    """Turn play/pause requests into transitions and playback actions."""

    def __init__(
        self,
        *,
        fade_duration: float = DEFAULT_FADE_DURATION,
        scheduler: Scheduler | None = None,
        state: AudioEngineState = AudioEngineState.STOPPED,
    ) -> None:
        if fade_duration < 0:
            raise ValueError("fade_duration must not be negative")
        self._fade_duration = float(fade_duration)
        self._scheduler = scheduler
        self._state = state
        self._generation = 0
        self._pending: Optional[_Cancellable] = None
        self._pending_reason: Optional[PauseReason] = None
        # Audio keeps running after a soft duck lands in waiting_for_zone.
        self._audible = state in _ALREADY_PLAYING
        self._transition_listeners: List[TransitionListener] = []
        self._action_listeners: List[ActionListener] = []

    @property
    def state(self) -> AudioEngineState:
        return self._state

    @property
    def fade_duration(self) -> float:
        return self._fade_duration

    @property
    def pending_reason(self) -> Optional[PauseReason]:
        """Reason of the fade-out in flight, if any."""

        return self._pending_reason

    @property
    def has_pending_fade(self) -> bool:
        return self._pending is not None

    def add_transition_listener(self, listener: TransitionListener) -> Callable[[], None]:
        self._transition_listeners.append(listener)
        return lambda: _discard(self._transition_listeners, listener)

    def add_action_listener(self, listener: ActionListener) -> Callable[[], None]:
        self._action_listeners.append(listener)
        return lambda: _discard(self._action_listeners, listener)

    def start_session(self) -> None:
        if self._state is AudioEngineState.STOPPED:
            self._transition(AudioEngineState.WAITING_FOR_ZONE)

    def stop_session(self) -> None:
        self._cancel_pending()
        if self._state is AudioEngineState.STOPPED:
            return
        self._audible = False
        self._transition(AudioEngineState.STOPPED)
        self._emit(AudioAction.stop())

    def request_play(self) -> None:
        if self._state in _ALREADY_PLAYING:
            return
        if self._state is AudioEngineState.STOPPED:
            self.start_session()
        self._begin_fade_in()

    def request_pause(self, reason: PauseReason) -> None:
        state = self._state
        if state in (AudioEngineState.STOPPED, AudioEngineState.PAUSED):
            return
        if state is AudioEngineState.WAITING_FOR_ZONE:
            if reason.should_fully_pause:
                self._pending_reason = None
                self._transition(AudioEngineState.PAUSED)
                if self._audible:
                    self._audible = False
                    self._emit(AudioAction.fade_to(reason.volume_floor))
                    self._emit(AudioAction.pause())
            return
        if state is AudioEngineState.FADING_OUT:
            in_flight = self._pending_reason
            if in_flight is not None and reason.is_harder_than(in_flight):
                self._begin_fade_out(reason)
            return
        self._begin_fade_out(reason)

    def _begin_fade_in(self) -> None:
        self._cancel_pending()
        self._transition(AudioEngineState.FADING_IN)
        self._emit(AudioAction.fade_to(1.0))
        self._schedule(self._complete_fade_in)

    def _begin_fade_out(self, reason: PauseReason) -> None:
        self._cancel_pending()
        self._pending_reason = reason
        self._transition(AudioEngineState.FADING_OUT)
        self._emit(AudioAction.fade_to(reason.volume_floor))
        self._schedule(self._complete_fade_out, reason)

    def _complete_fade_in(self, generation: int) -> None:
        if generation != self._generation:
            return
        self._pending = None
        self._audible = True
        self._transition(AudioEngineState.PLAYING)
        self._emit(AudioAction.play())

    def _complete_fade_out(self, generation: int, reason: PauseReason) -> None:
        if generation != self._generation:
            return
        self._pending = None
        self._pending_reason = None
        if reason.should_fully_pause:
            self._audible = False
            self._transition(AudioEngineState.PAUSED)
            self._emit(AudioAction.pause())
        else:
            self._transition(AudioEngineState.WAITING_FOR_ZONE)

    def _schedule(self, callback: Callable[..., None], *args: Any) -> None:
        self._generation += 1
        scheduler = self._scheduler or asyncio.get_running_loop()
        self._pending = scheduler.call_later(
            self._fade_duration, callback, self._generation, *args
        )

    def _cancel_pending(self) -> None:
        self._generation += 1
        pending = self._pending
        self._pending = None
        self._pending_reason = None
        if pending is not None:
            pending.cancel()

    def _transition(self, state: AudioEngineState) -> None:
        previous = self._state
        if state is previous:
            return
        self._state = state
        logger.debug(
            "Audio policy transition.",
            extra={
                "event": "audio.transition",
                "from_state": previous.value,
                "to_state": state.value,
            },
        )
        for listener in tuple(self._transition_listeners):
            listener(previous, state)

    def _emit(self, action: AudioAction) -> None:
        for listener in tuple(self._action_listeners):
            listener(action)


def _discard(listeners: List[Any], listener: Any) -> None:
    if listener in listeners:
        listeners.remove(listener)
