from __future__ import annotations

import asyncio

import pytest

from zonebeat.core.models import (
    OUT_OF_ZONE_PAUSE,
    SENSOR_LOST_DUCK,
    USER_PAUSE,
    AudioAction,
    AudioEngineState,
)
from zonebeat.engine import AudioPolicyEngine
from zonebeat.ingestion import VirtualClock

S = AudioEngineState


class _Recorder:
    def __init__(self, engine: AudioPolicyEngine) -> None:
        self.transitions: list[tuple[AudioEngineState, AudioEngineState]] = []
        self.actions: list[AudioAction] = []
        engine.add_transition_listener(lambda old, new: self.transitions.append((old, new)))
        engine.add_action_listener(self.actions.append)


def _engine(state: AudioEngineState = S.STOPPED) -> tuple[AudioPolicyEngine, VirtualClock, _Recorder]:
    clock = VirtualClock()
    engine = AudioPolicyEngine(fade_duration=0.8, scheduler=clock, state=state)
    return engine, clock, _Recorder(engine)


def _playing() -> tuple[AudioPolicyEngine, VirtualClock, _Recorder]:
    engine, clock, recorder = _engine()
    engine.request_play()
    clock.advance(0.8)
    recorder.transitions.clear()
    recorder.actions.clear()
    return engine, clock, recorder


def test_play_from_stopped_passes_through_waiting() -> None:
    engine, clock, recorder = _engine()

    engine.request_play()

    assert recorder.transitions == [(S.STOPPED, S.WAITING_FOR_ZONE), (S.WAITING_FOR_ZONE, S.FADING_IN)]
    assert recorder.actions == [AudioAction.fade_to(1.0)]

    clock.advance(0.8)

    assert engine.state is S.PLAYING
    assert recorder.transitions[-1] == (S.FADING_IN, S.PLAYING)
    assert recorder.actions[-1] == AudioAction.play()


def test_repeated_play_requests_do_not_duplicate_actions() -> None:
    engine, clock, recorder = _engine()

    engine.request_play()
    engine.request_play()
    clock.advance(0.8)
    engine.request_play()

    assert recorder.actions == [AudioAction.fade_to(1.0), AudioAction.play()]
    assert clock.pending == 0


def test_hard_pause_fades_to_silence_then_pauses() -> None:
    engine, clock, recorder = _playing()

    engine.request_pause(OUT_OF_ZONE_PAUSE)

    assert engine.state is S.FADING_OUT
    assert engine.pending_reason == OUT_OF_ZONE_PAUSE
    assert recorder.actions == [AudioAction.fade_to(0.0)]

    clock.advance(0.8)

    assert engine.state is S.PAUSED
    assert recorder.actions[-1] == AudioAction.pause()
    assert engine.pending_reason is None


def test_soft_duck_returns_to_waiting_without_pausing() -> None:
    engine, clock, recorder = _playing()

    engine.request_pause(SENSOR_LOST_DUCK)
    clock.advance(0.8)

    assert engine.state is S.WAITING_FOR_ZONE
    assert recorder.actions == [AudioAction.fade_to(0.2)]


def test_hard_reason_upgrades_a_soft_fade_out() -> None:
    engine, clock, recorder = _playing()

    engine.request_pause(SENSOR_LOST_DUCK)
    clock.advance(0.4)
    engine.request_pause(OUT_OF_ZONE_PAUSE)
    clock.advance(0.5)

    # The soft continuation was superseded; the hard one needs a full fade.
    assert engine.state is S.FADING_OUT
    clock.advance(0.5)

    assert engine.state is S.PAUSED
    assert recorder.actions == [
        AudioAction.fade_to(0.2),
        AudioAction.fade_to(0.0),
        AudioAction.pause(),
    ]


def test_soft_reason_does_not_downgrade_a_hard_fade_out() -> None:
    engine, clock, recorder = _playing()

    engine.request_pause(OUT_OF_ZONE_PAUSE)
    engine.request_pause(SENSOR_LOST_DUCK)
    clock.advance(0.8)

    assert engine.state is S.PAUSED
    assert recorder.actions == [AudioAction.fade_to(0.0), AudioAction.pause()]


def test_play_during_fade_out_cancels_the_pending_pause() -> None:
    engine, clock, recorder = _playing()

    engine.request_pause(OUT_OF_ZONE_PAUSE)
    clock.advance(0.4)
    engine.request_play()
    clock.advance(2.0)

    assert engine.state is S.PLAYING
    assert S.PAUSED not in [new for _, new in recorder.transitions]
    assert AudioAction.pause() not in recorder.actions


def test_pause_during_fade_in_never_lands_in_playing() -> None:
    engine, clock, recorder = _engine()

    engine.request_play()
    engine.request_pause(OUT_OF_ZONE_PAUSE)
    clock.advance(2.0)

    assert engine.state is S.PAUSED
    assert AudioAction.play() not in recorder.actions


def test_hard_pause_while_waiting_is_silent_when_nothing_plays() -> None:
    engine, _clock, recorder = _engine()
    engine.start_session()

    engine.request_pause(OUT_OF_ZONE_PAUSE)

    assert engine.state is S.PAUSED
    assert recorder.actions == []


def test_hard_pause_after_soft_duck_silences_the_audio() -> None:
    engine, clock, recorder = _playing()
    engine.request_pause(SENSOR_LOST_DUCK)
    clock.advance(0.8)

    engine.request_pause(USER_PAUSE)

    assert engine.state is S.PAUSED
    assert recorder.actions[-2:] == [AudioAction.fade_to(0.0), AudioAction.pause()]


def test_soft_pause_while_waiting_is_ignored() -> None:
    engine, _clock, recorder = _engine()
    engine.start_session()
    recorder.transitions.clear()

    engine.request_pause(SENSOR_LOST_DUCK)

    assert engine.state is S.WAITING_FOR_ZONE
    assert recorder.transitions == []


@pytest.mark.parametrize("state", [S.STOPPED, S.PAUSED])
def test_pause_requests_are_ignored_when_silent(state: AudioEngineState) -> None:
    engine, _clock, recorder = _engine(state)

    engine.request_pause(OUT_OF_ZONE_PAUSE)

    assert engine.state is state
    assert recorder.transitions == []
    assert recorder.actions == []


def test_stop_cancels_pending_fade_and_emits_stop() -> None:
    engine, clock, recorder = _engine()
    engine.request_play()

    engine.stop_session()
    clock.advance(5.0)

    assert engine.state is S.STOPPED
    assert not engine.has_pending_fade
    assert recorder.actions == [AudioAction.fade_to(1.0), AudioAction.stop()]


def test_stop_when_already_stopped_is_silent() -> None:
    engine, _clock, recorder = _engine()

    engine.stop_session()

    assert recorder.transitions == []
    assert recorder.actions == []


def test_defaults_to_the_running_event_loop() -> None:
    async def runner() -> AudioEngineState:
        engine = AudioPolicyEngine(fade_duration=0.01)
        engine.request_play()
        await asyncio.sleep(0.05)
        return engine.state

    assert asyncio.run(runner()) is S.PLAYING


def test_negative_fade_duration_is_rejected() -> None:
    with pytest.raises(ValueError):
        AudioPolicyEngine(fade_duration=-1.0)
