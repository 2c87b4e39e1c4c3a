"""Structural interfaces for the collaborators consumed by the coordinator.

The heart-rate monitor, the motion provider, the playback service and the
event sink live outside this package.  The coordinator only relies on the
capabilities listed here, so any object with matching methods can be
plugged in without subclassing.
"""

from __future__ import annotations

from typing import Any, Callable, Protocol, runtime_checkable

from .models import HeartRateSample, PaceSample, StepsSample, WorkoutMode, WorkoutSummary

__all__ = [
    "EventSink",
    "HeartRateSource",
    "MotionSource",
    "PlaybackService",
]


@runtime_checkable
class HeartRateSource(Protocol):
    """Heart-rate monitor plus the workout bookkeeping that goes with it."""

    def observe(self, on_sample: Callable[[HeartRateSample], None]) -> None: ...

    def stop_observing(self) -> None: ...

    async def start_session(self, mode: WorkoutMode) -> None: ...

    async def end_session(self) -> WorkoutSummary: ...


@runtime_checkable
class MotionSource(Protocol):
    def observe_pace(self, on_sample: Callable[[PaceSample], None]) -> None: ...

    def stop_observing_pace(self) -> None: ...

    def observe_cadence(self, on_sample: Callable[[StepsSample], None]) -> None: ...

    def stop_observing_cadence(self) -> None: ...


@runtime_checkable
class PlaybackService(Protocol):
    async def resume(self) -> None: ...

    async def pause(self) -> None: ...


@runtime_checkable
class EventSink(Protocol):
    """Fire-and-forget destination for transition and error records."""

    def record(self, event: Any) -> None: ...
