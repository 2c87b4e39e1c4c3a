"""Drive a real :class:`SessionCoordinator` from a recorded trace.

Replays run on a :class:`VirtualClock`: fades, the sensor watchdog and the
rolling pace window all see trace time instead of wall time, so the same
trace always yields the same transitions.  ``speed`` only paces the replay
against the wall clock for demos; it does not change the outcome.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List, Optional, Tuple

import numpy as np

from ..core.models import (
    HeartRateSample,
    LiveMetrics,
    PaceSample,
    SessionConfiguration,
    StepsSample,
    WorkoutMode,
    WorkoutSummary,
    ZoneRange,
)
from ..engine.coordinator import SessionCoordinator
from ..engine.settings import EngineSettings
from ..errors import ErrorRecord
from ..events import MemoryEventSink, TransitionRecord
from .trace import DeterministicReplayer, TraceSample

__all__ = [
    "RecordingPlaybackService",
    "ReplayResult",
    "TraceHeartRateSource",
    "TraceMotionSource",
    "VirtualClock",
    "replay_trace",
]


logger = logging.getLogger(__name__)


class _TimerHandle:
    __slots__ = ("cancelled",)

    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class VirtualClock:
    """Manually advanced clock that also schedules ``call_later`` callbacks."""

    def __init__(self, start: float = 0.0) -> None:
        self._now = float(start)
        self._sequence = itertools.count()
        self._timers: List[Tuple[float, int, _TimerHandle, Callable[..., Any], Tuple[Any, ...]]] = []

    def now(self) -> float:
        return self._now

    __call__ = now

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> _TimerHandle:
        handle = _TimerHandle()
        due = self._now + max(0.0, float(delay))
        heapq.heappush(self._timers, (due, next(self._sequence), handle, callback, args))
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for entry in self._timers if not entry[2].cancelled)

    def advance(self, seconds: float) -> None:
        self.advance_to(self._now + seconds)

    def advance_to(self, moment: float) -> None:
        """Move time forward to ``moment`` firing due callbacks in order."""

        while self._timers and self._timers[0][0] <= moment:
            due, _, handle, callback, args = heapq.heappop(self._timers)
            if handle.cancelled:
                continue
            self._now = max(self._now, due)
            callback(*args)
        self._now = max(self._now, float(moment))


class TraceHeartRateSource:
    """Heart-rate collaborator fed by :meth:`deliver` instead of a sensor."""

    def __init__(self, clock: Callable[[], float]) -> None:
        self._clock = clock
        self._callback: Optional[Callable[[HeartRateSample], None]] = None
        self._started_at: Optional[float] = None
        self._readings: List[int] = []

    @property
    def is_observing(self) -> bool:
        return self._callback is not None

    def observe(self, on_sample: Callable[[HeartRateSample], None]) -> None:
        self._callback = on_sample

    def stop_observing(self) -> None:
        self._callback = None

    def deliver(self, sample: HeartRateSample) -> None:
        if self._callback is None:
            return
        self._readings.append(sample.bpm)
        self._callback(sample)

    async def start_session(self, mode: WorkoutMode) -> None:
        self._started_at = self._clock()
        self._readings.clear()

    async def end_session(self) -> WorkoutSummary:
        started = self._started_at if self._started_at is not None else self._clock()
        readings = np.asarray(self._readings, dtype=float)
        self._started_at = None
        if readings.size == 0:
            return WorkoutSummary(duration=self._clock() - started)
        return WorkoutSummary(
            duration=self._clock() - started,
            average_heart_rate=int(round(float(readings.mean()))),
            max_heart_rate=int(readings.max()),
        )


class TraceMotionSource:
    """Pace and cadence collaborator fed by the replay loop."""

    def __init__(self) -> None:
        self._pace_callback: Optional[Callable[[PaceSample], None]] = None
        self._cadence_callback: Optional[Callable[[StepsSample], None]] = None

    def observe_pace(self, on_sample: Callable[[PaceSample], None]) -> None:
        self._pace_callback = on_sample

    def stop_observing_pace(self) -> None:
        self._pace_callback = None

    def observe_cadence(self, on_sample: Callable[[StepsSample], None]) -> None:
        self._cadence_callback = on_sample

    def stop_observing_cadence(self) -> None:
        self._cadence_callback = None

    def deliver_pace(self, sample: PaceSample) -> None:
        if self._pace_callback is not None:
            self._pace_callback(sample)

    def deliver_steps(self, sample: StepsSample) -> None:
        if self._cadence_callback is not None:
            self._cadence_callback(sample)


class RecordingPlaybackService:
    """Playback collaborator that only remembers the commands it received."""

    def __init__(self, clock: Callable[[], float]) -> None:
        self._clock = clock
        self.commands: List[Tuple[str, float]] = []

    async def resume(self) -> None:
        self.commands.append(("resume", self._clock()))

    async def pause(self) -> None:
        self.commands.append(("pause", self._clock()))


@dataclass(slots=True)
class ReplayResult:
    transitions: List[TransitionRecord] = field(default_factory=list)
    commands: List[Tuple[str, float]] = field(default_factory=list)
    errors: List[ErrorRecord] = field(default_factory=list)
    summary: Optional[WorkoutSummary] = None
    metrics: Optional[LiveMetrics] = None


async def replay_trace(
    samples: Iterable[TraceSample],
    *,
    zone_range: ZoneRange,
    mode: WorkoutMode = WorkoutMode.OUTDOOR,
    configuration: SessionConfiguration | None = None,
    settings: EngineSettings | None = None,
    speed: float | None = None,
) -> ReplayResult:
    """Feed ``samples`` through a fresh coordinator and collect what it did."""

    if speed is not None and speed <= 0:
        raise ValueError("speed must be positive")
    settings = settings or EngineSettings()
    replayer = samples if isinstance(samples, DeterministicReplayer) else DeterministicReplayer(samples)
    start = replayer.start if replayer.start is not None else 0.0

    clock = VirtualClock(start)
    heart_rate = TraceHeartRateSource(clock.now)
    motion = TraceMotionSource()
    playback = RecordingPlaybackService(clock.now)
    sink = MemoryEventSink()
    coordinator = SessionCoordinator(
        heart_rate_source=heart_rate,
        motion_source=motion,
        playback=playback,
        event_sink=sink,
        zone_range=zone_range,
        configuration=configuration,
        settings=settings,
        clock=clock.now,
        scheduler=clock,
        watchdog=False,
    )
    logger.info(
        "Replaying trace.",
        extra={
            "event": "replay.started",
            "samples": len(replayer),
            "mode": mode.value,
            "speed": speed,
        },
    )

    await coordinator.start_session(mode)
    interval = settings.watchdog_interval
    next_tick = start + interval
    previous = start
    for sample in replayer:
        if speed is not None:
            await asyncio.sleep(max(0.0, sample.timestamp - previous) / speed)
        previous = sample.timestamp
        while next_tick <= sample.timestamp:
            clock.advance_to(next_tick)
            coordinator.check_sensor_gap()
            next_tick += interval
        clock.advance_to(sample.timestamp)
        if isinstance(sample, HeartRateSample):
            heart_rate.deliver(sample)
        elif isinstance(sample, PaceSample):
            motion.deliver_pace(sample)
        else:
            motion.deliver_steps(sample)
        # Sources hand samples over with call_soon_threadsafe; let them run.
        await asyncio.sleep(0)

    clock.advance(settings.fade_duration)
    await coordinator.flush()
    metrics = coordinator.metrics
    summary = await coordinator.stop_session()
    result = ReplayResult(
        transitions=sink.transitions(),
        commands=list(playback.commands),
        errors=sink.errors(),
        summary=summary,
        metrics=metrics,
    )
    logger.info(
        "Trace replay finished.",
        extra={
            "event": "replay.finished",
            "transitions": len(result.transitions),
            "commands": len(result.commands),
        },
    )
    return result
