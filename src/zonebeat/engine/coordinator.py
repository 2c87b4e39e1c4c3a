"""Session orchestration: sensor fusion, playback verdicts and the watchdog.

All state lives on the asyncio loop that ran :meth:`SessionCoordinator.start_session`.
Sensor callbacks may fire from any thread; they only hand samples over with
``call_soon_threadsafe`` and the loop processes them one at a time.  Within
one sample the zone engine is updated first, then the effort gate, then the
audio policy, so a sample yields exactly one playback directive.

Playback commands emitted by the audio policy are queued and delivered in
order by a single consumer task, which keeps slow or failing playback calls
from blocking sample ingestion.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from dataclasses import replace
from typing import Any, Callable, List, Optional, TypeVar

from ..core.interfaces import EventSink, HeartRateSource, MotionSource, PlaybackService
from ..core.models import (
    OUT_OF_ZONE_PAUSE,
    PACE_FAILED_PAUSE,
    SENSOR_LOST_DUCK,
    USER_PAUSE,
    AudioAction,
    AudioActionKind,
    AudioEngineState,
    HeartRateSample,
    LiveMetrics,
    PaceSample,
    SessionConfiguration,
    StepsSample,
    WorkoutMode,
    WorkoutSummary,
    ZoneRange,
    ZoneState,
)
from ..core.window import RollingWindow, window_mean
from ..errors import build_error_record, log_error_record
from ..events import SessionEndedRecord, SessionStartedRecord, TimeInZoneRecord, TransitionRecord
from .audio_policy import AudioPolicyEngine, Scheduler
from .settings import EngineSettings
from .zone_decision import ZoneDecisionEngine

__all__ = ["MetricsListener", "SessionCoordinator"]


logger = logging.getLogger(__name__)


MetricsListener = Callable[[LiveMetrics], None]
_S = TypeVar("_S")

_METERS_PER_SECOND_TO_KMH = 3.6


class SessionCoordinator:
    """Fuse heart-rate, pace and cadence streams into one playback verdict.

    Pass ``watchdog=False`` when the caller drives :meth:`check_sensor_gap`
    itself, as trace replay does on its virtual clock.
    """

    def __init__(
        self,
        *,
        heart_rate_source: HeartRateSource,
        motion_source: MotionSource,
        playback: PlaybackService,
        event_sink: EventSink,
        zone_range: ZoneRange,
        configuration: SessionConfiguration | None = None,
        settings: EngineSettings | None = None,
        clock: Callable[[], float] | None = None,
        scheduler: Scheduler | None = None,
        watchdog: bool = True,
    ) -> None:
        self._heart_rate = heart_rate_source
        self._motion = motion_source
        self._playback = playback
        self._event_sink = event_sink
        self._zone_range = zone_range
        self._configuration = configuration or SessionConfiguration()
        self._settings = settings or EngineSettings()
        self._clock = clock or time.time
        self._watchdog_enabled = watchdog

        self._zone_engine = ZoneDecisionEngine(zone_range, self._settings)
        self._zone_engine.add_listener(self._on_zone_changed)
        self._audio = AudioPolicyEngine(
            fade_duration=self._settings.fade_duration, scheduler=scheduler
        )
        self._audio.add_transition_listener(self._on_audio_transition)
        self._audio.add_action_listener(self._on_audio_action)
        self._sensor_lost_duck = replace(
            SENSOR_LOST_DUCK, volume_floor=self._settings.sensor_lost_volume_floor
        )

        window = self._configuration.pace_averaging_window_seconds
        self._pace_window: RollingWindow[PaceSample] = RollingWindow(
            window, lambda sample: sample.timestamp
        )
        self._cadence_window: RollingWindow[StepsSample] = RollingWindow(
            window, lambda sample: sample.timestamp
        )

        self._metrics = LiveMetrics()
        self._metrics_listeners: List[MetricsListener] = []
        self._running = False
        self._mode = WorkoutMode.OUTDOOR
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._watchdog_task: Optional[asyncio.Task[None]] = None
        self._playback_queue: Optional[asyncio.Queue[AudioAction]] = None
        self._playback_worker: Optional[asyncio.Task[None]] = None
        self._session_started_at: Optional[float] = None
        self._last_heart_rate_timestamp: Optional[float] = None
        self._verdict_reason = "idle"
        self._user_hold = False
        self._evaluating = False
        self._zone_entered_at: Optional[float] = None
        self._time_in_zone = 0.0

    @property
    def metrics(self) -> LiveMetrics:
        return self._metrics

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def mode(self) -> WorkoutMode:
        return self._mode

    @property
    def zone_range(self) -> ZoneRange:
        return self._zone_range

    @property
    def configuration(self) -> SessionConfiguration:
        return self._configuration

    @property
    def settings(self) -> EngineSettings:
        return self._settings

    @property
    def zone_engine(self) -> ZoneDecisionEngine:
        return self._zone_engine

    @property
    def audio_engine(self) -> AudioPolicyEngine:
        return self._audio

    def add_metrics_listener(self, listener: MetricsListener) -> Callable[[], None]:
        """Register ``listener`` for :class:`LiveMetrics` snapshots."""

        self._metrics_listeners.append(listener)

        def _remove() -> None:
            if listener in self._metrics_listeners:
                self._metrics_listeners.remove(listener)

        return _remove

    # -- lifecycle -------------------------------------------------------

    async def start_session(self, mode: WorkoutMode = WorkoutMode.OUTDOOR) -> None:
        """Begin observing sensors and driving playback for ``mode``.

        Calling this while a session is already running does nothing.  A
        heart-rate workout session that fails to start is recorded and the
        session carries on without it.
        """

        if self._running:
            logger.info(
                "Session already running; start request ignored.",
                extra={"event": "session.start_ignored", "mode": self._mode.value},
            )
            return

        loop = asyncio.get_running_loop()
        now = self._clock()
        self._loop = loop
        self._running = True
        self._mode = mode
        self._user_hold = False
        self._session_started_at = now
        self._last_heart_rate_timestamp = None
        self._time_in_zone = 0.0
        self._zone_entered_at = None
        self._pace_window.clear()
        self._cadence_window.clear()
        self._zone_engine.reset()
        self._metrics = LiveMetrics(mode=mode)

        queue: asyncio.Queue[AudioAction] = asyncio.Queue()
        self._playback_queue = queue
        self._playback_worker = loop.create_task(self._deliver_playback_actions(queue))

        self._verdict_reason = "session_started"
        self._audio.start_session()
        self._record(
            SessionStartedRecord(
                mode=mode,
                zone_range=self._zone_range,
                require_minimum_effort=self._configuration.require_minimum_effort,
                timestamp=now,
            )
        )
        logger.info(
            "Session started.",
            extra={
                "event": "session.started",
                "mode": mode.value,
                "lower_bpm": self._zone_range.lower_bpm,
                "upper_bpm": self._zone_range.upper_bpm,
            },
        )

        try:
            await self._heart_rate.start_session(mode)
        except Exception as exc:
            self._record_error("sensor_start", "heart_rate.start_session", exc)
        if not self._running:
            # stop_session ran while the workout session was starting.
            return

        self._call_collaborator(
            "sensor_start", "heart_rate.observe", self._heart_rate.observe, self._receive_heart_rate
        )
        self._call_collaborator(
            "sensor_start", "motion.observe_pace", self._motion.observe_pace, self._receive_pace
        )
        self._call_collaborator(
            "sensor_start",
            "motion.observe_cadence",
            self._motion.observe_cadence,
            self._receive_steps,
        )
        if self._watchdog_enabled:
            self._watchdog_task = loop.create_task(self._run_watchdog())
        self._publish_metrics()

    async def stop_session(self) -> Optional[WorkoutSummary]:
        """Tear the session down and return the workout summary.

        The watchdog and any pending fade are cancelled before this returns,
        queued playback commands (including the final ``stop``) get up to
        ``playback_drain_timeout`` seconds to be delivered before they are
        dropped.  ``None`` is returned when no session was running or the
        summary could not be obtained.
        """

        if not self._running:
            return None
        self._running = False
        now = self._clock()

        watchdog = self._watchdog_task
        self._watchdog_task = None
        if watchdog is not None:
            watchdog.cancel()

        self._call_collaborator(
            "sensor_stop", "heart_rate.stop_observing", self._heart_rate.stop_observing
        )
        self._call_collaborator(
            "sensor_stop", "motion.stop_observing_pace", self._motion.stop_observing_pace
        )
        self._call_collaborator(
            "sensor_stop", "motion.stop_observing_cadence", self._motion.stop_observing_cadence
        )

        self._close_zone_interval(now)
        self._verdict_reason = "session_stopped"
        self._audio.stop_session()

        if watchdog is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await watchdog
        await self._close_playback_channel()

        summary: Optional[WorkoutSummary] = None
        try:
            summary = await self._heart_rate.end_session()
        except Exception as exc:
            self._record_error("summary", "heart_rate.end_session", exc)

        self._metrics = replace(self._metrics, time_in_zone_seconds=self._time_in_zone)
        self._record(TimeInZoneRecord(seconds=self._time_in_zone))
        self._record(SessionEndedRecord(summary=summary, timestamp=now))
        logger.info(
            "Session stopped.",
            extra={
                "event": "session.stopped",
                "mode": self._mode.value,
                "time_in_zone_seconds": self._time_in_zone,
                "summary_available": summary is not None,
            },
        )
        self._publish_metrics()
        return summary

    async def flush(self) -> None:
        """Wait until every queued playback command has been delivered."""

        queue = self._playback_queue
        if queue is not None:
            await queue.join()

    def pause_by_user(self) -> None:
        """Hold playback paused until :meth:`resume_by_user` is called."""

        if not self._running or self._user_hold:
            return
        self._user_hold = True
        self._run_evaluation()

    def resume_by_user(self) -> None:
        if not self._running or not self._user_hold:
            return
        self._user_hold = False
        self._run_evaluation()

    # -- sample handling (loop thread only) ------------------------------

    def handle_heart_rate(self, sample: HeartRateSample) -> None:
        if not self._running:
            return
        self._evaluating = True
        try:
            self._zone_engine.add_sample(sample)
            self._last_heart_rate_timestamp = sample.timestamp
            self._metrics = replace(
                self._metrics,
                heart_rate_bpm=sample.bpm,
                last_sample_timestamp=sample.timestamp,
            )
            self._evaluate_playback()
        finally:
            self._evaluating = False
        self._publish_metrics()

    def handle_pace(self, sample: PaceSample) -> None:
        if not self._running:
            return
        self._pace_window.append(sample, self._clock())
        self._run_evaluation()

    def handle_steps(self, sample: StepsSample) -> None:
        if not self._running:
            return
        self._cadence_window.append(sample, self._clock())
        self._run_evaluation()

    def check_sensor_gap(self) -> None:
        """One watchdog poll: degrade the zone if heart-rate samples stopped."""

        if not self._running:
            return
        reference = self._last_heart_rate_timestamp
        if reference is None:
            reference = self._session_started_at
        if reference is None:
            return
        now = self._clock()
        before = self._zone_engine.state
        self._zone_engine.handle_sensor_gap(reference, now)
        after = self._zone_engine.state
        if after is before:
            return
        logger.warning(
            "Heart-rate samples stopped arriving.",
            extra={
                "event": "session.sensor_gap",
                "gap": now - reference,
                "from_state": before.value,
                "to_state": after.value,
            },
        )
        self._run_evaluation()

    # -- internals -------------------------------------------------------

    def _receive_heart_rate(self, sample: HeartRateSample) -> None:
        self._handoff(self.handle_heart_rate, sample)

    def _receive_pace(self, sample: PaceSample) -> None:
        self._handoff(self.handle_pace, sample)

    def _receive_steps(self, sample: StepsSample) -> None:
        self._handoff(self.handle_steps, sample)

    def _handoff(self, handler: Callable[[_S], None], sample: _S) -> None:
        loop = self._loop
        if loop is None or not self._running:
            return
        try:
            loop.call_soon_threadsafe(handler, sample)
        except RuntimeError:
            logger.debug(
                "Dropping sample delivered after the event loop closed.",
                extra={"event": "session.sample_dropped", "sample": repr(sample)},
            )

    async def _run_watchdog(self) -> None:
        interval = self._settings.watchdog_interval
        while self._running:
            await asyncio.sleep(interval)
            self.check_sensor_gap()

    def _run_evaluation(self) -> None:
        self._evaluating = True
        try:
            self._evaluate_playback()
        finally:
            self._evaluating = False
        self._publish_metrics()

    def _evaluate_playback(self) -> None:
        now = self._clock()
        pace_kmh, cadence_spm = self._motion_averages(now)
        effort = self._effort_satisfied(pace_kmh, cadence_spm)
        zone = self._zone_engine.state
        self._metrics = replace(
            self._metrics,
            pace_kmh=pace_kmh,
            cadence_spm=cadence_spm,
            zone_state=zone,
            effort_satisfied=effort,
            time_in_zone_seconds=self._time_in_zone_at(now),
        )

        if self._user_hold:
            self._verdict_reason = "user_paused"
            self._audio.request_pause(USER_PAUSE)
        elif zone is ZoneState.IN_ZONE and effort:
            self._verdict_reason = "in_zone"
            self._audio.request_play()
        elif zone is ZoneState.UNKNOWN:
            self._verdict_reason = "sensor_lost"
            self._audio.request_pause(self._sensor_lost_duck)
        elif zone is ZoneState.IN_ZONE:
            self._verdict_reason = "pace_failed"
            self._audio.request_pause(PACE_FAILED_PAUSE)
        else:
            self._verdict_reason = "out_of_zone"
            self._audio.request_pause(OUT_OF_ZONE_PAUSE)

    def _motion_averages(self, now: float) -> tuple[Optional[float], Optional[int]]:
        self._pace_window.evict(now)
        self._cadence_window.evict(now)
        floor = self._settings.minimum_valid_speed
        speeds = [
            sample.speed_meters_per_second
            for sample in self._pace_window
            if sample.speed_meters_per_second is not None
            and sample.speed_meters_per_second >= floor
        ]
        mean_speed = window_mean(speeds)
        pace_kmh = None if mean_speed is None else mean_speed * _METERS_PER_SECOND_TO_KMH
        mean_cadence = window_mean(sample.steps_per_minute for sample in self._cadence_window)
        cadence_spm = None if mean_cadence is None else int(mean_cadence)
        return pace_kmh, cadence_spm

    def _effort_satisfied(self, pace_kmh: Optional[float], cadence_spm: Optional[int]) -> bool:
        configuration = self._configuration
        if not configuration.require_minimum_effort:
            return True
        if self._mode is WorkoutMode.TREADMILL:
            return cadence_spm is not None and cadence_spm >= configuration.minimum_cadence_spm
        return pace_kmh is not None and pace_kmh >= configuration.minimum_pace_kmh

    def _on_zone_changed(self, previous: ZoneState, current: ZoneState) -> None:
        now = self._clock()
        if previous is ZoneState.IN_ZONE:
            self._close_zone_interval(now)
        if current is ZoneState.IN_ZONE and self._running:
            self._zone_entered_at = now
        self._metrics = replace(self._metrics, zone_state=current)

    def _close_zone_interval(self, now: float) -> None:
        entered = self._zone_entered_at
        if entered is None:
            return
        self._time_in_zone += max(0.0, now - entered)
        self._zone_entered_at = None

    def _time_in_zone_at(self, now: float) -> float:
        entered = self._zone_entered_at
        if entered is None:
            return self._time_in_zone
        return self._time_in_zone + max(0.0, now - entered)

    def _on_audio_transition(self, previous: AudioEngineState, current: AudioEngineState) -> None:
        self._metrics = replace(self._metrics, playback_state=current)
        self._record(
            TransitionRecord(
                from_state=previous,
                to_state=current,
                reason=self._verdict_reason,
                timestamp=self._clock(),
            )
        )
        if not self._evaluating:
            self._publish_metrics()

    def _on_audio_action(self, action: AudioAction) -> None:
        if action.kind is AudioActionKind.FADE_TO:
            self._metrics = replace(self._metrics, volume_level=float(action.level or 0.0))
            if not self._evaluating:
                self._publish_metrics()
            return
        queue = self._playback_queue
        if queue is None:
            logger.debug(
                "Playback action emitted outside a session.",
                extra={"event": "session.action_dropped", "action": action.kind.value},
            )
            return
        queue.put_nowait(action)

    async def _deliver_playback_actions(self, queue: "asyncio.Queue[AudioAction]") -> None:
        while True:
            action = await queue.get()
            try:
                if action.kind is AudioActionKind.PLAY:
                    operation, command = "playback.resume", self._playback.resume
                else:
                    operation, command = "playback.pause", self._playback.pause
                try:
                    await command()
                except Exception as exc:
                    self._record_error("playback", operation, exc)
            finally:
                queue.task_done()

    async def _close_playback_channel(self) -> None:
        queue = self._playback_queue
        worker = self._playback_worker
        if queue is not None:
            timeout = self._settings.playback_drain_timeout
            try:
                await asyncio.wait_for(queue.join(), timeout)
            except asyncio.TimeoutError:
                # Queued commands plus the one stuck in flight.
                dropped = queue.qsize() + 1
                self._record_error(
                    "playback",
                    "playback.drain",
                    TimeoutError(
                        f"{dropped} playback command(s) undelivered after {timeout:g}s"
                    ),
                )
        self._playback_queue = None
        self._playback_worker = None
        if worker is not None:
            worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await worker

    def _call_collaborator(
        self, category: str, operation: str, call: Callable[..., Any], *args: Any
    ) -> None:
        try:
            call(*args)
        except Exception as exc:
            self._record_error(category, operation, exc)

    def _record_error(self, category: str, operation: str, error: BaseException) -> None:
        record = build_error_record(
            category, operation, error, context={"mode": self._mode.value}
        )
        log_error_record(record, logger=logger, exc_info=error)
        self._record(record)

    def _record(self, event: Any) -> None:
        try:
            self._event_sink.record(event)
        except Exception:
            logger.exception(
                "Event sink rejected a record.",
                extra={"event": "session.sink_failed", "record": type(event).__name__},
            )

    def _publish_metrics(self) -> None:
        snapshot = self._metrics
        for listener in tuple(self._metrics_listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception(
                    "Metrics listener failed.",
                    extra={"event": "session.listener_failed"},
                )
