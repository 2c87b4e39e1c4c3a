"""Debounced heart-rate zone classification.

The engine keeps the most recent ``required_consecutive_samples`` readings.
A zone change is accepted only when every buffered reading agrees: all
inside the hysteresis-expanded range flips to ``in_zone``, all strictly
outside flips to ``out_of_zone``.  Readings that straddle the boundary keep
the previous state, which is what stops the decision from flapping when the
runner sits right at the edge of the zone.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Callable, Deque, List

from ..core.models import HeartRateSample, ZoneRange, ZoneState
from .settings import EngineSettings

__all__ = ["ZoneDecisionEngine", "ZoneListener"]


logger = logging.getLogger(__name__)


ZoneListener = Callable[[ZoneState, ZoneState], None]


class ZoneDecisionEngine:
    """Classify heart-rate samples against a fixed :class:`ZoneRange`."""

    def __init__(self, zone_range: ZoneRange, settings: EngineSettings | None = None) -> None:
        self._zone_range = zone_range
        self._settings = settings or EngineSettings()
        self._samples: Deque[HeartRateSample] = deque(
            maxlen=self._settings.required_consecutive_samples
        )
        self._state = ZoneState.UNKNOWN
        self._listeners: List[ZoneListener] = []

    @property
    def state(self) -> ZoneState:
        return self._state

    @property
    def zone_range(self) -> ZoneRange:
        return self._zone_range

    @property
    def settings(self) -> EngineSettings:
        return self._settings

    def add_listener(self, listener: ZoneListener) -> Callable[[], None]:
        """Register ``listener(old, new)``; returns a callable that removes it."""

        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def add_sample(self, sample: HeartRateSample) -> None:
        self._samples.append(sample)
        if len(self._samples) < self._settings.required_consecutive_samples:
            return

        margin = self._settings.hysteresis_bpm
        inside = [self._zone_range.contains(entry.bpm, margin=margin) for entry in self._samples]
        if all(inside):
            self._set_state(ZoneState.IN_ZONE, trigger="samples")
        elif not any(inside):
            self._set_state(ZoneState.OUT_OF_ZONE, trigger="samples")

    def handle_sensor_gap(self, last_sample_timestamp: float, now: float) -> None:
        """Degrade the state when no sample arrived for a while.

        A gap of ``sensor_gap_timeout`` seconds forces ``out_of_zone``; a gap
        of ``sensor_loss_timeout`` forces ``unknown``.  Buffered samples are
        discarded in both cases so a recovering sensor has to satisfy the
        debounce again.
        """

        gap = now - last_sample_timestamp
        if gap >= self._settings.sensor_loss_timeout:
            forced = ZoneState.UNKNOWN
        elif gap >= self._settings.sensor_gap_timeout:
            forced = ZoneState.OUT_OF_ZONE
        else:
            return
        self._samples.clear()
        self._set_state(forced, trigger="sensor_gap", gap=gap)

    def reset(self) -> None:
        self._samples.clear()
        self._set_state(ZoneState.UNKNOWN, trigger="reset")

    def _set_state(self, state: ZoneState, *, trigger: str, gap: float | None = None) -> None:
        previous = self._state
        if state is previous:
            return
        self._state = state
        logger.debug(
            "Zone state changed.",
            extra={
                "event": "zone.state_changed",
                "from_state": previous.value,
                "to_state": state.value,
                "trigger": trigger,
                "gap": gap,
            },
        )
        for listener in tuple(self._listeners):
            listener(previous, state)
