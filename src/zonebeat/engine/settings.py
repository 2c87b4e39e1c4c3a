"""Tuning knobs for the zone, audio and watchdog machinery."""

from __future__ import annotations

from collections.abc import Mapping as ABCMapping
from dataclasses import dataclass
from typing import Any, Mapping

from ..core.models import _coerce_float, _coerce_int

__all__ = [
    "DEFAULT_FADE_DURATION",
    "DEFAULT_HYSTERESIS_BPM",
    "DEFAULT_MINIMUM_VALID_SPEED",
    "DEFAULT_PLAYBACK_DRAIN_TIMEOUT",
    "DEFAULT_REQUIRED_CONSECUTIVE_SAMPLES",
    "DEFAULT_SENSOR_GAP_TIMEOUT",
    "DEFAULT_SENSOR_LOSS_TIMEOUT",
    "DEFAULT_SENSOR_LOST_VOLUME_FLOOR",
    "DEFAULT_WATCHDOG_INTERVAL",
    "EngineSettings",
]


DEFAULT_HYSTERESIS_BPM = 2
DEFAULT_REQUIRED_CONSECUTIVE_SAMPLES = 3
DEFAULT_SENSOR_GAP_TIMEOUT = 10.0
DEFAULT_SENSOR_LOSS_TIMEOUT = 20.0
DEFAULT_FADE_DURATION = 0.8
DEFAULT_WATCHDOG_INTERVAL = 1.0
DEFAULT_SENSOR_LOST_VOLUME_FLOOR = 0.2
DEFAULT_MINIMUM_VALID_SPEED = 0.5
DEFAULT_PLAYBACK_DRAIN_TIMEOUT = 2.0


@dataclass(frozen=True, slots=True)
class EngineSettings:
    """Immutable engine configuration parsed from TOML sources.

    ``sensor_gap_timeout`` is the silence after which the zone is treated as
    lost (``out_of_zone``); ``sensor_loss_timeout`` is the longer silence
    after which it becomes ``unknown``.  ``playback_drain_timeout`` bounds how
    long session teardown waits for queued playback commands.
    """

    hysteresis_bpm: int = DEFAULT_HYSTERESIS_BPM
    required_consecutive_samples: int = DEFAULT_REQUIRED_CONSECUTIVE_SAMPLES
    sensor_gap_timeout: float = DEFAULT_SENSOR_GAP_TIMEOUT
    sensor_loss_timeout: float = DEFAULT_SENSOR_LOSS_TIMEOUT
    fade_duration: float = DEFAULT_FADE_DURATION
    watchdog_interval: float = DEFAULT_WATCHDOG_INTERVAL
    sensor_lost_volume_floor: float = DEFAULT_SENSOR_LOST_VOLUME_FLOOR
    minimum_valid_speed: float = DEFAULT_MINIMUM_VALID_SPEED
    playback_drain_timeout: float = DEFAULT_PLAYBACK_DRAIN_TIMEOUT

    def __post_init__(self) -> None:
        if self.hysteresis_bpm < 0:
            raise ValueError("hysteresis_bpm must not be negative")
        if self.required_consecutive_samples < 1:
            raise ValueError("required_consecutive_samples must be at least 1")
        if self.sensor_gap_timeout <= 0 or self.sensor_loss_timeout <= 0:
            raise ValueError("sensor timeouts must be positive")
        if self.sensor_loss_timeout < self.sensor_gap_timeout:
            raise ValueError("sensor_loss_timeout must not be shorter than sensor_gap_timeout")
        if self.fade_duration < 0:
            raise ValueError("fade_duration must not be negative")
        if self.watchdog_interval <= 0:
            raise ValueError("watchdog_interval must be positive")
        if not 0.0 <= self.sensor_lost_volume_floor <= 1.0:
            raise ValueError("sensor_lost_volume_floor must be within [0, 1]")
        if self.playback_drain_timeout <= 0:
            raise ValueError("playback_drain_timeout must be positive")

    @classmethod
    def from_config(cls, config: Mapping[str, Any] | None = None) -> "EngineSettings":
        """Coerce the ``engine`` table of a raw configuration mapping."""

        section = config.get("engine") if config else None
        if not isinstance(section, ABCMapping):
            section = {}
        defaults = cls()
        gap = _coerce_float(
            section.get("sensor_gap_timeout"), defaults.sensor_gap_timeout, positive=True
        )
        loss = _coerce_float(
            section.get("sensor_loss_timeout"), defaults.sensor_loss_timeout, positive=True
        )
        return cls(
            hysteresis_bpm=_coerce_int(section.get("hysteresis_bpm"), defaults.hysteresis_bpm),
            required_consecutive_samples=_coerce_int(
                section.get("required_consecutive_samples"),
                defaults.required_consecutive_samples,
                positive=True,
            ),
            sensor_gap_timeout=gap,
            sensor_loss_timeout=max(loss, gap),
            fade_duration=_coerce_float(section.get("fade_duration"), defaults.fade_duration),
            watchdog_interval=_coerce_float(
                section.get("watchdog_interval"), defaults.watchdog_interval, positive=True
            ),
            sensor_lost_volume_floor=_coerce_float(
                section.get("sensor_lost_volume_floor"),
                defaults.sensor_lost_volume_floor,
                maximum=1.0,
            ),
            minimum_valid_speed=_coerce_float(
                section.get("minimum_valid_speed"), defaults.minimum_valid_speed
            ),
            playback_drain_timeout=_coerce_float(
                section.get("playback_drain_timeout"),
                defaults.playback_drain_timeout,
                positive=True,
            ),
        )
