"""Value types exchanged between sensors, engines and the coordinator."""

from __future__ import annotations

import math
from collections.abc import Mapping as ABCMapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

__all__ = [
    "AudioAction",
    "AudioActionKind",
    "AudioEngineState",
    "HeartRateSample",
    "LiveMetrics",
    "PaceSample",
    "PauseCause",
    "PauseReason",
    "SessionConfiguration",
    "StepsSample",
    "WorkoutMode",
    "WorkoutSummary",
    "ZoneRange",
    "ZoneState",
    "OUT_OF_ZONE_PAUSE",
    "PACE_FAILED_PAUSE",
    "SENSOR_LOST_DUCK",
    "USER_PAUSE",
]


class ZoneState(Enum):
    IN_ZONE = "in_zone"
    OUT_OF_ZONE = "out_of_zone"
    UNKNOWN = "unknown"


class AudioEngineState(Enum):
    STOPPED = "stopped"
    WAITING_FOR_ZONE = "waiting_for_zone"
    FADING_IN = "fading_in"
    PLAYING = "playing"
    FADING_OUT = "fading_out"
    PAUSED = "paused"


class WorkoutMode(Enum):
    """Where the session happens; selects pace or cadence for the effort gate."""

    OUTDOOR = "outdoor"
    TREADMILL = "treadmill"


class PauseCause(Enum):
    OUT_OF_ZONE = "out_of_zone"
    PACE_REQUIREMENT_FAILED = "pace_requirement_failed"
    SENSOR_LOST = "sensor_lost"
    USER_PAUSED = "user_paused"


class AudioActionKind(Enum):
    PLAY = "play"
    PAUSE = "pause"
    FADE_TO = "fade_to"
    STOP = "stop"


@dataclass(frozen=True, slots=True)
class HeartRateSample:
    bpm: int
    timestamp: float


@dataclass(frozen=True, slots=True)
class PaceSample:
    """Speed reading; ``None`` means the provider has no velocity lock."""

    speed_meters_per_second: Optional[float]
    timestamp: float


@dataclass(frozen=True, slots=True)
class StepsSample:
    steps_per_minute: int
    timestamp: float


@dataclass(frozen=True, slots=True)
class ZoneRange:
    """Inclusive target heart-rate band in beats per minute."""

    lower_bpm: int
    upper_bpm: int

    def __post_init__(self) -> None:
        if self.lower_bpm <= 0 or self.upper_bpm <= 0:
            raise ValueError(
                f"Zone bounds must be positive, got [{self.lower_bpm}, {self.upper_bpm}]"
            )
        if self.lower_bpm > self.upper_bpm:
            raise ValueError(
                f"Zone lower bound {self.lower_bpm} exceeds upper bound {self.upper_bpm}"
            )

    @classmethod
    def from_zone(cls, zone: Any, max_heart_rate: int) -> "ZoneRange":
        """Build the range of ``zone`` (a :class:`HeartRateZone`) for ``max_heart_rate``."""

        lower, upper = zone.bpm_range(max_heart_rate)
        return cls(lower, upper)

    def expanded(self, margin: int) -> tuple[int, int]:
        return self.lower_bpm - margin, self.upper_bpm + margin

    def contains(self, bpm: int, *, margin: int = 0) -> bool:
        lower, upper = self.expanded(margin)
        return lower <= bpm <= upper


@dataclass(frozen=True, slots=True)
class PauseReason:
    """Why playback should recede and how far.

    ``should_fully_pause`` selects a hard pause over a volume-reduced hold at
    ``volume_floor``.
    """

    cause: PauseCause
    should_fully_pause: bool
    volume_floor: float = 0.0

    def __post_init__(self) -> None:
        floor = float(self.volume_floor)
        if not math.isfinite(floor) or not 0.0 <= floor <= 1.0:
            raise ValueError(f"volume_floor must be within [0, 1], got {self.volume_floor!r}")

    def is_harder_than(self, other: "PauseReason") -> bool:
        return self.should_fully_pause and not other.should_fully_pause


OUT_OF_ZONE_PAUSE = PauseReason(PauseCause.OUT_OF_ZONE, should_fully_pause=True)
PACE_FAILED_PAUSE = PauseReason(PauseCause.PACE_REQUIREMENT_FAILED, should_fully_pause=True)
SENSOR_LOST_DUCK = PauseReason(PauseCause.SENSOR_LOST, should_fully_pause=False, volume_floor=0.2)
USER_PAUSE = PauseReason(PauseCause.USER_PAUSED, should_fully_pause=True)


@dataclass(frozen=True, slots=True)
class AudioAction:
    kind: AudioActionKind
    level: Optional[float] = None

    @classmethod
    def play(cls) -> "AudioAction":
        return cls(AudioActionKind.PLAY)

    @classmethod
    def pause(cls) -> "AudioAction":
        return cls(AudioActionKind.PAUSE)

    @classmethod
    def stop(cls) -> "AudioAction":
        return cls(AudioActionKind.STOP)

    @classmethod
    def fade_to(cls, level: float) -> "AudioAction":
        return cls(AudioActionKind.FADE_TO, float(level))


@dataclass(frozen=True, slots=True)
class WorkoutSummary:
    duration: float
    average_heart_rate: Optional[int] = None
    max_heart_rate: Optional[int] = None
    distance: Optional[float] = None
    steps: Optional[int] = None
    time_in_zone_seconds: float = 0.0

    def as_dict(self) -> Mapping[str, Any]:
        return {
            "duration": self.duration,
            "average_heart_rate": self.average_heart_rate,
            "max_heart_rate": self.max_heart_rate,
            "distance": self.distance,
            "steps": self.steps,
            "time_in_zone_seconds": self.time_in_zone_seconds,
        }


@dataclass(frozen=True, slots=True)
class LiveMetrics:
    """Snapshot published by the coordinator after every sample or transition."""

    heart_rate_bpm: Optional[int] = None
    pace_kmh: Optional[float] = None
    cadence_spm: Optional[int] = None
    zone_state: ZoneState = ZoneState.UNKNOWN
    playback_state: AudioEngineState = AudioEngineState.STOPPED
    last_sample_timestamp: Optional[float] = None
    effort_satisfied: bool = False
    volume_level: float = 0.0
    mode: WorkoutMode = WorkoutMode.OUTDOOR
    time_in_zone_seconds: float = 0.0


@dataclass(frozen=True, slots=True)
class SessionConfiguration:
    """Effort-gate thresholds, immutable for the lifetime of a session."""

    minimum_pace_kmh: float = 2.5
    minimum_cadence_spm: int = 60
    pace_averaging_window_seconds: float = 5.0
    require_minimum_effort: bool = True

    def __post_init__(self) -> None:
        if self.minimum_pace_kmh < 0:
            raise ValueError("minimum_pace_kmh must not be negative")
        if self.minimum_cadence_spm < 0:
            raise ValueError("minimum_cadence_spm must not be negative")
        if self.pace_averaging_window_seconds <= 0:
            raise ValueError("pace_averaging_window_seconds must be positive")

    @classmethod
    def from_config(
        cls, config: Mapping[str, Any] | None = None
    ) -> "SessionConfiguration":
        """Coerce the ``session`` table of a raw configuration mapping."""

        section = config.get("session") if config else None
        if not isinstance(section, ABCMapping):
            section = {}
        defaults = cls()
        return cls(
            minimum_pace_kmh=_coerce_float(
                section.get("minimum_pace_kmh"), defaults.minimum_pace_kmh, minimum=0.0
            ),
            minimum_cadence_spm=_coerce_int(
                section.get("minimum_cadence_spm"), defaults.minimum_cadence_spm
            ),
            pace_averaging_window_seconds=_coerce_float(
                section.get("pace_averaging_window_seconds"),
                defaults.pace_averaging_window_seconds,
                minimum=None,
                positive=True,
            ),
            require_minimum_effort=_coerce_bool(
                section.get("require_minimum_effort"), defaults.require_minimum_effort
            ),
        )


def _coerce_bool(value: Any, fallback: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    return fallback


def _coerce_int(value: Any, fallback: int, *, positive: bool = False) -> int:
    if isinstance(value, bool):
        return fallback
    try:
        numeric = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return fallback
    if positive and numeric <= 0:
        return fallback
    if numeric < 0:
        return 0
    return numeric


def _coerce_float(
    value: Any,
    fallback: float,
    *,
    minimum: float | None = 0.0,
    maximum: float | None = None,
    positive: bool = False,
) -> float:
    if isinstance(value, bool):
        return fallback
    try:
        numeric = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return fallback
    if not math.isfinite(numeric):
        return fallback
    if positive and numeric <= 0.0:
        return fallback
    if minimum is not None and numeric < minimum:
        return minimum
    if maximum is not None and numeric > maximum:
        return maximum
    return numeric
