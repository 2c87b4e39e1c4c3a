"""Top-level package for zonebeat.

zonebeat decides when music should play during a workout: playback runs
while the runner's heart rate sits inside a target zone and, optionally,
while they keep up a minimum pace or cadence.  The package exposes the zone
classifier, the audio policy state machine and the session coordinator
that ties them to sensor and playback collaborators.
"""

from ._version import __version__
from .configuration import ResolvedSettings, load_project_config, resolve_settings
from .core import (
    DEFAULT_ZONES,
    AudioAction,
    AudioActionKind,
    AudioEngineState,
    EventSink,
    HeartRateSample,
    HeartRateSource,
    HeartRateZone,
    LiveMetrics,
    MotionSource,
    PaceSample,
    PauseCause,
    PauseReason,
    PlaybackService,
    SessionConfiguration,
    StepsSample,
    WorkoutMode,
    WorkoutSummary,
    ZoneRange,
    ZoneState,
    estimate_max_heart_rate,
    zone_by_id,
)
from .engine import AudioPolicyEngine, EngineSettings, SessionCoordinator, ZoneDecisionEngine
from .errors import ErrorRecord, ZonebeatError
from .events import (
    LoggingEventSink,
    MemoryEventSink,
    SessionEndedRecord,
    SessionStartedRecord,
    TimeInZoneRecord,
    TransitionRecord,
)

__all__ = [
    "AudioAction",
    "AudioActionKind",
    "AudioEngineState",
    "AudioPolicyEngine",
    "DEFAULT_ZONES",
    "EngineSettings",
    "ErrorRecord",
    "EventSink",
    "HeartRateSample",
    "HeartRateSource",
    "HeartRateZone",
    "LiveMetrics",
    "LoggingEventSink",
    "MemoryEventSink",
    "MotionSource",
    "PaceSample",
    "PauseCause",
    "PauseReason",
    "PlaybackService",
    "ResolvedSettings",
    "SessionConfiguration",
    "SessionCoordinator",
    "SessionEndedRecord",
    "SessionStartedRecord",
    "StepsSample",
    "TimeInZoneRecord",
    "TransitionRecord",
    "WorkoutMode",
    "WorkoutSummary",
    "ZoneDecisionEngine",
    "ZoneRange",
    "ZoneState",
    "ZonebeatError",
    "__version__",
    "estimate_max_heart_rate",
    "load_project_config",
    "resolve_settings",
    "zone_by_id",
]
