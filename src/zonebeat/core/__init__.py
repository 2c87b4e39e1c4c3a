"""Value types, zone tables and collaborator interfaces."""

from __future__ import annotations

from .interfaces import EventSink, HeartRateSource, MotionSource, PlaybackService
from .models import (
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
    PauseCause,
    PauseReason,
    SessionConfiguration,
    StepsSample,
    WorkoutMode,
    WorkoutSummary,
    ZoneRange,
    ZoneState,
)
from .window import RollingWindow, window_mean
from .zones import DEFAULT_ZONES, HeartRateZone, estimate_max_heart_rate, zone_by_id

__all__ = [
    "AudioAction",
    "AudioActionKind",
    "AudioEngineState",
    "DEFAULT_ZONES",
    "EventSink",
    "HeartRateSample",
    "HeartRateSource",
    "HeartRateZone",
    "LiveMetrics",
    "MotionSource",
    "OUT_OF_ZONE_PAUSE",
    "PACE_FAILED_PAUSE",
    "PaceSample",
    "PauseCause",
    "PauseReason",
    "PlaybackService",
    "RollingWindow",
    "SENSOR_LOST_DUCK",
    "SessionConfiguration",
    "StepsSample",
    "USER_PAUSE",
    "WorkoutMode",
    "WorkoutSummary",
    "ZoneRange",
    "ZoneState",
    "estimate_max_heart_rate",
    "window_mean",
    "zone_by_id",
]
