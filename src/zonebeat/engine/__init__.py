"""Zone classification, audio policy and session coordination."""

from __future__ import annotations

from .audio_policy import ActionListener, AudioPolicyEngine, Scheduler, TransitionListener
from .coordinator import MetricsListener, SessionCoordinator
from .settings import (
    DEFAULT_FADE_DURATION,
    DEFAULT_HYSTERESIS_BPM,
    DEFAULT_MINIMUM_VALID_SPEED,
    DEFAULT_REQUIRED_CONSECUTIVE_SAMPLES,
    DEFAULT_SENSOR_GAP_TIMEOUT,
    DEFAULT_SENSOR_LOSS_TIMEOUT,
    DEFAULT_SENSOR_LOST_VOLUME_FLOOR,
    DEFAULT_WATCHDOG_INTERVAL,
    EngineSettings,
)
from .zone_decision import ZoneDecisionEngine, ZoneListener

__all__ = [
    "ActionListener",
    "AudioPolicyEngine",
    "DEFAULT_FADE_DURATION",
    "DEFAULT_HYSTERESIS_BPM",
    "DEFAULT_MINIMUM_VALID_SPEED",
    "DEFAULT_REQUIRED_CONSECUTIVE_SAMPLES",
    "DEFAULT_SENSOR_GAP_TIMEOUT",
    "DEFAULT_SENSOR_LOSS_TIMEOUT",
    "DEFAULT_SENSOR_LOST_VOLUME_FLOOR",
    "DEFAULT_WATCHDOG_INTERVAL",
    "EngineSettings",
    "MetricsListener",
    "Scheduler",
    "SessionCoordinator",
    "TransitionListener",
    "ZoneDecisionEngine",
    "ZoneListener",
]
