"""Records emitted by the coordinator and two ready-made event sinks."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional

from .core.models import AudioEngineState, WorkoutMode, WorkoutSummary, ZoneRange
from .errors import ErrorRecord

__all__ = [
    "LoggingEventSink",
    "MemoryEventSink",
    "SessionEndedRecord",
    "SessionStartedRecord",
    "TimeInZoneRecord",
    "TransitionRecord",
]


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TransitionRecord:
    """Playback state change together with the verdict that caused it."""

    from_state: AudioEngineState
    to_state: AudioEngineState
    reason: str
    timestamp: float

    @property
    def event(self) -> str:
        return "session.transition"

    def as_dict(self) -> Mapping[str, Any]:
        return {
            "event": self.event,
            "from_state": self.from_state.value,
            "to_state": self.to_state.value,
            "reason": self.reason,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True, slots=True)
class SessionStartedRecord:
    mode: WorkoutMode
    zone_range: ZoneRange
    require_minimum_effort: bool
    timestamp: float

    @property
    def event(self) -> str:
        return "session.started"

    def as_dict(self) -> Mapping[str, Any]:
        return {
            "event": self.event,
            "mode": self.mode.value,
            "lower_bpm": self.zone_range.lower_bpm,
            "upper_bpm": self.zone_range.upper_bpm,
            "require_minimum_effort": self.require_minimum_effort,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True, slots=True)
class TimeInZoneRecord:
    seconds: float

    @property
    def event(self) -> str:
        return "session.time_in_zone"

    def as_dict(self) -> Mapping[str, Any]:
        return {"event": self.event, "seconds": self.seconds}


@dataclass(frozen=True, slots=True)
class SessionEndedRecord:
    summary: Optional[WorkoutSummary]
    timestamp: float

    @property
    def event(self) -> str:
        return "session.ended"

    def as_dict(self) -> Mapping[str, Any]:
        return {
            "event": self.event,
            "summary": dict(self.summary.as_dict()) if self.summary is not None else None,
            "timestamp": self.timestamp,
        }


class LoggingEventSink:
    """Write every record to the ``zonebeat.events`` logger."""

    def __init__(self, logger_: Optional[logging.Logger] = None, *, level: int = logging.INFO) -> None:
        self._logger = logger_ or logger
        self._level = level

    def record(self, event: Any) -> None:
        payload = dict(event.as_dict()) if hasattr(event, "as_dict") else {"event": repr(event)}
        name = payload.pop("event", type(event).__name__)
        level = logging.WARNING if isinstance(event, ErrorRecord) else self._level
        self._logger.log(level, name, extra={"event": name, "payload": payload})


class MemoryEventSink:
    """Keep records in memory; used by trace replays."""

    def __init__(self) -> None:
        self.records: List[Any] = []

    def record(self, event: Any) -> None:
        self.records.append(event)

    def transitions(self) -> List[TransitionRecord]:
        return [record for record in self.records if isinstance(record, TransitionRecord)]

    def errors(self) -> List[ErrorRecord]:
        return [record for record in self.records if isinstance(record, ErrorRecord)]
