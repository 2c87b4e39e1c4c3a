from __future__ import annotations

import logging

import pytest

from zonebeat.core.models import AudioEngineState, WorkoutMode, WorkoutSummary, ZoneRange
from zonebeat.errors import ZonebeatError, build_error_record, log_error_record
from zonebeat.events import (
    LoggingEventSink,
    MemoryEventSink,
    SessionEndedRecord,
    SessionStartedRecord,
    TransitionRecord,
)

_TRANSITION = TransitionRecord(
    from_state=AudioEngineState.PLAYING,
    to_state=AudioEngineState.FADING_OUT,
    reason="out_of_zone",
    timestamp=12.0,
)


def test_error_record_captures_type_and_context() -> None:
    record = build_error_record(
        "playback",
        "playback.resume",
        RuntimeError("player unavailable"),
        context={"mode": "outdoor", "path": object()},
    )

    assert record.message == "player unavailable"
    assert record.context["error_type"] == "RuntimeError"
    assert record.context["mode"] == "outdoor"
    assert isinstance(record.context["path"], str)
    assert record.as_dict()["event"] == "session.error"


def test_error_record_falls_back_to_the_exception_name() -> None:
    record = build_error_record("summary", "heart_rate.end_session", TimeoutError())

    assert record.message == "TimeoutError"


def test_log_error_record_emits_a_structured_warning(caplog: pytest.LogCaptureFixture) -> None:
    logger = logging.getLogger("tests.errors")
    record = build_error_record("sensor_start", "heart_rate.start_session", OSError("denied"))

    with caplog.at_level(logging.WARNING, logger="tests.errors"):
        log_error_record(record, logger=logger)

    entry = caplog.records[-1]
    assert entry.event == "session.error"
    assert entry.category == "sensor_start"
    assert "heart_rate.start_session failed: denied" in entry.getMessage()


@pytest.mark.parametrize(
    ("category", "status"),
    [("runtime", 1), ("usage", 2), ("io", 3), ("config", 4), ("unexpected", 1)],
)
def test_zonebeat_error_status_codes(category: str, status: int) -> None:
    error = ZonebeatError("boom", category=category, context={"value": 3})

    assert error.status_code == status
    assert error.context == {"value": 3}
    assert error.logged is False


def test_transition_record_payload() -> None:
    assert _TRANSITION.as_dict() == {
        "event": "session.transition",
        "from_state": "playing",
        "to_state": "fading_out",
        "reason": "out_of_zone",
        "timestamp": 12.0,
    }


def test_session_records_payloads() -> None:
    started = SessionStartedRecord(WorkoutMode.TREADMILL, ZoneRange(120, 140), False, 0.0)
    ended = SessionEndedRecord(summary=WorkoutSummary(duration=10.0), timestamp=10.0)

    assert started.as_dict()["mode"] == "treadmill"
    assert started.as_dict()["lower_bpm"] == 120
    assert ended.as_dict()["summary"]["duration"] == 10.0
    assert SessionEndedRecord(None, 3.0).as_dict()["summary"] is None


def test_memory_sink_filters_records() -> None:
    sink = MemoryEventSink()
    error = build_error_record("playback", "playback.pause", RuntimeError("x"))

    sink.record(_TRANSITION)
    sink.record(error)

    assert sink.transitions() == [_TRANSITION]
    assert sink.errors() == [error]


def test_logging_sink_uses_warning_for_errors(caplog: pytest.LogCaptureFixture) -> None:
    sink = LoggingEventSink(logging.getLogger("tests.events"))
    error = build_error_record("playback", "playback.pause", RuntimeError("x"))

    with caplog.at_level(logging.INFO, logger="tests.events"):
        sink.record(_TRANSITION)
        sink.record(error)

    transition_entry, error_entry = caplog.records[-2:]
    assert transition_entry.levelno == logging.INFO
    assert transition_entry.event == "session.transition"
    assert transition_entry.payload["reason"] == "out_of_zone"
    assert error_entry.levelno == logging.WARNING
    assert error_entry.event == "session.error"
