from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from zonebeat.core.models import (
    AudioEngineState,
    HeartRateSample,
    PaceSample,
    SessionConfiguration,
    StepsSample,
    WorkoutMode,
    ZoneRange,
)
from zonebeat.errors import ZonebeatError
from zonebeat.ingestion import (
    DeterministicReplayer,
    TraceFormatError,
    VirtualClock,
    iter_trace,
    read_csv_trace,
    replay_trace,
    write_trace,
)

from tests.helpers import make_trace

S = AudioEngineState

_MIXED = [
    HeartRateSample(bpm=141, timestamp=0.0),
    PaceSample(speed_meters_per_second=2.5, timestamp=0.2),
    PaceSample(speed_meters_per_second=None, timestamp=0.4),
    StepsSample(steps_per_minute=164, timestamp=0.5),
]


@pytest.mark.parametrize("name", ["trace.jsonl", "trace.jsonl.gz"])
def test_write_and_iter_trace(tmp_path: Path, name: str) -> None:
    destination = write_trace(_MIXED, tmp_path / "nested" / name)

    assert destination.exists()
    assert list(iter_trace(destination)) == _MIXED


def test_compressed_trace_is_gzip(tmp_path: Path) -> None:
    destination = write_trace(_MIXED, tmp_path / "trace.jsonl.gz")

    assert destination.read_bytes()[:2] == b"\x1f\x8b"


def test_csv_trace_parses_sparse_columns(tmp_path: Path) -> None:
    source = tmp_path / "trace.csv"
    source.write_text(
        "kind,timestamp,bpm,speed_meters_per_second,steps_per_minute\n"
        "heart_rate,0.0,141,,\n"
        "pace,0.2,,2.5,\n"
        "pace,0.4,,,\n"
        "\n"
        "steps,0.5,,,164\n",
        encoding="utf8",
    )

    assert list(iter_trace(source)) == _MIXED


def test_csv_trace_rejects_unknown_columns() -> None:
    with pytest.raises(TraceFormatError):
        read_csv_trace(["kind,timestamp,watts\n", "heart_rate,0,1\n"])


def test_csv_trace_rejects_ragged_rows() -> None:
    with pytest.raises(TraceFormatError) as excinfo:
        read_csv_trace(["kind,timestamp,bpm\n", "heart_rate,0\n"])

    assert excinfo.value.context["line"] == 2


def test_unknown_sample_kind_is_rejected(tmp_path: Path) -> None:
    source = tmp_path / "trace.jsonl"
    source.write_text('{"kind": "power", "timestamp": 0.0}\n', encoding="utf8")

    with pytest.raises(TraceFormatError):
        list(iter_trace(source))


def test_missing_trace_is_an_io_error(tmp_path: Path) -> None:
    with pytest.raises(ZonebeatError) as excinfo:
        list(iter_trace(tmp_path / "absent.jsonl"))

    assert excinfo.value.category == "io"
    assert excinfo.value.status_code == 3


def test_undecodable_trace_is_an_io_error(tmp_path: Path) -> None:
    source = tmp_path / "trace.jsonl"
    source.write_bytes(b"\xff\xfe{}\n")

    with pytest.raises(TraceFormatError) as excinfo:
        list(iter_trace(source))

    assert excinfo.value.status_code == 3
    assert excinfo.value.context["path"] == str(source)
    assert excinfo.value.context["error_type"] == "UnicodeDecodeError"


def test_truncated_gzip_trace_is_an_io_error(tmp_path: Path) -> None:
    destination = write_trace(make_trace(), tmp_path / "trace.jsonl.gz")
    destination.write_bytes(destination.read_bytes()[:-12])

    with pytest.raises(TraceFormatError) as excinfo:
        list(iter_trace(destination))

    assert excinfo.value.category == "io"
    assert excinfo.value.context["path"] == str(destination)


def test_deterministic_replayer_orders_by_timestamp() -> None:
    late = HeartRateSample(bpm=150, timestamp=2.0)
    first = HeartRateSample(bpm=140, timestamp=1.0)
    tie = PaceSample(speed_meters_per_second=3.0, timestamp=1.0)
    replayer = DeterministicReplayer([late, first, tie])

    assert list(replayer) == [first, tie, late]
    assert list(replayer.iter()) == list(replayer)
    assert (replayer.start, replayer.end) == (1.0, 2.0)
    assert len(replayer) == 3


def test_virtual_clock_fires_callbacks_in_order() -> None:
    clock = VirtualClock(10.0)
    fired: list[tuple[str, float]] = []
    clock.call_later(2.0, lambda: fired.append(("late", clock.now())))
    clock.call_later(1.0, lambda: fired.append(("early", clock.now())))
    cancelled = clock.call_later(1.5, lambda: fired.append(("cancelled", clock.now())))
    cancelled.cancel()

    clock.advance(5.0)

    assert fired == [("early", 11.0), ("late", 12.0)]
    assert clock.now() == 15.0


def test_replay_drives_a_real_session() -> None:
    result = asyncio.run(
        replay_trace(
            make_trace(),
            zone_range=ZoneRange(140, 160),
            configuration=SessionConfiguration(require_minimum_effort=True),
        )
    )

    assert [record.to_state for record in result.transitions] == [
        S.WAITING_FOR_ZONE,
        S.FADING_IN,
        S.PLAYING,
        S.FADING_OUT,
        S.PAUSED,
        S.STOPPED,
    ]
    assert [record.reason for record in result.transitions][3] == "out_of_zone"
    assert result.transitions[1].timestamp == pytest.approx(2.0)
    assert result.transitions[3].timestamp == pytest.approx(12.0)
    assert [name for name, _ in result.commands] == ["resume", "pause", "pause"]
    assert result.errors == []
    assert result.summary is not None
    assert result.summary.average_heart_rate == 158
    assert result.summary.max_heart_rate == 175


def test_replay_is_deterministic() -> None:
    trace = make_trace(8, 6)

    async def runner() -> tuple[list, list]:
        first = await replay_trace(trace, zone_range=ZoneRange(140, 160))
        second = await replay_trace(list(reversed(trace)), zone_range=ZoneRange(140, 160))
        return first.transitions, second.transitions

    first, second = asyncio.run(runner())

    assert first == second


def test_replay_without_pace_never_plays() -> None:
    result = asyncio.run(
        replay_trace(
            make_trace(speed=None),
            zone_range=ZoneRange(140, 160),
            mode=WorkoutMode.OUTDOOR,
        )
    )

    states = [record.to_state for record in result.transitions]
    assert S.FADING_IN not in states
    assert S.PLAYING not in states
    assert [name for name, _ in result.commands] == ["pause"]


def test_replay_detects_sensor_gaps() -> None:
    trace = [HeartRateSample(bpm=150, timestamp=float(second)) for second in range(3)]
    trace.append(HeartRateSample(bpm=150, timestamp=30.0))

    result = asyncio.run(
        replay_trace(
            trace,
            zone_range=ZoneRange(140, 160),
            configuration=SessionConfiguration(require_minimum_effort=False),
        )
    )

    reasons = [record.reason for record in result.transitions]
    assert "out_of_zone" in reasons
    gap_transition = next(r for r in result.transitions if r.reason == "out_of_zone")
    assert gap_transition.timestamp == pytest.approx(12.0)


def test_replay_rejects_non_positive_speed() -> None:
    with pytest.raises(ValueError):
        asyncio.run(replay_trace([], zone_range=ZoneRange(140, 160), speed=0))
