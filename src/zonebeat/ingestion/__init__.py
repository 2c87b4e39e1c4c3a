"""Recorded sensor traces and the collaborators used to replay them."""

from __future__ import annotations

from .replay import (
    RecordingPlaybackService,
    ReplayResult,
    TraceHeartRateSource,
    TraceMotionSource,
    VirtualClock,
    replay_trace,
)
from .trace import (
    CSV_COLUMNS,
    DeterministicReplayer,
    TraceFormatError,
    TraceSample,
    decode_sample,
    encode_sample,
    iter_trace,
    read_csv_trace,
    write_trace,
)

__all__ = [
    "CSV_COLUMNS",
    "DeterministicReplayer",
    "RecordingPlaybackService",
    "ReplayResult",
    "TraceFormatError",
    "TraceHeartRateSource",
    "TraceMotionSource",
    "TraceSample",
    "VirtualClock",
    "decode_sample",
    "encode_sample",
    "iter_trace",
    "read_csv_trace",
    "replay_trace",
    "write_trace",
]
