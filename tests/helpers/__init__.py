"""Convenience re-exports for test helpers."""

from __future__ import annotations

from .collaborators import (
    FailingEventSink,
    FakeHeartRateSource,
    FakeMotionSource,
    FakePlayback,
    SessionHarness,
    build_harness,
    settle,
)
from .samples import heart_rate_series, make_trace

__all__ = [
    "FailingEventSink",
    "FakeHeartRateSource",
    "FakeMotionSource",
    "FakePlayback",
    "SessionHarness",
    "build_harness",
    "heart_rate_series",
    "make_trace",
    "settle",
]
