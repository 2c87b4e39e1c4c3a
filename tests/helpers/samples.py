"""Sample and trace builders shared by engine and replay tests."""

from __future__ import annotations

from typing import Iterable, List, Optional

from zonebeat.core.models import HeartRateSample, PaceSample
from zonebeat.ingestion import TraceSample


def heart_rate_series(
    bpms: Iterable[int], *, start: float = 0.0, step: float = 1.0
) -> List[HeartRateSample]:
    return [
        HeartRateSample(bpm=bpm, timestamp=start + index * step)
        for index, bpm in enumerate(bpms)
    ]


def make_trace(
    in_zone_seconds: int = 10,
    out_of_zone_seconds: int = 5,
    *,
    in_zone_bpm: int = 150,
    out_of_zone_bpm: int = 175,
    speed: Optional[float] = 3.0,
) -> List[TraceSample]:
    """One heart-rate and one pace sample per second: in zone, then above it."""

    samples: List[TraceSample] = []
    total = in_zone_seconds + out_of_zone_seconds
    for second in range(total):
        bpm = in_zone_bpm if second < in_zone_seconds else out_of_zone_bpm
        samples.append(HeartRateSample(bpm=bpm, timestamp=float(second)))
        samples.append(PaceSample(speed_meters_per_second=speed, timestamp=float(second)))
    return samples
