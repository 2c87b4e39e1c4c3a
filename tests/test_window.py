from __future__ import annotations

import pytest

from zonebeat.core.models import PaceSample
from zonebeat.core.window import RollingWindow, window_mean


def _window() -> RollingWindow[PaceSample]:
    return RollingWindow(5.0, lambda sample: sample.timestamp)


def test_entries_older_than_the_window_are_evicted() -> None:
    window = _window()
    window.append(PaceSample(2.0, 0.0), now=0.0)
    window.append(PaceSample(3.0, 4.0), now=4.0)

    evicted = window.evict(now=6.0)

    assert evicted == 1
    assert [sample.timestamp for sample in window] == [4.0]


def test_eviction_uses_the_supplied_clock() -> None:
    window = _window()
    window.append(PaceSample(2.0, 10.0), now=10.0)

    assert window.evict(now=15.0) == 0
    assert window.evict(now=15.5) == 1
    assert len(window) == 0


def test_late_arrivals_are_checked_individually() -> None:
    window = _window()
    window.append(PaceSample(2.0, 9.0), now=9.0)
    window.append(PaceSample(2.0, 1.0), now=9.0)

    assert [sample.timestamp for sample in window] == [9.0]


def test_window_requires_positive_duration() -> None:
    with pytest.raises(ValueError):
        RollingWindow(0.0, lambda sample: sample)


def test_window_mean() -> None:
    assert window_mean([]) is None
    assert window_mean(iter([1.0, 2.0, 4.5])) == pytest.approx(2.5)
