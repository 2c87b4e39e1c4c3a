"""Time-bounded sample buffers used for pace and cadence averaging."""

from __future__ import annotations

from collections import deque
from typing import Callable, Deque, Generic, Iterable, Iterator, Optional, TypeVar

import numpy as np

__all__ = ["RollingWindow", "window_mean"]


T = TypeVar("T")


class RollingWindow(Generic[T]):
    """Keep samples whose timestamp lies within ``duration`` seconds of now.

    Samples are appended in arrival order.  Eviction compares against the
    caller supplied ``now`` rather than the newest sample, so a stream that
    stops arriving empties out instead of freezing its last average.
    """

    __slots__ = ("_duration", "_timestamp", "_items")

    def __init__(self, duration: float, timestamp: Callable[[T], float]) -> None:
        if duration <= 0:
            raise ValueError("RollingWindow requires a positive duration")
        self._duration = float(duration)
        self._timestamp = timestamp
        self._items: Deque[T] = deque()

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(tuple(self._items))

    @property
    def duration(self) -> float:
        return self._duration

    def clear(self) -> None:
        self._items.clear()

    def append(self, item: T, now: float) -> None:
        self._items.append(item)
        self.evict(now)

    def evict(self, now: float) -> int:
        cutoff = now - self._duration
        # Out-of-order arrivals are possible, so every entry is checked.
        kept = [item for item in self._items if self._timestamp(item) >= cutoff]
        evicted = len(self._items) - len(kept)
        if evicted:
            self._items = deque(kept)
        return evicted


def window_mean(values: Iterable[float]) -> Optional[float]:
    """Return the mean of ``values`` or ``None`` when nothing is left."""

    array = np.fromiter(values, dtype=float)
    if array.size == 0:
        return None
    return float(np.mean(array))
