"""Default heart-rate training zones expressed as a share of max heart rate."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

__all__ = [
    "DEFAULT_ZONES",
    "HeartRateZone",
    "estimate_max_heart_rate",
    "zone_by_id",
]


@dataclass(frozen=True, slots=True)
class HeartRateZone:
    zone_id: int
    name: str
    lower_fraction: float
    upper_fraction: float

    def bpm_range(self, max_heart_rate: int) -> tuple[int, int]:
        """Return the rounded inclusive bpm bounds for ``max_heart_rate``."""

        if max_heart_rate <= 0:
            raise ValueError(f"max_heart_rate must be positive, got {max_heart_rate}")
        lower = int(round(max_heart_rate * self.lower_fraction))
        upper = int(round(max_heart_rate * self.upper_fraction))
        return lower, max(lower, upper)

    def as_dict(self, max_heart_rate: int) -> Mapping[str, Any]:
        lower, upper = self.bpm_range(max_heart_rate)
        return {
            "zone": self.zone_id,
            "name": self.name,
            "lower_fraction": self.lower_fraction,
            "upper_fraction": self.upper_fraction,
            "lower_bpm": lower,
            "upper_bpm": upper,
        }


DEFAULT_ZONES: tuple[HeartRateZone, ...] = (
    HeartRateZone(1, "Zone 1", 0.50, 0.60),
    HeartRateZone(2, "Zone 2", 0.60, 0.70),
    HeartRateZone(3, "Zone 3", 0.70, 0.80),
    HeartRateZone(4, "Zone 4", 0.80, 0.90),
    HeartRateZone(5, "Zone 5", 0.90, 1.00),
)


def zone_by_id(zone_id: int) -> HeartRateZone:
    for zone in DEFAULT_ZONES:
        if zone.zone_id == zone_id:
            return zone
    raise KeyError(f"Unknown heart-rate zone {zone_id!r}")


def estimate_max_heart_rate(age: int) -> int:
    """Age-predicted maximum heart rate (220 - age), never below 150 bpm."""

    return max(150, 220 - int(age))
