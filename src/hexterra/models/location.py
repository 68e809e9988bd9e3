"""Geolocation fixes supplied by the device."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from hexterra.util.constants import HIGH_ACCURACY_M, MEDIUM_ACCURACY_M


class AccuracyLevel(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def classify(cls, accuracy_m: float) -> AccuracyLevel:
        if accuracy_m <= HIGH_ACCURACY_M:
            return cls.HIGH
        if accuracy_m <= MEDIUM_ACCURACY_M:
            return cls.MEDIUM
        return cls.LOW


@dataclass(frozen=True)
class LocationFix:
    """A single position fix.

    Attributes:
        latitude, longitude: Degrees.
        accuracy_m: Horizontal accuracy radius in meters.
        timestamp: Unix time of the fix in seconds.
    """

    latitude: float
    longitude: float
    accuracy_m: float = 0.0
    timestamp: float = 0.0

    @property
    def accuracy(self) -> AccuracyLevel:
        return AccuracyLevel.classify(self.accuracy_m)
