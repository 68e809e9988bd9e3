"""Location tracker — latest device fix, accuracy and movement plausibility."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Callable, Optional, Protocol

from hexterra.models.location import AccuracyLevel, LocationFix
from hexterra.util.events import LocationUpdated
from hexterra.util.geo import haversine_m, validate_latlng

if TYPE_CHECKING:
    from hexterra.util.events import EventBus

log = logging.getLogger(__name__)

LocationCallback = Callable[[LocationFix], None]


class GeolocationSource(Protocol):
    """Device position provider."""

    async def current_fix(self) -> LocationFix: ...


class LocationTracker:
    """Keeps the latest accepted fix and notifies listeners.

    Args:
        source: Pull provider used by :meth:`refresh` (optional).
        event_bus: Receives LocationUpdated (optional).
        fresh_s: Age in seconds under which a fix counts as fresh.
        max_speed_mps: Speeds above this between two fixes are suspicious.
        clock: Time source.
    """

    def __init__(
        self,
        source: Optional[GeolocationSource] = None,
        event_bus: Optional[EventBus] = None,
        fresh_s: float = 60.0,
        max_speed_mps: float = 100.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._source = source
        self._events = event_bus
        self.fresh_s = fresh_s
        self.max_speed_mps = max_speed_mps
        self._clock = clock
        self._latest: Optional[LocationFix] = None
        self._previous: Optional[LocationFix] = None
        self._subscribers: list[LocationCallback] = []

    @property
    def latest(self) -> Optional[LocationFix]:
        return self._latest

    @property
    def previous(self) -> Optional[LocationFix]:
        return self._previous

    def subscribe(self, callback: LocationCallback) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def update(self, fix: LocationFix) -> LocationFix:
        """Accept a pushed fix.

        Raises:
            ValueError: Coordinates out of range or negative accuracy.
        """
        validate_latlng(fix.latitude, fix.longitude)
        if fix.accuracy_m < 0:
            raise ValueError(f"Accuracy must be >= 0, got {fix.accuracy_m}")
        self._previous, self._latest = self._latest, fix
        if self._previous is not None and self.is_suspicious(self._previous, fix):
            log.warning("Implausible movement: %.0f m/s between fixes",
                        self.speed_mps(self._previous, fix))
        if self._events is not None:
            self._events.emit(LocationUpdated(fix))
        for callback in list(self._subscribers):
            callback(fix)
        return fix

    async def refresh(self) -> LocationFix:
        """Pull one fix from the source and accept it."""
        if self._source is None:
            raise RuntimeError("LocationTracker has no geolocation source")
        fix = await self._source.current_fix()
        return self.update(fix)

    # -- Queries ---------------------------------------------------------

    def accuracy(self) -> Optional[AccuracyLevel]:
        return self._latest.accuracy if self._latest is not None else None

    def is_fresh(self, fix: Optional[LocationFix] = None) -> bool:
        """Whether ``fix`` (default: latest) is younger than ``fresh_s``."""
        fix = fix or self._latest
        if fix is None:
            return False
        return self._clock() - fix.timestamp < self.fresh_s

    @staticmethod
    def distance_m(a: LocationFix, b: LocationFix) -> float:
        return haversine_m(a.latitude, a.longitude, b.latitude, b.longitude)

    def speed_mps(self, a: LocationFix, b: LocationFix) -> float:
        """Average speed between two fixes; zero when no time elapsed."""
        elapsed = abs(b.timestamp - a.timestamp)
        if elapsed == 0:
            return 0.0
        return self.distance_m(a, b) / elapsed

    def is_suspicious(self, a: LocationFix, b: LocationFix) -> bool:
        return self.speed_mps(a, b) > self.max_speed_mps
