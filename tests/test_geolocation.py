"""Tests for the location tracker."""

import pytest

from hexterra.engine.geolocation import LocationTracker
from hexterra.models.location import AccuracyLevel, LocationFix
from hexterra.util.events import EventBus, LocationUpdated

from conftest import LONDON, MOSCOW


class FakeGeolocation:
    def __init__(self, fix: LocationFix) -> None:
        self.fix = fix

    async def current_fix(self) -> LocationFix:
        return self.fix


class TestAccuracy:
    @pytest.mark.parametrize("meters,level", [
        (0, AccuracyLevel.HIGH), (10, AccuracyLevel.HIGH), (10.5, AccuracyLevel.MEDIUM),
        (50, AccuracyLevel.MEDIUM), (51, AccuracyLevel.LOW),
    ])
    def test_classify(self, meters, level):
        assert LocationFix(0.0, 0.0, meters).accuracy is level


class TestTracker:
    def test_update_notifies(self):
        bus = EventBus()
        events, pushed = [], []
        bus.on(LocationUpdated, events.append)
        tracker = LocationTracker(event_bus=bus)
        tracker.subscribe(pushed.append)
        fix = LocationFix(MOSCOW.lat, MOSCOW.lng, 8.0, 100.0)
        tracker.update(fix)
        assert tracker.latest == fix
        assert tracker.accuracy() is AccuracyLevel.HIGH
        assert events == [LocationUpdated(fix)]
        assert pushed == [fix]

    def test_rejects_bad_fix(self):
        tracker = LocationTracker()
        with pytest.raises(ValueError):
            tracker.update(LocationFix(100.0, 0.0))
        with pytest.raises(ValueError):
            tracker.update(LocationFix(0.0, 0.0, -1.0))
        assert tracker.latest is None

    def test_freshness(self):
        now = [1000.0]
        tracker = LocationTracker(fresh_s=60.0, clock=lambda: now[0])
        assert not tracker.is_fresh()
        tracker.update(LocationFix(MOSCOW.lat, MOSCOW.lng, 5.0, 990.0))
        assert tracker.is_fresh()
        now[0] = 1100.0
        assert not tracker.is_fresh()

    def test_distance_and_speed(self):
        tracker = LocationTracker()
        a = LocationFix(MOSCOW.lat, MOSCOW.lng, 5.0, 0.0)
        b = LocationFix(LONDON.lat, LONDON.lng, 5.0, 3600.0)
        distance = tracker.distance_m(a, b)
        assert 2_400_000 < distance < 2_600_000
        assert tracker.speed_mps(a, b) == pytest.approx(distance / 3600.0)
        assert tracker.is_suspicious(a, b)

    def test_walking_is_plausible(self):
        tracker = LocationTracker()
        a = LocationFix(MOSCOW.lat, MOSCOW.lng, 5.0, 0.0)
        b = LocationFix(MOSCOW.lat + 0.001, MOSCOW.lng, 5.0, 60.0)
        assert not tracker.is_suspicious(a, b)

    def test_zero_elapsed(self):
        tracker = LocationTracker()
        a = LocationFix(MOSCOW.lat, MOSCOW.lng, 5.0, 10.0)
        assert tracker.speed_mps(a, a) == 0.0

    @pytest.mark.asyncio
    async def test_refresh_pulls_from_source(self):
        fix = LocationFix(LONDON.lat, LONDON.lng, 30.0, 5.0)
        tracker = LocationTracker(FakeGeolocation(fix))
        assert await tracker.refresh() == fix
        assert tracker.accuracy() is AccuracyLevel.MEDIUM

    @pytest.mark.asyncio
    async def test_refresh_without_source(self):
        with pytest.raises(RuntimeError):
            await LocationTracker().refresh()
