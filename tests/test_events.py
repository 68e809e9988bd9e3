"""Tests for the event bus."""

import pytest

from hexterra.util.events import EventBus, RegionActivated, RegionLoaded


class TestEventBus:
    def test_emit_triggers_handler(self):
        bus = EventBus()
        received = []
        bus.on(RegionActivated, lambda e: received.append(e.region))
        bus.emit(RegionActivated(region="moscow", tile_count=37))
        assert received == ["moscow"]

    def test_no_cross_event(self):
        bus = EventBus()
        received = []
        bus.on(RegionActivated, lambda e: received.append("activated"))
        bus.emit(RegionLoaded(region="moscow", tile_count=1, from_cache=False))
        assert received == []

    def test_multiple_handlers(self):
        bus = EventBus()
        a, b = [], []
        bus.on(RegionActivated, lambda e: a.append(1))
        bus.on(RegionActivated, lambda e: b.append(2))
        bus.emit(RegionActivated(region="moscow", tile_count=1))
        assert a == [1] and b == [2]

    def test_off_removes_handler(self):
        bus = EventBus()
        received = []
        handler = lambda e: received.append(1)
        bus.on(RegionActivated, handler)
        bus.off(RegionActivated, handler)
        bus.emit(RegionActivated(region="moscow", tile_count=1))
        assert received == []

    def test_clear(self):
        bus = EventBus()
        bus.on(RegionActivated, lambda e: None)
        bus.clear()
        # Should not raise
        bus.emit(RegionActivated(region="moscow", tile_count=1))


class TestDeferred:
    def test_events_held_until_exit(self):
        bus = EventBus()
        received = []
        bus.on(RegionActivated, lambda e: received.append(e.region))
        with bus.deferred():
            bus.emit(RegionActivated(region="a", tile_count=1))
            bus.emit(RegionActivated(region="b", tile_count=1))
            assert received == []
            assert bus.deferring
        assert received == ["a", "b"]
        assert not bus.deferring

    def test_nested_blocks_flush_once(self):
        bus = EventBus()
        received = []
        bus.on(RegionActivated, lambda e: received.append(e.region))
        with bus.deferred():
            with bus.deferred():
                bus.emit(RegionActivated(region="inner", tile_count=1))
            assert received == []
        assert received == ["inner"]

    def test_flushes_on_exception(self):
        bus = EventBus()
        received = []
        bus.on(RegionActivated, lambda e: received.append(e.region))
        with pytest.raises(RuntimeError):
            with bus.deferred():
                bus.emit(RegionActivated(region="a", tile_count=1))
                raise RuntimeError("boom")
        assert received == ["a"]

    def test_handler_sees_bus_not_deferring(self):
        bus = EventBus()
        states = []
        bus.on(RegionActivated, lambda e: states.append(bus.deferring))
        with bus.deferred():
            bus.emit(RegionActivated(region="a", tile_count=1))
        assert states == [False]
