"""Typed event bus — decoupled communication between territory services.

Consumers (map overlay, statistics, purchase panel) subscribe here instead
of polling service internals.
"""

from __future__ import annotations

from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Iterator, Optional, Type, TypeVar

if TYPE_CHECKING:
    from hexterra.models.hex import HexCell
    from hexterra.models.location import LocationFix
    from hexterra.models.purchase import RejectionReason

T = TypeVar("T")


# -- Region events -------------------------------------------------------

@dataclass(frozen=True)
class RegionLoaded:
    """Region data arrived from the backing source (or the cache)."""
    region: str
    tile_count: int
    from_cache: bool


@dataclass(frozen=True)
class RegionActivated:
    """A region's tile set became the one driving the current view."""
    region: str
    tile_count: int


# -- Tile store events ---------------------------------------------------

@dataclass(frozen=True)
class TilesReplaced:
    """The tile set of a region was replaced or extended."""
    region: str
    revision: int
    tile_count: int


@dataclass(frozen=True)
class OwnershipChanged:
    """Tiles of a region changed hands."""
    region: str
    revision: int
    cells: tuple[HexCell, ...]
    owner: Optional[str]


# -- Purchase events -----------------------------------------------------

@dataclass(frozen=True)
class PurchaseCompleted:
    """A purchase committed: ownership granted and balance debited."""
    region: str
    player_id: str
    cells_changed: tuple[HexCell, ...]
    total_cost: int
    balance_after: int


@dataclass(frozen=True)
class PurchaseRejected:
    """A purchase attempt was rejected; nothing changed."""
    region: str
    player_id: str
    reason: RejectionReason
    shortfall: int


# -- Session events ------------------------------------------------------

@dataclass(frozen=True)
class SelectionChanged:
    """The player's cell selection changed."""
    cells: frozenset[HexCell]
    bulk_mode: bool


@dataclass(frozen=True)
class ViewportChanged:
    """The map viewport moved or zoomed."""
    lat: float
    lng: float
    zoom: float
    resolution: int


@dataclass(frozen=True)
class LocationUpdated:
    """A new geolocation fix was accepted."""
    fix: LocationFix


# -- Event Bus -----------------------------------------------------------

class EventBus:
    """Simple synchronous event bus with typed events.

    Emissions inside :meth:`deferred` are queued and delivered, in order,
    when the outermost deferred block exits.

    Usage:
        bus = EventBus()
        bus.on(PurchaseCompleted, lambda e: print(e.total_cost))
        with bus.deferred():
            bus.emit(OwnershipChanged(...))
            bus.emit(PurchaseCompleted(...))
    """

    def __init__(self) -> None:
        self._handlers: dict[type, list[Callable[[Any], None]]] = defaultdict(list)
        self._depth = 0
        self._queue: list[object] = []

    def on(self, event_type: Type[T], handler: Callable[[T], None]) -> None:
        """Register a handler for an event type."""
        self._handlers[event_type].append(handler)

    def off(self, event_type: Type[T], handler: Callable[[T], None]) -> None:
        """Unregister a handler."""
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event: object) -> None:
        """Emit an event to all registered handlers (or queue it)."""
        if self._depth > 0:
            self._queue.append(event)
            return
        self._dispatch(event)

    @property
    def deferring(self) -> bool:
        """True while inside a deferred block."""
        return self._depth > 0

    @contextmanager
    def deferred(self) -> Iterator[None]:
        """Hold back delivery until the outermost block exits.

        Queued events are still delivered if the block raises, since any
        mutation they describe has already happened.
        """
        self._depth += 1
        try:
            yield
        finally:
            self._depth -= 1
            if self._depth == 0:
                queued, self._queue = self._queue, []
                for event in queued:
                    self._dispatch(event)

    def clear(self) -> None:
        """Remove all handlers."""
        self._handlers.clear()

    def _dispatch(self, event: object) -> None:
        for handler in list(self._handlers.get(type(event), [])):
            handler(event)
