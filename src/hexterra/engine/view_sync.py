"""View synchronization bridge — one consistent snapshot for every UI consumer.

The bridge listens to the event bus and, once the bus has left any deferred
batch, captures a new ViewSnapshot if the observable state changed.
Consumers either read :meth:`ViewSyncBridge.snapshot` or subscribe and get
every published snapshot in order.  A consumer never sees a tile set and a
balance from two different points of a purchase.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Optional

from hexterra.models.hex import GeoPoint
from hexterra.models.purchase import PurchaseQuote
from hexterra.models.snapshot import FeatureRecord, Viewport, ViewSnapshot
from hexterra.util.events import (
    OwnershipChanged,
    PurchaseCompleted,
    RegionActivated,
    SelectionChanged,
    TilesReplaced,
    ViewportChanged,
)
from hexterra.util.geo import validate_latlng

if TYPE_CHECKING:
    from hexterra.engine.purchase_service import PurchaseEngine
    from hexterra.engine.region_service import RegionService
    from hexterra.engine.selection import Selection
    from hexterra.engine.spatial_index import SpatialIndexer
    from hexterra.models.purchase import Wallet
    from hexterra.util.events import EventBus

log = logging.getLogger(__name__)

SnapshotCallback = Callable[[ViewSnapshot], None]

_TRIGGERS = (
    OwnershipChanged,
    TilesReplaced,
    SelectionChanged,
    ViewportChanged,
    RegionActivated,
    PurchaseCompleted,
)


class ViewSyncBridge:
    """Publishes immutable view snapshots to subscribed consumers.

    Args:
        event_bus: Bus shared with the stores, selection and purchase engine.
        indexer: Viewport math and cell boundaries.
        regions: Source of the active tile store.
        selection: The player's selection.
        purchase_engine: Quotes the selection and bulk areas.
        wallet: Balance shown in snapshots (optional).
    """

    def __init__(
        self,
        event_bus: EventBus,
        indexer: SpatialIndexer,
        regions: RegionService,
        selection: Selection,
        purchase_engine: PurchaseEngine,
        wallet: Optional[Wallet] = None,
    ) -> None:
        self._events = event_bus
        self._indexer = indexer
        self._regions = regions
        self._selection = selection
        self._engine = purchase_engine
        self._wallet = wallet
        self._viewport: Optional[Viewport] = None
        self._current = ViewSnapshot()
        self._subscribers: list[SnapshotCallback] = []
        for event_type in _TRIGGERS:
            event_bus.on(event_type, self._on_event)

    def close(self) -> None:
        """Detach from the event bus and drop all subscribers."""
        for event_type in _TRIGGERS:
            self._events.off(event_type, self._on_event)
        self._subscribers.clear()

    # -- Consumer API ----------------------------------------------------

    def snapshot(self) -> ViewSnapshot:
        """The last published snapshot."""
        return self._current

    def subscribe(self, callback: SnapshotCallback) -> Callable[[], None]:
        """Register ``callback``; returns a function that unregisters it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def set_viewport(self, lat: float, lng: float, zoom: float) -> Viewport:
        """Move the map view; the visible cell set follows the zoom tables."""
        validate_latlng(lat, lng)
        resolution = self._indexer.resolution_for_zoom(zoom)
        self._viewport = Viewport(
            center=GeoPoint(lat, lng),
            zoom=zoom,
            resolution=resolution,
            visible=self._indexer.visible_cells(lat, lng, zoom),
        )
        self._events.emit(ViewportChanged(lat, lng, zoom, resolution))
        return self._viewport

    def features(self, visible_only: bool = False) -> list[FeatureRecord]:
        """Polygons of the published snapshot, sorted by cell key."""
        snap = self._current
        cells = sorted(snap.tiles)
        if visible_only and snap.viewport is not None:
            cells = [c for c in cells if c in snap.viewport.visible]
        return [
            FeatureRecord(
                cell_id=cell.index,
                boundary=self._indexer.boundary(cell),
                status=snap.tiles[cell].status,
                is_selected=cell in snap.selection,
                price=snap.tiles[cell].price,
            )
            for cell in cells
        ]

    def on_cell_clicked(self, cell_id: str) -> None:
        """Hit callback of the rendering surface.

        Raises:
            InvalidCellError: ``cell_id`` is not a cell key.
        """
        cell = self._indexer.parse(cell_id)
        store = self._regions.active_store
        if self._selection.bulk_mode and store is not None:
            quote = self._engine.bulk_quote(store, cell)
            self._selection.select_many(quote.eligible)
        else:
            self._selection.toggle(cell)

    # -- Publication -----------------------------------------------------

    def _on_event(self, event: object) -> None:
        if self._events.deferring:
            return
        self.publish()

    def publish(self) -> bool:
        """Capture the current state; returns True if a snapshot was published."""
        candidate = self._capture()
        if candidate.state_key() == self._current.state_key():
            return False
        self._current = candidate
        log.debug("View snapshot v%d (region=%s, rev=%d, selected=%d)",
                  candidate.version, candidate.region, candidate.revision,
                  len(candidate.selection))
        for callback in list(self._subscribers):
            callback(candidate)
        return True

    def _capture(self) -> ViewSnapshot:
        store = self._regions.active_store
        selection = self._selection.cells
        balance = self._wallet.tokens if self._wallet is not None else None
        if store is None:
            return ViewSnapshot(
                version=self._current.version + 1,
                selection=selection,
                bulk_mode=self._selection.bulk_mode,
                viewport=self._viewport,
                quote=PurchaseQuote(requested=selection, skipped=selection),
                balance=balance,
            )
        return ViewSnapshot(
            version=self._current.version + 1,
            region=store.region,
            revision=store.revision,
            tiles=store.snapshot(),
            selection=selection,
            bulk_mode=self._selection.bulk_mode,
            viewport=self._viewport,
            counts=store.status_counts(),
            quote=self._engine.quote(store, selection),
            balance=balance,
        )
