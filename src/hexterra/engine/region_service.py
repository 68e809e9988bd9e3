"""Region service — resolves coordinates to regions, loads and caches their data.

Responsibilities:
- Classify a coordinate into a region by fixed bounding boxes
- Fetch, validate and cache region payloads (one fetch per region until
  invalidated; concurrent loads share the fetch)
- Own one TileStore per region and activate the one driving the view
- Discard superseded activations and invalidated in-flight fetches

Fetch failures always surface as LoadError; this service never substitutes
data on its own.  :meth:`RegionService.activate_with_fallback` is the one
explicit opt-in to synthetic tiles.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import defaultdict
from typing import TYPE_CHECKING, Callable, Iterable, Optional

from hexterra.engine.tile_store import TileStore
from hexterra.loaders.region_payload import parse_region_payload
from hexterra.models.hex import GeoPoint, HexCell
from hexterra.models.region import RegionBounds, RegionData
from hexterra.util.constants import LOCAL_PLAYER_ID
from hexterra.util.errors import LoadError
from hexterra.util.events import RegionActivated, RegionLoaded
from hexterra.util.geo import validate_latlng

if TYPE_CHECKING:
    from hexterra.engine.tile_generator import TileGenerator
    from hexterra.persistence.region_source import RegionDataSource
    from hexterra.util.events import EventBus

log = logging.getLogger(__name__)


# ===================================================================
# Resolver
# ===================================================================


class RegionResolver:
    """Maps coordinates to region keys.

    Args:
        regions: Non-overlapping bounding boxes, checked in order.
        default_region: Key returned when no box matches.
    """

    def __init__(self, regions: list[RegionBounds], default_region: str) -> None:
        self._regions = list(regions)
        self._by_name = {r.name: r for r in self._regions}
        if default_region not in self._by_name:
            raise ValueError(f"Default region {default_region!r} has no bounds")
        self.default_region = default_region

    def region_for(self, lat: float, lng: float) -> str:
        """Region containing (lat, lng), or the default region."""
        validate_latlng(lat, lng)
        for bounds in self._regions:
            if bounds.contains(lat, lng):
                return bounds.name
        return self.default_region

    def same_region(self, a: GeoPoint, b: GeoPoint) -> bool:
        """Whether moving from ``a`` to ``b`` stays on the same cached data."""
        return self.region_for(a.lat, a.lng) == self.region_for(b.lat, b.lng)

    def bounds(self, region: str) -> RegionBounds:
        return self._by_name[region]

    @property
    def regions(self) -> list[str]:
        return [r.name for r in self._regions]


# ===================================================================
# Loader
# ===================================================================


class RegionLoader:
    """Cache-first loader of region payloads.

    Args:
        source: Backing data source.
        event_bus: Receives RegionLoaded (optional).
        clock: Time source for ``last_synced``.
    """

    def __init__(self, source: RegionDataSource, event_bus: Optional[EventBus] = None,
                 clock: Callable[[], float] = time.time) -> None:
        self._source = source
        self._events = event_bus
        self._clock = clock
        self._cache: dict[str, RegionData] = {}
        self._inflight: dict[str, asyncio.Future[RegionData]] = {}
        self._generation: dict[str, int] = defaultdict(int)
        self._seq = 0
        self.fetch_count = 0

    def cached(self, region: str) -> Optional[RegionData]:
        return self._cache.get(region)

    async def load(self, region: str) -> RegionData:
        """Cached data for ``region``, fetching it on a miss.

        Raises:
            LoadError: The source could not deliver the payload.
            DataFormatError: The payload is malformed.
        """
        cached = self._cache.get(region)
        if cached is not None:
            log.debug("Region %s served from cache (%d tiles)", region, len(cached.tiles))
            self._emit(RegionLoaded(region, len(cached.tiles), from_cache=True))
            return cached

        task = self._inflight.get(region)
        if task is None:
            task = asyncio.ensure_future(self._fetch(region, self._generation[region]))
            self._inflight[region] = task
            task.add_done_callback(lambda t, r=region: self._forget(r, t))
        return await asyncio.shield(task)

    def invalidate(self, region: str) -> None:
        """Drop one region; a fetch in flight for it will not be cached."""
        self._generation[region] += 1
        self._inflight.pop(region, None)
        if self._cache.pop(region, None) is not None:
            log.info("Region cache invalidated: %s", region)

    def invalidate_all(self) -> None:
        for region in set(self._cache) | set(self._inflight):
            self._generation[region] += 1
        self._inflight.clear()
        self._cache.clear()
        log.info("Region cache cleared")

    def cache_stats(self) -> dict[str, int]:
        """Tile count per cached region."""
        return {region: len(data.tiles) for region, data in self._cache.items()}

    # -- Internal --------------------------------------------------------

    async def _fetch(self, region: str, generation: int) -> RegionData:
        self._seq += 1
        seq = self._seq
        self.fetch_count += 1
        log.info("Fetching region %s (fetch #%d)", region, seq)
        try:
            raw = await self._source.fetch(region)
        except LoadError:
            log.warning("Region %s could not be fetched", region)
            raise
        data = parse_region_payload(raw, region, fetch_seq=seq, synced_at=self._clock())

        if self._generation[region] == generation:
            self._cache[region] = data
        else:
            log.info("Region %s invalidated during fetch #%d; result not cached", region, seq)
        log.info("Loaded %d tiles for region %s", len(data.tiles), region)
        self._emit(RegionLoaded(region, len(data.tiles), from_cache=False))
        return data

    def _forget(self, region: str, task: asyncio.Future[RegionData]) -> None:
        if self._inflight.get(region) is task:
            del self._inflight[region]
        if not task.cancelled():
            # Mark the exception retrieved; awaiting callers still receive it.
            task.exception()

    def _emit(self, event: object) -> None:
        if self._events is not None:
            self._events.emit(event)


# ===================================================================
# Service
# ===================================================================


class RegionService:
    """Per-region tile stores plus the notion of an active region.

    Args:
        resolver: Coordinate classification.
        loader: Payload cache.
        event_bus: Shared event bus; stores created here emit on it.
        local_player_id: Owner id that counts as the local player.
        tile_resolution: Resolution of tiles created lazily.
        generator: Used by ``ensure_cells`` and ``activate_with_fallback``.
    """

    def __init__(
        self,
        resolver: RegionResolver,
        loader: RegionLoader,
        event_bus: EventBus,
        local_player_id: str = LOCAL_PLAYER_ID,
        tile_resolution: int = 9,
        generator: Optional[TileGenerator] = None,
    ) -> None:
        self.resolver = resolver
        self.loader = loader
        self._events = event_bus
        self._local = local_player_id
        self._resolution = tile_resolution
        self._generator = generator
        self._stores: dict[str, TileStore] = {}
        self._centers: dict[str, GeoPoint] = {}
        self._activation_seq = 0
        self.active_region: Optional[str] = None

    # -- Stores ----------------------------------------------------------

    def store_for(self, region: str) -> TileStore:
        store = self._stores.get(region)
        if store is None:
            store = TileStore(region, self._local, self._events)
            self._stores[region] = store
        return store

    @property
    def active_store(self) -> Optional[TileStore]:
        if self.active_region is None:
            return None
        return self._stores.get(self.active_region)

    def center_of(self, region: str) -> GeoPoint:
        """Reference center from the payload, else from configuration."""
        return self._centers.get(region) or self.resolver.bounds(region).center

    # -- Activation ------------------------------------------------------

    async def activate(self, lat: float, lng: float) -> Optional[TileStore]:
        """Load the region containing (lat, lng) and make it active.

        Returns None when a newer activation started while this one was
        loading; the superseded result is not activated.

        Raises:
            LoadError, DataFormatError: Propagated from the loader.
        """
        self._activation_seq += 1
        seq = self._activation_seq
        region = self.resolver.region_for(lat, lng)

        data = await self.loader.load(region)
        if seq != self._activation_seq:
            log.info("Activation of %s superseded (seq %d < %d)", region, seq, self._activation_seq)
            return None

        store = self.store_for(region)
        async with store.lock:
            self._populate(store, data)
        if seq != self._activation_seq:
            log.info("Activation of %s superseded while populating", region)
            return None
        self._set_active(region, store)
        return store

    async def activate_with_fallback(self, lat: float, lng: float,
                                     radius: Optional[int] = None) -> Optional[TileStore]:
        """Like :meth:`activate`, but a LoadError yields generated tiles.

        The generated tiles fill only the store, never the loader cache, so
        a later :meth:`refresh` still goes to the source.
        """
        if self._generator is None:
            raise RuntimeError("activate_with_fallback needs a TileGenerator")
        self._activation_seq += 1
        seq = self._activation_seq
        region = self.resolver.region_for(lat, lng)
        try:
            data = await self.loader.load(region)
        except LoadError as exc:
            log.warning("Region %s unavailable (%s); using generated tiles", region, exc)
            data = None
        if seq != self._activation_seq:
            return None

        store = self.store_for(region)
        async with store.lock:
            if data is not None:
                self._populate(store, data)
            else:
                center = HexCell.at(lat, lng, self._resolution)
                store.insert_missing(self._generator.demo_tiles(center, radius))
        self._set_active(region, store)
        return store

    async def refresh(self, region: str) -> TileStore:
        """Re-fetch ``region`` and replace its store contents."""
        self.loader.invalidate(region)
        data = await self.loader.load(region)
        store = self.store_for(region)
        async with store.lock:
            self._populate(store, data)
        return store

    async def ensure_cells(self, region: str, cells: Iterable[HexCell]) -> int:
        """Create FREE tiles for addressed cells the store does not know."""
        if self._generator is None:
            raise RuntimeError("ensure_cells needs a TileGenerator")
        center_point = self.center_of(region)
        store = self.store_for(region)
        async with store.lock:
            missing = [c for c in cells if c not in store]
            if not missing:
                return 0
            tiles = []
            for cell in missing:
                center = HexCell.at(center_point.lat, center_point.lng, cell.resolution)
                tiles.append(self._generator.free_tile(cell, center))
            return store.insert_missing(tiles)

    def needs_reload(self, previous: GeoPoint, current: GeoPoint) -> bool:
        return not self.resolver.same_region(previous, current)

    # -- Internal --------------------------------------------------------

    def _populate(self, store: TileStore, data: RegionData) -> None:
        # A store already holding this payload keeps its local changes.
        if store.synced_seq == data.fetch_seq:
            return
        self._centers[data.region] = data.center
        store.replace_all(data.tiles, synced_seq=data.fetch_seq)

    def _set_active(self, region: str, store: TileStore) -> None:
        self.active_region = region
        log.info("Region %s active (%d tiles)", region, len(store))
        self._events.emit(RegionActivated(region, len(store)))
