"""Composition root of the territory subsystem.

Builds every component once and wires them through one EventBus:
1. Load configuration
2. Choose the region and player data sources and the stores
3. Create engine services (indexer, regions, players, purchases, selection, view bridge)
4. Wire event handlers

The host application owns the event loop; this module only assembles the
pieces and opens / closes their resources.

Usage:
    services = create_services(load_config())
    wire_events(services)
    await start(services, lat, lng)
    ...
    await shutdown(services)
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from hexterra.engine.geolocation import LocationTracker
from hexterra.engine.player_service import PlayerService
from hexterra.engine.purchase_service import PurchaseEngine
from hexterra.engine.region_service import RegionLoader, RegionResolver, RegionService
from hexterra.engine.selection import Selection
from hexterra.engine.spatial_index import SpatialIndexer
from hexterra.engine.statistics import StatisticsService
from hexterra.engine.tile_generator import TileGenerator
from hexterra.engine.view_sync import ViewSyncBridge
from hexterra.loaders.config_loader import HexTerraConfig, load_config
from hexterra.models.hex import GeoPoint
from hexterra.models.player import Balance, PlayerProfile
from hexterra.models.purchase import Wallet
from hexterra.persistence.database import SqliteSnapshotStore
from hexterra.persistence.player_store import (
    FilePlayerSource,
    HttpPlayerSource,
    PlayerDataSource,
    YamlPlayerStore,
)
from hexterra.persistence.region_source import (
    FileRegionSource,
    GeneratedRegionSource,
    HttpRegionSource,
    RegionDataSource,
)
from hexterra.persistence.snapshot_store import SnapshotStore, YamlSnapshotStore
from hexterra.util.errors import PersistenceError
from hexterra.util.events import (
    EventBus,
    LocationUpdated,
    PurchaseCompleted,
    PurchaseRejected,
    RegionLoaded,
)

log = logging.getLogger(__name__)


def configure_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


# ---------------------------------------------------------------------------
# Container for all services
# ---------------------------------------------------------------------------


@dataclass
class Services:
    """Holds references to all territory services."""

    config: HexTerraConfig
    event_bus: EventBus
    indexer: SpatialIndexer
    generator: TileGenerator
    source: RegionDataSource
    regions: RegionService
    purchases: PurchaseEngine
    selection: Selection
    wallet: Wallet
    players: PlayerService
    view: ViewSyncBridge
    statistics: StatisticsService
    location: LocationTracker
    snapshot_store: Optional[SnapshotStore] = None
    last_position: Optional[GeoPoint] = None


# ===================================================================
# Collaborators chosen by configuration
# ===================================================================


def build_source(config: HexTerraConfig, generator: TileGenerator) -> RegionDataSource:
    kind = config.region_source
    if kind == "http":
        return HttpRegionSource(config.region_data_url, timeout_s=config.http_timeout_s)
    if kind == "file":
        return FileRegionSource(config.region_data_dir)
    if kind == "generated":
        return GeneratedRegionSource(config.regions, generator, config.tile_resolution)
    raise ValueError(f"Unknown region_source {kind!r} (expected http, file or generated)")


def build_snapshot_store(config: HexTerraConfig) -> Optional[SnapshotStore]:
    kind = config.snapshot_backend
    if kind == "yaml":
        return YamlSnapshotStore(config.snapshot_dir)
    if kind == "sqlite":
        return SqliteSnapshotStore(config.snapshot_db_path)
    if kind == "none":
        return None
    raise ValueError(f"Unknown snapshot_backend {kind!r} (expected yaml, sqlite or none)")


def build_player_source(config: HexTerraConfig) -> Optional[PlayerDataSource]:
    kind = config.player_source
    if kind == "http":
        return HttpPlayerSource(config.region_data_url, timeout_s=config.http_timeout_s)
    if kind == "file":
        return FilePlayerSource(config.player_data_path)
    if kind == "none":
        return None
    raise ValueError(f"Unknown player_source {kind!r} (expected http, file or none)")


def build_player_store(config: HexTerraConfig) -> Optional[YamlPlayerStore]:
    return YamlPlayerStore(config.player_save_path) if config.player_save_path else None


def default_profile(config: HexTerraConfig) -> PlayerProfile:
    return PlayerProfile(
        player_id=config.local_player_id,
        nickname=config.player_nickname,
        balance=Balance(tokens=config.starting_tokens),
    )


# ===================================================================
# Create services
# ===================================================================


def create_services(
    config: Optional[HexTerraConfig] = None,
    source: Optional[RegionDataSource] = None,
    snapshot_store: Optional[SnapshotStore] = None,
    player_source: Optional[PlayerDataSource] = None,
) -> Services:
    """Instantiate all services with explicit dependency injection.

    Args:
        config: Loaded configuration; defaults to :func:`load_config`.
        source: Region data source; chosen from ``config.region_source``
            if omitted.
        snapshot_store: Snapshot persistence; chosen from
            ``config.snapshot_backend`` if omitted.
        player_source: Account document source; chosen from
            ``config.player_source`` if omitted.
    """
    config = config or load_config()
    log.info("Creating territory services …")

    event_bus = EventBus()
    indexer = SpatialIndexer.from_config(config)
    generator = TileGenerator(config.generator, config.local_player_id)
    if source is None:
        source = build_source(config, generator)
    if snapshot_store is None:
        snapshot_store = build_snapshot_store(config)
    if player_source is None:
        player_source = build_player_source(config)

    resolver = RegionResolver(config.regions, config.default_region)
    loader = RegionLoader(source, event_bus)
    regions = RegionService(
        resolver, loader, event_bus,
        local_player_id=config.local_player_id,
        tile_resolution=config.tile_resolution,
        generator=generator,
    )
    purchases = PurchaseEngine(indexer, event_bus, snapshot_store)
    selection = Selection(event_bus)
    wallet = Wallet(config.local_player_id, config.starting_tokens)
    players = PlayerService(default_profile(config), player_source, build_player_store(config))
    view = ViewSyncBridge(event_bus, indexer, regions, selection, purchases, wallet)
    location = LocationTracker(
        event_bus=event_bus,
        fresh_s=config.location_fresh_s,
        max_speed_mps=config.max_plausible_speed_mps,
    )
    log.info("  source: %s, snapshots: %s", type(source).__name__,
             type(snapshot_store).__name__ if snapshot_store else "disabled")

    return Services(
        config=config,
        event_bus=event_bus,
        indexer=indexer,
        generator=generator,
        source=source,
        regions=regions,
        purchases=purchases,
        selection=selection,
        wallet=wallet,
        players=players,
        view=view,
        statistics=StatisticsService(),
        location=location,
        snapshot_store=snapshot_store,
    )


# ===================================================================
# Wire up event handlers
# ===================================================================


def wire_events(services: Services) -> None:
    """Register the cross-service handlers on the EventBus."""
    bus = services.event_bus

    def on_location(evt: LocationUpdated) -> None:
        current = GeoPoint(evt.fix.latitude, evt.fix.longitude)
        previous = services.last_position
        services.last_position = current
        if previous is not None and services.regions.needs_reload(previous, current):
            log.info("Location moved to region %s",
                     services.regions.resolver.region_for(current.lat, current.lng))

    bus.on(LocationUpdated, on_location)
    bus.on(PurchaseCompleted, services.players.record_purchase)
    bus.on(RegionLoaded, lambda evt: log.debug(
        "Region %s loaded (%d tiles, cached=%s)", evt.region, evt.tile_count, evt.from_cache))
    bus.on(PurchaseRejected, lambda evt: log.debug(
        "Purchase rejected for %s: %s", evt.player_id, evt.reason.value))
    log.info("  event handlers registered")


# ===================================================================
# Lifecycle
# ===================================================================


async def start(services: Services, lat: float, lng: float,
                zoom: float = 14.0) -> None:
    """Open resources, load region and player in parallel, then set the view.

    Raises:
        LoadError, DataFormatError: The region or the player profile could
            not be loaded.
    """
    if isinstance(services.snapshot_store, SqliteSnapshotStore):
        await services.snapshot_store.connect()
    await asyncio.gather(
        services.regions.activate(lat, lng),
        services.players.load(),
    )
    services.players.seed_wallet(services.wallet)
    services.view.set_viewport(lat, lng, zoom)
    services.last_position = GeoPoint(lat, lng)


async def shutdown(services: Services) -> None:
    services.view.close()
    try:
        await services.players.save()
    except PersistenceError:
        log.exception("Player save failed, continuing shutdown")
    for source in (services.source, services.players.source):
        if isinstance(source, (HttpRegionSource, HttpPlayerSource)):
            await source.close()
    if isinstance(services.snapshot_store, SqliteSnapshotStore):
        await services.snapshot_store.close()
    log.info("Territory services stopped")
