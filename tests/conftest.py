"""Shared fixtures: a fake region source, a fake snapshot store and tile factories."""

from __future__ import annotations

import asyncio
import copy
from typing import Any, Callable, Optional

import pytest

from hexterra.engine.purchase_service import PurchaseEngine
from hexterra.engine.region_service import RegionLoader, RegionResolver, RegionService
from hexterra.engine.selection import Selection
from hexterra.engine.spatial_index import SpatialIndexer
from hexterra.engine.tile_store import TileStore
from hexterra.loaders.config_loader import HexTerraConfig
from hexterra.loaders.region_payload import region_to_payload
from hexterra.models.hex import GeoPoint, HexCell, HexTile, OwnershipStatus
from hexterra.models.purchase import Wallet
from hexterra.util.constants import LOCAL_PLAYER_ID
from hexterra.util.errors import PersistenceError
from hexterra.util.events import EventBus

MOSCOW = GeoPoint(55.7558, 37.6173)
LONDON = GeoPoint(51.5074, -0.1278)
RES = 9


class FakeSource:
    """In-memory region source with call recording and an optional gate."""

    def __init__(self, payloads: Optional[dict[str, Any]] = None) -> None:
        self.payloads = payloads or {}
        self.calls: list[str] = []
        self.error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None

    async def fetch(self, region: str) -> Any:
        self.calls.append(region)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return copy.deepcopy(self.payloads[region])


class FakeSnapshotStore:
    """Records saves; raises PersistenceError while ``fail`` is set.

    With ``gate`` set, a save blocks until the event fires and ``saving``
    reports that it has started.
    """

    def __init__(self) -> None:
        self.saves: list[tuple[str, int, int]] = []
        self.fail = False
        self.gate: Optional[asyncio.Event] = None
        self.saving = asyncio.Event()

    async def save(self, region: str, tiles: list[HexTile], revision: int,
                   revised_at: float) -> None:
        self.saving.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise PersistenceError("disk full", region)
        self.saves.append((region, len(tiles), revision))

    async def load(self, region: str):
        return None


def free_tiles(center: HexCell, radius: int, price: int = 100) -> list[HexTile]:
    return [HexTile(cell=c, price=price) for c in sorted(center.disk(radius))]


@pytest.fixture
def center_cell() -> HexCell:
    return HexCell.at(MOSCOW.lat, MOSCOW.lng, RES)


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def indexer() -> SpatialIndexer:
    return SpatialIndexer()


@pytest.fixture
def make_store(bus: EventBus) -> Callable[..., TileStore]:
    def _make(tiles: list[HexTile], region: str = "moscow") -> TileStore:
        store = TileStore(region, LOCAL_PLAYER_ID, bus)
        store.upsert_all(tiles)
        return store
    return _make


@pytest.fixture
def engine(indexer: SpatialIndexer, bus: EventBus) -> PurchaseEngine:
    return PurchaseEngine(indexer, bus)


@pytest.fixture
def wallet() -> Wallet:
    return Wallet(LOCAL_PLAYER_ID, 5000)


@pytest.fixture
def selection(bus: EventBus) -> Selection:
    return Selection(bus)


@pytest.fixture
def moscow_payload(center_cell: HexCell) -> dict[str, Any]:
    rival_cell = sorted(center_cell.ring(3))[0]
    tiles = [t for t in free_tiles(center_cell, 3) if t.cell != rival_cell]
    tiles.append(HexTile(cell=rival_cell, status=OwnershipStatus.RIVAL, price=150,
                         owner="player_7", resources={"oil": 12.0}, level=2))
    return region_to_payload("moscow", MOSCOW, tiles, "2025-01-01T00:00:00Z")


@pytest.fixture
def london_payload() -> dict[str, Any]:
    center = HexCell.at(LONDON.lat, LONDON.lng, RES)
    return region_to_payload("london", LONDON, free_tiles(center, 1))


@pytest.fixture
def source(moscow_payload, london_payload) -> FakeSource:
    return FakeSource({"moscow": moscow_payload, "london": london_payload})


@pytest.fixture
def region_service(source: FakeSource, bus: EventBus) -> RegionService:
    config = HexTerraConfig()
    resolver = RegionResolver(config.regions, config.default_region)
    return RegionService(resolver, RegionLoader(source, bus), bus, tile_resolution=RES)
