"""Tests for territory statistics and synthetic tile generation."""

from hexterra.engine.statistics import StatisticsService
from hexterra.engine.tile_generator import TileGenerator
from hexterra.loaders.config_loader import GeneratorConfig
from hexterra.models.hex import HexCell, HexTile, OwnershipStatus
from hexterra.util.constants import LOCAL_PLAYER_ID, RESOURCE_MAX_YIELD
from hexterra.util.errors import DistanceUndefinedError

from conftest import free_tiles


class TestSummary:
    def test_summarize(self, center_cell):
        tiles = free_tiles(center_cell, 1)
        tiles[0] = HexTile(cell=tiles[0].cell, status=OwnershipStatus.OWNED, price=200,
                           owner=LOCAL_PLAYER_ID, resources={"oil": 3.0, "gold": 1.0})
        tiles[1] = HexTile(cell=tiles[1].cell, status=OwnershipStatus.OWNED, price=50,
                           owner=LOCAL_PLAYER_ID, resources={"oil": 2.0})
        tiles[2] = HexTile(cell=tiles[2].cell, status=OwnershipStatus.RIVAL, price=70,
                           owner="player_1", resources={"oil": 99.0})
        summary = StatisticsService().summarize(tiles)
        assert (summary.counts.owned, summary.counts.rival, summary.counts.free) == (2, 1, 4)
        assert summary.owned_value == 250
        assert summary.free_value == 400
        assert summary.owned_yield["oil"] == 5.0
        assert summary.owned_yield["gold"] == 1.0
        assert summary.owned_yield["wood"] == 0.0
        assert summary.rival_owners == 1

    def test_empty(self):
        summary = StatisticsService().summarize([])
        assert summary.counts.total == 0
        assert summary.owned_value == 0

    def test_nearest_free(self, indexer, center_cell):
        tiles = free_tiles(center_cell, 2)
        taken = center_cell.disk(1)
        tiles = [HexTile(cell=t.cell, status=OwnershipStatus.RIVAL, owner="x")
                 if t.cell in taken else t for t in tiles]
        nearest = StatisticsService().nearest_free(tiles, center_cell, indexer)
        assert center_cell.distance_to(nearest.cell) == 2

    def test_nearest_free_none(self, indexer, center_cell):
        tiles = [HexTile(cell=center_cell, status=OwnershipStatus.OWNED, owner="me")]
        assert StatisticsService().nearest_free(tiles, center_cell, indexer) is None


class TestTileGenerator:
    def test_deterministic(self, center_cell):
        gen = TileGenerator(GeneratorConfig(seed=7), clock=lambda: 1_000_000.0)
        assert gen.demo_tiles(center_cell) == gen.demo_tiles(center_cell)

    def test_seed_changes_output(self, center_cell):
        a = TileGenerator(GeneratorConfig(seed=1), clock=lambda: 1_000_000.0)
        b = TileGenerator(GeneratorConfig(seed=2), clock=lambda: 1_000_000.0)
        assert a.demo_tiles(center_cell, 4) != b.demo_tiles(center_cell, 4)

    def test_price_formula_bounds(self, center_cell):
        gen = TileGenerator(GeneratorConfig())
        for cell in center_cell.disk(3):
            d = center_cell.distance_to(cell)
            price = gen.price_for(cell, center_cell)
            assert 100 * (1 + d * 0.2) - 1 <= price <= 100 * (1 + d * 0.2 + 0.5)

    def test_demo_tiles_respect_invariants(self, center_cell):
        tiles = TileGenerator(GeneratorConfig()).demo_tiles(center_cell, 4)
        assert len(tiles) == 61
        for tile in tiles:
            if tile.is_free:
                assert tile.level is None and not tile.resources
            else:
                assert 1 <= tile.level <= 5
                for kind, amount in tile.resources.items():
                    assert 0 <= amount < RESOURCE_MAX_YIELD[kind]
            if tile.status is OwnershipStatus.OWNED:
                assert tile.owner == LOCAL_PLAYER_ID

    def test_shares(self, center_cell):
        tiles = TileGenerator(GeneratorConfig(owned_share=0.0, rival_share=0.0)).demo_tiles(center_cell)
        assert all(t.is_free for t in tiles)

    def test_free_tile(self, center_cell):
        cell = sorted(center_cell.ring(2))[0]
        tile = TileGenerator(GeneratorConfig()).free_tile(cell, center_cell)
        assert tile.is_free
        assert tile.price >= 139


class TestNearestFreeFarTiles:
    def test_unreachable_free_tile_skipped(self, indexer, center_cell, monkeypatch):
        unreachable = sorted(center_cell.ring(4))[0]
        reachable = sorted(center_cell.ring(2))[0]
        distance_to = HexCell.distance_to

        def guarded(self, other):
            if unreachable in (self, other):
                raise DistanceUndefinedError("too far apart")
            return distance_to(self, other)

        monkeypatch.setattr(HexCell, "distance_to", guarded)
        tiles = [HexTile(cell=unreachable, price=1), HexTile(cell=reachable, price=1)]
        assert StatisticsService().nearest_free(tiles, center_cell, indexer).cell == reachable
