"""Tests for hex cells and the spatial indexer."""

import math

import h3
import pytest

from hexterra.engine.spatial_index import center_spacing_m, lookup_zoom_table
from hexterra.models.hex import HexCell
from hexterra.util.errors import DistanceUndefinedError, InvalidCellError
from hexterra.util.geo import haversine_m

from conftest import MOSCOW, RES


def point_in_ring(lat: float, lng: float, ring: list[tuple[float, float]]) -> bool:
    """Even-odd ray casting on a small (lat, lng) ring."""
    inside = False
    n = len(ring)
    for i in range(n):
        y1, x1 = ring[i]
        y2, x2 = ring[(i + 1) % n]
        if (y1 > lat) != (y2 > lat):
            x_cross = x1 + (lat - y1) * (x2 - x1) / (y2 - y1)
            if lng < x_cross:
                inside = not inside
    return inside


class TestCellLookup:
    def test_cell_at_is_deterministic(self, indexer):
        a = indexer.cell_at(MOSCOW.lat, MOSCOW.lng, RES)
        b = indexer.cell_at(MOSCOW.lat, MOSCOW.lng, RES)
        assert a == b
        assert a.resolution == RES

    @pytest.mark.parametrize("lat,lng", [
        (55.7558, 37.6173),
        (51.5074, -0.1278),
        (-33.8688, 151.2093),
        (40.7128, -74.0060),
    ])
    def test_boundary_contains_point(self, indexer, lat, lng):
        cell = indexer.cell_at(lat, lng, RES)
        ring = [p.as_tuple() for p in indexer.boundary(cell)]
        assert len(ring) == 6
        assert point_in_ring(lat, lng, ring)

    def test_center_round_trips(self, indexer):
        cell = indexer.cell_at(MOSCOW.lat, MOSCOW.lng, RES)
        center = cell.center
        assert indexer.cell_at(center.lat, center.lng, RES) == cell

    def test_invalid_coordinates(self, indexer):
        with pytest.raises(InvalidCellError):
            indexer.cell_at(91.0, 0.0, RES)
        with pytest.raises(InvalidCellError):
            indexer.cell_at(0.0, 181.0, RES)

    def test_invalid_resolution(self, indexer):
        with pytest.raises(InvalidCellError):
            indexer.cell_at(MOSCOW.lat, MOSCOW.lng, 16)
        with pytest.raises(InvalidCellError):
            indexer.cell_at(MOSCOW.lat, MOSCOW.lng, -1)

    @pytest.mark.parametrize("key", ["", "not-a-cell", "ffffffffffffffff", "123"])
    def test_parse_rejects_malformed_keys(self, indexer, key):
        with pytest.raises(InvalidCellError):
            indexer.parse(key)

    def test_parse_accepts_valid_key(self, center_cell):
        assert HexCell.parse(center_cell.index) == center_cell

    def test_invalid_cell_error_is_value_error(self):
        with pytest.raises(ValueError):
            HexCell.parse("bogus")


class TestDisk:
    @pytest.mark.parametrize("k", range(6))
    def test_cardinality(self, indexer, center_cell, k):
        assert len(indexer.disk(center_cell, k)) == 3 * k * k + 3 * k + 1

    @pytest.mark.parametrize("k", range(5))
    def test_nesting(self, indexer, center_cell, k):
        assert indexer.disk(center_cell, k) <= indexer.disk(center_cell, k + 1)

    def test_disk_zero_is_center(self, center_cell):
        assert center_cell.disk(0) == {center_cell}

    def test_disk_members_within_radius(self, indexer, center_cell):
        for cell in indexer.disk(center_cell, 3):
            assert indexer.grid_distance(center_cell, cell) <= 3

    def test_negative_radius(self, indexer, center_cell):
        with pytest.raises(ValueError):
            indexer.disk(center_cell, -1)

    def test_ring_has_6k_cells(self, center_cell):
        for k in range(1, 4):
            assert len(center_cell.ring(k)) == 6 * k

    def test_neighbors(self, center_cell):
        neighbors = center_cell.neighbors()
        assert len(neighbors) == 6
        assert all(center_cell.distance_to(n) == 1 for n in neighbors)

    def test_bulk_area_has_37_cells(self, indexer, center_cell):
        assert len(indexer.bulk_area(center_cell)) == 37


class TestDistance:
    def test_identity(self, indexer, center_cell):
        assert indexer.grid_distance(center_cell, center_cell) == 0

    def test_symmetry(self, indexer, center_cell):
        for other in center_cell.ring(2) | center_cell.ring(4):
            assert indexer.grid_distance(center_cell, other) == indexer.grid_distance(other, center_cell)

    def test_nonzero_for_distinct(self, indexer, center_cell):
        for other in center_cell.ring(1):
            assert indexer.grid_distance(center_cell, other) == 1

    def test_triangle_inequality(self, indexer, center_cell):
        cells = sorted(center_cell.disk(2))
        a, b, c = cells[0], cells[len(cells) // 2], cells[-1]
        assert indexer.grid_distance(a, c) <= indexer.grid_distance(a, b) + indexer.grid_distance(b, c)

    def test_resolution_mismatch(self, center_cell):
        coarse = HexCell.at(MOSCOW.lat, MOSCOW.lng, RES - 1)
        with pytest.raises(DistanceUndefinedError):
            center_cell.distance_to(coarse)

    def test_distance_undefined_is_invalid_cell_error(self, center_cell):
        coarse = HexCell.at(MOSCOW.lat, MOSCOW.lng, 3)
        with pytest.raises(InvalidCellError):
            center_cell.distance_to(coarse)


class TestZoomTables:
    @pytest.mark.parametrize("zoom,expected", [
        (18, 10), (16, 10), (15.5, 9), (14, 9), (13, 8), (12, 8), (11, 7), (10, 7), (9.9, 6), (2, 6),
    ])
    def test_resolution_for_zoom(self, indexer, zoom, expected):
        assert indexer.resolution_for_zoom(zoom) == expected

    @pytest.mark.parametrize("zoom,expected", [(16, 2), (14, 3), (12, 4), (10, 5), (5, 6)])
    def test_radius_for_zoom(self, indexer, zoom, expected):
        assert indexer.radius_for_zoom(zoom) == expected

    def test_at_least_five_tiers(self, indexer):
        assert indexer.resolution_tiers == (6, 7, 8, 9, 10)

    def test_first_match_wins(self):
        table = ((10.0, 1), (5.0, 2))
        assert lookup_zoom_table(table, 12, 0) == 1
        assert lookup_zoom_table(table, 7, 0) == 2
        assert lookup_zoom_table(table, 1, 0) == 0

    def test_visible_cells(self, indexer):
        cells = indexer.visible_cells(MOSCOW.lat, MOSCOW.lng, 14)
        assert len(cells) == 37
        assert {c.resolution for c in cells} == {9}


class TestMetricHelpers:
    def test_cells_within_meters(self, indexer):
        spacing = center_spacing_m(RES)
        cells = indexer.cells_within_meters(MOSCOW.lat, MOSCOW.lng, spacing * 2, RES)
        assert len(cells) == 19

    def test_cells_within_zero_meters(self, indexer, center_cell):
        assert indexer.cells_within_meters(MOSCOW.lat, MOSCOW.lng, 0, RES) == {center_cell}

    def test_negative_meters(self, indexer):
        with pytest.raises(ValueError):
            indexer.cells_within_meters(MOSCOW.lat, MOSCOW.lng, -1, RES)

    def test_neighbor_spacing_matches_centers(self, center_cell):
        neighbor = sorted(center_cell.neighbors())[0]
        a, b = center_cell.center, neighbor.center
        measured = haversine_m(a.lat, a.lng, b.lat, b.lng)
        assert math.isclose(measured, center_spacing_m(RES), rel_tol=0.5)

    def test_nearest_prefers_closest(self, indexer, center_cell):
        far = sorted(center_cell.ring(3))[0]
        near = sorted(center_cell.ring(1))[0]
        assert indexer.nearest(center_cell, [far, near]) == near
        assert indexer.nearest(center_cell, []) is None

    def test_nearest_skips_unrelated_cells(self, indexer, center_cell):
        coarse = HexCell.at(MOSCOW.lat, MOSCOW.lng, RES - 2)
        near = sorted(center_cell.ring(2))[0]
        assert indexer.nearest(center_cell, [coarse, near]) == near
        assert indexer.nearest(center_cell, [coarse]) is None


class TestPentagons:
    def test_regular_cell_is_not_pentagon(self, center_cell):
        assert not center_cell.is_pentagon
        assert len(center_cell.neighbors()) == 6

    def test_pentagon_has_five_neighbors(self):
        pentagon = HexCell.parse(sorted(h3.get_pentagons(RES))[0])
        assert pentagon.is_pentagon
        assert len(pentagon.neighbors()) == 5
        assert len(pentagon.disk(1)) == 6
