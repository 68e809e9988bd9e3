"""Spatial indexer — maps coordinates and zoom levels onto hex cells.

All operations are synchronous and pure given the configured zoom tables.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Optional

import h3

from hexterra.models.hex import GeoPoint, HexCell
from hexterra.util.constants import BULK_PURCHASE_RADIUS
from hexterra.util.errors import DistanceUndefinedError

if TYPE_CHECKING:
    from hexterra.loaders.config_loader import HexTerraConfig

log = logging.getLogger(__name__)

ZoomTable = tuple[tuple[float, int], ...]


def lookup_zoom_table(table: ZoomTable, zoom: float, default: int) -> int:
    """Evaluate a (threshold -> value) table top-down, first match wins."""
    for threshold, value in table:
        if zoom >= threshold:
            return value
    return default


class SpatialIndexer:
    """Cell lookup, disk expansion and zoom-to-resolution mapping.

    Args:
        zoom_resolutions: Ordered (zoom threshold, resolution) pairs.
        default_resolution: Resolution below all thresholds.
        zoom_radii: Ordered (zoom threshold, ring radius) pairs.
        default_radius: Radius below all thresholds.
        bulk_radius: Ring radius of a bulk purchase.
    """

    def __init__(
        self,
        zoom_resolutions: ZoomTable = ((16.0, 10), (14.0, 9), (12.0, 8), (10.0, 7)),
        default_resolution: int = 6,
        zoom_radii: ZoomTable = ((16.0, 2), (14.0, 3), (12.0, 4), (10.0, 5)),
        default_radius: int = 6,
        bulk_radius: int = BULK_PURCHASE_RADIUS,
    ) -> None:
        self._zoom_resolutions = tuple(zoom_resolutions)
        self._default_resolution = default_resolution
        self._zoom_radii = tuple(zoom_radii)
        self._default_radius = default_radius
        self.bulk_radius = bulk_radius

    @classmethod
    def from_config(cls, config: HexTerraConfig) -> SpatialIndexer:
        return cls(
            zoom_resolutions=config.zoom_resolutions,
            default_resolution=config.default_resolution,
            zoom_radii=config.zoom_radii,
            default_radius=config.default_radius,
            bulk_radius=config.bulk_purchase_radius,
        )

    # -- Lookup ----------------------------------------------------------

    def cell_at(self, lat: float, lng: float, resolution: int) -> HexCell:
        """The unique cell containing (lat, lng) at ``resolution``."""
        return HexCell.at(lat, lng, resolution)

    def parse(self, cell_id: str) -> HexCell:
        return HexCell.parse(cell_id)

    def resolution_for_zoom(self, zoom: float) -> int:
        """Coarser cells at low zoom, finer cells at high zoom."""
        return lookup_zoom_table(self._zoom_resolutions, zoom, self._default_resolution)

    def radius_for_zoom(self, zoom: float) -> int:
        """Ring radius of the area loaded around the view center."""
        return lookup_zoom_table(self._zoom_radii, zoom, self._default_radius)

    @property
    def resolution_tiers(self) -> tuple[int, ...]:
        """All resolutions the zoom table can yield, coarsest first."""
        tiers = {res for _, res in self._zoom_resolutions}
        tiers.add(self._default_resolution)
        return tuple(sorted(tiers))

    # -- Geometry --------------------------------------------------------

    def disk(self, center: HexCell, radius: int) -> frozenset[HexCell]:
        """Cells within ``radius`` grid steps of ``center``, center included."""
        return center.disk(radius)

    def grid_distance(self, a: HexCell, b: HexCell) -> int:
        return a.distance_to(b)

    def boundary(self, cell: HexCell) -> tuple[GeoPoint, ...]:
        return cell.boundary()

    def bulk_area(self, center: HexCell) -> frozenset[HexCell]:
        """The fixed neighborhood bought by a bulk purchase."""
        return self.disk(center, self.bulk_radius)

    # -- Viewport --------------------------------------------------------

    def visible_cells(self, lat: float, lng: float, zoom: float) -> frozenset[HexCell]:
        """Cells drawn around the view center at the given zoom."""
        center = self.cell_at(lat, lng, self.resolution_for_zoom(zoom))
        return self.disk(center, self.radius_for_zoom(zoom))

    def cells_within_meters(self, lat: float, lng: float, meters: float,
                            resolution: int) -> frozenset[HexCell]:
        """Disk around (lat, lng) covering at least ``meters`` of radius."""
        if meters < 0:
            raise ValueError(f"Radius must be >= 0, got {meters}")
        center = self.cell_at(lat, lng, resolution)
        rings = math.ceil(meters / center_spacing_m(resolution))
        return self.disk(center, rings)

    def nearest(self, origin: HexCell, candidates: list[HexCell]) -> Optional[HexCell]:
        """Closest candidate by grid distance; ties go to the smallest key.

        Candidates the grid cannot relate to ``origin`` are skipped.
        """
        best: Optional[tuple[int, HexCell]] = None
        for cell in candidates:
            try:
                key = (origin.distance_to(cell), cell)
            except DistanceUndefinedError:
                log.debug("Skipping %s: no grid distance from %s", cell, origin)
                continue
            if best is None or key < best:
                best = key
        return best[1] if best else None


def center_spacing_m(resolution: int) -> float:
    """Average distance between neighboring cell centers in meters."""
    return h3.average_hexagon_edge_length(resolution, unit="m") * math.sqrt(3)
