"""Statistics service — territory summaries for the statistics panel.

Summaries are recomputed from the given tiles on every call; nothing is
cached between calls.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable, Optional

from hexterra.engine.tile_store import count_statuses
from hexterra.models.hex import HexCell, HexTile, OwnershipStatus, StatusCounts
from hexterra.util.constants import RESOURCE_KINDS

if TYPE_CHECKING:
    from hexterra.engine.spatial_index import SpatialIndexer


@dataclass(frozen=True)
class TerritorySummary:
    """Aggregate view of one tile set.

    Attributes:
        counts: Tiles per ownership status.
        owned_value: Sum of prices of the local player's tiles.
        free_value: Sum of prices of unclaimed tiles.
        owned_yield: Resource yield of the local player's tiles per kind.
        rival_owners: Number of distinct rival owners.
    """

    counts: StatusCounts = StatusCounts()
    owned_value: int = 0
    free_value: int = 0
    owned_yield: dict[str, float] = field(default_factory=dict)
    rival_owners: int = 0


class StatisticsService:
    """Scoring helpers over tile collections."""

    def summarize(self, tiles: Iterable[HexTile]) -> TerritorySummary:
        tiles = list(tiles)
        owned_value = free_value = 0
        yields = {kind: 0.0 for kind in RESOURCE_KINDS}
        rivals: set[str] = set()
        for tile in tiles:
            if tile.status is OwnershipStatus.OWNED:
                owned_value += tile.price
                for kind, amount in (tile.resources or {}).items():
                    yields[kind] = yields.get(kind, 0.0) + amount
            elif tile.status is OwnershipStatus.RIVAL:
                rivals.add(tile.owner or "")
            else:
                free_value += tile.price
        return TerritorySummary(
            counts=count_statuses(tiles),
            owned_value=owned_value,
            free_value=free_value,
            owned_yield=yields,
            rival_owners=len(rivals),
        )

    def nearest_free(self, tiles: Iterable[HexTile], origin: HexCell,
                     indexer: SpatialIndexer) -> Optional[HexTile]:
        """The FREE tile closest to ``origin`` (same resolution only)."""
        free = {t.cell: t for t in tiles
                if t.is_free and t.cell.resolution == origin.resolution}
        cell = indexer.nearest(origin, list(free))
        return free[cell] if cell is not None else None
