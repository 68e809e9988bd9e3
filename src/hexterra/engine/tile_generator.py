"""Synthetic tiles for demo regions and lazily addressed cells.

Generation is deterministic: each cell draws from its own RNG seeded by the
configured seed and the cell key, so the same cell always gets the same
status, price and yields.
"""

from __future__ import annotations

import math
import random
import time
from typing import TYPE_CHECKING, Callable, Optional

from hexterra.models.hex import HexCell, HexTile, OwnershipStatus
from hexterra.util.constants import LOCAL_PLAYER_ID, MAX_TILE_LEVEL, RESOURCE_KINDS, RESOURCE_MAX_YIELD

if TYPE_CHECKING:
    from hexterra.loaders.config_loader import GeneratorConfig

_DAY_S = 86_400


class TileGenerator:
    """Builds HexTile records around a center cell.

    Args:
        config: Price and ownership-share parameters.
        local_player_id: Owner id of OWNED tiles.
        clock: Time source for ``last_updated``.
    """

    def __init__(
        self,
        config: GeneratorConfig,
        local_player_id: str = LOCAL_PLAYER_ID,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._cfg = config
        self._local = local_player_id
        self._clock = clock

    def price_for(self, cell: HexCell, center: HexCell,
                  rng: Optional[random.Random] = None) -> int:
        """Base price marked up by grid distance from ``center``."""
        rng = rng or self._rng(cell)
        distance = center.distance_to(cell)
        factor = 1 + distance * self._cfg.distance_markup + rng.random() * self._cfg.price_jitter
        return math.floor(self._cfg.base_price * factor)

    def free_tile(self, cell: HexCell, center: HexCell) -> HexTile:
        """An unclaimed tile, used when a cell is first addressed."""
        return HexTile(
            cell=cell,
            status=OwnershipStatus.FREE,
            price=self.price_for(cell, center),
            last_updated=self._clock(),
        )

    def demo_tile(self, cell: HexCell, center: HexCell) -> HexTile:
        """A tile with a random (but reproducible) owner and yields."""
        rng = self._rng(cell)
        roll = rng.random()
        if roll < self._cfg.owned_share:
            status, owner = OwnershipStatus.OWNED, self._local
        elif roll < self._cfg.owned_share + self._cfg.rival_share:
            status, owner = OwnershipStatus.RIVAL, f"player_{rng.randrange(1000)}"
        else:
            status, owner = OwnershipStatus.FREE, None

        price = self.price_for(cell, center, rng)
        resources: dict[str, float] = {}
        level = None
        if status is not OwnershipStatus.FREE:
            resources = {k: float(rng.randrange(RESOURCE_MAX_YIELD[k])) for k in RESOURCE_KINDS}
            level = rng.randint(1, MAX_TILE_LEVEL)

        return HexTile(
            cell=cell,
            status=status,
            price=price,
            owner=owner,
            resources=resources,
            level=level,
            last_updated=self._clock() - rng.randrange(_DAY_S),
        )

    def demo_tiles(self, center: HexCell, radius: Optional[int] = None) -> list[HexTile]:
        """Demo tiles for every cell of ``disk(center, radius)``, sorted by key."""
        radius = self._cfg.radius if radius is None else radius
        return [self.demo_tile(cell, center) for cell in sorted(center.disk(radius))]

    def _rng(self, cell: HexCell) -> random.Random:
        return random.Random(f"{self._cfg.seed}:{cell.index}")
