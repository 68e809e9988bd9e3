"""Read-only view state shared by all UI consumers."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional

from hexterra.models.hex import GeoPoint, HexCell, HexTile, OwnershipStatus, StatusCounts
from hexterra.models.purchase import PurchaseQuote


@dataclass(frozen=True)
class Viewport:
    """Map center and zoom with the derived cell resolution."""

    center: GeoPoint
    zoom: float
    resolution: int
    visible: frozenset[HexCell] = frozenset()


@dataclass(frozen=True)
class FeatureRecord:
    """One polygon handed to the rendering surface."""

    cell_id: str
    boundary: tuple[GeoPoint, ...]
    status: OwnershipStatus
    is_selected: bool
    price: int


_EMPTY: Mapping[HexCell, HexTile] = MappingProxyType({})


@dataclass(frozen=True)
class ViewSnapshot:
    """Everything a consumer may read, captured at one quiescent point.

    Attributes:
        version: Publication counter of the bridge.
        region: Active region key, or None before the first activation.
        revision: Tile store revision the tiles were taken from.
        tiles: Read-only mapping cell -> tile.
        selection: Selected cells.
        bulk_mode: Whether clicks select a whole bulk area.
        viewport: Current viewport, or None before the first update.
        counts: Status counts over ``tiles``.
        quote: Eligible cost of the selection against ``tiles``.
        balance: Wallet balance, if a wallet is attached.
    """

    version: int = 0
    region: Optional[str] = None
    revision: int = 0
    tiles: Mapping[HexCell, HexTile] = field(default_factory=lambda: _EMPTY)
    selection: frozenset[HexCell] = frozenset()
    bulk_mode: bool = False
    viewport: Optional[Viewport] = None
    counts: StatusCounts = StatusCounts()
    quote: PurchaseQuote = PurchaseQuote()
    balance: Optional[int] = None

    def state_key(self) -> tuple:
        """Identity of the state, ignoring the publication counter."""
        return (self.region, self.revision, self.selection,
                self.bulk_mode, self.viewport, self.balance)
