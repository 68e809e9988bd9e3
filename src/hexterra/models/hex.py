"""Hexagonal cells and ownership records.

Cells are H3 indexes: a hierarchical hexagonal tessellation of the globe
where every (lat, lng) maps to exactly one cell per resolution.

Reference: https://h3geo.org/docs/core-library/overview
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from typing import Mapping, Optional

import h3

from hexterra.util.constants import MAX_RESOLUTION, MIN_RESOLUTION
from hexterra.util.errors import DistanceUndefinedError, InvalidCellError
from hexterra.util.geo import validate_latlng

# Errors h3 may raise for bad input, depending on the binding version
_H3_ERRORS = (h3.H3BaseException, ValueError, TypeError)


@dataclass(frozen=True)
class GeoPoint:
    """A latitude/longitude pair in degrees."""

    lat: float
    lng: float

    def as_tuple(self) -> tuple[float, float]:
        return (self.lat, self.lng)


@dataclass(frozen=True, order=True)
class HexCell:
    """Immutable cell identifier.

    Attributes:
        index: H3 cell index, e.g. ``"8911aa7a6a3ffff"``.

    Two cells are equal iff their indexes are equal.  Construct through
    :meth:`parse` or :meth:`at` to get validation.
    """

    index: str

    # -- Construction ----------------------------------------------------

    @classmethod
    def parse(cls, index: str) -> HexCell:
        """Validate a raw key and wrap it. Raises InvalidCellError."""
        if not isinstance(index, str) or not index:
            raise InvalidCellError(f"Cell key must be a non-empty string, got {index!r}")
        try:
            valid = h3.is_valid_cell(index)
        except _H3_ERRORS:
            valid = False
        if not valid:
            raise InvalidCellError(f"Malformed cell key: {index!r}")
        return cls(index)

    @classmethod
    def at(cls, lat: float, lng: float, resolution: int) -> HexCell:
        """The cell containing (lat, lng) at the given resolution."""
        _check_resolution(resolution)
        try:
            validate_latlng(lat, lng)
        except ValueError as exc:
            raise InvalidCellError(str(exc)) from exc
        try:
            return cls(h3.latlng_to_cell(lat, lng, resolution))
        except _H3_ERRORS as exc:
            raise InvalidCellError(
                f"Cannot index ({lat}, {lng}) at resolution {resolution}"
            ) from exc

    # -- Properties ------------------------------------------------------

    @property
    def resolution(self) -> int:
        return _resolution(self.index)

    @property
    def center(self) -> GeoPoint:
        lat, lng = _center(self.index)
        return GeoPoint(lat, lng)

    def boundary(self) -> tuple[GeoPoint, ...]:
        """Ordered vertex ring (first vertex not repeated)."""
        return tuple(GeoPoint(lat, lng) for lat, lng in _boundary(self.index))

    @property
    def is_pentagon(self) -> bool:
        return h3.is_pentagon(self.index)

    # -- Geometry --------------------------------------------------------

    def distance_to(self, other: HexCell) -> int:
        """Grid distance in cell steps.

        Raises DistanceUndefinedError for cells at different resolutions or
        too far apart for the grid to relate them.
        """
        if self.resolution != other.resolution:
            raise DistanceUndefinedError(
                f"Resolution mismatch: {self.index} (res {self.resolution}) "
                f"vs {other.index} (res {other.resolution})"
            )
        if self == other:
            return 0
        try:
            return h3.grid_distance(self.index, other.index)
        except _H3_ERRORS as exc:
            raise DistanceUndefinedError(
                f"Distance undefined between {self.index} and {other.index}"
            ) from exc

    def disk(self, radius: int) -> frozenset[HexCell]:
        """All cells within ``radius`` steps (inclusive)."""
        if radius < 0:
            raise ValueError(f"Radius must be >= 0, got {radius}")
        return frozenset(HexCell(i) for i in h3.grid_disk(self.index, radius))

    def ring(self, radius: int) -> frozenset[HexCell]:
        """Cells at exactly ``radius`` steps; the cell itself for radius 0."""
        if radius < 0:
            raise ValueError(f"Radius must be >= 0, got {radius}")
        return frozenset(HexCell(i) for i in h3.grid_ring(self.index, radius))

    def neighbors(self) -> frozenset[HexCell]:
        """The adjacent cells (6, or 5 around a pentagon)."""
        return self.disk(1) - {self}

    def __str__(self) -> str:
        return self.index

    def __repr__(self) -> str:
        return f"Hex({self.index})"


def _check_resolution(resolution: int) -> None:
    if not isinstance(resolution, int) or not MIN_RESOLUTION <= resolution <= MAX_RESOLUTION:
        raise InvalidCellError(
            f"Resolution must be an int in [{MIN_RESOLUTION}, {MAX_RESOLUTION}], got {resolution!r}"
        )


@lru_cache(maxsize=65536)
def _resolution(index: str) -> int:
    return h3.get_resolution(index)


@lru_cache(maxsize=65536)
def _center(index: str) -> tuple[float, float]:
    return h3.cell_to_latlng(index)


@lru_cache(maxsize=16384)
def _boundary(index: str) -> tuple[tuple[float, float], ...]:
    return tuple(h3.cell_to_boundary(index))


# ---------------------------------------------------------------------------
# Ownership
# ---------------------------------------------------------------------------


class OwnershipStatus(Enum):
    """Who holds a tile, from the local player's point of view."""

    FREE = "free"
    OWNED = "owned"
    RIVAL = "enemy"

    @classmethod
    def parse(cls, raw: str) -> OwnershipStatus:
        if raw == "rival":
            return cls.RIVAL
        return cls(raw)


@dataclass(frozen=True)
class HexTile:
    """Ownership record for one cell.

    Attributes:
        cell: Identity of the tile.
        status: FREE, OWNED (local player) or RIVAL (anyone else).
        price: Purchase price in tokens, fixed at creation.
        owner: Owner id; None iff status is FREE.
        resources: Yield per resource kind; absent kinds yield zero.
        level: Development level (1-5) or None.
        last_updated: Timestamp of the last mutation (seconds).
    """

    cell: HexCell
    status: OwnershipStatus = OwnershipStatus.FREE
    price: int = 0
    owner: Optional[str] = None
    resources: Mapping[str, float] = field(default_factory=dict)
    level: Optional[int] = None
    last_updated: float = 0.0

    def __post_init__(self) -> None:
        if self.price < 0:
            raise ValueError(f"Negative price {self.price} for {self.cell}")
        if (self.owner is None) != (self.status is OwnershipStatus.FREE):
            raise ValueError(
                f"Tile {self.cell}: owner={self.owner!r} inconsistent with status {self.status.value}"
            )

    @property
    def center(self) -> GeoPoint:
        return self.cell.center

    @property
    def is_free(self) -> bool:
        return self.status is OwnershipStatus.FREE

    def yield_of(self, kind: str) -> float:
        return self.resources.get(kind, 0.0) if self.resources else 0.0


@dataclass(frozen=True)
class StatusCounts:
    """Tile counts per ownership status."""

    owned: int = 0
    free: int = 0
    rival: int = 0

    @property
    def total(self) -> int:
        return self.owned + self.free + self.rival
