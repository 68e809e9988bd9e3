"""Regions — named partitions of the world, each with one tile collection."""

from __future__ import annotations

from dataclasses import dataclass, field

from hexterra.models.hex import GeoPoint, HexTile


@dataclass(frozen=True)
class RegionBounds:
    """A named latitude/longitude bounding box.

    Attributes:
        name: Region key, e.g. ``"moscow"``.
        lat_min, lat_max, lng_min, lng_max: Inclusive box edges in degrees.
        center: Reference point used when the payload has none.
    """

    name: str
    lat_min: float
    lat_max: float
    lng_min: float
    lng_max: float
    center: GeoPoint

    def contains(self, lat: float, lng: float) -> bool:
        return (self.lat_min <= lat <= self.lat_max
                and self.lng_min <= lng <= self.lng_max)

    def overlaps(self, other: RegionBounds) -> bool:
        return not (self.lat_max < other.lat_min or other.lat_max < self.lat_min
                    or self.lng_max < other.lng_min or other.lng_max < self.lng_min)


@dataclass
class RegionData:
    """One validated region payload as held in the loader cache.

    Attributes:
        region: Region key.
        center: Reference point of the region.
        tiles: The tiles delivered by the source.
        last_synced: When the payload was fetched (seconds).
        fetch_seq: Loader-wide fetch sequence number; tells stores whether
            they already hold this exact payload.
        source_updated: The source's own ``lastUpdated`` stamp, if any.
    """

    region: str
    center: GeoPoint
    tiles: list[HexTile] = field(default_factory=list)
    last_synced: float = 0.0
    fetch_seq: int = 0
    source_updated: str = ""
