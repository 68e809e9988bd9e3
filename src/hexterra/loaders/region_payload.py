"""Region payload codec — wire shape of region data and tile snapshots.

Payload format::

    {
      "regionKey": "moscow",
      "centerPoint": {"lat": 55.75, "lng": 37.61},
      "lastUpdated": "2025-01-01T00:00:00Z",          # optional
      "tiles": [
        {"cellId": "8911aa7a6a3ffff", "centerLat": 55.75, "centerLng": 37.61,
         "status": "free", "price": 120, "owner": null,
         "resources": {"oil": 12}, "lastUpdated": 1735689600.0, "level": 2}
      ]
    }

A missing, empty or ill-typed ``tiles`` list is a DataFormatError.
"""

from __future__ import annotations

import time
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from hexterra.models.hex import GeoPoint, HexCell, HexTile, OwnershipStatus
from hexterra.models.region import RegionData
from hexterra.util.errors import DataFormatError, InvalidCellError


# ===================================================================
# Wire models
# ===================================================================


class PointPayload(BaseModel):
    lat: float = Field(ge=-90.0, le=90.0)
    lng: float = Field(ge=-180.0, le=180.0)


class TilePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    cell_id: str = Field(alias="cellId", min_length=1)
    center_lat: float = Field(alias="centerLat")
    center_lng: float = Field(alias="centerLng")
    status: Literal["free", "owned", "enemy", "rival"]
    price: int = Field(ge=0)
    owner: Optional[str] = None
    resources: Optional[Dict[str, float]] = None
    last_updated: float = Field(alias="lastUpdated", default=0.0)
    level: Optional[int] = Field(default=None, ge=1)


class RegionPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    region_key: str = Field(alias="regionKey", min_length=1)
    center_point: PointPayload = Field(alias="centerPoint")
    last_updated: Optional[str] = Field(alias="lastUpdated", default=None)
    tiles: List[TilePayload] = Field(min_length=1)


# ===================================================================
# Decoding
# ===================================================================


def parse_region_payload(
    raw: Any,
    region: Optional[str] = None,
    fetch_seq: int = 0,
    synced_at: Optional[float] = None,
) -> RegionData:
    """Validate a raw payload and convert it into RegionData.

    Args:
        raw: Decoded JSON/YAML document.
        region: Expected region key; a payload for another region is rejected.
        fetch_seq: Loader fetch sequence number to stamp on the result.
        synced_at: Fetch time; defaults to now.

    Raises:
        DataFormatError: On any shape, type or identity problem.
    """
    if not isinstance(raw, dict):
        raise DataFormatError(
            f"Region payload must be an object, got {type(raw).__name__}", region)
    try:
        payload = RegionPayload.model_validate(raw)
    except ValidationError as exc:
        raise DataFormatError(
            f"Malformed region payload: {exc.error_count()} error(s): {first_error(exc)}",
            region,
        ) from exc

    if region is not None and payload.region_key != region:
        raise DataFormatError(
            f"Payload is for region {payload.region_key!r}, expected {region!r}", region)

    tiles = [_tile_from_payload(t, payload.region_key) for t in payload.tiles]
    seen: set[HexCell] = set()
    for tile in tiles:
        if tile.cell in seen:
            raise DataFormatError(f"Duplicate cell {tile.cell} in payload", payload.region_key)
        seen.add(tile.cell)

    return RegionData(
        region=payload.region_key,
        center=GeoPoint(payload.center_point.lat, payload.center_point.lng),
        tiles=tiles,
        last_synced=time.time() if synced_at is None else synced_at,
        fetch_seq=fetch_seq,
        source_updated=payload.last_updated or "",
    )


def parse_tiles(raw: Any, region: str) -> list[HexTile]:
    """Validate a bare tile list (as stored in snapshots)."""
    if not isinstance(raw, list):
        raise DataFormatError(f"Tile list must be an array, got {type(raw).__name__}", region)
    tiles = []
    for item in raw:
        try:
            payload = TilePayload.model_validate(item)
        except ValidationError as exc:
            raise DataFormatError(f"Malformed tile: {first_error(exc)}", region) from exc
        tiles.append(_tile_from_payload(payload, region))
    return tiles


def _tile_from_payload(t: TilePayload, region: str) -> HexTile:
    try:
        cell = HexCell.parse(t.cell_id)
        return HexTile(
            cell=cell,
            status=OwnershipStatus.parse(t.status),
            price=t.price,
            owner=t.owner,
            resources=dict(t.resources or {}),
            level=t.level,
            last_updated=t.last_updated,
        )
    except (InvalidCellError, ValueError) as exc:
        raise DataFormatError(f"Bad tile {t.cell_id!r}: {exc}", region) from exc


def first_error(exc: ValidationError) -> str:
    err = exc.errors()[0]
    loc = ".".join(str(part) for part in err.get("loc", ()))
    return f"{loc}: {err.get('msg', '')}"


# ===================================================================
# Encoding
# ===================================================================


def tile_to_payload(tile: HexTile) -> dict[str, Any]:
    center = tile.center
    out: dict[str, Any] = {
        "cellId": tile.cell.index,
        "centerLat": center.lat,
        "centerLng": center.lng,
        "status": tile.status.value,
        "price": tile.price,
        "owner": tile.owner,
        "resources": dict(tile.resources) if tile.resources else None,
        "lastUpdated": tile.last_updated,
    }
    if tile.level is not None:
        out["level"] = tile.level
    return out


def region_to_payload(region: str, center: GeoPoint, tiles: list[HexTile],
                      last_updated: str = "") -> dict[str, Any]:
    """Encode tiles (sorted by cell key) as a region payload."""
    out: dict[str, Any] = {
        "regionKey": region,
        "centerPoint": {"lat": center.lat, "lng": center.lng},
        "tiles": [tile_to_payload(t) for t in sorted(tiles, key=lambda t: t.cell)],
    }
    if last_updated:
        out["lastUpdated"] = last_updated
    return out
