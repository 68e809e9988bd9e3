"""Region data sources — where region payloads come from.

Every source returns the raw decoded document; validation happens in the
loader.  Transport failures become :class:`LoadError`, undecodable bodies
become :class:`DataFormatError`.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional, Protocol

import httpx
import yaml

from hexterra.loaders.region_payload import region_to_payload
from hexterra.models.hex import HexCell
from hexterra.util.errors import DataFormatError, LoadError

if TYPE_CHECKING:
    from hexterra.engine.tile_generator import TileGenerator
    from hexterra.models.region import RegionBounds

log = logging.getLogger(__name__)


class RegionDataSource(Protocol):
    """Keyed fetch of one region's payload."""

    async def fetch(self, region: str) -> Any: ...


def region_file_name(region: str, suffix: str = ".json") -> str:
    return f"hex-tiles-{region}{suffix}"


# ===================================================================
# HTTP
# ===================================================================


class HttpRegionSource:
    """``GET {base_url}/hex-tiles-{region}.json`` via httpx.

    Args:
        base_url: Prefix of the data URLs.
        client: Shared AsyncClient; one is created (and owned) if omitted.
        timeout_s: Request timeout for an owned client.
    """

    def __init__(self, base_url: str, client: Optional[httpx.AsyncClient] = None,
                 timeout_s: float = 10.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout_s

    def url_for(self, region: str) -> str:
        return f"{self._base_url}/{region_file_name(region)}"

    async def fetch(self, region: str) -> Any:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        url = self.url_for(region)
        try:
            response = await self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            raise LoadError(f"HTTP {status} fetching {url}", region, status) from exc
        except httpx.HTTPError as exc:
            raise LoadError(f"Request for {url} failed: {exc}", region) from exc

        try:
            return response.json()
        except ValueError as exc:
            raise DataFormatError(f"Response from {url} is not JSON", region) from exc

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


# ===================================================================
# Files
# ===================================================================


class FileRegionSource:
    """Reads ``hex-tiles-{region}.json`` (or ``.yaml``) from a directory."""

    def __init__(self, directory: str | Path) -> None:
        self._dir = Path(directory)

    def path_for(self, region: str) -> Path:
        for suffix in (".json", ".yaml", ".yml"):
            path = self._dir / region_file_name(region, suffix)
            if path.exists():
                return path
        return self._dir / region_file_name(region)

    async def fetch(self, region: str) -> Any:
        path = self.path_for(region)
        try:
            text = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise DataFormatError(f"{path} is not UTF-8 text: {exc}", region) from exc
        except OSError as exc:
            raise LoadError(f"Cannot read {path}: {exc}", region) from exc

        try:
            if path.suffix == ".json":
                return json.loads(text)
            return yaml.safe_load(text)
        except (ValueError, yaml.YAMLError) as exc:
            raise DataFormatError(f"Cannot decode {path}: {exc}", region) from exc


# ===================================================================
# Generated
# ===================================================================


class GeneratedRegionSource:
    """Demo source: synthesizes a payload around each region's center.

    Args:
        regions: Configured region boxes (for the reference centers).
        generator: Tile generator.
        resolution: Cell resolution of generated tiles.
        radius: Ring radius; the generator's default if omitted.
    """

    def __init__(self, regions: list[RegionBounds], generator: TileGenerator,
                 resolution: int = 9, radius: Optional[int] = None) -> None:
        self._regions = {r.name: r for r in regions}
        self._generator = generator
        self._resolution = resolution
        self._radius = radius

    async def fetch(self, region: str) -> Any:
        bounds = self._regions.get(region)
        if bounds is None:
            raise LoadError(f"No demo data for region {region!r}", region)
        center = HexCell.at(bounds.center.lat, bounds.center.lng, self._resolution)
        tiles = self._generator.demo_tiles(center, self._radius)
        log.info("Generated %d demo tiles for region %s", len(tiles), region)
        return region_to_payload(region, bounds.center, tiles)
