"""Territory configuration — loads tunable constants from config/hexterra.yaml.

Provides a single ``HexTerraConfig`` dataclass that is loaded once by the
composition root and then passed wherever values are needed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from hexterra.models.hex import GeoPoint
from hexterra.models.region import RegionBounds
from hexterra.util.constants import BULK_PURCHASE_RADIUS, LOCAL_PLAYER_ID

log = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/hexterra.yaml"


def _default_regions() -> list[RegionBounds]:
    return [
        RegionBounds("moscow", 55.0, 56.5, 36.0, 39.0, GeoPoint(55.7558, 37.6173)),
        RegionBounds("london", 51.0, 52.0, -1.0, 1.0, GeoPoint(51.5074, -0.1278)),
    ]


@dataclass
class GeneratorConfig:
    """Parameters of synthetic tile generation."""
    base_price: int = 100
    distance_markup: float = 0.2
    price_jitter: float = 0.5
    owned_share: float = 0.1
    rival_share: float = 0.2
    radius: int = 3
    seed: int = 0


@dataclass
class HexTerraConfig:
    """All tunable territory constants.

    Loaded from ``config/hexterra.yaml``.  Every field has a default so the
    subsystem works without the file.
    """

    # -- Players -----------------------------------------------------
    local_player_id: str = LOCAL_PLAYER_ID
    starting_tokens: int = 0
    player_nickname: str = "Explorer"

    # -- Grid --------------------------------------------------------
    tile_resolution: int = 9
    zoom_resolutions: tuple[tuple[float, int], ...] = (
        (16.0, 10), (14.0, 9), (12.0, 8), (10.0, 7),
    )
    default_resolution: int = 6
    zoom_radii: tuple[tuple[float, int], ...] = (
        (16.0, 2), (14.0, 3), (12.0, 4), (10.0, 5),
    )
    default_radius: int = 6
    bulk_purchase_radius: int = BULK_PURCHASE_RADIUS

    # -- Regions -----------------------------------------------------
    regions: list[RegionBounds] = field(default_factory=_default_regions)
    default_region: str = "moscow"

    # -- Data sources & persistence ----------------------------------
    region_source: str = "http"          # http | file | generated
    snapshot_backend: str = "yaml"       # yaml | sqlite | none
    region_data_url: str = "http://localhost:5173/data"
    region_data_dir: str = "data"
    snapshot_dir: str = "snapshots"
    snapshot_db_path: str = "hexterra.db"
    http_timeout_s: float = 10.0
    player_source: str = "none"          # http | file | none
    player_data_path: str = "data/user.json"
    player_save_path: str = ""           # empty: profile changes are not saved

    # -- Generator ---------------------------------------------------
    generator: GeneratorConfig = field(default_factory=GeneratorConfig)

    # -- Geolocation -------------------------------------------------
    location_fresh_s: float = 60.0
    max_plausible_speed_mps: float = 100.0

    def __post_init__(self) -> None:
        validate_regions(self.regions, self.default_region)


def validate_regions(regions: list[RegionBounds], default_region: str) -> None:
    """Reject overlapping boxes and an unknown default region."""
    for i, a in enumerate(regions):
        for b in regions[i + 1:]:
            if a.overlaps(b):
                raise ValueError(f"Region boxes overlap: {a.name} / {b.name}")
    names = {r.name for r in regions}
    if len(names) != len(regions):
        raise ValueError("Duplicate region names in configuration")
    if default_region not in names:
        raise ValueError(f"Default region {default_region!r} is not configured")


def load_config(path: str = DEFAULT_CONFIG_PATH) -> HexTerraConfig:
    """Load configuration from a YAML file.

    Missing keys fall back to dataclass defaults.  If the file does not
    exist, a warning is logged and pure defaults are returned.
    """
    p = Path(path)
    if not p.exists():
        log.warning("Config not found at %s, using defaults", p)
        return HexTerraConfig()

    with p.open(encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    log.info("Loaded config from %s (%d keys)", p, len(raw))
    return config_from_dict(raw)


def config_from_dict(raw: dict[str, Any]) -> HexTerraConfig:
    """Build a config from already-parsed YAML."""
    raw = dict(raw)

    nested: dict[str, Any] = {}

    gen_raw = raw.pop("generator", None)
    if isinstance(gen_raw, dict):
        nested["generator"] = GeneratorConfig(**{
            k: v for k, v in gen_raw.items()
            if k in GeneratorConfig.__dataclass_fields__
        })

    regions_raw = raw.pop("regions", None)
    if isinstance(regions_raw, list):
        nested["regions"] = [_parse_region(r) for r in regions_raw]

    for key in ("zoom_resolutions", "zoom_radii"):
        table = raw.pop(key, None)
        if isinstance(table, list):
            nested[key] = _parse_zoom_table(key, table)

    return HexTerraConfig(**nested, **{
        k: v for k, v in raw.items()
        if k in HexTerraConfig.__dataclass_fields__
    })


def _parse_region(raw: dict[str, Any]) -> RegionBounds:
    lat_min, lat_max = float(raw["lat_min"]), float(raw["lat_max"])
    lng_min, lng_max = float(raw["lng_min"]), float(raw["lng_max"])
    center = raw.get("center")
    if isinstance(center, dict):
        point = GeoPoint(float(center["lat"]), float(center["lng"]))
    else:
        point = GeoPoint((lat_min + lat_max) / 2, (lng_min + lng_max) / 2)
    return RegionBounds(str(raw["name"]), lat_min, lat_max, lng_min, lng_max, point)


def _parse_zoom_table(key: str, rows: list[Any]) -> tuple[tuple[float, int], ...]:
    """Parse ``[[zoom, value], ...]`` keeping the written order."""
    table = tuple((float(zoom), int(value)) for zoom, value in rows)
    thresholds = [zoom for zoom, _ in table]
    if thresholds != sorted(thresholds, reverse=True):
        raise ValueError(f"{key} must list thresholds from highest to lowest")
    return table
