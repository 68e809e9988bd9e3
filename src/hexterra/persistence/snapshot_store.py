"""Snapshot store — durable record of a region's tiles after each commit.

A snapshot is the full tile list of one region plus the store revision and
its timestamp.  Save failures are raised as PersistenceError, never logged
and dropped.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Protocol

import yaml

from hexterra.loaders.region_payload import parse_tiles, tile_to_payload
from hexterra.models.hex import HexTile
from hexterra.util.errors import DataFormatError, PersistenceError

log = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


@dataclass
class SavedSnapshot:
    """A snapshot read back from storage."""

    region: str
    revision: int
    revised_at: float
    tiles: list[HexTile] = field(default_factory=list)
    saved_at: float = 0.0


class SnapshotStore(Protocol):
    """Persistence collaborator of the purchase engine."""

    async def save(self, region: str, tiles: list[HexTile], revision: int,
                   revised_at: float) -> None: ...

    async def load(self, region: str) -> Optional[SavedSnapshot]: ...


def encode_snapshot(region: str, tiles: list[HexTile], revision: int,
                    revised_at: float) -> dict[str, Any]:
    return {
        "meta": {
            "version": SNAPSHOT_VERSION,
            "region": region,
            "revision": revision,
            "revised_at": revised_at,
            "saved_at": time.time(),
        },
        "tiles": [tile_to_payload(t) for t in sorted(tiles, key=lambda t: t.cell)],
    }


def decode_snapshot(raw: Any, region: str) -> SavedSnapshot:
    if not isinstance(raw, dict) or not isinstance(raw.get("meta"), dict):
        raise DataFormatError("Snapshot has no meta section", region)
    meta = raw["meta"]
    return SavedSnapshot(
        region=str(meta.get("region", region)),
        revision=int(meta.get("revision", 0)),
        revised_at=float(meta.get("revised_at", 0.0)),
        tiles=parse_tiles(raw.get("tiles"), region),
        saved_at=float(meta.get("saved_at", 0.0)),
    )


# ===================================================================
# YAML files
# ===================================================================


class YamlSnapshotStore:
    """One ``{region}.yaml`` file per region, replaced atomically."""

    def __init__(self, directory: str | Path) -> None:
        self._dir = Path(directory)

    def path_for(self, region: str) -> Path:
        return self._dir / f"{region}.yaml"

    async def save(self, region: str, tiles: list[HexTile], revision: int,
                   revised_at: float) -> None:
        out = self.path_for(region)
        tmp = out.with_suffix(".yaml.tmp")
        state = encode_snapshot(region, tiles, revision, revised_at)
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            tmp.write_text(
                yaml.dump(state, default_flow_style=False, allow_unicode=True, sort_keys=False),
                encoding="utf-8",
            )
            tmp.replace(out)
        except (OSError, yaml.YAMLError) as exc:
            log.exception("Failed to save region %s to %s", region, out)
            if tmp.exists():
                tmp.unlink()
            raise PersistenceError(f"Cannot write {out}: {exc}", region) from exc
        log.info("Region %s saved to %s (%d tiles, rev %d)", region, out, len(tiles), revision)

    async def load(self, region: str) -> Optional[SavedSnapshot]:
        """Read a region snapshot; None if it was never saved.

        Raises:
            PersistenceError: The file exists but cannot be read.
            DataFormatError: The file is not a decodable snapshot.
        """
        path = self.path_for(region)
        if not path.exists():
            log.info("No snapshot for region %s at %s", region, path)
            return None
        try:
            raw = yaml.safe_load(path.read_text(encoding="utf-8"))
        except UnicodeDecodeError as exc:
            raise DataFormatError(f"Snapshot {path} is not UTF-8 text: {exc}", region) from exc
        except OSError as exc:
            raise PersistenceError(f"Cannot read {path}: {exc}", region) from exc
        except yaml.YAMLError as exc:
            raise DataFormatError(f"Cannot parse snapshot {path}: {exc}", region) from exc
        return decode_snapshot(raw, region)
